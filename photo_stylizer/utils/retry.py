"""Bounded retries and time limits for upstream calls."""

import asyncio
from typing import Awaitable, Callable, Iterator, Tuple, Type, TypeVar
from pydantic import BaseModel, Field

from .logger import get_logger
from .errors import GenerationTimeout

logger = get_logger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """How often, and how patiently, a failing upstream call is repeated."""
    max_attempts: int = Field(default=1, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=30.0, ge=0)

    class Config:
        frozen = True

    @property
    def enabled(self) -> bool:
        return self.max_attempts > 1

    def delays(self) -> Iterator[float]:
        """Sleep before each retry: one value per attempt after the first."""
        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            yield min(delay, self.max_delay)
            delay *= self.backoff_factor


NO_RETRY = RetryPolicy()


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = NO_RETRY,
    retry_on: Tuple[Type[BaseException], ...] = (),
    label: str = "upstream call",
) -> T:
    """
    Await `operation()`, repeating it on `retry_on` errors as the policy allows.

    Errors outside `retry_on` propagate on the first occurrence. When the
    attempts run out the last error propagates unchanged.

    Example:
        await retry_async(
            lambda: client.post(url, json=payload),
            RetryPolicy(max_attempts=3),
            retry_on=(TransportError,),
            label="gemini generateContent",
        )
    """
    delays = policy.delays()
    attempt = 1

    while True:
        try:
            return await operation()
        except retry_on as e:
            delay = next(delays, None)
            if delay is None:
                if policy.enabled:
                    logger.error(
                        f"{label} failed after {attempt} attempts",
                        extra={"operation": label, "attempts": attempt, "error": str(e)}
                    )
                raise

            logger.warning(
                f"{label} attempt {attempt}/{policy.max_attempts} failed, retrying in {delay}s",
                extra={
                    "operation": label,
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "delay_seconds": delay,
                    "error": str(e),
                }
            )
            await asyncio.sleep(delay)
            attempt += 1


async def timeout_async(awaitable: Awaitable[T], seconds: float, label: str = "Image generation") -> T:
    """
    Bound an awaitable in time.

    Raises:
        GenerationTimeout: If it does not finish within `seconds`
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        logger.error(
            f"{label} timed out",
            extra={"operation": label, "timeout_seconds": seconds}
        )
        raise GenerationTimeout(f"{label} timed out after {seconds:g} seconds")
