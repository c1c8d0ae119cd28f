"""Shared HTTP plumbing for the image-service clients."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import httpx

from ..utils.logger import get_logger
from ..utils.errors import GenerationTimeout, TransportError

logger = get_logger(__name__)


class BaseProvider(ABC):
    """
    Owns one httpx.AsyncClient for an image service.

    Use as an async context manager, or call initialize()/close() around
    the calls. Network failures are raised as GenerationTimeout or
    TransportError so callers never see raw httpx errors.
    """

    #: Service name used in logs and error messages
    service = "image service"

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Service URL (trailing slash ignored)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        """Open the HTTP client; calling it twice is harmless."""
        if self.client is not None:
            return

        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._get_default_headers(),
            transport=self.transport,
        )
        logger.info(
            f"{self.__class__.__name__} ready",
            extra={"provider": self.service, "base_url": self.base_url, "timeout_seconds": self.timeout}
        )

    async def close(self):
        if self.client is None:
            return

        await self.client.aclose()
        self.client = None
        logger.info(
            f"{self.__class__.__name__} closed",
            extra={"provider": self.service}
        )

    @abstractmethod
    def _get_default_headers(self) -> Dict[str, str]:
        """Headers sent with every request (credentials included, if any)."""

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        """
        POST a JSON body and return the response, whatever its status.

        Raises:
            RuntimeError: If the client was not initialized
            GenerationTimeout: The request exceeded the timeout
            TransportError: Any other network failure
        """
        if self.client is None:
            raise RuntimeError(
                f"{self.__class__.__name__} not initialized. "
                "Call initialize() or use as async context manager."
            )

        try:
            return await self.client.post(url, json=payload)
        except httpx.TimeoutException:
            logger.error(
                f"{self.service} request timed out",
                extra={"provider": self.service, "timeout_seconds": self.timeout}
            )
            raise GenerationTimeout(f"Image generation timed out after {self.timeout:g} seconds")
        except httpx.TransportError as e:
            logger.error(
                f"{self.service} transport error: {type(e).__name__}",
                extra={"provider": self.service, "error": str(e)}
            )
            raise TransportError(f"Network error contacting {self.service}: {e}")
