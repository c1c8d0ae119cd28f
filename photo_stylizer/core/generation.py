"""Generation backends: direct Gemini calls or the secure proxy."""

from typing import List, Optional, Protocol, Sequence, Tuple
import httpx

from ..providers.gemini import GeminiClient, build_transform_prompt
from ..providers.proxy_client import ProxyClient
from ..models.schemas import GenerationResult, GenerationSuccess, GenerationFailure
from ..models.enums import FailureKind
from ..utils.config import Config
from ..utils.logger import get_logger
from ..utils.errors import PhotoStylizerError
from ..utils.images import to_data_url

logger = get_logger(__name__)


class GenerationBackend(Protocol):
    """Anything that turns (image, prompt) into a GenerationResult."""

    name: str

    async def initialize(self) -> None: ...

    async def close(self) -> None: ...

    async def generate(self, image_data: str, prompt: str) -> GenerationResult: ...


def failure_from_error(error: Exception) -> GenerationFailure:
    """Convert a raised error into a tagged failure value."""
    if isinstance(error, PhotoStylizerError):
        return GenerationFailure(
            message=str(error) or "Failed to generate styled image",
            kind=error.kind,
        )
    if isinstance(error, httpx.TimeoutException):
        return GenerationFailure(message="Image generation timed out", kind=FailureKind.TIMEOUT)
    if isinstance(error, httpx.HTTPError):
        return GenerationFailure(
            message=str(error) or "Network error",
            kind=FailureKind.TRANSPORT,
        )
    return GenerationFailure(
        message=str(error) or "Failed to generate styled image",
        kind=FailureKind.UPSTREAM,
    )


class DirectGeminiBackend:
    """Development mode: call Gemini with a locally configured key."""

    name = "direct"

    def __init__(self, gemini: GeminiClient):
        self.gemini = gemini

    async def initialize(self):
        await self.gemini.initialize()

    async def close(self):
        await self.gemini.close()

    async def generate(self, image_data: str, prompt: str) -> GenerationResult:
        try:
            image_b64 = await self.gemini.transform_image(image_data, prompt)
        except (PhotoStylizerError, httpx.HTTPError) as e:
            failure = failure_from_error(e)
            logger.error(
                "Error generating styled image",
                extra={"backend": self.name, "error_kind": failure.kind.value, "error": str(e)}
            )
            return failure

        return GenerationSuccess(
            image_url=to_data_url(image_b64, "image/jpeg"),
            prompt=build_transform_prompt(prompt),
        )


class ProxyBackend:
    """Production mode: the credential stays behind the proxy."""

    name = "proxy"

    def __init__(self, proxy_client: ProxyClient):
        self.proxy_client = proxy_client

    async def initialize(self):
        await self.proxy_client.initialize()

    async def close(self):
        await self.proxy_client.close()

    async def generate(self, image_data: str, prompt: str) -> GenerationResult:
        try:
            image_url, echoed_prompt = await self.proxy_client.generate_image(image_data, prompt)
        except (PhotoStylizerError, httpx.HTTPError) as e:
            failure = failure_from_error(e)
            logger.error(
                "Error generating styled image",
                extra={"backend": self.name, "error_kind": failure.kind.value, "error": str(e)}
            )
            return failure

        return GenerationSuccess(image_url=image_url, prompt=echoed_prompt)


def build_backend(
    config: Config,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[GenerationBackend]:
    """
    Choose the backend for a client session.

    A local key selects direct mode, otherwise a proxy URL selects proxy
    mode. Returns None when neither is configured; the caller must
    initialize() the backend before use.
    """
    if config.has_api_key:
        gemini = GeminiClient(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            base_url=config.gemini_base_url,
            timeout=config.request_timeout_seconds,
            retry_policy=config.upstream_retry_policy,
            transport=transport,
        )
        logger.info("Using direct Gemini backend", extra={"model": config.gemini_model})
        return DirectGeminiBackend(gemini)

    if config.proxy_url:
        proxy_client = ProxyClient(
            proxy_url=config.proxy_url,
            timeout=config.request_timeout_seconds,
            transport=transport,
        )
        logger.info("Using proxy backend", extra={"proxy_url": config.proxy_url})
        return ProxyBackend(proxy_client)

    logger.error(
        "No generation backend configured",
        extra={"error_kind": FailureKind.CONFIGURATION.value}
    )
    return None


async def generate_multiple(
    backend: GenerationBackend,
    image_data: str,
    prompts: Sequence[str],
) -> List[Tuple[str, GenerationResult]]:
    """
    Generate one image per prompt, sequentially and in order.

    A failing prompt is recorded and the remaining prompts still run.
    """
    results: List[Tuple[str, GenerationResult]] = []

    for prompt in prompts:
        try:
            result = await backend.generate(image_data, prompt)
        except (PhotoStylizerError, httpx.HTTPError) as e:
            result = failure_from_error(e)
        results.append((prompt, result))

    logger.info(
        "Multiple generation complete",
        extra={
            "total": len(results),
            "successful": sum(1 for _, r in results if r.success),
        }
    )

    return results
