"""Client side of the generation proxy contract."""

from typing import Optional, Tuple
import httpx

from .base import BaseProvider
from ..models.enums import FailureKind
from ..utils.logger import get_logger
from ..utils.errors import (
    APIError,
    InputError,
    ConfigurationError,
    TransportError,
    GenerationTimeout,
    NoImageGeneratedError,
    UpstreamError,
)

logger = get_logger(__name__)

DEFAULT_ERROR = "Failed to generate image"

_ERRORS_BY_KIND = {
    FailureKind.INPUT: InputError,
    FailureKind.CONFIGURATION: ConfigurationError,
    FailureKind.NO_IMAGE: NoImageGeneratedError,
    FailureKind.TIMEOUT: GenerationTimeout,
    FailureKind.TRANSPORT: TransportError,
}


class ProxyClient(BaseProvider):
    """Posts {imageData, prompt} to the proxy and unwraps its answer."""

    service = "proxy"

    def __init__(
        self,
        proxy_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=proxy_url, timeout=timeout, transport=transport)

    def _get_default_headers(self) -> dict:
        return {"Content-Type": "application/json"}

    async def generate_image(self, image_data: str, prompt: str) -> Tuple[str, str]:
        """
        Request a styled image through the proxy.

        Returns:
            Tuple of (image data URL, prompt echoed by the proxy)

        Raises:
            PhotoStylizerError subclass matching the failure the proxy reported
        """
        response = await self._post_json(
            self.base_url,
            {"imageData": image_data, "prompt": prompt},
        )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.is_success or body.get("success") is False:
            message = body.get("error") or DEFAULT_ERROR
            logger.warning(
                "Proxy reported failure",
                extra={"status": response.status_code, "error": message}
            )
            raise self._error_for(response.status_code, body, message)

        image_url = body.get("imageUrl")
        if not image_url:
            raise NoImageGeneratedError()

        echoed_prompt = body.get("prompt") or prompt
        if not isinstance(image_url, str) or not isinstance(echoed_prompt, str):
            logger.error(
                "Malformed proxy response",
                extra={"status": response.status_code, "fields": sorted(body)}
            )
            raise UpstreamError("proxy", "Malformed response", response.status_code)

        return image_url, echoed_prompt

    @staticmethod
    def _error_for(status_code: int, body: dict, message: str) -> Exception:
        try:
            kind = FailureKind(body.get("kind"))
        except ValueError:
            kind = None

        if kind is None:
            if status_code in (400, 405):
                kind = FailureKind.INPUT
            elif message == "Server configuration error":
                kind = FailureKind.CONFIGURATION

        error_cls = _ERRORS_BY_KIND.get(kind, APIError)
        return error_cls(message)
