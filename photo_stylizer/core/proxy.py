"""Credentialed forwarder between clients and the image model."""

from typing import Any, Dict, Optional

from ..providers.gemini import GeminiClient, build_transform_prompt
from ..models.schemas import ProxyRequest, ProxyResponse
from ..models.enums import FailureKind
from ..utils.logger import get_logger
from ..utils.errors import PhotoStylizerError
from ..utils.images import split_data_url, to_data_url

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

GENERIC_FAILURE = "Failed to generate image"


class SecureProxy:
    """
    Stateless request handler for image generation.

    Every outcome, including configuration problems and upstream failures,
    is returned as a ProxyResponse; nothing raises past handle().
    """

    def __init__(self, gemini: Optional[GeminiClient]):
        """
        Args:
            gemini: Initialized client, or None when no credential is configured
        """
        self.gemini = gemini

    @property
    def is_configured(self) -> bool:
        return self.gemini is not None

    async def handle(self, method: str, body: Any = None) -> ProxyResponse:
        """
        Handle one proxy request.

        Args:
            method: HTTP verb
            body: Decoded JSON body (anything that is not an object counts as empty)

        Returns:
            ProxyResponse with status code and JSON body
        """
        method = (method or "").upper()

        if method == "OPTIONS":
            return ProxyResponse(status_code=200)

        if method != "POST":
            logger.warning("Rejected request method", extra={"method": method})
            return ProxyResponse(status_code=405, body={"error": "Method not allowed"})

        request = self._parse(body)

        logger.info(
            "Generation request received",
            extra={
                "has_image_data": bool(request.imageData),
                "image_data_length": len(request.imageData or ""),
                "declared_mime_type": split_data_url(request.imageData)[0] if request.imageData else None,
                "has_prompt": bool(request.prompt),
                "prompt_length": len(request.prompt or ""),
            }
        )

        if not request.imageData or not request.prompt:
            logger.warning(
                "Missing parameters",
                extra={
                    "error_kind": FailureKind.INPUT.value,
                    "has_image_data": bool(request.imageData),
                    "has_prompt": bool(request.prompt),
                }
            )
            return ProxyResponse(status_code=400, body={"error": "Missing required parameters"})

        if not self.is_configured:
            logger.error(
                "GEMINI_API_KEY environment variable not set",
                extra={"error_kind": FailureKind.CONFIGURATION.value}
            )
            return ProxyResponse(status_code=500, body={"error": "Server configuration error"})

        try:
            image_b64 = await self.gemini.transform_image(request.imageData, request.prompt)

        except PhotoStylizerError as e:
            logger.error(
                "Generation failed",
                extra={"error_kind": e.kind.value, "error": str(e)}
            )
            return self._failure(str(e) or GENERIC_FAILURE, e.kind)

        except Exception as e:
            logger.exception(
                "Unexpected proxy error",
                extra={"error_kind": FailureKind.UPSTREAM.value, "error": str(e)}
            )
            return self._failure(GENERIC_FAILURE, FailureKind.UPSTREAM)

        return ProxyResponse(
            status_code=200,
            body={
                "success": True,
                "imageUrl": to_data_url(image_b64, "image/jpeg"),
                "prompt": build_transform_prompt(request.prompt),
            },
        )

    @staticmethod
    def _parse(body: Any) -> ProxyRequest:
        if not isinstance(body, dict):
            return ProxyRequest()

        fields: Dict[str, Optional[str]] = {}
        for key in ("imageData", "prompt"):
            value = body.get(key)
            fields[key] = value if isinstance(value, str) else None
        return ProxyRequest(**fields)

    @staticmethod
    def _failure(message: str, kind: FailureKind) -> ProxyResponse:
        return ProxyResponse(
            status_code=500,
            body={"success": False, "error": message, "kind": kind.value},
        )
