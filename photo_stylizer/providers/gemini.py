"""Gemini generateContent client used for image stylization."""

from typing import Any, Dict, List, Optional
import httpx

from .base import BaseProvider
from ..models.schemas import ApiStatus
from ..utils.logger import get_logger
from ..utils.errors import (
    PhotoStylizerError,
    ConfigurationError,
    UpstreamError,
    TransportError,
    NoImageGeneratedError,
)
from ..utils.images import extract_base64_payload
from ..utils.retry import NO_RETRY, RetryPolicy, retry_async

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash-image-preview"

# The upstream model receives every photo as JPEG regardless of the source type
OUTBOUND_MIME_TYPE = "image/jpeg"

TRANSFORM_TEMPLATE = (
    "Transform the provided image according to this description: {prompt}. "
    "Make sure the transformation is clear, artistic, and maintains the original "
    "composition while applying the new style."
)


def build_transform_prompt(prompt: str) -> str:
    """Wrap a style or custom prompt in the fixed transformation instruction."""
    return TRANSFORM_TEMPLATE.format(prompt=prompt)


class GeminiClient(BaseProvider):
    """Client for the Gemini content-generation endpoint."""

    service = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        retry_policy: RetryPolicy = NO_RETRY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key, sent only as a request header
            model: Image-capable model name
            base_url: API base URL
            timeout: Request timeout in seconds
            retry_policy: Retries applied to transport failures (none by default)
            transport: Optional httpx transport

        Raises:
            ConfigurationError: If no API key is given
        """
        if not api_key or not api_key.strip():
            raise ConfigurationError("GEMINI_API_KEY is not configured")

        super().__init__(base_url=base_url, timeout=timeout, transport=transport)
        self.api_key = api_key.strip()
        self.model = model
        self.retry_policy = retry_policy

    def _get_default_headers(self) -> dict:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def transform_image(self, image_data: str, prompt: str) -> str:
        """
        Restyle an image according to a prompt.

        Args:
            image_data: Data URL or raw base64 payload
            prompt: Style prompt (wrapped in the transformation instruction)

        Returns:
            Base64 payload of the generated image

        Raises:
            UpstreamError: Non-success HTTP status from Gemini
            GenerationTimeout: Request exceeded the timeout
            TransportError: Network failure
            NoImageGeneratedError: Response carried no inline image
        """
        image_b64 = extract_base64_payload(image_data)

        parts = [
            {"text": build_transform_prompt(prompt)},
            {
                "inlineData": {
                    "mimeType": OUTBOUND_MIME_TYPE,
                    "data": image_b64,
                }
            },
        ]

        logger.info(
            "Submitting image transformation",
            extra={
                "model": self.model,
                "prompt": prompt[:100],
                "image_b64_length": len(image_b64),
            }
        )

        result = await self._generate_content(parts)
        return self._extract_image(result)

    async def generate_from_text(self, prompt: str) -> str:
        """Generate an image from a text prompt alone; returns the base64 payload."""
        logger.info(
            "Submitting text-to-image generation",
            extra={"model": self.model, "prompt": prompt[:100]}
        )
        result = await self._generate_content([{"text": prompt}])
        return self._extract_image(result)

    async def check_status(self) -> ApiStatus:
        """Probe the API with a tiny text request."""
        try:
            await self._generate_content([{"text": "Hello, test message"}])
        except PhotoStylizerError as e:
            logger.warning("Gemini status check failed", extra={"error": str(e)})
            return ApiStatus(status="error", message=str(e) or "API test failed")

        return ApiStatus(status="success", message="API is working correctly")

    async def _generate_content(self, parts: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload = {"contents": [{"parts": parts}]}

        return await retry_async(
            lambda: self._post(payload),
            self.retry_policy,
            retry_on=(TransportError,),
            label=f"gemini {self.model}",
        )

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._post_json(self.endpoint, payload)

        logger.info(
            "Gemini response received",
            extra={"status": response.status_code, "reason": response.reason_phrase}
        )

        if not response.is_success:
            error_text = self._redact(response.text)
            logger.error(
                f"Gemini API error: {response.status_code}",
                extra={"status": response.status_code, "response": error_text}
            )
            raise UpstreamError(
                "gemini",
                f"API request failed: {response.reason_phrase} - {error_text}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise UpstreamError("gemini", "Invalid JSON in response", response.status_code)

    def _extract_image(self, result: Any) -> str:
        """Return the first inline image payload across all candidates."""
        if not isinstance(result, dict):
            raise self._malformed(f"expected an object, got {type(result).__name__}")

        candidates = result.get("candidates") or []
        if not isinstance(candidates, list):
            raise self._malformed("candidates is not a list")

        for candidate in candidates:
            content = candidate.get("content") if isinstance(candidate, dict) else None
            parts = content.get("parts") if isinstance(content, dict) else None
            for part in parts if isinstance(parts, list) else []:
                if not isinstance(part, dict):
                    continue
                inline = part.get("inlineData") or part.get("inline_data")
                if inline and not isinstance(inline, dict):
                    raise self._malformed("inlineData is not an object")
                data = inline.get("data") if inline else None
                if data and not isinstance(data, str):
                    raise self._malformed("inline image data is not a string")
                if data:
                    logger.info(
                        "Image found in response",
                        extra={"image_b64_length": len(data)}
                    )
                    return data
                if part.get("text"):
                    logger.debug(
                        "Model returned text",
                        extra={"text": part["text"]}
                    )

        feedback = result.get("promptFeedback")
        logger.error(
            "No image generated in response",
            extra={
                "candidates": len(candidates),
                "finish_reasons": [
                    c.get("finishReason") for c in candidates if isinstance(c, dict)
                ],
                "block_reason": feedback.get("blockReason") if isinstance(feedback, dict) else None,
            }
        )
        raise NoImageGeneratedError()

    def _malformed(self, detail: str) -> UpstreamError:
        logger.error("Malformed Gemini response", extra={"detail": detail})
        return UpstreamError("gemini", f"Malformed response: {detail}", 200)

    def _redact(self, text: str) -> str:
        return text.replace(self.api_key, "***")
