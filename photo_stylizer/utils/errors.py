"""Custom exception classes for the photo stylizer."""

from ..models.enums import FailureKind


class PhotoStylizerError(Exception):
    """Base exception for all stylizer errors."""
    kind = FailureKind.UPSTREAM


class ConfigurationError(PhotoStylizerError):
    """Configuration or initialization errors (missing credential, bad catalog)."""
    kind = FailureKind.CONFIGURATION


class InputError(PhotoStylizerError):
    """Missing or invalid user input. Never retried automatically."""
    kind = FailureKind.INPUT


class UnknownStyleError(InputError):
    """Style id not present in the catalog."""

    def __init__(self, style_id: str):
        self.style_id = style_id
        super().__init__(f"Unknown style: {style_id}")


class APIError(PhotoStylizerError):
    """Base class for API-related errors."""
    pass


class ProviderError(APIError):
    """Generic provider API error with status code."""

    def __init__(self, provider: str, message: str, status_code: int = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider} error: {message}")


class UpstreamError(ProviderError):
    """Remote model answered with a non-success status."""
    pass


class TransportError(APIError):
    """Network failure talking to the remote model or the proxy."""
    kind = FailureKind.TRANSPORT


class GenerationTimeout(APIError):
    """A remote call exceeded its time bound."""
    kind = FailureKind.TIMEOUT


class NoImageGeneratedError(PhotoStylizerError):
    """The model responded but returned no inline image."""
    kind = FailureKind.NO_IMAGE

    def __init__(self, message: str = "No image generated"):
        super().__init__(message)


class GenerationCancelled(PhotoStylizerError):
    """An in-flight generation was cancelled by the session."""
    kind = FailureKind.CANCELLED

    def __init__(self, message: str = "Generation cancelled"):
        super().__init__(message)


class ImageProcessingError(InputError):
    """Error processing image data."""
    pass


class UnsupportedFormatError(ImageProcessingError):
    """Format not supported"""
    pass
