"""Data models and schemas for the Photo Stylizer."""

from .schemas import (
    StyleTemplate,
    GenerationRequest,
    GenerationSuccess,
    GenerationFailure,
    GenerationResult,
    BatchItem,
    BatchResult,
    GenerationSessionState,
    ProxyRequest,
    ProxyResponse,
    ApiStatus,
)
from .enums import (
    StyleCategory,
    FailureKind,
    GenerationMode,
    BatchStatus,
)

__all__ = [
    "StyleTemplate",
    "GenerationRequest",
    "GenerationSuccess",
    "GenerationFailure",
    "GenerationResult",
    "BatchItem",
    "BatchResult",
    "GenerationSessionState",
    "ProxyRequest",
    "ProxyResponse",
    "ApiStatus",
    "StyleCategory",
    "FailureKind",
    "GenerationMode",
    "BatchStatus",
]
