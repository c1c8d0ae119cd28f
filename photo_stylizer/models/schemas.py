"""Pydantic schemas for data validation."""

from typing import List, Optional, Dict, Any, Union, Literal
from pydantic import BaseModel, Field

from .enums import StyleCategory, FailureKind, GenerationMode, BatchStatus


class StyleTemplate(BaseModel):
    """Static catalog entry."""
    id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    prompt_text: str = Field(..., min_length=1)
    category: StyleCategory

    class Config:
        frozen = True


class GenerationRequest(BaseModel):
    """One image + prompt pair sent for generation."""
    source_image: str = Field(..., min_length=1)  # data URL or raw base64
    prompt_text: str = Field(..., min_length=1)


class GenerationSuccess(BaseModel):
    """Generated image ready for direct rendering."""
    success: Literal[True] = True
    image_url: str = Field(..., min_length=1)
    prompt: str = ""

    class Config:
        frozen = True


class GenerationFailure(BaseModel):
    """Generation outcome carrying a user-facing message."""
    success: Literal[False] = False
    message: str = Field(..., min_length=1)
    kind: FailureKind = FailureKind.UPSTREAM

    class Config:
        frozen = True


GenerationResult = Union[GenerationSuccess, GenerationFailure]


class BatchItem(BaseModel):
    """Outcome of one catalog style in a batch run."""
    style: StyleTemplate
    result: GenerationResult


class BatchResult(BaseModel):
    """Ordered per-style outcomes, one per catalog entry."""
    items: List[BatchItem] = Field(default_factory=list)
    status: BatchStatus = BatchStatus.IDLE

    @property
    def succeeded(self) -> List[BatchItem]:
        return [item for item in self.items if item.result.success]

    @property
    def failed(self) -> List[BatchItem]:
        return [item for item in self.items if not item.result.success]


class GenerationSessionState(BaseModel):
    """Per-session UI state owned by one orchestrator."""
    current_photo: Optional[str] = None
    mode: GenerationMode = GenerationMode.SINGLE
    is_generating: bool = False
    is_batch_generating: bool = False
    progress_percent: int = Field(default=0, ge=0, le=100)
    last_error: Optional[str] = None
    last_result: Optional[GenerationResult] = None
    generated_image: Optional[str] = None
    batch: Optional[BatchResult] = None


class ProxyRequest(BaseModel):
    """Body accepted by the generation proxy."""
    imageData: Optional[str] = None
    prompt: Optional[str] = None


class ProxyResponse(BaseModel):
    """Status code and JSON body returned by the proxy."""
    status_code: int
    body: Optional[Dict[str, Any]] = None


class ApiStatus(BaseModel):
    """Result of probing the remote model."""
    status: Literal["success", "error"]
    message: str
