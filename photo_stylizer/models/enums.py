"""Enumerations for the Photo Stylizer."""

from enum import Enum


class StyleCategory(str, Enum):
    """Presentation grouping for style templates."""
    HISTORICAL = "historical"
    FANTASY = "fantasy"
    ART = "art"
    SCI_FI = "sci-fi"


class FailureKind(str, Enum):
    """Why a generation did not produce an image."""
    INPUT = "input"
    CONFIGURATION = "configuration"
    UPSTREAM = "upstream"
    TRANSPORT = "transport"
    NO_IMAGE = "no_image"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class GenerationMode(str, Enum):
    """Orchestration mode active for a session."""
    SINGLE = "single"
    BATCH = "batch"


class BatchStatus(str, Enum):
    """Lifecycle of a batch run."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
