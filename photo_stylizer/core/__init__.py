"""Core business logic components."""

from .styles import StyleCatalog, load_styles, resolve_prompt
from .proxy import SecureProxy, CORS_HEADERS
from .generation import (
    GenerationBackend,
    DirectGeminiBackend,
    ProxyBackend,
    build_backend,
    generate_multiple,
)
from .orchestrator import GenerationOrchestrator
from .onboarding import OnboardingStore

__all__ = [
    "StyleCatalog",
    "load_styles",
    "resolve_prompt",
    "SecureProxy",
    "CORS_HEADERS",
    "GenerationBackend",
    "DirectGeminiBackend",
    "ProxyBackend",
    "build_backend",
    "generate_multiple",
    "GenerationOrchestrator",
    "OnboardingStore",
]
