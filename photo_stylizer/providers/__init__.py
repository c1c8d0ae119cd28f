"""API provider clients for external services."""

from .gemini import GeminiClient, build_transform_prompt
from .proxy_client import ProxyClient

__all__ = [
    "GeminiClient",
    "ProxyClient",
    "build_transform_prompt",
]
