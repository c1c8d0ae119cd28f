"""Configuration management for the Photo Stylizer."""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from .errors import ConfigurationError
from .retry import RetryPolicy
from .logger import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()


class Config(BaseModel):
    """Main application configuration."""

    # Credential (absence is reported by the components that need it)
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")

    # Upstream model
    gemini_model: str = Field(default="gemini-2.5-flash-image-preview", alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )

    # Client mode: proxy endpoint used when no local key is configured
    proxy_url: Optional[str] = Field(default=None, alias="PROXY_URL")

    # Application Settings
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Timeouts and retries
    request_timeout_seconds: float = Field(default=60.0, gt=0, alias="REQUEST_TIMEOUT_SECONDS")
    upstream_max_attempts: int = Field(default=1, ge=1, alias="UPSTREAM_MAX_ATTEMPTS")
    upstream_retry_delay_seconds: float = Field(default=1.0, ge=0, alias="UPSTREAM_RETRY_DELAY_SECONDS")

    # Cosmetic progress heartbeat
    progress_interval_seconds: float = Field(default=0.5, gt=0, alias="PROGRESS_INTERVAL_SECONDS")
    progress_step: int = Field(default=10, ge=1, le=99, alias="PROGRESS_STEP")
    progress_cap: int = Field(default=90, ge=0, le=99, alias="PROGRESS_CAP")
    progress_settle_seconds: float = Field(default=1.0, ge=0, alias="PROGRESS_SETTLE_SECONDS")

    # Paths
    onboarding_state_path: Path = Field(
        default=Path("~/.photo_stylizer/onboarding.json"),
        alias="ONBOARDING_STATE_PATH",
    )
    styles_path: Optional[Path] = Field(default=None, alias="STYLES_PATH")

    class Config:
        populate_by_name = True

    @property
    def has_api_key(self) -> bool:
        return bool(self.gemini_api_key and self.gemini_api_key.strip())

    @property
    def upstream_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.upstream_max_attempts,
            initial_delay=self.upstream_retry_delay_seconds,
        )


# Global config instance
_config: Optional[Config] = None


def load_config(**overrides) -> Config:
    """
    Load configuration from environment variables.

    Args:
        **overrides: Values keyed by environment variable name
            (e.g. GEMINI_API_KEY) taking precedence over the environment

    Returns:
        Config instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config

    try:
        config_data = {
            **os.environ,
            **overrides,
        }

        _config = Config(**config_data)

    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}")

    logger.info(
        "Configuration loaded successfully",
        extra={
            "environment": _config.app_env,
            "model": _config.gemini_model,
            "api_key_configured": _config.has_api_key,
            "proxy_configured": bool(_config.proxy_url),
        }
    )

    return _config


def get_config() -> Config:
    """
    Get the current configuration instance.

    Returns:
        Config instance

    Raises:
        ConfigurationError: If config not loaded
    """
    if _config is None:
        raise ConfigurationError("Configuration not loaded. Call load_config() first.")
    return _config
