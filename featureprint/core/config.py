"""
Central configuration loaded from environment variables.
All settings have sensible defaults so the service works out of the box
with no manual configuration.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Revision = Literal["1", "2"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------ #
    # Service identity
    # ------------------------------------------------------------------ #
    app_name: str = "featureprint-api"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"

    # ------------------------------------------------------------------ #
    # API authentication
    # Set API_KEY to a non-empty string to enable authentication.
    # Leave blank (default) to run in open / unauthenticated mode.
    # ------------------------------------------------------------------ #
    api_key: str = ""

    # ------------------------------------------------------------------ #
    # Rate limiting  (requires slowapi)
    # ------------------------------------------------------------------ #
    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 60        # requests per client IP per minute

    # ------------------------------------------------------------------ #
    # Feature print models
    # Each algorithm revision is backed by its own CLIP checkpoint.
    # Revisions are not comparable with each other.
    # ------------------------------------------------------------------ #
    models_dir: str = "/app/models_cache"
    preload_models: bool = True            # false = registry is set up externally
    clip_rev1_model_name: str = "openai/clip-vit-base-patch32"
    clip_rev2_model_name: str = "openai/clip-vit-base-patch16"

    # ------------------------------------------------------------------ #
    # Comparison defaults (overridable per request)
    # ------------------------------------------------------------------ #
    default_revision: Revision = "2"
    cpu_only_default: bool = False
    diagnostics_enabled: bool = True
    diagnostic_rel_tolerance: float = 1e-3

    # None disables the timeout.
    extraction_timeout_seconds: float | None = None

    # ------------------------------------------------------------------ #
    # Image fetching
    # ------------------------------------------------------------------ #
    max_image_fetch_timeout_seconds: int = 15
    max_image_size_bytes: int = 30 * 1024 * 1024   # 30 MB

    # ------------------------------------------------------------------ #
    # Logging
    # ------------------------------------------------------------------ #
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = True          # structured JSON logs in production

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @field_validator("api_key", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip() if v else ""

    @field_validator("extraction_timeout_seconds")
    @classmethod
    def positive_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("extraction_timeout_seconds must be positive")
        return v

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_key)

    def checkpoint_for(self, revision: str) -> str:
        return {
            "1": self.clip_rev1_model_name,
            "2": self.clip_rev2_model_name,
        }[revision]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return a cached Settings singleton.
    The cache is reset between tests via `get_settings.cache_clear()`.
    """
    return Settings()
