"""Analyzer configuration via environment variables.

Uses pydantic-settings so every field can be overridden with an env
var.  ``env_prefix`` is empty, so field names map directly to env vars
(e.g. ``OPENAI_MODEL``, ``AI_MAX_ATTEMPTS``).
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings

from obd_analyzer.retry import RetryPolicy


class AnalyzerSettings(BaseSettings):
    """Runtime settings for the analysis pipeline."""

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    # -- inference endpoint -------------------------------------------------
    openai_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="API key for the inference endpoint",
    )
    openai_base_url: Optional[str] = Field(
        default=None,
        description="OpenAI-compatible base URL; None means api.openai.com",
    )
    openai_model: str = Field(default="gpt-4o", description="Model identifier")
    ai_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (low favours deterministic output)",
    )
    ai_max_tokens: int = Field(default=4000, ge=1, description="Max output tokens")

    # -- attempt loop -------------------------------------------------------
    ai_max_attempts: int = Field(
        default=2,
        ge=1,
        description="Total attempts per analysis, including the first",
    )
    ai_retry_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Delay before the first retry",
    )
    ai_retry_backoff: float = Field(
        default=1.0,
        ge=1.0,
        description="Delay multiplier per retry; 1.0 keeps the delay fixed",
    )
    ai_attempt_timeout_seconds: Optional[float] = Field(
        default=60.0,
        gt=0.0,
        description="Deadline for a single inference attempt; None disables it",
    )

    # -- logging ------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="console",
        description="Log output format: 'console' or 'json'",
    )

    # -- derived ------------------------------------------------------------
    def retry_policy(self) -> RetryPolicy:
        """Return the attempt-loop policy described by these settings."""
        return RetryPolicy(
            max_attempts=self.ai_max_attempts,
            delay_seconds=self.ai_retry_delay_seconds,
            backoff_multiplier=self.ai_retry_backoff,
            attempt_timeout_seconds=self.ai_attempt_timeout_seconds,
        )
