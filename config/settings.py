"""
IBOV Quant Configuration

### ARCHITECTURAL CONTEXT
Type-safe configuration using pydantic-settings. The engine credential loads
from environment variables or the .env file exactly once, when Settings is
built, and is handed to the QueryOrchestrator explicitly.

### DESIGN DECISIONS
- pydantic-settings over raw os.environ for validation at startup
- Nested models for logical grouping (engine, market)
- .env file auto-loaded for developer convenience
- Temperatures match the values the prompts were tuned with (scan 0.4, analysis 0.3)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Resolve .env relative to project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class EngineConfig(BaseSettings):
    """External reasoning engine configuration (Gemini via litellm)."""

    api_key: str = Field(default="", description="Gemini API key. Empty means not configured.")
    model: str = Field(
        default="gemini/gemini-2.5-flash",
        description="litellm model identifier, provider prefix included",
    )
    scan_temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    analysis_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    search_grounding: bool = Field(
        default=True,
        description="Enable Google Search grounding on every call",
    )
    schema_mode: bool = Field(
        default=False,
        description="Declare an output schema instead of relying on prompt-only JSON",
    )
    max_tokens: int = Field(default=8192)
    timeout_seconds: int = Field(
        default=120,
        description="Transport timeout. The orchestrator adds none of its own.",
    )

    model_config = SettingsConfigDict(env_prefix="GEMINI_", env_file=str(_ENV_FILE), extra="ignore")

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key.strip())


class Settings(BaseSettings):
    """Root configuration aggregating all sub-configs."""

    engine: EngineConfig = Field(default_factory=EngineConfig)

    # Global
    market_timezone: str = Field(
        default="America/Sao_Paulo",
        description="B3 local time, used for 'today' in prompts and lastUpdated stamps",
    )
    default_period: str = Field(default="6 Meses")
    log_level: str = Field(
        default="INFO",
        description="Level for the ibov_quant loggers; the CLI -v flag overrides it with DEBUG",
    )

    model_config = SettingsConfigDict(env_prefix="IBOVQ_", env_file=str(_ENV_FILE), extra="ignore")


def load_settings() -> Settings:
    """Load settings from environment variables with validation."""
    return Settings()
