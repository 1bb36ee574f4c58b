# This project was developed with assistance from AI tools.
"""
Engine configuration.

All settings read from environment variables with sensible local dev defaults.
Related settings are grouped; each group maps to one service.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve project root .env regardless of CWD
_PROJECT_ROOT = Path(__file__).resolve().parents[4]
_ENV_FILE = _PROJECT_ROOT / ".env"

_DEFAULT_CATALOG = Path(__file__).resolve().parents[1] / "data" / "regulations.yaml"


class Settings(BaseSettings):
    """Engine settings -- single source of truth for env-driven config."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- App --
    APP_NAME: str = "loanflow"
    DEBUG: bool = False

    # -- Compliance --
    RULE_CATALOG_PATH: Path = Field(
        default=_DEFAULT_CATALOG,
        description="YAML regulation catalog. Missing or invalid file yields an empty catalog.",
    )
    TRID_DISCLOSURE_WINDOW_DAYS: int = Field(
        default=3,
        description="Fallback business-day window for timing rules without threshold_days.",
    )

    # -- Underwriting thresholds --
    MIN_CREDIT_SCORE: int = 620
    MAX_DTI_RATIO: float = Field(
        default=0.43,
        description="Maximum debt-to-income ratio (QM safe harbor).",
    )

    # -- Orchestration --
    ACTIVITY_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Upper bound for a single processing activity. Timeout counts as failure.",
    )
    LOAN_STATE_TOPIC: str = "loan_state_changes"

    # -- Integrations --
    INTEGRATION_MAX_ATTEMPTS: int = 3
    INTEGRATION_BACKOFF_SECONDS: float = Field(
        default=1.0,
        description="Initial retry delay; doubles after each failed attempt.",
    )
    INTEGRATION_TIMEOUT_SECONDS: float = 10.0
    CREDIT_BUREAU_URL: str | None = Field(
        default=None,
        description="Credit bureau API base URL. When unset, credit pulls are simulated.",
    )
    APPRAISAL_URL: str | None = Field(
        default=None,
        description="Appraisal management API base URL. When unset, orders are simulated.",
    )


settings = Settings()
