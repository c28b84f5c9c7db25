"""Runtime configuration — env-driven.

Centralized config using pydantic-settings.  Reads from a .env file and
STATESIDE_* environment variables.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ProdConfig(BaseSettings):
    """Runtime configuration with environment variable overrides.

    All settings can be overridden via STATESIDE_* environment variables
    or a .env file in the project root.

    Examples
    --------
    Override via environment::

        export STATESIDE_LOG_LEVEL=DEBUG
        export STATESIDE_LIVE_DATA_URL=https://example.org/api/processing-times
        export STATESIDE_VELOCITY_WINDOW=8

    Or via .env file::

        STATESIDE_ENVIRONMENT=production
        STATESIDE_HTTP_TIMEOUT_SECONDS=5
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STATESIDE_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Live data endpoint (processing times + visa bulletin tables)
    live_data_url: str = "http://localhost:3000/api/processing-times"
    cache_ttl_seconds: int = 12 * 60 * 60

    # USCIS case status page
    case_status_url: str = "https://egov.uscis.gov/casestatus/mycasestatus.do"

    # HTTP behaviour for both boundary clients
    http_timeout_seconds: float = 10.0
    http_max_attempts: int = 3
    http_backoff_seconds: float = 1.0

    # Velocity model tuning
    velocity_window: int = 12
    fallback_velocity_months_per_year: float = 6.0
    confidence_disclosure_threshold: float = 0.7

    # Fees
    premium_processing_fee_usd: int = 2805

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton: import as `from stateside.config import config`
config = ProdConfig()
