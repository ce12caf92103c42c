"""
Settings for the doWhat discovery service.

Values come from the process environment or a local .env file and are
validated by pydantic when the module is imported.
"""

from pydantic_settings import BaseSettings
from typing import Optional
import os


class Config(BaseSettings):
    """Environment-backed settings. Field names match the env var names."""

    # ============================================================
    # SUPABASE (REQUIRED)
    # ============================================================
    SUPABASE_URL: str = ""
    """Project URL, e.g. https://<ref>.supabase.co."""

    SUPABASE_SERVICE_KEY: str = ""
    """Service role key. Reliability aggregation reads across users, so RLS must be bypassed."""

    # ============================================================
    # TRACING (OPTIONAL)
    # ============================================================
    LANGSMITH_API_KEY: Optional[str] = None
    LANGSMITH_ENABLED: bool = False
    """Trace graph runs in LangSmith; needs LANGSMITH_API_KEY."""

    GRAPH_TIMEOUT: int = 30
    """Seconds a graph run may take."""

    # ============================================================
    # REQUEST LIMITS
    # ============================================================
    RECOMMENDATION_DEFAULT_LIMIT: int = 12
    RECOMMENDATION_MIN_LIMIT: int = 3
    RECOMMENDATION_MAX_LIMIT: int = 24

    RELIABILITY_BATCH_LIMIT: int = 25
    """Users recomputed per batch call when no limit is given."""

    RELIABILITY_BATCH_MAX_LIMIT: int = 200

    RELIABILITY_ACTIVE_DAYS: int = 90
    """A user is 'active' if an attendance row changed within this many days."""

    RELIABILITY_MAX_ACTIVE_DAYS: int = 365

    # ============================================================
    # SECURITY
    # ============================================================
    SERVICE_TOKEN: str = os.getenv("SERVICE_TOKEN", "")
    """Bearer token the web backend sends. Empty disables the check."""

    CRON_SECRET: str = os.getenv("CRON_SECRET", "")
    """Secret the scheduler sends as X-Cron-Secret. Empty rejects every reliability recompute."""

    # ============================================================
    # SERVER
    # ============================================================
    PORT: int = 8000
    HOST: str = "0.0.0.0"
    DEBUG: bool = False
    """Console logging at DEBUG instead of INFO."""

    LOG_FILE_PATH: str = "logs/service.log"
    """Rotating debug log. Set to an empty string to log to the console only."""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # the platform .env carries keys for other services


# Loaded once; import this instead of constructing Config again.
config = Config()


def validate_config() -> dict:
    """
    Check that the service can start with the current settings.

    Returns:
        dict: Human-readable status per integration

    Raises:
        ValueError: Listing every problem found
    """
    problems = []

    for name in ("SUPABASE_URL", "SUPABASE_SERVICE_KEY"):
        if not getattr(config, name):
            problems.append(f"{name} is required")

    if config.RECOMMENDATION_MIN_LIMIT > config.RECOMMENDATION_MAX_LIMIT:
        problems.append(
            "RECOMMENDATION_MIN_LIMIT must not exceed RECOMMENDATION_MAX_LIMIT"
        )

    if config.LANGSMITH_ENABLED and not config.LANGSMITH_API_KEY:
        problems.append("LANGSMITH_ENABLED=True but LANGSMITH_API_KEY not set")

    if problems:
        raise ValueError("Configuration errors:\n" + "\n".join(f"  - {p}" for p in problems))

    return {
        "supabase": "✓ Configured",
        "service_token": "✓ Configured" if config.SERVICE_TOKEN else "✗ Not set",
        "cron_secret": "✓ Configured" if config.CRON_SECRET else "✗ Not set",
        "langsmith": "✓ Configured" if config.LANGSMITH_ENABLED else "✗ Disabled",
    }


if __name__ == "__main__":
    # python -m src.config
    try:
        for setting, state in validate_config().items():
            print(f"{setting}: {state}")
    except ValueError as e:
        print(e)
        exit(1)
