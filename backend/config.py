import os
from pydantic_settings import BaseSettings


def _parse_cors_origins() -> list[str] | None:
    """Parse CORS_ORIGINS env var as comma-separated string or JSON list."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return None
    if raw.startswith("["):
        import json
        return json.loads(raw)
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseSettings):
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://localhost:8080",
    ]
    debug: bool = False
    log_level: str = "INFO"

    # Normalization
    binary_default_threshold: float | None = None  # None -> any non-zero value passes

    # Review cadence (months) by worst pillar severity
    review_months_critical: int = 6
    review_months_moderate: int = 12
    review_months_good: int = 18

    # Cycle comparison
    max_cycle_gap_days: int | None = None  # None -> always compare consecutive cycles
    regression_alert_cycles: int = 2

    # Learning-content relevance
    relevance_min_score: float = 20.0
    relevance_min_coverage: float = 0.3  # share of selected indicators (0-1)
    relevance_default_limit: int = 20
    relevance_track_course_window: int = 10  # top-N courses considered for track coverage

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


_cors_override = _parse_cors_origins()
settings = Settings(**{"cors_origins": _cors_override} if _cors_override else {})
