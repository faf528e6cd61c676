"""
Settings and environment management for the dispatch analytics engine.

Configuration is handled by pydantic-settings, which loads values from
environment variables and an optional ``.env`` file. Every tunable has a
default, so the engine runs with no environment at all.

Engine Tunables:
- SMALL_SAMPLE_THRESHOLD: sample size below which a scope is flagged (default 5)
- DEFAULT_LOOKBACK_DAYS: window length for an empty 'all' range (default 30)
- WEEK_START_DAY: weekday that anchors week buckets, 0 = Monday (default 0)
- *_SPAN_DAYS: window-length limits that decide which chart groupings are allowed
- MAX_TREND_DAYS: longest daily trend series returned (default 366)
- DEFAULT_TOP_N: leaderboard length when the caller passes none (default 5)
- STALE_OPEN_HOURS: age after which an open order counts as old (default 24)
- STABILITY_*_CV: coefficient-of-variation cut-offs for price stability labels

Usage:
    from dispatch_analytics.core.config import get_settings

    settings = get_settings()
    threshold = settings.small_sample_threshold
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Attributes:
        small_sample_threshold: Scopes with fewer samples carry a small-sample caveat.
        default_lookback_days: Window length used for the 'all' range when no
            records match the dimension filters.
        week_start_day: Weekday (0 = Monday .. 6 = Sunday) on which weeks start.
        hour_max_span_days: Longest window that may be grouped by hour.
        day_max_span_days: Longest window that may be grouped by day.
        week_min_span_days: Shortest window that may be grouped by week.
        week_max_span_days: Longest window that may be grouped by week.
        month_min_span_days: Shortest window that may be grouped by month.
        quarter_min_span_days: Shortest window that may be grouped by quarter.
        year_min_span_days: Shortest window that may be grouped by year.
        max_trend_days: Daily trend series keep at most this many trailing days.
        default_top_n: Leaderboard length when the caller does not pass one.
        stale_open_hours: Open orders older than this are reported as old.
        stability_high_cv: CV below this is labelled high price stability.
        stability_moderate_cv: CV below this is labelled moderate stability.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Statistics
    # =========================================================================

    small_sample_threshold: int = Field(default=5, ge=1)

    # =========================================================================
    # Windows and calendar bucketing
    # =========================================================================

    default_lookback_days: int = Field(default=30, ge=1)
    week_start_day: int = Field(default=0, ge=0, le=6)

    # Grouping rules. A granularity is allowed when the window span (in days)
    # lies inside its [min, max] limits.
    hour_max_span_days: int = 3
    day_max_span_days: int = 180
    week_min_span_days: int = 14
    week_max_span_days: int = 1095
    month_min_span_days: int = 60
    quarter_min_span_days: int = 180
    year_min_span_days: int = 730

    max_trend_days: int = Field(default=366, ge=1)

    # =========================================================================
    # Presentation hints
    # =========================================================================

    default_top_n: int = Field(default=5, ge=0)
    stale_open_hours: float = Field(default=24.0, ge=0.0)
    stability_high_cv: float = 0.3
    stability_moderate_cv: float = 0.6


@lru_cache()
def get_settings() -> Settings:
    """
    Get the engine settings singleton.

    Environment variables are read once per process. Tests that patch the
    environment must call ``get_settings.cache_clear()`` first.

    Returns:
        Settings: The cached settings instance.

    Raises:
        pydantic.ValidationError: If an environment override has an invalid value.
    """
    return Settings()
