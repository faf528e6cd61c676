"""
Stat Engine

Descriptive statistics for non-negative numeric samples (order prices, payout
amounts).

Conventions:
- Percentiles use linear interpolation between closest ranks:
  rank = p * (n - 1), value = x[floor] + (rank - floor) * (x[ceil] - x[floor]).
  The same rule is used for every percentile and every scope.
- std is the sample standard deviation (n - 1 denominator), 0 when n < 2.
- cv = std / mean, 0 when mean is 0.
- A sample is flagged small when 0 < n < small_sample_threshold.
- An empty sample yields n = 0 with every other numeric field None.

Non-finite and negative values are discarded before computing.
"""

from typing import Iterable, Optional

import numpy as np

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.models.enums import PriceStability
from dispatch_analytics.models.schemas import Stats


PERCENTILES = {
    'p5': 5,
    'p25': 25,
    'p50': 50,
    'p75': 75,
    'p90': 90,
    'p95': 95,
}


def clean_sample(values: Iterable[Optional[float]]) -> np.ndarray:
    """Drop None, NaN, infinite and negative values."""
    arr = np.array([v for v in values if v is not None], dtype=float)
    if arr.size == 0:
        return arr
    return arr[np.isfinite(arr) & (arr >= 0)]


def is_small_sample(n: int, settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    return 0 < n < settings.small_sample_threshold


def compute_stats(
    values: Iterable[Optional[float]],
    settings: Optional[Settings] = None,
) -> Stats:
    """
    Compute descriptive statistics over a sample.

    Args:
        values: Sample values; None and invalid values are ignored
        settings: Engine settings (defaults to get_settings())

    Returns:
        Stats model. Invariant: min <= p25 <= p50 <= p75 <= max when n > 0.
    """
    settings = settings or get_settings()
    sample = clean_sample(values)
    n = int(sample.size)

    if n == 0:
        return Stats(n=0)

    sample.sort()
    mean = float(np.mean(sample))
    std = float(np.std(sample, ddof=1)) if n >= 2 else 0.0
    quantiles = np.percentile(sample, list(PERCENTILES.values()), method='linear')
    pct = {name: float(q) for name, q in zip(PERCENTILES, quantiles)}

    return Stats(
        n=n,
        min=float(sample[0]),
        max=float(sample[-1]),
        mean=mean,
        std=std,
        iqr=pct['p75'] - pct['p25'],
        cv=std / mean if mean > 0 else 0.0,
        smallSample=is_small_sample(n, settings),
        **pct,
    )


def price_stability(
    cv: Optional[float],
    settings: Optional[Settings] = None,
) -> Optional[PriceStability]:
    """
    Label price stability from a coefficient of variation.

    Returns None when there is no coefficient (empty sample).
    """
    if cv is None:
        return None
    settings = settings or get_settings()
    if cv < settings.stability_high_cv:
        return PriceStability.HIGH
    if cv < settings.stability_moderate_cv:
        return PriceStability.MODERATE
    return PriceStability.LOW


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return numerator / denominator

