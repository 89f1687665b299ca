# storeplan_suite/core/seasonal.py
"""
Seasonal factors: one multiplicative factor per calendar month (Jan = slot 0).

- seasonal_factor(): read one slot with the 1.0 fallback
- reference_profile(): mean / dispersion across reference stores (new stores)
- chain_seasonality(): upper-quartile chain profile used as a startup prior
- estimate_seasonal(): per-store factors from actual / trend ratios
- stl_decompose(): statsmodels STL for diagnostics
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from statsmodels.tsa.seasonal import STL

from .periods import month_index

MONTHS = 12


def seasonal_factor(seasonal: Optional[Sequence[float]], month: int) -> float:
    """Factor for month 0-11; missing, zero or NaN slots mean no seasonality."""
    if not seasonal or month < 0 or month >= len(seasonal):
        return 1.0
    v = seasonal[month]
    if v is None or not np.isfinite(v) or v <= 0:
        return 1.0
    return float(v)


def full_profile(seasonal: Optional[Sequence[float]]) -> List[float]:
    return [seasonal_factor(seasonal, m) for m in range(MONTHS)]


def normalize_factors(factors: Sequence[float]) -> List[float]:
    """Rescale so the twelve factors average 1.0."""
    arr = np.asarray(factors, dtype=float)
    avg = arr.mean() if arr.size else 0.0
    if avg <= 0:
        return [1.0] * MONTHS
    return list(arr / avg)


@dataclass
class SeasonalProfile:
    factors: List[float]
    std_dev: List[float]      # per-slot dispersion across reference stores
    n_models: int = 0


def reference_profile(models: Iterable) -> SeasonalProfile:
    """Slot-wise mean (and population std) of the reference stores' factors."""
    rows = [full_profile(m.seasonal) for m in models]
    if not rows:
        return SeasonalProfile(factors=[1.0] * MONTHS, std_dev=[0.0] * MONTHS, n_models=0)
    arr = np.array(rows, dtype=float)
    return SeasonalProfile(
        factors=list(arr.mean(axis=0)),
        std_dev=list(arr.std(axis=0)),
        n_models=len(rows),
    )


def chain_seasonality(models: Iterable, quantile: float = 0.75) -> List[float]:
    """Per-slot quantile across stores, rescaled to sum to 12.

    Quantile is read by sorted index floor(n * q), capped at the last element.
    """
    buckets: List[List[float]] = [[] for _ in range(MONTHS)]
    for m in models:
        for i, v in enumerate(list(m.seasonal)[:MONTHS]):
            buckets[i].append(float(v))

    profile = []
    for b in buckets:
        if not b:
            profile.append(1.0)
            continue
        b.sort()
        profile.append(b[min(len(b) - 1, int(len(b) * quantile))])

    total = sum(profile)
    if total > 0:
        profile = [v / total * MONTHS for v in profile]
    return profile


def estimate_seasonal(
    raw: Sequence[float],
    dates: Sequence[str],
    trend: Sequence[float],
    mask: Optional[Sequence[bool]] = None,
) -> List[float]:
    """Median actual/trend ratio per calendar month, normalised to mean 1.0.

    Only valid points with trend above 1 contribute; empty months get 1.0.
    """
    buckets: List[List[float]] = [[] for _ in range(MONTHS)]
    for i, (v, tr) in enumerate(zip(raw, trend)):
        if mask is not None and not mask[i]:
            continue
        if tr > 1:
            buckets[month_index(dates[i])].append(v / tr)

    sea = []
    for b in buckets:
        if not b:
            sea.append(1.0)
        else:
            b.sort()
            sea.append(b[len(b) // 2])
    return normalize_factors(sea)


def stl_decompose(series: pd.Series, period: int = MONTHS, robust: bool = True) -> pd.DataFrame:
    """STL decomposition of a monthly series.

    Returns a frame with observed / trend / seasonal / resid columns on the
    input index. Needs at least two full periods.
    """
    y = pd.Series(series, dtype=float)
    if len(y) < 2 * period:
        raise ValueError(f"STL needs at least {2 * period} observations, got {len(y)}")
    res = STL(y.to_numpy(), period=period, robust=robust).fit()
    return pd.DataFrame(
        {
            "observed": y.to_numpy(),
            "trend": res.trend,
            "seasonal": res.seasonal,
            "resid": res.resid,
        },
        index=y.index,
    )
