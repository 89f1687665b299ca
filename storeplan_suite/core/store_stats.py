# storeplan_suite/core/store_stats.py
"""
Descriptive statistics per store and ABC (Pareto) ranking across the chain.

compute_store_stats(series) -> StoreStats
    totals, last / previous 12 months, YoY, 3-year CAGR, CV and skewness of
    valid months, Z-chart rows (monthly, cumulative, moving annual total)
abc_ranking(models) -> {name: 'A' | 'B' | 'C'}
    A = stores making up the first 70% of last-year sales, B = next 20%
"""

from typing import Dict, Iterable, List, Sequence

import numpy as np

from .models import StoreStats, TimeSeries


def moving_annual_total(raw: Sequence[float]) -> List[float]:
    """Trailing 12-month sum; 0 until twelve months are available."""
    arr = np.asarray(raw, dtype=float)
    out = np.zeros(arr.size)
    if arr.size >= 12:
        csum = np.concatenate([[0.0], np.cumsum(arr)])
        out[11:] = csum[12:] - csum[:-12]
    return list(out)


def z_chart(raw: Sequence[float]) -> List[Dict[str, float]]:
    cumulative = np.cumsum(np.asarray(raw, dtype=float))
    mat = moving_annual_total(raw)
    return [
        {"monthly": float(v), "cumulative": float(c), "mat": float(m)}
        for v, c, m in zip(raw, cumulative, mat)
    ]


def compute_store_stats(series: TimeSeries) -> StoreStats:
    raw = np.asarray(series.raw, dtype=float)
    n = raw.size
    if n == 0:
        return StoreStats()

    last12 = float(raw[-12:].sum())
    prev12 = float(raw[-24:-12].sum()) if n >= 24 else 0.0
    yoy = (last12 - prev12) / prev12 if prev12 > 0 else 0.0

    cagr = 0.0
    if n >= 36:
        start = float(raw[-36:-24].sum())
        if start > 0 and last12 > 0:
            cagr = (last12 / start) ** (1.0 / 3.0) - 1.0

    valid = np.asarray(series.valid_values(), dtype=float)
    cv, skew = 0.0, 0.0
    if valid.size > 0:
        mean = valid.mean()
        std = valid.std()
        cv = float(std / mean) if mean > 0 else 0.0
        skew = float((((valid - mean) / std) ** 3).mean()) if std > 0 else 0.0

    return StoreStats(
        total_sales=float(raw.sum()),
        last_year_sales=last12,
        prev_year_sales=prev12,
        yoy=yoy,
        cagr=cagr,
        cv=cv,
        skewness=skew,
        z_chart=z_chart(series.raw),
    )


def abc_ranking(models: Iterable, a_share: float = 0.70, b_share: float = 0.90) -> Dict[str, str]:
    """Pareto tiers by cumulative share of last-year sales (largest first)."""
    ranked = sorted(models, key=lambda m: m.last_year_sales, reverse=True)
    total = sum(m.last_year_sales for m in ranked)

    ranks: Dict[str, str] = {}
    running = 0.0
    for m in ranked:
        running += m.last_year_sales
        if total <= 0:
            ranks[m.name] = "C"
        elif running / total <= a_share:
            ranks[m.name] = "A"
        elif running / total <= b_share:
            ranks[m.name] = "B"
        else:
            ranks[m.name] = "C"
    return ranks
