# storeplan_suite/core/dispersion.py
"""Correlation and concentration measures across stores."""

from itertools import combinations
from typing import Iterable, Sequence

import numpy as np


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson r over the common prefix of x and y.

    Fewer than 2 points or a zero-variance side gives 0.
    """
    n = min(len(x), len(y))
    if n < 2:
        return 0.0
    a = np.asarray(x[:n], dtype=float)
    b = np.asarray(y[:n], dtype=float)

    num = n * np.dot(a, b) - a.sum() * b.sum()
    den_sq = (n * np.dot(a, a) - a.sum() ** 2) * (n * np.dot(b, b) - b.sum() ** 2)
    if den_sq <= 0:
        return 0.0
    r = num / np.sqrt(den_sq)
    return float(np.clip(r, -1.0, 1.0))


def gini_coefficient(values: Iterable[float]) -> float:
    """Gini of a sales distribution: 0 = all equal, (n-1)/n = one store has everything."""
    v = np.sort(np.asarray(list(values), dtype=float))
    n = v.size
    total = v.sum()
    if n == 0 or total <= 0:
        return 0.0
    ranks = np.arange(1, n + 1)
    return float(2.0 * np.dot(ranks, v) / (n * total) - (n + 1) / n)


def seasonal_similarity(model_a, model_b) -> float:
    return pearson_correlation(list(model_a.seasonal), list(model_b.seasonal))


def area_cohesion(models: Iterable, top_n: int = 5, window: int = 12) -> float:
    """Average pairwise correlation of recent sales among an area's top stores.

    High cohesion means the area's leading stores move together; low or
    negative values point at cannibalisation or local disruption.
    """
    ranked = sorted(models, key=lambda m: m.last_year_sales, reverse=True)[:top_n]
    pairs = [
        pearson_correlation(a.series.raw[-window:], b.series.raw[-window:])
        for a, b in combinations(ranked, 2)
    ]
    return float(np.mean(pairs)) if pairs else 0.0


def zero_sum_score(group_change: float, store_changes: Iterable[float]) -> float:
    """1 - |group change| / sum |store changes|; near 1 = stores trade sales among themselves."""
    total = sum(abs(c) for c in store_changes)
    if total <= 0:
        return 0.0
    return 1.0 - abs(group_change) / total
