# storeplan_suite/core/periods.py
"""Month-key helpers. All periods are calendar months keyed as 'YYYY-MM'."""

from typing import Dict, List, Mapping, Tuple
import pandas as pd


def to_period(key) -> pd.Period:
    """Accept 'YYYY-MM', 'YYYY/MM', 'YYYY-MM-DD', datetime or Period."""
    if isinstance(key, pd.Period):
        return key.asfreq("M")
    if isinstance(key, str):
        key = key.strip().replace("/", "-")
    return pd.Period(key, freq="M")


def month_key(key) -> str:
    return to_period(key).strftime("%Y-%m")


def month_index(key) -> int:
    """Calendar month as 0-11 (January = 0)."""
    return to_period(key).month - 1


def month_diff(start, end) -> int:
    """Whole months from start to end (positive when end is later)."""
    a, b = to_period(start), to_period(end)
    return (b.year - a.year) * 12 + (b.month - a.month)


def add_months(key, n: int) -> str:
    return month_key(to_period(key) + n)


def month_range(start, periods: int) -> List[str]:
    p = to_period(start)
    return [(p + i).strftime("%Y-%m") for i in range(periods)]


def fiscal_year_months(end_year: int, start_month: int = 7) -> List[str]:
    """Twelve month keys of the fiscal year ending in end_year.

    With the default July start, end_year=2025 gives 2024-07 .. 2025-06.
    A January start gives the calendar year end_year.
    """
    start_year = end_year - 1 if start_month > 1 else end_year
    return month_range(f"{start_year}-{start_month:02d}", 12)


def fill_monthly_gaps(points: Mapping) -> Tuple[List[str], List[float]]:
    """Sort points by month and insert 0 for missing months between first and last."""
    if not points:
        return [], []
    values: Dict[pd.Period, float] = {}
    for k, v in points.items():
        values[to_period(k)] = float(v)
    first, last = min(values), max(values)
    n = (last.year - first.year) * 12 + (last.month - first.month) + 1
    dates = [(first + i) for i in range(n)]
    return [d.strftime("%Y-%m") for d in dates], [values.get(d, 0.0) for d in dates]
