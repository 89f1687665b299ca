# storeplan_suite/core/models.py
"""
Data records shared by the forecasting core.

FittedStoreModel is the per-store input to every forecast: fitted trend
curve, seasonal factors, nudge carry and the raw series it was fitted on.
Everything here is treated as read-only; functions build new records.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import pandas as pd

from .periods import fill_monthly_gaps, month_key, to_period
from .trend import (
    CurveMode,
    StandardCurve,
    TrendCurve,
    curve_from_params,
    curve_to_params,
    potential,
    shock_indices,
)


@dataclass
class TimeSeries:
    """Monthly actuals: parallel dates / raw arrays, optional validity mask."""

    dates: List[str]
    raw: List[float]
    mask: Optional[List[bool]] = None

    def __post_init__(self):
        if len(self.dates) != len(self.raw):
            raise ValueError(
                f"dates and raw must have the same length ({len(self.dates)} != {len(self.raw)})"
            )
        if self.mask is not None and len(self.mask) != len(self.raw):
            raise ValueError("mask must have the same length as raw")
        self.dates = [month_key(d) for d in self.dates]
        self.raw = [float(v) for v in self.raw]
        if len(set(self.dates)) != len(self.dates):
            raise ValueError("dates must be unique")
        if any(to_period(a) >= to_period(b) for a, b in zip(self.dates, self.dates[1:])):
            raise ValueError("dates must be in ascending order")

    def __len__(self) -> int:
        return len(self.raw)

    @property
    def last_date(self) -> Optional[str]:
        return self.dates[-1] if self.dates else None

    @property
    def last_index(self) -> int:
        return len(self.raw) - 1

    def value_at(self, month) -> Optional[float]:
        """Actual for a month key, None when the month is not in the series."""
        key = month_key(month)
        try:
            return self.raw[self.dates.index(key)]
        except ValueError:
            return None

    def valid_values(self) -> List[float]:
        if self.mask is None:
            return list(self.raw)
        return [v for v, ok in zip(self.raw, self.mask) if ok]

    def to_series(self) -> pd.Series:
        idx = pd.PeriodIndex([to_period(d) for d in self.dates], freq="M")
        return pd.Series(self.raw, index=idx, dtype=float)

    @classmethod
    def fill_gaps(cls, points: Mapping) -> "TimeSeries":
        """Gap-free monthly series from {month: value}; missing months become 0."""
        dates, raw = fill_monthly_gaps(points)
        return cls(dates=dates, raw=raw)


@dataclass
class BudgetSeries:
    """Planned value per month key."""

    values: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        self.values = {month_key(k): float(v or 0.0) for k, v in self.values.items()}

    @property
    def months(self) -> List[str]:
        return sorted(self.values, key=to_period)

    @property
    def total(self) -> float:
        return float(sum(self.values.values()))

    def get(self, month) -> float:
        return self.values.get(month_key(month), 0.0)


@dataclass
class Components:
    """Trend / seasonal / residual decomposition of the fitted series."""

    trend: List[float] = field(default_factory=list)
    seasonal: List[float] = field(default_factory=list)
    residual: List[float] = field(default_factory=list)


@dataclass
class StoreStats:
    total_sales: float = 0.0
    last_year_sales: float = 0.0     # last 12 months
    prev_year_sales: float = 0.0     # months 13-24 back
    yoy: float = 0.0
    cagr: float = 0.0                # 3-year
    cv: float = 0.0
    skewness: float = 0.0
    abc_rank: str = "C"
    z_chart: List[Dict[str, float]] = field(default_factory=list)


@dataclass
class FittedStoreModel:
    """Fitted per-store forecasting model."""

    name: str
    curve: TrendCurve
    seasonal: List[float] = field(default_factory=lambda: [1.0] * 12)
    nudge: float = 0.0
    nudge_decay: Optional[float] = None
    std_dev: float = 0.0
    is_active: bool = True
    series: TimeSeries = field(default_factory=lambda: TimeSeries([], []))
    budget: Optional[BudgetSeries] = None
    block: Optional[str] = None
    region: Optional[str] = None
    prefecture: Optional[str] = None
    aic: float = 0.0
    components: Components = field(default_factory=Components)
    stats: Optional[StoreStats] = None
    error: bool = False
    message: str = ""

    # Read-only views mirroring the record layout
    @property
    def mode(self) -> CurveMode:
        return self.curve.mode

    @property
    def shock_index(self) -> int:
        shocks = shock_indices(self.curve)
        return shocks[0] if shocks else -1

    @property
    def k(self) -> float:
        return self.curve.k

    @property
    def L(self) -> float:
        return potential(self.curve)

    @property
    def base(self) -> float:
        return self.curve.base

    @property
    def last_year_sales(self) -> float:
        if self.stats is not None:
            return self.stats.last_year_sales
        return float(sum(self.series.raw[-12:]))

    def to_dict(self) -> dict:
        shocks = shock_indices(self.curve)
        return {
            "name": self.name,
            "block": self.block,
            "region": self.region,
            "prefecture": self.prefecture,
            "isActive": self.is_active,
            "params": curve_to_params(self.curve),
            "fit": {
                "mode": self.mode.value,
                "shockIdx": self.shock_index,
                "shockIdx2": shocks[1] if len(shocks) > 1 else -1,
                "aic": self.aic,
            },
            "seasonal": list(self.seasonal),
            "nudge": self.nudge,
            "nudgeDecay": self.nudge_decay,
            "stdDev": self.std_dev,
            "dates": list(self.series.dates),
            "raw": list(self.series.raw),
            "mask": list(self.series.mask) if self.series.mask is not None else None,
            "budget": dict(self.budget.values) if self.budget is not None else None,
            "error": self.error,
            "msg": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FittedStoreModel":
        """Create from a record ({params, fit, seasonal, nudge, ...})."""
        fit = data.get("fit") or {}
        params = dict(data.get("params") or {})
        mode = fit.get("mode", "standard")
        if data.get("error"):
            curve = StandardCurve(L=0.0, k=0.0, t0=0.0, base=0.0)
        else:
            curve = curve_from_params(
                mode, params,
                shock_index=int(fit.get("shockIdx", -1) if fit.get("shockIdx") is not None else -1),
                shock_index_2=int(fit.get("shockIdx2", -1) if fit.get("shockIdx2") is not None else -1),
            )
        budget = data.get("budget")
        return cls(
            name=data["name"],
            curve=curve,
            seasonal=[float(v) for v in (data.get("seasonal") or [])],
            nudge=float(data.get("nudge") or 0.0),
            nudge_decay=data.get("nudgeDecay"),
            std_dev=float(data.get("stdDev") or 0.0),
            is_active=bool(data.get("isActive", True)),
            series=TimeSeries(
                dates=list(data.get("dates") or []),
                raw=list(data.get("raw") or []),
                mask=data.get("mask") or None,
            ),
            budget=BudgetSeries(budget) if budget else None,
            block=data.get("block"),
            region=data.get("region"),
            prefecture=data.get("prefecture"),
            aic=float(fit.get("aic") or 0.0),
            error=bool(data.get("error", False)),
            message=data.get("msg", ""),
        )


@dataclass
class ForecastPoint:
    """One forecast month; derived, never persisted."""

    date: str
    index: int                  # month index on the model's time axis
    steps_ahead: int            # months after the last actual (<= 0 inside the data)
    base_value: float
    seasonal_factor: float
    nudge_contribution: float
    total: float


@dataclass
class MonthlyLanding:
    month: str
    kind: str                   # 'actual' or 'forecast'
    value: float
    budget: float

    @property
    def diff(self) -> float:
        return self.value - self.budget


@dataclass
class ProjectionSummary:
    """Fiscal-period landing for one store."""

    cumulative_actual: float
    cumulative_budget: float
    forecast_remaining: float
    landing: float
    landing_diff: float
    landing_achievement: float    # percent
    total_budget: float
    pace: float
    name: str = ""
    monthly: List[MonthlyLanding] = field(default_factory=list)

    @property
    def cumulative_diff(self) -> float:
        return self.cumulative_actual - self.cumulative_budget

    @property
    def cumulative_achievement(self) -> float:
        if self.cumulative_budget > 0:
            return self.cumulative_actual / self.cumulative_budget * 100
        return 0.0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "cumulativeActual": self.cumulative_actual,
            "cumulativeBudget": self.cumulative_budget,
            "forecastRemaining": self.forecast_remaining,
            "landing": self.landing,
            "landingDiff": self.landing_diff,
            "landingAchievement": self.landing_achievement,
            "totalBudget": self.total_budget,
            "pace": self.pace,
        }
