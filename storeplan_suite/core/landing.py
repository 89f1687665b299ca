# storeplan_suite/core/landing.py
"""
Fiscal-year landing projection ("where will we land vs. budget?").

landing = sum(actuals over closed months) + sum(paced forecast over remaining months)

Pacing: each remaining month's naive forecast (the budget unless a model
forecast is supplied) is scaled by the YTD achievement ratio, clamped to
[0.8, 1.2]. A hot or cold start therefore moves the landing by at most +-20%
of the remaining plan. Inactive stores are not extrapolated: their remaining
months land exactly on budget.

Company level adds the bridge (budget -> YTD variance -> remaining variance
-> landing), the YTD gap waterfall and the hero / killer leaderboards.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .models import BudgetSeries, FittedStoreModel, MonthlyLanding, ProjectionSummary
from .periods import month_key, to_period
from .settings import DEFAULT_SETTINGS, ForecastSettings


def achievement_ratio(actual: float, budget: float) -> float:
    """actual / budget, neutral 1.0 when there is no budget yet."""
    return actual / budget if budget > 0 else 1.0


def pace_factor(ratio: float, lower: float = 0.8, upper: float = 1.2) -> float:
    return min(upper, max(lower, ratio))


def split_periods(fiscal_months: Sequence[str], actual_months: Iterable[str]) -> Tuple[List[str], List[str]]:
    """(closed, remaining): fiscal months with / without actuals, in fiscal order."""
    actual = {month_key(m) for m in actual_months}
    months = [month_key(m) for m in fiscal_months]
    return [m for m in months if m in actual], [m for m in months if m not in actual]


def compute_landing(
    budget: BudgetSeries,
    actuals: Mapping[str, float],
    closed: Sequence[str],
    remaining: Sequence[str],
    is_active: bool = True,
    naive_forecast: Optional[Mapping[str, float]] = None,
    name: str = "",
    pace_bounds: Optional[Tuple[float, float]] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> ProjectionSummary:
    """Landing for one store.

    Args:
        budget: Monthly plan; its total is the full-year budget
        actuals: Month key -> actual; closed months without an entry count as 0
        closed: Months with actuals
        remaining: Months still to forecast
        is_active: Inactive stores take the unpaced budget for remaining months
        naive_forecast: Optional month -> forecast before pacing (defaults to budget)
        pace_bounds: (lower, upper) clamp for the pace; settings.landing by default
    """
    actuals = {month_key(k): float(v) for k, v in actuals.items()}
    monthly: List[MonthlyLanding] = []

    cum_actual = 0.0
    cum_budget = 0.0
    for m in closed:
        m = month_key(m)
        b = budget.get(m)
        a = actuals.get(m, 0.0)
        cum_budget += b
        cum_actual += a
        monthly.append(MonthlyLanding(month=m, kind="actual", value=a, budget=b))

    lower, upper = pace_bounds or settings.landing.bounds
    pace = pace_factor(achievement_ratio(cum_actual, cum_budget), lower, upper) if is_active else 1.0

    forecast_remaining = 0.0
    for m in remaining:
        m = month_key(m)
        b = budget.get(m)
        if is_active:
            naive = b if naive_forecast is None else float(naive_forecast.get(m, b))
            v = naive * pace
        else:
            v = b
        forecast_remaining += v
        monthly.append(MonthlyLanding(month=m, kind="forecast", value=v, budget=b))

    total_budget = budget.total
    landing = cum_actual + forecast_remaining
    return ProjectionSummary(
        cumulative_actual=cum_actual,
        cumulative_budget=cum_budget,
        forecast_remaining=forecast_remaining,
        landing=landing,
        landing_diff=landing - total_budget,
        landing_achievement=landing / total_budget * 100 if total_budget > 0 else 0.0,
        total_budget=total_budget,
        pace=pace,
        name=name,
        monthly=monthly,
    )


def store_landing(
    model: FittedStoreModel,
    fiscal_months: Optional[Sequence[str]] = None,
    actual_months: Optional[Iterable[str]] = None,
    naive_forecast: Optional[Mapping[str, float]] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> ProjectionSummary:
    """Landing from a model record (budget and actuals taken from the model)."""
    budget = model.budget or BudgetSeries()
    fiscal_months = budget.months if fiscal_months is None else fiscal_months
    actual_months = model.series.dates if actual_months is None else actual_months
    closed, remaining = split_periods(fiscal_months, actual_months)
    actuals = dict(zip(model.series.dates, model.series.raw))
    return compute_landing(budget, actuals, closed, remaining, is_active=model.is_active,
                           naive_forecast=naive_forecast, name=model.name, settings=settings)


@dataclass
class BridgeStep:
    name: str
    value: float
    kind: str          # 'base', 'diff' or 'total'


@dataclass
class CompanyLanding:
    stores: List[ProjectionSummary]
    monthly: pd.DataFrame
    closed_months: List[str]
    remaining_months: List[str]
    total_budget: float
    total_landing: float
    cumulative_budget: float
    cumulative_actual: float
    bridge: List[BridgeStep] = field(default_factory=list)
    waterfall: List[Tuple[str, float]] = field(default_factory=list)
    heroes: List[ProjectionSummary] = field(default_factory=list)
    killers: List[ProjectionSummary] = field(default_factory=list)

    @property
    def last_closed_month(self) -> Optional[str]:
        return self.closed_months[-1] if self.closed_months else None

    @property
    def landing_diff(self) -> float:
        return self.total_landing - self.total_budget

    @property
    def landing_achievement(self) -> float:
        return self.total_landing / self.total_budget * 100 if self.total_budget > 0 else 0.0

    @property
    def achievement(self) -> float:
        """YTD achievement in percent."""
        if self.cumulative_budget > 0:
            return self.cumulative_actual / self.cumulative_budget * 100
        return 0.0

    @property
    def win_count(self) -> int:
        return sum(1 for s in self.stores if s.cumulative_achievement >= 100)

    @property
    def lose_count(self) -> int:
        return len(self.stores) - self.win_count

    @property
    def remaining_budget(self) -> float:
        return self.total_budget - self.cumulative_actual

    @property
    def required_run_rate(self) -> float:
        """Percent of the remaining plan needed to close the gap (approximation)."""
        need = self.total_budget - self.cumulative_actual
        left = self.total_budget - self.cumulative_budget
        return need / left * 100 if need > 0 and left > 0 else 0.0

    @property
    def total_surplus(self) -> float:
        return sum(s.landing_diff for s in self.heroes)

    @property
    def total_deficit(self) -> float:
        return sum(s.landing_diff for s in self.killers)

    @property
    def top_store_share(self) -> float:
        if not self.heroes or self.total_surplus <= 0:
            return 0.0
        return self.heroes[0].landing_diff / self.total_surplus * 100


def company_landing(
    models,
    fiscal_months: Optional[Sequence[str]] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> CompanyLanding:
    """Chain-wide landing over all stores that carry a budget.

    A month counts as closed when any store has an actual for it, so every
    store is measured against the same cut-off. `models` is a repository
    or any iterable of FittedStoreModel.
    """
    if hasattr(models, "all_models"):
        models = models.all_models()
    budgeted = [m for m in models if m.budget is not None]

    if fiscal_months is None:
        months = set()
        for m in budgeted:
            months.update(m.budget.values)
        fiscal_months = sorted(months, key=to_period)
    actual_months = set()
    for m in budgeted:
        actual_months.update(m.series.dates)
    closed, remaining = split_periods(fiscal_months, actual_months)

    stores = []
    for m in budgeted:
        actuals = dict(zip(m.series.dates, m.series.raw))
        stores.append(compute_landing(m.budget, actuals, closed, remaining,
                                      is_active=m.is_active, name=m.name, settings=settings))

    rows: Dict[str, Dict[str, float]] = {
        mk: {"month": mk, "budget": 0.0, "actual": 0.0, "forecast": 0.0} for mk in closed + remaining
    }
    for s in stores:
        for ml in s.monthly:
            row = rows[ml.month]
            row["budget"] += ml.budget
            row["actual" if ml.kind == "actual" else "forecast"] += ml.value
    monthly = pd.DataFrame([rows[mk] for mk in sorted(rows, key=to_period)],
                           columns=["month", "budget", "actual", "forecast"])
    if not monthly.empty:
        monthly["is_actual"] = monthly["month"].isin(closed)
        monthly["landing"] = monthly["actual"].where(monthly["is_actual"], monthly["forecast"])

    total_budget = sum(s.total_budget for s in stores)
    total_landing = sum(s.landing for s in stores)
    cum_budget = sum(s.cumulative_budget for s in stores)
    cum_actual = sum(s.cumulative_actual for s in stores)
    ytd_diff = cum_actual - cum_budget

    bridge = [
        BridgeStep("opening budget", total_budget, "base"),
        BridgeStep("YTD variance", ytd_diff, "diff"),
        BridgeStep("remaining-period variance", total_landing - total_budget - ytd_diff, "diff"),
        BridgeStep("landing", total_landing, "total"),
    ]
    waterfall = sorted(((s.name, s.cumulative_diff) for s in stores), key=lambda x: x[1], reverse=True)

    return CompanyLanding(
        stores=stores,
        monthly=monthly,
        closed_months=closed,
        remaining_months=remaining,
        total_budget=total_budget,
        total_landing=total_landing,
        cumulative_budget=cum_budget,
        cumulative_actual=cum_actual,
        bridge=bridge,
        waterfall=waterfall,
        heroes=sorted([s for s in stores if s.landing_diff > 0], key=lambda s: s.landing_diff, reverse=True),
        killers=sorted([s for s in stores if s.landing_diff < 0], key=lambda s: s.landing_diff),
    )
