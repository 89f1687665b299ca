# storeplan_suite/core/budget.py
"""
Budget builder: next fiscal year's plan from the fitted models.

Per store and fiscal month:
    forecast = round(max(0, trend * season + nudge carry))
    budget   = override, else round(forecast * stretch / 100)

stretch is a percentage (100 = plan exactly the forecast); an individual
store stretch beats the global one and a manual monthly override beats both.
Last-year actuals for the same calendar months give YoY and the gap vs. forecast.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..logging_config import get_logger
from .forecasting import forecast_months
from .models import BudgetSeries, FittedStoreModel
from .periods import add_months, month_key
from .settings import DEFAULT_SETTINGS, ForecastSettings

logger = get_logger(__name__)


def round_half_up(x: float) -> float:
    return float(np.floor(x + 0.5))


@dataclass
class StoreBudgetPlan:
    name: str
    months: List[str]
    forecast_monthly: List[float]
    budget_monthly: List[float]
    last_year_monthly: List[Optional[float]]
    stretch: float = 100.0
    block: Optional[str] = None
    region: Optional[str] = None
    has_manual_overrides: bool = False

    @property
    def forecast_total(self) -> float:
        return float(sum(self.forecast_monthly))

    @property
    def budget_total(self) -> float:
        return float(sum(self.budget_monthly))

    @property
    def last_year_total(self) -> float:
        return float(sum(v for v in self.last_year_monthly if v is not None))

    @property
    def yoy(self) -> float:
        """Budget vs. last year, percent."""
        ly = self.last_year_total
        return (self.budget_total - ly) / ly * 100 if ly > 0 else 0.0

    @property
    def gap(self) -> float:
        """Budget minus forecast (stretch the store has to find)."""
        return self.budget_total - self.forecast_total

    def to_budget_series(self) -> BudgetSeries:
        return BudgetSeries(dict(zip(self.months, self.budget_monthly)))


def build_store_budget(
    model: FittedStoreModel,
    fiscal_months: Sequence[str],
    stretch: Optional[float] = None,
    overrides: Optional[Mapping[str, float]] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> StoreBudgetPlan:
    stretch = settings.budget.default_stretch if stretch is None else float(stretch)
    overrides = {month_key(k): v for k, v in (overrides or {}).items()}

    points = forecast_months(model, fiscal_months, settings)
    forecast = [round_half_up(p.total) for p in points]
    months = [p.date for p in points]

    budget = []
    for m, f in zip(months, forecast):
        if m in overrides and overrides[m] is not None:
            budget.append(float(overrides[m]))
        else:
            budget.append(round_half_up(f * stretch / 100.0))

    last_year = [model.series.value_at(add_months(m, -12)) for m in months]

    return StoreBudgetPlan(
        name=model.name,
        months=months,
        forecast_monthly=forecast,
        budget_monthly=budget,
        last_year_monthly=last_year,
        stretch=stretch,
        block=model.block,
        region=model.region,
        has_manual_overrides=bool(overrides),
    )


def build_budget_plan(
    models,
    fiscal_months: Sequence[str],
    global_stretch: Optional[float] = None,
    individual_stretch: Optional[Mapping[str, float]] = None,
    overrides: Optional[Mapping[str, Mapping[str, float]]] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> List[StoreBudgetPlan]:
    """Plans for every active, successfully fitted store.

    `models` is a repository or any iterable of FittedStoreModel.
    """
    if hasattr(models, "all_models"):
        models = models.all_models()
    individual_stretch = individual_stretch or {}
    overrides = overrides or {}
    default = settings.budget.default_stretch if global_stretch is None else global_stretch

    plans = []
    for m in models:
        if m.error or not m.is_active:
            continue
        plans.append(build_store_budget(
            m, fiscal_months,
            stretch=individual_stretch.get(m.name, default),
            overrides=overrides.get(m.name),
            settings=settings,
        ))
    logger.info("budget_plan_built", stores=len(plans), months=len(fiscal_months), stretch=default)
    return plans


def summarize_budget_plan(plans: Iterable[StoreBudgetPlan]) -> Dict[str, float]:
    plans = list(plans)
    total_ly = sum(p.last_year_total for p in plans)
    total_fc = sum(p.forecast_total for p in plans)
    total_bg = sum(p.budget_total for p in plans)
    return {
        "count": len(plans),
        "total_last_year": total_ly,
        "total_forecast": total_fc,
        "total_budget": total_bg,
        "total_yoy": (total_bg - total_ly) / total_ly * 100 if total_ly > 0 else 0.0,
        "vs_forecast": (total_bg - total_fc) / total_fc * 100 if total_fc > 0 else 0.0,
    }


def budget_frame(plans: Iterable[StoreBudgetPlan]) -> pd.DataFrame:
    """One row per store, sorted by budget total (largest first)."""
    rows = [
        {
            "name": p.name,
            "block": p.block,
            "region": p.region,
            "last_year_total": p.last_year_total,
            "forecast_total": p.forecast_total,
            "budget_total": p.budget_total,
            "stretch": p.stretch,
            "yoy": p.yoy,
            "gap": p.gap,
        }
        for p in plans
    ]
    df = pd.DataFrame(rows, columns=["name", "block", "region", "last_year_total", "forecast_total",
                                     "budget_total", "stretch", "yoy", "gap"])
    return df.sort_values("budget_total", ascending=False, ignore_index=True)


def apply_budget_plan(models: Iterable[FittedStoreModel],
                      plans: Iterable[StoreBudgetPlan]) -> List[FittedStoreModel]:
    """Models with their budget replaced by the plan (stores without a plan unchanged)."""
    by_name = {p.name: p for p in plans}
    out = []
    for m in models:
        plan = by_name.get(m.name)
        if plan is not None:
            m = replace(m, budget=plan.to_budget_series())
        out.append(m)
    return out
