"""
Shared builders for forecasting tests.
"""
import pytest

from storeplan_suite.core.models import BudgetSeries, FittedStoreModel, StoreStats, TimeSeries
from storeplan_suite.core.periods import month_range
from storeplan_suite.core.trend import StandardCurve


def build_model(
    name="Store A",
    curve=None,
    raw=None,
    start="2024-01",
    seasonal=None,
    nudge=0.0,
    nudge_decay=None,
    std_dev=0.0,
    is_active=True,
    budget=None,
    last_year_sales=None,
    error=False,
):
    """FittedStoreModel with a flat 500/month trend unless told otherwise."""
    raw = [500.0] * 12 if raw is None else list(raw)
    stats = StoreStats(last_year_sales=last_year_sales) if last_year_sales is not None else None
    return FittedStoreModel(
        name=name,
        curve=curve or StandardCurve(L=0.0, k=0.1, t0=0.0, base=500.0),
        seasonal=[1.0] * 12 if seasonal is None else list(seasonal),
        nudge=nudge,
        nudge_decay=nudge_decay,
        std_dev=std_dev,
        is_active=is_active,
        series=TimeSeries(dates=month_range(start, len(raw)), raw=raw),
        budget=BudgetSeries(budget) if budget is not None else None,
        stats=stats,
        error=error,
    )


@pytest.fixture
def make_model():
    return build_model
