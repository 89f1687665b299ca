# storeplan_suite/core/validation.py
"""
Model validation by backtest.

Each eligible store is refitted on its history minus the last `holdout`
months, with the last training month standing in for the chain's latest
month, and the refitted model forecasts the held-out months:

    pred = max(0, trend(idx) * season[month] + nudge * decay^(i+1))

Per store: MAPE, RMSE and bias (actual - forecast, so positive means the
model under-forecast). Months with no positive actual add no error but still
count in the denominator.

The chain report adds the average and median MAPE, the share of stores under
the "good" MAPE threshold, the summed bias and a 5%-bucket histogram.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from ..logging_config import get_logger
from .fitting import analyze_store
from .forecasting import forecast_point
from .models import FittedStoreModel, TimeSeries
from .repository import ModelRepository
from .settings import DEFAULT_SETTINGS, ForecastSettings

logger = get_logger(__name__)

HOLDOUT_MONTHS = 12
GOOD_MAPE = 7.5
BUCKET_WIDTH = 5
N_BUCKETS = 10


@dataclass
class BacktestResult:
    name: str
    mape: float
    rmse: float
    bias: float
    actuals: List[float]
    forecasts: List[float]
    dates: List[str]
    training_k: float
    training_L: float


def backtest_store(
    name: str,
    series: TimeSeries,
    holdout: int = HOLDOUT_MONTHS,
    settings: ForecastSettings = DEFAULT_SETTINGS,
    **attrs,
) -> Optional[BacktestResult]:
    """Refit on all but the last `holdout` months and score the forecast of those.

    Returns None when the series is shorter than 2 x holdout or the training
    fit comes back as an error model.
    """
    if holdout <= 0:
        raise ValueError("holdout must be positive")
    n = len(series)
    if n < 2 * holdout:
        return None

    train = TimeSeries(dates=series.dates[:n - holdout], raw=series.raw[:n - holdout])
    test_dates = series.dates[n - holdout:]
    actuals = series.raw[n - holdout:]

    model = analyze_store(name, train, train.last_date, settings=settings, **attrs)
    if model.error:
        return None

    forecasts = [forecast_point(model, d, settings).total for d in test_dates]

    act = np.asarray(actuals, dtype=float)
    pred = np.asarray(forecasts, dtype=float)
    scored = act > 0
    err = np.where(scored, act - pred, 0.0)
    ape = np.abs(err[scored] / act[scored])

    return BacktestResult(
        name=name,
        mape=float(ape.sum() / holdout * 100),
        rmse=math.sqrt(float(np.dot(err, err)) / holdout),
        bias=float(err.sum() / holdout),
        actuals=list(actuals),
        forecasts=forecasts,
        dates=list(test_dates),
        training_k=model.k,
        training_L=model.L,
    )


@dataclass
class ValidationReport:
    """Backtest results of a chain, sorted by MAPE (best first)."""

    results: List[BacktestResult] = field(default_factory=list)

    def __post_init__(self):
        self.results = sorted(self.results, key=lambda r: r.mape)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def avg_mape(self) -> Optional[float]:
        if not self.results:
            return None
        return sum(r.mape for r in self.results) / len(self.results)

    @property
    def median_mape(self) -> Optional[float]:
        # Upper median on even counts
        if not self.results:
            return None
        return self.results[len(self.results) // 2].mape

    @property
    def good_rate(self) -> Optional[float]:
        """Percentage of stores with MAPE under 7.5%."""
        if not self.results:
            return None
        good = sum(1 for r in self.results if r.mape < GOOD_MAPE)
        return good / len(self.results) * 100

    @property
    def total_bias(self) -> float:
        return sum(r.bias for r in self.results)

    def histogram(self) -> List[dict]:
        """Store counts per 5% MAPE bucket; the last bucket takes everything from 45%."""
        counts = [0] * N_BUCKETS
        for r in self.results:
            counts[min(N_BUCKETS - 1, int(r.mape // BUCKET_WIDTH))] += 1
        return [
            {"range": f"{i * BUCKET_WIDTH}-{(i + 1) * BUCKET_WIDTH}%", "count": c}
            for i, c in enumerate(counts)
        ]

    def to_frame(self) -> pd.DataFrame:
        columns = ["name", "mape", "rmse", "bias", "training_k", "training_L"]
        return pd.DataFrame([{c: getattr(r, c) for c in columns} for r in self.results],
                            columns=columns)


def eligible_models(models: Iterable[FittedStoreModel],
                    holdout: int = HOLDOUT_MONTHS) -> List[FittedStoreModel]:
    """Active stores with at least 2 x holdout months of history."""
    return [m for m in models if m.is_active and len(m.series) >= 2 * holdout]


async def backtest_chain(
    models: Union[ModelRepository, Iterable[FittedStoreModel]],
    holdout: int = HOLDOUT_MONTHS,
    batch_size: int = 10,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> ValidationReport:
    """Backtest every eligible store of a fitted chain.

    Args:
        models: A repository or fitted models (e.g. analyze_chain()'s values)
        holdout: Months held out at the end of each history
        batch_size: Stores backtested between event-loop yields

    Returns:
        ValidationReport; stores that are skipped or whose refit raises are
        left out of it.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    if isinstance(models, ModelRepository):
        models = models.all_models()
    stores = eligible_models(models, holdout)
    logger.info("backtest_started", stores=len(stores), holdout=holdout)

    results: List[BacktestResult] = []
    for i, model in enumerate(stores):
        try:
            result = backtest_store(model.name, model.series, holdout, settings,
                                    block=model.block, region=model.region,
                                    prefecture=model.prefecture)
        except (ValueError, ArithmeticError, TypeError):
            logger.exception("store_backtest_failed", store=model.name)
            result = None
        if result is not None:
            results.append(result)
        if (i + 1) % batch_size == 0:
            logger.debug("backtest_progress", done=i + 1, total=len(stores))
            await asyncio.sleep(0)

    report = ValidationReport(results)
    logger.info("backtest_finished", stores=len(report), skipped=len(stores) - len(report),
                median_mape=report.median_mape)
    return report


def backtest_chain_sync(*args, **kwargs) -> ValidationReport:
    """Blocking wrapper around backtest_chain() for scripts and tests."""
    return asyncio.run(backtest_chain(*args, **kwargs))
