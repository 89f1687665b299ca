# storeplan_suite/core/batch.py
"""
Chain-wide analysis.

Two passes, because new stores borrow their priors from established ones:

1. mature pass: stores with >= 12 positive months are fitted on their own
2. compute_global_stats() over the active mature fits
3. startup pass: the remaining stores, fitted with the chain priors
4. ABC ranking on last-year sales

The coroutine yields to the event loop between batches so a host application
stays responsive while a large chain is fitted. A store whose fit raises is
logged and kept as an error model; the run continues.
"""

import asyncio
from dataclasses import replace
from typing import Dict, Mapping, Optional, Tuple

from ..logging_config import get_logger
from .fitting import GlobalStats, analyze_store, compute_global_stats
from .models import FittedStoreModel, StoreStats, TimeSeries
from .periods import to_period
from .repository import ModelRepository
from .settings import DEFAULT_SETTINGS, ForecastSettings
from .store_stats import abc_ranking
from .trend import StandardCurve

logger = get_logger(__name__)


def _as_series(data) -> TimeSeries:
    if isinstance(data, TimeSeries):
        return data
    return TimeSeries.fill_gaps(data)


def _failed(name: str, series: TimeSeries, message: str) -> FittedStoreModel:
    return FittedStoreModel(
        name=name,
        curve=StandardCurve(L=0.0, k=0.0, t0=0.0, base=0.0),
        seasonal=[],
        is_active=False,
        series=series,
        error=True,
        message=message,
    )


def _fit_one(name, series, global_max_month, global_stats, attrs, settings) -> FittedStoreModel:
    try:
        return analyze_store(name, series, global_max_month, global_stats,
                             settings=settings, **attrs.get(name, {}))
    except (ValueError, ArithmeticError, TypeError) as e:
        logger.exception("store_fit_failed", store=name)
        return _failed(name, series, f"Fit failed: {e}")


async def analyze_chain(
    series_by_store: Mapping[str, object],
    global_max_month=None,
    batch_size: int = 20,
    attributes: Optional[Mapping[str, Mapping[str, str]]] = None,
    repository: Optional[ModelRepository] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> Tuple[Dict[str, FittedStoreModel], GlobalStats]:
    """Fit every store of the chain.

    Args:
        series_by_store: Store name -> TimeSeries or {month: value} mapping
            (mappings are gap-filled with zeros)
        global_max_month: Latest month of the chain; derived from the data when omitted
        batch_size: Stores fitted between event-loop yields
        attributes: Optional store name -> {block, region, prefecture}
        repository: When given, the fitted models are saved to it

    Returns:
        (models by store name, chain GlobalStats)
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    attrs = attributes or {}
    series = {name: _as_series(data) for name, data in series_by_store.items()}

    if global_max_month is None:
        lasts = [to_period(s.last_date) for s in series.values() if s.last_date]
        global_max_month = max(lasts) if lasts else None
    if global_max_month is None:
        logger.warning("empty_chain")
        return {}, GlobalStats()

    mature_names = [n for n, s in series.items()
                    if sum(1 for v in s.raw if v > 0) >= settings.fit.mature_min_points]
    mature_set = set(mature_names)
    startup_names = [n for n in series if n not in mature_set]
    logger.info("chain_analysis_started", stores=len(series), mature=len(mature_names),
                startup=len(startup_names))

    models: Dict[str, FittedStoreModel] = {}

    # 1. Mature stores
    for i, name in enumerate(mature_names):
        models[name] = _fit_one(name, series[name], global_max_month, None, attrs, settings)
        if (i + 1) % batch_size == 0:
            logger.debug("chain_analysis_progress", phase="mature", done=i + 1, total=len(mature_names))
            await asyncio.sleep(0)

    # 2. Chain priors
    global_stats = compute_global_stats(models.values(), settings=settings)
    await asyncio.sleep(0)

    # 3. Startup stores
    for i, name in enumerate(startup_names):
        models[name] = _fit_one(name, series[name], global_max_month, global_stats, attrs, settings)
        if (i + 1) % batch_size == 0:
            logger.debug("chain_analysis_progress", phase="startup", done=i + 1, total=len(startup_names))
            await asyncio.sleep(0)

    # 4. ABC ranking
    ranks = abc_ranking([m for m in models.values() if m.stats is not None])
    for name, rank in ranks.items():
        m = models[name]
        models[name] = replace(m, stats=replace(m.stats or StoreStats(), abc_rank=rank))

    if repository is not None:
        repository.save_models(models.values())

    errors = sum(1 for m in models.values() if m.error)
    logger.info("chain_analysis_finished", stores=len(models), errors=errors,
                global_k=global_stats.median_k)
    return models, global_stats


def analyze_chain_sync(*args, **kwargs) -> Tuple[Dict[str, FittedStoreModel], GlobalStats]:
    """Blocking wrapper around analyze_chain() for scripts and tests."""
    return asyncio.run(analyze_chain(*args, **kwargs))
