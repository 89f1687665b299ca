# storeplan_suite/core/monte_carlo.py
"""
Vectorized Monte Carlo engine for fiscal-year landing risk.

Inputs:
- mean_path: expected value per fiscal month (forecast centre line)
- volatility: std dev of the monthly shock (store std_dev x multiplier)
- trials: number of simulated years
- target: full-year budget to beat (optional)
- seed: RNG seed (optional, int); unseeded by default

Each trial draws one standard normal per month (Box-Muller), so

    value[trial, month] = max(0, mean_path[month] + z * volatility)

Outputs:
- dict with:
  - months: month labels when given, else 0..n-1
  - mean_path: shape (months,)
  - monthly_percentiles: dict {5, 25, 50, 75, 95} -> array (months,)
  - landing_totals: sorted full-year total per trial, shape (trials,)
  - landing_percentiles: dict {5, 25, 50, 75, 95} -> float
  - win_probability: fraction of trials with total >= target (None without target)
  - landing_distribution: list of {start, end, value, count} histogram bins
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ..logging_config import get_logger
from .forecasting import mean_path as forecast_mean_path
from .models import FittedStoreModel
from .settings import DEFAULT_SETTINGS, ForecastSettings

logger = get_logger(__name__)

PERCENTILES = (5, 25, 50, 75, 95)


@dataclass
class LandingMCInputs:
    mean_path: Sequence[float]
    volatility: float
    trials: int = 1000
    target: Optional[float] = None
    seed: Optional[int] = None
    bins: int = 20
    months: List[str] = field(default_factory=list)
    percentiles: Sequence[int] = PERCENTILES

    def __post_init__(self):
        if self.trials <= 0:
            raise ValueError("trials must be positive")
        if self.volatility < 0:
            raise ValueError("volatility must be non-negative")
        if self.bins <= 0:
            raise ValueError("bins must be positive")
        if self.months and len(self.months) != len(self.mean_path):
            raise ValueError("months and mean_path must have the same length")


def box_muller(rng: np.random.Generator, size) -> np.ndarray:
    """Standard normals from uniforms; u = 1 - U[0,1) keeps log(u) finite."""
    u = 1.0 - rng.random(size)
    v = rng.random(size)
    return np.sqrt(-2.0 * np.log(u)) * np.cos(2.0 * np.pi * v)


def sorted_percentile(sorted_vals: np.ndarray, p: float, axis: int = 0):
    """Value at sorted index floor(n * p / 100), capped at n - 1."""
    n = sorted_vals.shape[axis]
    idx = min(n - 1, int(np.floor(n * p / 100.0)))
    return np.take(sorted_vals, idx, axis=axis)


def volatility_for(std_dev: float, multiplier: float = 1.0) -> float:
    return max(0.0, float(std_dev) * float(multiplier))


def simulate_landing(params: LandingMCInputs, rng: Optional[np.random.Generator] = None):
    n = params.trials
    mean = np.asarray(params.mean_path, dtype=float)
    T = mean.size

    rng = rng if rng is not None else np.random.default_rng(params.seed)
    # Draw shocks: shape (n, T)
    Z = box_muller(rng, (n, T))
    V = np.maximum(0.0, mean[None, :] + Z * params.volatility)

    # Per-month bands
    V_sorted = np.sort(V, axis=0)
    monthly_pct = {
        p: np.asarray(sorted_percentile(V_sorted, p, axis=0), dtype=float)
        for p in params.percentiles
    }

    totals = np.sort(V.sum(axis=1))
    landing_pct = {p: float(sorted_percentile(totals, p)) for p in params.percentiles}

    win = None
    if params.target is not None:
        win = float((totals >= params.target).mean())

    counts, edges = np.histogram(totals, bins=params.bins)
    distribution = [
        {
            "start": float(edges[i]),
            "end": float(edges[i + 1]),
            "value": float((edges[i] + edges[i + 1]) / 2.0),
            "count": int(counts[i]),
        }
        for i in range(len(counts))
    ]

    logger.debug("landing_simulated", trials=n, months=T, volatility=params.volatility,
                 median=landing_pct.get(50), win_probability=win)

    return {
        "months": list(params.months) if params.months else np.arange(T),
        "mean_path": mean,
        "monthly_percentiles": monthly_pct,
        "landing_totals": totals,
        "landing_percentiles": landing_pct,
        "win_probability": win,
        "landing_distribution": distribution,
    }


def simulate_store_landing(
    model: FittedStoreModel,
    fiscal_months: Sequence[str],
    target: Optional[float] = None,
    volatility_multiplier: Optional[float] = None,
    trials: Optional[int] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
):
    """Landing distribution for one store over the given fiscal months.

    Target defaults to the store's budget total over those months, when it has one.
    """
    sim = settings.simulation
    mult = sim.volatility_multiplier if volatility_multiplier is None else volatility_multiplier
    if target is None and model.budget is not None:
        target = sum(model.budget.get(m) for m in fiscal_months)

    params = LandingMCInputs(
        mean_path=forecast_mean_path(model, fiscal_months, settings),
        volatility=volatility_for(model.std_dev, mult),
        trials=sim.trials if trials is None else trials,
        target=target,
        seed=seed,
        bins=sim.bins,
        percentiles=sim.percentiles,
        months=list(fiscal_months),
    )
    return simulate_landing(params, rng=rng)
