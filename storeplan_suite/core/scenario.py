# storeplan_suite/core/scenario.py
"""
New-store opening simulator.

Reference stores chosen by the planner give average growth parameters; three
scenarios are derived from them and projected for 36 months on a startup
curve, net of the sales the new store takes from nearby stores.

    conservative: base x 0.9, L - 0.5 sd, k - 0.5 sd (k floored at 0.05)
    standard:     reference means
    optimistic:   base x 1.1, L + 0.5 sd, k + 0.5 sd

ROI month is the first month where cumulative profit (sales x margin minus
the initial investment) turns non-negative.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..logging_config import get_logger
from .budget import round_half_up
from .models import FittedStoreModel
from .periods import month_index, month_range
from .seasonal import MONTHS, reference_profile
from .trend import FixedInflection, InflectionStrategy, StartupCurve, evaluate

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScenarioParams:
    base: float
    L: float
    k: float


DEFAULT_SCENARIOS: Dict[str, ScenarioParams] = {
    "conservative": ScenarioParams(base=0.0, L=2500.0, k=0.08),
    "standard": ScenarioParams(base=0.0, L=3000.0, k=0.1),
    "optimistic": ScenarioParams(base=0.0, L=3500.0, k=0.12),
}


@dataclass
class ReferenceStats:
    avg_L: float
    avg_k: float
    avg_base: float
    std_L: float
    std_k: float
    std_base: float
    seasonality: List[float]
    n_models: int
    ghost_lines: Dict[str, List[float]] = field(default_factory=dict)


def reference_stats(models: Iterable[FittedStoreModel], ghost_months: int = 36) -> Optional[ReferenceStats]:
    """Mean / population std of the reference stores' L, k and base; None without stores."""
    models = list(models)
    if not models:
        return None
    L = np.array([m.L for m in models], dtype=float)
    k = np.array([m.k for m in models], dtype=float)
    base = np.array([m.base for m in models], dtype=float)
    profile = reference_profile(models)
    return ReferenceStats(
        avg_L=float(L.mean()),
        avg_k=float(k.mean()),
        avg_base=float(base.mean()),
        std_L=float(L.std()),
        std_k=float(k.std()),
        std_base=float(base.std()),
        seasonality=profile.factors,
        n_models=len(models),
        ghost_lines={m.name: list(m.series.raw[:ghost_months]) for m in models},
    )


def scenario_parameters(ref: Optional[ReferenceStats]) -> Dict[str, ScenarioParams]:
    if ref is None:
        return dict(DEFAULT_SCENARIOS)
    return {
        "conservative": ScenarioParams(
            base=ref.avg_base * 0.9,
            L=ref.avg_L - 0.5 * ref.std_L,
            k=max(0.05, ref.avg_k - 0.5 * ref.std_k),
        ),
        "standard": ScenarioParams(base=ref.avg_base, L=ref.avg_L, k=ref.avg_k),
        "optimistic": ScenarioParams(
            base=ref.avg_base * 1.1,
            L=ref.avg_L + 0.5 * ref.std_L,
            k=ref.avg_k + 0.5 * ref.std_k,
        ),
    }


@dataclass
class ScenarioProjection:
    frame: pd.DataFrame
    summary: Dict[str, Dict[str, Optional[float]]]
    cannibal_loss_total: float = 0.0

    def roi_month(self, scenario: str) -> Optional[int]:
        return self.summary[scenario]["roi_month"]


def cannibal_loss(cannibal: Sequence[Tuple[FittedStoreModel, float]]) -> float:
    """Monthly sales lost by existing stores: last-year monthly average x impact %."""
    return float(sum(m.last_year_sales / 12.0 * impact / 100.0 for m, impact in cannibal))


def project_new_store(
    scenarios: Dict[str, ScenarioParams],
    open_month: str,
    months: int = 36,
    seasonality: Optional[Sequence[float]] = None,
    cannibal: Optional[Sequence[Tuple[FittedStoreModel, float]]] = None,
    initial_investment: float = 30000.0,
    margin: float = 0.2,
    inflection: Optional[InflectionStrategy] = None,
) -> ScenarioProjection:
    """Month-by-month sales of a new store per scenario.

    Args:
        scenarios: Scenario name -> (base, L, k)
        open_month: First trading month ('YYYY-MM')
        months: Projection length
        seasonality: Twelve factors (Jan first); flat when omitted
        cannibal: (existing store, impact percent) pairs
        initial_investment: Outlay recovered from sales x margin
        inflection: Inflection point rule; month 12 by default
    """
    if months <= 0:
        raise ValueError("months must be positive")
    inflection = inflection or FixedInflection()
    sea = list(seasonality) if seasonality is not None and len(seasonality) == MONTHS else [1.0] * MONTHS
    loss = cannibal_loss(cannibal or [])
    loss_rounded = round_half_up(loss)

    curves = {
        name: StartupCurve.with_inflection(L=p.L, k=p.k, base=p.base, inflection=inflection)
        for name, p in scenarios.items()
    }

    labels = month_range(open_month, months)
    rows = []
    summary = {name: {"total_sales": 0.0, "net_increase": 0.0, "final_monthly": 0.0, "roi_month": None}
               for name in scenarios}
    cum_profit = {name: -initial_investment for name in scenarios}

    for t, label in enumerate(labels):
        s = sea[month_index(label)]
        row = {"month": label, "index": t, "cannibal_loss": loss_rounded}
        for name, curve in curves.items():
            sales = round_half_up(max(0.0, evaluate(t, curve) * s))
            net = sales - loss_rounded
            row[name] = sales
            row[f"{name}_net"] = net

            out = summary[name]
            out["total_sales"] += sales
            out["net_increase"] += net
            if t == months - 1:
                out["final_monthly"] = sales

            cum_profit[name] += sales * margin
            if cum_profit[name] >= 0 and out["roi_month"] is None:
                out["roi_month"] = t + 1
        rows.append(row)

    logger.debug("new_store_projected", open_month=open_month, months=months,
                 scenarios=list(scenarios), cannibal_loss=loss)
    return ScenarioProjection(frame=pd.DataFrame(rows), summary=summary, cannibal_loss_total=loss * months)
