# storeplan_suite/core/forecasting.py
"""
Store forecasts: trend x season + decaying nudge.

For a month m after the store's last actual (t = months ahead):

    total = max(0, trend(idx) * season[month(m)] + nudge * decay^t)

The nudge is the recent actual-vs-model residual. It bleeds out
geometrically so the forecast starts from where the actuals left off instead
of jumping back onto the curve.

Outputs are ForecastPoint lists or a pandas frame with simple uncertainty
bands (std_dev widened 5% per month ahead) for display.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .models import FittedStoreModel, ForecastPoint
from .periods import add_months, month_diff, month_index, month_key
from .seasonal import seasonal_factor
from .settings import DEFAULT_SETTINGS, ForecastSettings
from .trend import evaluate


def resolve_decay(decay: Optional[float], settings: ForecastSettings = DEFAULT_SETTINGS) -> float:
    return settings.forecast.nudge_decay if decay is None else float(decay)


def nudge_correction(nudge: float, decay: Optional[float], steps_ahead: int,
                     settings: ForecastSettings = DEFAULT_SETTINGS) -> float:
    """nudge * decay^t for t > 0; nothing inside the observed range."""
    if steps_ahead <= 0 or not nudge:
        return 0.0
    return float(nudge) * resolve_decay(decay, settings) ** steps_ahead


def estimate_nudge(residuals: Sequence[float]) -> Tuple[float, float]:
    """Carry value and decay from the latest residuals.

    Short history: mean of the last 3 residuals, fast decay (0.7).
    Otherwise the median of the last 12, slower decay (0.8).
    """
    res = list(residuals)
    if not res:
        return 0.0, 1.0
    if len(res) < 12:
        tail = res[-3:]
        return float(sum(tail) / len(tail)), 0.7
    recent = sorted(res[-12:])
    return float(recent[len(recent) // 2]), 0.8


def forecast_point(model: FittedStoreModel, month: str,
                   settings: ForecastSettings = DEFAULT_SETTINGS) -> ForecastPoint:
    """Forecast for one month.

    A model without actuals has no anchor: the curve is read at index 0 and
    no nudge is applied (an error model therefore forecasts 0).
    """
    series = model.series
    if series.dates:
        steps = month_diff(series.last_date, month)
        idx = series.last_index + steps
    else:
        steps, idx = 0, 0
    tr = evaluate(idx, model.curve)
    sea = seasonal_factor(model.seasonal, month_index(month))
    nudge = nudge_correction(model.nudge, model.nudge_decay, steps, settings)

    return ForecastPoint(
        date=month_key(month),
        index=idx,
        steps_ahead=steps,
        base_value=tr,
        seasonal_factor=sea,
        nudge_contribution=nudge,
        total=max(0.0, tr * sea + nudge),
    )


def forecast_months(model: FittedStoreModel, months: Sequence[str],
                    settings: ForecastSettings = DEFAULT_SETTINGS) -> List[ForecastPoint]:
    return [forecast_point(model, m, settings) for m in months]


def forecast_horizon(model: FittedStoreModel, horizon: int,
                     settings: ForecastSettings = DEFAULT_SETTINGS) -> List[ForecastPoint]:
    """The next `horizon` months after the last actual (none without actuals)."""
    last = model.series.last_date
    if last is None:
        return []
    return [forecast_point(model, add_months(last, t), settings) for t in range(1, horizon + 1)]


def forecast_frame(model: FittedStoreModel, horizon: int, z: Optional[float] = None,
                   settings: ForecastSettings = DEFAULT_SETTINGS) -> pd.DataFrame:
    """Forecast table with lower/upper bands: total -/+ z * std_dev * (1 + 0.05 t)."""
    z = settings.forecast.z_score if z is None else z
    pts = forecast_horizon(model, horizon, settings)
    df = pd.DataFrame([p.__dict__ for p in pts])
    if df.empty:
        return pd.DataFrame(columns=["date", "index", "steps_ahead", "base_value",
                                     "seasonal_factor", "nudge_contribution", "total",
                                     "lower", "upper"])
    unc = model.std_dev * (1.0 + df["steps_ahead"] * settings.forecast.band_growth)
    df["lower"] = np.maximum(0.0, df["total"] - z * unc)
    df["upper"] = np.maximum(0.0, df["total"] + z * unc)
    return df


def mean_path(model: FittedStoreModel, months: Sequence[str],
              settings: ForecastSettings = DEFAULT_SETTINGS) -> np.ndarray:
    """Forecast totals for the given months (Monte Carlo centre line)."""
    return np.array([p.total for p in forecast_months(model, months, settings)], dtype=float)
