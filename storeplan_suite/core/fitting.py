# storeplan_suite/core/fitting.py
"""
Per-store model fitting.

analyze_store() turns a monthly sales series into a FittedStoreModel:

1. Outlier mask: positive months inside the 1.5x IQR fences. Recent months
   (last 24) are rescued when they sit within +-11% of their trailing
   12-month mean, so a genuine new level is not thrown away as an outlier.
2. Short history (< 13 valid months):
     active store   -> startup curve from chain priors (k, seasonality, L)
     inactive store -> error model ("Insufficient data")
3. Otherwise a standard logistic fit [L, k, t0] and, when a regime break is
   found (COVID window or the largest >15% mean shift), a shift fit
   [L, k, t0, L_post]. The shift model is kept only when its AIC beats the
   standard one by more than 2.5.
4. Seasonal medians, components, residual std dev and the nudge carry.

The objective is a normalised MSE plus the physical limits of the business
(k in [1e-4, 2], base + L <= 10000 with a quadratic penalty above 5000) and
light regularisation on L, k and the size of the shift.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from ..logging_config import get_logger, get_store_logger
from .forecasting import estimate_nudge
from .models import Components, FittedStoreModel, TimeSeries
from .periods import month_index, to_period
from .seasonal import MONTHS, chain_seasonality, estimate_seasonal, seasonal_factor
from .settings import DEFAULT_SETTINGS, FitSettings, ForecastSettings
from .store_stats import compute_store_stats
from .trend import CurveMode, ShiftCurve, StandardCurve, StartupCurve, TrendCurve, evaluate, evaluate_path

logger = get_logger(__name__)

INVALID = 1e15
COVID_MONTHS = ("2020-03", "2020-04", "2020-05")


@dataclass
class GlobalStats:
    """Chain-level priors for startup stores."""

    median_k: float = 0.1
    standard_growth_L: float = 3000.0
    seasonality: List[float] = field(default_factory=lambda: [1.0] * MONTHS)


# ---------- masking ----------

def iqr_fences(values: Sequence[float]) -> Tuple[float, float]:
    """1.5x IQR fences over positive values (quartiles read by sorted index)."""
    pos = sorted(v for v in values if v > 0)
    if not pos:
        return -np.inf, np.inf
    n = len(pos)
    q1 = pos[int(n * 0.25)]
    q3 = pos[int(n * 0.75)]
    iqr = q3 - q1
    return q1 - 1.5 * iqr, q3 + 1.5 * iqr


def outlier_mask(raw: Sequence[float], fit: FitSettings = DEFAULT_SETTINGS.fit) -> List[bool]:
    lower, upper = iqr_fences(raw)
    mask = [lower <= v <= upper and v > 0 for v in raw]

    n = len(raw)
    for i in range(max(0, n - fit.rescue_months), n):
        window = [raw[j] for j in range(max(0, i - 11), i + 1) if raw[j] > 0]
        if len(window) < 6:
            continue
        ma = sum(window) / len(window)
        if ma * (1 - fit.rescue_band) <= raw[i] <= ma * (1 + fit.rescue_band):
            mask[i] = True
    return mask


def is_active_store(last_month, global_max_month, window_days: int = 60) -> bool:
    """Active when the last month starts within `window_days` of the chain's latest month."""
    if last_month is None:
        return False
    gap = to_period(global_max_month).start_time - to_period(last_month).start_time
    return gap.days < window_days


# ---------- shock detection ----------

def detect_covid_shock(dates: Sequence[str], raw: Sequence[float]) -> Tuple[int, float]:
    """(index, level change guess) of the first COVID-window month, -1 when unusable."""
    n = len(raw)
    for i, d in enumerate(dates):
        if d in COVID_MONTHS:
            if 5 <= i < n - 6:
                pre = float(np.mean(raw[i - 3:i]))
                post = float(np.mean(raw[i + 3:i + 6]))
                return i, post - pre
            break
    return -1, 0.0


def detect_mean_shift(raw: Sequence[float], mask: Sequence[bool],
                      fit: FitSettings = DEFAULT_SETTINGS.fit) -> Tuple[int, float]:
    """Largest 6-vs-6 month mean shift above the ratio threshold, -1 when none."""
    n = len(raw)
    best_idx, best_guess, best_score = -1, 0.0, 0.0
    if n < 24:
        return best_idx, best_guess

    margin = fit.shift_margin
    for i in range(margin, n - margin):
        pre = [raw[i - j] for j in range(1, 7) if mask[i - j]]
        post = [raw[i + j - 1] for j in range(1, 7) if mask[i + j - 1]]
        if len(pre) < 3 or len(post) < 3:
            continue
        pre_mean, post_mean = sum(pre) / len(pre), sum(post) / len(post)
        ratio = abs(post_mean - pre_mean) / max(pre_mean, post_mean, 1.0)
        if ratio > fit.shift_ratio_threshold and ratio > best_score:
            best_idx, best_guess, best_score = i, post_mean - pre_mean, ratio
    return best_idx, best_guess


# ---------- objective / optimiser ----------

@dataclass
class FitProblem:
    data: np.ndarray
    mask: np.ndarray
    base: float
    max_val: float
    variance: float
    mode: CurveMode = CurveMode.STANDARD
    shock_index: int = -1
    settings: FitSettings = field(default_factory=FitSettings)

    @property
    def t_valid(self) -> np.ndarray:
        return np.flatnonzero(self.mask)

    def curve(self, params: Sequence[float]) -> TrendCurve:
        L, k, t0 = float(params[0]), float(params[1]), float(params[2])
        if self.mode == CurveMode.SHIFT:
            return ShiftCurve(L=L, k=k, t0=t0, base=self.base,
                              shock_index=self.shock_index, L_post=float(params[3]))
        return StandardCurve(L=L, k=k, t0=t0, base=self.base)

    def sse(self, params: Sequence[float]) -> Tuple[float, int]:
        t = self.t_valid
        if t.size == 0:
            return 0.0, 0
        res = self.data[t] - evaluate_path(t, self.curve(params))
        return float(np.dot(res, res)), int(t.size)


def objective(params: np.ndarray, problem: FitProblem) -> float:
    fit = problem.settings
    L, k = params[0], params[1]
    L_post = params[3] if problem.mode == CurveMode.SHIFT else L

    # Physical limits
    if k < fit.min_k or k > fit.max_k:
        return INVALID
    total_potential = problem.base + max(L, L_post)
    if total_potential > fit.absolute_max_L:
        return INVALID
    hard_penalty = 0.0
    if total_potential > fit.rare_L_threshold:
        hard_penalty = 0.1 * (total_potential - fit.rare_L_threshold) ** 2

    sse, n = problem.sse(params)
    if n == 0:
        return INVALID
    mse = sse / n

    variance = problem.variance if problem.variance > 100 else problem.max_val ** 2 * 0.01
    if variance <= 0:
        variance = 1.0
    current_max = problem.max_val or 1000.0

    l_ratio = total_potential / current_max
    reg_L = 0.1 * (l_ratio - 1.2) ** 2 if l_ratio > 1.2 else 0.0
    reg_k = 0.05 * k * k
    reg_shift = 0.1 * ((L_post - L) / current_max) ** 2

    return float(mse / variance + hard_penalty + reg_L + reg_k + reg_shift)


def initial_simplex(x0: Sequence[float], step: float = 0.05) -> np.ndarray:
    x0 = np.asarray(x0, dtype=float)
    simplex = [x0]
    for i in range(x0.size):
        x = x0.copy()
        x[i] = 0.001 if x[i] == 0 else x[i] * (1 + step)
        simplex.append(x)
    return np.array(simplex)


def optimize(x0: Sequence[float], problem: FitProblem) -> Tuple[np.ndarray, float, int]:
    """Nelder-Mead from x0; returns (params, pure SSE, n valid points)."""
    fit = problem.settings
    res = minimize(
        objective,
        np.asarray(x0, dtype=float),
        args=(problem,),
        method="Nelder-Mead",
        options={
            "initial_simplex": initial_simplex(x0, fit.simplex_step),
            "maxiter": fit.max_iterations,
            "fatol": fit.tolerance,
        },
    )
    params = np.asarray(res.x, dtype=float)
    sse, n = problem.sse(params)
    return params, sse, n


def aic(sse: float, n: int, n_params: int) -> float:
    if sse <= 0 or n <= 0:
        return float("inf")
    return n * np.log(sse / n) + 2 * n_params


# ---------- analysis ----------

def _error_model(name, series, block, region, prefecture, message) -> FittedStoreModel:
    return FittedStoreModel(
        name=name,
        curve=StandardCurve(L=0.0, k=0.0, t0=0.0, base=0.0),
        seasonal=[],
        nudge_decay=0.0,
        is_active=False,
        series=series,
        block=block,
        region=region,
        prefecture=prefecture,
        stats=compute_store_stats(series) if len(series) else None,
        error=True,
        message=message,
    )


def _fit_startup(series, base_guess, global_stats, fit: FitSettings, log):
    raw, dates = series.raw, series.dates
    k = min(global_stats.median_k, fit.max_k) if global_stats else fit.default_k
    if global_stats and len(global_stats.seasonality) == MONTHS:
        sea = list(global_stats.seasonality)
    else:
        sea = [1.0] * MONTHS
    L = global_stats.standard_growth_L if global_stats else fit.default_growth_L

    # Level from the second month (the first is usually a partial opening month)
    anchor = 1 if len(raw) >= 2 else 0
    base = raw[anchor] / seasonal_factor(sea, month_index(dates[anchor]))
    if base <= 0:
        base = base_guess

    curve = StartupCurve(L=L, k=k, t0=fit.startup_t0, base=base)
    last = len(raw) - 1
    nudge = raw[last] - evaluate(last, curve) * seasonal_factor(sea, month_index(dates[last]))

    trend = evaluate_path(range(len(raw)), curve)
    s = [seasonal_factor(sea, month_index(d)) for d in dates]
    residual = [v - (tr * si + nudge) for v, tr, si in zip(raw, trend, s)]
    std_dev = float(np.sqrt(np.mean(np.square(residual)))) if residual else 0.0

    log.debug("startup_model", k=k, L=L, base=base, nudge=nudge)
    comp = Components(trend=list(trend), seasonal=s, residual=residual)
    return curve, sea, nudge, fit.startup_nudge_decay, std_dev, comp


def analyze_store(
    name: str,
    series: TimeSeries,
    global_max_month,
    global_stats: Optional[GlobalStats] = None,
    block: Optional[str] = None,
    region: Optional[str] = None,
    prefecture: Optional[str] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> FittedStoreModel:
    """Fit one store's series. Degenerate data gives an error model, never an exception."""
    fit = settings.fit
    log = get_store_logger(__name__, name)

    raw, dates = list(series.raw), list(series.dates)
    if not raw:
        return _error_model(name, series, block, region, prefecture, "No data")

    is_active = is_active_store(series.last_date, global_max_month, fit.active_window_days)
    mask = outlier_mask(raw, fit)
    series = TimeSeries(dates=dates, raw=raw, mask=mask)

    valid = np.array([v for v, ok in zip(raw, mask) if ok], dtype=float)
    base_guess = float(valid[:3].mean()) if valid.size else 0.0

    if valid.size < fit.startup_min_points:
        if not is_active:
            log.info("insufficient_data", valid_points=int(valid.size))
            return _error_model(name, series, block, region, prefecture, "Insufficient data")
        curve, sea, nudge, decay, std_dev, comp = _fit_startup(
            series, base_guess, global_stats, fit, log)
        return FittedStoreModel(
            name=name, curve=curve, seasonal=sea, nudge=nudge, nudge_decay=decay,
            std_dev=std_dev, is_active=True, series=series, block=block, region=region,
            prefecture=prefecture, aic=0.0, components=comp, stats=compute_store_stats(series),
        )

    max_val = float(valid.max())
    problem = FitProblem(
        data=np.asarray(raw, dtype=float),
        mask=np.asarray(mask, dtype=bool),
        base=base_guess,
        max_val=max_val,
        variance=float(valid.var()),
        settings=fit,
    )

    covid_idx, covid_guess = detect_covid_shock(dates, raw)
    shift_idx, shift_guess = detect_mean_shift(raw, mask, fit)
    shock_idx, shock_guess = (shift_idx, shift_guess) if shift_idx != -1 else (covid_idx, covid_guess)

    # 1. Standard model
    x_std, sse_std, n_std = optimize([max(fit.default_growth_L, max_val * 0.2), fit.default_k, len(raw) / 2],
                                     problem)
    curve: TrendCurve = problem.curve(x_std)
    best_aic = aic(sse_std, n_std, 3)

    # 2. Single shift model
    n = len(raw)
    if shock_idx != -1 and shock_idx > 5 and n - shock_idx > 5:
        shift_problem = FitProblem(
            data=problem.data, mask=problem.mask, base=problem.base, max_val=max_val,
            variance=problem.variance, mode=CurveMode.SHIFT, shock_index=shock_idx, settings=fit,
        )
        x0 = [x_std[0], x_std[1], x_std[2], max(0.0, x_std[0] + shock_guess)]
        x_shift, sse_shift, n_shift = optimize(x0, shift_problem)
        aic_shift = aic(sse_shift, n_shift, 4)
        log.debug("shift_candidate", shock_index=shock_idx, aic_standard=best_aic, aic_shift=aic_shift)
        if aic_shift < best_aic - fit.aic_margin:
            best_aic = aic_shift
            curve = shift_problem.curve(x_shift)

    # Components
    trend = evaluate_path(range(n), curve)
    sea = estimate_seasonal(raw, dates, trend, mask)
    s = [seasonal_factor(sea, month_index(d)) for d in dates]
    residual = [v - tr * si for v, tr, si in zip(raw, trend, s)]
    nudge, decay = estimate_nudge(residual)
    std_dev = float(np.sqrt(np.mean(np.square(residual))))

    log.debug("store_fitted", mode=curve.mode.value, aic=best_aic, k=curve.k, active=is_active)
    return FittedStoreModel(
        name=name,
        curve=curve,
        seasonal=sea,
        nudge=nudge,
        nudge_decay=decay,
        std_dev=std_dev,
        is_active=is_active,
        series=series,
        block=block,
        region=region,
        prefecture=prefecture,
        aic=float(best_aic),
        components=Components(trend=list(trend), seasonal=s, residual=residual),
        stats=compute_store_stats(series),
    )


def compute_global_stats(models: Iterable[FittedStoreModel], quantile: float = 0.75,
                         settings: ForecastSettings = DEFAULT_SETTINGS) -> GlobalStats:
    """Chain priors from the active, successfully fitted stores.

    Growth rate and seasonality are read at the upper quartile: new stores
    are planned against what good stores achieve, not the median.
    """
    mature = [m for m in models if not m.error and m.is_active]
    k = settings.fit.default_k
    if mature:
        ks = sorted(m.k for m in mature)
        k = ks[min(len(ks) - 1, int(len(ks) * quantile))]
        if k <= 0:
            k = settings.fit.default_k

    stats = GlobalStats(
        median_k=float(k),
        standard_growth_L=settings.fit.default_growth_L,
        seasonality=chain_seasonality(mature, quantile),
    )
    logger.info("global_stats", mature_stores=len(mature), k=stats.median_k)
    return stats


def fitted_frame(model: FittedStoreModel) -> pd.DataFrame:
    """Actual vs. fitted table for one store (trend, seasonal, fitted, residual)."""
    comp = model.components
    df = pd.DataFrame({
        "date": model.series.dates,
        "actual": model.series.raw,
        "trend": comp.trend or [np.nan] * len(model.series),
        "seasonal": comp.seasonal or [np.nan] * len(model.series),
        "residual": comp.residual or [np.nan] * len(model.series),
    })
    df["fitted"] = df["actual"] - df["residual"]
    df["valid"] = model.series.mask if model.series.mask is not None else True
    return df
