# storeplan_suite/core/trend.py
"""
Logistic trend curves for store sales.

A store's baseline is an S-shaped curve

    base + L / (1 + exp(-k (t - t0)))

with t the month index (0 = first month of data). Regime changes (a COVID
shock, a refurbishment, a competitor opening) are separate curve types. Every
multi-phase curve is continuous at its shock index: the post-shock phase
starts from the value the previous phase reached at the shock and grows by
L_post along its own sigmoid.

Curve types: StandardCurve, StartupCurve, ShiftCurve, RecoveryCurve,
DualShiftCurve. evaluate() dispatches on the type; there are no mode strings
below curve_from_params().
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping, Optional, Sequence, Union
import math

import numpy as np


class CurveMode(Enum):
    """Fit regimes as stored in model records."""

    STANDARD = "standard"
    SHIFT = "shift"
    DUAL_SHIFT = "dual_shift"
    RECOVERY = "recovery"
    STARTUP = "startup"


def sigmoid(t, k: float, t0: float):
    """1 / (1 + exp(-k (t - t0))), overflow-safe, scalar or array."""
    x = np.clip(-k * (np.asarray(t, dtype=float) - t0), -700.0, 700.0)
    out = 1.0 / (1.0 + np.exp(x))
    return float(out) if np.ndim(out) == 0 else out


# ---------- inflection strategies ----------

@dataclass(frozen=True)
class FixedInflection:
    """Inflection at a fixed month (new stores: month 12)."""

    t0: float = 12.0

    def resolve(self, k: float) -> float:
        return self.t0


@dataclass(frozen=True)
class RatioInflection:
    """Inflection implied by the share of L already reached at t = 0."""

    initial_ratio: float

    def __post_init__(self):
        if not 0.0 < self.initial_ratio < 1.0:
            raise ValueError("initial_ratio must be strictly between 0 and 1")

    def resolve(self, k: float) -> float:
        if k <= 0:
            raise ValueError("k must be positive to derive an inflection point")
        r = self.initial_ratio
        return math.log((1.0 - r) / r) / k


InflectionStrategy = Union[FixedInflection, RatioInflection]


# ---------- curve variants ----------

@dataclass(frozen=True)
class StandardCurve:
    L: float
    k: float
    t0: float
    base: float = 0.0

    mode = CurveMode.STANDARD


@dataclass(frozen=True)
class StartupCurve:
    L: float
    k: float
    t0: float = 12.0
    base: float = 0.0

    mode = CurveMode.STARTUP

    @classmethod
    def with_inflection(cls, L: float, k: float, base: float = 0.0,
                        inflection: Optional[InflectionStrategy] = None) -> "StartupCurve":
        inflection = inflection or FixedInflection()
        return cls(L=L, k=k, t0=inflection.resolve(k), base=base)


@dataclass(frozen=True)
class ShiftCurve:
    L: float
    k: float
    t0: float
    base: float
    shock_index: int
    L_post: float

    mode = CurveMode.SHIFT


@dataclass(frozen=True)
class RecoveryCurve:
    L: float
    k: float
    t0: float
    base: float
    shock_index: int
    L_post: float
    k_post: float
    t0_post: float

    mode = CurveMode.RECOVERY


@dataclass(frozen=True)
class DualShiftCurve:
    L: float
    k: float
    t0: float
    base: float
    shock_index: int
    L_mid: float
    shock_index_2: int
    L_post: float

    mode = CurveMode.DUAL_SHIFT


TrendCurve = Union[StandardCurve, StartupCurve, ShiftCurve, RecoveryCurve, DualShiftCurve]


def _logistic(t, base, L, k, t0):
    return base + L * sigmoid(t, k, t0)


def _phase(t, anchor_t, anchor_value, L, k, t0):
    """Sigmoid growth of L starting at (anchor_t, anchor_value)."""
    return anchor_value + L * (sigmoid(t, k, t0) - sigmoid(anchor_t, k, t0))


def _raw_values(t, curve: TrendCurve):
    """Unclamped curve value; t may be a scalar or an array."""
    if not isinstance(curve, (StandardCurve, StartupCurve, ShiftCurve, RecoveryCurve, DualShiftCurve)):
        raise TypeError(f"Unsupported curve type: {type(curve).__name__}")
    t = np.asarray(t, dtype=float)
    pre = _logistic(t, curve.base, curve.L, curve.k, curve.t0)
    if isinstance(curve, (StandardCurve, StartupCurve)):
        return pre

    s1 = curve.shock_index
    at_first = _logistic(s1, curve.base, curve.L, curve.k, curve.t0)

    if isinstance(curve, ShiftCurve):
        post = _phase(t, s1, at_first, curve.L_post, curve.k, curve.t0)
        return np.where(t < s1, pre, post)

    if isinstance(curve, RecoveryCurve):
        post = _phase(t, s1, at_first, curve.L_post, curve.k_post, curve.t0_post)
        return np.where(t < s1, pre, post)

    if isinstance(curve, DualShiftCurve):
        s2 = curve.shock_index_2
        mid = _phase(t, s1, at_first, curve.L_mid, curve.k, curve.t0)
        at_second = _phase(s2, s1, at_first, curve.L_mid, curve.k, curve.t0)
        post = _phase(t, s2, at_second, curve.L_post, curve.k, curve.t0)
        return np.where(t < s1, pre, np.where(t < s2, mid, post))


def evaluate(t: float, curve: TrendCurve) -> float:
    """Expected baseline at month index t, never negative.

    t outside the observed range simply extrapolates the active phase.
    """
    return max(0.0, float(_raw_values(t, curve)))


def evaluate_path(ts: Sequence[float], curve: TrendCurve) -> np.ndarray:
    """Vectorised evaluate() over many month indices."""
    return np.maximum(0.0, np.atleast_1d(np.asarray(_raw_values(ts, curve), dtype=float)))


def potential(curve: TrendCurve) -> float:
    """Asymptotic potential of the active regime (L, or L_post after a shift)."""
    if isinstance(curve, (ShiftCurve, RecoveryCurve, DualShiftCurve)):
        return curve.L_post
    return curve.L


def shock_indices(curve: TrendCurve) -> tuple:
    if isinstance(curve, DualShiftCurve):
        return (curve.shock_index, curve.shock_index_2)
    if isinstance(curve, (ShiftCurve, RecoveryCurve)):
        return (curve.shock_index,)
    return ()


def scale_curve(curve: TrendCurve, l_multiplier: float = 1.0, k_multiplier: float = 1.0) -> TrendCurve:
    """What-if copy of a curve: potential and growth rate scaled.

    Post-shift regimes scale L_post (the regime the forecast runs in).
    """
    if isinstance(curve, RecoveryCurve):
        return replace(curve, L_post=curve.L_post * l_multiplier,
                       k_post=curve.k_post * k_multiplier)
    if isinstance(curve, (ShiftCurve, DualShiftCurve)):
        return replace(curve, L_post=curve.L_post * l_multiplier, k=curve.k * k_multiplier)
    return replace(curve, L=curve.L * l_multiplier, k=curve.k * k_multiplier)


def curve_from_params(
    mode: Union[str, CurveMode],
    params: Mapping[str, float],
    shock_index: int = -1,
    shock_index_2: int = -1,
) -> TrendCurve:
    """Build a curve from a loose record ({'L', 'k', 't0', 'base', 'L_post', ...})."""
    mode = CurveMode(mode)
    L = float(params.get("L", 0.0) or 0.0)
    k = float(params.get("k", 0.0) or 0.0)
    t0 = float(params.get("t0", 0.0) or 0.0)
    base = float(params.get("base", 0.0) or 0.0)
    L_post = float(params.get("L_post", L) if params.get("L_post") is not None else L)

    if mode == CurveMode.STANDARD:
        return StandardCurve(L=L, k=k, t0=t0, base=base)
    if mode == CurveMode.STARTUP:
        startup_t0 = params.get("t0")
        return StartupCurve(L=L, k=k, t0=float(12.0 if startup_t0 is None else startup_t0), base=base)
    if shock_index < 0:
        shock_index = int(params.get("shockIdx", params.get("shock_index", -1)))
    if shock_index < 0:
        raise ValueError(f"{mode.value} curve requires a shock index")
    if mode == CurveMode.SHIFT:
        return ShiftCurve(L=L, k=k, t0=t0, base=base, shock_index=shock_index, L_post=L_post)
    if mode == CurveMode.RECOVERY:
        return RecoveryCurve(
            L=L, k=k, t0=t0, base=base, shock_index=shock_index, L_post=L_post,
            k_post=float(params.get("k_post", k)),
            t0_post=float(params.get("t0_post", t0)),
        )
    if shock_index_2 < 0:
        shock_index_2 = int(params.get("shockIdx2", params.get("shock_index_2", -1)))
    if shock_index_2 < shock_index:
        raise ValueError("dual_shift curve requires shock_index_2 after shock_index")
    return DualShiftCurve(
        L=L, k=k, t0=t0, base=base, shock_index=shock_index,
        L_mid=float(params.get("L_mid", L)), shock_index_2=shock_index_2, L_post=L_post,
    )


def curve_to_params(curve: TrendCurve) -> dict:
    """Inverse of curve_from_params (record-shaped dict, shock indices included)."""
    out = {"L": curve.L, "k": curve.k, "t0": curve.t0, "base": curve.base}
    if isinstance(curve, (ShiftCurve, RecoveryCurve, DualShiftCurve)):
        out["L_post"] = curve.L_post
        out["shockIdx"] = curve.shock_index
    if isinstance(curve, RecoveryCurve):
        out["k_post"] = curve.k_post
        out["t0_post"] = curve.t0_post
    if isinstance(curve, DualShiftCurve):
        out["L_mid"] = curve.L_mid
        out["shockIdx2"] = curve.shock_index_2
    return out
