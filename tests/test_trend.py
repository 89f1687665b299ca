"""
Tests for logistic trend curves.
"""
import math

import numpy as np
import pytest

from storeplan_suite.core.trend import (
    CurveMode,
    DualShiftCurve,
    FixedInflection,
    RatioInflection,
    RecoveryCurve,
    ShiftCurve,
    StandardCurve,
    StartupCurve,
    curve_from_params,
    curve_to_params,
    evaluate,
    evaluate_path,
    potential,
    scale_curve,
    shock_indices,
)


@pytest.mark.unit
class TestStandardCurve:
    """Tests for the plain logistic curve."""

    def test_value_at_inflection_is_half_potential(self):
        """k=0.1, L=3000, base=0 at t0 gives 1500."""
        curve = StandardCurve(L=3000, k=0.1, t0=12, base=0)
        assert evaluate(12, curve) == pytest.approx(1500.0)

    def test_base_is_added(self):
        curve = StandardCurve(L=1000, k=0.2, t0=5, base=250)
        assert evaluate(5, curve) == pytest.approx(750.0)

    def test_monotone_for_positive_k(self):
        """Standard curve should never decrease when k > 0."""
        curve = StandardCurve(L=2500, k=0.15, t0=20, base=100)
        path = evaluate_path(range(120), curve)
        assert np.all(np.diff(path) >= 0)

    def test_output_never_negative(self):
        """Negative base is clamped to zero."""
        curve = StandardCurve(L=100, k=0.1, t0=0, base=-5000)
        assert evaluate(0, curve) == 0.0
        assert np.all(evaluate_path(range(-50, 50), curve) >= 0)

    def test_extreme_t_does_not_overflow(self):
        curve = StandardCurve(L=100, k=1.0, t0=0)
        with np.errstate(over="raise"):
            assert evaluate(-1e6, curve) == pytest.approx(0.0)
            assert evaluate(1e6, curve) == pytest.approx(100.0)

    def test_evaluate_path_matches_evaluate(self):
        curve = StandardCurve(L=2000, k=0.3, t0=8, base=50)
        ts = np.arange(0, 30)
        np.testing.assert_allclose(evaluate_path(ts, curve), [evaluate(t, curve) for t in ts])


@pytest.mark.unit
class TestShiftCurves:
    """Tests for multi-phase curves."""

    def test_shift_continuous_at_shock(self):
        """Value just before the shock equals the value at the shock."""
        curve = ShiftCurve(L=1000, k=0.2, t0=10, base=100, shock_index=20, L_post=2000)
        assert evaluate(20 - 1e-9, curve) == pytest.approx(evaluate(20, curve), abs=1e-3)

    def test_shift_changes_growth_after_shock(self):
        standard = StandardCurve(L=1000, k=0.2, t0=10, base=100)
        shifted = ShiftCurve(L=1000, k=0.2, t0=10, base=100, shock_index=20, L_post=2000)
        assert evaluate(10, shifted) == pytest.approx(evaluate(10, standard))
        assert evaluate(40, shifted) > evaluate(40, standard)

    def test_shift_with_same_potential_matches_standard(self):
        standard = StandardCurve(L=1000, k=0.2, t0=10, base=100)
        shifted = ShiftCurve(L=1000, k=0.2, t0=10, base=100, shock_index=20, L_post=1000)
        np.testing.assert_allclose(evaluate_path(range(60), shifted), evaluate_path(range(60), standard))

    def test_recovery_continuous_at_shock(self):
        curve = RecoveryCurve(L=1500, k=0.1, t0=15, base=200, shock_index=24,
                              L_post=800, k_post=0.4, t0_post=30)
        assert evaluate(24 - 1e-9, curve) == pytest.approx(evaluate(24, curve), abs=1e-3)

    def test_dual_shift_continuous_at_both_shocks(self):
        curve = DualShiftCurve(L=1500, k=0.1, t0=15, base=200, shock_index=20,
                               L_mid=500, shock_index_2=40, L_post=2500)
        for s in (20, 40):
            assert evaluate(s - 1e-9, curve) == pytest.approx(evaluate(s, curve), abs=1e-3)

    def test_dual_shift_path_matches_evaluate(self):
        curve = DualShiftCurve(L=1500, k=0.1, t0=15, base=200, shock_index=20,
                               L_mid=500, shock_index_2=40, L_post=2500)
        ts = np.arange(0, 60)
        np.testing.assert_allclose(evaluate_path(ts, curve), [evaluate(t, curve) for t in ts])

    def test_potential_and_shock_indices(self):
        curve = ShiftCurve(L=1000, k=0.2, t0=10, base=100, shock_index=20, L_post=2000)
        assert potential(curve) == 2000
        assert shock_indices(curve) == (20,)
        assert shock_indices(StandardCurve(L=1, k=1, t0=0)) == ()

    def test_unknown_curve_type_raises(self):
        with pytest.raises(TypeError):
            evaluate(0, object())


@pytest.mark.unit
class TestInflection:
    """Tests for inflection point strategies."""

    def test_fixed_inflection(self):
        assert FixedInflection().resolve(0.3) == 12.0

    def test_ratio_inflection(self):
        """t0 = ln((1 - r) / r) / k, so the curve starts at r * L."""
        strategy = RatioInflection(0.1)
        t0 = strategy.resolve(0.1)
        assert t0 == pytest.approx(math.log(9) / 0.1)

        curve = StartupCurve.with_inflection(L=3000, k=0.1, inflection=strategy)
        assert evaluate(0, curve) == pytest.approx(300.0)

    def test_invalid_ratio_raises(self):
        with pytest.raises(ValueError):
            RatioInflection(1.5)
        with pytest.raises(ValueError):
            RatioInflection(0.0)

    def test_ratio_needs_positive_k(self):
        with pytest.raises(ValueError):
            RatioInflection(0.5).resolve(0.0)

    def test_startup_default_inflection(self):
        curve = StartupCurve.with_inflection(L=3000, k=0.1)
        assert curve.t0 == 12.0
        assert curve.mode == CurveMode.STARTUP


@pytest.mark.unit
class TestCurveParams:
    """Tests for building curves from records."""

    def test_standard_from_params(self):
        curve = curve_from_params("standard", {"L": 3000, "k": 0.1, "t0": 12, "base": 10})
        assert curve == StandardCurve(L=3000, k=0.1, t0=12, base=10)

    def test_startup_t0_defaults_to_twelve(self):
        curve = curve_from_params("startup", {"L": 3000, "k": 0.1})
        assert isinstance(curve, StartupCurve)
        assert curve.t0 == 12.0

    def test_shift_requires_shock_index(self):
        with pytest.raises(ValueError):
            curve_from_params("shift", {"L": 3000, "k": 0.1, "t0": 12})

    def test_unknown_mode_raises(self):
        with pytest.raises(ValueError):
            curve_from_params("bogus", {"L": 1})

    def test_shift_from_params_with_shock(self):
        curve = curve_from_params("shift", {"L": 3000, "k": 0.1, "t0": 12, "L_post": 3500}, shock_index=18)
        assert isinstance(curve, ShiftCurve)
        assert curve.shock_index == 18
        assert curve.L_post == 3500

    def test_params_round_trip(self):
        curve = DualShiftCurve(L=1500, k=0.1, t0=15, base=200, shock_index=20,
                               L_mid=500, shock_index_2=40, L_post=2500)
        assert curve_from_params(curve.mode, curve_to_params(curve)) == curve

    def test_scale_curve_scales_active_regime(self):
        curve = ShiftCurve(L=1000, k=0.2, t0=10, base=100, shock_index=20, L_post=2000)
        scaled = scale_curve(curve, l_multiplier=1.5)
        assert scaled.L_post == pytest.approx(3000)
        assert scaled.L == 1000
