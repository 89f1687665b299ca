"""
Tests for seasonal factors.
"""
import numpy as np
import pandas as pd
import pytest

from storeplan_suite.core.periods import month_range
from storeplan_suite.core.seasonal import (
    chain_seasonality,
    estimate_seasonal,
    full_profile,
    normalize_factors,
    reference_profile,
    seasonal_factor,
    stl_decompose,
)

PATTERN = [0.8, 0.9, 1.0, 1.1, 1.2, 1.0, 1.0, 1.0, 0.9, 1.1, 0.9, 1.1]


@pytest.mark.unit
class TestSeasonalFactor:
    """Tests for reading one seasonal slot."""

    def test_valid_slot(self):
        assert seasonal_factor(PATTERN, 4) == pytest.approx(1.2)

    def test_missing_array_means_no_seasonality(self):
        assert seasonal_factor(None, 3) == 1.0
        assert seasonal_factor([], 0) == 1.0

    def test_zero_or_nan_slot_falls_back(self):
        assert seasonal_factor([0.0] * 12, 5) == 1.0
        sea = [1.0] * 12
        sea[2] = float("nan")
        assert seasonal_factor(sea, 2) == 1.0

    def test_out_of_range_month(self):
        assert seasonal_factor(PATTERN, 12) == 1.0
        assert seasonal_factor(PATTERN[:6], 8) == 1.0

    def test_full_profile_fills_gaps(self):
        profile = full_profile([1.2, 0.0, None])
        assert len(profile) == 12
        assert profile[:3] == [1.2, 1.0, 1.0]

    def test_normalize_factors(self):
        np.testing.assert_allclose(normalize_factors([2.0] * 12), [1.0] * 12)
        assert normalize_factors([0.0] * 12) == [1.0] * 12


@pytest.mark.unit
class TestProfiles:
    """Tests for cross-store seasonal profiles."""

    def test_reference_profile_mean_and_std(self, make_model):
        models = [make_model(name="a", seasonal=[1.0] * 12), make_model(name="b", seasonal=[2.0] * 12)]
        profile = reference_profile(models)
        np.testing.assert_allclose(profile.factors, [1.5] * 12)
        np.testing.assert_allclose(profile.std_dev, [0.5] * 12)
        assert profile.n_models == 2

    def test_reference_profile_without_models(self):
        profile = reference_profile([])
        assert profile.factors == [1.0] * 12
        assert profile.n_models == 0

    def test_chain_seasonality_sums_to_twelve(self, make_model):
        models = [make_model(name=str(i), seasonal=[p * (1 + 0.1 * i) for p in PATTERN]) for i in range(5)]
        profile = chain_seasonality(models)
        assert len(profile) == 12
        assert sum(profile) == pytest.approx(12.0)

    def test_chain_seasonality_reads_upper_quartile(self, make_model):
        """Four stores: slot value comes from sorted index floor(4 * 0.75) = 3."""
        models = [make_model(name=str(v), seasonal=[float(v)] * 12) for v in (1, 2, 3, 4)]
        models[0] = make_model(name="peak", seasonal=[10.0] + [1.0] * 11)
        profile = chain_seasonality(models)
        # slot 0: [2, 3, 4, 10] -> 10; other slots: [1, 2, 3, 4] -> 4
        expected = np.array([10.0] + [4.0] * 11)
        np.testing.assert_allclose(profile, expected / expected.sum() * 12)


@pytest.mark.unit
class TestEstimateSeasonal:
    """Tests for per-store factor estimation."""

    def test_recovers_multiplicative_pattern(self):
        dates = month_range("2022-01", 24)
        trend = [100.0] * 24
        raw = [100.0 * PATTERN[i % 12] for i in range(24)]
        sea = estimate_seasonal(raw, dates, trend)
        np.testing.assert_allclose(sea, PATTERN, rtol=1e-9)

    def test_masked_points_are_ignored(self):
        dates = month_range("2022-01", 24)
        trend = [100.0] * 24
        raw = [100.0 * PATTERN[i % 12] for i in range(24)]
        raw[0] = 10000.0
        mask = [True] * 24
        mask[0] = False
        sea = estimate_seasonal(raw, dates, trend, mask)
        np.testing.assert_allclose(sea, PATTERN, rtol=1e-9)

    def test_months_without_data_get_one(self):
        dates = month_range("2022-01", 6)
        sea = estimate_seasonal([100.0] * 6, dates, [100.0] * 6)
        assert np.mean(sea) == pytest.approx(1.0)
        assert len(sea) == 12


@pytest.mark.unit
class TestSTL:
    """Tests for the statsmodels STL wrapper."""

    def test_too_short_raises(self):
        with pytest.raises(ValueError):
            stl_decompose(pd.Series(np.arange(20.0)))

    def test_components_add_up(self):
        idx = pd.period_range("2021-01", periods=36, freq="M")
        values = [100.0 + 2.0 * i + 20.0 * (PATTERN[i % 12] - 1.0) * 5 for i in range(36)]
        frame = stl_decompose(pd.Series(values, index=idx))
        assert list(frame.columns) == ["observed", "trend", "seasonal", "resid"]
        np.testing.assert_allclose(frame["trend"] + frame["seasonal"] + frame["resid"], frame["observed"])
        assert frame.index.equals(idx)
