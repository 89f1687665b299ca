"""
Tests for the new-store opening simulator.
"""
import pytest

from storeplan_suite.core.scenario import (
    DEFAULT_SCENARIOS,
    ScenarioParams,
    cannibal_loss,
    project_new_store,
    reference_stats,
    scenario_parameters,
)
from storeplan_suite.core.trend import RatioInflection, StandardCurve

STANDARD = {"standard": ScenarioParams(base=0.0, L=3000.0, k=0.1)}


@pytest.mark.unit
class TestReferenceStats:
    """Tests for reference-store statistics."""

    @pytest.fixture
    def references(self, make_model):
        return [
            make_model(name="r1", curve=StandardCurve(L=2000, k=0.1, t0=12, base=500)),
            make_model(name="r2", curve=StandardCurve(L=4000, k=0.2, t0=12, base=500)),
        ]

    def test_means_and_spread(self, references):
        ref = reference_stats(references)
        assert ref.avg_L == pytest.approx(3000)
        assert ref.std_L == pytest.approx(1000)
        assert ref.avg_k == pytest.approx(0.15)
        assert ref.std_base == pytest.approx(0)
        assert ref.n_models == 2
        assert set(ref.ghost_lines) == {"r1", "r2"}

    def test_no_references(self):
        assert reference_stats([]) is None
        assert scenario_parameters(None) == DEFAULT_SCENARIOS

    def test_scenario_spread(self, references):
        params = scenario_parameters(reference_stats(references))
        assert params["conservative"].L == pytest.approx(2500)
        assert params["conservative"].k == pytest.approx(0.125)
        assert params["conservative"].base == pytest.approx(450)
        assert params["optimistic"].L == pytest.approx(3500)
        assert params["optimistic"].k == pytest.approx(0.175)
        assert params["standard"].base == pytest.approx(500)

    def test_conservative_k_floor(self, make_model):
        refs = [make_model(name=str(k), curve=StandardCurve(L=1000, k=k, t0=12)) for k in (0.01, 0.05)]
        assert scenario_parameters(reference_stats(refs))["conservative"].k == 0.05


@pytest.mark.unit
class TestProjection:
    """Tests for project_new_store."""

    def test_inflection_month(self):
        result = project_new_store(STANDARD, "2025-04")
        assert len(result.frame) == 36
        assert result.frame.loc[12, "standard"] == 1500.0
        assert result.frame.loc[0, "month"] == "2025-04"

    def test_ratio_inflection_start(self):
        result = project_new_store(STANDARD, "2025-04", inflection=RatioInflection(0.1))
        assert result.frame.loc[0, "standard"] == 300.0

    def test_seasonality_applied(self):
        sea = [1.0] * 12
        sea[3] = 2.0
        result = project_new_store(STANDARD, "2025-04", months=13, seasonality=sea)
        assert result.frame.loc[12, "standard"] == 3000.0

    def test_cannibalisation(self, make_model):
        neighbour = make_model(name="near", last_year_sales=12000.0)
        result = project_new_store(STANDARD, "2025-04", months=12, cannibal=[(neighbour, 10)])
        assert cannibal_loss([(neighbour, 10)]) == pytest.approx(100)
        assert result.cannibal_loss_total == pytest.approx(1200)
        row = result.frame.loc[0]
        assert row["standard_net"] == row["standard"] - 100

    def test_summary(self):
        result = project_new_store(STANDARD, "2025-04", months=24)
        summary = result.summary["standard"]
        assert summary["total_sales"] == pytest.approx(result.frame["standard"].sum())
        assert summary["final_monthly"] == result.frame.loc[23, "standard"]
        assert summary["net_increase"] == pytest.approx(summary["total_sales"])

    def test_roi_month(self):
        assert project_new_store(STANDARD, "2025-04", initial_investment=0).roi_month("standard") == 1
        never = project_new_store(STANDARD, "2025-04", initial_investment=1e9)
        assert never.roi_month("standard") is None

    def test_all_scenarios_projected(self):
        result = project_new_store(DEFAULT_SCENARIOS, "2025-04")
        for name in DEFAULT_SCENARIOS:
            assert name in result.frame.columns
            assert f"{name}_net" in result.frame.columns
        assert result.frame.loc[35, "optimistic"] > result.frame.loc[35, "conservative"]

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            project_new_store(STANDARD, "2025-04", months=0)
