"""
Forecasting core for multi-store retail chains.

Each store's monthly sales are modelled as

    logistic trend (with optional regime shift) x monthly seasonality
    + a decaying "nudge" carrying the latest actual-vs-model gap

on top of which sit:
- Landing: fiscal-year actuals + paced forecast vs. budget, per store and company
- Monte Carlo: distribution of the fiscal-year landing and the chance to beat budget
- Budget builder: next fiscal year's plan with stretch and overrides
- New-store scenarios: conservative / standard / optimistic openings
- Dispersion: correlation, Gini concentration, area cohesion
- Validation: 12-month holdout backtests with MAPE / RMSE / bias
"""

from .trend import (
    CurveMode,
    StandardCurve,
    StartupCurve,
    ShiftCurve,
    RecoveryCurve,
    DualShiftCurve,
    FixedInflection,
    RatioInflection,
    evaluate,
    evaluate_path,
    curve_from_params,
    curve_to_params,
)
from .models import (
    TimeSeries,
    BudgetSeries,
    FittedStoreModel,
    ForecastPoint,
    ProjectionSummary,
    StoreStats,
)
from .seasonal import seasonal_factor, reference_profile, chain_seasonality, stl_decompose
from .forecasting import forecast_point, forecast_months, forecast_horizon, forecast_frame
from .landing import compute_landing, store_landing, company_landing, CompanyLanding, pace_factor
from .monte_carlo import LandingMCInputs, simulate_landing, simulate_store_landing
from .dispersion import pearson_correlation, gini_coefficient, area_cohesion, zero_sum_score
from .store_stats import compute_store_stats, abc_ranking
from .fitting import GlobalStats, analyze_store, compute_global_stats
from .budget import StoreBudgetPlan, build_store_budget, build_budget_plan, summarize_budget_plan
from .scenario import ScenarioParams, reference_stats, scenario_parameters, project_new_store
from .repository import ModelRepository, InMemoryModelRepository, JsonModelRepository
from .batch import analyze_chain, analyze_chain_sync
from .validation import BacktestResult, ValidationReport, backtest_store, backtest_chain, backtest_chain_sync
from .settings import ForecastSettings, DEFAULT_SETTINGS, load_settings, save_settings
from .periods import fiscal_year_months

__all__ = [
    # Trend
    "CurveMode",
    "StandardCurve",
    "StartupCurve",
    "ShiftCurve",
    "RecoveryCurve",
    "DualShiftCurve",
    "FixedInflection",
    "RatioInflection",
    "evaluate",
    "evaluate_path",
    "curve_from_params",
    "curve_to_params",
    # Records
    "TimeSeries",
    "BudgetSeries",
    "FittedStoreModel",
    "ForecastPoint",
    "ProjectionSummary",
    "StoreStats",
    # Seasonality
    "seasonal_factor",
    "reference_profile",
    "chain_seasonality",
    "stl_decompose",
    # Forecast
    "forecast_point",
    "forecast_months",
    "forecast_horizon",
    "forecast_frame",
    # Landing
    "compute_landing",
    "store_landing",
    "company_landing",
    "CompanyLanding",
    "pace_factor",
    # Monte Carlo
    "LandingMCInputs",
    "simulate_landing",
    "simulate_store_landing",
    # Dispersion
    "pearson_correlation",
    "gini_coefficient",
    "area_cohesion",
    "zero_sum_score",
    # Store statistics
    "compute_store_stats",
    "abc_ranking",
    # Fitting
    "GlobalStats",
    "analyze_store",
    "compute_global_stats",
    "analyze_chain",
    "analyze_chain_sync",
    # Validation
    "BacktestResult",
    "ValidationReport",
    "backtest_store",
    "backtest_chain",
    "backtest_chain_sync",
    # Budget
    "StoreBudgetPlan",
    "build_store_budget",
    "build_budget_plan",
    "summarize_budget_plan",
    "fiscal_year_months",
    # Scenario
    "ScenarioParams",
    "reference_stats",
    "scenario_parameters",
    "project_new_store",
    # Repository
    "ModelRepository",
    "InMemoryModelRepository",
    "JsonModelRepository",
    # Settings
    "ForecastSettings",
    "DEFAULT_SETTINGS",
    "load_settings",
    "save_settings",
]
