# storeplan_suite/core/settings.py
"""
Tunable constants for the forecasting core.

Defaults live in the dataclasses below. A YAML file can override any subset:

    fit:
      max_k: 1.5
      default_growth_L: 2500
    landing:
      pace_lower: 0.85
    simulation:
      trials: 5000

Exports:
- ForecastSettings (+ nested FitSettings, ForecastDefaults, LandingSettings,
  SimulationSettings, BudgetSettings)
- DEFAULT_SETTINGS
- load_settings(path), save_settings(settings, path)
"""

from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Optional, Tuple

import yaml


@dataclass
class FitSettings:
    min_k: float = 0.0001
    max_k: float = 2.0                 # physical ceiling for the growth rate search
    absolute_max_L: float = 10000.0    # hard ceiling on base + L
    rare_L_threshold: float = 5000.0   # quadratic penalty above this
    default_k: float = 0.1
    default_growth_L: float = 3000.0
    startup_t0: float = 12.0
    startup_min_points: int = 13       # fewer valid points -> startup mode
    mature_min_points: int = 12        # positive months needed for the first pass
    startup_nudge_decay: float = 0.8
    aic_margin: float = 2.5            # shift model must beat standard by this much
    shift_ratio_threshold: float = 0.15
    shift_margin: int = 6
    active_window_days: int = 60
    rescue_months: int = 24
    rescue_band: float = 0.11
    max_iterations: int = 2500
    simplex_step: float = 0.05
    tolerance: float = 1e-6


@dataclass
class ForecastDefaults:
    nudge_decay: float = 0.7           # used when a model carries no decay
    band_growth: float = 0.05          # uncertainty widening per month ahead
    z_score: float = 1.96


@dataclass
class LandingSettings:
    pace_lower: float = 0.8
    pace_upper: float = 1.2

    def __post_init__(self):
        if self.pace_lower > self.pace_upper:
            raise ValueError("pace_lower must not exceed pace_upper")

    @property
    def bounds(self) -> Tuple[float, float]:
        return self.pace_lower, self.pace_upper


@dataclass
class SimulationSettings:
    trials: int = 1000
    volatility_multiplier: float = 1.0
    bins: int = 20
    percentiles: Tuple[int, ...] = (5, 25, 50, 75, 95)

    def __post_init__(self):
        if self.trials <= 0:
            raise ValueError("trials must be positive")
        self.percentiles = tuple(int(p) for p in self.percentiles)


@dataclass
class BudgetSettings:
    fiscal_start_month: int = 7        # July-June fiscal year
    default_stretch: float = 100.0

    def __post_init__(self):
        if not 1 <= self.fiscal_start_month <= 12:
            raise ValueError("fiscal_start_month must be between 1 and 12")


@dataclass
class ForecastSettings:
    fit: FitSettings = field(default_factory=FitSettings)
    forecast: ForecastDefaults = field(default_factory=ForecastDefaults)
    landing: LandingSettings = field(default_factory=LandingSettings)
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    budget: BudgetSettings = field(default_factory=BudgetSettings)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["simulation"]["percentiles"] = list(self.simulation.percentiles)
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ForecastSettings":
        data = data or {}
        sections = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(sections)
        if unknown:
            raise ValueError(f"Unknown settings sections: {sorted(unknown)}")

        kwargs = {}
        for name, f in sections.items():
            section_cls = f.default_factory
            values = data.get(name) or {}
            allowed = {sf.name for sf in fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise ValueError(f"Unknown keys in '{name}': {sorted(bad)}")
            kwargs[name] = section_cls(**values)
        return cls(**kwargs)


DEFAULT_SETTINGS = ForecastSettings()


def load_settings(path: Optional[str] = None) -> ForecastSettings:
    """Load settings from YAML; no path (or a missing file) gives the defaults."""
    if path is None:
        return ForecastSettings()
    p = Path(path)
    if not p.exists():
        return ForecastSettings()
    with open(p, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"Settings file {p} must contain a mapping")
    return ForecastSettings.from_dict(raw)


def save_settings(settings: ForecastSettings, path: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        yaml.safe_dump(settings.to_dict(), f, sort_keys=False)
