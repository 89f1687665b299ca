"""
StorePlan Suite - growth & landing forecasting for a retail store chain.

Pure-function forecasting core consumed by the dashboard layer:
- logistic trend curves with shift / recovery / startup regimes
- seasonal factors and nudge correction
- fiscal-year landing projection with pacing clamp
- Monte Carlo landing distribution
- store fitting, ABC ranking, budget building and new-store scenarios
"""

__version__ = "0.3.0"
