"""
Tests for month-key helpers.
"""
import datetime

import pandas as pd
import pytest

from storeplan_suite.core.periods import (
    add_months,
    fill_monthly_gaps,
    fiscal_year_months,
    month_diff,
    month_index,
    month_key,
    month_range,
)


@pytest.mark.unit
class TestMonthKeys:
    """Tests for key parsing and arithmetic."""

    @pytest.mark.parametrize("raw", ["2025-03", "2025/03", "2025-03-15", datetime.date(2025, 3, 1),
                                     pd.Period("2025-03", freq="M")])
    def test_month_key_formats(self, raw):
        assert month_key(raw) == "2025-03"

    def test_month_index(self):
        assert month_index("2025-01") == 0
        assert month_index("2025-12") == 11

    def test_month_diff(self):
        assert month_diff("2024-11", "2025-02") == 3
        assert month_diff("2025-02", "2024-11") == -3

    def test_add_months_crosses_year(self):
        assert add_months("2024-12", 1) == "2025-01"
        assert add_months("2025-01", -12) == "2024-01"

    def test_month_range(self):
        assert month_range("2024-11", 3) == ["2024-11", "2024-12", "2025-01"]


@pytest.mark.unit
class TestFiscalYear:
    """Tests for fiscal calendars."""

    def test_july_start(self):
        months = fiscal_year_months(2025)
        assert months[0] == "2024-07"
        assert months[-1] == "2025-06"
        assert len(months) == 12

    def test_calendar_year(self):
        assert fiscal_year_months(2025, start_month=1)[0] == "2025-01"


@pytest.mark.unit
class TestGapFilling:
    """Tests for fill_monthly_gaps."""

    def test_missing_months_become_zero(self):
        dates, raw = fill_monthly_gaps({"2025-03": 3, "2025-01": 1})
        assert dates == ["2025-01", "2025-02", "2025-03"]
        assert raw == [1.0, 0.0, 3.0]

    def test_empty(self):
        assert fill_monthly_gaps({}) == ([], [])
