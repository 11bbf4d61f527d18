"""
Tests for the versioned holiday table and JSON closures.
"""
import json
from datetime import date

import pytest

from cyclecount.domain.holidays import (
    HolidayCalendar,
    HolidayRule,
    HolidayType,
    ONTARIO_STATUTORY_VERSION,
)


@pytest.fixture
def ontario():
    return HolidayCalendar.ontario()


def write_config(tmp_path, payload):
    path = tmp_path / "holidays.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestBuiltInTable:
    def test_version_and_years(self, ontario):
        assert ontario.version == ONTARIO_STATUTORY_VERSION
        assert [len(ontario.list_holidays(year)) for year in (2024, 2025, 2026)] == [9, 9, 9]

    def test_nine_holidays_per_year(self, ontario):
        assert len(ontario.list_holidays(2025)) == 9

    def test_good_friday_2025(self, ontario):
        assert ontario.is_holiday(date(2025, 4, 18))

    def test_observed_boxing_day_2026(self, ontario):
        """Boxing Day 2026 falls on a Saturday; the observed Monday is listed."""
        assert ontario.is_holiday(date(2026, 12, 28))
        assert not ontario.is_holiday(date(2026, 12, 26))

    def test_uncovered_year_has_no_holidays(self, ontario):
        assert ontario.list_holidays(2031) == []


class TestHolidayRules:
    def test_range_rule(self):
        rule = HolidayRule("Shutdown", HolidayType.RANGE, {"start": "2025-12-29", "end": "2026-01-02"})
        assert date(2025, 12, 31) in rule.dates_in_year(2025)
        assert date(2026, 1, 3) not in rule.dates_in_year(2026)
        assert len(rule.dates_in_year(2025)) == 3
        assert len(rule.dates_in_year(2026)) == 2

    def test_fixed_annual_rule(self):
        rule = HolidayRule("Christmas Eve", HolidayType.FIXED_DATE, {"month": 12, "day": 24})
        assert rule.dates_in_year(2027) == {date(2027, 12, 24)}

    def test_fixed_monthly_rule_skips_short_months(self):
        rule = HolidayRule("Month-end count", HolidayType.FIXED_DATE, {"day": 31})
        assert len(rule.dates_in_year(2025)) == 7


class TestFromConfig:
    def test_missing_file_returns_base(self, tmp_path, ontario):
        assert HolidayCalendar.from_config(tmp_path / "absent.json", base=ontario) is ontario

    def test_closures_merged_over_statutory(self, tmp_path):
        path = write_config(tmp_path, {
            "version": "2025.2",
            "holidays": [
                {"name": "Summer shutdown", "type": "range",
                 "params": {"start": "2025-08-04", "end": "2025-08-08"}},
            ],
        })
        calendar = HolidayCalendar.from_config(path)
        assert calendar.version == "2025.2"
        assert calendar.is_holiday(date(2025, 8, 6))
        assert calendar.is_holiday(date(2025, 7, 1))

    def test_invalid_rules_skipped(self, tmp_path):
        path = write_config(tmp_path, {
            "holidays": [
                {"name": "No date", "type": "single", "params": {}},
                {"name": "Backwards", "type": "range",
                 "params": {"start": "2025-08-08", "end": "2025-08-04"}},
                {"name": "Bad type", "type": "weekly", "params": {}},
                {"name": "Stocktake", "type": "single", "params": {"date": "2025-03-14"}},
            ],
        })
        calendar = HolidayCalendar.from_config(path, base=HolidayCalendar.empty())
        assert len(calendar.rules) == 1
        assert calendar.is_holiday(date(2025, 3, 14))

    def test_malformed_json_returns_base(self, tmp_path, ontario):
        path = tmp_path / "holidays.json"
        path.write_text("{not json", encoding="utf-8")
        assert HolidayCalendar.from_config(path, base=ontario) is ontario
