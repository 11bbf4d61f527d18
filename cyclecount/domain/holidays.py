"""
Holiday table for working-day arithmetic.

Supports:
- A fixed, versioned table of statutory holidays (built-in: Ontario 2024-2026)
- Custom closures loaded from JSON and merged over the built-in table
- Rule types: single-date, range, fixed-date (annual or monthly recurrence)

Dates outside the years covered by the table simply are not holidays, so
callers fall back to weekend-only treatment without any lookup failure.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class HolidayType(Enum):
    """Type of holiday rule."""
    SINGLE_DATE = "single"     # One-time date (ISO format)
    RANGE = "range"            # Date range (start-end, inclusive)
    FIXED_DATE = "fixed"       # Annual (MM-DD) or monthly (DD) recurrence


@dataclass
class HolidayRule:
    """
    Definition of a holiday or closure.

    Attributes:
        name: Human-readable name (e.g., "Canada Day", "Stocktake shutdown")
        type: Rule type (single, range, fixed)
        params: Type-specific parameters:
            - single: {"date": "YYYY-MM-DD"}
            - range: {"start": "YYYY-MM-DD", "end": "YYYY-MM-DD"}
            - fixed (annual): {"month": int, "day": int}
            - fixed (monthly): {"day": int}
    """
    name: str
    type: HolidayType
    params: Dict[str, Any]

    def dates_in_year(self, year: int) -> Set[date]:
        """Expand this rule to the concrete dates it covers in *year*."""
        found: Set[date] = set()

        if self.type == HolidayType.SINGLE_DATE:
            rule_date = date.fromisoformat(self.params["date"])
            if rule_date.year == year:
                found.add(rule_date)

        elif self.type == HolidayType.RANGE:
            start = date.fromisoformat(self.params["start"])
            end = date.fromisoformat(self.params["end"])
            current = max(start, date(year, 1, 1))
            last = min(end, date(year, 12, 31))
            while current <= last:
                found.add(current)
                current += timedelta(days=1)

        elif self.type == HolidayType.FIXED_DATE:
            months = [self.params["month"]] if "month" in self.params else range(1, 13)
            for month in months:
                try:
                    found.add(date(year, month, self.params["day"]))
                except ValueError:
                    # Invalid date (e.g., Feb 30)
                    pass

        return found


# Ontario statutory holidays observed by the cycle-count sites.
# Versioned: add a new version string whenever a year is appended.
ONTARIO_STATUTORY_VERSION = "2024-2026"
ONTARIO_STATUTORY: Tuple[Tuple[str, str], ...] = (
    ("2024-01-01", "New Year's Day"),
    ("2024-02-19", "Family Day"),
    ("2024-03-29", "Good Friday"),
    ("2024-05-20", "Victoria Day"),
    ("2024-07-01", "Canada Day"),
    ("2024-09-02", "Labour Day"),
    ("2024-10-14", "Thanksgiving"),
    ("2024-12-25", "Christmas Day"),
    ("2024-12-26", "Boxing Day"),
    ("2025-01-01", "New Year's Day"),
    ("2025-02-17", "Family Day"),
    ("2025-04-18", "Good Friday"),
    ("2025-05-19", "Victoria Day"),
    ("2025-07-01", "Canada Day"),
    ("2025-09-01", "Labour Day"),
    ("2025-10-13", "Thanksgiving"),
    ("2025-12-25", "Christmas Day"),
    ("2025-12-26", "Boxing Day"),
    ("2026-01-01", "New Year's Day"),
    ("2026-02-16", "Family Day"),
    ("2026-04-03", "Good Friday"),
    ("2026-05-18", "Victoria Day"),
    ("2026-07-01", "Canada Day"),
    ("2026-09-07", "Labour Day"),
    ("2026-10-12", "Thanksgiving"),
    ("2026-12-25", "Christmas Day"),
    ("2026-12-28", "Boxing Day (observed)"),
)


@dataclass
class HolidayCalendar:
    """
    Versioned holiday table.

    Lookups are memoized per year: the first query for a year expands every
    rule once and later queries are plain set membership tests.
    """
    rules: List[HolidayRule] = field(default_factory=list)
    version: str = "custom"
    region: str = ""
    _cache: Dict[int, FrozenSet[date]] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dates(
        cls,
        entries: Iterable[Tuple[str, str]],
        version: str = "custom",
        region: str = "",
    ) -> "HolidayCalendar":
        """Build a table from (iso_date, name) pairs."""
        rules = [
            HolidayRule(name=name, type=HolidayType.SINGLE_DATE, params={"date": iso})
            for iso, name in entries
        ]
        return cls(rules=rules, version=version, region=region)

    @classmethod
    def ontario(cls) -> "HolidayCalendar":
        """Built-in Ontario statutory table."""
        return cls.from_dates(ONTARIO_STATUTORY, version=ONTARIO_STATUTORY_VERSION, region="CA-ON")

    @classmethod
    def empty(cls) -> "HolidayCalendar":
        """Weekend-only calendar (no holidays at all)."""
        return cls(rules=[], version="none")

    @classmethod
    def from_config(cls, config_path: Path, base: Optional["HolidayCalendar"] = None) -> "HolidayCalendar":
        """
        Load custom closures from a JSON file and merge them over *base*.

        Expected layout::

            {"version": "2026.1", "region": "CA-ON",
             "holidays": [{"name": "...", "type": "single", "params": {...}}]}

        Fallback: if the file is missing or unreadable, returns *base*
        (the built-in Ontario table when *base* is None). Invalid rules are
        skipped with a warning.

        Args:
            config_path: Path to holidays.json
            base: Table to extend (defaults to the built-in table)

        Returns:
            HolidayCalendar instance
        """
        base = base if base is not None else cls.ontario()
        config_path = Path(config_path)
        if not config_path.exists():
            return base

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not load holiday table from %s: %s", config_path, e)
            return base

        rules = list(base.rules)
        for rule_data in config.get("holidays", []):
            try:
                rules.append(_parse_rule(rule_data))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping invalid holiday rule %r: %s", rule_data, e)

        return cls(
            rules=rules,
            version=str(config.get("version", base.version)),
            region=str(config.get("region", base.region)),
        )

    def _dates_for_year(self, year: int) -> FrozenSet[date]:
        cached = self._cache.get(year)
        if cached is None:
            found: Set[date] = set()
            for rule in self.rules:
                found |= rule.dates_in_year(year)
            cached = frozenset(found)
            self._cache[year] = cached
        return cached

    def is_holiday(self, check_date: date) -> bool:
        """True if *check_date* is listed in the table."""
        return check_date in self._dates_for_year(check_date.year)

    def list_holidays(self, year: int) -> List[date]:
        """Sorted holiday dates for *year*."""
        return sorted(self._dates_for_year(year))


def _parse_rule(rule_data: Dict[str, Any]) -> HolidayRule:
    """Validate one JSON rule and turn it into a HolidayRule."""
    rule = HolidayRule(
        name=rule_data["name"],
        type=HolidayType(rule_data.get("type", "single")),
        params=dict(rule_data.get("params", {})),
    )

    if rule.type == HolidayType.SINGLE_DATE:
        if "date" not in rule.params:
            raise ValueError(f"Single-date rule '{rule.name}' missing 'date' param")
        date.fromisoformat(rule.params["date"])

    elif rule.type == HolidayType.RANGE:
        if "start" not in rule.params or "end" not in rule.params:
            raise ValueError(f"Range rule '{rule.name}' missing start/end params")
        start = date.fromisoformat(rule.params["start"])
        end = date.fromisoformat(rule.params["end"])
        if start > end:
            raise ValueError(f"Range rule '{rule.name}': start > end")

    elif rule.type == HolidayType.FIXED_DATE:
        if "day" not in rule.params:
            raise ValueError(f"Fixed-date rule '{rule.name}' missing 'day' param")
        day = int(rule.params["day"])
        if not (1 <= day <= 31):
            raise ValueError(f"Invalid day {day} in rule '{rule.name}'")
        rule.params["day"] = day
        if "month" in rule.params:
            month = int(rule.params["month"])
            if not (1 <= month <= 12):
                raise ValueError(f"Invalid month {month} in rule '{rule.name}'")
            rule.params["month"] = month

    return rule
