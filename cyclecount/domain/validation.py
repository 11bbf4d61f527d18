"""
Data-quality validation for ingested cycle-count rows.

Provides cell coercion rules, small (is_valid, message) validators for
user-editable values, and the collector that tallies issues into a
ValidationReport while a dataset is parsed.
"""
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


NO_DEMAND_COLUMNS_MESSAGE = "No demand columns found: at least two date-labelled stock columns are required"

# "1,250" or "12,000.5"; a lone comma ("1,5") is a decimal comma and stays invalid
_THOUSANDS_GROUPED = re.compile(r"^\d{1,3}(,\d{3})+(\.\d+)?$")


class CellStatus(Enum):
    """Outcome of reading one stock cell."""
    OK = "ok"
    MISSING = "missing"
    INVALID = "invalid"


def coerce_stock_value(raw: Any) -> Tuple[Optional[float], CellStatus]:
    """
    Read a raw stock cell.

    Blank cells are MISSING, non-numeric / non-finite / negative cells are
    INVALID. Commas are accepted only as thousands separators. Neither
    raises; both yield ``None`` so that the series builder applies its zero
    substitution and current-stock selection skips them.

    Returns:
        (value or None, status)
    """
    if raw is None:
        return None, CellStatus.MISSING
    if isinstance(raw, bool):
        return None, CellStatus.INVALID
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if text == "":
            return None, CellStatus.MISSING
        if "," in text:
            if not _THOUSANDS_GROUPED.match(text):
                return None, CellStatus.INVALID
            text = text.replace(",", "")
        try:
            value = float(text)
        except ValueError:
            return None, CellStatus.INVALID
    if not math.isfinite(value) or value < 0:
        return None, CellStatus.INVALID
    return value, CellStatus.OK


def validate_sku_code(sku: Optional[str]) -> Tuple[bool, str]:
    """
    Validate an identifier cell.

    Args:
        sku: Raw identifier

    Returns:
        (is_valid, error_message)
    """
    if sku is None or not str(sku).strip():
        return False, "SKU cannot be empty"
    if len(str(sku).strip()) > 64:
        return False, "SKU cannot exceed 64 characters"
    return True, ""


def validate_lead_weeks(weeks: Any) -> Tuple[bool, str]:
    """Validate a lead time entered by the user (weeks, finite, > 0)."""
    try:
        value = float(weeks)
    except (TypeError, ValueError):
        return False, f"Lead time must be a number, got {weeks!r}"
    if not math.isfinite(value):
        return False, "Lead time must be finite"
    if value <= 0:
        return False, "Lead time must be greater than 0 weeks"
    return True, ""


def validate_planning_window(days: Any) -> Tuple[bool, str]:
    """Validate a planning window length in days."""
    if isinstance(days, bool) or not isinstance(days, int):
        return False, f"Planning window must be an integer number of days, got {days!r}"
    if days <= 0:
        return False, "Planning window must be at least 1 day"
    return True, ""


@dataclass(frozen=True)
class ValidationReport:
    """
    Aggregate data-quality counters for one ingested dataset.

    Attributes:
        missing_cells: Blank stock cells
        invalid_cells: Non-numeric or negative stock cells
        non_chronological_columns: Date columns were not in date order in the file
        replenishment_events: Consecutive readings where stock went up
        duplicate_identifiers: SKUs appearing on more than one row (sorted)
        skipped_rows: Rows without an identifier
        messages: Explanatory notes (e.g. why no series were produced)
    """
    missing_cells: int = 0
    invalid_cells: int = 0
    non_chronological_columns: bool = False
    replenishment_events: int = 0
    duplicate_identifiers: Tuple[str, ...] = ()
    skipped_rows: int = 0
    messages: Tuple[str, ...] = ()

    @property
    def has_issues(self) -> bool:
        return (
            self.missing_cells > 0
            or self.invalid_cells > 0
            or self.non_chronological_columns
            or self.replenishment_events > 0
            or len(self.duplicate_identifiers) > 0
        )

    @property
    def no_data(self) -> bool:
        return NO_DEMAND_COLUMNS_MESSAGE in self.messages

    @property
    def status_label(self) -> str:
        if self.no_data:
            return "No Data"
        return "Needs Attention" if self.has_issues else "Good"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status_label,
            "missing_cells": self.missing_cells,
            "invalid_cells": self.invalid_cells,
            "non_chronological_columns": self.non_chronological_columns,
            "replenishment_events": self.replenishment_events,
            "duplicate_identifiers": list(self.duplicate_identifiers),
            "skipped_rows": self.skipped_rows,
            "messages": list(self.messages),
        }


@dataclass
class ValidationCollector:
    """Mutable tally used while a dataset is being parsed."""
    missing_cells: int = 0
    invalid_cells: int = 0
    non_chronological_columns: bool = False
    replenishment_events: int = 0
    skipped_rows: int = 0
    _seen: Set[str] = field(default_factory=set)
    _duplicates: Set[str] = field(default_factory=set)
    _messages: List[str] = field(default_factory=list)

    def record_cell(self, raw: Any) -> Optional[float]:
        """Coerce a stock cell and count it when missing or invalid."""
        value, status = coerce_stock_value(raw)
        if status == CellStatus.MISSING:
            self.missing_cells += 1
        elif status == CellStatus.INVALID:
            self.invalid_cells += 1
        return value

    def record_identifier(self, sku: str) -> bool:
        """Register an identifier; False when it was already seen (duplicate)."""
        if sku in self._seen:
            self._duplicates.add(sku)
            return False
        self._seen.add(sku)
        return True

    def record_replenishments(self, count: int) -> None:
        self.replenishment_events += count

    def record_skipped_row(self) -> None:
        self.skipped_rows += 1

    def mark_non_chronological(self) -> None:
        self.non_chronological_columns = True

    def add_message(self, message: str) -> None:
        self._messages.append(message)

    def build(self) -> ValidationReport:
        return ValidationReport(
            missing_cells=self.missing_cells,
            invalid_cells=self.invalid_cells,
            non_chronological_columns=self.non_chronological_columns,
            replenishment_events=self.replenishment_events,
            duplicate_identifiers=tuple(sorted(self._duplicates)),
            skipped_rows=self.skipped_rows,
            messages=tuple(self._messages),
        )
