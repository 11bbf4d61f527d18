"""
Cycle-count CSV Import

Reads a cycle-count export (one row per SKU, one column per count date) into
a StockDataset with:
- Delimiter detection and UTF-8 → latin-1 fallback
- An explicit column-role contract (identifier, description, vendor,
  lead time, date columns)
- Date headers in ISO (YYYY-MM-DD) or short (DD-Mon) form; the year of
  short headers is inferred from month wraparound in file order
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


ISO_HEADER = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SHORT_HEADER = re.compile(
    r"^\s*(\d{1,2})[-/\s](Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\s*$",
    re.IGNORECASE,
)
MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

CANDIDATE_DELIMITERS = ",;\t|"


@dataclass(frozen=True)
class DateColumn:
    """A header recognised as a count date."""
    field: str
    index: int
    date: date


@dataclass(frozen=True)
class ColumnRoles:
    """
    Typed column contract consumed by the engine.

    Attributes:
        identifier_column: SKU column
        description_column: Optional description column
        vendor_column: Optional vendor / supplier column
        lead_time_column: Optional lead-time-in-weeks column
        date_columns: Date columns in file order
    """
    identifier_column: str
    description_column: Optional[str] = None
    vendor_column: Optional[str] = None
    lead_time_column: Optional[str] = None
    date_columns: Tuple[DateColumn, ...] = ()

    @property
    def chronological_columns(self) -> Tuple[DateColumn, ...]:
        return tuple(sorted(self.date_columns, key=lambda col: (col.date, col.index)))

    @property
    def is_chronological(self) -> bool:
        """True when file order already matches date order."""
        return list(self.chronological_columns) == list(self.date_columns)


@dataclass
class StockRow:
    """Single data row with its raw cells."""
    row_number: int
    identifier: str
    description: str = ""
    vendor: str = ""
    lead_time_raw: str = ""
    cells: Dict[str, str] = field(default_factory=dict)


@dataclass
class StockDataset:
    """Parsed cycle-count export, not yet validated."""
    roles: ColumnRoles
    rows: List[StockRow]
    headers: List[str] = field(default_factory=list)
    source: str = ""

    @property
    def has_demand_columns(self) -> bool:
        return len(self.roles.date_columns) >= 2


def _find_column(headers: Sequence[str], *needles: str) -> Optional[str]:
    """First header whose lowercase form contains every needle."""
    for header in headers:
        lowered = header.lower()
        if all(needle in lowered for needle in needles):
            return header
    return None


def resolve_column_roles(headers: Sequence[str], reference_year: int) -> ColumnRoles:
    """
    Assign a role to each header.

    Args:
        headers: Header row, in file order
        reference_year: Year given to the first short-form (DD-Mon) header

    Returns:
        ColumnRoles
    """
    headers = [h for h in headers if h is not None]
    date_columns: List[DateColumn] = []
    short_headers: List[Tuple[int, str, int, int]] = []

    for index, header in enumerate(headers):
        text = str(header).strip()
        if ISO_HEADER.match(text):
            try:
                date_columns.append(DateColumn(field=header, index=index, date=date.fromisoformat(text)))
            except ValueError:
                logger.warning("Ignoring column %r: not a valid calendar date", header)
            continue
        match = SHORT_HEADER.match(text)
        if match:
            short_headers.append((index, header, int(match.group(1)), MONTHS[match.group(2).lower()[:3]]))

    year = reference_year
    prev_month: Optional[int] = None
    for index, header, day, month in short_headers:
        if prev_month is not None and month < prev_month:
            year += 1
        prev_month = month
        try:
            date_columns.append(DateColumn(field=header, index=index, date=date(year, month, day)))
        except ValueError:
            logger.warning("Ignoring column %r: day %d does not exist in %d-%02d", header, day, year, month)

    date_columns.sort(key=lambda col: col.index)
    date_fields = {col.field for col in date_columns}
    other = [h for h in headers if h not in date_fields]

    identifier = next((h for h in headers if h.strip().lower() == "sku"), None)
    if identifier is None:
        identifier = other[0] if other else (headers[0] if headers else "")

    vendor = _find_column(other, "vendor") or _find_column(other, "supplier")

    return ColumnRoles(
        identifier_column=identifier,
        description_column=_find_column(other, "desc"),
        vendor_column=vendor,
        lead_time_column=_find_column(other, "lead", "week"),
        date_columns=tuple(date_columns),
    )


def _cell(raw_row: Dict[str, Optional[str]], column: Optional[str]) -> str:
    if not column:
        return ""
    value = raw_row.get(column)
    return "" if value is None else str(value).strip()


def parse_stock_rows(
    headers: Sequence[str],
    raw_rows: Iterable[Dict[str, Optional[str]]],
    reference_year: Optional[int] = None,
    source: str = "",
) -> StockDataset:
    """
    Build a StockDataset from already-split rows (e.g. csv.DictReader output).

    Rows keep their raw cell text; coercion and validation happen during
    ingestion so every issue is counted in one place.
    """
    if reference_year is None:
        reference_year = date.today().year
    headers = [h for h in headers if h is not None]
    roles = resolve_column_roles(headers, reference_year)

    rows: List[StockRow] = []
    for row_number, raw_row in enumerate(raw_rows, start=2):  # Row 2 = first data row
        rows.append(StockRow(
            row_number=row_number,
            identifier=_cell(raw_row, roles.identifier_column),
            description=_cell(raw_row, roles.description_column),
            vendor=_cell(raw_row, roles.vendor_column),
            lead_time_raw=_cell(raw_row, roles.lead_time_column),
            cells={col.field: _cell(raw_row, col.field) for col in roles.date_columns},
        ))

    logger.info(
        "Parsed %d rows from %s: %d date columns",
        len(rows), source or "<text>", len(roles.date_columns),
    )
    return StockDataset(roles=roles, rows=rows, headers=list(headers), source=source)


def detect_delimiter(sample: str) -> str:
    """Detect the CSV delimiter (',' if detection fails)."""
    try:
        return csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return ','


def read_csv_text(text: str) -> Tuple[List[str], List[Dict[str, Optional[str]]]]:
    """Split CSV text into (headers, dict rows), skipping blank lines."""
    delimiter = detect_delimiter(text[:4096])
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    headers = [h.strip() if h else h for h in (reader.fieldnames or [])]
    reader.fieldnames = headers
    rows = [row for row in reader if any((v or "").strip() for k, v in row.items() if k is not None)]
    return headers, rows


def read_text_file(filepath: Union[str, Path]) -> str:
    """Read a text export, trying UTF-8 (with BOM) first, then latin-1."""
    filepath = Path(filepath)
    try:
        return filepath.read_text(encoding='utf-8-sig')
    except UnicodeDecodeError:
        logger.warning("UTF-8 decode failed for %s, trying latin-1", filepath)
        return filepath.read_text(encoding='latin-1')


def parse_stock_text(text: str, reference_year: Optional[int] = None, source: str = "") -> StockDataset:
    """Parse cycle-count CSV text."""
    headers, rows = read_csv_text(text)
    return parse_stock_rows(headers, rows, reference_year=reference_year, source=source)


def read_stock_csv(filepath: Union[str, Path], reference_year: Optional[int] = None) -> StockDataset:
    """
    Read a cycle-count CSV file.

    Args:
        filepath: Path to the export
        reference_year: Year for short-form date headers (default: current year)

    Returns:
        StockDataset
    """
    return parse_stock_text(read_text_file(filepath), reference_year=reference_year, source=str(filepath))
