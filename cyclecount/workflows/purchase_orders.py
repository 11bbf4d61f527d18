"""
Purchase-Order CSV Import

Reads vendor purchase-order exports (identifier, vendor, order date,
optional receive date) and derives lead-time samples per vendor.

Rows without a receive date are open orders. Rows with both dates give a
lead-time sample of (receive - order) days / 7 weeks, kept only when the
result is finite and positive.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from dateutil import parser as dateparser

from .stock_import import read_csv_text, read_text_file

logger = logging.getLogger(__name__)


# Column mappings: canonical field name -> accepted aliases (normalised)
COLUMN_ALIASES = {
    "identifier": ["sku", "item", "item_code", "product_code", "part", "part_number", "code"],
    "vendor": ["vendor", "supplier", "vendor_name", "supplier_name"],
    "order_date": ["order_date", "ordered", "po_date", "date_ordered", "ordered_on"],
    "receive_date": ["receive_date", "received", "receipt_date", "date_received", "received_date", "received_on"],
}

# Critical fields (must be mapped, otherwise nothing can be derived)
CRITICAL_FIELDS = ("vendor", "order_date")


@dataclass(frozen=True)
class PurchaseOrder:
    """One purchase-order line."""
    row_number: int
    identifier: str
    vendor: str
    order_date: Optional[date]
    receive_date: Optional[date] = None

    @property
    def is_open(self) -> bool:
        return self.receive_date is None

    @property
    def lead_time_weeks(self) -> Optional[float]:
        """Observed lead time, or None when not a usable sample."""
        if self.order_date is None or self.receive_date is None:
            return None
        weeks = (self.receive_date - self.order_date).days / 7
        if not math.isfinite(weeks) or weeks <= 0:
            return None
        return weeks


@dataclass
class PurchaseOrderImport:
    """Parsed purchase orders plus soft-failure counters."""
    orders: List[PurchaseOrder] = field(default_factory=list)
    column_mapping: Dict[str, str] = field(default_factory=dict)
    skipped_rows: int = 0
    unparsed_dates: int = 0
    source: str = ""

    @property
    def open_orders(self) -> List[PurchaseOrder]:
        return [order for order in self.orders if order.is_open]


def _normalise_header(header: str) -> str:
    return "_".join(header.strip().lower().replace("-", " ").split())


def auto_map_columns(headers: Sequence[str]) -> Dict[str, str]:
    """
    Map canonical field names to CSV headers using aliases.

    Returns:
        Dict canonical field -> CSV header
    """
    normalised = {_normalise_header(h): h for h in headers if h}
    mapping: Dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in normalised:
                mapping[canonical] = normalised[alias]
                break
    return mapping


def parse_po_date(raw: Optional[str], dayfirst: bool = False) -> Optional[date]:
    """
    Parse an order/receive date cell.

    ISO dates are read directly; anything else goes through dateutil.
    Blank or unparseable cells give None.
    """
    text = (raw or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        parsed = dateparser.parse(text, dayfirst=dayfirst, default=datetime(date.today().year, 1, 1))
    except (ValueError, OverflowError) as e:
        logger.debug("Unparseable date %r: %s", text, e)
        return None
    return parsed.date()


def parse_purchase_order_rows(
    headers: Sequence[str],
    raw_rows: Iterable[Dict[str, Optional[str]]],
    column_mapping: Optional[Dict[str, str]] = None,
    dayfirst: bool = False,
    source: str = "",
) -> PurchaseOrderImport:
    """
    Build PurchaseOrder records from dict rows.

    Rows with no vendor or no readable order date are skipped (counted).
    """
    if column_mapping is None:
        column_mapping = auto_map_columns(headers)

    result = PurchaseOrderImport(column_mapping=dict(column_mapping), source=source)
    missing = [f for f in CRITICAL_FIELDS if f not in column_mapping]
    if missing:
        logger.warning("Purchase-order file %s lacks columns: %s", source or "<text>", ", ".join(missing))
        return result

    def cell(raw_row: Dict[str, Optional[str]], canonical: str) -> str:
        column = column_mapping.get(canonical)
        value = raw_row.get(column) if column else None
        return "" if value is None else str(value).strip()

    for row_number, raw_row in enumerate(raw_rows, start=2):
        vendor = cell(raw_row, "vendor")
        order_text = cell(raw_row, "order_date")
        receive_text = cell(raw_row, "receive_date")
        order_date = parse_po_date(order_text, dayfirst)
        receive_date = parse_po_date(receive_text, dayfirst)

        if receive_text and receive_date is None:
            result.unparsed_dates += 1
        if not vendor or order_date is None:
            if order_text and order_date is None:
                result.unparsed_dates += 1
            result.skipped_rows += 1
            continue

        result.orders.append(PurchaseOrder(
            row_number=row_number,
            identifier=cell(raw_row, "identifier"),
            vendor=vendor,
            order_date=order_date,
            receive_date=receive_date,
        ))

    logger.info(
        "Parsed %d purchase orders (%d open, %d skipped)",
        len(result.orders), len(result.open_orders), result.skipped_rows,
    )
    return result


def parse_purchase_order_text(text: str, dayfirst: bool = False, source: str = "") -> PurchaseOrderImport:
    headers, rows = read_csv_text(text)
    return parse_purchase_order_rows(headers, rows, dayfirst=dayfirst, source=source)


def read_purchase_order_csv(filepath: Union[str, Path], dayfirst: bool = False) -> PurchaseOrderImport:
    """Read a purchase-order CSV file."""
    return parse_purchase_order_text(read_text_file(filepath), dayfirst=dayfirst, source=str(filepath))


def collect_lead_samples(orders: Iterable[PurchaseOrder]) -> Dict[str, List[float]]:
    """Group usable lead-time samples (weeks) by vendor."""
    samples: Dict[str, List[float]] = defaultdict(list)
    for order in orders:
        weeks = order.lead_time_weeks
        if weeks is not None:
            samples[order.vendor].append(weeks)
    return dict(samples)
