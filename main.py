#!/usr/bin/env python3
"""
Cycle-Count Planner - command line entry point.

Reads a cycle-count export, derives consumption per SKU and prints a
stocking decision for each one.

Usage:
    python main.py counts.csv                          # Decisions with default settings
    python main.py counts.csv --po orders.csv          # Vendor lead times from purchase orders
    python main.py counts.csv --lead "Acme=3"          # Override a vendor lead time (weeks)
    python main.py counts.csv --window 30 --json       # 30-day planning window, JSON output
    python main.py counts.csv --export decisions.csv   # Write the decision table to CSV

Exit status:
    0  decisions produced
    1  no series (no demand columns, unreadable file or invalid arguments)
"""

import argparse
import csv
import json
import logging
import math
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import config
from cyclecount.domain.validation import ValidationReport, validate_lead_weeks
from cyclecount.engine import PlanningEngine
from cyclecount.utils.error_formatting import ErrorFormatter
from cyclecount.utils.logging_config import setup_logging
from cyclecount.workflows.purchase_orders import read_purchase_order_csv
from cyclecount.workflows.stock_import import read_stock_csv

logger = logging.getLogger("cyclecount.cli")

EXPORT_COLUMNS = [
    "sku", "description", "vendor", "decision", "abc_tier", "classification",
    "pattern", "daily_usage", "weekly_usage", "planning_usage", "estimator",
    "recent_usage", "forecast_error_pct",
    "on_hand", "on_hand_date", "lead_weeks", "lead_days", "lead_time_demand",
    "coverage_weeks", "risk_score", "runout_min_weeks", "runout_max_weeks",
    "target_stock", "suggested_order_qty", "guidance",
]


# ============================================================
# Argument helpers
# ============================================================

def parse_lead_override(text: str) -> Tuple[str, float]:
    """
    Parse a ``VENDOR=WEEKS`` argument.

    Raises:
        argparse.ArgumentTypeError: if the value is malformed
    """
    vendor, sep, weeks = text.rpartition("=")
    vendor = vendor.strip()
    if not sep or not vendor:
        raise argparse.ArgumentTypeError(f"expected VENDOR=WEEKS, got {text!r}")
    ok, message = validate_lead_weeks(weeks)
    if not ok:
        raise argparse.ArgumentTypeError(message)
    return vendor, float(weeks)


def parse_asof(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {text!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Derive consumption from cycle counts and recommend stocking decisions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("stock_csv", type=Path, help="Cycle-count export (one row per SKU, one column per count date)")
    parser.add_argument("--po", type=Path, action="append", default=[], help="Purchase-order CSV (repeatable)")
    parser.add_argument("--window", type=int, choices=config.PLANNING_WINDOW_CHOICES, help="Planning window in days")
    parser.add_argument("--as-of", type=parse_asof, dest="asof", help="Evaluation date (default: today)")
    parser.add_argument("--lead", type=parse_lead_override, action="append", default=[],
                        metavar="VENDOR=WEEKS", help="Vendor lead-time override (repeatable)")
    parser.add_argument("--settings", type=Path, help=f"Settings file (default: {config.SETTINGS_FILE})")
    parser.add_argument("--holidays", type=Path, help=f"Extra holiday rules (default: {config.HOLIDAYS_FILE})")
    parser.add_argument("--export", type=Path, help="Write the decision table to CSV")
    parser.add_argument("--json", action="store_true", help="Print decisions and report as JSON")
    parser.add_argument("--log-dir", type=Path, help="Log directory")
    parser.add_argument("--verbose", action="store_true", help="Echo progress messages on the console")
    return parser


# ============================================================
# Output
# ============================================================

def _json_safe(value: Any) -> Any:
    if isinstance(value, float) and math.isinf(value):
        return None
    return value


def _fmt(value: Any, digits: int = 1) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return "inf" if math.isinf(value) else f"{value:.{digits}f}"
    return str(value)


def print_report(report: ValidationReport) -> None:
    print("=" * 80)
    print(f"DATA QUALITY: {report.status_label}")
    print("=" * 80)
    print(f"Missing cells:            {report.missing_cells}")
    print(f"Invalid cells:            {report.invalid_cells}")
    print(f"Replenishment events:     {report.replenishment_events}")
    print(f"Duplicate identifiers:    {len(report.duplicate_identifiers)}")
    print(f"Non-chronological columns: {'yes' if report.non_chronological_columns else 'no'}")
    for message in report.messages:
        print(f"  - {message}")
    print()


def print_decisions(rows: List[Dict[str, Any]]) -> None:
    header = f"{'SKU':<16} {'Decision':<34} {'ABC':<3} {'Usage/wk':>9} {'On hand':>8} {'Lead wk':>7} {'Risk':>5} {'Order':>6}"
    print(header)
    print("-" * len(header))
    for row in rows:
        print(
            f"{row['sku'][:16]:<16} {row.get('decision', '-'):<34} {row['abc_tier']:<3} "
            f"{_fmt(row.get('weekly_usage')):>9} {_fmt(row.get('on_hand'), 0):>8} "
            f"{_fmt(row.get('lead_weeks')):>7} {_fmt(row.get('risk_score'), 0):>5} "
            f"{row.get('suggested_order_qty', 0):>6}"
        )
    print()


def export_decisions(rows: List[Dict[str, Any]], output_path: Path) -> int:
    """
    Write the decision table to CSV (UTF-8 with BOM, Excel-compatible).

    Returns:
        Number of rows written
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8-sig", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
    return len(rows)


# ============================================================
# CLI Entry Point
# ============================================================

def run(args: argparse.Namespace) -> int:
    asof = args.asof or date.today()

    try:
        settings = config.load_settings(args.settings)
        planning_config = config.build_planning_config(settings, holidays_file=args.holidays)
    except config.SettingsError as e:
        error = ErrorFormatter.format_validation_error(
            e.key, e.value, e.constraint, expected=f"check {args.settings or config.SETTINGS_FILE}",
        )
        logger.error(error.format_for_log())
        print(error.format_for_display())
        return 1

    engine = PlanningEngine(planning_config, asof_date=asof)

    try:
        dataset = read_stock_csv(args.stock_csv, reference_year=asof.year)
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        error = ErrorFormatter.format_import_error(e, "cycle-count import", args.stock_csv)
        logger.error(error.format_for_log())
        print(error.format_for_display())
        return 1

    result = engine.ingest(dataset)

    for po_path in args.po:
        try:
            engine.ingest_purchase_orders(read_purchase_order_csv(po_path))
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            error = ErrorFormatter.format_import_error(e, "purchase-order import", po_path)
            logger.error(error.format_for_log())
            print(error.format_for_display())
            return 1

    for vendor, weeks in args.lead:
        engine.set_vendor_lead_time(vendor, weeks)
    if args.window:
        engine.set_planning_window(args.window)

    rows = engine.summary_rows()
    ranked = {d.sku: i for i, d in enumerate(engine.ranked_decisions())}
    rows.sort(key=lambda row: ranked.get(row["sku"], len(ranked)))

    if args.json:
        payload = {
            "asof_date": asof.isoformat(),
            "planning_window_days": engine.planning_window,
            "report": result.report.to_dict(),
            "decisions": [{k: _json_safe(v) for k, v in row.items()} for row in rows],
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print_report(result.report)
        if rows:
            print_decisions(rows)

    if args.export and rows:
        written = export_decisions(rows, args.export)
        logger.info("Exported %d decisions to %s", written, args.export)
        if not args.json:
            print(f"Exported {written} decisions to {args.export}")

    if result.is_empty:
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_dir, verbose=args.verbose)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
