"""
Project configuration and constants.
"""
from pathlib import Path
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from cyclecount.domain.calendar import CalendarConfig
from cyclecount.domain.holidays import HolidayCalendar
from cyclecount.domain.validation import validate_lead_weeks, validate_planning_window
from cyclecount.engine import PlanningConfig
from cyclecount.utils.paths import get_data_dir, get_logs_dir

logger = logging.getLogger(__name__)

# Project root (directory holding this file)
PROJECT_ROOT = Path(__file__).resolve().parent

# Data directory: portable first, per-user fallback
DATA_DIR = get_data_dir()
LOGS_DIR = get_logs_dir()
SETTINGS_FILE = DATA_DIR / "settings.json"
HOLIDAYS_FILE = DATA_DIR / "holidays.json"

# Default parameters (can be overridden via settings.json)
DEFAULT_LEAD_TIME_WEEKS = 2
DEFAULT_PLANNING_WINDOW_DAYS = 90
DEFAULT_SMOOTHING_ALPHA = 0.4
DEFAULT_TRAILING_PERIODS = 12
DEFAULT_VOLATILITY_THRESHOLD = 1.5
DEFAULT_MAX_STOCK_AGE_DAYS: Optional[int] = None

PLANNING_WINDOW_CHOICES = (30, 60, 90)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "default_lead_weeks": DEFAULT_LEAD_TIME_WEEKS,
    "planning_window_days": DEFAULT_PLANNING_WINDOW_DAYS,
    "smoothing_alpha": DEFAULT_SMOOTHING_ALPHA,
    "trailing_periods": DEFAULT_TRAILING_PERIODS,
    "volatility_threshold": DEFAULT_VOLATILITY_THRESHOLD,
    "max_stock_age_days": DEFAULT_MAX_STOCK_AGE_DAYS,
    "working_weekdays": [0, 1, 2, 3, 4],
}


# ============================================================
# Custom Exceptions
# ============================================================

class SettingsError(ValueError):
    """Raised when a settings entry cannot be used"""

    def __init__(self, key: str, value: Any, constraint: str):
        super().__init__(f"{key}: {constraint}")
        self.key = key
        self.value = value
        self.constraint = constraint


# ============================================================
# Settings
# ============================================================

def load_settings(settings_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load settings.json merged over the defaults.

    Unknown keys are ignored; an unreadable file falls back to the defaults.

    Returns:
        Settings dict
    """
    settings = dict(DEFAULT_SETTINGS)
    path = Path(settings_file) if settings_file is not None else SETTINGS_FILE

    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                stored = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Cannot read settings from %s, using defaults: %s", path, e)
            return settings
        if isinstance(stored, dict):
            settings.update({k: v for k, v in stored.items() if k in DEFAULT_SETTINGS})
        else:
            logger.warning("Ignoring %s: expected a JSON object", path)

    return settings


def save_settings(settings: Dict[str, Any], settings_file: Optional[Path] = None) -> bool:
    """
    Persist settings to settings.json.

    Returns:
        True if successful, False otherwise
    """
    path = Path(settings_file) if settings_file is not None else SETTINGS_FILE
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(settings, f, indent=2)
        return True
    except IOError as e:
        logger.error("Cannot write settings to %s: %s", path, e)
        return False


def _in_unit_interval(value: float) -> Tuple[bool, str]:
    return 0 < value <= 1, "must be in (0, 1]"


def _at_least_one(value: int) -> Tuple[bool, str]:
    return value >= 1, "must be >= 1"


def _positive(value: float) -> Tuple[bool, str]:
    return value > 0, "must be > 0"


def _non_negative(value: int) -> Tuple[bool, str]:
    return value >= 0, "must be >= 0"


def _weekdays(value: Any) -> Tuple[bool, str]:
    ok = bool(value) and all(isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6 for day in value)
    return ok, "must list at least one weekday number, 0 (Monday) to 6 (Sunday)"


# setting -> (conversion, check); checks return (is_valid, constraint)
SETTING_RULES: Dict[str, Tuple[Callable[[Any], Any], Callable[[Any], Tuple[bool, str]]]] = {
    "default_lead_weeks": (float, validate_lead_weeks),
    "planning_window_days": (int, validate_planning_window),
    "smoothing_alpha": (float, _in_unit_interval),
    "trailing_periods": (int, _at_least_one),
    "volatility_threshold": (float, _positive),
    "max_stock_age_days": (int, _non_negative),
    "working_weekdays": (frozenset, _weekdays),
}


def read_setting(settings: Dict[str, Any], key: str) -> Any:
    """
    Convert and check one setting (missing keys take the default).

    ``max_stock_age_days`` may be None (no age limit).

    Raises:
        SettingsError: if the value cannot be converted or is out of range
    """
    value = settings.get(key, DEFAULT_SETTINGS[key])
    if value is None and key == "max_stock_age_days":
        return None

    convert, check = SETTING_RULES[key]
    try:
        converted = convert(value)
    except (TypeError, ValueError):
        raise SettingsError(key, value, f"cannot be read as {convert.__name__}") from None

    ok, constraint = check(converted)
    if not ok:
        raise SettingsError(key, value, constraint)
    return converted


def build_planning_config(
    settings: Optional[Dict[str, Any]] = None,
    holidays_file: Optional[Path] = None,
) -> PlanningConfig:
    """
    Build the engine configuration from settings and the holiday file.

    Args:
        settings: Settings dict (default: load_settings())
        holidays_file: Extra holiday rules merged over the statutory table
                       (default: HOLIDAYS_FILE, skipped when missing)

    Raises:
        SettingsError: naming the first setting that is out of range
    """
    if settings is None:
        settings = load_settings()

    holidays_path = Path(holidays_file) if holidays_file is not None else HOLIDAYS_FILE
    holiday_calendar = HolidayCalendar.from_config(holidays_path, base=HolidayCalendar.ontario())

    calendar = CalendarConfig(
        working_weekdays=read_setting(settings, "working_weekdays"),
        holiday_calendar=holiday_calendar,
    )

    return PlanningConfig(
        calendar=calendar,
        default_lead_weeks=read_setting(settings, "default_lead_weeks"),
        planning_window_days=read_setting(settings, "planning_window_days"),
        smoothing_alpha=read_setting(settings, "smoothing_alpha"),
        trailing_periods=read_setting(settings, "trailing_periods"),
        volatility_threshold=read_setting(settings, "volatility_threshold"),
        max_stock_age_days=read_setting(settings, "max_stock_age_days"),
    )
