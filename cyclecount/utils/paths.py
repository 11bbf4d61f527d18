"""
Path resolver for the cycle-count planner.

Rules
-----
* base_dir  → project root (the directory holding config.py)
* data_dir  → base_dir/data; fallback ~/CycleCountPlanner/data
* logs_dir  → base_dir/logs; fallback ~/CycleCountPlanner/logs

Runtime code never uses os.getcwd() or relative Path("...") strings;
always call one of the functions below.
"""

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _get_base_dir() -> Path:
    # cyclecount/utils/paths.py → project root is three levels up
    return Path(__file__).resolve().parent.parent.parent


def _try_writable(path: Path) -> bool:
    """
    Return True if *path* can be created and used as a writable directory.

    Creates the directory if it does not exist and probes it with a canary
    file, so read-only volumes are detected.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        canary = path / ".write_probe"
        canary.touch()
        canary.unlink()
        return True
    except OSError:
        return False


def _user_dir(sub: str) -> Path:
    """Return %APPDATA%/CycleCountPlanner/<sub> (Windows) or ~/CycleCountPlanner/<sub>."""
    appdata = os.environ.get("APPDATA") or str(Path.home())
    return Path(appdata) / "CycleCountPlanner" / sub


def _writable_or_fallback(primary: Path, sub: str) -> Path:
    if _try_writable(primary):
        return primary
    fallback = _user_dir(sub)
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_base_dir() -> Path:
    return _get_base_dir()


def get_data_dir() -> Path:
    """Data directory (settings.json, holidays.json)."""
    return _writable_or_fallback(_get_base_dir() / "data", "data")


def get_logs_dir() -> Path:
    """Logs directory."""
    return _writable_or_fallback(_get_base_dir() / "logs", "logs")
