from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Root of the project (repo root)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Data directory (the registration CSV lives here for local runs)
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DATA_FILE = DATA_DIR / "Electric_Vehicle_Population_Data.csv"

# ---------------------------------------------------------------------------
# App identity
# ---------------------------------------------------------------------------

APP_NAME = "EV Population Insights"
APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Data source
#
# EV_DATA_SOURCE may be a local path or an http(s) URL to the CSV export, e.g.
#   https://data.wa.gov/api/views/f6w7-q2d2/rows.csv?accessType=DOWNLOAD
# ---------------------------------------------------------------------------

EV_DATA_SOURCE = os.getenv("EV_DATA_SOURCE", "").strip() or str(DEFAULT_DATA_FILE)

CSV_DELIMITER = os.getenv("EV_CSV_DELIMITER", ",") or ","

# Multiple utilities in one record are joined with this separator
UTILITY_SEPARATOR = "|"


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _int_or_default(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# HTTP fetch behaviour
#
# The engine itself does not retry. These knobs only exist for deployments
# that want the transport to absorb transient failures; both default to off.
# ---------------------------------------------------------------------------

HTTP_TIMEOUT_SECONDS: Optional[float] = _optional_float("EV_HTTP_TIMEOUT_SECONDS")
HTTP_MAX_RETRIES: int = max(0, _int_or_default("EV_HTTP_MAX_RETRIES", 0))

# ---------------------------------------------------------------------------
# Query defaults
# ---------------------------------------------------------------------------

DEFAULT_MODEL_LIMIT = 10
TOP_UTILITY_LIMIT = 10

# Timeline panels start here; earlier model years are sparse
TREND_START_YEAR = 2010

# Adoption forecast: fit over the last FORECAST_WINDOW timeline years, project FORECAST_HORIZON years
FORECAST_WINDOW = 5
FORECAST_HORIZON = 5

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("EV_LOG_LEVEL", "INFO").strip().upper() or "INFO"
