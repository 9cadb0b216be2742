from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Root of the project (repo root)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Data directories
DATA_DIR = Path(os.getenv("FACILITY_DATA_DIR", str(PROJECT_ROOT / "data")))
FACILITIES_DIR = DATA_DIR / "facilities"     # one CSV per category
LOCATIONS_PATH = DATA_DIR / "locations.json"  # district > subcounty > parish > village

# ---------------------------------------------------------------------------
# App identity
# ---------------------------------------------------------------------------

APP_NAME = "Facility Insights"
APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Source locations
#
# Each source is either a local file path or an http(s) URL. When unset we
# fall back to the files under data/.
# ---------------------------------------------------------------------------

FACILITY_SOURCE_FILES = {
    "health": "health_facilities.csv",
    "education": "education_facilities.csv",
}

FACILITY_HEALTH_SOURCE = os.getenv(
    "FACILITY_HEALTH_SOURCE",
    str(FACILITIES_DIR / FACILITY_SOURCE_FILES["health"]),
).strip()
FACILITY_EDUCATION_SOURCE = os.getenv(
    "FACILITY_EDUCATION_SOURCE",
    str(FACILITIES_DIR / FACILITY_SOURCE_FILES["education"]),
).strip()
LOCATIONS_SOURCE = os.getenv("LOCATIONS_SOURCE", str(LOCATIONS_PATH)).strip()

# Remote sources can be slow; keep requests bounded.
SOURCE_TIMEOUT_SECONDS = int(os.getenv("SOURCE_TIMEOUT_SECONDS", "30"))

# ---------------------------------------------------------------------------
# Read-through cache for parsed records and the location tree
# ---------------------------------------------------------------------------

CACHE_CAPACITY = int(os.getenv("FACILITY_CACHE_CAPACITY", "32"))
CACHE_TTL_SECONDS = float(os.getenv("FACILITY_CACHE_TTL_SECONDS", "3600"))
