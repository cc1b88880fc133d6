"""
Configuration constants for the billing ingestion workflow
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(".env.billing_ingest")

# ==============================================================================
# FILE PATHS
# ==============================================================================

WORKBOOK_FILE: Final[str] = os.environ.get(
    "WORKBOOK_FILE", str(Path.home() / "Documents" / "billing_tracker.ods")
)

# JSON file holding the import session and per-period pipeline state
STATE_FILE: Final[str] = os.environ.get(
    "STATE_FILE", str(Path.home() / ".billing_ingest_state.json")
)


# ==============================================================================
# FILE STORE API CONFIGURATION
# ==============================================================================

FILE_STORE_URL: Final[str] = os.environ.get(
    "FILE_STORE_URL", "https://www.googleapis.com/drive/v3"
)

# OAuth bearer token for the file store (from environment)
FILE_STORE_TOKEN: Final[str | None] = os.environ.get("FILE_STORE_TOKEN")

FILE_STORE_TIMEOUT: Final[int] = 60

# Mime type requested when converting an uploaded XLS into a hosted spreadsheet
HOSTED_SPREADSHEET_MIME: Final[str] = "application/vnd.google-apps.spreadsheet"
ODS_EXPORT_MIME: Final[str] = "application/vnd.oasis.opendocument.spreadsheet"

# File ids embedded in share URLs are runs of 25 or more word characters
FILE_ID_PATTERN: Final[str] = r"[-\w]{25,}"


# ==============================================================================
# ENTITY LOOKUP CONFIGURATION
# ==============================================================================

# Partial-match lookup service; the lookup sheet is used when this is unset
LOOKUP_SERVICE_URL: Final[str | None] = os.environ.get("LOOKUP_SERVICE_URL")
LOOKUP_SERVICE_TIMEOUT: Final[int] = 30


# ==============================================================================
# PERIODS AND SESSIONS
# ==============================================================================

BILLING_TIMEZONE: Final[str] = os.environ.get("BILLING_TIMEZONE", "Europe/London")

# Fixed English abbreviations so labels do not follow the process locale
MONTH_ABBREVIATIONS: Final[tuple[str, ...]] = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

SESSION_TTL_MINUTES: Final[int] = 60


# ==============================================================================
# SHEET NAMES
# ==============================================================================

TRACKING_SHEET: Final[str] = os.environ.get("TRACKING_SHEET", "Billing Tracker")
REFERENCE_SHEET: Final[str] = os.environ.get("REFERENCE_SHEET", "Name Changes")
LOOKUP_SHEET: Final[str] = os.environ.get("LOOKUP_SHEET", "Entity Lookup")

RAW_SUFFIX: Final[str] = "(RAW)"
STAGED_SUFFIX: Final[str] = "(STG1)"
IMPORT_COMPLETED_SUFFIX: Final[str] = "(Import Completed)"
STAGE2_COMPLETED_SUFFIX: Final[str] = "(Stage 2 Completed)"

ENTITY_TYPE_HEADER: Final[str] = "Entity Type"


# ==============================================================================
# TRACKING SHEET LAYOUT (0-based column indices, 1-based rows)
# ==============================================================================

COL_CONFIRMED: Final[int] = 3  # D
COL_PERIOD: Final[int] = 4  # E
COL_STATUS: Final[int] = 5  # F

TRACKING_FIRST_ROW: Final[int] = 2
TRACKING_LAST_ROW: Final[int] = 30


# ==============================================================================
# REFERENCE AND LOOKUP SHEET LAYOUT
# ==============================================================================

COL_OLD_NAME: Final[int] = 0  # A
COL_NEW_NAME: Final[int] = 1  # B

REFERENCE_FIRST_ROW: Final[int] = 2
REFERENCE_LAST_ROW: Final[int] = 200

COL_LOOKUP_KEY: Final[int] = 0
COL_LOOKUP_NAME: Final[int] = 1
COL_LOOKUP_LABEL: Final[int] = 2


# ==============================================================================
# ODS NAMESPACES
# ==============================================================================

CALCEXT_NS: Final[str] = (
    "urn:org:documentfoundation:names:experimental:calc:xmlns:calcext:1.0"
)


# ==============================================================================
# ODS ATTRIBUTE LISTS FOR CELL CLEARING
# ==============================================================================

OFFICE_ATTRS_TO_CLEAR: Final[list[str]] = [
    "value",
    "date-value",
    "time-value",
    "boolean-value",
    "string-value",
    "value-type",
    "currency",
]

TABLE_ATTRS_TO_CLEAR: Final[list[str]] = ["formula"]

CALCEXT_ATTRS_TO_CLEAR: Final[list[str]] = ["value-type"]
