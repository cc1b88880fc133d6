"""
Billing period labels and the sheet names derived from them
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from dateutil import tz
from dateutil.relativedelta import relativedelta

from . import config
from .errors import PatternMismatchError

_RAW_NAME_PATTERN = re.compile(r"^(.+?)\s*" + re.escape(config.RAW_SUFFIX) + r"$")


def format_period_label(value: date) -> str:
    """Format a date as a ``Mon-YY`` period label.

    :param value: Any date inside the billing month
    :type value: date
    :return: Period label such as ``Feb-25``
    :rtype: str
    """
    month: str = config.MONTH_ABBREVIATIONS[value.month - 1]
    return f"{month}-{value.year % 100:02d}"


def today_in_billing_timezone() -> date:
    """Current calendar date in the configured billing timezone."""
    return datetime.now(tz.gettz(config.BILLING_TIMEZONE)).date()


def last_month_label(today: date | None = None) -> str:
    """Return the period label of the month before ``today``.

    Only the year and month of ``today`` are used, so any day of a month
    gives the same label. January rolls back to December of the previous
    year.

    :param today: Reference date, defaults to today in the billing timezone
    :type today: date | None
    :return: Period label of the previous month
    :rtype: str
    """
    if today is None:
        today = today_in_billing_timezone()

    first_of_previous: date = date(today.year, today.month, 1) + relativedelta(
        months=-1
    )
    return format_period_label(first_of_previous)


def normalize_period_cell(value: Any) -> str | None:
    """Turn a tracking-sheet period cell into a comparable label.

    Date values are formatted, text is trimmed, empty cells give None.
    """
    if value is None:
        return None

    # datetime is a subclass of date
    if isinstance(value, date):
        return format_period_label(value)

    text_value: str = str(value).strip()
    return text_value or None


def raw_sheet_name(label: str) -> str:
    return f"{label} {config.RAW_SUFFIX}"


def staged_sheet_name(label: str) -> str:
    return f"{label} {config.STAGED_SUFFIX}"


def import_status(label: str) -> str:
    return f"{label} {config.IMPORT_COMPLETED_SUFFIX}"


def stage2_status(label: str) -> str:
    return f"{label} {config.STAGE2_COMPLETED_SUFFIX}"


def label_from_raw_sheet_name(sheet_name: str) -> str:
    """Extract the period label from a ``"<label> (RAW)"`` sheet name.

    :param sheet_name: Name of the raw import sheet
    :type sheet_name: str
    :return: The period label encoded in the name
    :rtype: str
    :raises PatternMismatchError: If the name does not end in ``(RAW)``
    """
    match = _RAW_NAME_PATTERN.match(sheet_name.strip())
    if not match:
        raise PatternMismatchError(
            f"Sheet '{sheet_name}' is not a raw import sheet "
            f"(expected '<Mon-YY> {config.RAW_SUFFIX}')"
        )
    return match.group(1).strip()
