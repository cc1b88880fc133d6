"""
Validation of operator input for the import dialog
"""

from __future__ import annotations

import re

from . import config
from .errors import ValidationError

_LABEL_PATTERN = re.compile(
    r"^(" + "|".join(config.MONTH_ABBREVIATIONS) + r")-\d{2}$"
)
_FILE_ID_PATTERN = re.compile(config.FILE_ID_PATTERN)


def validate_period_label(label: str | None, expected: str | None = None) -> str:
    """Check a confirmed period label.

    :param label: Label typed or confirmed by the operator
    :type label: str | None
    :param expected: Label resolved for the tracking row, if known
    :type expected: str | None
    :return: The trimmed label
    :rtype: str
    :raises ValidationError: If the label is missing, malformed or differs
        from the expected label
    """
    if label is None or not label.strip():
        raise ValidationError("No billing month was confirmed")

    trimmed: str = label.strip()
    if not _LABEL_PATTERN.match(trimmed):
        raise ValidationError(
            f"Billing month '{trimmed}' is not in the form Mon-YY (e.g. Feb-25)"
        )

    if expected is not None and trimmed != expected:
        raise ValidationError(
            f"Confirmed month '{trimmed}' does not match the tracking row '{expected}'"
        )

    return trimmed


def extract_file_id(source_url: str | None) -> str:
    """Pull the file id out of a share URL (or accept a bare id).

    :param source_url: URL pasted by the operator
    :type source_url: str | None
    :return: File id
    :rtype: str
    :raises ValidationError: If no id of 25+ word characters is present
    """
    if source_url is None or not source_url.strip():
        raise ValidationError("No source file URL was provided")

    match = _FILE_ID_PATTERN.search(source_url.strip())
    if not match:
        raise ValidationError(f"Could not find a file id in '{source_url.strip()}'")

    return match.group(0)
