"""
ODS cell operations
"""

# pyright: reportGeneralTypeIssues=false

from __future__ import annotations

import re
from datetime import date
from datetime import datetime as dt
from datetime import time, timedelta
from typing import Any

from dateutil.parser import isoparse
from odf import table, teletype, text
from odf.namespaces import OFFICENS, TABLENS, TEXTNS
from odf.opendocument import OpenDocument

from .config import (
    CALCEXT_ATTRS_TO_CLEAR,
    CALCEXT_NS,
    OFFICE_ATTRS_TO_CLEAR,
    TABLE_ATTRS_TO_CLEAR,
)
from .ods_styles import ensure_date_style_exists

# ISO 8601 duration as written in office:time-value, e.g. PT12H30M05S
_DURATION_PATTERN = re.compile(
    r"^P(?:(\d+)D)?T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?$"
)


def get_cell_text(cell: table.TableCell) -> str:
    """Read the displayed text of a cell, one line per paragraph.

    Only the cell's own paragraphs are read, so annotations are skipped.
    ``text:s``, ``text:tab`` and ``text:line-break`` are expanded back into
    the whitespace they encode.
    """
    paragraphs: list[Any] = [
        child
        for child in cell.childNodes
        if child.nodeType == child.ELEMENT_NODE and child.qname == (TEXTNS, "p")
    ]
    return "\n".join(teletype.extractText(p) for p in paragraphs)


def _parse_number(raw: str) -> int | float:
    number: float = float(raw)
    if number.is_integer() and "e" not in raw.lower():
        return int(number)
    return number


def _parse_duration(raw: str) -> time | timedelta | str:
    """Turn an office:time-value into a time of day, or a timedelta past 24h.

    Values that are not plain positive durations come back unchanged.
    """
    match = _DURATION_PATTERN.match(raw.strip())
    if not match:
        return raw

    days, hours, minutes, seconds = match.groups()
    span = timedelta(
        days=int(days or 0),
        hours=int(hours or 0),
        minutes=int(minutes or 0),
        seconds=float(seconds or 0),
    )
    if span >= timedelta(days=1):
        return span
    return (dt.min + span).time()


def _format_duration(value: time | timedelta) -> str:
    if isinstance(value, time):
        value = timedelta(
            hours=value.hour,
            minutes=value.minute,
            seconds=value.second,
            microseconds=value.microsecond,
        )

    total_seconds: float = value.total_seconds()
    hours, remainder = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(remainder, 60)
    fraction: int = value.microseconds
    seconds_text: str = f"{seconds:02d}" + (f".{fraction:06d}" if fraction else "")
    return f"PT{hours:02d}H{minutes:02d}M{seconds_text}S"


def get_cell_value(cell: table.TableCell) -> Any:
    """Read a typed cell value.

    Numbers come back as int or float, dates as date or datetime, times as
    time (or timedelta for durations of a day or more), booleans as bool
    and text as str. Empty cells give None.

    :param cell: ODS table cell
    :type cell: table.TableCell
    :return: Python value of the cell
    :rtype: Any
    """
    value_type: str | None = cell.getAttrNS(OFFICENS, "value-type")

    match value_type:
        case "float" | "currency" | "percentage":
            raw: str | None = cell.getAttrNS(OFFICENS, "value")
            if raw is None:
                return None
            return _parse_number(raw)
        case "date":
            date_value: str = cell.getAttrNS(OFFICENS, "date-value")
            parsed: dt = isoparse(date_value)
            if "T" in date_value:
                return parsed
            return parsed.date()
        case "boolean":
            bool_value: str = cell.getAttrNS(OFFICENS, "boolean-value")
            return bool_value == "true"
        case "time":
            time_value: str | None = cell.getAttrNS(OFFICENS, "time-value")
            if time_value is None:
                return get_cell_text(cell) or None
            return _parse_duration(time_value)
        case "string" | None:
            string_value: str | None = cell.getAttrNS(OFFICENS, "string-value")
            if string_value is not None:
                return string_value
            text_val: str = get_cell_text(cell)
            return text_val if text_val else None

    return get_cell_text(cell) or None


def _set_date_value(cell: table.TableCell, value: date, doc: Any | None) -> None:
    """Store a date, or a datetime with its time of day, as an ODS date cell.

    The date style is applied only when a document is given to hold it.
    """
    if isinstance(value, dt):
        display, stored = "%d/%m/%Y %H:%M:%S", "%Y-%m-%dT%H:%M:%S"
    else:
        display, stored = "%d/%m/%Y", "%Y-%m-%d"

    cell.appendChild(text.P(text=value.strftime(display)))
    cell.setAttrNS(OFFICENS, "value-type", "date")
    cell.setAttrNS(OFFICENS, "date-value", value.strftime(stored))

    if doc:
        cell.setAttrNS(TABLENS, "style-name", ensure_date_style_exists(doc))


def _set_numeric_value(cell: table.TableCell, value: int | float) -> None:
    cell.appendChild(text.P(text=str(value)))

    cell.setAttrNS(OFFICENS, "value-type", "float")
    cell.setAttrNS(OFFICENS, "value", str(value))


def _set_boolean_value(cell: table.TableCell, value: bool) -> None:
    cell.appendChild(text.P(text="TRUE" if value else "FALSE"))

    cell.setAttrNS(OFFICENS, "value-type", "boolean")
    cell.setAttrNS(OFFICENS, "boolean-value", "true" if value else "false")


def _set_time_value(cell: table.TableCell, value: time | timedelta) -> None:
    duration: str = _format_duration(value)
    if isinstance(value, time):
        display: str = value.strftime("%H:%M:%S")
    else:
        display = duration[2:].replace("H", ":").replace("M", ":").rstrip("S")
    cell.appendChild(text.P(text=display))

    cell.setAttrNS(OFFICENS, "value-type", "time")
    cell.setAttrNS(OFFICENS, "time-value", duration)


def _set_string_value(cell: table.TableCell, value: str) -> None:
    """Set a string value, one paragraph per line.

    Strings are stored as typed; imported data must not be reinterpreted
    as numbers. Runs of spaces and tabs are written as ``text:s`` and
    ``text:tab`` so they survive ODF whitespace collapsing.
    """
    for line in value.split("\n"):
        paragraph = text.P()
        teletype.addTextToElement(paragraph, line)
        cell.appendChild(paragraph)

    cell.setAttrNS(OFFICENS, "value-type", "string")


def set_cell_value(
    cell: table.TableCell, value: Any, doc: OpenDocument | None = None
) -> None:
    """Set value in an ODS cell while preserving its style.

    :param cell: ODS table cell
    :type cell: table.TableCell
    :param value: Value to set (string, number, bool, date, datetime, time,
        timedelta or None)
    :type value: Any
    :param doc: Optional ODS document (required for date values to apply proper formatting)
    :type doc: OpenDocument | None
    """
    clear_cell_completely(cell)

    if value is None or value == "":
        return

    # bool is an int subclass
    if isinstance(value, bool):
        _set_boolean_value(cell, value)
    elif isinstance(value, date):
        _set_date_value(cell, value, doc)
    elif isinstance(value, (time, timedelta)):
        _set_time_value(cell, value)
    elif isinstance(value, (int, float)):
        _set_numeric_value(cell, value)
    else:
        _set_string_value(cell, str(value))


def create_cell(
    value: Any = None, doc: OpenDocument | None = None, style: str | None = None
) -> table.TableCell:
    """Create a new cell holding ``value``, optionally with a cell style."""
    cell: table.TableCell = table.TableCell()
    if style:
        cell.setAttrNS(TABLENS, "style-name", style)
    set_cell_value(cell, value, doc)
    return cell


_CLEARED_ATTRIBUTES: tuple[tuple[str, list[str]], ...] = (
    (OFFICENS, OFFICE_ATTRS_TO_CLEAR),
    (TABLENS, TABLE_ATTRS_TO_CLEAR),
    (CALCEXT_NS, CALCEXT_ATTRS_TO_CLEAR),
)


def clear_cell_completely(cell: table.TableCell) -> None:
    """Drop the paragraphs, typed value, formula and calcext markers of a cell.

    Style and repeat attributes are left alone, so a cleared cell keeps its
    formatting.
    """
    for child in list(cell.childNodes):
        try:
            cell.removeChild(child)
        except ValueError:
            # Element missing from the document's internal cache
            pass

    for namespace, attr_names in _CLEARED_ATTRIBUTES:
        for attr_name in attr_names:
            try:
                cell.removeAttrNS(namespace, attr_name)
            except KeyError:
                pass
