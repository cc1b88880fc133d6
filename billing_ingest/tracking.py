"""
Tracking sheet access: locating the row of a billing period and writing
its status markers
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from odf import table
from odf.opendocument import OpenDocument

from . import config
from .errors import NotFoundError
from .ods_rows import SheetGrid, read_range
from .ods_sheets import find_sheet_by_name
from .periods import import_status, normalize_period_cell, stage2_status


@dataclass(frozen=True)
class TrackingMatch:
    """Tracking row found for a period label."""

    row: int  # 1-based sheet row
    confirmed: bool
    label: str


def locate_period_row(
    label: str,
    entries: Iterable[tuple[Any, Any]],
    start_row: int = config.TRACKING_FIRST_ROW,
) -> TrackingMatch | None:
    """Find the first entry whose period cell normalises to ``label``.

    :param label: Target period label, e.g. ``Feb-25``
    :type label: str
    :param entries: Ordered ``(period_cell, confirmed_flag)`` pairs
    :type entries: Iterable[tuple[Any, Any]]
    :param start_row: Sheet row of the first entry
    :type start_row: int
    :return: The matching row, or None when no entry matches
    :rtype: TrackingMatch | None
    """
    target: str = label.strip()

    for offset, (period_cell, confirmed_flag) in enumerate(entries):
        normalized: str | None = normalize_period_cell(period_cell)
        if normalized is None:
            continue
        if normalized == target:
            return TrackingMatch(
                row=start_row + offset,
                confirmed=confirmed_flag is True,
                label=normalized,
            )

    return None


def get_tracking_sheet(doc: OpenDocument, name: str | None = None) -> table.Table:
    sheet_name: str = name or config.TRACKING_SHEET
    sheet: table.Table | None = find_sheet_by_name(doc, sheet_name)
    if sheet is None:
        raise NotFoundError(f"Tracking sheet '{sheet_name}' not found")
    return sheet


def find_tracking_row(doc: OpenDocument, label: str) -> TrackingMatch | None:
    """Look up ``label`` in the tracking range of the workbook.

    :raises NotFoundError: If the tracking sheet itself is missing
    """
    sheet: table.Table = get_tracking_sheet(doc)
    block: list[list[Any]] = read_range(
        sheet,
        config.TRACKING_FIRST_ROW,
        config.TRACKING_LAST_ROW,
        config.COL_CONFIRMED,
        config.COL_PERIOD,
    )
    entries = [(period_cell, confirmed) for confirmed, period_cell in block]
    return locate_period_row(label, entries, config.TRACKING_FIRST_ROW)


def read_status(doc: OpenDocument, row: int) -> str:
    block: list[list[Any]] = read_range(
        get_tracking_sheet(doc), row, row, config.COL_STATUS, config.COL_STATUS
    )
    value: Any = block[0][0]
    return "" if value is None else str(value).strip()


def mark_import_completed(
    doc: OpenDocument, row: int, label: str, sheet_name: str | None = None
) -> None:
    """Tick the confirmed flag and write the import status of ``row``.

    ``sheet_name`` defaults to the configured tracking sheet.
    """
    grid = SheetGrid(get_tracking_sheet(doc, sheet_name), doc)
    grid.set(row, config.COL_CONFIRMED, True)
    grid.set(row, config.COL_STATUS, import_status(label))


def mark_stage2_completed(doc: OpenDocument, row: int, label: str) -> None:
    grid = SheetGrid(get_tracking_sheet(doc), doc)
    grid.set(row, config.COL_STATUS, stage2_status(label))
