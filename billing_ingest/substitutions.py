"""
Name clean-up for the staged sheet: whitespace trimming and old-name to
new-name substitution from the reference sheet

Substitution is idempotent only if no replacement value is itself an old
name in the reference sheet. That is an authoring rule for the reference
sheet and is not checked here.
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


@dataclass(frozen=True)
class Substitution:
    """One replaced cell; ``row`` is 1-based within the values passed in."""

    row: int
    old: Any
    new: Any


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def build_substitution_map(rows: Iterable[tuple[Any, Any]]) -> dict[str, Any]:
    """Build the old-name to new-name map from reference rows.

    Keys are trimmed. Rows with an empty side are skipped and later rows win
    over earlier ones.

    :param rows: ``(old_value, new_value)`` pairs
    :type rows: Iterable[tuple[Any, Any]]
    :return: Substitution map
    :rtype: dict[str, Any]
    """
    mapping: dict[str, Any] = {}
    for old_value, new_value in rows:
        if _is_empty(old_value) or _is_empty(new_value):
            continue
        mapping[str(old_value).strip()] = new_value
    return mapping


def apply_substitutions(
    values: list[Any], mapping: dict[str, Any]
) -> tuple[list[Any], list[Substitution]]:
    """Replace every value whose trimmed text is a key of ``mapping``.

    :param values: Column values, top to bottom
    :type values: list[Any]
    :param mapping: Substitution map
    :type mapping: dict[str, Any]
    :return: New values and the list of changes made
    :rtype: tuple[list[Any], list[Substitution]]
    """
    result: list[Any] = list(values)
    changes: list[Substitution] = []

    for idx, value in enumerate(values):
        if _is_empty(value):
            continue
        key: str = str(value).strip()
        if key not in mapping:
            continue
        replacement: Any = mapping[key]
        if replacement == value:
            continue
        result[idx] = replacement
        changes.append(Substitution(row=idx + 1, old=value, new=replacement))

    return result, changes


def trim_values(values: list[Any]) -> tuple[list[Any], list[int]]:
    """Strip surrounding whitespace from string values.

    :return: New values and the 1-based positions that changed
    :rtype: tuple[list[Any], list[int]]
    """
    result: list[Any] = list(values)
    changed: list[int] = []

    for idx, value in enumerate(values):
        if not isinstance(value, str):
            continue
        trimmed: str = value.strip()
        if trimmed != value:
            result[idx] = trimmed
            changed.append(idx + 1)

    return result, changed


def load_substitution_map(doc: OpenDocument) -> dict[str, Any]:
    """Read the reference sheet range into a substitution map.

    :raises NotFoundError: If the reference sheet is missing
    """
    sheet: table.Table | None = find_sheet_by_name(doc, config.REFERENCE_SHEET)
    if sheet is None:
        raise NotFoundError(f"Reference sheet '{config.REFERENCE_SHEET}' not found")

    block: list[list[Any]] = read_range(
        sheet,
        config.REFERENCE_FIRST_ROW,
        config.REFERENCE_LAST_ROW,
        config.COL_OLD_NAME,
        config.COL_NEW_NAME,
    )
    return build_substitution_map((old, new) for old, new in block)


def trim_column(grid: SheetGrid, col: int, first_row: int) -> list[int]:
    """Trim one column in place, writing only cells that change.

    :return: Sheet rows that were rewritten
    """
    values: list[Any] = grid.column(col, first_row)
    trimmed, changed = trim_values(values)
    sheet_rows: list[int] = []
    for position in changed:
        row: int = first_row + position - 1
        grid.set(row, col, trimmed[position - 1])
        sheet_rows.append(row)
    return sheet_rows


def substitute_column(
    grid: SheetGrid, col: int, first_row: int, mapping: dict[str, Any]
) -> list[Substitution]:
    """Apply ``mapping`` to one column in place.

    :return: Changes with ``row`` converted to sheet rows
    """
    values: list[Any] = grid.column(col, first_row)
    new_values, changes = apply_substitutions(values, mapping)
    sheet_changes: list[Substitution] = []
    for change in changes:
        row: int = first_row + change.row - 1
        grid.set(row, col, new_values[change.row - 1])
        sheet_changes.append(Substitution(row=row, old=change.old, new=change.new))
    return sheet_changes
