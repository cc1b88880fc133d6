"""
ODS sheet operations
"""

from __future__ import annotations

from typing import Any

from odf import config as odf_config
from odf import table
from odf.namespaces import CONFIGNS, TABLENS
from odf.opendocument import OpenDocument

from .ods_rows import build_row, clone_element, remove_child


def sheet_name(sheet: table.Table) -> str:
    return sheet.getAttrNS(TABLENS, "name")


def list_sheets(doc: OpenDocument) -> list[table.Table]:
    return doc.spreadsheet.getElementsByType(table.Table)


def find_sheet_by_name(doc: OpenDocument, name: str) -> table.Table | None:
    """
    Find a sheet in an ODS document by name.

    Args:
        doc: ODS document object
        name: Name of the sheet to find

    Returns:
        Sheet object if found, None otherwise
    """
    for sheet in list_sheets(doc):
        if sheet_name(sheet) == name:
            return sheet
    return None


def _insert_sheet(doc: OpenDocument, sheet: table.Table, after: table.Table | None) -> None:
    if after is None:
        sheets: list[table.Table] = list_sheets(doc)
        after = sheets[-1] if sheets else None

    if after is None:
        doc.spreadsheet.addElement(sheet)
    else:
        doc.spreadsheet.insertBefore(sheet, after.nextSibling)


def create_sheet(
    doc: OpenDocument, name: str, after: table.Table | None = None
) -> table.Table:
    """
    Create an empty sheet, placed after ``after`` or after the last sheet.

    Args:
        doc: ODS document object
        name: Name of the new sheet
        after: Sheet to insert behind

    Returns:
        The new sheet
    """
    new_sheet = table.Table(name=name)
    new_sheet.addElement(table.TableColumn())
    _insert_sheet(doc, new_sheet, after)
    return new_sheet


def clear_sheet(sheet: table.Table) -> None:
    """Remove every row from a sheet, keeping its column definitions."""
    for child in list(sheet.childNodes):
        if child.nodeType != child.ELEMENT_NODE or child.qname[0] != TABLENS:
            continue
        if child.qname[1] in ("table-row", "table-rows", "table-header-rows", "table-row-group"):
            remove_child(sheet, child)


def duplicate_sheet(
    doc: OpenDocument, source: table.Table, new_name: str
) -> table.Table:
    """
    Copy a sheet with all of its cells and styles, directly after the source.

    Args:
        doc: ODS document object
        source: Sheet to copy
        new_name: Name of the copy

    Returns:
        The new sheet
    """
    copy: Any = clone_element(source)
    copy.setAttrNS(TABLENS, "name", new_name)
    _insert_sheet(doc, copy, source)
    return copy


def rename_sheet(sheet: table.Table, new_name: str) -> None:
    sheet.setAttrNS(TABLENS, "name", new_name)


def write_rows(
    sheet: table.Table, rows: list[list[Any]], doc: OpenDocument | None = None
) -> None:
    """Append one sheet row per entry of ``rows``."""
    for values in rows:
        sheet.addElement(build_row(values, doc))


def get_or_create_cleared_sheet(
    doc: OpenDocument, name: str, after: table.Table | None = None
) -> tuple[table.Table, bool]:
    """Return an empty sheet called ``name`` and whether it already existed."""
    existing: table.Table | None = find_sheet_by_name(doc, name)
    if existing is not None:
        clear_sheet(existing)
        return existing, True
    return create_sheet(doc, name, after), False


def get_active_sheet_name(doc: OpenDocument) -> str | None:
    """
    Read the sheet that was active when the workbook was last saved.

    LibreOffice stores it as the ``ActiveTable`` view setting.

    Args:
        doc: ODS document object

    Returns:
        Sheet name, or None if the document carries no view settings
    """
    for item in doc.settings.getElementsByType(odf_config.ConfigItem):
        if item.getAttrNS(CONFIGNS, "name") == "ActiveTable":
            value: str = str(item).strip()
            return value or None
    return None
