"""
ODS row operations and rectangular cell access
"""

from __future__ import annotations

from typing import Any

from odf import table
from odf.element import Element, Node, Text
from odf.namespaces import TABLENS
from odf.opendocument import OpenDocument

from .ods_cells import create_cell, get_cell_value, set_cell_value

_CELL_NAMES = ("table-cell", "covered-table-cell")


def clone_element(element: Any) -> Any:
    """Deep-copy an ODF element, detached from any document."""
    if element.nodeType in (Node.TEXT_NODE, Node.CDATA_SECTION_NODE):
        return Text(element.data)

    copy = Element(qname=element.qname, check_grammar=False)
    for key, value in element.attributes.items():
        copy.attributes[key] = value
    for child in element.childNodes:
        copy.appendChild(clone_element(child))
    return copy


def remove_child(parent: Any, child: Any) -> None:
    try:
        parent.removeChild(child)
    except ValueError:
        # Element missing from the document's internal cache
        pass


def _repeat_count(element: Any, attr: str) -> int:
    raw: str | None = element.getAttrNS(TABLENS, attr)
    return int(raw) if raw else 1


def _set_repeat_count(element: Any, attr: str, count: int) -> None:
    if count > 1:
        element.setAttrNS(TABLENS, attr, str(count))
        return
    try:
        element.removeAttrNS(TABLENS, attr)
    except KeyError:
        pass


def row_cells(row: table.TableRow) -> list[Any]:
    """Direct cell children of a row, including covered cells."""
    return [
        child
        for child in row.childNodes
        if child.nodeType == Node.ELEMENT_NODE
        and child.qname[0] == TABLENS
        and child.qname[1] in _CELL_NAMES
    ]


def _split_repeated(
    element: Any, attr: str, needed: int, collected: list[Any]
) -> None:
    """Split a repeated element so that ``needed`` copies exist as individual nodes.

    The element and its individual copies are appended to ``collected``; any
    repeats beyond ``needed`` stay on one trailing copy.
    """
    repeat: int = _repeat_count(element, attr)
    collected.append(element)
    if repeat == 1:
        return

    extra: int = min(repeat - 1, needed - 1)
    _set_repeat_count(element, attr, 1)
    parent = element.parentNode
    anchor = element.nextSibling

    for _ in range(extra):
        copy = clone_element(element)
        parent.insertBefore(copy, anchor)
        collected.append(copy)

    remainder: int = repeat - 1 - extra
    if remainder > 0:
        tail = clone_element(element)
        _set_repeat_count(tail, attr, remainder)
        parent.insertBefore(tail, anchor)


def materialize_cells(row: table.TableRow, count: int) -> list[Any]:
    """Return the first ``count`` cells of a row as individual elements.

    Repeated cells are split and short rows are padded with empty cells.
    """
    cells: list[Any] = []
    for cell in row_cells(row):
        if len(cells) >= count:
            break
        _split_repeated(cell, "number-columns-repeated", count - len(cells), cells)

    while len(cells) < count:
        cell = table.TableCell()
        row.addElement(cell)
        cells.append(cell)

    return cells


def materialize_rows(sheet: table.Table, count: int) -> list[table.TableRow]:
    """Return the first ``count`` rows of a sheet as individual elements."""
    rows: list[table.TableRow] = []
    for row in sheet.getElementsByType(table.TableRow):
        if len(rows) >= count:
            break
        _split_repeated(row, "number-rows-repeated", count - len(rows), rows)

    while len(rows) < count:
        row = table.TableRow()
        sheet.addElement(row)
        rows.append(row)

    return rows


def _read_row_values(row: table.TableRow, max_cols: int | None) -> list[Any]:
    values: list[Any] = []
    pending_empty: int = 0

    for cell in row_cells(row):
        repeat: int = _repeat_count(cell, "number-columns-repeated")
        value: Any = get_cell_value(cell)

        if value is None:
            pending_empty += repeat
            continue

        values.extend([None] * pending_empty)
        pending_empty = 0
        values.extend([value] * repeat)

        if max_cols is not None and len(values) >= max_cols:
            break

    if max_cols is not None:
        return values[:max_cols]
    return values


def read_values(
    sheet: table.Table, max_rows: int | None = None, max_cols: int | None = None
) -> list[list[Any]]:
    """Read the used area of a sheet as a list of value rows.

    Trailing empty rows and cells are dropped, so repeated blank padding
    at the end of a sheet does not expand.

    :param sheet: ODS sheet to read
    :type sheet: table.Table
    :param max_rows: Stop after this many rows
    :type max_rows: int | None
    :param max_cols: Stop after this many columns per row
    :type max_cols: int | None
    :return: Ragged list of rows holding typed cell values
    :rtype: list[list[Any]]
    """
    values: list[list[Any]] = []
    pending_empty: int = 0

    for row in sheet.getElementsByType(table.TableRow):
        repeat: int = _repeat_count(row, "number-rows-repeated")
        row_values: list[Any] = _read_row_values(row, max_cols)

        if not row_values:
            pending_empty += repeat
            continue

        values.extend([] for _ in range(pending_empty))
        pending_empty = 0
        values.extend(list(row_values) for _ in range(repeat))

        if max_rows is not None and len(values) >= max_rows:
            break

    if max_rows is not None:
        return values[:max_rows]
    return values


def read_range(
    sheet: table.Table, first_row: int, last_row: int, first_col: int, last_col: int
) -> list[list[Any]]:
    """Read a rectangular block, padded with None.

    Rows are 1-based and inclusive; columns are 0-based and inclusive.
    """
    width: int = last_col - first_col + 1
    used: list[list[Any]] = read_values(sheet, max_rows=last_row, max_cols=last_col + 1)

    block: list[list[Any]] = []
    for row_number in range(first_row, last_row + 1):
        source: list[Any] = used[row_number - 1] if row_number <= len(used) else []
        cells: list[Any] = source[first_col : last_col + 1]
        block.append(cells + [None] * (width - len(cells)))
    return block


def build_row(values: list[Any], doc: OpenDocument | None = None) -> table.TableRow:
    """Create a new row holding ``values``, one cell per value."""
    new_row = table.TableRow()
    for value in values:
        new_row.addElement(create_cell(value, doc))
    return new_row


class SheetGrid:
    """Addressable cell view over a sheet.

    Rows are 1-based, columns 0-based. The used area is split into
    individual row and cell elements once; cells outside it are created on
    demand.
    """

    def __init__(self, sheet: table.Table, doc: OpenDocument | None = None) -> None:
        self.sheet = sheet
        self.doc = doc
        used: list[list[Any]] = read_values(sheet)
        self.row_count: int = len(used)
        self.column_count: int = max((len(r) for r in used), default=0)
        self._rows: list[table.TableRow] = materialize_rows(sheet, self.row_count)
        self._cells: list[list[Any]] = [
            materialize_cells(row, self.column_count) for row in self._rows
        ]

    def _ensure(self, row: int, col: int) -> Any:
        if row < 1 or col < 0:
            raise IndexError(f"Cell ({row}, {col}) is outside the sheet")

        if row > len(self._rows):
            self._rows = materialize_rows(self.sheet, row)
            while len(self._cells) < row:
                self._cells.append(
                    materialize_cells(self._rows[len(self._cells)], self.column_count)
                )
            self.row_count = max(self.row_count, row)

        if col >= len(self._cells[row - 1]):
            self._cells[row - 1] = materialize_cells(self._rows[row - 1], col + 1)
            self.column_count = max(self.column_count, col + 1)

        return self._cells[row - 1][col]

    def cell(self, row: int, col: int) -> Any:
        return self._ensure(row, col)

    def get(self, row: int, col: int) -> Any:
        if row > len(self._rows) or col >= len(self._cells[row - 1]):
            return None
        return get_cell_value(self._cells[row - 1][col])

    def set(self, row: int, col: int, value: Any) -> None:
        set_cell_value(self._ensure(row, col), value, self.doc)

    def column(self, col: int, first_row: int = 1, last_row: int | None = None) -> list[Any]:
        """Values of one column between two 1-based rows, inclusive."""
        end: int = self.row_count if last_row is None else last_row
        return [self.get(row, col) for row in range(first_row, end + 1)]

    def insert_column(self, index: int) -> None:
        """Insert an empty column before 0-based ``index`` in every used row."""
        for row_idx, row in enumerate(self._rows):
            cells: list[Any] = self._cells[row_idx]
            if index > len(cells):
                cells = materialize_cells(row, index)
            new_cell = table.TableCell()
            if index < len(cells):
                row.insertBefore(new_cell, cells[index])
            else:
                row.addElement(new_cell)
            cells.insert(index, new_cell)
            self._cells[row_idx] = cells

        _insert_column_definition(self.sheet, index)
        self.column_count += 1


def _insert_column_definition(sheet: table.Table, index: int) -> None:
    """Keep table:table-column definitions aligned after a column insert."""
    columns: list[Any] = sheet.getElementsByType(table.TableColumn)
    if not columns:
        return

    position: int = 0
    for column in columns:
        repeat: int = _repeat_count(column, "number-columns-repeated")
        if position + repeat > index:
            new_column = table.TableColumn()
            style_name: str | None = column.getAttrNS(TABLENS, "style-name")
            if style_name:
                new_column.setAttrNS(TABLENS, "style-name", style_name)
            if position == index:
                column.parentNode.insertBefore(new_column, column)
            else:
                # Inside a repeated definition: one more repeat keeps widths aligned
                _set_repeat_count(column, "number-columns-repeated", repeat + 1)
            return
        position += repeat

    columns[-1].parentNode.addElement(table.TableColumn())
