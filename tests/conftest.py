from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Callable

import pytest
from odf import table
from odf.opendocument import OpenDocument, OpenDocumentSpreadsheet

from billing_ingest.ods_rows import build_row

Rows = list[list[Any]]


def _tracking_rows() -> Rows:
    return [
        ["", "", "", "Confirmed", "Month", "Status"],
        [None, None, None, False, date(2025, 1, 1), "Jan-25 (Stage 2 Completed)"],
        [None, None, None, False, date(2025, 2, 1), None],
        [None, None, None, False, " Mar-25 ", None],
    ]


def _raw_rows() -> Rows:
    return [
        ["Name", "Amount"],
        [" Riverside Club ", 10],
        ["A Club", 20],
        ["Unknown Town", 5],
        ["Harbour", 7],
    ]


def _reference_rows() -> Rows:
    return [
        ["Old name", "New name"],
        ["Riverside Club", "Riverside FC"],
        ["A Club", "A FC"],
    ]


def _lookup_rows() -> Rows:
    return [
        ["Key", "Name", "Entity type"],
        ["R1", "Riverside FC", "Club"],
        ["H2", "Harbour Academy", "Academy"],
        ["H1", "Harbour United", "Club"],
    ]


@pytest.fixture
def make_doc() -> Callable[[dict[str, Rows]], OpenDocument]:
    """Build an in-memory workbook, one sheet per entry."""

    def _make(sheets: dict[str, Rows]) -> OpenDocument:
        doc = OpenDocumentSpreadsheet()
        for name, rows in sheets.items():
            sheet = table.Table(name=name)
            for values in rows:
                sheet.addElement(build_row(values, doc))
            doc.spreadsheet.addElement(sheet)
        return doc

    return _make


@pytest.fixture
def billing_sheets() -> dict[str, Rows]:
    return {
        "Billing Tracker": _tracking_rows(),
        "Name Changes": _reference_rows(),
        "Entity Lookup": _lookup_rows(),
        "Feb-25 (RAW)": _raw_rows(),
    }


@pytest.fixture
def billing_doc(make_doc, billing_sheets) -> OpenDocument:
    return make_doc(billing_sheets)


@pytest.fixture
def workbook_file(tmp_path: Path, billing_doc: OpenDocument) -> Path:
    path = tmp_path / "billing_tracker.ods"
    billing_doc.save(str(path))
    return path
