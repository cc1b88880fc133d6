"""
ODS style management functions
"""

from __future__ import annotations

from typing import Any

from odf import number, style
from odf.namespaces import STYLENS

DATE_STYLE_NAME = "billing-date-style"
HEADER_STYLE_NAME = "billing-header-style"


def _find_style(doc: Any, style_name: str) -> bool:
    if not hasattr(doc, "styles"):
        return False
    for existing_style in doc.styles.getElementsByType(style.Style):
        if existing_style.getAttribute("name") == style_name:
            return True
    return False


def ensure_date_style_exists(doc: Any) -> str:
    """
    Ensure a date-only style exists in the document and return its name.

    Dates copied from billing exports are shown as DD/MM/YYYY.

    Args:
        doc: ODS document object

    Returns:
        Name of the date style to use
    """
    number_style_name = "N_BILLING_DATE"

    if _find_style(doc, DATE_STYLE_NAME):
        return DATE_STYLE_NAME

    date_style = number.DateStyle(name=number_style_name)
    date_style.addElement(number.Day(style="long"))
    date_style.addElement(number.Text(text="/"))
    date_style.addElement(number.Month(style="long"))
    date_style.addElement(number.Text(text="/"))
    date_style.addElement(number.Year(style="long"))
    doc.styles.addElement(date_style)

    cell_style = style.Style(name=DATE_STYLE_NAME, family="table-cell")
    cell_style.setAttrNS(STYLENS, "data-style-name", number_style_name)
    doc.styles.addElement(cell_style)

    return DATE_STYLE_NAME


def ensure_header_style_exists(doc: Any) -> str:
    """Ensure a bold header cell style exists and return its name."""
    if _find_style(doc, HEADER_STYLE_NAME):
        return HEADER_STYLE_NAME

    header_style = style.Style(name=HEADER_STYLE_NAME, family="table-cell")
    header_style.addElement(style.TextProperties(fontweight="bold"))
    doc.styles.addElement(header_style)

    return HEADER_STYLE_NAME
