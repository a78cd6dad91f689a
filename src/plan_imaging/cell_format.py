"""Turn parsed cells into the text drawn on the image."""

import logging
import math
import re
from datetime import date, datetime, time
from typing import Optional

from .table_document import Cell, CellKind

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d.%m.%Y"
DATETIME_FORMAT = "%d.%m.%Y %H:%M"
TIME_FORMAT = "%H:%M"

# Bracketed colour/locale tags and quoted literals carry no digit information
_FORMAT_NOISE = re.compile(r'\[[^\]]*\]|"[^"]*"|\\.')


def default_number_text(value: float) -> str:
    """Whole numbers without decimals, everything else with one decimal place."""
    if value == math.floor(value):
        return f"{value:.0f}"
    return f"{value:.1f}"


def format_number(value, number_format: Optional[str] = None) -> str:
    """
    Format a number the way the spreadsheet asked for it.

    Supports the parts of Excel number formats a plan sheet actually uses:
    the count of decimal places, a thousands separator and a trailing percent.
    ``General`` or a missing format falls back to :func:`default_number_text`.

    Raises:
        ValueError / TypeError: value is not numeric or not finite
    """
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"Non-finite number {value!r}")

    if not number_format or number_format.strip().lower() == "general":
        return default_number_text(number)

    # Positive section only; negative/zero sections fall back to a minus sign
    section = _FORMAT_NOISE.sub("", number_format.split(";")[0])
    if not any(ch in section for ch in "0#?"):
        return default_number_text(number)

    percent = "%" in section
    if percent:
        number *= 100

    decimals = 0
    if "." in section:
        fraction = section.split(".", 1)[1]
        decimals = len(re.match(r"[0#?]*", fraction).group(0))
    grouping = "," if "," in section.split(".")[0] else ""

    text = f"{number:{grouping}.{decimals}f}"
    return text + "%" if percent else text


def format_temporal(value) -> str:
    """Format a date, time or datetime value."""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime(DATE_FORMAT)
        return value.strftime(DATETIME_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, time):
        return value.strftime(TIME_FORMAT)
    raise TypeError(f"Not a date value: {value!r}")


def format_cell(cell: Optional[Cell]) -> str:
    """
    Display text for a cell; empty string for a missing cell.

    A cell whose value cannot be converted (malformed number or date
    encoding) degrades to ``str(value)`` so one bad cell never aborts the
    whole render.
    """
    if cell is None or not cell.has_content:
        return ""

    try:
        if cell.kind == CellKind.TEXT or cell.kind == CellKind.ERROR:
            # One line per cell: line breaks and runs of whitespace become single spaces
            return " ".join(str(cell.value).split())
        if cell.kind == CellKind.BOOLEAN:
            return "TRUE" if cell.value else "FALSE"
        if cell.kind == CellKind.DATE:
            return format_temporal(cell.value)
        if cell.kind == CellKind.NUMBER:
            return format_number(cell.value, cell.number_format)
    except (ValueError, TypeError, OverflowError) as exc:
        logger.warning(
            "Cell in column %d rendered literally (%s)", cell.column_index, exc
        )
    return str(cell.value)
