"""Format-agnostic table model and the spreadsheet parsers that build it.

A training plan arrives as a spreadsheet produced upstream. Only the first
sheet is read. Rows keep their sheet position (0-based) and store only the
cells that hold something, so ragged and sparse sheets need no padding.
"""

import logging
import os
import struct
import zipfile
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.biffh import error_text_from_code
from xlrd.compdoc import CompDocError
from xlrd.xldate import XLDateError, xldate_as_datetime

from .errors import (
    DocumentUnavailable,
    EmptyDocument,
    SheetNotFound,
    UnsupportedFormat,
)

logger = logging.getLogger(__name__)

CellValue = Union[str, int, float, bool, datetime, date, time, None]


class CellKind(Enum):
    """What a cell holds, independent of the source format."""
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ERROR = "error"
    EMPTY = "empty"


@dataclass(frozen=True)
class Cell:
    """A single populated cell."""
    column_index: int
    value: CellValue
    kind: CellKind
    number_format: Optional[str] = None

    @property
    def has_content(self) -> bool:
        if self.kind == CellKind.EMPTY or self.value is None:
            return False
        if isinstance(self.value, str):
            return bool(self.value.strip())
        return True


@dataclass(frozen=True)
class Row:
    """One sheet row; ``cells`` is sorted by column and sparse."""
    index: int
    cells: Tuple[Cell, ...] = ()

    def __post_init__(self):
        seen = set()
        for cell in self.cells:
            if cell.column_index < 0:
                raise ValueError(f"Negative column index in row {self.index}")
            if cell.column_index in seen:
                raise ValueError(
                    f"Duplicate column {cell.column_index} in row {self.index}"
                )
            seen.add(cell.column_index)

    @property
    def last_column(self) -> int:
        """Last populated column index + 1 (0 for an empty row)."""
        if not self.cells:
            return 0
        return max(cell.column_index for cell in self.cells) + 1

    def cell(self, column_index: int) -> Optional[Cell]:
        for cell in self.cells:
            if cell.column_index == column_index:
                return cell
        return None


@dataclass(frozen=True)
class TableDocument:
    """Read-only view of the first sheet of a parsed spreadsheet."""
    rows: Tuple[Row, ...]
    sheet_name: str = ""
    source_format: str = ""

    @property
    def max_column_count(self) -> int:
        """Widest row, measured as last populated column + 1."""
        max_columns = 0
        for row in self.rows:
            if row.last_column > max_columns:
                max_columns = row.last_column
        return max_columns

    def row(self, row_index: int) -> Optional[Row]:
        for row in self.rows:
            if row.index == row_index:
                return row
        return None

    def cell(self, row_index: int, column_index: int) -> Optional[Cell]:
        row = self.row(row_index)
        if row is None:
            return None
        return row.cell(column_index)

    def populated_row_indices(self) -> List[int]:
        return [row.index for row in self.rows if row.cells]

    def populated_column_indices(self) -> List[int]:
        columns = set()
        for row in self.rows:
            columns.update(cell.column_index for cell in row.cells)
        return sorted(columns)

    @classmethod
    def from_values(cls, values: List[List[CellValue]], sheet_name: str = "") -> "TableDocument":
        """Build a document from plain nested lists (``None`` = empty)."""
        rows = []
        for row_index, row_values in enumerate(values):
            cells = []
            for column_index, value in enumerate(row_values):
                cell = Cell(column_index, value, _kind_of(value))
                if cell.has_content:
                    cells.append(cell)
            rows.append(Row(row_index, tuple(cells)))
        return cls(rows=tuple(rows), sheet_name=sheet_name, source_format="memory")


def _kind_of(value: CellValue) -> CellKind:
    if value is None:
        return CellKind.EMPTY
    if isinstance(value, bool):
        return CellKind.BOOLEAN
    if isinstance(value, (int, float)):
        return CellKind.NUMBER
    if isinstance(value, (datetime, date, time)):
        return CellKind.DATE
    return CellKind.TEXT


# ============================================================================
# PARSERS
# ============================================================================

def _parse_xlsx(path: Path) -> TableDocument:
    # Malformed package XML raises SyntaxError subclasses (ElementTree and lxml alike)
    try:
        # data_only: take cached formula results instead of formula strings
        workbook = openpyxl.load_workbook(str(path), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, SyntaxError,
            KeyError, ValueError, OSError) as exc:
        raise DocumentUnavailable(f"Cannot open workbook {path.name}: {exc}") from exc

    try:
        if not workbook.worksheets:
            raise EmptyDocument(f"Workbook {path.name} contains no sheets")
        sheet = workbook.worksheets[0]
        if sheet is None:
            raise SheetNotFound(f"First sheet of {path.name} not found")

        rows = []
        for row_index, xl_row in enumerate(sheet.iter_rows()):
            cells = []
            for column_index, xl_cell in enumerate(xl_row):
                value = xl_cell.value
                if value is None:
                    continue  # also covers the non-anchor part of merged ranges
                kind = _kind_of(value)
                if kind == CellKind.TEXT and getattr(xl_cell, "data_type", None) == "e":
                    kind = CellKind.ERROR
                cell = Cell(
                    column_index=column_index,
                    value=value,
                    kind=kind,
                    number_format=getattr(xl_cell, "number_format", None),
                )
                if cell.has_content:
                    cells.append(cell)
            rows.append(Row(row_index, tuple(cells)))
        return TableDocument(rows=tuple(rows), sheet_name=sheet.title, source_format="xlsx")
    finally:
        workbook.close()


def _xls_number_format(book, xl_cell) -> Optional[str]:
    if xl_cell.xf_index is None:
        return None
    try:
        xf = book.xf_list[xl_cell.xf_index]
        return book.format_map[xf.format_key].format_str
    except (IndexError, KeyError):
        return None


def _parse_xls(path: Path) -> TableDocument:
    try:
        book = xlrd.open_workbook(str(path), formatting_info=True)
    except (xlrd.XLRDError, CompDocError, struct.error, AssertionError,
            IndexError, OSError) as exc:
        raise DocumentUnavailable(f"Cannot open workbook {path.name}: {exc}") from exc

    try:
        if book.nsheets == 0:
            raise EmptyDocument(f"Workbook {path.name} contains no sheets")
        try:
            sheet = book.sheet_by_index(0)
        except IndexError as exc:
            raise SheetNotFound(f"First sheet of {path.name} not found") from exc

        rows = []
        for row_index in range(sheet.nrows):
            cells = []
            for column_index, xl_cell in enumerate(sheet.row(row_index)):
                ctype = xl_cell.ctype
                value = xl_cell.value
                if ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                    continue
                if ctype == xlrd.XL_CELL_TEXT:
                    kind = CellKind.TEXT
                elif ctype == xlrd.XL_CELL_NUMBER:
                    kind = CellKind.NUMBER
                elif ctype == xlrd.XL_CELL_BOOLEAN:
                    kind = CellKind.BOOLEAN
                    value = bool(value)
                elif ctype == xlrd.XL_CELL_DATE:
                    kind = CellKind.DATE
                    try:
                        value = xldate_as_datetime(value, book.datemode)
                    except (XLDateError, OverflowError, ValueError):
                        # Left as the raw serial; rendered literally later
                        logger.warning(
                            "Undecodable date serial %r at row %d col %d",
                            value, row_index, column_index,
                        )
                else:
                    kind = CellKind.ERROR
                    value = error_text_from_code.get(value, "#ERR")

                cell = Cell(
                    column_index=column_index,
                    value=value,
                    kind=kind,
                    number_format=_xls_number_format(book, xl_cell),
                )
                if cell.has_content:
                    cells.append(cell)
            rows.append(Row(row_index, tuple(cells)))
        return TableDocument(rows=tuple(rows), sheet_name=sheet.name, source_format="xls")
    finally:
        book.release_resources()


PARSERS: Dict[str, Callable[[Path], TableDocument]] = {
    ".xlsx": _parse_xlsx,
    ".xls": _parse_xls,
}


def validate_source(source: Union[str, Path]) -> Path:
    """Check the source is a supported, non-empty, readable file."""
    path = Path(source)
    if path.suffix.lower() not in PARSERS:
        logger.error("Unsupported spreadsheet format: %s", path.name)
        raise UnsupportedFormat(f"Unsupported spreadsheet format: {path.name}")
    if not path.is_file():
        logger.error("Spreadsheet does not exist: %s", path)
        raise DocumentUnavailable(f"Spreadsheet does not exist: {path}")
    if not os.access(path, os.R_OK):
        logger.error("Spreadsheet is not readable: %s", path)
        raise DocumentUnavailable(f"Spreadsheet is not readable: {path}")
    if path.stat().st_size == 0:
        logger.error("Spreadsheet is empty: %s", path)
        raise DocumentUnavailable(f"Spreadsheet is empty: {path}")
    return path


def parse_document(source: Union[str, Path]) -> TableDocument:
    """
    Parse the first sheet of a spreadsheet into a TableDocument.

    Args:
        source: Path to an ``.xlsx`` or ``.xls`` file

    Returns:
        Immutable TableDocument of the first sheet

    Raises:
        UnsupportedFormat: extension is neither ``.xlsx`` nor ``.xls``
        DocumentUnavailable: file missing, unreadable, empty or corrupt
        EmptyDocument: workbook has no sheets
        SheetNotFound: first sheet could not be read
    """
    path = validate_source(source)
    parser = PARSERS[path.suffix.lower()]
    document = parser(path)
    logger.info(
        "Parsed %s (%s): sheet %r, %d rows, %d columns",
        path.name, document.source_format, document.sheet_name,
        len(document.rows), document.max_column_count,
    )
    return document
