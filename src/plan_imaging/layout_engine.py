"""Layout engine for placing a spreadsheet table on an image canvas."""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .cell_format import format_cell
from .config import PipelineConfig
from .errors import EmptySelection
from .table_document import TableDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    """Sheet row and column indices to render, in display order."""
    rows: Tuple[int, ...]
    columns: Tuple[int, ...]

    @classmethod
    def of(cls, rows: Sequence[int], columns: Sequence[int]) -> "Selection":
        return cls(rows=tuple(rows), columns=tuple(columns))


@dataclass
class GridGeometry:
    """Pixel geometry of one render. Row 0 of the selection is the header row."""
    column_widths: List[int]
    row_height: int
    table_origin: Tuple[int, int]
    table_width: int
    image_width: int
    image_height: int
    header_height: int
    footer_height: int
    margin: int
    selection: Selection
    dropped_rows: int = 0
    column_offsets: List[int] = field(init=False)

    def __post_init__(self):
        offsets = []
        x = self.table_origin[0]
        for width in self.column_widths:
            offsets.append(x)
            x += width
        self.column_offsets = offsets

    @property
    def row_count(self) -> int:
        return len(self.selection.rows)

    @property
    def table_height(self) -> int:
        return self.row_height * self.row_count

    def row_box(self, display_row: int) -> Tuple[int, int, int, int]:
        """Bounding box of a row as (x0, y0, x1, y1), top-left origin."""
        x0, y_table = self.table_origin
        y0 = y_table + display_row * self.row_height
        return (x0, y0, x0 + self.table_width, y0 + self.row_height)

    def cell_box(self, display_row: int, display_column: int) -> Tuple[int, int, int, int]:
        """Bounding box of a cell as (x0, y0, x1, y1), top-left origin."""
        _, y0, _, y1 = self.row_box(display_row)
        x0 = self.column_offsets[display_column]
        return (x0, y0, x0 + self.column_widths[display_column], y1)

    def table_box(self) -> Tuple[int, int, int, int]:
        x0, y0 = self.table_origin
        return (x0, y0, x0 + self.table_width, y0 + self.table_height)


class LayoutEngine:
    """Computes selections, column widths and image geometry.

    Text is measured through ``measurer.text_width(text, role)`` so the
    widths match the backend that will draw them. Nothing here depends on
    earlier renders: equal inputs give equal geometry.
    """

    def __init__(self, config: PipelineConfig, measurer):
        self.config = config
        self.measurer = measurer

    def default_selection(self, document: TableDocument) -> Selection:
        """All populated rows and every column up to the widest row."""
        rows = document.populated_row_indices()
        if len(rows) > self.config.max_rows:
            logger.warning(
                "Table has %d rows, keeping the first %d", len(rows), self.config.max_rows
            )
            rows = rows[:self.config.max_rows]

        if self.config.trim_empty_columns:
            populated = document.populated_column_indices()
            columns = list(range(populated[0], populated[-1] + 1)) if populated else []
        else:
            columns = list(range(document.max_column_count))
        if len(columns) > self.config.max_columns:
            logger.warning(
                "Table has %d columns, keeping the first %d", len(columns), self.config.max_columns
            )
            columns = columns[:self.config.max_columns]

        return Selection.of(rows, columns)

    def validate_selection(self, selection: Selection) -> None:
        if not selection.columns:
            raise EmptySelection("Selection contains no columns")
        if any(index < 0 for index in selection.columns + selection.rows):
            raise EmptySelection("Selection contains negative indices")

    def base_column_width(self) -> int:
        """Uniform column width clamped into [min, max]."""
        width = max(self.config.column_width, self.config.min_column_width)
        return min(width, self.config.max_column_width)

    def compute_column_widths(self, document: TableDocument, selection: Selection) -> List[int]:
        """
        Width per selected column.

        A column keeps the uniform width unless its widest text (plus
        padding) needs more; then it grows up to ``max_column_width``.
        """
        self.validate_selection(selection)
        base = self.base_column_width()
        padding = 2 * self.config.cell_padding

        widths = []
        for column_index in selection.columns:
            content = 0
            for display_row, row_index in enumerate(selection.rows):
                text = format_cell(document.cell(row_index, column_index))
                if not text:
                    continue
                role = "header" if display_row == 0 else "cell"
                content = max(content, math.ceil(self.measurer.text_width(text, role)))
            needed = content + padding if content else 0

            if needed > base:
                width = min(needed, self.config.max_column_width)
            else:
                width = base
            widths.append(max(width, self.config.min_column_width))
        return widths

    def fit_widths_to_canvas(self, widths: List[int]) -> List[int]:
        """Scale widths down proportionally when the table is wider than the canvas."""
        available = self.config.canvas_width - 2 * self.config.margin
        total = sum(widths)
        if total <= available or total == 0:
            return widths

        scale = available / total
        fitted = [max(self.config.min_column_width, int(w * scale)) for w in widths]
        logger.warning(
            "Table width %dpx exceeds canvas, scaled by %.3f to %dpx",
            total, scale, sum(fitted),
        )
        return fitted

    def fit_rows_to_canvas(self, selection: Selection) -> Tuple[Selection, int]:
        """Drop trailing rows that do not fit the canvas height."""
        available = self.config.canvas_height - self.config.header_height - self.config.footer_height
        capacity = max(0, available // self.config.row_height)
        if len(selection.rows) <= capacity:
            return selection, 0

        dropped = len(selection.rows) - capacity
        logger.warning("Canvas fits %d rows, dropping %d", capacity, dropped)
        return Selection(rows=selection.rows[:capacity], columns=selection.columns), dropped

    def compute_geometry(self, document: TableDocument, selection: Selection) -> GridGeometry:
        """
        Compute pixel geometry for the selection.

        Raises:
            EmptySelection: the selection has no columns
        """
        self.validate_selection(selection)
        selection, dropped = self.fit_rows_to_canvas(selection)
        widths = self.fit_widths_to_canvas(self.compute_column_widths(document, selection))

        cfg = self.config
        table_width = sum(widths)
        image_width = table_width + 2 * cfg.margin
        image_height = cfg.header_height + cfg.row_height * len(selection.rows) + cfg.footer_height

        geometry = GridGeometry(
            column_widths=widths,
            row_height=cfg.row_height,
            table_origin=(cfg.margin, cfg.header_height),
            table_width=table_width,
            image_width=image_width,
            image_height=image_height,
            header_height=cfg.header_height,
            footer_height=cfg.footer_height,
            margin=cfg.margin,
            selection=selection,
            dropped_rows=dropped,
        )
        logger.debug(
            "Geometry %dx%d, %d columns, %d rows",
            image_width, image_height, len(widths), len(selection.rows),
        )
        return geometry
