"""Draw a laid-out training plan table onto a surface and persist it."""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .cell_format import format_cell
from .config import PipelineConfig
from .layout_engine import GridGeometry
from .styles import GridStyle, RenderStyle
from .surfaces import role_font_size
from .table_document import TableDocument

logger = logging.getLogger(__name__)

ELLIPSIS = "..."
FOOTER_DATE_FORMAT = "%d.%m.%Y %H:%M"


def truncate_text(text: str, max_width: float, measure: Callable[[str], float]) -> str:
    """Truncate text to fit within max_width, adding '...' if needed.

    The cut point comes from measured widths, not character counts, since
    glyph widths vary.
    """
    if not text:
        return text

    if measure(text) <= max_width:
        return text

    available_width = max_width - measure(ELLIPSIS)
    if available_width < 0:
        return ""

    # Binary search for the longest prefix that still fits
    lo, hi = 0, len(text)
    best = 0
    while lo <= hi:
        mid = (lo + hi) // 2
        if measure(text[:mid]) <= available_width:
            best = mid
            lo = mid + 1
        else:
            hi = mid - 1
    return text[:best].rstrip() + ELLIPSIS


class TableRenderer:
    """Renders header band, table header row, body rows and footer band."""

    def __init__(self, config: PipelineConfig, style: RenderStyle, backend,
                 now: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.style = style
        self.backend = backend
        self._now = now or datetime.now

    def render(self, document: TableDocument, geometry: GridGeometry):
        """Draw everything onto a fresh surface and return it."""
        surface = self.backend.create_surface(geometry.image_width, geometry.image_height)

        self._draw_header_band(surface, geometry)
        if geometry.row_count:
            self._draw_header_row(surface, document, geometry)
            self._draw_body_rows(surface, document, geometry)
            self._draw_grid_lines(surface, geometry)
        self._draw_footer(surface, geometry)
        return surface

    def render_to_file(self, document: TableDocument, geometry: GridGeometry, path: Path) -> Path:
        """
        Render and write the result to ``path`` atomically.

        The file is written next to its destination under a temporary name
        and moved into place, so readers only ever see a complete file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        surface = self.render(document, geometry)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".render-", suffix=path.suffix)
        os.close(fd)
        try:
            surface.save(Path(tmp_name))
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(
            "Rendered %s (%dx%d, %d bytes)",
            path.name, geometry.image_width, geometry.image_height, path.stat().st_size,
        )
        return path

    def _text_y(self, y_top: int, role: str) -> int:
        """Top-aligned text position inside a row."""
        slack = max(0, self.config.row_height - role_font_size(self.style, role))
        return y_top + min(self.config.cell_padding, slack // 2)

    def _draw_header_band(self, surface, geometry: GridGeometry):
        """Title band across the full image width."""
        style = self.style
        surface.fill_rect((0, 0, geometry.image_width, geometry.header_height), style.header_band_color)

        max_width = geometry.image_width - 2 * geometry.margin
        title = truncate_text(
            self.config.title, max_width, lambda s: surface.text_width(s, "title")
        )
        title_width = surface.text_width(title, "title")
        x = (geometry.image_width - title_width) / 2
        y = max(0, (geometry.header_height - style.title_font_size) / 2)
        surface.text(x, y, title, "title", style.title_text_color)

    def _draw_cell_text(self, surface, geometry: GridGeometry, display_row: int,
                        display_column: int, text: str, role: str, color):
        x0, y0, x1, _ = geometry.cell_box(display_row, display_column)
        padding = self.config.cell_padding
        available_width = (x1 - x0) - 2 * padding
        display_text = truncate_text(text, available_width, lambda s: surface.text_width(s, role))
        surface.text(x0 + padding, self._text_y(y0, role), display_text, role, color)

    def _draw_header_row(self, surface, document: TableDocument, geometry: GridGeometry):
        """First selected row, drawn as column labels on the header fill."""
        style = self.style
        surface.fill_rect(geometry.row_box(0), style.header_row_color)

        row_index = geometry.selection.rows[0]
        for display_column, column_index in enumerate(geometry.selection.columns):
            text = format_cell(document.cell(row_index, column_index))
            if text:
                self._draw_cell_text(
                    surface, geometry, 0, display_column, text, "header", style.header_text_color
                )

    def _draw_body_rows(self, surface, document: TableDocument, geometry: GridGeometry):
        """Remaining selected rows; the first column uses the label colour."""
        style = self.style
        for display_row in range(1, geometry.row_count):
            if style.grid_style == GridStyle.ALTERNATING_ROWS and display_row % 2 == 0:
                row_color = style.even_row_color
            else:
                row_color = style.odd_row_color
            surface.fill_rect(geometry.row_box(display_row), row_color)

            row_index = geometry.selection.rows[display_row]
            for display_column, column_index in enumerate(geometry.selection.columns):
                text = format_cell(document.cell(row_index, column_index))
                if not text:
                    continue
                color = style.label_text_color if display_column == 0 else style.value_text_color
                self._draw_cell_text(surface, geometry, display_row, display_column, text, "cell", color)

    def _draw_grid_lines(self, surface, geometry: GridGeometry):
        """Table grid lines according to the style's grid mode."""
        style = self.style
        color = style.grid_color
        width = style.grid_line_width
        x_left, y_top, x_right, y_bottom = geometry.table_box()
        header_y_bottom = geometry.row_box(0)[3]

        def hline(y):
            surface.line(x_left, y, x_right, y, color, width)

        def vline(x):
            surface.line(x, y_top, x, y_bottom, color, width)

        if style.grid_style in (GridStyle.FULL_GRID, GridStyle.ALTERNATING_ROWS):
            for display_row in range(geometry.row_count):
                hline(geometry.row_box(display_row)[1])
            hline(y_bottom)
            for x in geometry.column_offsets:
                vline(x)
            vline(x_right)

        elif style.grid_style == GridStyle.HORIZONTAL_ONLY:
            for display_row in range(geometry.row_count):
                hline(geometry.row_box(display_row)[1])
            hline(y_bottom)

        elif style.grid_style == GridStyle.BOX_BORDERS:
            hline(y_top)
            hline(header_y_bottom)
            hline(y_bottom)
            vline(x_left)
            vline(x_right)

    def _draw_footer(self, surface, geometry: GridGeometry):
        """Generation note centred in the footer band."""
        style = self.style
        footer = f"{self.config.footer_text} • {self._now().strftime(FOOTER_DATE_FORMAT)}"
        footer = truncate_text(
            footer, geometry.image_width - 2 * geometry.margin,
            lambda s: surface.text_width(s, "footer"),
        )
        footer_width = surface.text_width(footer, "footer")
        band_top = geometry.image_height - geometry.footer_height
        x = (geometry.image_width - footer_width) / 2
        y = band_top + max(0, (geometry.footer_height - style.footer_font_size) / 2)
        surface.text(x, y, footer, "footer", style.footer_text_color)
