"""Visual style profiles for rendered training plans."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple
from reportlab.lib.colors import Color, black, white, HexColor


class GridStyle(Enum):
    """Grid line rendering styles."""
    FULL_GRID = "full_grid"           # All horizontal + vertical lines
    HORIZONTAL_ONLY = "horizontal"     # Only horizontal lines
    ALTERNATING_ROWS = "alternating"   # Zebra striping with full grid
    BOX_BORDERS = "box_borders"        # Outer border + header separator


@dataclass(frozen=True)
class RenderStyle:
    """Colours and font sizes for one look of the plan image."""
    name: str
    font_family: str  # reportlab base font, used by the PDF backend
    title_font_size: int
    header_font_size: int
    cell_font_size: int
    footer_font_size: int
    grid_style: GridStyle
    grid_line_width: int
    background_color: Color
    header_band_color: Color
    title_text_color: Color
    header_row_color: Color
    header_text_color: Color
    odd_row_color: Color
    even_row_color: Color
    grid_color: Color
    label_text_color: Color   # first column (exercise names)
    value_text_color: Color   # remaining columns (sets, reps, weights)
    footer_text_color: Color


STYLES: Dict[str, RenderStyle] = {
    # Palette of the bot's original plan images
    "classic": RenderStyle(
        name="classic",
        font_family="Helvetica",
        title_font_size=24,
        header_font_size=18,
        cell_font_size=14,
        footer_font_size=10,
        grid_style=GridStyle.ALTERNATING_ROWS,
        grid_line_width=1,
        background_color=HexColor("#FAFAFA"),
        header_band_color=HexColor("#3498DB"),
        title_text_color=white,
        header_row_color=HexColor("#2980B9"),
        header_text_color=white,
        odd_row_color=white,
        even_row_color=HexColor("#F5F5F5"),
        grid_color=HexColor("#D2D2D2"),
        label_text_color=black,
        value_text_color=HexColor("#DC0000"),
        footer_text_color=HexColor("#646464"),
    ),
    "print": RenderStyle(
        name="print",
        font_family="Helvetica",
        title_font_size=22,
        header_font_size=16,
        cell_font_size=14,
        footer_font_size=10,
        grid_style=GridStyle.FULL_GRID,
        grid_line_width=1,
        background_color=white,
        header_band_color=white,
        title_text_color=black,
        header_row_color=HexColor("#E8E8E8"),
        header_text_color=black,
        odd_row_color=white,
        even_row_color=white,
        grid_color=black,
        label_text_color=black,
        value_text_color=black,
        footer_text_color=HexColor("#646464"),
    ),
    "dark": RenderStyle(
        name="dark",
        font_family="Helvetica",
        title_font_size=24,
        header_font_size=18,
        cell_font_size=14,
        footer_font_size=10,
        grid_style=GridStyle.HORIZONTAL_ONLY,
        grid_line_width=1,
        background_color=HexColor("#1E1E1E"),
        header_band_color=HexColor("#2D2D2D"),
        title_text_color=HexColor("#F5C542"),
        header_row_color=HexColor("#3A3A3A"),
        header_text_color=white,
        odd_row_color=HexColor("#252525"),
        even_row_color=HexColor("#2B2B2B"),
        grid_color=HexColor("#4A4A4A"),
        label_text_color=white,
        value_text_color=HexColor("#F5C542"),
        footer_text_color=HexColor("#9A9A9A"),
    ),
    "minimal": RenderStyle(
        name="minimal",
        font_family="Times-Roman",
        title_font_size=22,
        header_font_size=16,
        cell_font_size=14,
        footer_font_size=10,
        grid_style=GridStyle.BOX_BORDERS,
        grid_line_width=1,
        background_color=white,
        header_band_color=white,
        title_text_color=black,
        header_row_color=HexColor("#F0F0F0"),
        header_text_color=black,
        odd_row_color=white,
        even_row_color=white,
        grid_color=HexColor("#999999"),
        label_text_color=black,
        value_text_color=HexColor("#2C5282"),
        footer_text_color=HexColor("#646464"),
    ),
}


def get_style(name: str) -> RenderStyle:
    """Get a style profile by name, with fallback to the classic look."""
    return STYLES.get(name, STYLES["classic"])


def get_bold_font(font_family: str) -> str:
    """Get the bold variant of a font family."""
    if font_family == "Times-Roman":
        return "Times-Bold"
    elif font_family == "Courier":
        return "Courier-Bold"
    else:
        return f"{font_family}-Bold"


def to_rgb(color: Color) -> Tuple[int, int, int]:
    """Convert a reportlab colour to an 8-bit RGB tuple for Pillow."""
    return tuple(int(round(channel * 255)) for channel in color.rgb())
