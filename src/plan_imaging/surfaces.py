"""Drawing backends: text measurement plus primitive drawing per output format.

Geometry is always expressed in pixels with the origin at the top-left.
The raster backend draws with Pillow; the PDF backend maps the same
coordinates onto a reportlab canvas (1 px = 1 pt, origin bottom-left).
"""

import io
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.colors import Color
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from .styles import RenderStyle, get_bold_font, to_rgb

logger = logging.getLogger(__name__)

# Text roles and whether they are drawn bold
ROLES = {"title": True, "header": True, "cell": False, "footer": False}

REGULAR_FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/Library/Fonts/Arial.ttf",
    "C:/Windows/Fonts/arial.ttf",
)
BOLD_FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/Library/Fonts/Arial Bold.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
)

Box = Tuple[float, float, float, float]  # x0, y0, x1, y1 (top-left origin)


def role_font_size(style: RenderStyle, role: str) -> int:
    return {
        "title": style.title_font_size,
        "header": style.header_font_size,
        "cell": style.cell_font_size,
        "footer": style.footer_font_size,
    }[role]


def _first_existing(paths: Sequence[str]) -> Optional[str]:
    for p in paths:
        if p and Path(p).exists():
            return str(p)
    return None


def load_pil_font(size: int, bold: bool = False, font_path: Optional[Path] = None):
    """Load a TrueType font for Pillow, falling back to Pillow's bundled font."""
    if font_path is not None:
        return ImageFont.truetype(str(font_path), size=size)

    chosen = _first_existing(BOLD_FONT_CANDIDATES if bold else REGULAR_FONT_CANDIDATES)
    if chosen is None:
        chosen = _first_existing(REGULAR_FONT_CANDIDATES)
    if chosen is None:
        logger.debug("No system TrueType font found, using Pillow default")
        return ImageFont.load_default(size=size)
    return ImageFont.truetype(chosen, size=size)


# ============================================================================
# RASTER (Pillow)
# ============================================================================

class RasterSurface:
    """Pillow image plus its draw handle; owned by exactly one render."""

    def __init__(self, width: int, height: int, style: RenderStyle,
                 fonts: Dict[str, object], image_format: str = "png"):
        self.width = width
        self.height = height
        self.style = style
        self.image_format = image_format
        self._fonts = fonts
        self.image = Image.new("RGB", (max(width, 1), max(height, 1)), to_rgb(style.background_color))
        self._draw = ImageDraw.Draw(self.image)

    def text_width(self, text: str, role: str) -> float:
        return self._fonts[role].getlength(text)

    def fill_rect(self, box: Box, color: Color) -> None:
        x0, y0, x1, y1 = box
        if x1 <= x0 or y1 <= y0:
            return
        self._draw.rectangle([x0, y0, x1 - 1, y1 - 1], fill=to_rgb(color))

    def line(self, x0: float, y0: float, x1: float, y1: float, color: Color, width: int = 1) -> None:
        self._draw.line([(x0, y0), (x1, y1)], fill=to_rgb(color), width=width)

    def text(self, x: float, y: float, text: str, role: str, color: Color) -> None:
        if text:
            self._draw.text((x, y), text, font=self._fonts[role], fill=to_rgb(color))

    def save(self, path: Path) -> None:
        if self.image_format == "jpeg":
            self.image.save(path, format="JPEG", quality=90, optimize=True)
        else:
            self.image.save(path, format="PNG", optimize=True)


class RasterBackend:
    """Measures and draws with Pillow; produces PNG or JPEG files."""

    def __init__(self, style: RenderStyle, image_format: str = "png",
                 font_path: Optional[Path] = None):
        self.style = style
        self.image_format = image_format
        self.fonts = {
            role: load_pil_font(role_font_size(style, role), bold=bold, font_path=font_path)
            for role, bold in ROLES.items()
        }

    def text_width(self, text: str, role: str) -> float:
        return self.fonts[role].getlength(text)

    def create_surface(self, width: int, height: int) -> RasterSurface:
        return RasterSurface(width, height, self.style, self.fonts, self.image_format)


# ============================================================================
# PDF (reportlab)
# ============================================================================

_font_registration = threading.Lock()


def register_pdf_font(font_path: Path) -> str:
    """
    Register a TrueType file with reportlab and return its font name.

    reportlab's built-in fonts only cover Latin-1; a TrueType font is needed
    for Cyrillic plans. Registration is process-wide and happens once per file.
    """
    font_name = f"Plan-{Path(font_path).stem}"
    with _font_registration:
        if font_name not in pdfmetrics.getRegisteredFontNames():
            pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
            logger.debug("Registered PDF font %s from %s", font_name, font_path)
    return font_name


def pdf_font_names(style: RenderStyle, font_path: Optional[Path] = None) -> Dict[str, str]:
    """Font name per text role; a custom TrueType font serves every role."""
    if font_path is not None:
        custom = register_pdf_font(font_path)
        return {role: custom for role in ROLES}
    return {
        role: get_bold_font(style.font_family) if bold else style.font_family
        for role, bold in ROLES.items()
    }


class PdfSurface:
    """Single-page reportlab canvas sized to the image geometry."""

    def __init__(self, width: int, height: int, style: RenderStyle, font_names: Dict[str, str]):
        self.width = width
        self.height = height
        self.style = style
        self._font_names = font_names
        self._buffer = io.BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=(max(width, 1), max(height, 1)))
        self.fill_rect((0, 0, width, height), style.background_color)

    def _font(self, role: str) -> Tuple[str, int]:
        return self._font_names[role], role_font_size(self.style, role)

    def text_width(self, text: str, role: str) -> float:
        font_name, font_size = self._font(role)
        return pdfmetrics.stringWidth(text, font_name, font_size)

    def fill_rect(self, box: Box, color: Color) -> None:
        x0, y0, x1, y1 = box
        if x1 <= x0 or y1 <= y0:
            return
        self._canvas.setFillColor(color)
        self._canvas.rect(x0, self.height - y1, x1 - x0, y1 - y0, fill=True, stroke=False)

    def line(self, x0: float, y0: float, x1: float, y1: float, color: Color, width: int = 1) -> None:
        self._canvas.setStrokeColor(color)
        self._canvas.setLineWidth(width)
        self._canvas.line(x0, self.height - y0, x1, self.height - y1)

    def text(self, x: float, y: float, text: str, role: str, color: Color) -> None:
        if not text:
            return
        font_name, font_size = self._font(role)
        self._canvas.setFont(font_name, font_size)
        self._canvas.setFillColor(color)
        # Place the baseline so the glyph tops sit near y, like Pillow's anchor
        baseline = self.height - y - font_size * 0.8
        self._canvas.drawString(x, baseline, text)

    def save(self, path: Path) -> None:
        self._canvas.showPage()
        self._canvas.save()
        Path(path).write_bytes(self._buffer.getvalue())


class PdfBackend:
    """Measures with reportlab font metrics and draws PDF pages."""

    def __init__(self, style: RenderStyle, font_path: Optional[Path] = None):
        self.style = style
        self.font_names = pdf_font_names(style, font_path)

    def text_width(self, text: str, role: str) -> float:
        return pdfmetrics.stringWidth(text, self.font_names[role], role_font_size(self.style, role))

    def create_surface(self, width: int, height: int) -> PdfSurface:
        return PdfSurface(width, height, self.style, self.font_names)


def get_backend(output_format: str, style: RenderStyle, font_path: Optional[Path] = None):
    """Create a fresh backend for one render."""
    if output_format == "pdf":
        return PdfBackend(style, font_path=font_path)
    if output_format in ("png", "jpeg"):
        return RasterBackend(style, image_format=output_format, font_path=font_path)
    raise ValueError(f"Unsupported output format: {output_format}")
