"""Tests for drawing and persisting plan images."""
from datetime import datetime

import pytest
from PIL import Image

from plan_imaging import surfaces
from plan_imaging.config import PipelineConfig
from plan_imaging.layout_engine import LayoutEngine, Selection
from plan_imaging.renderer import TableRenderer, truncate_text
from plan_imaging.styles import get_style
from plan_imaging.surfaces import get_backend
from plan_imaging.table_document import TableDocument

from conftest import RecordingBackend

PLAN = TableDocument.from_values([
    ["Exercise", "Sets", "Weight"],
    ["Bench press", 5, 60.0],
    ["Incline press", 4, 47.5],
])

FIXED_NOW = datetime(2024, 5, 17, 9, 30)


def measure(text: str) -> float:
    return len(text) * 10


class TestTruncateText:
    def test_fitting_text_unchanged(self):
        assert truncate_text("Squat", 60, measure) == "Squat"

    def test_truncated_with_ellipsis(self):
        # 60px leaves 30px after the ellipsis: three characters
        assert truncate_text("Bench press", 60, measure) == "Ben..."

    def test_trailing_space_dropped(self):
        assert truncate_text("Ab cdefgh", 60, measure) == "Ab..."

    def test_no_room_for_ellipsis(self):
        assert truncate_text("Bench press", 20, measure) == ""

    def test_empty_text(self):
        assert truncate_text("", 10, measure) == ""


def _render(config, backend, document=PLAN, selection=None):
    style = get_style(config.style)
    engine = LayoutEngine(config, backend)
    geometry = engine.compute_geometry(document, selection or engine.default_selection(document))
    renderer = TableRenderer(config, style, backend, now=lambda: FIXED_NOW)
    return renderer, geometry


class TestDrawing:
    def test_draws_title_header_cells_and_footer(self, tmp_path, recording_backend):
        config = PipelineConfig(cache_dir=tmp_path, column_width=300)
        renderer, geometry = _render(config, recording_backend)

        surface = renderer.render(PLAN, geometry)

        texts = [text for text, _, _ in surface.texts]
        assert texts[0] == "TRAINING PLAN"
        assert ["Exercise", "Sets", "Weight"] == texts[1:4]
        assert "Bench press" in texts
        assert "47.5" in texts
        assert texts[-1] == "Generated by Gen Strong bot • 17.05.2024 09:30"

    def test_first_column_uses_label_colour(self, config, recording_backend):
        style = get_style(config.style)
        renderer, geometry = _render(config, recording_backend)

        surface = renderer.render(PLAN, geometry)

        colors = {text: color for text, role, color in surface.texts if role == "cell"}
        assert colors["Bench press"] == style.label_text_color
        assert colors["60"] == style.value_text_color

    def test_alternating_row_fill(self, config, recording_backend):
        style = get_style("classic")
        renderer, geometry = _render(config, recording_backend)

        surface = renderer.render(PLAN, geometry)

        row_fills = [color for box, color in surface.rects if box == geometry.row_box(1) or box == geometry.row_box(2)]
        assert row_fills == [style.odd_row_color, style.even_row_color]

    def test_zero_rows_draws_only_bands(self, config, recording_backend):
        renderer, geometry = _render(config, recording_backend, selection=Selection.of([], [0, 1]))

        surface = renderer.render(PLAN, geometry)

        assert [role for _, role, _ in surface.texts] == ["title", "footer"]
        assert surface.lines == []

    def test_long_cell_truncated(self, config, recording_backend):
        document = TableDocument.from_values([["Exercise"], ["x" * 100]])
        renderer, geometry = _render(config, recording_backend, document=document)

        surface = renderer.render(document, geometry)

        cell_text = [text for text, role, _ in surface.texts if role == "cell"][0]
        assert cell_text.endswith("...")
        assert measure(cell_text) <= geometry.column_widths[0] - 2 * config.cell_padding

    def test_multiline_cell_drawn_on_one_line(self, tmp_path, recording_backend):
        config = PipelineConfig(cache_dir=tmp_path, column_width=300)
        document = TableDocument.from_values([["Exercise"], ["Bench\npress\n5x5"]])
        renderer, geometry = _render(config, recording_backend, document=document)

        surface = renderer.render(document, geometry)

        texts = [text for text, _, _ in surface.texts]
        assert "Bench press 5x5" in texts
        assert not any("\n" in text for text in texts)


class TestRenderToFile:
    def test_png_matches_geometry(self, config):
        backend = get_backend("png", get_style(config.style))
        renderer, geometry = _render(config, backend)
        target = config.cache_dir / "plan.png"

        renderer.render_to_file(PLAN, geometry, target)

        with Image.open(target) as image:
            assert image.format == "PNG"
            assert image.size == (geometry.image_width, geometry.image_height)

    def test_jpeg_output(self, config):
        backend = get_backend("jpeg", get_style(config.style))
        renderer, geometry = _render(config, backend)
        target = config.cache_dir / "plan.jpg"

        renderer.render_to_file(PLAN, geometry, target)

        with Image.open(target) as image:
            assert image.format == "JPEG"

    def test_pdf_output(self, config):
        backend = get_backend("pdf", get_style("print"))
        renderer, geometry = _render(config, backend)
        target = config.cache_dir / "plan.pdf"

        renderer.render_to_file(PLAN, geometry, target)

        assert target.read_bytes().startswith(b"%PDF")

    def test_failed_save_leaves_no_files(self, config):
        backend = RecordingBackend(fail_on_save=True)
        renderer, geometry = _render(config, backend)
        target = config.cache_dir / "plan.png"

        with pytest.raises(OSError):
            renderer.render_to_file(PLAN, geometry, target)

        assert list(config.cache_dir.iterdir()) == []

    def test_replaces_existing_file(self, config, recording_backend):
        renderer, geometry = _render(config, recording_backend)
        target = config.cache_dir / "plan.png"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"old")

        renderer.render_to_file(PLAN, geometry, target)

        assert target.read_bytes() == b"recorded"
        assert [p.name for p in config.cache_dir.iterdir()] == ["plan.png"]


def test_unknown_output_format():
    with pytest.raises(ValueError):
        get_backend("bmp", get_style("classic"))


class TestPdfFonts:
    def test_custom_font_registered_for_every_role(self, tmp_path, monkeypatch):
        registered = []
        monkeypatch.setattr(surfaces, "TTFont", lambda name, path: (name, path))
        monkeypatch.setattr(surfaces.pdfmetrics, "registerFont", registered.append)
        font_path = tmp_path / "PlanCyrillic.ttf"

        backend = get_backend("pdf", get_style("print"), font_path=font_path)

        assert registered == [("Plan-PlanCyrillic", str(font_path))]
        assert set(backend.font_names.values()) == {"Plan-PlanCyrillic"}

    def test_builtin_fonts_without_font_path(self):
        backend = get_backend("pdf", get_style("print"))

        assert backend.font_names["header"] == "Times-Bold"
        assert backend.font_names["cell"] == "Times-Roman"

    def test_cyrillic_pdf_with_truetype_font(self, config):
        font_path = surfaces._first_existing(surfaces.REGULAR_FONT_CANDIDATES)
        if font_path is None:
            pytest.skip("no TrueType font installed")
        document = TableDocument.from_values([["Упражнение", "Подходы"], ["Жим лёжа", 5]])
        backend = get_backend("pdf", get_style("print"), font_path=font_path)
        renderer, geometry = _render(config, backend, document=document)
        target = config.cache_dir / "plan.pdf"

        renderer.render_to_file(document, geometry, target)

        assert backend.text_width("Жим лёжа", "cell") > 0
        assert target.read_bytes().startswith(b"%PDF")
