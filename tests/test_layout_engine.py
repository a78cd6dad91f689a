"""Tests for selection, column sizing and image geometry."""
import pytest

from plan_imaging.config import PipelineConfig
from plan_imaging.errors import EmptySelection
from plan_imaging.layout_engine import LayoutEngine, Selection
from plan_imaging.table_document import TableDocument

PLAN = TableDocument.from_values([
    ["Exercise", "Sets", "Reps"],
    ["Bench press", 5, 5],
    ["Incline dumbbell press", 4, 8],
])


@pytest.fixture
def engine(config, measurer):
    return LayoutEngine(config, measurer)


class TestGeometry:
    def test_deterministic(self, engine):
        selection = engine.default_selection(PLAN)

        first = engine.compute_geometry(PLAN, selection)
        second = engine.compute_geometry(PLAN, selection)

        assert first == second

    def test_independent_of_earlier_renders(self, config, measurer):
        other = TableDocument.from_values([["x" * 60, "y"]])
        fresh = LayoutEngine(config, measurer)
        used = LayoutEngine(config, measurer)
        used.compute_geometry(other, used.default_selection(other))

        assert (fresh.compute_geometry(PLAN, fresh.default_selection(PLAN))
                == used.compute_geometry(PLAN, used.default_selection(PLAN)))

    def test_dimensions(self, engine, config):
        geometry = engine.compute_geometry(PLAN, engine.default_selection(PLAN))

        assert geometry.image_width == sum(geometry.column_widths) + 2 * config.margin
        assert geometry.image_height == (
            config.header_height + 3 * config.row_height + config.footer_height
        )
        assert geometry.table_origin == (config.margin, config.header_height)
        assert geometry.column_offsets[0] == config.margin
        assert geometry.column_offsets[1] == config.margin + geometry.column_widths[0]

    def test_zero_rows(self, engine, config):
        geometry = engine.compute_geometry(PLAN, Selection.of([], [0, 1]))

        assert geometry.image_height == config.header_height + config.footer_height
        assert geometry.column_widths == [120, 120]
        assert geometry.row_count == 0

    def test_zero_columns(self, engine):
        with pytest.raises(EmptySelection):
            engine.compute_geometry(PLAN, Selection.of([0, 1], []))

    def test_negative_index(self, engine):
        with pytest.raises(EmptySelection):
            engine.compute_geometry(PLAN, Selection.of([-1], [0]))

    def test_cell_box(self, engine, config):
        geometry = engine.compute_geometry(PLAN, engine.default_selection(PLAN))

        x0, y0, x1, y1 = geometry.cell_box(1, 1)
        assert y0 == config.header_height + config.row_height
        assert y1 - y0 == config.row_height
        assert x1 - x0 == geometry.column_widths[1]


class TestColumnWidths:
    def test_short_content_keeps_uniform_width(self, engine):
        document = TableDocument.from_values([["Sets"], [5]])

        assert engine.compute_column_widths(document, Selection.of([0, 1], [0])) == [120]

    def test_long_content_grows_column(self, engine):
        # 22 chars * 10px + 2 * 10px padding
        widths = engine.compute_column_widths(PLAN, Selection.of([0, 1, 2], [0]))

        assert widths == [240]

    def test_width_capped(self, engine, config):
        document = TableDocument.from_values([["x" * 80]])

        widths = engine.compute_column_widths(document, Selection.of([0], [0]))

        assert widths == [config.max_column_width]

    def test_content_exactly_at_cap(self, engine, config):
        # 33 chars * 10px + 20px padding == 350
        document = TableDocument.from_values([["x" * 33]])

        assert engine.compute_column_widths(document, Selection.of([0], [0])) == [350]

    def test_empty_column_gets_uniform_width(self, engine):
        document = TableDocument.from_values([["a", None, "c"]])

        assert engine.compute_column_widths(document, Selection.of([0], [0, 1, 2])) == [120, 120, 120]

    def test_uniform_width_clamped_to_bounds(self, measurer, tmp_path):
        config = PipelineConfig(cache_dir=tmp_path, column_width=40, min_column_width=80)

        assert LayoutEngine(config, measurer).base_column_width() == 80


class TestSelection:
    def test_default_selection_spans_widest_row(self, engine):
        document = TableDocument.from_values([["a"], ["a", "b", "c", "d"]])

        selection = engine.default_selection(document)

        assert selection.rows == (0, 1)
        assert selection.columns == (0, 1, 2, 3)

    def test_empty_rows_skipped(self, engine):
        document = TableDocument.from_values([["a"], [], ["b"]])

        assert engine.default_selection(document).rows == (0, 2)

    def test_max_rows(self, measurer, tmp_path):
        config = PipelineConfig(cache_dir=tmp_path, max_rows=2)
        document = TableDocument.from_values([[i] for i in range(5)])

        assert LayoutEngine(config, measurer).default_selection(document).rows == (0, 1)

    def test_max_columns(self, measurer, tmp_path):
        config = PipelineConfig(cache_dir=tmp_path, max_columns=3)
        document = TableDocument.from_values([list(range(10))])

        assert LayoutEngine(config, measurer).default_selection(document).columns == (0, 1, 2)

    def test_trim_empty_columns(self, measurer, tmp_path):
        config = PipelineConfig(cache_dir=tmp_path, trim_empty_columns=True)
        document = TableDocument.from_values([[None, None, "a", None, "b"]])

        assert LayoutEngine(config, measurer).default_selection(document).columns == (2, 3, 4)

    def test_empty_document_has_no_columns(self, engine):
        document = TableDocument.from_values([])

        with pytest.raises(EmptySelection):
            engine.compute_geometry(document, engine.default_selection(document))


class TestCanvasFit:
    def test_wide_table_scaled_down(self, measurer, tmp_path):
        config = PipelineConfig(cache_dir=tmp_path, canvas_width=330)
        document = TableDocument.from_values([["a", "b", "c", "d"]])
        engine = LayoutEngine(config, measurer)

        geometry = engine.compute_geometry(document, engine.default_selection(document))

        assert geometry.column_widths == [80, 80, 80, 80]

    def test_tall_table_drops_rows(self, measurer, tmp_path):
        # room for exactly three rows between the bands
        config = PipelineConfig(cache_dir=tmp_path, canvas_height=70 + 30 + 3 * 50)
        document = TableDocument.from_values([[i] for i in range(5)])
        engine = LayoutEngine(config, measurer)

        geometry = engine.compute_geometry(document, engine.default_selection(document))

        assert geometry.row_count == 3
        assert geometry.dropped_rows == 2
        assert geometry.image_height == config.canvas_height
