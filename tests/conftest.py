"""
Shared pytest fixtures for plan_imaging tests.
"""
from pathlib import Path
from typing import List

import openpyxl
import pytest

from plan_imaging.config import PipelineConfig


# =============================================================================
# Spreadsheet fixtures
# =============================================================================

PLAN_ROWS = [
    ["Exercise", "Sets", "Reps", "Weight"],
    ["Bench press", 5, 5, 60],
    ["Incline press", 4, 8, 47.5],
    ["Triceps dips", 3, 12, None],
]


def write_xlsx(path: Path, rows: List[list], title: str = "Plan") -> Path:
    """Write ``rows`` to the first sheet of a new workbook."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(row)
    workbook.save(path)
    return path


@pytest.fixture
def plan_xlsx(tmp_path: Path) -> Path:
    """Small, regular training plan."""
    return write_xlsx(tmp_path / "plan.xlsx", PLAN_ROWS)


@pytest.fixture
def ragged_xlsx(tmp_path: Path) -> Path:
    """Rows of 3, 7 and 1 populated columns."""
    rows = [
        ["Day", "Exercise", "Sets"],
        ["Mon", "Bench", 5, 5, 70, "RPE", 8],
        ["Tue"],
    ]
    return write_xlsx(tmp_path / "ragged.xlsx", rows)


# =============================================================================
# Config / measurement fixtures
# =============================================================================

@pytest.fixture
def config(tmp_path: Path) -> PipelineConfig:
    """Default config with artifacts under tmp_path."""
    return PipelineConfig(cache_dir=tmp_path / "artifacts")


class FakeMeasurer:
    """Every character is 10px wide, regardless of role."""

    def text_width(self, text: str, role: str) -> float:
        return len(text) * 10


@pytest.fixture
def measurer() -> FakeMeasurer:
    return FakeMeasurer()


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class RecordingSurface:
    """Surface that records draw calls instead of drawing."""

    def __init__(self, width: int, height: int, fail_on_save: bool = False):
        self.width = width
        self.height = height
        self.fail_on_save = fail_on_save
        self.texts = []
        self.rects = []
        self.lines = []

    def text_width(self, text: str, role: str) -> float:
        return len(text) * 10

    def fill_rect(self, box, color) -> None:
        self.rects.append((box, color))

    def line(self, x0, y0, x1, y1, color, width=1) -> None:
        self.lines.append(((x0, y0, x1, y1), color))

    def text(self, x, y, text, role, color) -> None:
        self.texts.append((text, role, color))

    def save(self, path: Path) -> None:
        if self.fail_on_save:
            Path(path).write_bytes(b"partial")
            raise OSError("disk full")
        Path(path).write_bytes(b"recorded")


class RecordingBackend(FakeMeasurer):
    def __init__(self, fail_on_save: bool = False):
        self.fail_on_save = fail_on_save
        self.surfaces = []

    def create_surface(self, width: int, height: int) -> RecordingSurface:
        surface = RecordingSurface(width, height, self.fail_on_save)
        self.surfaces.append(surface)
        return surface


@pytest.fixture
def recording_backend() -> RecordingBackend:
    return RecordingBackend()
