"""Configuration dataclass and YAML loading for the rendering pipeline."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional
import yaml


SUPPORTED_OUTPUT_FORMATS = ("png", "jpeg", "pdf")
ARTIFACT_EXTENSIONS = ("png", "jpg", "pdf")


@dataclass
class PipelineConfig:
    """Main configuration for rendering and caching training plans."""

    # Where rendered artifacts live; each cache key maps to one file here
    cache_dir: Path = field(default_factory=lambda: Path("generatedTrainingImages"))
    output_format: str = "png"

    # Artifact cache
    cache_enabled: bool = True
    cache_ttl_seconds: float = 3600.0
    cache_max_entries: int = 50
    cleanup_interval_seconds: Optional[float] = None  # None -> ttl / 2

    # Canvas bounds (pixels); larger tables are scaled or cut to fit
    canvas_width: int = 8000
    canvas_height: int = 16000

    # Column sizing (pixels)
    column_width: int = 120
    min_column_width: int = 80
    max_column_width: int = 350

    # Fixed bands and spacing (pixels)
    row_height: int = 50
    header_height: int = 70
    footer_height: int = 30
    margin: int = 15
    cell_padding: int = 10

    # Selection limits
    max_rows: int = 200
    max_columns: int = 50
    trim_empty_columns: bool = False

    # Appearance
    style: str = "classic"
    title: str = "TRAINING PLAN"
    footer_text: str = "Generated by Gen Strong bot"
    font_path: Optional[Path] = None

    def __post_init__(self):
        self.output_format = self.output_format.lower()
        if self.output_format == "jpg":
            self.output_format = "jpeg"
        if self.output_format not in SUPPORTED_OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format: {self.output_format}")
        if self.min_column_width > self.max_column_width:
            raise ValueError("min_column_width must not exceed max_column_width")
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be positive")

    @property
    def effective_cleanup_interval(self) -> float:
        """Seconds between periodic cache sweeps."""
        if self.cleanup_interval_seconds:
            return self.cleanup_interval_seconds
        return self.cache_ttl_seconds / 2

    @property
    def file_extension(self) -> str:
        return "jpg" if self.output_format == "jpeg" else self.output_format

    @classmethod
    def from_yaml(cls, path: Path) -> "PipelineConfig":
        """Load configuration from a YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

        # Convert paths
        if "cache_dir" in data:
            data["cache_dir"] = Path(data["cache_dir"])
        if data.get("font_path"):
            data["font_path"] = Path(data["font_path"])

        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save configuration to a YAML file."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Path):
                value = str(value)
            data[f.name] = value
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def load_config(path: Optional[Path] = None) -> PipelineConfig:
    """Load config from path or return default config."""
    if path is None:
        return PipelineConfig()
    return PipelineConfig.from_yaml(path)
