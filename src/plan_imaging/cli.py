"""Command-line interface for rendering training plans."""

import argparse
import logging
import sys
from pathlib import Path

from .artifact_cache import ArtifactCache
from .config import ARTIFACT_EXTENSIONS, PipelineConfig, load_config
from .errors import PlanImagingError
from .pipeline import TrainingPlanPipeline
from .producers import DirectoryConsumer, DocumentIdentity


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Load config and apply command-line overrides."""
    config = load_config(args.config)

    if getattr(args, "cache_dir", None):
        config.cache_dir = args.cache_dir
    if getattr(args, "no_cache", False):
        config.cache_enabled = False
    if getattr(args, "format", None):
        config = PipelineConfig(**{**vars(config), "output_format": args.format})
    if getattr(args, "style", None):
        config.style = args.style
    return config


def cmd_render(args: argparse.Namespace) -> int:
    config = build_config(args)
    cache = ArtifactCache.from_config(config)
    cache.load_existing(config.file_extension)
    pipeline = TrainingPlanPipeline(config, cache=cache)

    identity = DocumentIdentity(
        numeric_parameter=args.bench_press,
        template_reference=args.template or args.file.stem,
    )
    try:
        if args.deliver_to:
            path = pipeline.render_and_deliver(identity, args.file, DirectoryConsumer(args.deliver_to))
        else:
            path = pipeline.render(identity, args.file)
    except PlanImagingError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    entry = cache.get_entry(path.stem)
    print("Render complete!")
    print(f"  Source: {args.file}")
    print(f"  Bench press: {args.bench_press:g} kg")
    print(f"  Template: {identity.template_reference}")
    print(f"  Image: {path}")
    if entry is not None and entry.width:
        print(f"  Size: {entry.width}x{entry.height}")
    if args.deliver_to:
        print(f"  Delivered to: {args.deliver_to}")
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    config = build_config(args)
    if not config.cache_enabled:
        print("Cache disabled, nothing to clean")
        return 0

    # One index per format: a key may have artifacts in several formats
    found = removed = remaining = 0
    for extension in ARTIFACT_EXTENSIONS:
        cache = ArtifactCache.from_config(config)
        found += cache.load_existing(extension)
        removed += cache.cleanup()
        remaining += len(cache)

    print("Cleanup complete!")
    print(f"  Cache directory: {config.cache_dir}")
    print(f"  Artifacts found: {found}")
    print(f"  Removed: {removed}")
    print(f"  Remaining: {remaining}")
    return 0


def cmd_dump_config(args: argparse.Namespace) -> int:
    config = build_config(args)
    config.to_yaml(args.output)
    print(f"Configuration written to {args.output}")
    return 0


def main(argv=None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog="plan-imaging",
        description="Training plan spreadsheet to image renderer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Render a spreadsheet to an image")
    render.add_argument("file", type=Path, help="Spreadsheet (.xlsx or .xls)")
    render.add_argument(
        "--bench-press",
        type=float,
        required=True,
        help="Maximal bench press in kg the plan was built for",
    )
    render.add_argument(
        "--template",
        help="Template reference for the cache key (defaults to the file name)",
    )
    render.add_argument("--cache-dir", type=Path, help="Artifact directory (overrides config)")
    render.add_argument("--format", choices=["png", "jpeg", "jpg", "pdf"], help="Output format (overrides config)")
    render.add_argument("--style", help="Render style (overrides config)")
    render.add_argument("--no-cache", action="store_true", help="Always render, never reuse artifacts")
    render.add_argument("--deliver-to", type=Path, help="Copy the finished image into this directory")
    render.set_defaults(func=cmd_render)

    cleanup = subparsers.add_parser("cleanup", help="Delete expired artifacts")
    cleanup.add_argument("--cache-dir", type=Path, help="Artifact directory (overrides config)")
    cleanup.set_defaults(func=cmd_cleanup)

    dump = subparsers.add_parser("dump-config", help="Write the effective configuration as YAML")
    dump.add_argument("output", type=Path, help="Destination YAML file")
    dump.set_defaults(func=cmd_dump_config)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
