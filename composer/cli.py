#!/usr/bin/env python3
"""
Command line entry point.

    composer catalog [--config PATH]
    composer export TIMELINE.json --out DIR|FILE.mp4 [--fps N] [--config PATH]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from composer.core import get_logger, load_config
from composer.engine.catalog import load_default_catalog
from composer.engine.compositor import FrameCompositor
from composer.engine.dispatch import load_default_registry
from composer.engine.errors import ComposerError
from composer.engine.export import TimelineExporter
from composer.engine.sdk import Paths, load_records
from composer.engine.timeline import Timeline

log = get_logger("cli")

LOGGERS = (
    "composer", "cli", "catalog", "timeline", "injector", "documents", "dispatch",
    "handlers", "compositor", "vector_raster", "export", "preview", "debounce",
    "playback", "instances", "color", "frames", "media", "placeholders",
)


def data_file(cfg, name: str, packaged: Path) -> Path:
    """A data file from the configured data dir, else the packaged copy."""
    path = Path(cfg.storage.data_dir) / name
    if path.is_file():
        return path
    log.debug(f"{path} not found, using packaged {packaged}")
    return packaged


def cmd_catalog(args) -> int:
    cfg = load_config(args.config)
    catalog = load_default_catalog(data_file(cfg, "catalog.yaml", Paths.catalog()))
    registry = load_default_registry(data_file(cfg, "renderers.yaml", Paths.renderers()), defaults=cfg.dispatch)
    print(f"{len(catalog)} asset types\n")
    for asset_type in catalog.keys():
        definition = catalog.lookup(asset_type)
        descriptor = registry.dispatch(asset_type)
        tech = descriptor.technology.value if descriptor else "unsupported"
        required = ", ".join(definition.property_schema.required_fields()) if definition.property_schema else ""
        print(f"  {asset_type:<22} {definition.category.value:<10} {tech:<14} "
              f"cap={registry.max_instances(asset_type):<3} debounce={registry.debounce_ms(asset_type)}ms"
              + (f"  required: {required}" if required else ""))
    return 0


def cmd_export(args) -> int:
    cfg = load_config(args.config)
    if args.fps:
        cfg.render.fps = args.fps
    catalog = load_default_catalog(data_file(cfg, "catalog.yaml", Paths.catalog()))
    timeline = Timeline.from_records(catalog, load_records(args.timeline), render_cfg=cfg.render, playback_cfg=cfg.playback)
    compositor = FrameCompositor.from_config(cfg)
    exporter = TimelineExporter(timeline, compositor, cfg.render)
    try:
        result = exporter.export(args.out)
    finally:
        compositor.close()
    if isinstance(result, list):
        print(f"Wrote {len(result)} frames to {args.out}")
    else:
        print(f"Wrote {result}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="composer", description="Timeline composition and rendering engine")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command")

    p_catalog = sub.add_parser("catalog", help="List asset types and renderer descriptors")
    p_catalog.add_argument("--config", default=None, help="Path to a global YAML config")
    p_catalog.set_defaults(func=cmd_catalog)

    p_export = sub.add_parser("export", help="Render a timeline record file")
    p_export.add_argument("timeline", help="Timeline records JSON")
    p_export.add_argument("--out", required=True, help="Output directory (PNG frames) or video file")
    p_export.add_argument("--fps", type=int, default=None, help="Override the configured frame rate")
    p_export.add_argument("--config", default=None, help="Path to a global YAML config")
    p_export.set_defaults(func=cmd_export)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        for name in LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG)

    if not getattr(args, "func", None):
        parser.print_help()
        return 2

    try:
        return args.func(args)
    except (ComposerError, OSError, ValueError) as e:
        log.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
