#!/usr/bin/env python3
"""
Banner Batch CLI
================

Command line entry point.

    banner-batch fields TEMPLATE [--stylesheet CSS]
    banner-batch render TEMPLATE [RECORDS] [--assets DIR] [--output DIR]

TEMPLATE is an HTML file or a zip archive holding markup, stylesheets,
images, fonts and optionally a record file.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import argparse
import asyncio
import sys

from banner_batch import __version__
from banner_batch.config.logging import get_logger
from banner_batch.config.settings import get_settings
from banner_batch.core.assets.bundle import AssetBundle
from banner_batch.core.exceptions import BannerBatchError
from banner_batch.core.template.discovery import describe
from banner_batch.models.schemas import BatchProgress
from banner_batch.session import BannerSession

logger = get_logger(__name__)


def _load(session: BannerSession, template: Path, stylesheet: Optional[Path], assets: Optional[Path]) -> None:
    data = template.read_bytes()
    if template.suffix.lower() == ".zip":
        session.load_archive(data)
        return

    bundle = AssetBundle.from_directory(assets if assets is not None else template.parent)
    session.load_template(
        data,
        stylesheet.read_bytes() if stylesheet else None,
        bundle=bundle,
        name=template.name,
    )


def cmd_fields(args: argparse.Namespace) -> int:
    session = BannerSession()
    _load(session, args.template, args.stylesheet, None)

    rows = describe(session.descriptor)
    if not rows:
        print("No editable fields found in template")
        return 0

    width = max(len(str(row["name"])) for row in rows)
    for row in rows:
        print(f"{str(row['name']).ljust(width)}  {row['kind']:<24} {row['label']}")
    return 0


def _print_progress(progress: BatchProgress) -> None:
    position = f"[{progress.index + 1}/{progress.total}]"
    if progress.skipped:
        print(f"{position} skipped template preview")
    elif progress.success:
        print(f"{position} ✅ {progress.filename}.png")
    else:
        print(f"{position} ❌ {progress.filename}: {progress.error}")


async def _render(args: argparse.Namespace) -> int:
    overrides: Dict[str, Any] = {}
    if args.include_preview:
        overrides["include_template_preview"] = True
    if args.scale is not None:
        overrides["export_scale"] = args.scale
    session = BannerSession(get_settings().model_copy(update=overrides))
    _load(session, args.template, args.stylesheet, args.assets)

    if args.records is not None:
        session.load_records(args.records.read_bytes(), args.records.name)
    if not session.records:
        print("❌ No records loaded, pass a record file or bundle one in the template archive")
        return 1

    result = await session.generate_all(on_progress=None if args.quiet else _print_progress)
    print(result.summary())
    if result.archive is not None:
        path = result.archive.save(args.output)
        print(f"📦 Archive saved to: {path}")
    return 0 if result.failed == 0 else 2


def cmd_render(args: argparse.Namespace) -> int:
    return asyncio.run(_render(args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="banner-batch",
        description="Bind data records to an HTML banner template and export PNGs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    fields = subparsers.add_parser("fields", help="List the editable fields of a template")
    fields.add_argument("template", type=Path, help="Template HTML file or zip archive")
    fields.add_argument("--stylesheet", type=Path, help="Separate stylesheet for an HTML template")
    fields.set_defaults(func=cmd_fields)

    render = subparsers.add_parser("render", help="Render every record and write a zip archive")
    render.add_argument("template", type=Path, help="Template HTML file or zip archive")
    render.add_argument("records", type=Path, nargs="?", help="JSON or YAML record file")
    render.add_argument("--stylesheet", type=Path, help="Separate stylesheet for an HTML template")
    render.add_argument("--assets", type=Path, help="Directory of images and fonts (default: template directory)")
    render.add_argument("--output", type=Path, default=Path("."), help="Directory for the archive")
    render.add_argument("--scale", type=float, help="Export device scale factor")
    render.add_argument(
        "--include-preview",
        action="store_true",
        help="Export an empty first record as template_preview",
    )
    render.add_argument("--quiet", action="store_true", help="Do not print per-record progress")
    render.set_defaults(func=cmd_render)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except BannerBatchError as e:
        logger.error("Command failed", command=args.command, error=str(e), error_type=type(e).__name__)
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
