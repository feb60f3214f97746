"""Command-line entry point: photo in, lookbook out.

Usage::

    lookbook-generate me.jpg --out results --workers 2
    lookbook-generate me.jpg --archetype "Disco Dieter" --archetype Porsche-Paul

Runs every requested archetype against the photo, writes each generated
image, and writes the lookbook page when all of them succeeded.  Exits with
status 1 if any archetype failed or the lookbook could not be composed; the
images and the run record are written either way.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

from lookbook.core.archetypes import Archetype
from lookbook.core.config import config
from lookbook.core.errors import CompositionError, LookbookError
from lookbook.core.export import export_run
from lookbook.core.generation_client import client_registry
from lookbook.core.models import ItemStatus, SourceImage
from lookbook.core.session import LookbookSession

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lookbook-generate",
        description="Generate Hamburg '84 archetype portraits and a lookbook from a photo.",
    )
    parser.add_argument("photo", type=Path, help="Source photo (JPEG, PNG, ...)")
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output directory (default: LOOKBOOK_OUTPUTS_DIR)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent generations (default: LOOKBOOK_WORKER_COUNT)",
    )
    parser.add_argument(
        "--archetype",
        action="append",
        dest="archetypes",
        metavar="LABEL",
        choices=Archetype.labels(),
        help="Archetype to generate; repeat for several (default: all)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for the lookbook layout")
    parser.add_argument(
        "--backend",
        choices=client_registry.list_available(),
        default=None,
        help="Generation backend (default: LOOKBOOK_GENERATION_BACKEND)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def load_source(path: Path) -> SourceImage:
    """Read a photo file into a :class:`SourceImage`."""
    media_type, _ = mimetypes.guess_type(path.name)
    return SourceImage(media_type=media_type or "image/jpeg", payload=path.read_bytes())


async def run(args: argparse.Namespace) -> int:
    run_config = config
    if args.workers is not None:
        run_config = config.model_copy(update={"worker_count": args.workers})

    session = LookbookSession.from_config(run_config, backend=args.backend, seed=args.seed)
    try:
        session.set_source(load_source(args.photo))
        items = await session.generate_all(args.archetypes)
    finally:
        await session.close()

    failed = [item for item in items.values() if item.status is ItemStatus.ERROR]
    for item in failed:
        logger.error("%s: %s", item.name, item.error_message)

    lookbook = None
    exit_code = 1 if failed else 0
    if not failed:
        try:
            lookbook = session.build_lookbook()
        except CompositionError as e:
            logger.error("Could not compose the lookbook: %s", e)
            exit_code = 1

    output_dir = args.out or run_config.outputs_dir
    for path in export_run(items, output_dir, lookbook):
        print(path)

    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.workers is not None and args.workers < 1:
        logger.error("--workers must be at least 1")
        return 2

    try:
        return asyncio.run(run(args))
    except (LookbookError, OSError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
