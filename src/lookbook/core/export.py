"""Writing run results to disk.

Files written to the output directory:

- ``hamburg-pimp-<slug>.jpg`` for every DONE archetype
- ``hamburg-84-lookbook.jpg`` when a lookbook page is given
- ``lookbook.json`` with one record per archetype and the run timestamp
"""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path

from PIL import Image

from .archetypes import Archetype
from .models import EncodedImage, GenerationItem, ItemStatus

logger = logging.getLogger(__name__)

LOOKBOOK_FILENAME = "hamburg-84-lookbook.jpg"
RECORD_FILENAME = "lookbook.json"


def item_filename(archetype: Archetype) -> str:
    return f"hamburg-pimp-{archetype.slug}.jpg"


def write_jpeg(image: EncodedImage, path: Path, quality: int = 90) -> Path:
    """Write *image* to *path* as JPEG, re-encoding other formats."""
    if image.media_type == "image/jpeg":
        path.write_bytes(image.payload)
    else:
        with Image.open(io.BytesIO(image.payload)) as decoded:
            decoded.convert("RGB").save(path, format="JPEG", quality=quality)
    logger.info("Saved %s", path)
    return path


def export_run(
    items: Mapping[Archetype, GenerationItem],
    output_dir: Path,
    lookbook: EncodedImage | None = None,
) -> list[Path]:
    """Write per-item images, the lookbook and the run record.

    Args:
        items: Final state of the run (``LookbookSession.store.snapshot()``).
        output_dir: Target directory, created if missing.
        lookbook: Encoded lookbook page, if one was built.

    Returns:
        Paths of every file written.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    records = []
    for archetype, item in items.items():
        record = item.to_record()
        if item.status is ItemStatus.DONE and item.result is not None:
            path = write_jpeg(item.result, output_dir / item_filename(archetype))
            record["filename"] = path.name
            written.append(path)
        records.append(record)

    if lookbook is not None:
        written.append(write_jpeg(lookbook, output_dir / LOOKBOOK_FILENAME))

    metadata = {
        "timestamp": datetime.now().isoformat(),
        "lookbook": LOOKBOOK_FILENAME if lookbook is not None else None,
        "items": records,
    }
    record_path = output_dir / RECORD_FILENAME
    with open(record_path, "w", encoding="utf-8") as f:
        json.dump(metadata, f, indent=2, ensure_ascii=False)
    logger.info("Saved run record to: %s", record_path)
    written.append(record_path)

    return written
