"""
Rewrite stored pages and projects in their fully-defaulted shape.

Documents written by older editors can be missing fields. This reads every
document in the chosen collections, normalizes it, and merges the result back
so the stored shape matches what the services return.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dacite import DaciteError

from backend.db import Database
from backend.dependencies import get_database
from shared.firebase_constants import PAGES_COLLECTION, PROJECTS_COLLECTION
from shared.normalize import NormalizationError, normalize_page, normalize_project
from shared.site_content import page_to_record, project_to_record, strip_timestamps


logger = logging.getLogger(__name__)

NORMALIZERS: dict[str, Callable[[dict], dict]] = {
    PAGES_COLLECTION: lambda raw: page_to_record(normalize_page(raw)),
    PROJECTS_COLLECTION: lambda raw: project_to_record(normalize_project(raw)),
}


def renormalize_collection(
    db: Database, collection: str, dry_run: bool = False
) -> tuple[int, int]:
    """Returns (rewritten, skipped) counts. Raises RuntimeError if the read fails."""
    result = db.get_all(collection)
    if not result.success:
        raise RuntimeError(f"Failed to read {collection}: {result.error}")

    normalize = NORMALIZERS[collection]
    rewritten = 0
    skipped = 0
    for raw in result.data:
        doc_id = raw.get("id")
        try:
            record = strip_timestamps(normalize(raw))
        except (NormalizationError, DaciteError) as e:
            logger.warning("Skipping %s/%s: %s", collection, doc_id, e)
            skipped += 1
            continue
        if record == strip_timestamps(raw):
            continue
        if dry_run:
            logger.info("Would rewrite %s/%s", collection, doc_id)
            rewritten += 1
            continue
        write = db.set(collection, doc_id, record)
        if not write.success:
            logger.error("Failed to rewrite %s/%s: %s", collection, doc_id, write.error)
            skipped += 1
            continue
        rewritten += 1
    return rewritten, skipped


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Renormalize stored site content")
    parser.add_argument(
        "--collection",
        choices=[PAGES_COLLECTION, PROJECTS_COLLECTION, "all"],
        default="all",
        help="Collection to rewrite",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many docs would be rewritten without saving",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    db = get_database()
    collections = (
        [PAGES_COLLECTION, PROJECTS_COLLECTION]
        if args.collection == "all"
        else [args.collection]
    )

    for collection in collections:
        try:
            rewritten, skipped = renormalize_collection(
                db, collection, dry_run=args.dry_run
            )
        except RuntimeError as e:
            logger.error("%s", e)
            return 1
        logger.info(
            "%s: rewrote %d docs, skipped %d", collection, rewritten, skipped
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
