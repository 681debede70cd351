#!/usr/bin/env python
"""
Load the bundled sample recipes into the recipes table.

Safe to re-run: existing sample rows are updated in place.
"""
import logging
import sys
from pathlib import Path

from pickup_plants.app.db.session import SessionLocal
from pickup_plants.app.services.static_seed_service import DEFAULT_SAMPLE_PATH, seed_sample_recipes

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("seed")


def main():
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_SAMPLE_PATH
    with SessionLocal() as db:
        counts = seed_sample_recipes(db, path)
    logger.info(
        "Seeded sample recipes from %s: %s inserted, %s updated, %s skipped",
        path,
        counts["inserted"],
        counts["updated"],
        counts["skipped"],
    )


if __name__ == "__main__":
    main()
