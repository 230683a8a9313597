"""Backfill slugs for products stored without one.

    python fix_slugs.py
"""

import logging
import sys

import database
from catalog import unique_slug

logger = logging.getLogger("aether")


def backfill_slugs(db) -> int:
    products = db["product"].find({"$or": [{"slug": {"$exists": False}}, {"slug": None}, {"slug": ""}]})
    updated = 0
    for product in list(products):
        slug = unique_slug(db["product"], product.get("name", ""), exclude_id=product["_id"])
        db["product"].update_one({"_id": product["_id"]}, {"$set": {"slug": slug}})
        logger.info('Updated "%s" -> %s', product.get("name"), slug)
        updated += 1
    return updated


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s")
    if database.db is None:
        logger.error("Database not available; set DATABASE_URL and DATABASE_NAME")
        return 1
    count = backfill_slugs(database.db)
    logger.info("Updated %d product slugs", count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
