#!/usr/bin/env python3
"""CLI script to run CJ synchronization jobs without the Celery worker.

Usage:
    python scripts/sync_cj.py categories
    python scripts/sync_cj.py inventory
    python scripts/sync_cj.py orders
    python scripts/sync_cj.py mappings
"""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from dropship_service.logging_config import configure_logging
from dropship_service.services.catalog import CJCatalogService
from dropship_service.services.category_mapping import CategoryMappingService
from dropship_service.services.orders import OrderFulfillmentService
from sync_worker.runtime import run_cj_job, run_db_job

logger = structlog.get_logger()


async def _categories(session, client, cache, settings):
    return await CJCatalogService(session, client, cache=cache, settings=settings).sync_categories()


async def _inventory(session, client, cache, settings):
    return await CJCatalogService(session, client, cache=cache, settings=settings).sync_inventory()


async def _orders(session, client, cache, settings):
    return await OrderFulfillmentService(session, client, settings).sync_order_statuses()


async def _mappings(session):
    return await CategoryMappingService(session).apply_mappings_to_drafts()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("job", choices=["categories", "inventory", "orders", "mappings"])
    args = parser.parse_args()

    configure_logging()
    logger.info("Starting CJ sync", job=args.job)

    if args.job == "mappings":
        result = run_db_job(_mappings)
    else:
        jobs = {"categories": _categories, "inventory": _inventory, "orders": _orders}
        result = run_cj_job(jobs[args.job])

    logger.info("CJ sync completed", job=args.job, **result)


if __name__ == "__main__":
    main()
