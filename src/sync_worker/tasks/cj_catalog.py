"""CJ catalog synchronization tasks."""

from typing import Any

import structlog
from celery import shared_task

from dropship_service.exceptions import CJAPIError
from dropship_service.services.catalog import CJCatalogService
from dropship_service.services.category_mapping import CategoryMappingService
from sync_worker.runtime import run_cj_job, run_db_job

logger = structlog.get_logger()


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_cj_categories(self) -> dict:
    """
    Refresh the CJ category tree into external_categories.

    Returns:
        dict: total, created and updated category counts
    """
    logger.info("Starting CJ category sync")

    async def job(session, client, cache, settings) -> dict[str, Any]:
        return await CJCatalogService(session, client, cache=cache, settings=settings).sync_categories()

    try:
        return run_cj_job(job)
    except CJAPIError as e:
        logger.warning("CJ category sync failed, retrying", error=e.message)
        raise self.retry(exc=e)


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_cj_inventory(self, product_ids: list[int] | None = None) -> dict:
    """
    Refresh variant stock from CJ warehouses and recompute product stock.

    Args:
        product_ids: Limit the refresh to these products (all CJ products if omitted)
    """
    logger.info("Starting CJ inventory sync", product_ids=product_ids)

    async def job(session, client, cache, settings) -> dict[str, Any]:
        catalog = CJCatalogService(session, client, cache=cache, settings=settings)
        return await catalog.sync_inventory(product_ids)

    try:
        return run_cj_job(job)
    except CJAPIError as e:
        logger.warning("CJ inventory sync failed, retrying", error=e.message)
        raise self.retry(exc=e)


@shared_task
def apply_category_mappings() -> dict:
    """Categorize drafts that were imported before their category was mapped."""

    async def job(session) -> dict[str, Any]:
        return await CategoryMappingService(session).apply_mappings_to_drafts()

    result = run_db_job(job)
    logger.info("Category mappings applied", **result)
    return result
