"""CJ order status synchronization tasks."""

from typing import Any

import structlog
from celery import shared_task

from dropship_service.exceptions import CJAPIError
from dropship_service.services.orders import OrderFulfillmentService
from sync_worker.runtime import run_cj_job

logger = structlog.get_logger()


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_cj_order_statuses(self) -> dict:
    """
    Poll CJ for every open order placed with CJ.

    Terminal orders (delivered, cancelled) are not polled. Tracking numbers
    reported by CJ are copied onto the order.

    Returns:
        dict: checked, updated and errors counts
    """
    logger.info("Starting CJ order status sync")

    async def job(session, client, cache, settings) -> dict[str, Any]:
        return await OrderFulfillmentService(session, client, settings).sync_order_statuses()

    try:
        return run_cj_job(job)
    except CJAPIError as e:
        logger.warning("CJ order status sync failed, retrying", error=e.message)
        raise self.retry(exc=e)

