"""Celery application for the CJ sync worker.

Catalog jobs (categories, inventory, mappings) run on the ``sync`` queue.
Order status polling runs on ``orders`` so a long inventory refresh never
delays fulfillment updates.
"""

from typing import Any

from celery import Celery
from celery.schedules import crontab

from dropship_service.config import Settings, get_settings
from dropship_service.logging_config import configure_logging

CATALOG_QUEUE = "sync"
ORDERS_QUEUE = "orders"

TASK_MODULES = [
    "sync_worker.tasks.cj_catalog",
    "sync_worker.tasks.cj_orders",
]


def beat_schedule(settings: Settings) -> dict[str, dict[str, Any]]:
    """Periodic CJ jobs, with intervals taken from settings."""
    return {
        "sync-cj-categories": {
            "task": "sync_worker.tasks.cj_catalog.sync_cj_categories",
            "schedule": crontab(minute=0, hour=3),
        },
        "sync-cj-inventory": {
            "task": "sync_worker.tasks.cj_catalog.sync_cj_inventory",
            "schedule": crontab(minute=15, hour=f"*/{settings.sync_inventory_interval_hours}"),
        },
        "apply-category-mappings": {
            "task": "sync_worker.tasks.cj_catalog.apply_category_mappings",
            "schedule": settings.apply_mappings_interval_minutes * 60.0,
        },
        "sync-cj-order-statuses": {
            "task": "sync_worker.tasks.cj_orders.sync_cj_order_statuses",
            "schedule": crontab(minute=f"*/{settings.sync_orders_interval_minutes}"),
        },
    }


def create_celery_app(settings: Settings | None = None) -> Celery:
    settings = settings or get_settings()
    celery_app = Celery(
        "sync_worker",
        broker=settings.celery_broker,
        backend=settings.celery_backend,
        include=TASK_MODULES,
    )
    celery_app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_time_limit=900,
        task_soft_time_limit=840,
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        task_default_queue=CATALOG_QUEUE,
        task_routes={
            "sync_worker.tasks.cj_orders.*": {"queue": ORDERS_QUEUE},
            "sync_worker.tasks.cj_catalog.*": {"queue": CATALOG_QUEUE},
        },
        beat_schedule=beat_schedule(settings),
    )
    return celery_app


settings = get_settings()
configure_logging(settings)

app = create_celery_app(settings)


def run() -> None:
    """Run a worker consuming both CJ queues."""
    app.worker_main(["worker", "--loglevel=info", "-Q", f"{CATALOG_QUEUE},{ORDERS_QUEUE}"])


if __name__ == "__main__":
    run()
