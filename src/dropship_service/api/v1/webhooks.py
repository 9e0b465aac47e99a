"""Inbound webhook endpoints."""

import hmac
from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.api.v1.schemas import WebhookLogResponse
from dropship_service.config import Settings, get_settings
from dropship_service.infrastructure.database.connection import get_session
from dropship_service.infrastructure.database.models import WebhookStatus
from dropship_service.services.webhooks import WebhookResult, WebhookService
from shared.constants import DEFAULT_WEBHOOK_LOG_LIMIT

logger = structlog.get_logger()

router = APIRouter()


class WebhookLogPage(BaseModel):
    items: list[WebhookLogResponse]
    total: int
    limit: int
    offset: int


class WebhookStats(BaseModel):
    total: int
    processed: int
    errors: int
    received: int
    by_type: dict[str, int]
    avg_processing_time_ms: float


@router.post("/cj", response_model=WebhookResult)
async def receive_cj_webhook(
    payload: dict[str, Any] = Body(...),
    x_cj_webhook_token: str | None = Header(None),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> WebhookResult:
    """
    Receive a CJ webhook message.

    **Body:** `{"messageId": ..., "type": ..., "params": {...}}`

    Supported types: PRODUCT, VARIANT, STOCK, ORDER, ORDERSPLIT,
    SOURCINGCREATE and LOGISTICS. Messages are idempotent by `messageId`.

    The endpoint answers 200 with `success=false` when a message cannot be
    applied, so CJ does not keep redelivering it. When `CJ_WEBHOOK_SECRET`
    is set the `X-CJ-Webhook-Token` header must match it.
    """
    if settings.cj_webhook_secret:
        if not x_cj_webhook_token or not hmac.compare_digest(
            x_cj_webhook_token.encode(), settings.cj_webhook_secret.encode()
        ):
            logger.warning("Webhook rejected: invalid token")
            raise HTTPException(status_code=401, detail="Invalid webhook token")

    try:
        return await WebhookService(session).process(payload)
    except ValidationError as e:
        logger.warning("Malformed webhook envelope", errors=e.error_count())
        raise HTTPException(status_code=400, detail="Malformed webhook message") from e


@router.get("/logs", response_model=WebhookLogPage)
async def list_webhook_logs(
    type: str | None = Query(None, description="PRODUCT, VARIANT, STOCK, ORDER, ..."),
    status: WebhookStatus | None = Query(None),
    since: datetime | None = Query(None),
    limit: int = Query(DEFAULT_WEBHOOK_LOG_LIMIT, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> WebhookLogPage:
    logs, total = await WebhookService(session).get_logs(
        type=type, status=status, since=since, limit=limit, offset=offset
    )
    return WebhookLogPage(
        items=[WebhookLogResponse.model_validate(log) for log in logs],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=WebhookStats)
async def webhook_stats(
    session: AsyncSession = Depends(get_session),
) -> WebhookStats:
    return WebhookStats(**await WebhookService(session).get_stats())
