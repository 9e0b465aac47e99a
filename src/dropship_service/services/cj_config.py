"""CJ integration switches stored in the database."""

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.config import Settings, get_settings
from dropship_service.exceptions import DomainValidationError, IntegrationDisabledError
from dropship_service.infrastructure.database.models import CJConfig
from shared.constants import CJ_TIER_RATE_LIMITS

logger = structlog.get_logger()

CONFIG_ID = 1


class CJConfigService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    async def get_config(self) -> CJConfig:
        """Return the single config row, seeding it from settings on first use."""
        config = await self.session.get(CJConfig, CONFIG_ID)
        if config is None:
            config = CJConfig(
                id=CONFIG_ID,
                enabled=self.settings.cj_enabled,
                tier=self.settings.cj_tier,
                webhooks_enabled=True,
            )
            self.session.add(config)
            await self.session.flush()
        return config

    async def update_config(self, **fields: Any) -> CJConfig:
        config = await self.get_config()

        tier = fields.get("tier")
        if tier is not None:
            if tier not in CJ_TIER_RATE_LIMITS:
                raise DomainValidationError(f"Unknown CJ tier: {tier}")
            config.tier = tier
        for key in ("enabled", "webhooks_enabled"):
            if fields.get(key) is not None:
                setattr(config, key, fields[key])

        await self.session.flush()
        logger.info(
            "CJ config updated",
            enabled=config.enabled,
            tier=config.tier,
            webhooks_enabled=config.webhooks_enabled,
        )
        return config

    async def require_enabled(self) -> CJConfig:
        config = await self.get_config()
        if not config.enabled:
            raise IntegrationDisabledError("CJ integration is disabled")
        return config
