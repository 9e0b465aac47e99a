"""Supplier management service."""

from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.exceptions import ConflictError, NotFoundError
from dropship_service.infrastructure.database.models import (
    Product,
    Supplier,
    SupplierStatus,
)

logger = structlog.get_logger()

UPDATABLE_FIELDS = ("name", "description", "api_url", "status")


class SupplierService:
    """CRUD and stats for suppliers."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_suppliers(self) -> list[Supplier]:
        result = await self.session.execute(select(Supplier).order_by(Supplier.name))
        return list(result.scalars().all())

    async def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = await self.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        return supplier

    async def get_by_name(self, name: str) -> Supplier | None:
        result = await self.session.execute(select(Supplier).where(Supplier.name == name))
        return result.scalar_one_or_none()

    async def get_or_create_by_name(self, name: str, **fields: Any) -> Supplier:
        """Return the named supplier, creating it as connected if missing."""
        supplier = await self.get_by_name(name)
        if supplier is not None:
            return supplier

        supplier = Supplier(name=name, status=SupplierStatus.CONNECTED, **fields)
        self.session.add(supplier)
        await self.session.flush()
        logger.info("Supplier created", supplier_id=supplier.id, name=name)
        return supplier

    async def create_supplier(
        self,
        name: str,
        description: str | None = None,
        api_url: str | None = None,
        status: SupplierStatus = SupplierStatus.DISCONNECTED,
    ) -> Supplier:
        if await self.get_by_name(name) is not None:
            raise ConflictError(f"Supplier '{name}' already exists")

        supplier = Supplier(name=name, description=description, api_url=api_url, status=status)
        self.session.add(supplier)
        await self.session.flush()
        return supplier

    async def update_supplier(self, supplier_id: int, **fields: Any) -> Supplier:
        supplier = await self.get_supplier(supplier_id)

        new_name = fields.get("name")
        if new_name and new_name != supplier.name and await self.get_by_name(new_name):
            raise ConflictError(f"Supplier '{new_name}' already exists")

        for key in UPDATABLE_FIELDS:
            if fields.get(key) is not None:
                setattr(supplier, key, fields[key])
        await self.session.flush()
        return supplier

    async def delete_supplier(self, supplier_id: int) -> None:
        supplier = await self.get_supplier(supplier_id)
        await self.session.delete(supplier)
        await self.session.flush()

    async def get_stats(self) -> dict[str, int]:
        status_counts = dict(
            (
                await self.session.execute(
                    select(Supplier.status, func.count()).group_by(Supplier.status)
                )
            ).all()
        )
        products = await self.session.scalar(
            select(func.count()).select_from(Product).where(Product.supplier_id.is_not(None))
        )
        connected = status_counts.get(SupplierStatus.CONNECTED, 0)
        disconnected = status_counts.get(SupplierStatus.DISCONNECTED, 0)
        return {
            "total": connected + disconnected,
            "connected": connected,
            "disconnected": disconnected,
            "products": products or 0,
        }
