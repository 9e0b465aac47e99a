"""Supplier API endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.api.v1.schemas import SupplierResponse
from dropship_service.infrastructure.database.connection import get_session
from dropship_service.infrastructure.database.models import SupplierStatus
from dropship_service.services.suppliers import SupplierService

router = APIRouter()


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    api_url: str | None = None
    status: SupplierStatus = SupplierStatus.DISCONNECTED


class SupplierUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    api_url: str | None = None
    status: SupplierStatus | None = None


class SupplierStats(BaseModel):
    total: int
    connected: int
    disconnected: int
    products: int


@router.get("", response_model=list[SupplierResponse])
async def list_suppliers(
    session: AsyncSession = Depends(get_session),
) -> list[SupplierResponse]:
    suppliers = await SupplierService(session).list_suppliers()
    return [SupplierResponse.model_validate(s) for s in suppliers]


@router.get("/stats", response_model=SupplierStats)
async def supplier_stats(
    session: AsyncSession = Depends(get_session),
) -> SupplierStats:
    return SupplierStats(**await SupplierService(session).get_stats())


@router.post("", response_model=SupplierResponse, status_code=201)
async def create_supplier(
    request: SupplierCreate,
    session: AsyncSession = Depends(get_session),
) -> SupplierResponse:
    supplier = await SupplierService(session).create_supplier(**request.model_dump())
    return SupplierResponse.model_validate(supplier)


@router.get("/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(
    supplier_id: int,
    session: AsyncSession = Depends(get_session),
) -> SupplierResponse:
    supplier = await SupplierService(session).get_supplier(supplier_id)
    return SupplierResponse.model_validate(supplier)


@router.patch("/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(
    supplier_id: int,
    request: SupplierUpdate,
    session: AsyncSession = Depends(get_session),
) -> SupplierResponse:
    supplier = await SupplierService(session).update_supplier(
        supplier_id, **request.model_dump(exclude_unset=True)
    )
    return SupplierResponse.model_validate(supplier)


@router.delete("/{supplier_id}", status_code=204)
async def delete_supplier(
    supplier_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    await SupplierService(session).delete_supplier(supplier_id)
