"""Category API endpoints, including supplier category mappings."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.api.v1.schemas import (
    CategoryResponse,
    MappingResponse,
    ProductResponse,
    UnmappedCategoryResponse,
)
from dropship_service.infrastructure.database.connection import get_session
from dropship_service.infrastructure.database.models import MappingStatus
from dropship_service.services.categories import CategoryService
from dropship_service.services.category_mapping import CategoryMappingService

router = APIRouter()


# =============================================================================
# Models
# =============================================================================


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    image: str | None = None
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    image: str | None = None
    is_active: bool | None = None


class MappingCreate(BaseModel):
    """Map a supplier's category name onto a storefront category."""

    supplier_id: int
    external_category: str = Field(..., min_length=1, max_length=255)
    category_id: int


class MappingUpdate(BaseModel):
    category_id: int | None = None
    status: MappingStatus | None = None


class MappingCreated(MappingResponse):
    drafts_updated: int = Field(0, description="Draft products categorized by this mapping")


class CategorizationStats(BaseModel):
    total_products: int
    categorized: int
    manually_mapped: int
    auto_mapped: int
    uncategorized: int
    mappings: int
    unmapped_external_categories: int
    categorization_rate: float
    manual_rate: float
    auto_rate: float


def _category_response(category, product_count: int = 0) -> CategoryResponse:
    response = CategoryResponse.model_validate(category)
    response.product_count = product_count
    return response


# =============================================================================
# Mappings
# =============================================================================


@router.get("/mappings", response_model=list[MappingResponse])
async def list_mappings(
    supplier_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[MappingResponse]:
    mappings = await CategoryMappingService(session).list_mappings(supplier_id=supplier_id)
    return [MappingResponse.model_validate(m) for m in mappings]


@router.post("/mappings", response_model=MappingCreated, status_code=201)
async def create_mapping(
    request: MappingCreate,
    session: AsyncSession = Depends(get_session),
) -> MappingCreated:
    """
    Create a category mapping.

    The external category name is normalized. Waiting drafts from that
    supplier category are categorized immediately and the category is
    removed from the unmapped list.

    **Errors:**
    - 404 if the supplier or category does not exist
    - 409 if a mapping for that supplier category already exists
    """
    mapping, drafts_updated = await CategoryMappingService(session).create_mapping(
        supplier_id=request.supplier_id,
        external_category=request.external_category,
        category_id=request.category_id,
    )
    response = MappingCreated.model_validate(mapping)
    response.drafts_updated = drafts_updated
    return response


@router.patch("/mappings/{mapping_id}", response_model=MappingResponse)
async def update_mapping(
    mapping_id: int,
    request: MappingUpdate,
    session: AsyncSession = Depends(get_session),
) -> MappingResponse:
    mapping = await CategoryMappingService(session).update_mapping(
        mapping_id, category_id=request.category_id, status=request.status
    )
    return MappingResponse.model_validate(mapping)


@router.delete("/mappings/{mapping_id}", status_code=204)
async def delete_mapping(
    mapping_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    await CategoryMappingService(session).delete_mapping(mapping_id)


@router.get("/unmapped", response_model=list[UnmappedCategoryResponse])
async def list_unmapped(
    supplier_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[UnmappedCategoryResponse]:
    """Supplier categories seen during import with no mapping, busiest first."""
    unmapped = await CategoryMappingService(session).list_unmapped(supplier_id=supplier_id)
    return [UnmappedCategoryResponse.model_validate(u) for u in unmapped]


@router.get("/uncategorized", response_model=list[ProductResponse])
async def list_uncategorized(
    limit: int = Query(50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> list[ProductResponse]:
    products = await CategoryMappingService(session).list_uncategorized_products(limit=limit)
    return [ProductResponse.model_validate(p) for p in products]


@router.get("/stats", response_model=CategorizationStats)
async def categorization_stats(
    session: AsyncSession = Depends(get_session),
) -> CategorizationStats:
    stats = await CategoryMappingService(session).get_categorization_stats()
    return CategorizationStats(**stats)


# =============================================================================
# Categories
# =============================================================================


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    active_only: bool = Query(False),
    session: AsyncSession = Depends(get_session),
) -> list[CategoryResponse]:
    rows = await CategoryService(session).list_categories(active_only=active_only)
    return [_category_response(category, count) for category, count in rows]


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    request: CategoryCreate,
    session: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    category = await CategoryService(session).create_category(**request.model_dump())
    return _category_response(category)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: int,
    session: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    category = await CategoryService(session).get_category(category_id)
    return _category_response(category)


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    request: CategoryUpdate,
    session: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    category = await CategoryService(session).update_category(
        category_id, **request.model_dump(exclude_unset=True)
    )
    return _category_response(category)


@router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    await CategoryService(session).delete_category(category_id)
