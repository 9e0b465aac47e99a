"""User, cart and wishlist API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.api.v1.schemas import ProductResponse, UserResponse
from dropship_service.infrastructure.database.connection import get_session
from dropship_service.infrastructure.database.models import Product, UserRole, UserStatus
from dropship_service.services.users import CartService, UserService, WishlistService

router = APIRouter()

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# =============================================================================
# Models
# =============================================================================


class UserCreate(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    name: str | None = Field(None, max_length=255)
    role: UserRole = UserRole.CUSTOMER


class UserUpdate(BaseModel):
    email: str | None = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    name: str | None = Field(None, max_length=255)
    role: UserRole | None = None
    status: UserStatus | None = None


class CartItemAdd(BaseModel):
    product_id: int
    variant_id: int | None = None
    quantity: int = Field(1, ge=1, le=999)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., le=999, description="Zero or less removes the line")


class CartLine(BaseModel):
    id: int
    product_id: int
    variant_id: int | None
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    product: ProductResponse


class CartResponse(BaseModel):
    user_id: int
    items: list[CartLine]
    item_count: int
    total_cents: int


class WishlistAdd(BaseModel):
    product_id: int


class WishlistEntry(BaseModel):
    id: int
    product_id: int
    created_at: datetime
    product: ProductResponse


class WishlistAddResponse(BaseModel):
    entry: WishlistEntry
    created: bool


class ClearedResponse(BaseModel):
    removed: int


# =============================================================================
# Users
# =============================================================================


@router.get("", response_model=list[UserResponse])
async def list_users(
    session: AsyncSession = Depends(get_session),
) -> list[UserResponse]:
    users = await UserService(session).list_users()
    return [UserResponse.model_validate(u) for u in users]


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    request: UserCreate,
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    user = await UserService(session).create_user(
        email=request.email, name=request.name, role=request.role
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    return UserResponse.model_validate(await UserService(session).get_user(user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    request: UserUpdate,
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    user = await UserService(session).update_user(
        user_id, **request.model_dump(exclude_unset=True)
    )
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    await UserService(session).delete_user(user_id)


# =============================================================================
# Cart
# =============================================================================


async def _cart_response(service: CartService, user_id: int) -> CartResponse:
    lines = []
    for item, product in await service.get_cart(user_id):
        lines.append(
            CartLine(
                id=item.id,
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_price_cents=product.price_cents,
                line_total_cents=product.price_cents * item.quantity,
                product=ProductResponse.model_validate(product),
            )
        )
    return CartResponse(
        user_id=user_id,
        items=lines,
        item_count=sum(line.quantity for line in lines),
        total_cents=sum(line.line_total_cents for line in lines),
    )


@router.get("/{user_id}/cart", response_model=CartResponse)
async def get_cart(
    user_id: int,
    session: AsyncSession = Depends(get_session),
) -> CartResponse:
    return await _cart_response(CartService(session), user_id)


@router.post("/{user_id}/cart", response_model=CartResponse, status_code=201)
async def add_to_cart(
    user_id: int,
    request: CartItemAdd,
    session: AsyncSession = Depends(get_session),
) -> CartResponse:
    """
    Add a product to the cart.

    Adding a product (and variant) already in the cart increases its
    quantity. Only active products can be added.
    """
    service = CartService(session)
    await service.add_item(
        user_id, request.product_id, quantity=request.quantity, variant_id=request.variant_id
    )
    return await _cart_response(service, user_id)


@router.patch("/{user_id}/cart/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    user_id: int,
    item_id: int,
    request: CartItemUpdate,
    session: AsyncSession = Depends(get_session),
) -> CartResponse:
    service = CartService(session)
    await service.update_quantity(user_id, item_id, request.quantity)
    return await _cart_response(service, user_id)


@router.delete("/{user_id}/cart/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    user_id: int,
    item_id: int,
    session: AsyncSession = Depends(get_session),
) -> CartResponse:
    service = CartService(session)
    await service.remove_item(user_id, item_id)
    return await _cart_response(service, user_id)


@router.delete("/{user_id}/cart", response_model=ClearedResponse)
async def clear_cart(
    user_id: int,
    session: AsyncSession = Depends(get_session),
) -> ClearedResponse:
    await UserService(session).get_user(user_id)
    return ClearedResponse(removed=await CartService(session).clear(user_id))


# =============================================================================
# Wishlist
# =============================================================================


def _wishlist_entry(item, product) -> WishlistEntry:
    return WishlistEntry(
        id=item.id,
        product_id=item.product_id,
        created_at=item.created_at,
        product=ProductResponse.model_validate(product),
    )


@router.get("/{user_id}/wishlist", response_model=list[WishlistEntry])
async def get_wishlist(
    user_id: int,
    session: AsyncSession = Depends(get_session),
) -> list[WishlistEntry]:
    rows = await WishlistService(session).get_wishlist(user_id)
    return [_wishlist_entry(item, product) for item, product in rows]


@router.post("/{user_id}/wishlist", response_model=WishlistAddResponse)
async def add_to_wishlist(
    user_id: int,
    request: WishlistAdd,
    response: Response,
    session: AsyncSession = Depends(get_session),
) -> WishlistAddResponse:
    """
    Add a product to the wishlist.

    Idempotent: adding a product twice returns the existing entry with
    `created=false` and status 200 instead of 201.
    """
    item, created = await WishlistService(session).add(user_id, request.product_id)
    product = await session.get(Product, request.product_id)
    response.status_code = 201 if created else 200
    return WishlistAddResponse(entry=_wishlist_entry(item, product), created=created)


@router.delete("/{user_id}/wishlist/{product_id}", status_code=204)
async def remove_from_wishlist(
    user_id: int,
    product_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    await WishlistService(session).remove(user_id, product_id)


@router.delete("/{user_id}/wishlist", response_model=ClearedResponse)
async def clear_wishlist(
    user_id: int,
    session: AsyncSession = Depends(get_session),
) -> ClearedResponse:
    await UserService(session).get_user(user_id)
    return ClearedResponse(removed=await WishlistService(session).clear(user_id))
