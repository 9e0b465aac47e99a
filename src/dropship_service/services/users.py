"""User, cart and wishlist services."""

from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.exceptions import ConflictError, DomainValidationError, NotFoundError
from dropship_service.infrastructure.database.models import (
    CartItem,
    Product,
    ProductStatus,
    ProductVariant,
    User,
    WishlistItem,
)

logger = structlog.get_logger()


class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_users(self) -> list[User]:
        result = await self.session.execute(select(User).order_by(User.id))
        return list(result.scalars().all())

    async def get_user(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def create_user(self, email: str, name: str | None = None, **fields: Any) -> User:
        if await self.get_by_email(email) is not None:
            raise ConflictError(f"User with email {email} already exists")
        user = User(email=email.lower(), name=name, **fields)
        self.session.add(user)
        await self.session.flush()
        return user

    async def update_user(self, user_id: int, **fields: Any) -> User:
        user = await self.get_user(user_id)

        email = fields.get("email")
        if email and email.lower() != user.email:
            if await self.get_by_email(email) is not None:
                raise ConflictError(f"User with email {email} already exists")
            user.email = email.lower()

        for key in ("name", "role", "status"):
            if fields.get(key) is not None:
                setattr(user, key, fields[key])
        await self.session.flush()
        return user

    async def delete_user(self, user_id: int) -> None:
        user = await self.get_user(user_id)
        await self.session.delete(user)
        await self.session.flush()


class CartService:
    """Per-user shopping cart."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_cart(self, user_id: int) -> list[tuple[CartItem, Product]]:
        await UserService(self.session).get_user(user_id)
        result = await self.session.execute(
            select(CartItem, Product)
            .join(Product, Product.id == CartItem.product_id)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.id)
        )
        return [(item, product) for item, product in result.all()]

    async def add_item(
        self, user_id: int, product_id: int, quantity: int = 1, variant_id: int | None = None
    ) -> CartItem:
        """Add a product; adding the same product/variant again merges quantities."""
        if quantity < 1:
            raise DomainValidationError("Quantity must be at least 1")
        await UserService(self.session).get_user(user_id)

        product = await self.session.get(Product, product_id)
        if product is None or product.status != ProductStatus.ACTIVE:
            raise NotFoundError(f"Product {product_id} is not available")
        if variant_id is not None:
            variant = await self.session.get(ProductVariant, variant_id)
            if variant is None or variant.product_id != product_id:
                raise NotFoundError(f"Variant {variant_id} not found for product {product_id}")

        query = select(CartItem).where(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id,
        )
        if variant_id is None:
            query = query.where(CartItem.variant_id.is_(None))
        else:
            query = query.where(CartItem.variant_id == variant_id)
        item = (await self.session.execute(query)).scalar_one_or_none()

        if item is None:
            item = CartItem(
                user_id=user_id, product_id=product_id, variant_id=variant_id, quantity=quantity
            )
            self.session.add(item)
        else:
            item.quantity += quantity
        await self.session.flush()
        return item

    async def _get_item(self, user_id: int, item_id: int) -> CartItem:
        item = await self.session.get(CartItem, item_id)
        if item is None or item.user_id != user_id:
            raise NotFoundError(f"Cart item {item_id} not found")
        return item

    async def update_quantity(self, user_id: int, item_id: int, quantity: int) -> CartItem | None:
        """Set a line's quantity; zero or less removes the line."""
        item = await self._get_item(user_id, item_id)
        if quantity <= 0:
            await self.session.delete(item)
            await self.session.flush()
            return None
        item.quantity = quantity
        await self.session.flush()
        return item

    async def remove_item(self, user_id: int, item_id: int) -> None:
        item = await self._get_item(user_id, item_id)
        await self.session.delete(item)
        await self.session.flush()

    async def clear(self, user_id: int) -> int:
        result = await self.session.execute(delete(CartItem).where(CartItem.user_id == user_id))
        return result.rowcount or 0


class WishlistService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_wishlist(self, user_id: int) -> list[tuple[WishlistItem, Product]]:
        await UserService(self.session).get_user(user_id)
        result = await self.session.execute(
            select(WishlistItem, Product)
            .join(Product, Product.id == WishlistItem.product_id)
            .where(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        )
        return [(item, product) for item, product in result.all()]

    async def add(self, user_id: int, product_id: int) -> tuple[WishlistItem, bool]:
        """Add to the wishlist. Returns the entry and whether it was created."""
        await UserService(self.session).get_user(user_id)
        if await self.session.get(Product, product_id) is None:
            raise NotFoundError(f"Product {product_id} not found")

        result = await self.session.execute(
            select(WishlistItem).where(
                WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing, False

        item = WishlistItem(user_id=user_id, product_id=product_id)
        self.session.add(item)
        await self.session.flush()
        return item, True

    async def remove(self, user_id: int, product_id: int) -> None:
        result = await self.session.execute(
            delete(WishlistItem).where(
                WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
            )
        )
        if not result.rowcount:
            raise NotFoundError(f"Product {product_id} is not in the wishlist")

    async def clear(self, user_id: int) -> int:
        result = await self.session.execute(
            delete(WishlistItem).where(WishlistItem.user_id == user_id)
        )
        return result.rowcount or 0
