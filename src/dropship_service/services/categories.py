"""Category CRUD service."""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.exceptions import ConflictError, NotFoundError
from dropship_service.infrastructure.database.models import Category, Product
from dropship_service.services.normalization import slugify


class CategoryService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_categories(self, active_only: bool = False) -> list[tuple[Category, int]]:
        """Categories with their product counts."""
        product_count = (
            select(func.count(Product.id))
            .where(Product.category_id == Category.id)
            .correlate(Category)
            .scalar_subquery()
        )
        query = select(Category, product_count).order_by(Category.name)
        if active_only:
            query = query.where(Category.is_active.is_(True))
        result = await self.session.execute(query)
        return [(category, count or 0) for category, count in result.all()]

    async def get_category(self, category_id: int) -> Category:
        category = await self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    async def get_by_name(self, name: str) -> Category | None:
        result = await self.session.execute(select(Category).where(Category.name == name))
        return result.scalar_one_or_none()

    async def create_category(
        self,
        name: str,
        description: str | None = None,
        image: str | None = None,
        is_active: bool = True,
    ) -> Category:
        if await self.get_by_name(name) is not None:
            raise ConflictError(f"Category '{name}' already exists")

        category = Category(
            name=name,
            slug=slugify(name),
            description=description,
            image=image,
            is_active=is_active,
        )
        self.session.add(category)
        await self.session.flush()
        return category

    async def update_category(self, category_id: int, **fields: Any) -> Category:
        category = await self.get_category(category_id)

        name = fields.get("name")
        if name and name != category.name:
            if await self.get_by_name(name) is not None:
                raise ConflictError(f"Category '{name}' already exists")
            category.name = name
            category.slug = slugify(name)

        for key in ("description", "image", "is_active"):
            if fields.get(key) is not None:
                setattr(category, key, fields[key])
        await self.session.flush()
        return category

    async def delete_category(self, category_id: int) -> None:
        category = await self.get_category(category_id)
        await self.session.delete(category)
        await self.session.flush()
