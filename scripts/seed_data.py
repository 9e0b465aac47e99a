#!/usr/bin/env python3
"""
Seed the database with development data.

Creates storefront categories, a manual supplier with active products,
a couple of users with carts and wishlists, and mappings from common CJ
category names onto the storefront categories.

Usage:
    python scripts/seed_data.py
"""

import asyncio
import os
import sys

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import structlog

from dropship_service.config import get_settings
from dropship_service.exceptions import ConflictError
from dropship_service.infrastructure.database.connection import dispose_engine, get_db_session
from dropship_service.infrastructure.database.models import UserRole
from dropship_service.services.categories import CategoryService
from dropship_service.services.category_mapping import CategoryMappingService
from dropship_service.services.products import ProductService
from dropship_service.services.suppliers import SupplierService
from dropship_service.services.users import CartService, UserService, WishlistService

logger = structlog.get_logger()

CATEGORIES = [
    ("Electronics", "Headphones, keyboards, monitors and accessories"),
    ("Home & Office", "Furniture and workspace upgrades"),
    ("Fitness", "Gear for training at home"),
]

PRODUCTS = [
    ("Wireless Noise-Canceling Headphones", "Electronics", 29999, 50),
    ("Mechanical Gaming Keyboard", "Electronics", 14999, 100),
    ("4K Ultra HD Monitor", "Electronics", 44999, 30),
    ("Wireless Mouse", "Electronics", 7999, 150),
    ("Ergonomic Office Chair", "Home & Office", 39999, 25),
    ("Standing Desk Converter", "Home & Office", 19999, 40),
    ("Yoga Mat", "Fitness", 3999, 200),
    ("Adjustable Dumbbells", "Fitness", 24999, 20),
]

USERS = [
    ("alice@example.com", "Alice", UserRole.CUSTOMER),
    ("bob@example.com", "Bob", UserRole.CUSTOMER),
    ("admin@example.com", "Admin", UserRole.ADMIN),
]

# CJ category names seen in the catalog, mapped onto storefront categories
CJ_MAPPINGS = {
    "Consumer Electronics": "Electronics",
    "Computer & Office": "Electronics",
    "Home, Garden & Furniture": "Home & Office",
    "Sports & Outdoors": "Fitness",
}


async def seed() -> None:
    settings = get_settings()

    async with get_db_session() as session:
        categories = CategoryService(session)
        by_name = {}
        for name, description in CATEGORIES:
            category = await categories.get_by_name(name)
            if category is None:
                category = await categories.create_category(name, description=description)
            by_name[name] = category
        logger.info("Categories seeded", count=len(by_name))

        suppliers = SupplierService(session)
        house = await suppliers.get_or_create_by_name("House Brand", description="Manually managed stock")
        cj = await suppliers.get_or_create_by_name(
            settings.cj_supplier_name, api_url=settings.cj_api_base_url
        )

        products = ProductService(session)
        created = []
        for name, category_name, price_cents, stock in PRODUCTS:
            product = await products.create_product(
                name=name,
                price_cents=price_cents,
                stock=stock,
                category_id=by_name[category_name].id,
                supplier_id=house.id,
            )
            created.append(product)
        logger.info("Products seeded", count=len(created))

        mappings = CategoryMappingService(session)
        for external, category_name in CJ_MAPPINGS.items():
            try:
                await mappings.create_mapping(cj.id, external, by_name[category_name].id)
            except ConflictError:
                logger.info("Mapping already exists", external_category=external)

        users = UserService(session)
        seeded_users = []
        for email, name, role in USERS:
            user = await users.get_by_email(email) or await users.create_user(email, name, role=role)
            seeded_users.append(user)

        alice, bob = seeded_users[0], seeded_users[1]
        cart = CartService(session)
        await cart.add_item(alice.id, created[0].id, quantity=1)
        await cart.add_item(alice.id, created[3].id, quantity=2)
        await cart.add_item(bob.id, created[4].id, quantity=1)

        wishlist = WishlistService(session)
        await wishlist.add(alice.id, created[2].id)
        await wishlist.add(bob.id, created[5].id)
        logger.info("Users seeded", count=len(seeded_users))


async def main() -> None:
    try:
        await seed()
    finally:
        await dispose_engine()
    logger.info("Seeding complete")


if __name__ == "__main__":
    asyncio.run(main())
