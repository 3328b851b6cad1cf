"""
Seed data for local development.

Idempotent: categories are matched by name and products by slug, so
running it twice leaves the catalog unchanged. Must run inside an
application context (``flask --app storefront seed``).
"""

import logging
from typing import Dict

from storefront.core.dependencies import get_service
from storefront.repositories import CategoryRepository, ProductRepository
from storefront.services.product_service import ProductService
from storefront.utils.formatting_utils import FormattingUtils

logger = logging.getLogger(__name__)

CATEGORIES = [
    ("Furniture", "Tables, chairs and storage for home and office."),
    ("Lighting", "Lamps and fixtures."),
    ("Decor", "Small items that finish a room."),
]

PRODUCTS = [
    {
        "product_name": "Teak Dining Table",
        "description": "Solid teak dining table for six, oiled finish.",
        "price_amount": 7500000,
        "currency": "IDR",
        "category": "Furniture",
        "tags": "teak,dining",
    },
    {
        "product_name": "Rattan Lounge Chair",
        "description": "Handwoven rattan chair with a cotton seat cushion.",
        "price_amount": 1850000,
        "currency": "IDR",
        "category": "Furniture",
        "tags": "rattan,handmade",
    },
    {
        "product_name": "Bamboo Floor Lamp",
        "description": "Floor lamp with a woven bamboo shade, E27 socket.",
        "price_amount": 950000,
        "currency": "IDR",
        "category": "Lighting",
        "tags": "bamboo,handmade",
    },
    {
        "product_name": "Batik Cushion Cover",
        "description": "Hand-stamped batik cover, 45 x 45 cm.",
        "price_amount": 175000,
        "currency": "IDR",
        "category": "Decor",
        "tags": "batik,textile",
    },
]


def seed_database() -> Dict[str, int]:
    """Insert whatever sample rows are missing; returns how many were added per kind."""
    categories = get_service(CategoryRepository)
    products = get_service(ProductRepository)
    service = get_service(ProductService)

    added = {"categories": 0, "products": 0}
    category_ids = {}
    for name, description in CATEGORIES:
        existing = categories.get_by_name(name)
        if existing:
            category_ids[name] = existing["category_id"]
            continue
        category_ids[name] = categories.create(name, description)
        added["categories"] += 1

    for item in PRODUCTS:
        raw = {k: v for k, v in item.items() if k != "category"}
        raw["category_ids"] = [category_ids[item["category"]]]
        slug = FormattingUtils.slugify(raw["product_name"])
        if products.get_by_slug(slug):
            continue
        service.create_product(raw)
        added["products"] += 1

    logger.info("Seeded %(categories)s categories and %(products)s products", added)
    return added
