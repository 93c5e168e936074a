from typing import Dict, Iterable, List, Optional

import requests
from sqlmodel import Session, select, func

from shopcart.core.config import settings
from shopcart.core.errors import UpstreamError
from shopcart.core.logging import get_logger
from shopcart.models.product import Product

logger = get_logger(__name__)

# Used when the seed API cannot be reached. Prices in INR.
MOCK_PRODUCTS = [
    {"name": "Wireless Headphones", "price": 6499, "image": "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=500"},
    {"name": "Smart Watch", "price": 16499, "image": "https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=500"},
    {"name": "Laptop Backpack", "price": 3999, "image": "https://images.unsplash.com/photo-1553062407-98eeb64c6a62?w=500"},
    {"name": "Coffee Maker", "price": 7499, "image": "https://images.unsplash.com/photo-1517668808822-9ebb02f2a0e6?w=500"},
    {"name": "Gaming Mouse", "price": 4999, "image": "https://images.unsplash.com/photo-1527814050087-3793815479db?w=500"},
    {"name": "Bluetooth Speaker", "price": 10499, "image": "https://images.unsplash.com/photo-1608043152269-423dbba4e7e1?w=500"},
    {"name": "Fitness Tracker", "price": 8299, "image": "https://images.unsplash.com/photo-1575311373937-040b8e1fd5b6?w=500"},
    {"name": "Desk Lamp", "price": 3299, "image": "https://images.unsplash.com/photo-1507473885765-e6ed057f782c?w=500"},
]


class CatalogService:
    """Read access to products. Prices are always read live, never cached."""

    def __init__(self, session: Session):
        self.session = session

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.session.get(Product, product_id)

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        products = self.session.exec(select(Product).where(Product.id.in_(ids))).all()
        return {product.id: product for product in products}

    def list_products(self) -> List[Product]:
        return self.session.exec(select(Product).order_by(Product.id)).all()

    def count_products(self) -> int:
        return self.session.exec(select(func.count()).select_from(Product)).one()

    def fetch_seed_products(self) -> List[dict]:
        """Fetch products from the seed API, converting USD prices to INR."""
        try:
            response = requests.get(settings.CATALOG_SEED_URL, timeout=settings.CATALOG_TIMEOUT_SECONDS)
            response.raise_for_status()
            return [
                {
                    "name": item["title"],
                    "price": round(float(item["price"]) * settings.CATALOG_USD_TO_INR),
                    "image": item["image"],
                }
                for item in response.json()
            ]
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            raise UpstreamError(f"Catalog seed API failed: {e}") from e

    def seed_products(self) -> int:
        """Seed the catalog once. Returns the number of products inserted."""
        existing = self.count_products()
        if existing:
            logger.info(f"Catalog already contains {existing} products, skipping seed")
            return 0

        try:
            products_to_seed = self.fetch_seed_products()
            logger.info(f"Fetched seed products from {settings.CATALOG_SEED_URL}")
        except UpstreamError as e:
            logger.warning(f"Seed API unavailable ({e}), using mock products")
            products_to_seed = MOCK_PRODUCTS

        for data in products_to_seed:
            self.session.add(Product(**data))
        self.session.commit()
        logger.info(f"Seeded {len(products_to_seed)} products")
        return len(products_to_seed)
