"""Product catalog kept in local state."""

from __future__ import annotations

import time
from typing import List

from sqlalchemy.orm import Session

from .. import schemas
from .local_store import PRODUCTS_KEY, LocalStore

NEW_PRODUCT_DESCRIPTION = "Newly added item"

SAMPLE_PRODUCTS: List[dict] = [
    {"id": "prod_1", "name": "Web Design", "description": "Custom website design and layout"},
    {"id": "prod_2", "name": "Hosting (1 year)", "description": "Annual web hosting plan"},
    {"id": "prod_3", "name": "Logo Design", "description": "Brand logo with three revisions"},
    {"id": "prod_4", "name": "Consulting Hour", "description": "One hour of business consulting"},
]


def _now_millis() -> int:
    return int(time.time() * 1000)


class ProductService:
    """Read and extend the product catalog."""

    @staticmethod
    def list_products(db: Session) -> List[schemas.Product]:
        raw, _ = LocalStore(db).load(PRODUCTS_KEY, SAMPLE_PRODUCTS)
        return [schemas.Product.model_validate(item) for item in raw]

    @staticmethod
    def add_new_product(db: Session, name: str) -> schemas.Product:
        products = ProductService.list_products(db)
        product = schemas.Product(
            id=f"prod_{_now_millis()}",
            name=name,
            description=NEW_PRODUCT_DESCRIPTION,
        )
        products.append(product)
        LocalStore(db).save(PRODUCTS_KEY, [item.model_dump(mode="json") for item in products])
        return product

    @staticmethod
    def reset(db: Session) -> None:
        LocalStore(db).save(PRODUCTS_KEY, SAMPLE_PRODUCTS)
