"""Router exposing the product catalog."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import get_current_identity
from ..services import ProductService

router = APIRouter(dependencies=[Depends(get_current_identity)])


@router.get("/", response_model=schemas.ProductListResponse)
def list_products(db: Session = Depends(get_db)) -> schemas.ProductListResponse:
    return schemas.ProductListResponse(items=ProductService.list_products(db))


@router.post("/", response_model=schemas.Product, status_code=status.HTTP_201_CREATED)
def add_product(product_in: schemas.ProductCreate, db: Session = Depends(get_db)) -> schemas.Product:
    """Add a product typed in the invoice form that is not in the catalog yet."""

    return ProductService.add_new_product(db, product_in.name)
