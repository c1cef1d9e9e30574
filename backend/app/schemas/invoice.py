from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from .common import PaginatedResponse
from .settings import Template


def _line_item_id() -> str:
    return f"LI-{uuid4().hex[:12]}"


class Product(BaseModel):
    id: str
    name: str = Field(..., min_length=1)
    description: str = ""


class ProductCreate(BaseModel):
    """Payload used to add a product to the catalog by name."""

    name: str = Field(..., min_length=1, max_length=200)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Product name cannot be empty.")
        return stripped


class ProductListResponse(BaseModel):
    items: List[Product]


class Customer(BaseModel):
    name: str
    email: Optional[str] = None
    address: str = ""
    logo_url: Optional[str] = None


class LineItem(BaseModel):
    id: str = Field(default_factory=_line_item_id)
    product: Product
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0)


class InvoiceInput(BaseModel):
    """Fields supplied by the invoice form on create and on edit."""

    issue_date: date
    bill_from: Customer
    bill_to: Customer
    line_items: List[LineItem] = Field(..., min_length=1)
    notes: str = ""
    template_id: Optional[str] = None

    @field_validator("bill_to")
    @classmethod
    def _require_customer_name(cls, value: Customer) -> Customer:
        if not value.name.strip():
            raise ValueError("Customer name is required.")
        return value


class Invoice(BaseModel):
    """Invoice as kept in local state.

    ``issue_date`` stays a ``YYYY-MM-DD`` string; reporting tolerates values
    that do not parse.
    """

    id: str
    invoice_number: str
    issue_date: str
    bill_from: Customer
    bill_to: Customer
    line_items: List[LineItem] = Field(default_factory=list)
    notes: str = ""
    created_at: datetime
    template_id: str
    created_by_id: str


class InvoiceRead(Invoice):
    total_amount: Decimal = Field(..., ge=0)
    created_by_name: str


class InvoiceListResponse(PaginatedResponse[InvoiceRead]):
    total_invoice_count: int = Field(..., ge=0)


class InvoiceDetailResponse(BaseModel):
    invoice: InvoiceRead
    template: Template
