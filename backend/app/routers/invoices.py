"""Router containing CRUD operations for invoices."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import get_current_identity, get_user_directory
from ..services import InvoiceService, UserDirectory

router = APIRouter(dependencies=[Depends(get_current_identity)])


@router.get("/", response_model=schemas.InvoiceListResponse)
async def list_invoices(
    skip: int = Query(0, ge=0, description="Number of invoices to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of invoices to return"),
    search: Optional[str] = Query(
        None, description="Case-insensitive search by invoice number or customer name"
    ),
    db: Session = Depends(get_db),
    identity: schemas.UserProfile = Depends(get_current_identity),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.InvoiceListResponse:
    """Return invoices, newest first, with pagination and optional search."""

    await directory.ensure_loaded(identity)
    items, total, total_invoice_count = InvoiceService.list_invoices(
        db, search=search, skip=skip, limit=limit
    )
    return schemas.InvoiceListResponse(
        items=[InvoiceService.to_read(item, directory.display_name) for item in items],
        total=total,
        limit=limit,
        skip=skip,
        total_invoice_count=total_invoice_count,
    )


@router.get("/{invoice_id}", response_model=schemas.InvoiceDetailResponse)
async def get_invoice(
    invoice_id: str,
    db: Session = Depends(get_db),
    identity: schemas.UserProfile = Depends(get_current_identity),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.InvoiceDetailResponse:
    invoice = InvoiceService.get_invoice(db, invoice_id)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    await directory.ensure_loaded(identity)
    return schemas.InvoiceDetailResponse(
        invoice=InvoiceService.to_read(invoice, directory.display_name),
        template=InvoiceService.resolve_template(db, invoice),
    )


@router.post("/", response_model=schemas.InvoiceRead, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_in: schemas.InvoiceInput,
    db: Session = Depends(get_db),
    identity: schemas.UserProfile = Depends(get_current_identity),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.InvoiceRead:
    invoice = InvoiceService.create_invoice(db, invoice_in, created_by_id=identity.id)
    await directory.ensure_loaded(identity)
    return InvoiceService.to_read(invoice, directory.display_name)


@router.put("/{invoice_id}", response_model=schemas.InvoiceRead)
async def replace_invoice(
    invoice_id: str,
    invoice_in: schemas.InvoiceInput,
    db: Session = Depends(get_db),
    identity: schemas.UserProfile = Depends(get_current_identity),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.InvoiceRead:
    invoice = InvoiceService.replace_invoice(db, invoice_id, invoice_in)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    await directory.ensure_loaded(identity)
    return InvoiceService.to_read(invoice, directory.display_name)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: str, db: Session = Depends(get_db)) -> None:
    if not InvoiceService.delete_invoice(db, invoice_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
