"""Business logic for invoices kept in local state."""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from .. import schemas
from .local_store import INVOICES_KEY, LocalStore
from .reports import invoice_total
from .settings import DEFAULT_TEMPLATE, SettingsService

_NON_DIGITS = re.compile(r"[^0-9]")


def _now_millis() -> int:
    return int(time.time() * 1000)


def next_invoice_number(invoices: List[schemas.Invoice]) -> str:
    """Return ``#NNN`` one above the highest number found in existing invoices."""

    numbers = [0]
    for invoice in invoices:
        digits = _NON_DIGITS.sub("", invoice.invoice_number)
        numbers.append(int(digits) if digits else 0)
    return f"#{max(numbers) + 1:03d}"


def _matches(invoice: schemas.Invoice, term: str) -> bool:
    return term in invoice.invoice_number.lower() or term in invoice.bill_to.name.lower()


class InvoiceService:
    """Encapsulates CRUD operations for invoices."""

    @staticmethod
    def load_invoices(db: Session) -> List[schemas.Invoice]:
        raw, _ = LocalStore(db).load(INVOICES_KEY, [])
        return [schemas.Invoice.model_validate(item) for item in raw]

    @staticmethod
    def _save_invoices(db: Session, invoices: List[schemas.Invoice]) -> None:
        LocalStore(db).save(INVOICES_KEY, [item.model_dump(mode="json") for item in invoices])

    @staticmethod
    def list_invoices(
        db: Session,
        *,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[schemas.Invoice], int, int]:
        """Return a page of invoices, newest first, plus filtered and overall counts."""

        invoices = InvoiceService.load_invoices(db)
        total_invoice_count = len(invoices)
        if search and search.strip():
            term = search.strip().lower()
            invoices = [invoice for invoice in invoices if _matches(invoice, term)]
        invoices.sort(key=lambda invoice: invoice.created_at, reverse=True)
        total = len(invoices)
        page = invoices[max(skip, 0) : max(skip, 0) + max(limit, 1)]
        return page, total, total_invoice_count

    @staticmethod
    def get_invoice(db: Session, invoice_id: str) -> Optional[schemas.Invoice]:
        return next(
            (invoice for invoice in InvoiceService.load_invoices(db) if invoice.id == invoice_id),
            None,
        )

    @staticmethod
    def create_invoice(
        db: Session, data: schemas.InvoiceInput, *, created_by_id: str
    ) -> schemas.Invoice:
        invoices = InvoiceService.load_invoices(db)
        templates = SettingsService.list_templates(db)
        template = _pick_template(templates, data.template_id, fallback_to_first=True)

        invoice = schemas.Invoice(
            id=f"INV-{_now_millis()}",
            invoice_number=next_invoice_number(invoices),
            issue_date=data.issue_date.isoformat(),
            bill_from=data.bill_from,
            bill_to=data.bill_to,
            line_items=data.line_items,
            notes=data.notes or template.default_notes,
            created_at=datetime.now(timezone.utc),
            template_id=template.id,
            created_by_id=created_by_id,
        )
        invoices.append(invoice)
        InvoiceService._save_invoices(db, invoices)
        return invoice

    @staticmethod
    def replace_invoice(
        db: Session, invoice_id: str, data: schemas.InvoiceInput
    ) -> Optional[schemas.Invoice]:
        """Replace an invoice wholesale, keeping its identity, number, and author."""

        invoices = InvoiceService.load_invoices(db)
        for index, existing in enumerate(invoices):
            if existing.id != invoice_id:
                continue
            updated = existing.model_copy(
                update={
                    "issue_date": data.issue_date.isoformat(),
                    "bill_from": data.bill_from,
                    "bill_to": data.bill_to,
                    "line_items": data.line_items,
                    "notes": data.notes,
                    "template_id": data.template_id or existing.template_id,
                }
            )
            invoices[index] = updated
            InvoiceService._save_invoices(db, invoices)
            return updated
        return None

    @staticmethod
    def delete_invoice(db: Session, invoice_id: str) -> bool:
        invoices = InvoiceService.load_invoices(db)
        remaining = [invoice for invoice in invoices if invoice.id != invoice_id]
        if len(remaining) == len(invoices):
            return False
        InvoiceService._save_invoices(db, remaining)
        return True

    @staticmethod
    def resolve_template(db: Session, invoice: schemas.Invoice) -> schemas.Template:
        templates = SettingsService.list_templates(db)
        return _pick_template(templates, invoice.template_id, fallback_to_first=False)

    @staticmethod
    def to_read(
        invoice: schemas.Invoice, display_name: Callable[[str], str]
    ) -> schemas.InvoiceRead:
        return schemas.InvoiceRead(
            **invoice.model_dump(),
            total_amount=invoice_total(invoice),
            created_by_name=display_name(invoice.created_by_id),
        )


def _pick_template(
    templates: List[schemas.Template],
    template_id: Optional[str],
    *,
    fallback_to_first: bool,
) -> schemas.Template:
    if template_id:
        for template in templates:
            if template.id == template_id:
                return template
    for template in templates:
        if template.is_default:
            return template
    if fallback_to_first and templates:
        return templates[0]
    return DEFAULT_TEMPLATE
