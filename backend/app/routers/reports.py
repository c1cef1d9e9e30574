"""Router exposing invoice reports and customer statistics."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import get_current_identity
from ..services import InvoiceService, ReportRow, ReportService

router = APIRouter(dependencies=[Depends(get_current_identity)])


def _row_to_schema(row: ReportRow) -> schemas.ReportRowRead:
    return schemas.ReportRowRead(
        period=row.period,
        invoice_count=row.invoice_count,
        unique_customers=row.unique_customers,
        total_billed=row.total_billed,
    )


@router.get("/history", response_model=schemas.HistoricalReportsResponse)
def historical_reports(db: Session = Depends(get_db)) -> schemas.HistoricalReportsResponse:
    """Return daily and monthly totals, most recent period first."""

    reports = ReportService.compute_daily_and_monthly_reports(InvoiceService.load_invoices(db))
    return schemas.HistoricalReportsResponse(
        daily=[_row_to_schema(row) for row in reports.daily],
        monthly=[_row_to_schema(row) for row in reports.monthly],
    )


@router.get("/customers", response_model=schemas.CustomerCountsResponse)
def customer_counts(
    reference: Optional[date] = Query(
        None, description="Day to count from; defaults to today in server local time"
    ),
    db: Session = Depends(get_db),
) -> schemas.CustomerCountsResponse:
    counts = ReportService.compute_customer_counts(
        InvoiceService.load_invoices(db),
        reference if reference is not None else datetime.now(),
    )
    return schemas.CustomerCountsResponse(
        reference_date=counts.reference_date,
        today=counts.today,
        this_month=counts.this_month,
        this_year=counts.this_year,
    )
