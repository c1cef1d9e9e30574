from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class ReportRowRead(BaseModel):
    """Aggregated figures for a single day (``YYYY-MM-DD``) or month (``YYYY-MM``)."""

    period: str
    invoice_count: int = Field(..., ge=0)
    unique_customers: int = Field(..., ge=0)
    total_billed: Decimal = Field(..., ge=0)


class HistoricalReportsResponse(BaseModel):
    daily: List[ReportRowRead]
    monthly: List[ReportRowRead]


class CustomerCountsResponse(BaseModel):
    reference_date: date
    today: int = Field(..., ge=0)
    this_month: int = Field(..., ge=0)
    this_year: int = Field(..., ge=0)
