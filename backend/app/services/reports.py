"""Historical reports and customer statistics derived from invoices.

Everything here is a pure reduction over the invoices passed in: nothing is
cached and nothing is read from storage, so callers recompute the rows on
every request.

Day keys are the invoice ``issue_date`` exactly as stored (``YYYY-MM-DD``)
and month keys are zero-padded ``YYYY-MM``. Dates are parsed as plain
calendar dates, never as instants, so an invoice always lands in the same
bucket whatever the server timezone is. Rows are ordered by the parsed
date rather than by the key text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

INVALID_PERIOD_KEY = "invalid"

_ISO_DAY_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class ReportRow:
    """Aggregated figures for one reporting period."""

    period: str
    invoice_count: int
    customers: frozenset[str]
    total_billed: Decimal

    @property
    def unique_customers(self) -> int:
        return len(self.customers)


@dataclass(frozen=True)
class HistoricalReports:
    daily: Tuple[ReportRow, ...]
    monthly: Tuple[ReportRow, ...]


@dataclass(frozen=True)
class CustomerCounts:
    reference_date: date
    today: int
    this_month: int
    this_year: int


@dataclass
class _Accumulator:
    invoice_count: int = 0
    customers: set[str] = field(default_factory=set)
    total_billed: Decimal = Decimal("0")

    def add(self, customer: str, amount: Decimal) -> None:
        self.invoice_count += 1
        self.customers.add(customer)
        self.total_billed += amount


def parse_issue_date(raw: object) -> Optional[date]:
    """Return the calendar date of ``raw`` or ``None`` when it is malformed."""

    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        return None
    match = _ISO_DAY_PATTERN.match(raw)
    if match is None:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def invoice_total(invoice) -> Decimal:
    """Sum of quantity x price over the invoice line items."""

    return sum(
        (
            Decimal(str(item.quantity or 0)) * Decimal(str(item.price or 0))
            for item in invoice.line_items or []
        ),
        Decimal("0"),
    )


def _day_key(invoice) -> str:
    raw = invoice.issue_date
    return raw if isinstance(raw, str) else str(raw)


def _month_key(parsed: Optional[date]) -> str:
    if parsed is None:
        return INVALID_PERIOD_KEY
    return f"{parsed.year:04d}-{parsed.month:02d}"


def _parse_month_key(key: str) -> Optional[Tuple[int, int]]:
    if key == INVALID_PERIOD_KEY:
        return None
    year, month = key.split("-", maxsplit=1)
    return int(year), int(month)


def _finalize(
    buckets: Dict[str, _Accumulator], sort_key
) -> Tuple[ReportRow, ...]:
    rows = [
        ReportRow(
            period=key,
            invoice_count=bucket.invoice_count,
            customers=frozenset(bucket.customers),
            total_billed=bucket.total_billed,
        )
        for key, bucket in buckets.items()
    ]
    # Valid periods first, most recent first; unparseable keys after them.
    valid = [row for row in rows if sort_key(row.period) is not None]
    invalid = [row for row in rows if sort_key(row.period) is None]
    valid.sort(key=lambda row: sort_key(row.period), reverse=True)
    invalid.sort(key=lambda row: row.period, reverse=True)
    return tuple(valid + invalid)


class ReportService:
    """Stateless aggregation helpers behind the reports dashboard."""

    @staticmethod
    def compute_daily_and_monthly_reports(invoices: Iterable) -> HistoricalReports:
        daily: Dict[str, _Accumulator] = {}
        monthly: Dict[str, _Accumulator] = {}

        for invoice in invoices:
            parsed = parse_issue_date(invoice.issue_date)
            customer = invoice.bill_to.name
            amount = invoice_total(invoice)

            daily.setdefault(_day_key(invoice), _Accumulator()).add(customer, amount)
            monthly.setdefault(_month_key(parsed), _Accumulator()).add(customer, amount)

        return HistoricalReports(
            daily=_finalize(daily, parse_issue_date),
            monthly=_finalize(monthly, _parse_month_key),
        )

    @staticmethod
    def compute_customer_counts(invoices: Iterable, reference: date | datetime) -> CustomerCounts:
        """Count distinct customers billed on the reference day, month and year.

        A timezone-aware ``reference`` is converted to local time first; a
        naive one is taken as local wall time already.
        """

        if isinstance(reference, datetime):
            if reference.tzinfo is not None:
                reference = reference.astimezone()
            reference_day = reference.date()
        else:
            reference_day = reference

        today: set[str] = set()
        this_month: set[str] = set()
        this_year: set[str] = set()

        for invoice in invoices:
            issued = parse_issue_date(invoice.issue_date)
            if issued is None or issued.year != reference_day.year:
                continue
            name = invoice.bill_to.name
            this_year.add(name)
            if issued.month == reference_day.month:
                this_month.add(name)
                if issued == reference_day:
                    today.add(name)

        return CustomerCounts(
            reference_date=reference_day,
            today=len(today),
            this_month=len(this_month),
            this_year=len(this_year),
        )
