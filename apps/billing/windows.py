"""Look-ahead eligibility and the due/expiry window of an invoice."""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from django.conf import settings

from .schedule import UTC

DEFAULT_EXPIRY_GRACE_DAYS = 14


def generation_opens_at(next_due_at: datetime, generate_days_in_advance: int) -> datetime:
    return next_due_at - timedelta(days=generate_days_in_advance or 0)


def is_eligible(now: datetime, next_due_at: Optional[datetime], generate_days_in_advance: int) -> bool:
    if next_due_at is None:
        return False
    return now >= generation_opens_at(next_due_at, generate_days_in_advance)


@dataclass(frozen=True)
class InvoiceWindow:
    due_date: date
    expires_at: datetime


def expiry_grace_days() -> int:
    return getattr(settings, 'BILLING_EXPIRY_GRACE_DAYS', DEFAULT_EXPIRY_GRACE_DAYS)


def compute_window(cycle_start_at: datetime, invoice_due_days: int, past_due_after_days: int,
                   tz: tzinfo = UTC, grace_days: Optional[int] = None) -> InvoiceWindow:
    """Due date is a calendar date in the merchant's zone; expiry is an absolute instant.

    The grace buffer past the past-due point leaves room for dunning before
    the payment request stops accepting payment.
    """
    if grace_days is None:
        grace_days = expiry_grace_days()
    due_date = cycle_start_at.astimezone(tz).date() + timedelta(days=invoice_due_days or 0)
    expires_at = cycle_start_at + timedelta(days=(past_due_after_days or 0) + grace_days)
    return InvoiceWindow(due_date=due_date, expires_at=expires_at)
