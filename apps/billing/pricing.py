"""Amount resolution for a billing cycle.

Overrides form an append-only price ledger. For a cycle date the candidate
overrides are those with ``effective_from <= cycle_date`` whose optional
``effective_until`` has not passed; the candidate with the latest
``effective_from`` wins. Without a candidate the subscription's base amount
applies.
"""
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional


def applicable_override(overrides: Iterable, cycle_date: date) -> Optional[object]:
    candidates = [
        override for override in overrides
        if override.effective_from <= cycle_date
        and (override.effective_until is None or cycle_date <= override.effective_until)
    ]
    if not candidates:
        return None
    # Same effective_from: the later-created row wins
    return max(candidates, key=lambda o: (o.effective_from, getattr(o, 'pk', None) or 0))


def resolve_amount(base_amount: Decimal, overrides: Iterable, cycle_date: date) -> Decimal:
    override = applicable_override(overrides, cycle_date)
    if override is None:
        return base_amount
    return override.amount
