"""Cycle boundary arithmetic.

Occurrence ``k`` of a series is ``billing_anchor + k * interval``, computed
on the merchant's wall clock and converted back to UTC. Every occurrence is
derived from the anchor rather than from the previous occurrence, so an
anchor on the 31st clamps to the 28th in February and returns to the 31st in
March. ``relativedelta`` provides the end-of-month clamping.
"""
from datetime import datetime, timezone as dt_timezone, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

from .exceptions import ScheduleError

DAY = 'day'
WEEK = 'week'
MONTH = 'month'
YEAR = 'year'
INTERVAL_UNITS = (DAY, WEEK, MONTH, YEAR)

UTC = dt_timezone.utc

# Upper bound on forward steps when searching for an occurrence
MAX_SEARCH_STEPS = 10000


def resolve_zone(name: Optional[str]) -> tzinfo:
    try:
        return ZoneInfo(name or 'UTC')
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ScheduleError(f"Unknown time zone: {name!r}") from exc


def _validate(anchor: datetime, unit: str, count: int) -> None:
    if not isinstance(anchor, datetime) or anchor.tzinfo is None or anchor.utcoffset() is None:
        raise ScheduleError(f"Billing anchor must be a timezone-aware datetime, got {anchor!r}")
    if unit not in INTERVAL_UNITS:
        raise ScheduleError(f"Unsupported interval: {unit!r}")
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ScheduleError(f"Interval count must be a positive integer, got {count!r}")


def _step(unit: str, steps: int) -> relativedelta:
    if unit == DAY:
        return relativedelta(days=steps)
    if unit == WEEK:
        return relativedelta(weeks=steps)
    if unit == MONTH:
        return relativedelta(months=steps)
    return relativedelta(years=steps)


def occurrence_at(anchor: datetime, unit: str, count: int, index: int, tz: tzinfo = UTC) -> datetime:
    """Return the UTC start of occurrence ``index`` (0 is the anchor itself)."""
    _validate(anchor, unit, count)
    if index < 0:
        raise ScheduleError(f"Occurrence index must be non-negative, got {index}")
    wall_clock = anchor.astimezone(tz).replace(tzinfo=None) + _step(unit, count * index)
    try:
        return wall_clock.replace(tzinfo=tz).astimezone(UTC)
    except (OverflowError, ValueError) as exc:
        raise ScheduleError(f"Occurrence {index} is out of range for anchor {anchor.isoformat()}") from exc


def _estimate_index(anchor: datetime, unit: str, count: int, instant: datetime, tz: tzinfo) -> int:
    # Lower bound that is at least one full step behind ``instant``
    start = anchor.astimezone(tz)
    target = instant.astimezone(tz)
    if unit in (DAY, WEEK):
        step_days = count * (7 if unit == WEEK else 1)
        elapsed = (target.replace(tzinfo=None) - start.replace(tzinfo=None)).days
        return max(elapsed // step_days - 1, 0)
    step_months = count * (12 if unit == YEAR else 1)
    elapsed = (target.year - start.year) * 12 + (target.month - start.month)
    return max(elapsed // step_months - 1, 0)


def _first_index_from(anchor, unit, count, instant, tz, inclusive) -> Tuple[int, datetime]:
    index = _estimate_index(anchor, unit, count, instant, tz)
    for _ in range(MAX_SEARCH_STEPS):
        occurrence = occurrence_at(anchor, unit, count, index, tz)
        if occurrence > instant or (inclusive and occurrence == instant):
            return index, occurrence
        index += 1
    raise ScheduleError(
        f"No occurrence found near {instant.isoformat()} for anchor {anchor.isoformat()}"
    )


def next_occurrence_after(anchor: datetime, unit: str, count: int, after: datetime, tz: tzinfo = UTC) -> datetime:
    """First occurrence strictly later than ``after``."""
    _validate(anchor, unit, count)
    return _first_index_from(anchor, unit, count, after, tz, inclusive=False)[1]


def latest_occurrence_at_or_before(anchor, unit, count, instant, tz=UTC) -> Optional[datetime]:
    _validate(anchor, unit, count)
    index, _ = _first_index_from(anchor, unit, count, instant, tz, inclusive=False)
    if index == 0:
        return None
    return occurrence_at(anchor, unit, count, index - 1, tz)


def is_occurrence(anchor: datetime, unit: str, count: int, instant: datetime, tz: tzinfo = UTC) -> bool:
    _validate(anchor, unit, count)
    if instant < anchor:
        return False
    return _first_index_from(anchor, unit, count, instant, tz, inclusive=True)[1] == instant


def advance_after(anchor: datetime, unit: str, count: int, previous: datetime, tz: tzinfo = UTC) -> datetime:
    """Catch-up rule: step from the anchor until the result exceeds ``previous``.

    However many intervals the scheduler missed, the result is the single
    next occurrence after ``previous``.
    """
    return next_occurrence_after(anchor, unit, count, previous, tz)


def current_cycle_start(anchor, unit, count, next_due_at, now, tz=UTC) -> datetime:
    """Cycle to bill on this tick for a subscription whose next-due instant is ``next_due_at``.

    Normally that is ``next_due_at`` itself. When ticks were missed and later
    occurrences have already started, the most recent started occurrence is
    billed instead and the missed ones are skipped.
    """
    if not is_occurrence(anchor, unit, count, next_due_at, tz):
        raise ScheduleError(
            f"next_due_at {next_due_at.isoformat()} is not an occurrence of anchor {anchor.isoformat()}"
        )
    latest = latest_occurrence_at_or_before(anchor, unit, count, now, tz)
    if latest is None or latest <= next_due_at:
        return next_due_at
    return latest
