"""Status changes driven from outside the billing tick (dashboard/API)."""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from . import schedule
from .models import Subscription

logger = logging.getLogger(__name__)


def _locked(subscription):
    return Subscription.objects.select_for_update().select_related('merchant').get(pk=subscription.pk)


def _ensure_transition(subscription, new_status):
    if not subscription.can_transition_to(new_status):
        raise ValidationError(f"Cannot transition from {subscription.status} to {new_status}")


@transaction.atomic
def pause(subscription, now=None):
    now = now or timezone.now()
    subscription = _locked(subscription)
    _ensure_transition(subscription, Subscription.STATUS_PAUSED)
    subscription.status = Subscription.STATUS_PAUSED
    subscription.paused_at = now
    subscription.resumed_at = None
    subscription.save(update_fields=['status', 'paused_at', 'resumed_at', 'updated_at'])
    logger.info(f"Subscription {subscription.pk} paused")
    return subscription


@transaction.atomic
def resume(subscription, now=None):
    """Reactivate a paused subscription.

    A next-due instant left in the past is rolled forward from the anchor to
    the first occurrence after ``now``; cycles that fell inside the pause are
    not billed.
    """
    now = now or timezone.now()
    subscription = _locked(subscription)
    _ensure_transition(subscription, Subscription.STATUS_ACTIVE)

    next_due_at = subscription.next_due_at
    if next_due_at is None or next_due_at < now:
        tz = schedule.resolve_zone(subscription.timezone_name)
        rolled = schedule.next_occurrence_after(
            subscription.billing_anchor, subscription.interval, subscription.interval_count, now, tz
        )
        next_due_at = rolled if next_due_at is None else max(next_due_at, rolled)

    subscription.status = Subscription.STATUS_ACTIVE
    subscription.next_due_at = next_due_at
    subscription.resumed_at = now
    subscription.paused_at = None
    subscription.save(update_fields=['status', 'next_due_at', 'resumed_at', 'paused_at', 'updated_at'])
    logger.info(f"Subscription {subscription.pk} resumed; next due {next_due_at.isoformat()}")
    return subscription


@transaction.atomic
def cancel(subscription, now=None):
    now = now or timezone.now()
    subscription = _locked(subscription)
    _ensure_transition(subscription, Subscription.STATUS_CANCELED)
    subscription.status = Subscription.STATUS_CANCELED
    subscription.next_due_at = None
    subscription.canceled_at = now
    subscription.save(update_fields=['status', 'next_due_at', 'canceled_at', 'updated_at'])
    logger.info(f"Subscription {subscription.pk} canceled")
    return subscription
