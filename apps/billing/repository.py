import logging

from django.db import DatabaseError, IntegrityError, transaction

from .exceptions import PersistenceError
from .models import Invoice, Subscription

logger = logging.getLogger(__name__)


class _ScheduleMoved(Exception):
    """Raised inside the invoice transaction to roll it back."""


class BillingRepository:
    """Persistence boundary of the billing engine.

    The unique constraint on (subscription, cycle_start_at) arbitrates racing
    writers; nothing here takes an in-process lock.
    """

    @staticmethod
    def active_subscriptions(tenant_id=None):
        queryset = (
            Subscription.objects
            .filter(status=Subscription.STATUS_ACTIVE, next_due_at__isnull=False)
            .select_related('merchant', 'customer')
            .order_by('next_due_at', 'id')
        )
        if tenant_id is not None:
            queryset = queryset.filter(tenant_id=tenant_id)
        return queryset

    @staticmethod
    def active_subscription_ids(tenant_id=None):
        return list(BillingRepository.active_subscriptions(tenant_id).values_list('id', flat=True))

    @staticmethod
    def get_subscription(subscription_id):
        return Subscription.objects.select_related('merchant', 'customer').get(pk=subscription_id)

    @staticmethod
    def overrides_for(subscription):
        return list(subscription.amount_overrides.all())

    @staticmethod
    def count_invoices(subscription):
        return Invoice.objects.filter(subscription_id=subscription.pk).count()

    @staticmethod
    def find_invoice(subscription, cycle_start_at):
        return Invoice.objects.filter(
            subscription_id=subscription.pk,
            cycle_start_at=cycle_start_at,
        ).first()

    @staticmethod
    def invoice_exists(subscription, cycle_start_at):
        return Invoice.objects.filter(
            subscription_id=subscription.pk,
            cycle_start_at=cycle_start_at,
        ).exists()

    @staticmethod
    def mark_completed(subscription, now):
        """Flip an active subscription to completed; True only for the caller that did it."""
        try:
            updated = Subscription.objects.filter(
                pk=subscription.pk,
                status=Subscription.STATUS_ACTIVE,
            ).update(
                status=Subscription.STATUS_COMPLETED,
                next_due_at=None,
                completed_at=now,
                updated_at=now,
            )
        except DatabaseError as e:
            raise PersistenceError(f"Could not complete subscription {subscription.pk}: {e}") from e
        return updated == 1

    @staticmethod
    def record_invoice(subscription, previous_due_at, next_due_at, now, **fields):
        """Insert the invoice and advance the schedule in one transaction.

        Returns ``(invoice, created)``. ``created`` is False when the cycle was
        already invoiced or another writer moved the schedule first; in both
        cases nothing was written by this call.
        """
        cycle_start_at = fields['cycle_start_at']
        try:
            with transaction.atomic():
                invoice = Invoice.objects.create(
                    tenant_id=subscription.tenant_id,
                    subscription=subscription,
                    merchant_id=subscription.merchant_id,
                    **fields
                )
                advanced = Subscription.objects.filter(
                    pk=subscription.pk,
                    status=Subscription.STATUS_ACTIVE,
                    next_due_at=previous_due_at,
                ).update(next_due_at=next_due_at, updated_at=now)
                if advanced != 1:
                    raise _ScheduleMoved()
        except IntegrityError as e:
            existing = BillingRepository.find_invoice(subscription, cycle_start_at)
            if existing is None:
                raise PersistenceError(
                    f"Invoice insert failed for subscription {subscription.pk}: {e}"
                ) from e
            logger.warning(
                f"Invoice for subscription {subscription.pk} cycle {cycle_start_at.isoformat()} "
                f"already written by another worker (invoice {existing.pk})"
            )
            return existing, False
        except _ScheduleMoved:
            logger.warning(
                f"Schedule of subscription {subscription.pk} changed since "
                f"{previous_due_at.isoformat()}; invoice write rolled back"
            )
            return BillingRepository.find_invoice(subscription, cycle_start_at), False
        except DatabaseError as e:
            raise PersistenceError(
                f"Invoice write failed for subscription {subscription.pk}: {e}"
            ) from e

        subscription.next_due_at = next_due_at
        return invoice, True
