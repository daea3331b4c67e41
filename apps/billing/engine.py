"""Billing tick orchestration.

One tick walks every active subscription and, for each one independently:
eligibility, completion gate, idempotency pre-check, amount resolution,
due/expiry window, invoice number, payment request, invoice write together
with schedule advancement, then a best-effort notification. Any failure is
confined to the subscription it happened in and reported in the tick's
outcome log.
"""
import logging

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from . import schedule
from .exceptions import BillingError, ScheduleError
from .notifications import NotificationType, dispatch_safely
from .outcomes import OutcomeStatus, SubscriptionOutcome, TickReport
from .pricing import resolve_amount
from .repository import BillingRepository
from .windows import compute_window, is_eligible

logger = logging.getLogger(__name__)


def load_adapter(setting_name):
    return import_string(getattr(settings, setting_name))()


class BillingEngine:
    def __init__(self, payments=None, numbering=None, notifier=None,
                 repository=BillingRepository, clock=timezone.now):
        self.payments = payments or load_adapter('BILLING_PAYMENT_REQUEST_SERVICE')
        self.numbering = numbering or load_adapter('BILLING_NUMBERING_SERVICE')
        self.notifier = notifier or load_adapter('BILLING_NOTIFICATION_DISPATCHER')
        self.repository = repository
        self.clock = clock

    def run_tick(self, now=None, tenant_id=None):
        now = now or self.clock()
        report = TickReport(started_at=now)
        subscription_ids = self.repository.active_subscription_ids(tenant_id)
        logger.info(f"Billing tick at {now.isoformat()}: {len(subscription_ids)} active subscriptions")

        for subscription_id in subscription_ids:
            report.add(self.bill_subscription_by_id(subscription_id, now))

        report.finished_at = self.clock()
        logger.info(f"Billing tick finished: {report.summary()}")
        for failure in report.failures:
            logger.error(f"Subscription {failure.subscription_id} failed: {failure.reason}")
        return report

    def bill_subscription_by_id(self, subscription_id, now=None):
        now = now or self.clock()
        try:
            subscription = self.repository.get_subscription(subscription_id)
        except Exception as e:
            logger.error(f"Could not load subscription {subscription_id}: {e}")
            return SubscriptionOutcome(subscription_id, OutcomeStatus.FAILED, f"load failed: {e}")
        return self.bill_subscription(subscription, now)

    def bill_subscription(self, subscription, now=None):
        """Run the per-subscription pipeline; never raises."""
        now = now or self.clock()
        try:
            return self._bill(subscription, now)
        except ScheduleError as e:
            logger.exception(f"Calendar data of subscription {subscription.pk} is unusable: {e}")
            return SubscriptionOutcome(
                subscription.pk, OutcomeStatus.FAILED, f"operator_attention: {e}"
            )
        except BillingError as e:
            logger.error(f"Billing aborted for subscription {subscription.pk}: {e}")
            return SubscriptionOutcome(subscription.pk, OutcomeStatus.FAILED, str(e))
        except Exception as e:
            # Includes Celery's SoftTimeLimitExceeded
            logger.exception(f"Unexpected error billing subscription {subscription.pk}")
            return SubscriptionOutcome(
                subscription.pk, OutcomeStatus.FAILED, f"{type(e).__name__}: {e}"
            )

    def _bill(self, subscription, now):
        if subscription.status != subscription.STATUS_ACTIVE:
            return SubscriptionOutcome(
                subscription.pk, OutcomeStatus.SKIPPED_NOT_ELIGIBLE, f"status is {subscription.status}"
            )

        previous_due_at = subscription.next_due_at
        if not is_eligible(now, previous_due_at, subscription.generate_days_in_advance):
            logger.debug(f"Subscription {subscription.pk} not eligible until look-ahead of {previous_due_at}")
            return SubscriptionOutcome(subscription.pk, OutcomeStatus.SKIPPED_NOT_ELIGIBLE)

        invoice_count = self.repository.count_invoices(subscription)
        if subscription.max_cycles and invoice_count >= subscription.max_cycles:
            return self._complete(subscription, invoice_count, now)

        tz = schedule.resolve_zone(subscription.timezone_name)
        anchor = subscription.billing_anchor
        cycle_start_at = schedule.current_cycle_start(
            anchor, subscription.interval, subscription.interval_count, previous_due_at, now, tz
        )
        if cycle_start_at != previous_due_at:
            logger.warning(
                f"Subscription {subscription.pk} missed cycles from {previous_due_at.isoformat()}; "
                f"billing current cycle {cycle_start_at.isoformat()}"
            )

        if self.repository.invoice_exists(subscription, cycle_start_at):
            logger.info(f"Subscription {subscription.pk} cycle {cycle_start_at.isoformat()} already invoiced")
            return SubscriptionOutcome(
                subscription.pk, OutcomeStatus.SKIPPED_DUPLICATE, "invoice exists", cycle_start_at=cycle_start_at
            )

        next_due_at = schedule.advance_after(
            anchor, subscription.interval, subscription.interval_count, cycle_start_at, tz
        )
        cycle_date = cycle_start_at.astimezone(tz).date()
        amount = resolve_amount(subscription.amount, self.repository.overrides_for(subscription), cycle_date)
        window = compute_window(
            cycle_start_at, subscription.invoice_due_days, subscription.past_due_after_days, tz
        )
        cycle_number = invoice_count + 1

        invoice_number = self.numbering.next_number(subscription.merchant)
        payment_request = self.payments.create(
            subscription.merchant,
            amount,
            subscription.currency,
            window.expires_at,
            single_use=True,
            title=f"{subscription.title} - Invoice",
            metadata={
                'subscription_id': subscription.pk,
                'cycle_start_at': cycle_start_at.isoformat(),
                'cycle_number': cycle_number,
                **subscription.fee_snapshot(),
            },
        )

        invoice, created = self.repository.record_invoice(
            subscription,
            previous_due_at=previous_due_at,
            next_due_at=next_due_at,
            now=now,
            cycle_start_at=cycle_start_at,
            cycle_number=cycle_number,
            payment_request_ref=payment_request.reference,
            payment_url=payment_request.payable_url,
            due_date=window.due_date,
            expires_at=window.expires_at,
            amount=amount,
            currency=subscription.currency,
            invoice_number=invoice_number,
        )
        if not created:
            return SubscriptionOutcome(
                subscription.pk,
                OutcomeStatus.SKIPPED_DUPLICATE,
                "written by another worker",
                invoice_id=invoice.pk if invoice else None,
                cycle_start_at=cycle_start_at,
            )

        logger.info(
            f"Invoice #{invoice_number} ({amount} {subscription.currency}) generated for subscription "
            f"{subscription.pk} cycle {cycle_start_at.isoformat()}; next due {next_due_at.isoformat()}"
        )
        dispatch_safely(self.notifier, NotificationType.INVOICE_READY, subscription, {
            'invoice_id': invoice.pk,
            'invoice_number': invoice_number,
            'amount': str(amount),
            'currency': subscription.currency,
            'payment_url': payment_request.payable_url,
            'due_date': window.due_date.isoformat(),
            'cycle_number': cycle_number,
            'max_cycles': subscription.max_cycles,
        })
        return SubscriptionOutcome(
            subscription.pk, OutcomeStatus.GENERATED, invoice_id=invoice.pk, cycle_start_at=cycle_start_at
        )

    def _complete(self, subscription, invoice_count, now):
        if not self.repository.mark_completed(subscription, now):
            return SubscriptionOutcome(
                subscription.pk, OutcomeStatus.SKIPPED_DUPLICATE, "completed by another worker"
            )
        subscription.status = subscription.STATUS_COMPLETED
        subscription.next_due_at = None
        subscription.completed_at = now
        logger.info(f"Subscription {subscription.pk} completed after {invoice_count} cycles")
        dispatch_safely(self.notifier, NotificationType.COMPLETION, subscription, {
            'cycles': invoice_count,
            'max_cycles': subscription.max_cycles,
        })
        return SubscriptionOutcome(subscription.pk, OutcomeStatus.COMPLETED, f"{invoice_count} cycles billed")
