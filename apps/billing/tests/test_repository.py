from decimal import Decimal

from django.test import TestCase

from apps.billing.models import Invoice, Subscription
from apps.billing.repository import BillingRepository
from .factories import make_merchant, make_subscription, utc


class RecordInvoiceTest(TestCase):
    def setUp(self):
        self.merchant = make_merchant()
        self.subscription = make_subscription(self.merchant)

    def _record(self, subscription, invoice_number=1, previous_due_at=None, cycle_start_at=None):
        cycle_start_at = cycle_start_at or utc(2024, 1, 1)
        return BillingRepository.record_invoice(
            subscription,
            previous_due_at=previous_due_at or utc(2024, 1, 1),
            next_due_at=utc(2024, 2, 1),
            now=utc(2024, 1, 1, 0, 5),
            cycle_start_at=cycle_start_at,
            cycle_number=1,
            payment_request_ref=f"pr_{invoice_number}",
            payment_url=f"https://pay.test/r/pr_{invoice_number}",
            due_date=cycle_start_at.date(),
            expires_at=utc(2024, 1, 17),
            amount=Decimal('10.00'),
            currency='USD',
            invoice_number=invoice_number,
        )

    def test_insert_advances_schedule(self):
        invoice, created = self._record(self.subscription)

        self.assertTrue(created)
        self.assertEqual(invoice.tenant_id, self.merchant.tenant_id)
        self.assertEqual(invoice.merchant_id, self.merchant.pk)
        self.assertEqual(self.subscription.next_due_at, utc(2024, 2, 1))
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.next_due_at, utc(2024, 2, 1))

    def test_duplicate_cycle_is_detected(self):
        first, _ = self._record(self.subscription)
        stale = Subscription.objects.get(pk=self.subscription.pk)
        Subscription.objects.filter(pk=stale.pk).update(next_due_at=utc(2024, 1, 1))

        invoice, created = self._record(stale, invoice_number=2)

        self.assertFalse(created)
        self.assertEqual(invoice.pk, first.pk)
        self.assertEqual(Invoice.objects.filter(subscription=self.subscription).count(), 1)
        stale.refresh_from_db()
        self.assertEqual(stale.next_due_at, utc(2024, 1, 1))

    def test_moved_schedule_rolls_back_invoice(self):
        Subscription.objects.filter(pk=self.subscription.pk).update(next_due_at=utc(2024, 3, 1))

        invoice, created = self._record(self.subscription)

        self.assertFalse(created)
        self.assertIsNone(invoice)
        self.assertFalse(Invoice.objects.exists())
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.next_due_at, utc(2024, 3, 1))

    def test_inactive_subscription_is_not_advanced(self):
        Subscription.objects.filter(pk=self.subscription.pk).update(status=Subscription.STATUS_PAUSED)

        _, created = self._record(self.subscription)

        self.assertFalse(created)
        self.assertFalse(Invoice.objects.exists())


class SubscriptionQueriesTest(TestCase):
    def setUp(self):
        self.merchant = make_merchant()

    def test_active_subscriptions(self):
        later = make_subscription(self.merchant, next_due_at=utc(2024, 3, 1))
        sooner = make_subscription(self.merchant, next_due_at=utc(2024, 2, 1))
        make_subscription(self.merchant, status=Subscription.STATUS_PAUSED)
        other = make_subscription(make_merchant(tenant_id=2))

        self.assertEqual(BillingRepository.active_subscription_ids(), [other.pk, sooner.pk, later.pk])
        self.assertEqual(BillingRepository.active_subscription_ids(tenant_id=1), [sooner.pk, later.pk])

    def test_mark_completed_once(self):
        subscription = make_subscription(self.merchant)

        self.assertTrue(BillingRepository.mark_completed(subscription, utc(2024, 4, 1)))
        self.assertFalse(BillingRepository.mark_completed(subscription, utc(2024, 4, 1)))

        subscription.refresh_from_db()
        self.assertEqual(subscription.status, Subscription.STATUS_COMPLETED)
        self.assertIsNone(subscription.next_due_at)
        self.assertEqual(subscription.completed_at, utc(2024, 4, 1))
