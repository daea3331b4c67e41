from io import StringIO

from django.core.management import CommandError, call_command
from django.test import TestCase, override_settings

from apps.billing.models import Invoice
from .factories import make_customer, make_merchant, make_subscription, utc


@override_settings(BILLING_PAYMENT_REQUEST_SERVICE='apps.billing.tests.factories.FakePaymentRequestService')
class RunBillingTickCommandTest(TestCase):
    def setUp(self):
        merchant = make_merchant()
        self.due = make_subscription(merchant, customer=make_customer(merchant))
        self.later = make_subscription(merchant, next_due_at=utc(2024, 6, 1))

    def test_tick_at_instant(self):
        out = StringIO()

        call_command('run_billing_tick', '--at', '2024-01-01T00:00:00+00:00', stdout=out)

        output = out.getvalue()
        self.assertIn(f"{self.due.pk}: generated", output)
        self.assertIn(f"{self.later.pk}: skipped_not_eligible", output)
        self.assertIn("2 processed, 0 failed", output)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_single_subscription(self):
        out = StringIO()

        call_command('run_billing_tick', '--at', '2024-01-01T00:00:00Z', '--subscription', str(self.due.pk), stdout=out)

        self.assertIn("1 processed, 0 failed", out.getvalue())

    def test_naive_instant_is_rejected(self):
        with self.assertRaises(CommandError):
            call_command('run_billing_tick', '--at', '2024-01-01T00:00:00')
