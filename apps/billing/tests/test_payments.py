from decimal import Decimal
from unittest import mock

import requests
from django.test import TestCase, override_settings

from apps.billing.engine import BillingEngine
from apps.billing.exceptions import PaymentRequestError
from apps.billing.models import Invoice
from apps.billing.numbering import DatabaseInvoiceNumbering
from apps.billing.outcomes import OutcomeStatus
from apps.billing.payments import HttpPaymentRequestService
from .factories import RecordingNotifier, make_customer, make_merchant, make_subscription, utc


def json_response(body, status_error=None):
    response = mock.Mock()
    response.json.return_value = body
    response.raise_for_status.side_effect = status_error
    return response


LINK = {'payment_link': {'id': 'pl_123', 'payment_url': 'https://pay.test/l/pl_123'}}


class HttpPaymentRequestServiceTest(TestCase):
    def setUp(self):
        self.merchant = make_merchant()
        self.session = mock.Mock()
        self.service = HttpPaymentRequestService(session=self.session)

    def create(self, **kwargs):
        return self.service.create(self.merchant, Decimal('10.00'), 'USD', utc(2024, 2, 17), **kwargs)

    def test_creates_single_use_request(self):
        self.session.post.return_value = json_response(LINK)

        result = self.create(title='Pro plan - Invoice', metadata={'subscription_id': 7})

        self.assertEqual(result.reference, 'pl_123')
        self.assertEqual(result.payable_url, 'https://pay.test/l/pl_123')
        url = self.session.post.call_args.args[0]
        kwargs = self.session.post.call_args.kwargs
        self.assertEqual(url, 'http://payments.test/api/internal/payments/create')
        self.assertEqual(kwargs['headers'], {'X-Internal-Key': 'test-internal-key'})
        self.assertEqual(kwargs['json']['max_uses'], 1)
        self.assertEqual(kwargs['json']['amount'], '10.00')
        self.assertEqual(kwargs['json']['expires_at'], '2024-02-17T00:00:00+00:00')
        self.assertEqual(kwargs['json']['merchant_id'], self.merchant.pk)
        self.assertEqual(kwargs['json']['subscription_id'], 7)

    @mock.patch('time.sleep')
    def test_connection_errors_are_retried(self, _sleep):
        self.session.post.side_effect = [requests.ConnectionError("reset"), json_response(LINK)]

        self.assertEqual(self.create().reference, 'pl_123')
        self.assertEqual(self.session.post.call_count, 2)

    @mock.patch('time.sleep')
    def test_gives_up_after_three_attempts(self, _sleep):
        self.session.post.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(PaymentRequestError):
            self.create()
        self.assertEqual(self.session.post.call_count, 3)

    def test_read_timeout_is_not_retried(self):
        self.session.post.side_effect = requests.ReadTimeout("slow")

        with self.assertRaises(PaymentRequestError):
            self.create()
        self.assertEqual(self.session.post.call_count, 1)

    def test_http_error(self):
        self.session.post.return_value = json_response({}, status_error=requests.HTTPError("500"))

        with self.assertRaises(PaymentRequestError):
            self.create()

    def test_response_without_link(self):
        self.session.post.return_value = json_response({'error': 'nope'})

        with self.assertRaises(PaymentRequestError):
            self.create()

    def test_invalid_json(self):
        response = json_response(None)
        response.json.side_effect = ValueError("not json")
        self.session.post.return_value = response

        with self.assertRaises(PaymentRequestError):
            self.create()

    @override_settings(INTERNAL_API_KEY='')
    def test_missing_api_key(self):
        service = HttpPaymentRequestService(session=self.session)

        with self.assertRaises(PaymentRequestError):
            service.create(self.merchant, Decimal('10.00'), 'USD', utc(2024, 2, 17))
        self.session.post.assert_not_called()

    def test_repeated_failures_do_not_block_later_calls(self):
        self.session.post.side_effect = requests.ReadTimeout("slow")
        for _ in range(6):
            with self.assertRaises(PaymentRequestError):
                self.create()

        self.session.post.side_effect = None
        self.session.post.return_value = json_response(LINK)
        self.assertEqual(self.create().reference, 'pl_123')
        self.assertEqual(self.session.post.call_count, 7)


class MerchantIsolationTest(TestCase):
    """A merchant the payments endpoint keeps rejecting does not hold up the others."""

    def setUp(self):
        self.rejecting = True
        self.rejected = make_merchant(tenant_id=1)
        self.healthy = make_merchant(tenant_id=2)
        self.session = mock.Mock()
        self.session.post.side_effect = self.respond
        self.engine = BillingEngine(
            payments=HttpPaymentRequestService(session=self.session),
            numbering=DatabaseInvoiceNumbering(),
            notifier=RecordingNotifier(),
        )

    def respond(self, url, json=None, **kwargs):
        if self.rejecting and json['merchant_id'] == self.rejected.pk:
            return json_response({}, status_error=requests.HTTPError("422 Unprocessable Entity"))
        return json_response({'payment_link': {
            'id': f"pl_{json['subscription_id']}",
            'payment_url': f"https://pay.test/l/{json['subscription_id']}",
        }})

    def test_rejected_merchant_does_not_block_healthy_one(self):
        customer = make_customer(self.rejected)
        failing = [make_subscription(self.rejected, customer=customer) for _ in range(6)]
        healthy = make_subscription(self.healthy, customer=make_customer(self.healthy, email='b@example.com'))

        report = self.engine.run_tick(now=utc(2024, 1, 1))

        outcomes = {outcome.subscription_id: outcome for outcome in report.outcomes}
        self.assertEqual(outcomes[healthy.pk].status, OutcomeStatus.GENERATED)
        for subscription in failing:
            self.assertEqual(outcomes[subscription.pk].status, OutcomeStatus.FAILED)
        self.assertEqual(list(Invoice.objects.values_list('subscription_id', flat=True)), [healthy.pk])

    def test_next_tick_starts_clean(self):
        failing = make_subscription(self.rejected, customer=make_customer(self.rejected))
        for minute in range(0, 30, 5):
            report = self.engine.run_tick(now=utc(2024, 1, 1, 0, minute))
            self.assertEqual(report.outcomes[0].status, OutcomeStatus.FAILED)

        self.rejecting = False
        report = self.engine.run_tick(now=utc(2024, 1, 1, 0, 30))

        self.assertEqual(report.outcomes[0].subscription_id, failing.pk)
        self.assertEqual(report.outcomes[0].status, OutcomeStatus.GENERATED)
        self.assertEqual(Invoice.objects.get().subscription_id, failing.pk)
