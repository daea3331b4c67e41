from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from apps.authentication.models import User
from apps.billing.exceptions import NumberingError, PaymentRequestError
from apps.billing.models import Subscription
from apps.billing.notifications import NotificationDispatcher
from apps.billing.numbering import InvoiceNumberingService
from apps.billing.payments import PaymentRequest, PaymentRequestService
from apps.merchants.models import Customer, Merchant


def utc(*args):
    return datetime(*args, tzinfo=dt_timezone.utc)


def make_merchant(tenant_id=1, timezone='UTC', **kwargs):
    kwargs.setdefault('business_name', f"Merchant {tenant_id}")
    kwargs.setdefault('email', f"billing{tenant_id}@merchant.test")
    return Merchant.objects.create(tenant_id=tenant_id, timezone=timezone, **kwargs)


def make_customer(merchant, email='customer@example.com', **kwargs):
    return Customer.objects.create(tenant_id=merchant.tenant_id, merchant=merchant, email=email, **kwargs)


def make_subscription(merchant, customer=None, anchor=None, next_due_at=None, **kwargs):
    anchor = anchor or utc(2024, 1, 1)
    kwargs.setdefault('title', 'Pro plan')
    kwargs.setdefault('amount', Decimal('10.00'))
    kwargs.setdefault('interval', 'month')
    return Subscription.objects.create(
        tenant_id=merchant.tenant_id,
        merchant=merchant,
        customer=customer,
        billing_anchor=anchor,
        next_due_at=next_due_at or anchor,
        **kwargs
    )


def make_user(tenant_id=1, role='user', email=None):
    email = email or f"{role}{tenant_id}@merchant.test"
    return User.objects.create_user(
        username=email, email=email, password='testpass', tenant_id=tenant_id, role=role
    )


class FakePaymentRequestService(PaymentRequestService):
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.calls = []

    def create(self, merchant, amount, currency, expires_at, single_use=True, title="", metadata=None):
        metadata = metadata or {}
        if metadata.get('subscription_id') in self.fail_for:
            raise PaymentRequestError("payments service unavailable")
        self.calls.append({
            'merchant': merchant,
            'amount': amount,
            'currency': currency,
            'expires_at': expires_at,
            'single_use': single_use,
            'title': title,
            'metadata': metadata,
        })
        n = len(self.calls)
        return PaymentRequest(reference=f"pr_{n}", payable_url=f"https://pay.test/r/pr_{n}")


class FailingNumbering(InvoiceNumberingService):
    def next_number(self, merchant):
        raise NumberingError("sequence unavailable")


class RecordingNotifier(NotificationDispatcher):
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def notify(self, notification_type, subscription, recipient, payload):
        if self.fail:
            raise RuntimeError("notification transport down")
        self.sent.append((notification_type, subscription.pk, recipient, payload))

    def of_type(self, notification_type):
        return [sent for sent in self.sent if sent[0] is notification_type]
