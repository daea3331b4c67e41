from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.billing import lifecycle
from apps.billing.models import Subscription
from .factories import make_merchant, make_subscription, utc


class LifecycleTest(TestCase):
    def setUp(self):
        self.subscription = make_subscription(make_merchant(), anchor=utc(2024, 1, 1), next_due_at=utc(2024, 2, 1))

    def test_pause(self):
        paused = lifecycle.pause(self.subscription, now=utc(2024, 1, 10))

        self.assertEqual(paused.status, Subscription.STATUS_PAUSED)
        self.assertEqual(paused.paused_at, utc(2024, 1, 10))
        with self.assertRaises(ValidationError):
            lifecycle.pause(self.subscription)

    def test_resume_skips_cycles_inside_the_pause(self):
        lifecycle.pause(self.subscription, now=utc(2024, 1, 10))

        resumed = lifecycle.resume(self.subscription, now=utc(2024, 4, 10))

        self.assertEqual(resumed.status, Subscription.STATUS_ACTIVE)
        self.assertEqual(resumed.next_due_at, utc(2024, 5, 1))
        self.assertIsNone(resumed.paused_at)
        self.assertEqual(resumed.resumed_at, utc(2024, 4, 10))

    def test_resume_before_next_due_keeps_it(self):
        lifecycle.pause(self.subscription, now=utc(2024, 1, 10))

        resumed = lifecycle.resume(self.subscription, now=utc(2024, 1, 20))

        self.assertEqual(resumed.next_due_at, utc(2024, 2, 1))

    def test_resume_active_subscription(self):
        with self.assertRaises(ValidationError):
            lifecycle.resume(self.subscription)

    def test_cancel_is_terminal(self):
        canceled = lifecycle.cancel(self.subscription, now=utc(2024, 1, 15))

        self.assertEqual(canceled.status, Subscription.STATUS_CANCELED)
        self.assertIsNone(canceled.next_due_at)
        for change in (lifecycle.pause, lifecycle.resume, lifecycle.cancel):
            with self.assertRaises(ValidationError):
                change(self.subscription)

    def test_completed_cannot_be_paused(self):
        Subscription.objects.filter(pk=self.subscription.pk).update(status=Subscription.STATUS_COMPLETED)
        with self.assertRaises(ValidationError):
            lifecycle.pause(self.subscription)
