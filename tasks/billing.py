import logging

from celery import group, shared_task

from apps.billing.engine import BillingEngine
from apps.billing.repository import BillingRepository

logger = logging.getLogger(__name__)


@shared_task
def run_billing_tick(tenant_id=None):
    """Periodic entry point: bill every active subscription in this worker."""
    report = BillingEngine().run_tick(tenant_id=tenant_id)
    return report.as_dict()


@shared_task
def bill_subscription(subscription_id):
    outcome = BillingEngine().bill_subscription_by_id(subscription_id)
    return outcome.as_dict()


@shared_task
def dispatch_billing_tick(tenant_id=None):
    """Fan a tick out as one task per active subscription"""
    subscription_ids = BillingRepository.active_subscription_ids(tenant_id)
    if subscription_ids:
        group(bill_subscription.s(subscription_id) for subscription_id in subscription_ids).apply_async()
    logger.info(f"Dispatched billing for {len(subscription_ids)} subscriptions")
    return {'dispatched': len(subscription_ids)}
