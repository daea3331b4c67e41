from datetime import timedelta

from django.conf import settings

from core.celery import app as celery_app

__all__ = ('celery_app',)

# Register tasks explicitly
from .billing import bill_subscription, dispatch_billing_tick, run_billing_tick

celery_app.conf.beat_schedule = {
    'run-billing-tick': {
        'task': 'tasks.billing.run_billing_tick',
        'schedule': timedelta(minutes=getattr(settings, 'BILLING_TICK_MINUTES', 15)),
    },
}
