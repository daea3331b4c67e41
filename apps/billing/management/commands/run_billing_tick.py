
from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime

from apps.billing.engine import BillingEngine
from apps.billing.outcomes import OutcomeStatus

class Command(BaseCommand):
    help = 'Run the recurring billing tick once and print the outcome of every subscription'

    def add_arguments(self, parser):
        parser.add_argument('--at', type=str, help='Evaluate as of this ISO-8601 instant instead of now')
        parser.add_argument('--subscription', type=int, help='Only bill this subscription')
        parser.add_argument('--tenant_id', type=int, help='Only bill subscriptions of this tenant')

    def handle(self, *args, **options):
        now = None
        if options.get('at'):
            now = parse_datetime(options['at'])
            if now is None or now.tzinfo is None:
                raise CommandError('--at must be a timezone-aware ISO-8601 datetime')

        engine = BillingEngine()

        if options.get('subscription'):
            outcomes = [engine.bill_subscription_by_id(options['subscription'], now)]
        else:
            outcomes = engine.run_tick(now=now, tenant_id=options.get('tenant_id')).outcomes

        for outcome in outcomes:
            line = f"{outcome.subscription_id}: {outcome.status.value}"
            if outcome.reason:
                line += f" ({outcome.reason})"
            if outcome.status is OutcomeStatus.FAILED:
                self.stdout.write(self.style.ERROR(line))
            elif outcome.status in (OutcomeStatus.GENERATED, OutcomeStatus.COMPLETED):
                self.stdout.write(self.style.SUCCESS(line))
            else:
                self.stdout.write(line)

        failed = sum(1 for outcome in outcomes if outcome.status is OutcomeStatus.FAILED)
        self.stdout.write(f"{len(outcomes)} processed, {failed} failed")
