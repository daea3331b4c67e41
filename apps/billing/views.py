import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authentication.permissions import IsTenantAdmin, IsTenantUser
from apps.merchants.models import Merchant
from . import lifecycle
from .engine import BillingEngine, load_adapter
from .exceptions import ScheduleError
from .models import AmountOverride, Invoice, Subscription
from .notifications import NotificationType, dispatch_safely
from .serializers import (
    AmountOverrideSerializer,
    InvoiceSerializer,
    OutcomeSerializer,
    SubscriptionSerializer,
    SubscriptionUpdateSerializer,
)

logger = logging.getLogger(__name__)


def _parse_id(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({field: f"Expected an integer id, got {value!r}"})


class SubscriptionViewSet(mixins.CreateModelMixin,
                          mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.UpdateModelMixin,
                          viewsets.GenericViewSet):
    permission_classes = [IsTenantUser]

    def get_queryset(self):
        return (
            Subscription.objects
            .filter(tenant_id=self.request.user.tenant_id)
            .select_related('merchant', 'customer')
            .order_by('-created_at')
        )

    def get_serializer_class(self):
        if self.action in ('update', 'partial_update'):
            return SubscriptionUpdateSerializer
        return SubscriptionSerializer

    def perform_create(self, serializer):
        merchant = Merchant.objects.filter(tenant_id=self.request.user.tenant_id).first()
        if merchant is None:
            raise NotFound("Merchant account not found")
        subscription = serializer.save(tenant_id=merchant.tenant_id, merchant=merchant)
        dispatch_safely(load_adapter('BILLING_NOTIFICATION_DISPATCHER'), NotificationType.WELCOME, subscription, {
            'title': subscription.title,
            'amount': str(subscription.amount),
            'currency': subscription.currency,
            'interval': subscription.interval,
            'interval_count': subscription.interval_count,
            'first_due_at': subscription.next_due_at.isoformat(),
        })

    def _change_status(self, change):
        subscription = self.get_object()
        try:
            subscription = change(subscription)
        except DjangoValidationError as e:
            return Response({'error': e.messages[0]}, status=status.HTTP_409_CONFLICT)
        except ScheduleError as e:
            logger.error(f"Cannot reschedule subscription {subscription.pk}: {e}")
            return Response({'error': str(e)}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
        return Response(SubscriptionSerializer(subscription, context=self.get_serializer_context()).data)

    @action(detail=True, methods=['post'])
    def pause(self, request, pk=None):
        return self._change_status(lifecycle.pause)

    @action(detail=True, methods=['post'])
    def resume(self, request, pk=None):
        return self._change_status(lifecycle.resume)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        return self._change_status(lifecycle.cancel)

    @action(detail=True, methods=['post'], url_path='generate-invoice')
    def generate_invoice(self, request, pk=None):
        """Run the billing pipeline for this subscription now."""
        subscription = self.get_object()
        outcome = BillingEngine().bill_subscription(subscription)
        code = status.HTTP_200_OK if outcome.ok else status.HTTP_502_BAD_GATEWAY
        return Response(OutcomeSerializer(outcome).data, status=code)

    @action(detail=True, methods=['get', 'post'], url_path='amount-overrides')
    def amount_overrides(self, request, pk=None):
        subscription = self.get_object()
        if request.method == 'GET':
            overrides = subscription.amount_overrides.all()
            return Response(AmountOverrideSerializer(overrides, many=True).data)

        serializer = AmountOverrideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save(tenant_id=subscription.tenant_id, subscription=subscription)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='send-invoice-notification')
    def send_invoice_notification(self, request, pk=None):
        """Re-send the invoice-ready notification with the invoice's payment link."""
        subscription = self.get_object()
        invoices = subscription.invoices.order_by('-cycle_start_at')
        invoice_id = request.data.get('invoice')
        if invoice_id is not None:
            invoices = invoices.filter(pk=_parse_id(invoice_id, 'invoice'))
        invoice = invoices.first()
        if invoice is None:
            raise NotFound("Invoice not found")

        sent = dispatch_safely(load_adapter('BILLING_NOTIFICATION_DISPATCHER'), NotificationType.INVOICE_READY,
                               subscription, {
                                   'invoice_id': invoice.pk,
                                   'invoice_number': invoice.invoice_number,
                                   'amount': str(invoice.amount),
                                   'currency': invoice.currency,
                                   'payment_url': invoice.payment_url,
                                   'due_date': invoice.due_date.isoformat(),
                                   'cycle_number': invoice.cycle_number,
                                   'max_cycles': subscription.max_cycles,
                               })
        if not sent:
            return Response({'sent': False, 'error': 'Notification could not be dispatched'},
                            status=status.HTTP_502_BAD_GATEWAY)
        return Response({'sent': True, 'invoice': invoice.pk})


class InvoiceViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsTenantUser]
    serializer_class = InvoiceSerializer

    def get_queryset(self):
        queryset = Invoice.objects.filter(tenant_id=self.request.user.tenant_id).order_by('-cycle_start_at')
        subscription_id = self.request.query_params.get('subscription')
        if subscription_id:
            queryset = queryset.filter(subscription_id=_parse_id(subscription_id, 'subscription'))
        return queryset


class BillingTickView(APIView):
    """Manual trigger of the billing tick for the caller's tenant."""

    permission_classes = [IsTenantAdmin]

    def post(self, request):
        report = BillingEngine().run_tick(tenant_id=request.user.tenant_id)
        return Response(report.as_dict())
