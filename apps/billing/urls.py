from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import SubscriptionViewSet, InvoiceViewSet, BillingTickView

router = DefaultRouter()
router.register(r'subscriptions', SubscriptionViewSet, basename='subscription')
router.register(r'invoices', InvoiceViewSet, basename='invoice')

urlpatterns = [
    path('', include(router.urls)),
    path('billing/tick/', BillingTickView.as_view(), name='billing-tick'),
]
