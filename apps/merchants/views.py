from rest_framework import viewsets, mixins
from rest_framework.exceptions import NotFound
from apps.authentication.permissions import IsTenantUser
from .models import Merchant, Customer
from .serializers import MerchantSerializer, CustomerSerializer

class MerchantViewSet(mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      mixins.UpdateModelMixin,
                      viewsets.GenericViewSet):
    permission_classes = [IsTenantUser]
    serializer_class = MerchantSerializer
    
    def get_queryset(self):
        return Merchant.objects.filter(tenant_id=self.request.user.tenant_id)

class CustomerViewSet(viewsets.ModelViewSet):
    permission_classes = [IsTenantUser]
    serializer_class = CustomerSerializer
    
    def get_queryset(self):
        return Customer.objects.filter(tenant_id=self.request.user.tenant_id)
    
    def perform_create(self, serializer):
        merchant = Merchant.objects.filter(tenant_id=self.request.user.tenant_id).first()
        if merchant is None:
            raise NotFound("Merchant account not found")
        serializer.save(tenant_id=merchant.tenant_id, merchant=merchant)
