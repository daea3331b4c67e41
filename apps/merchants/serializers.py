from rest_framework import serializers
from .models import Merchant, Customer

class MerchantSerializer(serializers.ModelSerializer):
    tenant_id = serializers.IntegerField(read_only=True)
    invoice_sequence = serializers.IntegerField(read_only=True)
    
    class Meta:
        model = Merchant
        fields = '__all__'

class CustomerSerializer(serializers.ModelSerializer):
    tenant_id = serializers.IntegerField(read_only=True)
    merchant = serializers.PrimaryKeyRelatedField(read_only=True)
    
    class Meta:
        model = Customer
        fields = '__all__'

    def validate(self, data):
        email = data.get('email', getattr(self.instance, 'email', ''))
        phone = data.get('phone', getattr(self.instance, 'phone', ''))
        if not email and not phone:
            raise serializers.ValidationError("A customer needs an email or a phone number.")
        return data
