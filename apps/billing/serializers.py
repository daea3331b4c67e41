import copy

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from apps.merchants.models import Customer
from .models import AmountOverride, Invoice, Subscription


class SubscriptionSerializer(serializers.ModelSerializer):
    tenant_id = serializers.IntegerField(read_only=True)
    merchant = serializers.PrimaryKeyRelatedField(read_only=True)
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)

    class Meta:
        model = Subscription
        fields = '__all__'
        read_only_fields = (
            'next_due_at', 'status', 'created_at', 'updated_at',
            'paused_at', 'resumed_at', 'canceled_at', 'completed_at',
        )

    def validate_customer(self, value):
        request = self.context.get('request')
        if value is not None and request and value.tenant_id != request.user.tenant_id:
            raise serializers.ValidationError("Customer not found.")
        return value

    def validate_accepted_cryptos(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("accepted_cryptos must be an array.")
        return value

    def validate_tax_rates(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("tax_rates must be an array.")
        return value

    def validate(self, data):
        candidate = copy.copy(self.instance) if self.instance is not None else Subscription()
        for field, value in data.items():
            setattr(candidate, field, value)
        if self.instance is None:
            candidate.next_due_at = candidate.billing_anchor
        try:
            candidate.clean()
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.messages)
        return data

    def create(self, validated_data):
        # The first cycle starts at the anchor
        validated_data['next_due_at'] = validated_data['billing_anchor']
        return super().create(validated_data)


class SubscriptionUpdateSerializer(SubscriptionSerializer):
    """Schedule and price fields are fixed after signup; prices change through overrides."""

    customer = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta(SubscriptionSerializer.Meta):
        read_only_fields = SubscriptionSerializer.Meta.read_only_fields + (
            'amount', 'currency', 'interval', 'interval_count', 'billing_anchor', 'max_cycles',
        )


class AmountOverrideSerializer(serializers.ModelSerializer):
    tenant_id = serializers.IntegerField(read_only=True)
    subscription = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = AmountOverride
        fields = '__all__'

    def validate(self, data):
        until = data.get('effective_until')
        if until and until <= data['effective_from']:
            raise serializers.ValidationError({'effective_until': "effective_until must be after effective_from."})
        return data


class InvoiceSerializer(serializers.ModelSerializer):
    tenant_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Invoice
        fields = '__all__'
        read_only_fields = [f.name for f in Invoice._meta.fields]


class OutcomeSerializer(serializers.Serializer):
    subscription_id = serializers.IntegerField()
    status = serializers.CharField(source='status.value')
    reason = serializers.CharField()
    invoice_id = serializers.IntegerField(allow_null=True)
    cycle_start_at = serializers.DateTimeField(allow_null=True)
