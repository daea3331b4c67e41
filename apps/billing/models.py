from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


class Subscription(models.Model):
    class Meta:
        indexes = [
            models.Index(fields=['status', 'next_due_at'], name='subscription_status_due_idx'),
            models.Index(fields=['tenant_id', 'status'], name='subscription_tenant_idx'),
        ]

    STATUS_ACTIVE = 'active'
    STATUS_PAUSED = 'paused'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELED = 'canceled'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_PAUSED, 'Paused'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELED, 'Canceled'),
    ]

    INTERVAL_CHOICES = [
        ('day', 'Day'),
        ('week', 'Week'),
        ('month', 'Month'),
        ('year', 'Year'),
    ]

    tenant_id = models.IntegerField(db_index=True)
    merchant = models.ForeignKey('merchants.Merchant', on_delete=models.CASCADE, related_name='subscriptions')
    customer = models.ForeignKey(
        'merchants.Customer', on_delete=models.SET_NULL, null=True, blank=True, related_name='subscriptions'
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    currency = models.CharField(max_length=10, default='USD')

    interval = models.CharField(max_length=10, choices=INTERVAL_CHOICES)
    interval_count = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    billing_anchor = models.DateTimeField()
    next_due_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    max_cycles = models.PositiveIntegerField(null=True, blank=True, validators=[MinValueValidator(1)])

    invoice_due_days = models.PositiveIntegerField(default=0)
    generate_days_in_advance = models.PositiveIntegerField(default=0)
    past_due_after_days = models.PositiveIntegerField(default=2)
    # Read by the external dunning job, not by the billing engine
    pause_after_missed_payments = models.PositiveIntegerField(default=0)

    # Fee/tax snapshot handed to the payment request at invoice time
    charge_customer_fee = models.BooleanField(null=True, blank=True)
    auto_convert_enabled = models.BooleanField(null=True, blank=True)
    preferred_payout_currency = models.CharField(max_length=20, null=True, blank=True)
    tax_enabled = models.BooleanField(default=False)
    tax_rates = models.JSONField(default=list, blank=True)
    accepted_cryptos = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paused_at = models.DateTimeField(null=True, blank=True)
    resumed_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.title} ({self.interval_count} {self.interval})"

    def clean(self):
        if self.billing_anchor and self.next_due_at and self.next_due_at < self.billing_anchor:
            raise ValidationError("next_due_at cannot be earlier than billing_anchor")
        if not isinstance(self.tax_rates, list) or not isinstance(self.accepted_cryptos, list):
            raise ValidationError("tax_rates and accepted_cryptos must be lists")

    def can_transition_to(self, new_status):
        """Validate status transitions"""
        valid_transitions = {
            self.STATUS_ACTIVE: [self.STATUS_PAUSED, self.STATUS_CANCELED, self.STATUS_COMPLETED],
            self.STATUS_PAUSED: [self.STATUS_ACTIVE, self.STATUS_CANCELED],
            self.STATUS_COMPLETED: [],  # Terminal state
            self.STATUS_CANCELED: [],  # Terminal state
        }
        return new_status in valid_transitions.get(self.status, [])

    @property
    def timezone_name(self):
        return self.merchant.timezone or settings.BILLING_DEFAULT_TIMEZONE

    def fee_snapshot(self):
        return {
            'charge_customer_fee': self.charge_customer_fee,
            'auto_convert_enabled': self.auto_convert_enabled,
            'preferred_payout_currency': self.preferred_payout_currency,
            'tax_enabled': self.tax_enabled,
            'tax_rates': list(self.tax_rates or []),
            'accepted_cryptos': list(self.accepted_cryptos or []),
        }


class AmountOverride(models.Model):
    """Append-only price change for a subscription, effective from a calendar date."""

    class Meta:
        ordering = ['effective_from', 'id']
        indexes = [
            models.Index(fields=['subscription', 'effective_from'], name='override_effective_idx'),
        ]

    tenant_id = models.IntegerField(db_index=True)
    subscription = models.ForeignKey(Subscription, on_delete=models.CASCADE, related_name='amount_overrides')
    effective_from = models.DateField()
    effective_until = models.DateField(null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    note = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def clean(self):
        if self.effective_until and self.effective_until <= self.effective_from:
            raise ValidationError("effective_until must be after effective_from")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Amount overrides are immutable once created")
        self.clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Amount overrides cannot be deleted")


class Invoice(models.Model):
    class Meta:
        constraints = [
            # Idempotency key of the billing engine
            models.UniqueConstraint(
                fields=['subscription', 'cycle_start_at'],
                name='unique_invoice_per_cycle'
            ),
            models.UniqueConstraint(
                fields=['merchant', 'invoice_number'],
                name='unique_invoice_number_per_merchant'
            ),
        ]
        indexes = [
            models.Index(fields=['tenant_id', 'status'], name='invoice_tenant_status_idx'),
        ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('past_due', 'Past due'),
        ('expired', 'Expired'),
        ('canceled', 'Canceled'),
    ]

    tenant_id = models.IntegerField(db_index=True)
    subscription = models.ForeignKey(Subscription, on_delete=models.PROTECT, related_name='invoices')
    merchant = models.ForeignKey('merchants.Merchant', on_delete=models.PROTECT, related_name='invoices')
    payment_request_ref = models.CharField(max_length=100)
    payment_url = models.URLField(max_length=500, blank=True)
    cycle_start_at = models.DateTimeField()
    cycle_number = models.PositiveIntegerField()
    due_date = models.DateField()
    expires_at = models.DateTimeField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=10)
    invoice_number = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Invoice #{self.invoice_number} ({self.cycle_start_at:%Y-%m-%d})"
