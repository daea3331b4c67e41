from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.core.exceptions import ValidationError
from django.db import models


def validate_timezone(value):
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone: {value}")


class Merchant(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('suspended', 'Suspended'),
    ]

    tenant_id = models.IntegerField(unique=True)
    business_name = models.CharField(max_length=200)
    email = models.EmailField()
    timezone = models.CharField(max_length=64, default='UTC', validators=[validate_timezone])
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    # Last invoice number handed out; owned by DatabaseInvoiceNumbering
    invoice_sequence = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.business_name


class Customer(models.Model):
    class Meta:
        indexes = [
            models.Index(fields=['tenant_id', 'email'], name='customer_tenant_email_idx'),
        ]

    tenant_id = models.IntegerField(db_index=True)
    merchant = models.ForeignKey(Merchant, on_delete=models.CASCADE, related_name='customers')
    name = models.CharField(max_length=200, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def clean(self):
        if not self.email and not self.phone:
            raise ValidationError("A customer needs an email or a phone number")

    def __str__(self):
        return self.name or self.email or self.phone
