from abc import ABC, abstractmethod

from django.db import DatabaseError, transaction
from django.db.models import F

from apps.merchants.models import Merchant

from .exceptions import NumberingError


class InvoiceNumberingService(ABC):
    @abstractmethod
    def next_number(self, merchant) -> int:
        """Return the next invoice number for ``merchant``; strictly increasing."""


class DatabaseInvoiceNumbering(InvoiceNumberingService):
    """Atomic counter on the merchant row.

    The UPDATE holds the row lock until commit, so concurrent callers are
    serialised and never read the same value.
    """

    def next_number(self, merchant):
        try:
            with transaction.atomic():
                updated = Merchant.objects.filter(pk=merchant.pk).update(
                    invoice_sequence=F('invoice_sequence') + 1
                )
                if updated != 1:
                    raise NumberingError(f"Merchant {merchant.pk} not found")
                return Merchant.objects.values_list('invoice_sequence', flat=True).get(pk=merchant.pk)
        except DatabaseError as e:
            raise NumberingError(f"Could not allocate invoice number for merchant {merchant.pk}: {e}") from e
