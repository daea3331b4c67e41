import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .exceptions import PaymentRequestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentRequest:
    reference: str
    payable_url: str


class PaymentRequestService(ABC):
    """Creates the underlying payment request a customer pays an invoice through."""

    @abstractmethod
    def create(self, merchant, amount: Decimal, currency: str, expires_at: datetime,
               single_use: bool = True, title: str = "",
               metadata: Optional[Dict[str, Any]] = None) -> PaymentRequest:
        pass


class HttpPaymentRequestService(PaymentRequestService):
    """Client for the internal payments endpoint.

    Only connection failures are retried: a read timeout may already have
    created a request upstream, and the next tick is the retry for that.
    """

    def __init__(self, url=None, api_key=None, timeout=None, session=None):
        self.url = url or settings.PAYMENT_REQUEST_API_URL
        self.api_key = api_key if api_key is not None else settings.INTERNAL_API_KEY
        self.timeout = timeout or settings.PAYMENT_REQUEST_TIMEOUT
        self.session = session or requests.Session()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(requests.ConnectionError),
        reraise=True,
    )
    def _post(self, payload):
        response = self.session.post(
            self.url,
            json=payload,
            headers={'X-Internal-Key': self.api_key},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def create(self, merchant, amount, currency, expires_at, single_use=True, title="", metadata=None):
        if not self.api_key:
            raise PaymentRequestError("INTERNAL_API_KEY is not configured")

        payload = {
            'merchant_id': merchant.pk,
            'title': title,
            'amount': str(amount),
            'currency': currency,
            'max_uses': 1 if single_use else None,
            'expires_at': expires_at.isoformat(),
            'source': 'subscription',
            **(metadata or {}),
        }
        try:
            body = self._post(payload)
        except requests.RequestException as e:
            raise PaymentRequestError(f"Payment request creation failed: {e}") from e
        except ValueError as e:
            raise PaymentRequestError(f"Payment service returned invalid JSON: {e}") from e

        link = body.get('payment_link') or {}
        reference = link.get('id')
        payable_url = link.get('payment_url')
        if not reference or not payable_url:
            raise PaymentRequestError("Payment service response has no payment_link")

        logger.info(f"Created payment request {reference} for merchant {merchant.pk}")
        return PaymentRequest(reference=str(reference), payable_url=payable_url)
