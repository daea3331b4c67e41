import json
import logging
from abc import ABC, abstractmethod
from enum import Enum

from django.conf import settings
from google.api_core.exceptions import GoogleAPIError
from google.cloud import pubsub_v1

from .exceptions import NotificationError

logger = logging.getLogger(__name__)


class NotificationType(Enum):
    WELCOME = "welcome"
    INVOICE_READY = "invoice_ready"
    PAST_DUE = "past_due"
    COMPLETION = "completion"


class NotificationDispatcher(ABC):
    """Fire-and-forget hand-off to the notification renderer/transport."""

    @abstractmethod
    def notify(self, notification_type, subscription, recipient, payload):
        pass


def build_message(notification_type, subscription, recipient, payload):
    return {
        'type': notification_type.value,
        'subscription_id': subscription.pk,
        'merchant_id': subscription.merchant_id,
        'tenant_id': subscription.tenant_id,
        'recipient': recipient,
        'payload': payload or {},
    }


class PubSubNotificationDispatcher(NotificationDispatcher):
    def __init__(self, publisher=None, project_id=None, topic=None):
        self._publisher = publisher
        self.project_id = project_id or settings.GCP_PROJECT_ID
        self.topic = topic or settings.NOTIFICATIONS_TOPIC

    @property
    def publisher(self):
        if self._publisher is None:
            self._publisher = pubsub_v1.PublisherClient()
        return self._publisher

    def notify(self, notification_type, subscription, recipient, payload):
        topic_path = self.publisher.topic_path(self.project_id, self.topic)
        message = build_message(notification_type, subscription, recipient, payload)
        message_data = json.dumps(message, default=str).encode("utf-8")
        try:
            future = self.publisher.publish(
                topic_path, message_data, notification_type=notification_type.value
            )
        except GoogleAPIError as e:
            raise NotificationError(f"Could not publish to {topic_path}: {e}") from e
        future.add_done_callback(_log_publish_result(notification_type, subscription.pk))
        return future


def _log_publish_result(notification_type, subscription_id):
    def callback(future):
        error = future.exception()
        if error is not None:
            logger.warning(
                f"Publishing {notification_type.value} notification for subscription "
                f"{subscription_id} failed: {error}"
            )
    return callback


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Development dispatcher: records the message in the log only."""

    def notify(self, notification_type, subscription, recipient, payload):
        message = build_message(notification_type, subscription, recipient, payload)
        logger.info(f"Notification {notification_type.value} -> {recipient}: {json.dumps(message, default=str)}")
        return message


def recipient_for(subscription):
    customer = subscription.customer
    if customer is None:
        return None
    return customer.email or customer.phone or None


def dispatch_safely(dispatcher, notification_type, subscription, payload=None):
    """Best-effort dispatch: failures are logged and reported as False."""
    recipient = recipient_for(subscription)
    if recipient is None:
        logger.warning(
            f"Subscription {subscription.pk} has no customer contact; "
            f"{notification_type.value} notification not sent"
        )
        return False
    try:
        dispatcher.notify(notification_type, subscription, recipient, payload or {})
    except Exception as e:
        logger.warning(
            f"{notification_type.value} notification for subscription {subscription.pk} failed: {e}",
            exc_info=True,
        )
        return False
    return True
