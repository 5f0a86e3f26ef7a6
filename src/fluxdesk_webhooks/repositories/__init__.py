"""Repository package exports."""

from fluxdesk_webhooks.repositories.deliveries import WebhookDeliveryRepository
from fluxdesk_webhooks.repositories.jobs import DeliveryJobRepository
from fluxdesk_webhooks.repositories.webhooks import WebhookRepository

__all__ = [
    "WebhookRepository",
    "WebhookDeliveryRepository",
    "DeliveryJobRepository",
]
