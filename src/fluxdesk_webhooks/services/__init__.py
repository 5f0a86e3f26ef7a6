"""Service layer exports."""

from fluxdesk_webhooks.services.circuit_breaker import CircuitBreaker
from fluxdesk_webhooks.services.delivery import DeliveryPipeline
from fluxdesk_webhooks.services.executor import DeliveryExecutor, DeliveryRequest
from fluxdesk_webhooks.services.ledger import DeliveryLedger
from fluxdesk_webhooks.services.registry import SubscriptionRegistry
from fluxdesk_webhooks.services.retry import RetryPolicy, RetryScheduler
from fluxdesk_webhooks.services.secret_manager import FernetSecretStore, SecretManager, SecretStore
from fluxdesk_webhooks.services.tester import WebhookTester
from fluxdesk_webhooks.services.webhooks import WebhookService

__all__ = [
    "CircuitBreaker",
    "DeliveryExecutor",
    "DeliveryLedger",
    "DeliveryPipeline",
    "DeliveryRequest",
    "FernetSecretStore",
    "RetryPolicy",
    "RetryScheduler",
    "SecretManager",
    "SecretStore",
    "SubscriptionRegistry",
    "WebhookService",
    "WebhookTester",
]
