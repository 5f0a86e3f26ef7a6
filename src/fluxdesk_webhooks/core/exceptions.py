"""Common exceptions for domain and repository layers."""
from __future__ import annotations


class WebhookServiceError(Exception):
    """Base error for service layer."""


class RepositoryError(WebhookServiceError):
    """Raised when repository operations fail."""


class NotFoundError(RepositoryError):
    """Raised when requested entity is missing."""


class ConcurrentUpdateError(RepositoryError):
    """Raised when a compare-and-swap update keeps losing to concurrent writers."""


class WebhookValidationError(WebhookServiceError):
    """Raised when webhook fields fail validation at the management boundary."""


class SecretAccessDeniedError(WebhookServiceError):
    """Raised when a caller without elevated rights asks for a plaintext secret."""


class SecretStoreError(WebhookServiceError):
    """Raised when sealed secret material cannot be opened."""


class InvalidStatusTransitionError(WebhookServiceError):
    """Raised when a delivery job attempts an unsupported state change."""
