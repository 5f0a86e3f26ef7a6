"""Webhook signing secrets: generation, sealing at rest, disclosure."""
from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Iterable, Protocol

import structlog
from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from fluxdesk_webhooks.core.exceptions import SecretAccessDeniedError, SecretStoreError
from fluxdesk_webhooks.domain.models import Webhook
from fluxdesk_webhooks.repositories.webhooks import WebhookRepository

logger = structlog.get_logger(__name__)

SECRET_BYTES = 32

_DEV_KEY_SEED = b"fluxdesk-webhooks-development-only"


def generate_secret() -> str:
    """64 hex characters of CSPRNG output."""
    return secrets.token_hex(SECRET_BYTES)


class SecretStore(Protocol):
    """Reversible at-rest encoding of secrets, called explicitly at the storage edge."""

    def seal(self, plaintext: str) -> str: ...

    def reveal(self, sealed: str) -> str: ...


class FernetSecretStore:
    """Fernet-sealed secrets. Older keys are kept around for decryption only."""

    def __init__(self, key: str, previous_keys: Iterable[str] = ()):
        self._fernet = MultiFernet([Fernet(key), *(Fernet(k) for k in previous_keys)])

    @classmethod
    def from_settings(cls, settings) -> "FernetSecretStore":
        key = settings.secret_encryption_key
        if not key:
            # Settings refuse to load without a key in production.
            key = base64.urlsafe_b64encode(hashlib.sha256(_DEV_KEY_SEED).digest()).decode("ascii")
        return cls(key, settings.previous_encryption_keys)

    def seal(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def reveal(self, sealed: str) -> str:
        try:
            return self._fernet.decrypt(sealed.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise SecretStoreError("Stored webhook secret could not be decrypted") from exc


class SecretManager:
    def __init__(
        self,
        store: SecretStore,
        repository: WebhookRepository,
        *,
        reveal_roles: Iterable[str] = ("owner",),
    ):
        self._store = store
        self._repository = repository
        self._reveal_roles = frozenset(reveal_roles)

    def generate(self) -> tuple[str, str]:
        """Fresh secret as ``(plaintext, sealed)``."""
        plaintext = generate_secret()
        return plaintext, self._store.seal(plaintext)

    async def rotate(self, webhook: Webhook) -> tuple[Webhook, str]:
        """Replace the stored secret. The new plaintext is handed out here and nowhere else."""
        plaintext, sealed = self.generate()
        updated = await self._repository.replace_secret(webhook.tenant_id, webhook.id, sealed)
        logger.info("webhook secret rotated", webhook_id=str(webhook.id))
        return updated, plaintext

    def signing_key(self, webhook: Webhook) -> str:
        """Plaintext for the delivery pipeline; never leaves the process."""
        return self._store.reveal(webhook.secret_ciphertext)

    def reveal(self, webhook: Webhook, *, role: str | None) -> str:
        """Decrypt the current secret for an owner-level caller; fails closed otherwise."""
        if role not in self._reveal_roles:
            logger.warning("webhook secret reveal denied", webhook_id=str(webhook.id), role=role)
            raise SecretAccessDeniedError("Revealing a webhook secret requires elevated access")
        logger.info("webhook secret revealed", webhook_id=str(webhook.id), role=role)
        return self._store.reveal(webhook.secret_ciphertext)
