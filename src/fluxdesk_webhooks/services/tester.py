"""Connectivity check with a fixed sample event."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fluxdesk_webhooks.domain import payloads
from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.domain.models import DeliveryOutcome, Webhook
from fluxdesk_webhooks.domain.payloads import NamedRef, PersonRef, TicketSnapshot
from fluxdesk_webhooks.services.executor import DeliveryExecutor, DeliveryRequest
from fluxdesk_webhooks.services.payload import build_payload, canonical_json
from fluxdesk_webhooks.services.secret_manager import SecretManager
from fluxdesk_webhooks.services.signing import sign

TEST_EVENT = WebhookEvent.TICKET_CREATED

_SAMPLE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def sample_data(public_app_url: str = "http://localhost:3000") -> dict[str, Any]:
    """``ticket.created`` data for a made-up ticket, flagged with ``test: true``."""
    ticket = TicketSnapshot(
        id=0,
        ticket_number="TEST-0001",
        subject="Test Ticket",
        url=f"{public_app_url.rstrip('/')}/inbox/0",
        status=NamedRef(id=1, name="Open"),
        priority=NamedRef(id=2, name="Normal"),
        contact=PersonRef(id=0, name="Test Contact", email="test@example.com"),
        created_at=_SAMPLE_TIME,
        updated_at=_SAMPLE_TIME,
    )
    data = payloads.ticket_created(ticket)
    data["test"] = True
    return data


class WebhookTester:
    """One build, sign and send pass. No retries and no failure counting."""

    def __init__(
        self,
        secrets: SecretManager,
        executor: DeliveryExecutor,
        *,
        public_app_url: str = "http://localhost:3000",
    ):
        self._secrets = secrets
        self._executor = executor
        self._public_app_url = public_app_url

    def build_envelope(self, webhook: Webhook) -> dict[str, Any]:
        return build_payload(TEST_EVENT, sample_data(self._public_app_url), webhook.id)

    async def send_test(self, webhook: Webhook) -> tuple[DeliveryOutcome, dict[str, Any]]:
        """Send the sample event; returns the outcome and the envelope that went out."""
        envelope = self.build_envelope(webhook)
        body = canonical_json(envelope)
        request = DeliveryRequest(
            url=webhook.url,
            body=body,
            signature=sign(body, self._secrets.signing_key(webhook)),
            event=TEST_EVENT,
            timestamp=envelope["timestamp"],
        )
        return await self._executor.execute(request), envelope
