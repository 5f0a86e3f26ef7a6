"""Webhook domain models."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from fluxdesk_webhooks.domain.events import WebhookEvent, WebhookFormat


class Webhook(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    url: str
    secret_ciphertext: str = Field(repr=False, exclude=True)
    events: list[WebhookEvent] = Field(default_factory=list)
    format: WebhookFormat = WebhookFormat.STANDARD
    description: str | None = None
    is_active: bool = True
    auto_disabled: bool = False
    failure_count: int = Field(default=0, ge=0)
    last_triggered_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    def subscribes_to(self, event: WebhookEvent | str) -> bool:
        return WebhookEvent(event) in self.events

    def should_auto_disable(self, threshold: int) -> bool:
        return self.failure_count >= threshold

    def with_failure_recorded(self, threshold: int) -> "Webhook":
        """State after one more exhausted delivery."""
        failure_count = self.failure_count + 1
        if failure_count >= threshold and self.is_active:
            return self.model_copy(
                update={"failure_count": failure_count, "is_active": False, "auto_disabled": True}
            )
        return self.model_copy(update={"failure_count": failure_count})

    def with_failures_reset(self) -> "Webhook":
        return self.model_copy(
            update={"failure_count": 0, "last_triggered_at": datetime.now(timezone.utc)}
        )

    def toggled(self) -> "Webhook":
        """Manual enable/disable. Re-enabling clears the failure streak."""
        if self.is_active:
            return self.model_copy(update={"is_active": False, "auto_disabled": False})
        return self.model_copy(update={"is_active": True, "auto_disabled": False, "failure_count": 0})


class DeliveryOutcome(BaseModel):
    """Result of a single HTTP attempt."""

    success: bool
    status_code: int | None = None
    error: str | None = None
    duration_ms: int = 0
    response_body: str | None = None


class DeliveryRecord(BaseModel):
    id: UUID
    webhook_id: UUID
    event_type: str
    payload: dict[str, Any]
    # Exact bytes that were signed and sent, decoded as UTF-8
    body: str
    attempt: int = Field(ge=1)
    success: bool
    response_status: int | None = None
    response_body: str | None = None
    error: str | None = None
    duration_ms: int | None = None
    created_at: datetime


class DeliveryState(str, Enum):
    """Lifecycle of one event delivery to one webhook."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    RETRY_SCHEDULED = "retry_scheduled"
    DELIVERED = "delivered"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


class DeliveryJob(BaseModel):
    id: UUID
    webhook_id: UUID
    tenant_id: UUID
    event_type: WebhookEvent
    data: dict[str, Any]
    attempt: int = 0
    state: DeliveryState = DeliveryState.PENDING
    not_before: datetime
    locked_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime
