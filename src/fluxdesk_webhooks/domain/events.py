"""Webhook event taxonomy."""
from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class WebhookEvent(str, Enum):
    """Domain events a webhook can subscribe to."""

    TICKET_CREATED = "ticket.created"
    TICKET_STATUS_CHANGED = "ticket.status_changed"
    TICKET_PRIORITY_CHANGED = "ticket.priority_changed"
    TICKET_ASSIGNED = "ticket.assigned"
    TICKET_SLA_CHANGED = "ticket.sla_changed"
    MESSAGE_CREATED = "message.created"
    REPLY_RECEIVED = "message.reply_received"


class WebhookFormat(str, Enum):
    """Payload formats. Only the signed canonical envelope is supported."""

    STANDARD = "standard"


class EventInfo(NamedTuple):
    label: str
    description: str


EVENT_CATALOG: dict[WebhookEvent, EventInfo] = {
    WebhookEvent.TICKET_CREATED: EventInfo(
        "New ticket", "Sent when a new ticket is created"
    ),
    WebhookEvent.TICKET_STATUS_CHANGED: EventInfo(
        "Status changed", "Sent when the status of a ticket changes"
    ),
    WebhookEvent.TICKET_PRIORITY_CHANGED: EventInfo(
        "Priority changed", "Sent when the priority of a ticket changes"
    ),
    WebhookEvent.TICKET_ASSIGNED: EventInfo(
        "Ticket assigned", "Sent when a ticket is assigned to an agent"
    ),
    WebhookEvent.TICKET_SLA_CHANGED: EventInfo(
        "SLA changed", "Sent when the SLA of a ticket changes"
    ),
    WebhookEvent.MESSAGE_CREATED: EventInfo(
        "New message", "Sent when a new message is added to a ticket"
    ),
    WebhookEvent.REPLY_RECEIVED: EventInfo(
        "Customer reply received", "Sent when a customer replies to a ticket"
    ),
}

_missing = set(WebhookEvent) - set(EVENT_CATALOG)
if _missing:
    raise RuntimeError(f"Event catalog is missing entries for: {sorted(e.value for e in _missing)}")


def describe(event: WebhookEvent) -> EventInfo:
    return EVENT_CATALOG[event]


def event_options() -> list[dict[str, str]]:
    """All events as ``{value, label, description}`` options for a settings UI."""
    return [
        {"value": event.value, "label": info.label, "description": info.description}
        for event, info in EVENT_CATALOG.items()
    ]
