"""Event ``data`` builders for ticket and message events.

Producers hand over snapshots of the ticket or message as they looked when the
event happened; these functions shape them into the ``data`` object of the
envelope. The envelope itself is built by :mod:`fluxdesk_webhooks.services.payload`.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel


class NamedRef(BaseModel):
    id: int
    name: str


class PersonRef(BaseModel):
    id: int
    name: str
    email: str | None = None


class TicketSnapshot(BaseModel):
    id: int
    ticket_number: str
    subject: str
    url: str | None = None
    status: NamedRef | None = None
    priority: NamedRef | None = None
    assigned_to: PersonRef | None = None
    sla: NamedRef | None = None
    department: NamedRef | None = None
    contact: PersonRef | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def as_data(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"contact"})


class MessageSnapshot(BaseModel):
    id: int
    type: Literal["reply", "note", "system"] = "reply"
    is_from_contact: bool = False
    author: PersonRef | None = None
    has_attachments: bool = False
    created_at: datetime | None = None

    def as_data(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"author"})
        data["author"] = None
        if self.author is not None:
            data["author"] = {
                "type": "contact" if self.is_from_contact else "user",
                **self.author.model_dump(mode="json"),
            }
        return data


def _ref(value: BaseModel | None) -> dict[str, Any] | None:
    return value.model_dump(mode="json") if value is not None else None


def _change(field: str, ticket: TicketSnapshot, old: BaseModel | None, new: BaseModel | None) -> dict[str, Any]:
    return {
        "ticket": ticket.as_data(),
        "changes": {field: {"from": _ref(old), "to": _ref(new)}},
    }


def ticket_created(ticket: TicketSnapshot) -> dict[str, Any]:
    return {"ticket": ticket.as_data(), "contact": _ref(ticket.contact)}


def ticket_status_changed(
    ticket: TicketSnapshot, old: NamedRef | None, new: NamedRef | None
) -> dict[str, Any]:
    return _change("status", ticket, old, new)


def ticket_priority_changed(
    ticket: TicketSnapshot, old: NamedRef | None, new: NamedRef | None
) -> dict[str, Any]:
    return _change("priority", ticket, old, new)


def ticket_assigned(
    ticket: TicketSnapshot, old: PersonRef | None, new: PersonRef | None
) -> dict[str, Any]:
    return _change("assigned_to", ticket, old, new)


def ticket_sla_changed(
    ticket: TicketSnapshot, old: NamedRef | None, new: NamedRef | None
) -> dict[str, Any]:
    return _change("sla", ticket, old, new)


def message_created(message: MessageSnapshot, ticket: TicketSnapshot) -> dict[str, Any]:
    return {"message": message.as_data(), "ticket": ticket.as_data()}


def reply_received(message: MessageSnapshot, ticket: TicketSnapshot) -> dict[str, Any]:
    contact = message.author if message.is_from_contact else ticket.contact
    return {
        "message": message.as_data(),
        "ticket": ticket.as_data(),
        "contact": _ref(contact),
    }
