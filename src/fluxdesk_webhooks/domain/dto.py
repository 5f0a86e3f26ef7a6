"""Data transfer objects for the management API."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from fluxdesk_webhooks.domain.events import WebhookEvent, WebhookFormat

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


def _validate_url(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("url must not be empty")
    try:
        _URL_ADAPTER.validate_python(value)
    except ValueError as exc:
        raise ValueError("url must be an absolute http(s) URL") from exc
    return value


def _normalize_events(value: list[WebhookEvent]) -> list[WebhookEvent]:
    events = list(dict.fromkeys(value))
    if not events:
        raise ValueError("events must be a non-empty list")
    return events


def _validate_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("name must not be empty")
    return value


class WebhookCreateDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=255)
    url: str = Field(max_length=2048)
    events: list[WebhookEvent] = Field(min_length=1)
    format: WebhookFormat = WebhookFormat.STANDARD
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _validate_name(value)

    @field_validator("url")
    @classmethod
    def check_url(cls, value: str) -> str:
        return _validate_url(value)

    @field_validator("events")
    @classmethod
    def check_events(cls, value: list[WebhookEvent]) -> list[WebhookEvent]:
        return _normalize_events(value)


class WebhookUpdateDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=255)
    url: str | None = Field(default=None, max_length=2048)
    events: list[WebhookEvent] | None = Field(default=None, min_length=1)
    format: WebhookFormat | None = None
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str | None) -> str | None:
        return None if value is None else _validate_name(value)

    @field_validator("url")
    @classmethod
    def check_url(cls, value: str | None) -> str | None:
        return None if value is None else _validate_url(value)

    @field_validator("events")
    @classmethod
    def check_events(cls, value: list[WebhookEvent] | None) -> list[WebhookEvent] | None:
        return None if value is None else _normalize_events(value)

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually sent. Only ``description`` may be cleared."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key == "description"
        }


class EventEmitDTO(BaseModel):
    tenant_id: UUID | None = None
    event: WebhookEvent
    data: dict[str, Any] = Field(default_factory=dict)
