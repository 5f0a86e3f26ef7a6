"""Single HTTP delivery attempt."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from aiohttp import ClientError, ClientResponse, ClientSession, ClientTimeout

from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.domain.models import DeliveryOutcome
from fluxdesk_webhooks.otel import get_tracer

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
ATTEMPT_HEADER = "X-Webhook-Attempt"

_ERROR_BODY_LIMIT = 500

tracer = get_tracer(__name__)


@dataclass(frozen=True)
class DeliveryRequest:
    url: str
    body: bytes
    signature: str
    event: WebhookEvent
    timestamp: int
    attempt: int = 1


class DeliveryExecutor:
    """POSTs a signed body and classifies the response.

    The HTTP session is injected; the executor never touches the ledger.
    """

    def __init__(
        self,
        session: ClientSession,
        *,
        timeout_seconds: float = 10.0,
        user_agent: str = "FluxDesk-Webhook/1.0",
        response_body_limit: int = 2000,
    ):
        self._session = session
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent
        self._response_body_limit = response_body_limit

    def _headers(self, request: DeliveryRequest) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": self._user_agent,
            SIGNATURE_HEADER: request.signature,
            EVENT_HEADER: WebhookEvent(request.event).value,
            TIMESTAMP_HEADER: str(request.timestamp),
            ATTEMPT_HEADER: str(request.attempt),
        }

    async def _read_capped(self, resp: ClientResponse) -> str:
        """At most ``response_body_limit`` bytes; the rest of the body is never read."""
        chunks: list[bytes] = []
        remaining = self._response_body_limit
        while remaining > 0:
            chunk = await resp.content.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        raw = b"".join(chunks)
        try:
            return raw.decode(resp.charset or "utf-8", errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")

    async def execute(self, request: DeliveryRequest) -> DeliveryOutcome:
        started = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        with tracer.start_as_current_span("webhook.deliver") as span:
            span.set_attribute("webhook.event", WebhookEvent(request.event).value)
            span.set_attribute("webhook.attempt", request.attempt)
            try:
                async with self._session.post(
                    request.url,
                    data=request.body,
                    headers=self._headers(request),
                    timeout=ClientTimeout(total=self._timeout_seconds),
                    allow_redirects=False,
                ) as resp:
                    text = await self._read_capped(resp)
            except asyncio.TimeoutError:
                return DeliveryOutcome(
                    success=False,
                    error=f"Request timed out after {self._timeout_seconds:g}s",
                    duration_ms=elapsed_ms(),
                )
            except ClientError as exc:
                return DeliveryOutcome(
                    success=False,
                    error=f"{type(exc).__name__}: {exc}",
                    duration_ms=elapsed_ms(),
                )

            span.set_attribute("http.status_code", resp.status)
            body = text[: self._response_body_limit]
            if 200 <= resp.status < 300:
                return DeliveryOutcome(
                    success=True,
                    status_code=resp.status,
                    response_body=body,
                    duration_ms=elapsed_ms(),
                )
            return DeliveryOutcome(
                success=False,
                status_code=resp.status,
                error=f"HTTP {resp.status}: {text[:_ERROR_BODY_LIMIT]}",
                response_body=body,
                duration_ms=elapsed_ms(),
            )
