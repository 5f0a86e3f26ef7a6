from __future__ import annotations

import asyncio

import pytest
from aiohttp import web

from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.services.executor import DeliveryExecutor, DeliveryRequest
from fluxdesk_webhooks.services.signing import sign

from tests.utils import unused_port

BODY = b'{"event":"ticket.created","timestamp":1700000000,"webhook_id":"w","data":{}}'


def _request(url: str, attempt: int = 1) -> DeliveryRequest:
    return DeliveryRequest(
        url=url,
        body=BODY,
        signature=sign(BODY, "k" * 64),
        event=WebhookEvent.TICKET_CREATED,
        timestamp=1700000000,
        attempt=attempt,
    )


@pytest.mark.asyncio
async def test_successful_delivery_sends_signed_headers(executor, receiver):
    outcome = await executor.execute(_request(receiver.url, attempt=2))

    assert outcome.success is True
    assert outcome.status_code == 200
    assert outcome.error is None
    assert outcome.response_body == "ok"
    assert outcome.duration_ms >= 0

    [received] = receiver.requests
    assert received.body == BODY
    assert received.headers["Content-Type"] == "application/json"
    assert received.headers["User-Agent"] == "FluxDesk-Webhook/1.0"
    assert received.headers["X-Webhook-Event"] == "ticket.created"
    assert received.headers["X-Webhook-Timestamp"] == "1700000000"
    assert received.headers["X-Webhook-Attempt"] == "2"
    assert received.headers["X-Webhook-Signature"] == sign(BODY, "k" * 64)


@pytest.mark.asyncio
async def test_any_2xx_is_success(executor, receiver):
    receiver.status = 204
    receiver.body = ""
    outcome = await executor.execute(_request(receiver.url))
    assert outcome.success is True
    assert outcome.status_code == 204


@pytest.mark.asyncio
async def test_non_2xx_reports_status_and_truncated_body(executor, receiver):
    receiver.status = 500
    receiver.body = "x" * 3000
    outcome = await executor.execute(_request(receiver.url))

    assert outcome.success is False
    assert outcome.status_code == 500
    assert outcome.error == "HTTP 500: " + "x" * 500
    assert outcome.response_body == "x" * 2000


@pytest.mark.asyncio
async def test_redirects_are_not_followed(executor, receiver):
    receiver.status = 302
    outcome = await executor.execute(_request(receiver.url))
    assert outcome.success is False
    assert outcome.status_code == 302
    assert len(receiver.requests) == 1


@pytest.mark.asyncio
async def test_timeout_is_a_transport_failure(http_session, receiver):
    receiver.delay = 1.0
    executor = DeliveryExecutor(http_session, timeout_seconds=0.2)
    outcome = await executor.execute(_request(receiver.url))

    assert outcome.success is False
    assert outcome.status_code is None
    assert outcome.error == "Request timed out after 0.2s"


@pytest.mark.asyncio
async def test_connection_refused_is_a_transport_failure(executor):
    outcome = await executor.execute(_request(f"http://127.0.0.1:{unused_port()}/hook"))

    assert outcome.success is False
    assert outcome.status_code is None
    assert outcome.error
    assert outcome.error.startswith("Client")


@pytest.mark.asyncio
async def test_custom_user_agent(http_session, receiver):
    executor = DeliveryExecutor(http_session, user_agent="Custom/2.0")
    await executor.execute(_request(receiver.url))
    assert receiver.requests[0].headers["User-Agent"] == "Custom/2.0"


@pytest.fixture
async def stalling_endpoint():
    """Announces a large body, sends the first 4000 bytes and then stalls."""
    release = asyncio.Event()

    async def handler(request: web.Request) -> web.StreamResponse:
        await request.read()
        resp = web.StreamResponse(status=200)
        resp.content_length = 1_000_000
        await resp.prepare(request)
        await resp.write(b"y" * 4000)
        await release.wait()
        return resp

    app = web.Application()
    app.router.add_post("/hook", handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = site._server.sockets[0].getsockname()[1]  # type: ignore[union-attr]
    try:
        yield f"http://127.0.0.1:{port}/hook"
    finally:
        release.set()
        await runner.cleanup()


@pytest.mark.asyncio
async def test_response_body_read_stops_at_limit(http_session, stalling_endpoint):
    executor = DeliveryExecutor(http_session, timeout_seconds=5.0)
    outcome = await executor.execute(_request(stalling_endpoint))

    assert outcome.success is True
    assert outcome.response_body == "y" * 2000
    # Returned without waiting for the rest of the body or the timeout.
    assert outcome.duration_ms < 2000
