from __future__ import annotations

import asyncio
import socket
import uuid
from dataclasses import dataclass, field

from aiohttp import web


def make_headers(
    tenant_id: uuid.UUID,
    *,
    role: str | None = "owner",
    user_id: uuid.UUID | None = None,
) -> dict[str, str]:
    headers = {
        "X-User-Id": str(user_id or uuid.uuid4()),
        "X-Tenant-Id": str(tenant_id),
    }
    if role is not None:
        headers["X-Tenant-Role"] = role
    return headers


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@dataclass
class ReceivedRequest:
    path: str
    headers: dict[str, str]
    body: bytes


@dataclass
class Receiver:
    """Tenant endpoint stand-in; status, body and delay are set per test."""

    base_url: str = ""
    status: int = 200
    body: str = "ok"
    delay: float = 0.0
    requests: list[ReceivedRequest] = field(default_factory=list)
    received: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def url(self) -> str:
        return f"{self.base_url}/hook"

    async def handler(self, request: web.Request) -> web.StreamResponse:
        raw = await request.read()
        self.requests.append(ReceivedRequest(request.path, dict(request.headers), raw))
        self.received.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if 300 <= self.status < 400:
            raise web.HTTPFound("/elsewhere")
        return web.Response(status=self.status, text=self.body)
