"""Event ingestion for internal producers (ticket and message services)."""
from __future__ import annotations

from aiohttp import web
from pydantic import ValidationError

from fluxdesk_webhooks.api.utils import read_json
from fluxdesk_webhooks.domain.dto import EventEmitDTO
from fluxdesk_webhooks.services.dependencies import get_webhook_service, resolve_tenant_id

routes = web.RouteTableDef()


@routes.post("/api/v1/events")
async def emit_event(request: web.Request):
    tenant_id = await resolve_tenant_id(request)
    body = await read_json(request)
    try:
        dto = EventEmitDTO.model_validate(body)
    except ValidationError as exc:
        raise web.HTTPBadRequest(text=exc.json()) from exc
    if dto.tenant_id is not None and dto.tenant_id != tenant_id:
        raise web.HTTPForbidden(reason="Event tenant does not match caller tenant")

    service = await get_webhook_service(request)
    jobs = await service.emit(tenant_id, dto.event, dto.data)
    return web.json_response(
        {"enqueued": len(jobs), "job_ids": [str(job.id) for job in jobs]},
        status=202,
    )
