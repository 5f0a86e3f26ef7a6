"""Webhook management endpoints."""
from __future__ import annotations

from aiohttp import web

from fluxdesk_webhooks.api.utils import paginated_response, pagination_params, parse_uuid, read_json
from fluxdesk_webhooks.domain.events import event_options
from fluxdesk_webhooks.services.dependencies import (
    get_webhook_service,
    require_current_user,
    resolve_tenant_id,
)
from fluxdesk_webhooks.settings import settings

routes = web.RouteTableDef()

_CREATE_FIELDS = ("name", "url", "events", "description", "format")


async def _manage_tenant(request: web.Request):
    return await resolve_tenant_id(request, require_role=settings.webhook_manage_roles)


def _webhook_id(request: web.Request):
    return parse_uuid(request.match_info["webhook_id"], "webhook_id")


# Registered before the {webhook_id} routes so "events" is not taken for an id.
@routes.get("/api/v1/webhooks/events")
async def list_event_types(request: web.Request):
    await require_current_user(request)
    return web.json_response({"events": event_options()})


@routes.get("/api/v1/webhooks")
async def list_webhooks(request: web.Request):
    tenant_id = await _manage_tenant(request)
    service = await get_webhook_service(request)
    limit, offset = pagination_params(request)
    items, total = await service.list_webhooks(tenant_id, limit=limit, offset=offset)
    payload = paginated_response(
        [item.model_dump(mode="json") for item in items],
        limit=limit,
        offset=offset,
        key="webhooks",
        total=total,
    )
    return web.json_response(payload)


@routes.post("/api/v1/webhooks")
async def create_webhook(request: web.Request):
    tenant_id = await _manage_tenant(request)
    body = await read_json(request)
    fields = {key: body.get(key) for key in _CREATE_FIELDS}
    service = await get_webhook_service(request)
    webhook, secret = await service.create(tenant_id, **fields)
    return web.json_response({"webhook": webhook.model_dump(mode="json"), "secret": secret}, status=201)


@routes.get("/api/v1/webhooks/{webhook_id}")
async def get_webhook(request: web.Request):
    tenant_id = await _manage_tenant(request)
    service = await get_webhook_service(request)
    webhook = await service.get(tenant_id, _webhook_id(request))
    return web.json_response(webhook.model_dump(mode="json"))


@routes.patch("/api/v1/webhooks/{webhook_id}")
async def update_webhook(request: web.Request):
    tenant_id = await _manage_tenant(request)
    webhook_id = _webhook_id(request)
    body = await read_json(request)
    service = await get_webhook_service(request)
    webhook = await service.update(tenant_id, webhook_id, body)
    return web.json_response(webhook.model_dump(mode="json"))


@routes.delete("/api/v1/webhooks/{webhook_id}")
async def delete_webhook(request: web.Request):
    tenant_id = await _manage_tenant(request)
    service = await get_webhook_service(request)
    await service.delete(tenant_id, _webhook_id(request))
    return web.Response(status=204)


@routes.post("/api/v1/webhooks/{webhook_id}/toggle")
async def toggle_webhook(request: web.Request):
    tenant_id = await _manage_tenant(request)
    service = await get_webhook_service(request)
    webhook = await service.toggle_active(tenant_id, _webhook_id(request))
    return web.json_response(webhook.model_dump(mode="json"))


@routes.post("/api/v1/webhooks/{webhook_id}/secret")
async def regenerate_secret(request: web.Request):
    tenant_id = await _manage_tenant(request)
    service = await get_webhook_service(request)
    _, secret = await service.regenerate_secret(tenant_id, _webhook_id(request))
    return web.json_response({"secret": secret})


@routes.get("/api/v1/webhooks/{webhook_id}/secret")
async def reveal_secret(request: web.Request):
    tenant_id = await _manage_tenant(request)
    user = await require_current_user(request)
    service = await get_webhook_service(request)
    secret = await service.reveal_secret(tenant_id, _webhook_id(request), role=user.role)
    return web.json_response({"secret": secret})


@routes.get("/api/v1/webhooks/{webhook_id}/deliveries")
async def list_deliveries(request: web.Request):
    tenant_id = await _manage_tenant(request)
    webhook_id = _webhook_id(request)
    service = await get_webhook_service(request)
    limit, offset = pagination_params(request)
    items, total = await service.list_deliveries(tenant_id, webhook_id, limit=limit, offset=offset)
    payload = paginated_response(
        [item.model_dump(mode="json") for item in items],
        limit=limit,
        offset=offset,
        key="deliveries",
        total=total,
    )
    return web.json_response(payload)


@routes.post("/api/v1/webhooks/{webhook_id}/test")
async def send_test(request: web.Request):
    tenant_id = await _manage_tenant(request)
    service = await get_webhook_service(request)
    outcome = await service.send_test(tenant_id, _webhook_id(request))
    return web.json_response(outcome.model_dump(mode="json"))
