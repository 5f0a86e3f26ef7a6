"""Map service-layer exceptions to HTTP errors."""
from __future__ import annotations

from aiohttp import web

from fluxdesk_webhooks.core.exceptions import (
    ConcurrentUpdateError,
    InvalidStatusTransitionError,
    NotFoundError,
    SecretAccessDeniedError,
    SecretStoreError,
    WebhookValidationError,
)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except NotFoundError as exc:
        raise web.HTTPNotFound(text=str(exc)) from exc
    except WebhookValidationError as exc:
        raise web.HTTPBadRequest(text=str(exc)) from exc
    except SecretAccessDeniedError as exc:
        raise web.HTTPForbidden(text=str(exc)) from exc
    except (ConcurrentUpdateError, InvalidStatusTransitionError) as exc:
        raise web.HTTPConflict(text=str(exc)) from exc
    except SecretStoreError as exc:
        raise web.HTTPInternalServerError(text=str(exc)) from exc
