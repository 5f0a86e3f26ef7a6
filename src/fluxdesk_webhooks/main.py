"""aiohttp application entrypoint."""
from __future__ import annotations

from pathlib import Path

from aiohttp import web
from aiohttp_cors import ResourceOptions, setup as cors_setup

from fluxdesk_webhooks.api.router import setup_routes
from fluxdesk_webhooks.db.migrations import create_migration_runner
from fluxdesk_webhooks.db.pool import close_pool, init_pool
from fluxdesk_webhooks.dispatcher import start_webhook_dispatcher, stop_webhook_dispatcher
from fluxdesk_webhooks.logging_config import configure_logging
from fluxdesk_webhooks.middleware.errors import error_middleware
from fluxdesk_webhooks.middleware.trace import create_trace_middleware
from fluxdesk_webhooks.otel import setup_otel, shutdown_otel
from fluxdesk_webhooks.services.dependencies import (
    COMPONENTS_KEY,
    WebhookComponents,
    close_http_session,
    init_components,
)
from fluxdesk_webhooks.settings import settings
from fluxdesk_webhooks.workers import start_background_worker, stop_background_worker

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

_ALLOWED_HEADERS = (
    "Accept",
    "Content-Type",
    "X-Trace-Id",
    "X-Request-Id",
    "X-User-Id",
    "X-Tenant-Id",
    "X-Tenant-Role",
)
_EXPOSED_HEADERS = ("X-Trace-Id", "X-Request-Id")


async def healthcheck(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "service": settings.app_name, "env": settings.env})


def create_app(components: WebhookComponents | None = None) -> web.Application:
    """Build the application.

    With *components* given, storage is taken from them and the database pool,
    migrations, dispatcher and maintenance worker are not started.
    """
    configure_logging()

    app = web.Application()
    app.middlewares.append(create_trace_middleware(settings.app_name))
    app.middlewares.append(error_middleware)

    cors = cors_setup(
        app,
        defaults={
            origin: ResourceOptions(
                allow_credentials=True,
                expose_headers=_EXPOSED_HEADERS,
                allow_headers=_ALLOWED_HEADERS,
                allow_methods="*",
            )
            for origin in settings.cors_allowed_origins
        },
    )

    app.router.add_get("/health", healthcheck)
    setup_routes(app)

    if components is None:
        apply_migrations = create_migration_runner(
            settings,
            [PROJECT_ROOT / "migrations", Path("/app/migrations")],
        )
        app.on_startup.extend(
            [init_pool, apply_migrations, init_components, start_webhook_dispatcher, start_background_worker]
        )
        app.on_cleanup.extend(
            [stop_webhook_dispatcher, stop_background_worker, close_http_session, close_pool]
        )
    else:
        app[COMPONENTS_KEY] = components
        app.on_startup.append(init_components)
        app.on_cleanup.append(close_http_session)

    setup_otel(app)
    app.on_cleanup.append(shutdown_otel)

    for route in list(app.router.routes()):
        cors.add(route)

    return app


def main() -> None:
    web.run_app(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
