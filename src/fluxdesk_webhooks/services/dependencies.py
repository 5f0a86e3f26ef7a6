"""Shared dependency providers for aiohttp handlers and background loops."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from aiohttp import ClientSession, web

from fluxdesk_webhooks.db.pool import get_pool
from fluxdesk_webhooks.repositories import (
    DeliveryJobRepository,
    WebhookDeliveryRepository,
    WebhookRepository,
)
from fluxdesk_webhooks.services import (
    CircuitBreaker,
    DeliveryExecutor,
    DeliveryLedger,
    DeliveryPipeline,
    FernetSecretStore,
    RetryPolicy,
    RetryScheduler,
    SecretManager,
    SecretStore,
    SubscriptionRegistry,
    WebhookService,
    WebhookTester,
)
from fluxdesk_webhooks.settings import Settings, settings

TService = TypeVar("TService")

COMPONENTS_KEY = "webhook_components"
HTTP_SESSION_KEY = "webhook_http_session"
_WEBHOOK_SERVICE_KEY = "webhook_service"
_USER_CONTEXT_KEY = "user_context"

USER_ID_HEADER = "X-User-Id"
TENANT_ID_HEADER = "X-Tenant-Id"
TENANT_ROLE_HEADER = "X-Tenant-Role"


@dataclass
class WebhookComponents:
    """Storage-facing building blocks shared by request handlers and the dispatcher."""

    webhooks: WebhookRepository
    deliveries: WebhookDeliveryRepository
    jobs: DeliveryJobRepository
    secret_store: SecretStore


@dataclass
class UserContext:
    user_id: UUID
    tenant_id: UUID | None
    role: str | None


async def init_components(app: web.Application) -> None:
    """Startup hook: repositories on the shared pool plus one outbound HTTP session."""
    if COMPONENTS_KEY not in app:
        pool = await get_pool()
        app[COMPONENTS_KEY] = WebhookComponents(
            webhooks=WebhookRepository(pool),
            deliveries=WebhookDeliveryRepository(pool),
            jobs=DeliveryJobRepository(pool),
            secret_store=FernetSecretStore.from_settings(settings),
        )
    app[HTTP_SESSION_KEY] = ClientSession()


async def close_http_session(app: web.Application) -> None:
    session = app.get(HTTP_SESSION_KEY)
    if session is not None:
        await session.close()


def build_delivery_pipeline(
    components: WebhookComponents,
    session: ClientSession,
    config: Settings = settings,
) -> DeliveryPipeline:
    secrets = SecretManager(
        components.secret_store, components.webhooks, reveal_roles=config.secret_reveal_roles
    )
    return DeliveryPipeline(
        registry=SubscriptionRegistry(
            components.webhooks, secrets, require_https=config.require_https
        ),
        webhooks=components.webhooks,
        jobs=components.jobs,
        ledger=DeliveryLedger(components.deliveries),
        secrets=secrets,
        executor=_build_executor(session, config),
        scheduler=RetryScheduler(RetryPolicy.from_settings(config)),
        breaker=CircuitBreaker(components.webhooks, threshold=config.webhook_failure_threshold),
    )


def build_webhook_service(
    components: WebhookComponents,
    session: ClientSession,
    config: Settings = settings,
) -> WebhookService:
    secrets = SecretManager(
        components.secret_store, components.webhooks, reveal_roles=config.secret_reveal_roles
    )
    return WebhookService(
        registry=SubscriptionRegistry(components.webhooks, secrets, require_https=config.require_https),
        secrets=secrets,
        ledger=DeliveryLedger(components.deliveries),
        tester=WebhookTester(
            secrets, _build_executor(session, config), public_app_url=config.public_app_url
        ),
        pipeline=build_delivery_pipeline(components, session, config),
    )


def _build_executor(session: ClientSession, config: Settings) -> DeliveryExecutor:
    return DeliveryExecutor(
        session,
        timeout_seconds=config.webhook_request_timeout_seconds,
        user_agent=config.webhook_user_agent,
        response_body_limit=config.webhook_response_body_limit,
    )


async def require_current_user(request: web.Request) -> UserContext:
    """Temporary auth hook: relies on headers provided by the API gateway/tests."""
    cached = request.get(_USER_CONTEXT_KEY)
    if cached is not None:
        return cached
    user_header = request.headers.get(USER_ID_HEADER)
    if user_header is None:
        raise web.HTTPUnauthorized(reason=f"Header {USER_ID_HEADER} is required")
    try:
        user_id = UUID(user_header)
    except ValueError as exc:
        raise web.HTTPBadRequest(text=f"Invalid {USER_ID_HEADER}") from exc

    tenant_header = request.headers.get(TENANT_ID_HEADER)
    tenant_id: UUID | None = None
    if tenant_header:
        try:
            tenant_id = UUID(tenant_header)
        except ValueError as exc:
            raise web.HTTPBadRequest(text=f"Invalid {TENANT_ID_HEADER}") from exc

    user = UserContext(
        user_id=user_id,
        tenant_id=tenant_id,
        role=request.headers.get(TENANT_ROLE_HEADER) or None,
    )
    request[_USER_CONTEXT_KEY] = user
    return user


def ensure_tenant_access(user: UserContext, *, require_role: tuple[str, ...] | None = None) -> UUID:
    """Return the caller's tenant, or fail when it is missing or the role is insufficient."""
    if user.tenant_id is None:
        raise web.HTTPBadRequest(text=f"Header {TENANT_ID_HEADER} is required")
    if user.role is None:
        raise web.HTTPForbidden(reason="User does not belong to tenant")
    if require_role and user.role not in require_role:
        raise web.HTTPForbidden(reason="Insufficient tenant role")
    return user.tenant_id


async def resolve_tenant_id(
    request: web.Request, *, require_role: tuple[str, ...] | None = None
) -> UUID:
    user = await require_current_user(request)
    return ensure_tenant_access(user, require_role=require_role)


async def _get_or_create_service(
    request: web.Request,
    cache_key: str,
    builder: Callable[[web.Request], Awaitable[TService]],
) -> TService:
    service = request.get(cache_key)
    if service is None:
        service = await builder(request)
        request[cache_key] = service
    return service


async def get_webhook_service(request: web.Request) -> WebhookService:
    async def builder(req: web.Request) -> WebhookService:
        return build_webhook_service(req.app[COMPONENTS_KEY], req.app[HTTP_SESSION_KEY])

    return await _get_or_create_service(request, _WEBHOOK_SERVICE_KEY, builder)
