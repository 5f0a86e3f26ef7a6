from __future__ import annotations

import uuid
from pathlib import Path

import asyncpg  # type: ignore[import-untyped]
import pytest
from aiohttp import ClientSession, web
from cryptography.fernet import Fernet
from testsuite.databases.pgsql import discover

from fluxdesk_webhooks.main import create_app
from fluxdesk_webhooks.services import (
    CircuitBreaker,
    DeliveryExecutor,
    DeliveryLedger,
    DeliveryPipeline,
    FernetSecretStore,
    RetryPolicy,
    RetryScheduler,
    SecretManager,
    SubscriptionRegistry,
)
from fluxdesk_webhooks.services.dependencies import WebhookComponents

from tests.fakes import (
    FakeDeliveryRepository,
    FakeJobRepository,
    FakeWebhookRepository,
    InMemoryStore,
)
from tests.utils import Receiver

pytest_plugins = (
    "testsuite.pytest_plugin",
    "testsuite.databases.pgsql.pytest_plugin",
)

PG_SCHEMAS_PATH = Path(__file__).parent / "schemas" / "postgresql"


@pytest.fixture
def tenant_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def webhook_repo(store) -> FakeWebhookRepository:
    return FakeWebhookRepository(store)


@pytest.fixture
def delivery_repo(store) -> FakeDeliveryRepository:
    return FakeDeliveryRepository(store)


@pytest.fixture
def job_repo(store) -> FakeJobRepository:
    return FakeJobRepository(store)


@pytest.fixture
def secret_store() -> FernetSecretStore:
    return FernetSecretStore(Fernet.generate_key().decode("ascii"))


@pytest.fixture
def secret_manager(secret_store, webhook_repo) -> SecretManager:
    return SecretManager(secret_store, webhook_repo)


@pytest.fixture
def registry(webhook_repo, secret_manager) -> SubscriptionRegistry:
    return SubscriptionRegistry(webhook_repo, secret_manager, require_https=False)


@pytest.fixture
async def http_session():
    async with ClientSession() as session:
        yield session


@pytest.fixture
def executor(http_session) -> DeliveryExecutor:
    return DeliveryExecutor(http_session, timeout_seconds=2.0)


@pytest.fixture
def pipeline(registry, webhook_repo, job_repo, delivery_repo, secret_manager, executor) -> DeliveryPipeline:
    return DeliveryPipeline(
        registry=registry,
        webhooks=webhook_repo,
        jobs=job_repo,
        ledger=DeliveryLedger(delivery_repo),
        secrets=secret_manager,
        executor=executor,
        scheduler=RetryScheduler(RetryPolicy()),
        breaker=CircuitBreaker(webhook_repo),
    )


@pytest.fixture
async def receiver():
    """Local HTTP endpoint on 127.0.0.1 that records every POST."""
    recv = Receiver()
    app = web.Application()
    app.router.add_post("/hook", recv.handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = site._server.sockets[0].getsockname()[1]  # type: ignore[union-attr]
    recv.base_url = f"http://127.0.0.1:{port}"
    try:
        yield recv
    finally:
        await runner.cleanup()


@pytest.fixture
def components(webhook_repo, delivery_repo, job_repo, secret_store) -> WebhookComponents:
    return WebhookComponents(
        webhooks=webhook_repo,
        deliveries=delivery_repo,
        jobs=job_repo,
        secret_store=secret_store,
    )


@pytest.fixture
async def service_client(aiohttp_client, components):
    """Client for the service API, backed by the in-memory repositories."""
    return await aiohttp_client(create_app(components))


@pytest.fixture(scope="session")
def pgsql_local(pgsql_local_create):
    databases = discover.find_schemas(
        service_name=None,
        schema_dirs=[PG_SCHEMAS_PATH],
    )
    return pgsql_local_create(list(databases.values()))


@pytest.fixture
async def pg_pool(pgsql):
    """asyncpg pool on the testsuite database; tables are emptied before every test."""
    conninfo = pgsql["fluxdesk_webhooks"].conninfo
    pool = await asyncpg.create_pool(dsn=conninfo.get_uri(), min_size=1, max_size=5)
    try:
        yield pool
    finally:
        await pool.close()
