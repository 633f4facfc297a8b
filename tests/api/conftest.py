"""
Fixtures for HTTP-level tests.

The app runs under TestClient on its own event loop, so the database is
prepared and inspected through short-lived session managers run with
``asyncio.run`` rather than through the async fixtures.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from pagewire.core.app import create_app
from pagewire.core.config.settings import Settings
from pagewire.database.session_manager import DatabaseSessionManager
from pagewire.processing.repository import MessageRepository
from pagewire.webhooks.signature import SIGNATURE_HEADER, compute_signature

from ..conftest import APP_SECRET, VERIFY_TOKEN, seed_tenants

ADMIN_KEY = "admin-secret"


def run_db(url, operation):
    """Run ``operation(session_factory)`` against ``url`` on a fresh loop."""

    async def _run():
        manager = DatabaseSessionManager(url, max_retries=1, base_delay=0.01)
        await manager.initialize()
        try:
            await manager.create_tables()
            return await operation(manager.get_session)
        finally:
            await manager.cleanup()

    return asyncio.run(_run())


@pytest.fixture
def app_db_url(temp_db):
    run_db(temp_db, seed_tenants)
    return temp_db


@pytest.fixture
def app_config(app_db_url):
    config = Settings()
    config.database_url = app_db_url
    config.meta_app_secret = APP_SECRET
    config.webhook_verify_token = VERIFY_TOKEN
    config.admin_api_key = ADMIN_KEY
    config.openai_api_key = None
    config.event_timeout_seconds = 5
    return config


@pytest.fixture
def client(app_config, identity_provider, channel_sender, reply_generator):
    app = create_app(
        app_config,
        identity_provider=identity_provider,
        sender=channel_sender,
        reply_generator=reply_generator,
        enable_sweep=False,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def logged_messages(app_db_url):
    """Return a callable listing the logged rows for a tenant."""

    def _list(tenant_id):
        async def _query(db):
            return await MessageRepository(db).list_for_tenant(tenant_id)

        return run_db(app_db_url, _query)

    return _list


@pytest.fixture
def post_signed(client):
    """POST a JSON body to /webhook with a valid signature."""

    def _post(payload, secret=APP_SECRET):
        body = json.dumps(payload).encode() if not isinstance(payload, bytes) else payload
        return client.post(
            "/webhook",
            content=body,
            headers={
                "Content-Type": "application/json",
                SIGNATURE_HEADER: compute_signature(body, secret),
            },
        )

    return _post
