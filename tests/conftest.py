"""
Pytest configuration and common fixtures for Pagewire tests.

Provides a temporary SQLite database, seeded tenants/owners, an in-memory
credential store and AsyncMock-based external collaborators.
"""

import asyncio
import os
import tempfile
from collections.abc import Generator
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from pagewire.core.config.settings import settings
from pagewire.credentials.store import (
    ChannelBinding,
    ChannelCredentialRecord,
    OwnerCredential,
)
from pagewire.database.models import ChannelCredential, Owner, Platform, Tenant
from pagewire.database.session_manager import DatabaseSessionManager
from pagewire.messaging.interfaces import SendResult

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

APP_SECRET = "test-app-secret"
VERIFY_TOKEN = "test-verify-token"


@pytest.fixture
def temp_db() -> Generator[str, None, None]:
    """Create a temporary SQLite database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp:
        db_path = tmp.name

    db_url = f"sqlite+aiosqlite:///{db_path}"
    yield db_url

    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
async def db_manager(temp_db):
    """Initialized session manager with all tables created."""
    manager = DatabaseSessionManager(temp_db, max_retries=1, base_delay=0.01)
    await manager.initialize()
    await manager.create_tables()
    yield manager
    await manager.cleanup()


@pytest.fixture
def db(db_manager):
    """Session factory, as handed to repositories."""
    return db_manager.get_session


async def seed_tenants(db, *, owner_refreshed_at=None, owner_token="owner-token-1"):
    """
    Two tenants under two owners.

    tenant-a: page "page-a", account "100", owner "owner-a"
    tenant-b: page "page-b", account "200", owner "owner-b"
    """
    refreshed = owner_refreshed_at or datetime.now(UTC)
    async with db() as session:
        session.add(Owner(id="owner-a", user_token=owner_token, refreshed_at=refreshed))
        session.add(Owner(id="owner-b", user_token="owner-token-b", refreshed_at=refreshed))
        await session.flush()
        session.add(
            Tenant(
                id="tenant-a",
                display_name="Acme Bakery",
                platform=Platform.MESSENGER,
                page_id="page-a",
                account_id="100",
                owner_id="owner-a",
            )
        )
        session.add(
            Tenant(
                id="tenant-b",
                display_name="Blue Cafe",
                platform=Platform.INSTAGRAM,
                page_id="page-b",
                account_id="200",
                owner_id="owner-b",
            )
        )


async def seed_channel_credential(db, tenant_id, channel_id, token, refreshed_at):
    async with db() as session:
        session.add(
            ChannelCredential(
                tenant_id=tenant_id,
                channel_id=channel_id,
                token=token,
                refreshed_at=refreshed_at,
                derived_from=None,
            )
        )


@pytest.fixture
async def seeded_db(db):
    await seed_tenants(db)
    return db


@pytest.fixture
def add_channel_credential(db):
    """Insert a channel credential row directly, bypassing the store."""

    async def _add(tenant_id, channel_id, token, refreshed_at):
        await seed_channel_credential(db, tenant_id, channel_id, token, refreshed_at)

    return _add


class InMemoryCredentialStore:
    """CredentialStore kept in dicts, for lifecycle tests."""

    def __init__(self):
        self.owners: dict[str, OwnerCredential] = {}
        self.channels: dict[tuple[str, str], ChannelCredentialRecord] = {}
        self.bindings: list[ChannelBinding] = []
        self.writes = 0

    async def get_owner(self, owner_id):
        return self.owners.get(owner_id)

    async def put_owner(self, owner_id, token, refreshed_at):
        self.writes += 1
        self.owners[owner_id] = OwnerCredential(owner_id, token, refreshed_at)

    async def invalidate_owner(self, owner_id):
        self.writes += 1
        self.owners.pop(owner_id, None)

    async def get_channel(self, tenant_id, channel_id):
        return self.channels.get((tenant_id, channel_id))

    async def put_channel(self, tenant_id, channel_id, token, refreshed_at, derived_from=None):
        self.writes += 1
        self.channels[(tenant_id, channel_id)] = ChannelCredentialRecord(
            tenant_id, channel_id, token, refreshed_at, derived_from
        )

    async def reject_channel(self, tenant_id, channel_id, rejected_at, derived_from=None):
        self.writes += 1
        record = self.channels.get((tenant_id, channel_id))
        if record is None:
            record = ChannelCredentialRecord(tenant_id, channel_id, None, None, derived_from)
        self.channels[(tenant_id, channel_id)] = replace(record, rejected_at=rejected_at)

    async def clear_channel_rejections(self, owner_id):
        owned = {b.tenant_id for b in self.bindings if b.owner_id == owner_id}
        for key, record in self.channels.items():
            if record.tenant_id in owned or record.derived_from == owner_id:
                self.channels[key] = replace(record, rejected_at=None)

    async def list_owners(self):
        return list(self.owners.values())

    async def list_channels(self):
        result = []
        for binding in self.bindings:
            record = self.channels.get((binding.tenant_id, binding.channel_id))
            if record is None:
                result.append(binding)
                continue
            result.append(
                replace(
                    binding,
                    refreshed_at=record.refreshed_at or datetime.min,
                    rejected_at=record.rejected_at,
                )
            )
        return result


@pytest.fixture
def memory_store():
    return InMemoryCredentialStore()


@pytest.fixture
def identity_provider():
    """
    AsyncMock identity provider.

    Exchanges and mints yield to the loop first so concurrent callers really
    overlap, then return numbered tokens.
    """
    provider = AsyncMock()
    counter = {"exchange": 0, "mint": 0}

    async def exchange(short_token):
        await asyncio.sleep(0.01)
        counter["exchange"] += 1
        return f"long-lived-{counter['exchange']}"

    async def mint(channel_id, owner_token):
        await asyncio.sleep(0.01)
        counter["mint"] += 1
        return f"channel-{channel_id}-{counter['mint']}"

    provider.exchange_for_long_lived_token.side_effect = exchange
    provider.mint_channel_token.side_effect = mint
    return provider


@pytest.fixture
def channel_sender():
    sender = AsyncMock()
    sender.send.return_value = SendResult(recipient_id="user-1", message_id="m_reply_1")
    return sender


@pytest.fixture
def reply_generator():
    generator = AsyncMock()
    generator.generate.return_value = "Thanks for reaching out!"
    return generator


def days_ago(days: float, reference: datetime | None = None) -> datetime:
    return (reference or datetime.now(UTC)) - timedelta(days=days)


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch, tmp_path):
    """Keep log files and secrets test-local."""
    monkeypatch.setattr(settings, "log_dir", str(tmp_path / "logs"))
    monkeypatch.setattr(settings, "meta_app_secret", APP_SECRET)
    monkeypatch.setattr(settings, "webhook_verify_token", VERIFY_TOKEN)
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "admin_api_key", None)
