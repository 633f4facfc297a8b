"""
Tests for MessageProcessor.

Runs against real repositories and a real TokenLifecycleManager on a
temporary database; only the identity provider, the channel sender and the
reply generator are mocked.
"""

from datetime import UTC, datetime

import pytest

from pagewire.core.exceptions import DownstreamFailure
from pagewire.credentials.lifecycle import TokenLifecycleManager
from pagewire.credentials.policy import as_utc
from pagewire.credentials.store import SQLCredentialStore
from pagewire.database.models import (
    Classification,
    MessageDirection,
    ParticipantRole,
    Platform,
)
from pagewire.messaging.interfaces import SendResult
from pagewire.processing.message_processor import MessageProcessor, ProcessingStatus
from pagewire.processing.repository import MessageRepository, ParticipantRepository
from pagewire.tenants.resolver import TenantContext
from pagewire.webhooks.events import (
    Attachment,
    AttachmentEvent,
    DeleteEvent,
    EchoEvent,
    ReceiptEvent,
    TextEvent,
)

SENT_AT = datetime(2024, 1, 1, 9, 30, tzinfo=UTC)

TENANT_A = TenantContext(
    tenant_id="tenant-a",
    display_name="Acme Bakery",
    platform=Platform.MESSENGER,
    page_id="page-a",
    account_id="100",
    owner_id="owner-a",
)


def text_event(text, mid="m1", sender="user-1", recipient="100"):
    return TextEvent(
        platform="page",
        entry_id="100",
        sender_id=sender,
        recipient_id=recipient,
        timestamp=SENT_AT,
        provider_message_id=mid,
        text=text,
    )


@pytest.fixture
def messages(seeded_db):
    return MessageRepository(seeded_db)


@pytest.fixture
def participants(seeded_db):
    return ParticipantRepository(seeded_db)


@pytest.fixture
def processor(seeded_db, messages, participants, identity_provider, channel_sender, reply_generator):
    lifecycle = TokenLifecycleManager(SQLCredentialStore(seeded_db), identity_provider)
    return MessageProcessor(
        messages=messages,
        participants=participants,
        lifecycle=lifecycle,
        sender=channel_sender,
        reply_generator=reply_generator,
    )


class TestCustomerMessages:
    async def test_text_message_full_pipeline(
        self, processor, messages, participants, channel_sender, reply_generator, identity_provider
    ):
        outcome = await processor.process(
            text_event("Hi, my name is Jane Doe, jane@example.com"), TENANT_A
        )

        assert outcome.ok, outcome.errors
        assert outcome.status == ProcessingStatus.REPLIED
        assert outcome.reply_message_id == "m_reply_1"
        assert outcome.extracted == {"name": "Jane Doe", "email": "jane@example.com"}

        participant = await participants.get("tenant-a", "user-1")
        assert participant.role == ParticipantRole.CUSTOMER
        assert participant.name == "Jane Doe"
        assert participant.email == "jane@example.com"
        assert participant.phone is None

        reply_generator.generate.assert_awaited_once_with(
            TENANT_A, "Hi, my name is Jane Doe, jane@example.com"
        )
        # Channel credential minted from the seeded owner token, then used to send
        identity_provider.mint_channel_token.assert_awaited_once_with("page-a", "owner-token-1")
        channel_sender.send.assert_awaited_once_with(
            "page-a", "channel-page-a-1", "user-1", "Thanks for reaching out!"
        )

        rows = await messages.list_for_tenant("tenant-a")
        assert [(r.provider_message_id, r.direction) for r in rows] == [
            ("m1", MessageDirection.RECEIVED),
            ("m_reply_1", MessageDirection.SENT),
        ]
        outbound = rows[1]
        assert outbound.sender_id == "100"
        assert outbound.recipient_id == "user-1"
        assert outbound.body == "Thanks for reaching out!"
        assert outbound.payload == {"in_reply_to": "m1"}

    async def test_duplicate_delivery_stops_before_reply(
        self, processor, messages, channel_sender, reply_generator
    ):
        first = await processor.process(text_event("hello"), TENANT_A)
        second = await processor.process(text_event("hello"), TENANT_A)

        assert first.status == ProcessingStatus.REPLIED
        assert second.status == ProcessingStatus.DUPLICATE
        assert reply_generator.generate.await_count == 1
        assert channel_sender.send.await_count == 1
        assert await messages.count("tenant-a") == 2

    async def test_send_failure_keeps_inbound_row(
        self, processor, messages, channel_sender
    ):
        channel_sender.send.side_effect = DownstreamFailure(
            "(#10) Outside of allowed window", service="graph_api", status=400
        )

        outcome = await processor.process(text_event("hello"), TENANT_A)

        assert set(outcome.errors) == {"send"}
        assert outcome.status == ProcessingStatus.PROCESSED
        assert outcome.reply_message_id is None
        rows = await messages.list_for_tenant("tenant-a")
        assert [r.direction for r in rows] == [MessageDirection.RECEIVED]

    async def test_generation_failure_is_reported(
        self, processor, messages, reply_generator, channel_sender
    ):
        reply_generator.generate.side_effect = DownstreamFailure("rate limited", service="openai")

        outcome = await processor.process(text_event("hello"), TENANT_A)

        assert outcome.errors == {"generate": "rate limited"}
        channel_sender.send.assert_not_called()
        assert await messages.count("tenant-a") == 1

    async def test_no_reply_when_generator_declines(
        self, processor, reply_generator, channel_sender
    ):
        reply_generator.generate.return_value = None

        outcome = await processor.process(text_event("hello"), TENANT_A)

        assert outcome.ok
        assert outcome.status == ProcessingStatus.PROCESSED
        channel_sender.send.assert_not_called()

    async def test_missing_provider_message_id_falls_back_to_local_id(
        self, processor, messages, channel_sender
    ):
        channel_sender.send.return_value = SendResult(recipient_id="user-1", message_id=None)

        outcome = await processor.process(text_event("hello"), TENANT_A)

        assert outcome.reply_message_id.startswith("local-")
        rows = await messages.list_for_tenant("tenant-a")
        assert rows[-1].provider_message_id == outcome.reply_message_id

    async def test_attachment_without_text_is_logged_without_reply(
        self, processor, messages, reply_generator
    ):
        event = AttachmentEvent(
            platform="page",
            entry_id="100",
            sender_id="user-1",
            recipient_id="100",
            timestamp=SENT_AT,
            provider_message_id="m-img",
            attachments=(Attachment(type="image", url="https://cdn/x.jpg"),),
        )

        outcome = await processor.process(event, TENANT_A)

        assert outcome.ok
        reply_generator.generate.assert_not_called()
        rows = await messages.list_for_tenant("tenant-a")
        assert rows[0].classification == Classification.ATTACHMENT

    async def test_business_sender_is_logged_as_sent_without_reply(
        self, processor, messages, participants, reply_generator
    ):
        outcome = await processor.process(
            text_event("We open at 9", sender="100", recipient="user-1"), TENANT_A
        )

        assert outcome.status == ProcessingStatus.LOGGED
        reply_generator.generate.assert_not_called()
        rows = await messages.list_for_tenant("tenant-a")
        assert rows[0].direction == MessageDirection.SENT
        assert (await participants.get("tenant-a", "100")).role == ParticipantRole.BUSINESS

    async def test_returning_customer_keeps_first_seen(
        self, processor, participants
    ):
        await processor.process(text_event("hi", mid="m1"), TENANT_A)
        first = await participants.get("tenant-a", "user-1")

        later = text_event("I live in Austin", mid="m2").model_copy(
            update={"timestamp": datetime(2024, 2, 1, tzinfo=UTC)}
        )
        await processor.process(later, TENANT_A)
        updated = await participants.get("tenant-a", "user-1")

        assert updated.first_seen_at == first.first_seen_at
        assert updated.last_seen_at > first.last_seen_at
        assert updated.location == "Austin"

    async def test_older_event_does_not_move_last_seen_backwards(
        self, processor, participants
    ):
        newer = text_event("hello again", mid="m2").model_copy(
            update={"timestamp": datetime(2024, 2, 1, tzinfo=UTC)}
        )
        await processor.process(newer, TENANT_A)

        await processor.process(text_event("hello", mid="m1"), TENANT_A)

        participant = await participants.get("tenant-a", "user-1")
        assert as_utc(participant.last_seen_at) == datetime(2024, 2, 1, tzinfo=UTC)


class TestControlEvents:
    async def test_delete_removes_logged_message(self, processor, messages):
        await processor.process(text_event("oops", mid="m-del"), TENANT_A)
        assert await messages.exists("tenant-a", "m-del", MessageDirection.RECEIVED)

        outcome = await processor.process(
            DeleteEvent(
                platform="page",
                entry_id="100",
                sender_id="user-1",
                recipient_id="100",
                timestamp=SENT_AT,
                provider_message_id="m-del",
            ),
            TENANT_A,
        )

        assert outcome.status == ProcessingStatus.DELETED
        assert not await messages.exists("tenant-a", "m-del", MessageDirection.RECEIVED)

    async def test_delete_of_unknown_message_is_ignored(self, processor):
        outcome = await processor.process(
            DeleteEvent(
                platform="page",
                entry_id="100",
                sender_id="user-1",
                recipient_id="100",
                timestamp=SENT_AT,
                provider_message_id="never-seen",
            ),
            TENANT_A,
        )

        assert outcome.ok
        assert outcome.status == ProcessingStatus.IGNORED

    async def test_echo_is_logged_and_never_answered(
        self, processor, messages, reply_generator, channel_sender
    ):
        echo = EchoEvent(
            platform="page",
            entry_id="100",
            sender_id="100",
            recipient_id="user-1",
            timestamp=SENT_AT,
            provider_message_id="m-echo",
            text="Thanks!",
        )

        first = await processor.process(echo, TENANT_A)
        second = await processor.process(echo, TENANT_A)

        assert first.status == ProcessingStatus.LOGGED
        assert second.status == ProcessingStatus.DUPLICATE
        reply_generator.generate.assert_not_called()
        channel_sender.send.assert_not_called()
        assert await messages.exists("tenant-a", "m-echo", MessageDirection.SENT)

    async def test_echo_logging_can_be_disabled(self, processor, messages):
        processor.log_echo_messages = False
        echo = EchoEvent(
            platform="page",
            entry_id="100",
            sender_id="100",
            recipient_id="user-1",
            timestamp=SENT_AT,
            provider_message_id="m-echo",
        )

        outcome = await processor.process(echo, TENANT_A)

        assert outcome.status == ProcessingStatus.IGNORED
        assert await messages.count() == 0

    @pytest.mark.parametrize("classification", [Classification.READ, Classification.DELIVERY])
    async def test_receipts_are_acknowledged_only(self, processor, messages, classification):
        receipt = ReceiptEvent(
            platform="page",
            entry_id="100",
            sender_id="user-1",
            recipient_id="100",
            timestamp=SENT_AT,
            classification=classification,
            watermark=1,
        )

        outcome = await processor.process(receipt, TENANT_A)

        assert outcome.status == ProcessingStatus.ACKNOWLEDGED
        assert await messages.count() == 0
