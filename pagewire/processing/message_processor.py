"""
Message processor - per-event business logic.

One call handles one canonical event for an already resolved tenant:

- delete: remove the logged message with the same provider id
- echo: log as sent (when enabled), never reply
- read / delivery: acknowledge only
- text / attachment from a customer:
    b. upsert the participant
    c. insert the inbound message (a duplicate stops here)
    d. extract profile fields from the text
    e. generate a reply
    f. send it and log it as outbound

Every step reports its own failure in the returned ProcessingOutcome. Nothing
already written is rolled back when a later step fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from pagewire.core.logging.logger import get_logger
from pagewire.credentials.lifecycle import TokenLifecycleManager
from pagewire.database.models import (
    Classification,
    MessageDirection,
    ParticipantRole,
    utcnow,
)
from pagewire.messaging.interfaces import ChannelSender, ReplyGenerator
from pagewire.processing.extraction import extract_profile
from pagewire.processing.repository import MessageRepository, ParticipantRepository
from pagewire.tenants.resolver import TenantContext
from pagewire.webhooks.events import (
    AttachmentEvent,
    BaseCanonicalEvent,
    DeleteEvent,
    EchoEvent,
    ReceiptEvent,
    TextEvent,
)


class ProcessingStatus(str, Enum):
    REPLIED = "replied"
    PROCESSED = "processed"
    LOGGED = "logged"
    DELETED = "deleted"
    ACKNOWLEDGED = "acknowledged"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass
class ProcessingOutcome:
    """What happened to one event, including every step that failed."""

    classification: Classification
    provider_message_id: str | None = None
    status: ProcessingStatus = ProcessingStatus.PROCESSED
    errors: dict[str, str] = field(default_factory=dict)
    reply_message_id: str | None = None
    extracted: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def record_failure(self, step: str, error: BaseException) -> None:
        self.errors[step] = getattr(error, "message", None) or str(error) or type(error).__name__


class MessageProcessor:
    """Runs the per-classification pipeline for canonical events."""

    def __init__(
        self,
        messages: MessageRepository,
        participants: ParticipantRepository,
        lifecycle: TokenLifecycleManager,
        sender: ChannelSender,
        reply_generator: ReplyGenerator,
        log_echo_messages: bool = True,
    ):
        self.messages = messages
        self.participants = participants
        self.lifecycle = lifecycle
        self.sender = sender
        self.reply_generator = reply_generator
        self.log_echo_messages = log_echo_messages
        self.logger = get_logger(__name__)

    async def process(
        self, event: BaseCanonicalEvent, tenant: TenantContext
    ) -> ProcessingOutcome:
        """Process one event for ``tenant``. Failures are reported, not raised."""
        if isinstance(event, DeleteEvent):
            return await self._handle_delete(event, tenant)
        if isinstance(event, EchoEvent):
            return await self._handle_echo(event, tenant)
        if isinstance(event, ReceiptEvent):
            self.logger.debug(
                f"{event.classification.value} receipt from {event.sender_id} "
                f"(watermark={event.watermark})"
            )
            return ProcessingOutcome(
                classification=event.classification,
                status=ProcessingStatus.ACKNOWLEDGED,
            )
        if isinstance(event, (TextEvent, AttachmentEvent)):
            if tenant.is_business_sender(event.sender_id):
                return await self._handle_business_message(event, tenant)
            return await self._handle_customer_message(event, tenant)

        self.logger.warning(f"No handler for event type {type(event).__name__}")
        return ProcessingOutcome(
            classification=event.classification, status=ProcessingStatus.IGNORED
        )

    # ------------------------------------------------------------------
    # Control events
    # ------------------------------------------------------------------

    async def _handle_delete(
        self, event: DeleteEvent, tenant: TenantContext
    ) -> ProcessingOutcome:
        outcome = ProcessingOutcome(
            classification=event.classification,
            provider_message_id=event.provider_message_id,
        )
        try:
            removed = await self.messages.delete_by_provider_id(
                tenant.tenant_id, event.provider_message_id
            )
        except Exception as e:
            self.logger.error(f"Failed to delete message {event.provider_message_id}: {e}")
            outcome.record_failure("delete", e)
            outcome.status = ProcessingStatus.FAILED
            return outcome

        if removed:
            self.logger.info(f"Deleted {removed} logged row(s) for {event.provider_message_id}")
            outcome.status = ProcessingStatus.DELETED
        else:
            self.logger.debug(f"Delete for unknown message {event.provider_message_id}")
            outcome.status = ProcessingStatus.IGNORED
        return outcome

    async def _handle_echo(
        self, event: EchoEvent, tenant: TenantContext
    ) -> ProcessingOutcome:
        outcome = ProcessingOutcome(
            classification=event.classification,
            provider_message_id=event.provider_message_id,
            status=ProcessingStatus.IGNORED,
        )
        if not self.log_echo_messages:
            return outcome

        try:
            written = await self._log(event, tenant, MessageDirection.SENT)
        except Exception as e:
            self.logger.error(f"Failed to log echo {event.provider_message_id}: {e}")
            outcome.record_failure("log_echo", e)
            outcome.status = ProcessingStatus.FAILED
            return outcome

        outcome.status = ProcessingStatus.LOGGED if written else ProcessingStatus.DUPLICATE
        return outcome

    async def _handle_business_message(
        self, event: TextEvent | AttachmentEvent, tenant: TenantContext
    ) -> ProcessingOutcome:
        """A message sent from the tenant's own account: log it, never reply."""
        outcome = ProcessingOutcome(
            classification=event.classification,
            provider_message_id=event.provider_message_id,
        )
        try:
            await self.participants.upsert(
                tenant.tenant_id, event.sender_id, ParticipantRole.BUSINESS, event.timestamp
            )
        except Exception as e:
            outcome.record_failure("participant", e)

        try:
            written = await self._log(event, tenant, MessageDirection.SENT)
        except Exception as e:
            outcome.record_failure("log_inbound", e)
            outcome.status = ProcessingStatus.FAILED
            return outcome

        outcome.status = ProcessingStatus.LOGGED if written else ProcessingStatus.DUPLICATE
        return outcome

    # ------------------------------------------------------------------
    # Customer messages
    # ------------------------------------------------------------------

    async def _handle_customer_message(
        self, event: TextEvent | AttachmentEvent, tenant: TenantContext
    ) -> ProcessingOutcome:
        outcome = ProcessingOutcome(
            classification=event.classification,
            provider_message_id=event.provider_message_id,
        )

        # (b) participant
        try:
            await self.participants.upsert(
                tenant.tenant_id, event.sender_id, ParticipantRole.CUSTOMER, event.timestamp
            )
        except Exception as e:
            self.logger.error(f"Participant upsert failed for {event.sender_id}: {e}")
            outcome.record_failure("participant", e)

        # (c) inbound log; the unique key makes this the dedup point
        try:
            written = await self._log(event, tenant, MessageDirection.RECEIVED)
        except Exception as e:
            self.logger.error(f"Failed to log inbound {event.provider_message_id}: {e}")
            outcome.record_failure("log_inbound", e)
            outcome.status = ProcessingStatus.FAILED
            return outcome

        if not written:
            self.logger.info(f"Duplicate delivery of {event.provider_message_id}, skipping")
            outcome.status = ProcessingStatus.DUPLICATE
            return outcome

        # (d) profile extraction
        if event.text:
            try:
                profile = extract_profile(event.text)
                if not profile.is_empty:
                    outcome.extracted = await self.participants.update_profile(
                        tenant.tenant_id, event.sender_id, profile.to_fields()
                    )
                    if outcome.extracted:
                        self.logger.info(
                            f"Extracted {sorted(outcome.extracted)} for {event.sender_id}"
                        )
            except Exception as e:
                self.logger.error(f"Profile extraction failed: {e}")
                outcome.record_failure("extract", e)

        if not event.text:
            return outcome

        # (e) reply generation
        try:
            reply = await self.reply_generator.generate(tenant, event.text)
        except Exception as e:
            self.logger.error(f"Reply generation failed: {e}")
            outcome.record_failure("generate", e)
            return outcome

        if not reply:
            self.logger.debug("Reply generator produced no reply")
            return outcome

        # (f) send + outbound log
        try:
            credential = await self.lifecycle.get_tenant_credential(tenant)
            result = await self.sender.send(
                tenant.page_id, credential, event.sender_id, reply
            )
        except Exception as e:
            self.logger.error(f"Failed to send reply to {event.sender_id}: {e}")
            outcome.record_failure("send", e)
            return outcome

        outcome.reply_message_id = result.message_id or f"local-{uuid4().hex}"
        outcome.status = ProcessingStatus.REPLIED
        try:
            await self.messages.insert_if_absent(
                tenant_id=tenant.tenant_id,
                provider_message_id=outcome.reply_message_id,
                sender_id=tenant.account_id,
                recipient_id=event.sender_id,
                direction=MessageDirection.SENT,
                classification=Classification.TEXT,
                timestamp=utcnow(),
                body=reply,
                payload={"in_reply_to": event.provider_message_id},
            )
        except Exception as e:
            self.logger.error(f"Failed to log outbound {outcome.reply_message_id}: {e}")
            outcome.record_failure("log_outbound", e)

        self.logger.info(f"Replied to {event.sender_id} ({outcome.reply_message_id})")
        return outcome

    async def _log(
        self,
        event: TextEvent | AttachmentEvent | EchoEvent,
        tenant: TenantContext,
        direction: MessageDirection,
    ) -> bool:
        return await self.messages.insert_if_absent(
            tenant_id=tenant.tenant_id,
            provider_message_id=event.provider_message_id,
            sender_id=event.sender_id,
            recipient_id=event.recipient_id,
            direction=direction,
            classification=event.classification,
            timestamp=event.timestamp,
            body=event.text,
            payload=event.raw,
        )
