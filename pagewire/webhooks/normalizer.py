"""
Event normalizer.

Turns a raw webhook delivery body into a flat, lazy sequence of canonical
events. Classification precedence for a raw sub-event, first match wins:

    delete > echo > read/delivery receipt > text/attachment message

Deletion and echo are control signals and must never reach reply generation.
"""

import json
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from pagewire.core.exceptions import MalformedPayload
from pagewire.core.logging.logger import get_logger
from pagewire.database.models import Classification
from pagewire.webhooks.envelope import MessagingEvent, WebhookEntry, WebhookEnvelope
from pagewire.webhooks.events import (
    Attachment,
    AttachmentEvent,
    BaseCanonicalEvent,
    DeleteEvent,
    EchoEvent,
    ReceiptEvent,
    TextEvent,
)

logger = get_logger(__name__)


class NormalizedBatch:
    """
    Finite, restartable sequence of canonical events for one delivery.

    The envelope is validated up front; events are produced lazily and each
    iteration walks the envelope again from the start.
    """

    def __init__(self, envelope: WebhookEnvelope, normalizer: "EventNormalizer"):
        self.envelope = envelope
        self._normalizer = normalizer

    def __iter__(self) -> Iterator[BaseCanonicalEvent]:
        for entry in self.envelope.entry:
            for raw_event in entry.messaging:
                event = self._normalizer.classify(self.envelope.object, entry, raw_event)
                if event is not None:
                    yield event

    @property
    def raw_event_count(self) -> int:
        return sum(len(entry.messaging) for entry in self.envelope.entry)


class EventNormalizer:
    """Parses webhook bodies into canonical events."""

    def parse(self, body: bytes | str | dict[str, Any]) -> NormalizedBatch:
        """
        Validate a delivery body and return its canonical event batch.

        Raises:
            MalformedPayload: Body is not JSON or not a valid envelope
        """
        if isinstance(body, (bytes, str)):
            try:
                body = json.loads(body)
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise MalformedPayload(f"Webhook body is not valid JSON: {e}") from e

        if not isinstance(body, dict):
            raise MalformedPayload("Webhook body must be a JSON object")

        try:
            envelope = WebhookEnvelope.model_validate(body)
        except ValidationError as e:
            raise MalformedPayload(
                f"Webhook envelope failed validation ({e.error_count()} errors)"
            ) from e

        return NormalizedBatch(envelope, self)

    def classify(
        self, platform: str, entry: WebhookEntry, raw_event: MessagingEvent
    ) -> BaseCanonicalEvent | None:
        """Classify one raw sub-event, or return None when nothing acts on it."""
        common = {
            "platform": platform,
            "entry_id": entry.id,
            "sender_id": raw_event.sender.id,
            "recipient_id": raw_event.recipient.id,
            "timestamp": _from_epoch_ms(raw_event.timestamp or entry.time),
            "raw": raw_event.model_dump(mode="json", exclude_none=True),
        }
        message = raw_event.message

        if message is not None and message.is_deleted:
            if not message.mid:
                return self._skip(raw_event, "deleted message without mid")
            return DeleteEvent(provider_message_id=message.mid, **common)

        if message is not None and message.is_echo:
            if not message.mid:
                return self._skip(raw_event, "echo without mid")
            return EchoEvent(
                provider_message_id=message.mid,
                text=message.text,
                attachments=_attachments(message.attachments),
                **common,
            )

        if raw_event.read is not None:
            return ReceiptEvent(
                classification=Classification.READ,
                watermark=raw_event.read.watermark,
                mids=tuple(raw_event.read.mids or ()),
                **common,
            )

        if raw_event.delivery is not None:
            return ReceiptEvent(
                classification=Classification.DELIVERY,
                watermark=raw_event.delivery.watermark,
                mids=tuple(raw_event.delivery.mids or ()),
                **common,
            )

        if message is not None and message.mid:
            if message.text:
                return TextEvent(
                    provider_message_id=message.mid,
                    text=message.text,
                    attachments=_attachments(message.attachments),
                    **common,
                )
            if message.attachments:
                return AttachmentEvent(
                    provider_message_id=message.mid,
                    attachments=_attachments(message.attachments),
                    **common,
                )

        return self._skip(raw_event, "unsupported sub-event")

    @staticmethod
    def _skip(raw_event: MessagingEvent, reason: str) -> None:
        keys = sorted(raw_event.model_dump(exclude_none=True))
        logger.debug(f"Skipping messaging event ({reason}): keys={keys}")
        return None


def _from_epoch_ms(value: int | None) -> datetime:
    if value is None:
        return datetime.now(UTC)
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _attachments(raw: list | None) -> tuple[Attachment, ...]:
    if not raw:
        return ()
    return tuple(
        Attachment(
            type=item.type,
            url=(item.payload or {}).get("url"),
            payload=item.payload or {},
        )
        for item in raw
    )
