"""
Canonical webhook events.

A tagged union over the event classifications. Every raw messaging sub-event
the system acts on normalizes into exactly one of these frozen models.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from pagewire.database.models import Classification, MessageDirection


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    url: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class BaseCanonicalEvent(BaseModel):
    """Fields shared by every canonical event."""

    model_config = ConfigDict(frozen=True)

    platform: Literal["page", "instagram"]
    entry_id: str
    sender_id: str
    recipient_id: str
    timestamp: datetime
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @property
    def direction(self) -> MessageDirection:
        return MessageDirection.RECEIVED

    @property
    def account_id(self) -> str:
        """The tenant-side account id this event belongs to."""
        return self.recipient_id

    @property
    def counterpart_id(self) -> str:
        """The non-tenant participant of the conversation."""
        return self.sender_id


class TextEvent(BaseCanonicalEvent):
    classification: Literal[Classification.TEXT] = Classification.TEXT
    provider_message_id: str
    text: str
    attachments: tuple[Attachment, ...] = ()


class AttachmentEvent(BaseCanonicalEvent):
    classification: Literal[Classification.ATTACHMENT] = Classification.ATTACHMENT
    provider_message_id: str
    attachments: tuple[Attachment, ...]
    text: str | None = None


class EchoEvent(BaseCanonicalEvent):
    """The platform's copy of a message the business already sent."""

    classification: Literal[Classification.ECHO] = Classification.ECHO
    provider_message_id: str
    text: str | None = None
    attachments: tuple[Attachment, ...] = ()

    @property
    def direction(self) -> MessageDirection:
        return MessageDirection.SENT

    @property
    def account_id(self) -> str:
        return self.sender_id

    @property
    def counterpart_id(self) -> str:
        return self.recipient_id


class DeleteEvent(BaseCanonicalEvent):
    classification: Literal[Classification.DELETE] = Classification.DELETE
    provider_message_id: str


class ReceiptEvent(BaseCanonicalEvent):
    """Read or delivery receipt."""

    classification: Literal[Classification.READ, Classification.DELIVERY]
    watermark: int | None = None
    mids: tuple[str, ...] = ()


CanonicalEvent = Annotated[
    Union[TextEvent, AttachmentEvent, EchoEvent, DeleteEvent, ReceiptEvent],
    Field(discriminator="classification"),
]

ContentEvent = Union[TextEvent, AttachmentEvent, EchoEvent]
"""Events that carry conversational content and are deduplicated."""

CONTENT_CLASSIFICATIONS = frozenset(
    {Classification.TEXT, Classification.ATTACHMENT, Classification.ECHO}
)


def is_content_event(event: BaseCanonicalEvent) -> bool:
    return event.classification in CONTENT_CLASSIFICATIONS
