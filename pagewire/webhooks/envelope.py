"""
Messenger / Instagram webhook envelope schema.

Pydantic models for the raw delivery body. Only the structure the normalizer
relies on is enforced; unknown keys (postbacks, reactions, referrals and
whatever the platform adds next) are kept so nothing is silently rejected.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ParticipantRef(BaseModel):
    """Sender or recipient reference."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1, description="Platform-scoped user or account id")


class RawAttachment(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Attachment type (image, video, audio, file, ...)")
    payload: dict[str, Any] | None = Field(None, description="Type-specific payload")


class RawMessage(BaseModel):
    """The ``message`` object of a messaging sub-event."""

    model_config = ConfigDict(extra="allow")

    mid: str | None = Field(None, description="Provider message id")
    text: str | None = None
    attachments: list[RawAttachment] | None = None
    is_echo: bool = False
    is_deleted: bool = False
    app_id: int | str | None = Field(None, description="Sending app id (echoes only)")


class RawReceipt(BaseModel):
    """``read`` or ``delivery`` receipt body."""

    model_config = ConfigDict(extra="allow")

    watermark: int | None = None
    mids: list[str] | None = None


class MessagingEvent(BaseModel):
    """One raw messaging sub-event inside an entry."""

    model_config = ConfigDict(extra="allow")

    sender: ParticipantRef
    recipient: ParticipantRef
    timestamp: int | None = Field(None, description="Epoch milliseconds")
    message: RawMessage | None = None
    read: RawReceipt | None = None
    delivery: RawReceipt | None = None


class WebhookEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Page or Instagram account id the entry is for")
    time: int | None = Field(None, description="Epoch milliseconds")
    messaging: list[MessagingEvent] = Field(default_factory=list)


class WebhookEnvelope(BaseModel):
    """Top-level webhook delivery body."""

    model_config = ConfigDict(extra="allow")

    object: Literal["page", "instagram"]
    entry: list[WebhookEntry]
