"""
Database models for tenants, credentials and the conversation log.

SQLModel tables kept portable between PostgreSQL and SQLite: enums are stored
as VARCHAR with a CHECK constraint and payloads as generic JSON.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel

# =============================================================================
# SQL Utilities for Enum Handling
# =============================================================================


def enum_values(enum_cls: type[Enum]) -> list:
    """
    Extract enum values for SQLAlchemy enum configuration.

    Top-level function (not lambda) so it can be pickled.
    """
    return [member.value for member in enum_cls]


def get_enum_column(enum_cls: type[Enum], column_name: str, nullable: bool = False):
    """
    Create a SQLAlchemy Column for enum fields stored by value.

    Args:
        enum_cls: The enum class
        column_name: Name for the enum constraint (e.g., "direction_t")
        nullable: Whether the column allows NULL values
    """
    return Column(
        SAEnum(
            enum_cls,
            name=column_name,
            values_callable=enum_values,
            native_enum=False,
            create_constraint=True,
        ),
        nullable=nullable,
    )


def utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Enums
# =============================================================================


class Platform(str, Enum):
    """Messaging surface a tenant linked."""

    MESSENGER = "messenger"
    INSTAGRAM = "instagram"


class MessageDirection(str, Enum):
    """Whether the business sent or received the message."""

    SENT = "sent"
    RECEIVED = "received"


class Classification(str, Enum):
    """Classification of a canonical event."""

    TEXT = "text"
    ATTACHMENT = "attachment"
    ECHO = "echo"
    DELETE = "delete"
    READ = "read"
    DELIVERY = "delivery"


class ParticipantRole(str, Enum):
    """Role of a conversation participant for a tenant."""

    CUSTOMER = "customer"
    BUSINESS = "business"


# =============================================================================
# Tenants & Credentials
# =============================================================================


class Owner(SQLModel, table=True):
    """
    The individual who linked one or more tenants via OAuth.

    Holds the owner-level long-lived user token. Only the token lifecycle
    manager writes the token columns.
    """

    __tablename__ = "owners"

    id: str = Field(primary_key=True)
    user_token: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    refreshed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class Tenant(SQLModel, table=True):
    """
    An onboarded business.

    ``account_id`` is the tenant's own channel account id: the recipient of
    inbound events and the sender of business messages. ``page_id`` is the
    channel credentials are minted for and replies are sent through.
    """

    __tablename__ = "tenants"

    id: str = Field(primary_key=True)
    display_name: str = Field(sa_column=Column(Text, nullable=False))
    platform: Platform = Field(
        default=Platform.MESSENGER,
        sa_column=get_enum_column(Platform, column_name="platform_t"),
    )
    page_id: str = Field(index=True)
    account_id: str = Field(unique=True, index=True)
    owner_id: str = Field(foreign_key="owners.id", index=True)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ChannelCredential(SQLModel, table=True):
    """
    Channel-scoped token minted from an owner credential.

    ``rejected_at`` is set when the provider refused to mint for this channel.
    While set, the channel needs owner re-authorization and is never minted
    automatically; a row may then carry no token at all.
    """

    __tablename__ = "channel_credentials"

    tenant_id: str = Field(foreign_key="tenants.id", primary_key=True)
    channel_id: str = Field(primary_key=True)
    token: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    refreshed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    derived_from: str | None = Field(default=None)
    rejected_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


# =============================================================================
# Conversation Log
# =============================================================================


class LoggedMessage(SQLModel, table=True):
    """
    One message as seen by a tenant.

    Immutable once created. The provider message id is the dedup key, unique
    per tenant and direction.
    """

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "provider_message_id",
            "direction",
            name="uq_messages_tenant_provider_direction",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    provider_message_id: str = Field(index=True)
    sender_id: str
    recipient_id: str
    direction: MessageDirection = Field(
        sa_column=get_enum_column(MessageDirection, column_name="direction_t")
    )
    classification: Classification = Field(
        sa_column=get_enum_column(Classification, column_name="classification_t")
    )
    body: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    payload: dict = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    timestamp: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ConversationParticipant(SQLModel, table=True):
    """A platform user talking to a tenant. Upserted, never deleted."""

    __tablename__ = "participants"

    platform_user_id: str = Field(primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", primary_key=True)
    role: ParticipantRole = Field(
        default=ParticipantRole.CUSTOMER,
        sa_column=get_enum_column(ParticipantRole, column_name="participant_role_t"),
    )
    name: str | None = Field(default=None)
    phone: str | None = Field(default=None)
    email: str | None = Field(default=None)
    location: str | None = Field(default=None)
    first_seen_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    last_seen_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
