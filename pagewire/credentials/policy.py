"""
Credential freshness policy.

Owner-level user tokens are long-lived (60 days); channel tokens minted from
them carry a provider-imposed short expiry (1 day).
"""

from datetime import UTC, datetime, timedelta
from enum import Enum


class CredentialKind(str, Enum):
    """Level of a credential in the owner -> channel chain."""

    OWNER = "owner"
    CHANNEL = "channel"


MAX_CREDENTIAL_AGE: dict[CredentialKind, timedelta] = {
    CredentialKind.OWNER: timedelta(days=60),
    CredentialKind.CHANNEL: timedelta(days=1),
}


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Read naive timestamps (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_expired(
    refreshed_at: datetime, kind: CredentialKind, now: datetime | None = None
) -> bool:
    """
    Return True iff the credential's age is strictly greater than its policy.

    A credential exactly at the threshold is still usable.

    Args:
        refreshed_at: When the credential was last refreshed
        kind: Credential level
        now: Reference time, defaults to the current UTC time
    """
    reference = as_utc(now) if now is not None else utcnow()
    return reference - as_utc(refreshed_at) > MAX_CREDENTIAL_AGE[kind]
