"""Credential lifecycle: freshness policy, persistence, refresh chain and sweep."""

from .lifecycle import SweepReport, TokenLifecycleManager
from .policy import MAX_CREDENTIAL_AGE, CredentialKind, is_expired
from .store import (
    ChannelBinding,
    ChannelCredentialRecord,
    CredentialStore,
    OwnerCredential,
    SQLCredentialStore,
)
from .sweep import CredentialSweeper

__all__ = [
    "MAX_CREDENTIAL_AGE",
    "ChannelBinding",
    "ChannelCredentialRecord",
    "CredentialKind",
    "CredentialStore",
    "CredentialSweeper",
    "OwnerCredential",
    "SQLCredentialStore",
    "SweepReport",
    "TokenLifecycleManager",
    "is_expired",
]
