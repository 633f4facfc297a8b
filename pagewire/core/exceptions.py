"""
Error taxonomy for pagewire.

Credential errors propagate to whoever needs the token. Tenant and per-event
errors are caught at the router/processor boundary and logged. Signature and
payload errors are turned into 403/400 responses by the webhook routes.
"""


class PagewireError(Exception):
    """Base exception for all pagewire errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CredentialError(PagewireError):
    """Base class for credential lifecycle failures."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


class CredentialUnavailable(CredentialError):
    """No stored token and no bootstrap token; requires re-authorization."""


class CredentialInvalid(CredentialError):
    """The identity provider rejected the token; requires re-authorization."""


class TenantNotFound(PagewireError):
    """No tenant is linked to the platform account the event was sent to."""

    def __init__(self, platform_account_id: str, message: str | None = None):
        self.platform_account_id = platform_account_id
        super().__init__(message or f"No tenant linked to account '{platform_account_id}'")


class SignatureInvalid(PagewireError):
    """Webhook signature header is absent or does not match the body."""


class MalformedPayload(PagewireError):
    """Webhook body is not a structurally valid event batch."""


class DownstreamFailure(PagewireError):
    """Reply generation, channel send, or a Graph API call failed."""

    def __init__(self, message: str, service: str, status: int | None = None):
        self.service = service
        self.status = status
        super().__init__(message)


class AccountLinkError(PagewireError):
    """The channel's account cannot be linked to the tenant."""
