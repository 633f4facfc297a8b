"""
Request context management using contextvars for automatic propagation.

The webhook router sets the tenant and sender for each canonical event before
handing it to the processor; every logger created afterwards in the same task
picks the values up without parameter passing. Each event runs in its own
task, so the values never leak between sibling events.
"""

from contextvars import ContextVar

_tenant_context: ContextVar[str | None] = ContextVar("tenant_id", default=None)
_user_context: ContextVar[str | None] = ContextVar("user_id", default=None)


def set_request_context(
    tenant_id: str | None = None,
    user_id: str | None = None,
) -> None:
    """
    Set the logging context for the current async context.

    Args:
        tenant_id: Internal tenant identifier resolved for the event
        user_id: Platform user id of the message sender
    """
    if tenant_id is not None:
        _tenant_context.set(tenant_id)
    if user_id is not None:
        _user_context.set(user_id)


def get_current_tenant_context() -> str | None:
    """Get the current tenant ID from context variables."""
    return _tenant_context.get()


def get_current_user_context() -> str | None:
    """Get the current user ID from context variables."""
    return _user_context.get()


def clear_request_context() -> None:
    """
    Clear the request context.

    Context is isolated per task already; this is mostly useful in tests.
    """
    _tenant_context.set(None)
    _user_context.set(None)

