from . import credentials, health, tenants, webhooks

__all__ = ["credentials", "health", "tenants", "webhooks"]
