"""
API controllers.

Controllers hold the business logic behind the HTTP routes.
"""

from .webhook_controller import ACKNOWLEDGEMENT, DeliveryReport, WebhookController

__all__ = ["ACKNOWLEDGEMENT", "DeliveryReport", "WebhookController"]
