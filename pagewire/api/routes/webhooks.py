"""
Webhook routes.

Routes handle only HTTP concerns and delegate to the WebhookController held
on ``app.state`` (wired at startup by the services plugin).
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from pagewire.api.controllers import ACKNOWLEDGEMENT, WebhookController
from pagewire.webhooks.signature import SIGNATURE_HEADER

router = APIRouter(
    prefix="/webhook",
    tags=["Webhooks"],
    responses={
        400: {"description": "Bad Request - Invalid webhook payload"},
        403: {"description": "Forbidden - Verification or signature failed"},
    },
)


def get_webhook_controller(request: Request) -> WebhookController:
    controller = getattr(request.app.state, "webhook_controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return controller


@router.get("", response_class=PlainTextResponse)
async def verify_webhook(
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
    controller: WebhookController = Depends(get_webhook_controller),
):
    """Subscription handshake: returns the challenge when the verify token matches."""
    return controller.verify_handshake(hub_mode, hub_verify_token, hub_challenge)


@router.post("", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    controller: WebhookController = Depends(get_webhook_controller),
):
    """
    Event delivery.

    The raw body is read before any parsing so the signature covers exactly
    the bytes the platform signed.
    """
    body = await request.body()
    await controller.process_delivery(body, request.headers.get(SIGNATURE_HEADER))
    return PlainTextResponse(content=ACKNOWLEDGEMENT)
