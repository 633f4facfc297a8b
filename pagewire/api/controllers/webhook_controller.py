"""
Webhook controller.

Routes handle HTTP concerns only; this controller owns the delivery pipeline:
signature check, normalization, then one task per canonical event
(tenant resolution, idempotency check, dispatch to the message processor).
Tasks are joined before the delivery is acknowledged, and one event failing
or timing out never affects its siblings.
"""

import asyncio
from dataclasses import dataclass, field

from fastapi import HTTPException
from fastapi.responses import PlainTextResponse

from pagewire.core.exceptions import MalformedPayload, SignatureInvalid, TenantNotFound
from pagewire.core.logging.context import clear_request_context, set_request_context
from pagewire.core.logging.logger import get_logger
from pagewire.processing.message_processor import (
    MessageProcessor,
    ProcessingOutcome,
    ProcessingStatus,
)
from pagewire.processing.repository import MessageRepository
from pagewire.tenants.resolver import TenantResolver
from pagewire.webhooks.events import BaseCanonicalEvent, is_content_event
from pagewire.webhooks.normalizer import EventNormalizer
from pagewire.webhooks.signature import verify_signature

ACKNOWLEDGEMENT = "EVENT_RECEIVED"


@dataclass
class DeliveryReport:
    """Per-delivery tally, logged once the batch has been joined."""

    received: int = 0
    dropped: int = 0
    duplicates: int = 0
    failed: int = 0
    outcomes: list[ProcessingOutcome] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"received={self.received} processed={len(self.outcomes)} "
            f"duplicates={self.duplicates} dropped={self.dropped} failed={self.failed}"
        )


class WebhookController:
    """Handles the subscription handshake and event deliveries."""

    def __init__(
        self,
        normalizer: EventNormalizer,
        resolver: TenantResolver,
        messages: MessageRepository,
        processor: MessageProcessor,
        app_secret: str | None,
        verify_token: str | None,
        event_timeout_seconds: float = 20.0,
    ):
        self.normalizer = normalizer
        self.resolver = resolver
        self.messages = messages
        self.processor = processor
        self.app_secret = app_secret
        self.verify_token = verify_token
        self.event_timeout_seconds = event_timeout_seconds
        self.logger = get_logger(__name__)

    def verify_handshake(
        self,
        hub_mode: str | None,
        hub_verify_token: str | None,
        hub_challenge: str | None,
    ) -> PlainTextResponse:
        """
        Echo the challenge back iff the verify token matches.

        Raises:
            HTTPException: 403 on any mismatch or missing parameter
        """
        if (
            hub_mode == "subscribe"
            and hub_challenge is not None
            and self.verify_token
            and hub_verify_token == self.verify_token
        ):
            self.logger.info("Webhook subscription verified")
            return PlainTextResponse(content=hub_challenge)

        self.logger.warning(f"Webhook verification failed (mode={hub_mode})")
        raise HTTPException(status_code=403, detail="Forbidden")

    async def process_delivery(self, body: bytes, signature: str | None) -> DeliveryReport:
        """
        Authenticate, normalize and process one webhook delivery.

        Raises:
            HTTPException: 403 on signature failure, 400 on a malformed body
        """
        try:
            verify_signature(body, signature, self.app_secret or "")
        except SignatureInvalid as e:
            self.logger.warning(f"Rejected webhook delivery: {e.message}")
            raise HTTPException(status_code=403, detail="Forbidden") from e

        try:
            batch = self.normalizer.parse(body)
        except MalformedPayload as e:
            self.logger.warning(f"Malformed webhook delivery: {e.message}")
            raise HTTPException(status_code=400, detail="Invalid payload") from e

        report = DeliveryReport(received=batch.raw_event_count)
        events = list(batch)
        if not events:
            self.logger.debug("Delivery contained no actionable events")
            return report

        # Submission order follows delivery order; completion order is free
        tasks = [
            asyncio.create_task(
                self._run_event(event, report),
                name=f"webhook-event:{getattr(event, 'provider_message_id', None) or i}",
            )
            for i, event in enumerate(events)
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for event, result in zip(events, results):
            if isinstance(result, BaseException):
                report.failed += 1
                self.logger.error(
                    f"Unhandled error processing {event.classification.value} event: {result!r}"
                )

        self.logger.info(f"Webhook delivery handled: {report.summary()}")
        return report

    async def _run_event(self, event: BaseCanonicalEvent, report: DeliveryReport) -> None:
        try:
            outcome = await asyncio.wait_for(
                self._handle_event(event), timeout=self.event_timeout_seconds
            )
        except asyncio.TimeoutError:
            report.failed += 1
            self.logger.error(
                f"{event.classification.value} event timed out after "
                f"{self.event_timeout_seconds}s"
            )
            return

        if outcome is None:
            report.dropped += 1
            return
        report.outcomes.append(outcome)
        if outcome.status == ProcessingStatus.DUPLICATE:
            report.duplicates += 1
        if not outcome.ok:
            report.failed += 1
            self.logger.warning(
                f"Event {outcome.provider_message_id} finished with errors: {outcome.errors}"
            )

    async def _handle_event(self, event: BaseCanonicalEvent) -> ProcessingOutcome | None:
        # Runs in its own task, so context set here stays with this event
        clear_request_context()
        try:
            tenant = await self.resolver.resolve(event.account_id)
        except TenantNotFound as e:
            self.logger.warning(f"Dropping {event.classification.value} event: {e.message}")
            return None

        set_request_context(tenant_id=tenant.tenant_id, user_id=event.counterpart_id)

        if is_content_event(event) and await self.messages.exists(
            tenant.tenant_id, event.provider_message_id, event.direction
        ):
            self.logger.info(f"Already processed {event.provider_message_id}, skipping")
            return ProcessingOutcome(
                classification=event.classification,
                provider_message_id=event.provider_message_id,
                status=ProcessingStatus.DUPLICATE,
            )

        return await self.processor.process(event, tenant)
