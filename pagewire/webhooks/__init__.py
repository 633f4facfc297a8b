"""Webhook envelope parsing, canonical events and signature checks."""

from .events import (
    Attachment,
    AttachmentEvent,
    BaseCanonicalEvent,
    CanonicalEvent,
    DeleteEvent,
    EchoEvent,
    ReceiptEvent,
    TextEvent,
    is_content_event,
)
from .normalizer import EventNormalizer, NormalizedBatch
from .signature import SIGNATURE_HEADER, compute_signature, verify_signature

__all__ = [
    "SIGNATURE_HEADER",
    "Attachment",
    "AttachmentEvent",
    "BaseCanonicalEvent",
    "CanonicalEvent",
    "DeleteEvent",
    "EchoEvent",
    "EventNormalizer",
    "NormalizedBatch",
    "ReceiptEvent",
    "TextEvent",
    "compute_signature",
    "is_content_event",
    "verify_signature",
]
