"""External collaborator contracts and their Graph API / OpenAI implementations."""

from .graph_client import GraphAPIClient, GraphUrlBuilder
from .interfaces import (
    AccountInfo,
    ChannelSender,
    IdentityProvider,
    ReplyGenerator,
    SendResult,
)
from .reply_generator import DisabledReplyGenerator, OpenAIReplyGenerator

__all__ = [
    "AccountInfo",
    "ChannelSender",
    "DisabledReplyGenerator",
    "GraphAPIClient",
    "GraphUrlBuilder",
    "IdentityProvider",
    "OpenAIReplyGenerator",
    "ReplyGenerator",
    "SendResult",
]
