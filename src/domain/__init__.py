"""Domain layer: errors and schemas."""

from .errors import ErrorCodes, PolicyRejectError
from .schemas import (
    ChatMessage,
    ChatSession,
    IndexSnapshot,
    StoredFile,
    WebhookReply,
)

__all__ = [
    "ErrorCodes",
    "PolicyRejectError",
    "StoredFile",
    "IndexSnapshot",
    "WebhookReply",
    "ChatMessage",
    "ChatSession",
]
