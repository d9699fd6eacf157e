"""Chat orchestration: sessions, confirmation and result tables."""

from .confirmation import ConfirmationGate
from .materializer import condense_text_for_table, extract_table_data, materialize
from .models import (
    ConversationStatus,
    FunctionCallRecord,
    Message,
    MessageRole,
    PendingAction,
    SendMessageResult,
    TableResult,
)
from .rate_limit import RateLimiter
from .session import ConversationSession, messages_to_history

__all__ = [
    "ConfirmationGate",
    "ConversationSession",
    "ConversationStatus",
    "FunctionCallRecord",
    "Message",
    "MessageRole",
    "PendingAction",
    "RateLimiter",
    "SendMessageResult",
    "TableResult",
    "condense_text_for_table",
    "extract_table_data",
    "materialize",
    "messages_to_history",
]
