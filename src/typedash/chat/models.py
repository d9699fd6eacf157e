"""Data structures for chat sessions."""

import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Who a chat message is from."""

    USER = "user"
    ASSISTANT = "assistant"
    ERROR = "error"


class ConversationStatus(str, Enum):
    """Session-wide status; only IDLE accepts a new send."""

    IDLE = "idle"
    SENDING = "sending"
    CALLING_FUNCTION = "calling-function"
    GENERATING = "generating"
    AWAITING_CONFIRMATION = "awaiting-confirmation"


class PendingAction(BaseModel):
    """A write tool call waiting for the user's approval.

    Attributes:
        tool_name: Name of the write tool
        args: Arguments the model supplied
        description: Human-readable description shown to the approver
    """

    model_config = ConfigDict(frozen=True)

    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    description: str


class FunctionCallRecord(BaseModel):
    """Audit record of one tool invocation within a turn."""

    model_config = ConfigDict(frozen=True)

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class TableResult(BaseModel):
    """Tabular view of a turn's tool results.

    Attributes:
        columns: Ordered field names
        rows: One mapping per row, keyed by column name
        collection_name: Collection the rows came from
        total_found: Total matches on the server, when known
    """

    model_config = ConfigDict(frozen=True)

    columns: list[str]
    rows: list[dict[str, Any]]
    collection_name: str
    total_found: int | None = None


class Message(BaseModel):
    """A chat message.

    Attributes:
        id: Unique identifier within the session
        role: user, assistant or error
        content: Message text
        timestamp: Creation time (seconds since the epoch)
        table_data: Table derived from the turn's tool calls (assistant only)
        function_calls: Tool invocations made during the turn (assistant only)
        is_loading: True for the placeholder shown while a turn is in flight
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: MessageRole
    content: str
    timestamp: float = Field(default_factory=time.time)
    table_data: TableResult | None = None
    function_calls: list[FunctionCallRecord] | None = None
    is_loading: bool = False

    def __str__(self) -> str:
        """String representation of Message."""
        return self.content


class SendMessageResult(BaseModel):
    """Outcome of one model round.

    Attributes:
        text: Reply text (condensed when a table was derived)
        table_data: Table derived from the tool calls, if any
        function_calls: Every tool invocation made during the round
    """

    text: str
    table_data: TableResult | None = None
    function_calls: list[FunctionCallRecord] = Field(default_factory=list)
