"""
Typedash: a natural-language chat assistant for Typesense dashboards.

Turns user requests into Gemini tool calls against a Typesense server,
asks for confirmation before writes, and returns a short reply plus a table.
"""

__version__ = "0.1.0"

from .chat import (
    ConversationSession,
    ConversationStatus,
    Message,
    PendingAction,
    TableResult,
)
from .llm import GeminiProvider, LLMProvider, create_llm_provider
from .search import SearchBackend, create_search_backend
from .tools import TOOL_DECLARATIONS, ToolExecutor, is_write_tool

__all__ = [
    "ConversationSession",
    "ConversationStatus",
    "Message",
    "PendingAction",
    "TableResult",
    "GeminiProvider",
    "LLMProvider",
    "create_llm_provider",
    "SearchBackend",
    "create_search_backend",
    "TOOL_DECLARATIONS",
    "ToolExecutor",
    "is_write_tool",
]
