from .base import LLMProvider
from .factory import create_llm_provider
from .models import ChatMessage, FunctionResponse, ModelReply, ToolCallRequest
from .providers import GeminiProvider

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "ChatMessage",
    "FunctionResponse",
    "ModelReply",
    "ToolCallRequest",
    "GeminiProvider",
]
