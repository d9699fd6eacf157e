from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from ..tools.registry import ToolDeclaration
from .models import ChatMessage, FunctionResponse, ModelReply


class LLMProvider(ABC):
    """Abstract base class for tool-calling LLM providers.

    This module hides the design decision of which LLM provider to use.
    Implementations must handle provider-specific details like:
    - API client setup and authentication
    - Conversion of history, tool declarations and tool results
    - Extraction of text and tool-call requests from responses

    A provider starts uninitialized; ``initialize`` supplies the API key.
    A round is opened with ``start_round`` and driven with ``send_turn``:
        handle = provider.start_round(history, system_prompt, declarations)
        reply = await provider.send_turn(handle, "show data")
        while reply.tool_calls:
            reply = await provider.send_turn(handle, responses)

    Supports async context manager protocol for proper resource cleanup:
        async with provider:
            ...
        # Automatically cleaned up
    """

    @abstractmethod
    def initialize(self, api_key: str) -> None:
        """Create the API client for the given key."""
        pass

    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether ``initialize`` has been called with a key."""
        pass

    @abstractmethod
    def start_round(
        self,
        history: Sequence[ChatMessage],
        system_prompt: str,
        tool_declarations: Sequence[ToolDeclaration],
    ) -> Any:
        """Open a conversation round.

        Args:
            history: Prior turns, oldest first
            system_prompt: System instruction for this round
            tool_declarations: Tools the model may call

        Returns:
            Opaque conversation handle passed to ``send_turn``

        Raises:
            RuntimeError: If the provider is not initialized
        """
        pass

    @abstractmethod
    async def send_turn(
        self,
        handle: Any,
        content: str | Sequence[FunctionResponse],
    ) -> ModelReply:
        """Send user text or tool results within an open round.

        Args:
            handle: Handle returned by ``start_round``
            content: User text, or all tool responses for the previous reply

        Returns:
            ModelReply with optional text and any requested tool calls

        Raises:
            Exception: Provider-specific errors during generation
        """
        pass

    def disconnect(self) -> None:
        """Forget the API client; ``is_initialized`` becomes False."""
        pass

    async def close(self) -> None:
        """Close any open connections or resources."""
        pass

    async def __aenter__(self) -> "LLMProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
