"""Google Gemini LLM provider implementation.

Uses the official Google GenAI SDK for async chat rounds with function
calling. Reference: https://github.com/googleapis/python-genai

Automatic function calling is disabled: tool calls are returned to the
caller, which decides whether and how to execute them.
"""

from collections.abc import Sequence
from typing import Any

from google import genai
from google.genai import chats, types

from ...config import DEFAULT_GEMINI_MODEL
from ...tools.registry import ToolDeclaration
from ..base import LLMProvider
from ..models import ChatMessage, FunctionResponse, ModelReply, ToolCallRequest

# Default safety settings - relaxed to avoid blocking ordinary record content
DEFAULT_SAFETY_SETTINGS = [
    types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="BLOCK_ONLY_HIGH"),
]


def _to_schema(fragment: dict[str, Any]) -> types.Schema:
    """Convert a JSON-schema fragment to a Gemini Schema."""
    properties = fragment.get("properties")
    return types.Schema(
        type=fragment["type"].upper(),
        description=fragment.get("description"),
        properties={k: _to_schema(v) for k, v in properties.items()} if properties else None,
        required=fragment.get("required"),
    )


def to_function_declaration(declaration: ToolDeclaration) -> types.FunctionDeclaration:
    """Convert a tool declaration to a Gemini FunctionDeclaration.

    Tools without parameters are declared without a schema.
    """
    return types.FunctionDeclaration(
        name=declaration.name,
        description=declaration.description,
        parameters=_to_schema(declaration.parameters_schema) if declaration.properties else None,
    )


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider implementation.

    Hidden design decisions:
    - Google GenAI client initialization
    - History, tool declaration and tool result conversion
    - Text extraction from responses that mix text and function calls
    - Relaxed safety settings
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_GEMINI_MODEL,
        temperature: float | None = None,
        **client_kwargs: Any
    ):
        """Initialize Gemini provider.

        Args:
            api_key: Google AI API key; when omitted, call ``initialize`` later
            model: Default model (gemini-2.0-flash, gemini-2.5-flash, gemini-2.5-pro)
            temperature: Optional sampling temperature
            **client_kwargs: Additional kwargs for Client
        """
        self._model = model
        self._temperature = temperature
        self._client_kwargs = client_kwargs
        self._client: genai.Client | None = None
        if api_key:
            self.initialize(api_key)

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    def initialize(self, api_key: str) -> None:
        self._client = genai.Client(api_key=api_key, **self._client_kwargs)

    def is_initialized(self) -> bool:
        return self._client is not None

    def disconnect(self) -> None:
        self._client = None

    def _convert_history(self, history: Sequence[ChatMessage]) -> list[types.Content]:
        """Convert ChatMessage history to Gemini contents.

        Args:
            history: Prior turns

        Returns:
            Contents with 'assistant' mapped to the 'model' role
        """
        contents = []

        for msg in history:
            if msg.role == "user":
                contents.append(types.Content(
                    role="user",
                    parts=[types.Part(text=msg.content)]
                ))
            elif msg.role == "assistant":
                contents.append(types.Content(
                    role="model",
                    parts=[types.Part(text=msg.content)]
                ))

        return contents

    def _build_config(
        self,
        system_prompt: str,
        tool_declarations: Sequence[ToolDeclaration]
    ) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            safety_settings=DEFAULT_SAFETY_SETTINGS,
            tools=[types.Tool(function_declarations=[
                to_function_declaration(d) for d in tool_declarations
            ])],
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )
        if self._temperature is not None:
            config.temperature = self._temperature
        return config

    def start_round(
        self,
        history: Sequence[ChatMessage],
        system_prompt: str,
        tool_declarations: Sequence[ToolDeclaration],
    ) -> chats.AsyncChat:
        if self._client is None:
            raise RuntimeError("Gemini not initialized")

        return self._client.aio.chats.create(
            model=self._model,
            config=self._build_config(system_prompt, tool_declarations),
            history=self._convert_history(history),
        )

    def _extract_text(self, response: types.GenerateContentResponse) -> str | None:
        """Extract text content from a Gemini response.

        Only text parts are joined, so responses that also carry function
        calls do not trigger the SDK's mixed-content warning.

        Args:
            response: Gemini GenerateContentResponse

        Returns:
            Text content, or None when the response has no text parts
        """
        if response.candidates:
            candidate = response.candidates[0]
            if candidate.content and candidate.content.parts:
                texts = [part.text for part in candidate.content.parts if part.text]
                if texts:
                    return "".join(texts)
        return None

    def _to_reply(self, response: types.GenerateContentResponse) -> ModelReply:
        tool_calls = [
            ToolCallRequest(name=call.name or "", args=dict(call.args or {}))
            for call in (response.function_calls or [])
        ]

        usage = None
        if response.usage_metadata:
            usage = {
                "prompt_tokens": response.usage_metadata.prompt_token_count or 0,
                "completion_tokens": response.usage_metadata.candidates_token_count or 0,
                "total_tokens": response.usage_metadata.total_token_count or 0
            }

        return ModelReply(
            text=self._extract_text(response),
            tool_calls=tool_calls,
            model=self._model,
            usage=usage,
        )

    async def send_turn(
        self,
        handle: chats.AsyncChat,
        content: str | Sequence[FunctionResponse],
    ) -> ModelReply:
        if isinstance(content, str):
            message: str | list[types.Part] = content
        else:
            message = [
                types.Part.from_function_response(name=r.name, response=r.response)
                for r in content
            ]

        response = await handle.send_message(message)
        return self._to_reply(response)

    async def close(self) -> None:
        """Close the Gemini client.

        Note: The Google GenAI client doesn't require explicit closing,
        but we implement this for interface consistency.
        """
        pass
