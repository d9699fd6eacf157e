from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """A prior conversation turn replayed as model history."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user' or 'assistant'")
    content: str = Field(description="Content of the message")


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Name of the declared tool to call")
    args: dict[str, Any] = Field(default_factory=dict, description="Arguments for the call")


class FunctionResponse(BaseModel):
    """The result of a tool call, sent back to the model."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Name of the tool that produced this response")
    response: dict[str, Any] = Field(
        description="Either {'result': ...} on success or {'error': ...} on failure"
    )


class ModelReply(BaseModel):
    """One response from the model within a round."""

    model_config = ConfigDict(frozen=True)

    text: str | None = Field(default=None, description="Generated text, if any")
    tool_calls: list[ToolCallRequest] = Field(
        default_factory=list,
        description="Tool invocations requested by the model"
    )
    model: str = Field(default="", description="Model that generated the response")
    usage: dict[str, int] | None = Field(
        default=None,
        description="Token usage information"
    )
