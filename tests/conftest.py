"""Pytest configuration and shared fixtures."""
import os
from collections.abc import Sequence
from typing import Any
from unittest.mock import AsyncMock

import pytest

from typedash.llm import ChatMessage, FunctionResponse, LLMProvider, ModelReply, ToolCallRequest
from typedash.search import (
    CollectionSchema,
    InMemorySearchBackend,
    SearchBackend,
    SearchHit,
    SearchResponse,
)
from typedash.tools import ToolDeclaration


class FakeRound:
    """Conversation handle recorded by FakeLLMProvider."""

    def __init__(self, history, system_prompt, tool_declarations):
        self.history = list(history)
        self.system_prompt = system_prompt
        self.tool_declarations = list(tool_declarations)
        self.sent: list[Any] = []


class FakeLLMProvider(LLMProvider):
    """Scripted provider: each send_turn pops the next reply.

    Replies may be ModelReply instances or exceptions to raise.
    """

    def __init__(self, replies: Sequence[ModelReply | Exception] = (), initialized: bool = True):
        self.replies = list(replies)
        self.rounds: list[FakeRound] = []
        self.closed = False
        self._initialized = initialized

    def initialize(self, api_key: str) -> None:
        self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    def disconnect(self) -> None:
        self._initialized = False

    def start_round(
        self,
        history: Sequence[ChatMessage],
        system_prompt: str,
        tool_declarations: Sequence[ToolDeclaration],
    ) -> FakeRound:
        handle = FakeRound(history, system_prompt, tool_declarations)
        self.rounds.append(handle)
        return handle

    async def send_turn(self, handle: FakeRound, content: str | Sequence[FunctionResponse]) -> ModelReply:
        handle.sent.append(content)
        if not self.replies:
            return ModelReply(text="")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def text_reply(text: str) -> ModelReply:
    return ModelReply(text=text, model="fake")


def tool_reply(*calls: tuple[str, dict[str, Any]], text: str | None = None) -> ModelReply:
    return ModelReply(
        text=text,
        tool_calls=[ToolCallRequest(name=name, args=args) for name, args in calls],
        model="fake",
    )


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "gemini": os.getenv("GEMINI_API_KEY"),
        "typesense": os.getenv("TYPESENSE_API_KEY"),
    }


@pytest.fixture
def products_schema():
    """Return a products collection with an embedding field."""
    return CollectionSchema.model_validate({
        "name": "products",
        "num_documents": 2,
        "fields": [
            {"name": "title", "type": "string"},
            {"name": "tags", "type": "string[]", "facet": True},
            {"name": "price", "type": "float", "optional": True},
            {"name": "title_embedding", "type": "float[]", "index": True},
        ],
    })


@pytest.fixture
def product_documents():
    """Return two product documents, one carrying a vector."""
    return [
        {"id": "1", "title": "Desk lamp", "tags": ["home"], "price": 19.5,
         "title_embedding": [0.1] * 16},
        {"id": "2", "title": "Office chair", "tags": ["office"], "price": 120.0,
         "title_embedding": [0.2] * 16},
    ]


@pytest.fixture
def memory_backend(products_schema, product_documents):
    """Return an in-memory backend holding the products collection."""
    return InMemorySearchBackend(
        collections=[products_schema],
        documents={"products": product_documents},
    )


@pytest.fixture
def mock_backend(products_schema, product_documents):
    """Return an AsyncMock search backend with canned responses."""
    backend = AsyncMock(spec=SearchBackend)
    backend.list_collections.return_value = [products_schema]
    backend.get_collection.return_value = products_schema
    backend.search_documents.return_value = SearchResponse(
        hits=[SearchHit(document=d) for d in product_documents],
        found=2,
        page=1,
        search_time_ms=3,
    )
    backend.get_document.return_value = product_documents[0]
    backend.delete_document.return_value = product_documents[0]
    return backend


@pytest.fixture
def clock():
    """Return a manually advanced clock."""
    return FakeClock()
