"""Tests for ConversationSession turns, confirmation and history handling."""
import asyncio

import pytest

from typedash.chat import ConversationSession, ConversationStatus, MessageRole
from typedash.config import MAX_HISTORY, MAX_ITERATIONS
from typedash.errors import ModelNetworkError, ModelRateLimitError
from typedash.llm import ChatMessage, FunctionResponse
from typedash.tools import ToolExecutor

from conftest import FakeClock, FakeLLMProvider, text_reply, tool_reply

DELETE_CALL = ("delete_document", {"collection_name": "products", "document_id": "1"})


def make_session(backend, replies=(), clock=None, **kwargs):
    llm = FakeLLMProvider(replies)
    session = ConversationSession(
        llm,
        ToolExecutor(backend),
        clock=clock or FakeClock(),
        **kwargs,
    )
    return session, llm


class BlockingLLMProvider(FakeLLMProvider):
    """Fake provider whose first send_turn waits until released."""

    def __init__(self, replies=()):
        super().__init__(replies)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self._blocked = False

    async def send_turn(self, handle, content):
        if not self._blocked:
            self._blocked = True
            self.entered.set()
            await self.release.wait()
        return await super().send_turn(handle, content)


def deciding_listener(session, decision):
    """Pending-action listener that answers on the next loop iteration."""
    def listener(action):
        asyncio.get_running_loop().call_soon(session.respond_to_confirmation, decision)
    return listener


class TestInputGating:
    """Tests for sends that are ignored."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text(self, mock_backend, text):
        """Test that blank input is ignored."""
        session, llm = make_session(mock_backend)

        assert await session.send_message(text) is None
        assert session.messages == []
        assert llm.rounds == []

    @pytest.mark.asyncio
    async def test_uninitialized_model(self, mock_backend):
        """Test that sends are ignored until the model backend is initialized."""
        llm = FakeLLMProvider([text_reply("hi")], initialized=False)
        session = ConversationSession(llm, ToolExecutor(mock_backend), clock=FakeClock())

        assert await session.send_message("hello") is None
        assert session.messages == []

    @pytest.mark.asyncio
    async def test_rate_limited(self, mock_backend, clock):
        """Test that a second send within two seconds is ignored."""
        session, llm = make_session(mock_backend, [text_reply("one"), text_reply("two")], clock=clock)

        assert await session.send_message("first") is not None
        clock.advance(1.0)
        assert await session.send_message("second") is None
        assert len(session.messages) == 2

        clock.advance(1.0)
        reply = await session.send_message("second")
        assert reply.content == "two"
        assert len(session.messages) == 4

    @pytest.mark.asyncio
    async def test_busy_while_awaiting_confirmation(self, mock_backend, clock):
        """Test that input is refused while a turn is in progress."""
        waiting = asyncio.Event()
        session, llm = make_session(
            mock_backend,
            [tool_reply(DELETE_CALL), text_reply("Deleted.")],
            clock=clock,
            on_pending_action=lambda action: waiting.set(),
        )

        task = asyncio.create_task(session.send_message("delete product 1"))
        await waiting.wait()
        clock.advance(10)

        assert session.status == ConversationStatus.AWAITING_CONFIRMATION
        assert await session.send_message("something else") is None

        session.respond_to_confirmation(True)
        final = await task
        assert final.content == "Deleted."
        assert [m.content for m in session.messages] == ["delete product 1", "Deleted."]


class TestTurns:
    """Tests for complete turns."""

    @pytest.mark.asyncio
    async def test_plain_reply(self, mock_backend, products_schema):
        """Test a turn without tool calls."""
        statuses = []
        session, llm = make_session(
            mock_backend,
            [text_reply("Hello! Ask me about your collections.")],
            collections=[products_schema],
            selected_collection="products",
            on_status_change=statuses.append,
        )

        final = await session.send_message("  hi  ")

        assert final.role == MessageRole.ASSISTANT
        assert final.content == "Hello! Ask me about your collections."
        assert final.table_data is None
        assert final.function_calls == []
        assert [(m.role, m.content) for m in session.messages] == [
            (MessageRole.USER, "hi"),
            (MessageRole.ASSISTANT, "Hello! Ask me about your collections."),
        ]
        assert not any(m.is_loading for m in session.messages)
        assert statuses == [ConversationStatus.SENDING, ConversationStatus.IDLE]
        assert session.status == ConversationStatus.IDLE

        handle = llm.rounds[0]
        assert handle.sent == ["hi"]
        assert handle.history == []
        assert 'Collection "products"' in handle.system_prompt
        assert 'currently viewing the collection "products"' in handle.system_prompt
        assert [d.name for d in handle.tool_declarations][0] == "list_collections"

    @pytest.mark.asyncio
    async def test_history_is_passed_to_next_round(self, mock_backend, clock):
        """Test that prior user and assistant messages become model history."""
        session, llm = make_session(mock_backend, [text_reply("A1"), text_reply("A2")], clock=clock)

        await session.send_message("Q1")
        clock.advance(2)
        await session.send_message("Q2")

        assert llm.rounds[1].history == [
            ChatMessage(role="user", content="Q1"),
            ChatMessage(role="assistant", content="A1"),
        ]

    @pytest.mark.asyncio
    async def test_show_data_builds_table(self, memory_backend, products_schema):
        """Test a search turn producing a sanitized table."""
        tables = []
        statuses = []
        session, llm = make_session(
            memory_backend,
            [
                tool_reply(("search_documents", {"collection_name": "products", "q": "*", "query_by": "title"})),
                text_reply("Here are the products."),
            ],
            collections=[products_schema],
            on_table_data=tables.append,
            on_status_change=statuses.append,
        )

        final = await session.send_message("show data")

        table = final.table_data
        assert table.total_found == 2
        assert table.collection_name == "products"
        assert table.columns == ["id", "title", "tags", "price", "title_embedding"]
        assert table.rows[0]["title_embedding"] == "[embedding: 16 dimensions]"
        assert final.content == "Here are the products."
        assert session.table_data == table
        assert tables == [table]
        assert statuses == [
            ConversationStatus.SENDING,
            ConversationStatus.CALLING_FUNCTION,
            ConversationStatus.GENERATING,
            ConversationStatus.IDLE,
        ]

        responses = llm.rounds[0].sent[1]
        assert isinstance(responses[0], FunctionResponse)
        assert responses[0].name == "search_documents"
        docs = responses[0].response["result"]["documents"]
        assert docs[1]["title_embedding"] == "[embedding: 16 dimensions]"

    @pytest.mark.asyncio
    async def test_long_reply_is_condensed(self, memory_backend):
        """Test that narration of tabled rows is shortened."""
        narration = "I found 2 products in the catalogue. " + "The first is a desk lamp. " * 10
        session, _ = make_session(
            memory_backend,
            [
                tool_reply(("search_documents", {"collection_name": "products", "query_by": "title"})),
                text_reply(narration),
            ],
        )

        final = await session.send_message("show data")

        assert final.content == "I found 2 products in the catalogue."

    @pytest.mark.asyncio
    async def test_multiple_calls_in_one_round(self, mock_backend):
        """Test that every call of a round is answered in one batch."""
        session, llm = make_session(
            mock_backend,
            [
                tool_reply(
                    ("count_documents", {"collection_name": "products"}),
                    ("get_collection_schema", {"collection_name": "products"}),
                ),
                text_reply("There are 2 products."),
            ],
        )

        final = await session.send_message("how many products and what fields?")

        assert [c.name for c in final.function_calls] == ["count_documents", "get_collection_schema"]
        assert [r.name for r in llm.rounds[0].sent[1]] == ["count_documents", "get_collection_schema"]
        assert final.function_calls[0].result == {"count": 2, "collection": "products"}
        assert final.table_data.columns == ["name", "type", "facet", "optional", "index"]

    @pytest.mark.asyncio
    async def test_iteration_cap(self, mock_backend):
        """Test that tool rounds stop after the iteration limit."""
        list_call = ("list_collections", {})
        session, llm = make_session(
            mock_backend,
            [tool_reply(list_call) for _ in range(MAX_ITERATIONS + 3)],
        )

        final = await session.send_message("loop forever")

        sent = llm.rounds[0].sent
        assert len(sent) == 1 + MAX_ITERATIONS
        assert len(final.function_calls) == MAX_ITERATIONS
        assert mock_backend.list_collections.await_count == MAX_ITERATIONS
        assert final.table_data.collection_name == "Collections"
        assert session.status == ConversationStatus.IDLE

    @pytest.mark.asyncio
    async def test_tool_error_does_not_abort_turn(self, mock_backend):
        """Test that a failing tool is reported to the model and the turn continues."""
        mock_backend.get_document.side_effect = RuntimeError("Could not find a document with id: 9")
        session, llm = make_session(
            mock_backend,
            [
                tool_reply(("get_document", {"collection_name": "products", "document_id": "9"})),
                text_reply("That document does not exist."),
            ],
        )

        final = await session.send_message("get document 9")

        assert final.role == MessageRole.ASSISTANT
        assert final.content == "That document does not exist."
        assert final.function_calls[0].result == {"error": "Could not find a document with id: 9"}
        assert final.table_data is None
        assert llm.rounds[0].sent[1][0].response == {"error": "Could not find a document with id: 9"}

    @pytest.mark.asyncio
    async def test_model_error_becomes_error_message(self, mock_backend, clock):
        """Test that a model failure is shown as an error message and not sent as history."""
        session, llm = make_session(
            mock_backend,
            [RuntimeError("429 RESOURCE_EXHAUSTED"), text_reply("ok")],
            clock=clock,
        )

        final = await session.send_message("hello")

        assert final.role == MessageRole.ERROR
        assert final.content == str(ModelRateLimitError())
        assert [m.role for m in session.messages] == [MessageRole.USER, MessageRole.ERROR]
        assert session.status == ConversationStatus.IDLE

        clock.advance(2)
        await session.send_message("again")
        assert llm.rounds[1].history == [ChatMessage(role="user", content="hello")]

    @pytest.mark.asyncio
    async def test_model_error_after_tool_call(self, mock_backend):
        """Test that a failure in a later round still ends the turn cleanly."""
        session, _ = make_session(
            mock_backend,
            [tool_reply(("list_collections", {})), RuntimeError("")],
        )

        final = await session.send_message("list")

        assert final.role == MessageRole.ERROR
        assert final.content == "An unknown error occurred"
        assert session.status == ConversationStatus.IDLE


class TestConfirmation:
    """Tests for write tool confirmation."""

    @pytest.mark.asyncio
    async def test_denied_delete_is_not_executed(self, mock_backend):
        """Test that a denied write never reaches the backend."""
        session, llm = make_session(
            mock_backend,
            [tool_reply(DELETE_CALL), text_reply("Okay, I won't delete it.")],
        )
        session.set_pending_action_listener(deciding_listener(session, False))

        final = await session.send_message("delete product 1")

        mock_backend.delete_document.assert_not_awaited()
        assert final.function_calls[0].result == {"error": "User denied this action"}
        assert llm.rounds[0].sent[1][0].response == {"error": "User denied this action. Do not retry."}
        assert final.content == "Okay, I won't delete it."
        assert session.pending_action is None

    @pytest.mark.asyncio
    async def test_approved_delete_runs(self, mock_backend):
        """Test that an approved write is executed."""
        statuses = []
        actions = []
        session, llm = make_session(
            mock_backend,
            [tool_reply(DELETE_CALL), text_reply("Deleted.")],
            on_status_change=statuses.append,
        )

        def listener(action):
            actions.append((action, session.pending_action, session.status))
            asyncio.get_running_loop().call_soon(session.respond_to_confirmation, True)

        session.set_pending_action_listener(listener)

        final = await session.send_message("delete product 1")

        mock_backend.delete_document.assert_awaited_once_with("products", "1")
        assert final.function_calls[0].result == {"success": True, "deleted": "1"}
        action, pending, status = actions[0]
        assert action.description == 'Delete document "1" from "products"'
        assert pending == action
        assert status == ConversationStatus.AWAITING_CONFIRMATION
        assert statuses == [
            ConversationStatus.SENDING,
            ConversationStatus.CALLING_FUNCTION,
            ConversationStatus.AWAITING_CONFIRMATION,
            ConversationStatus.CALLING_FUNCTION,
            ConversationStatus.GENERATING,
            ConversationStatus.IDLE,
        ]

    @pytest.mark.asyncio
    async def test_read_tools_need_no_confirmation(self, mock_backend):
        """Test that reads run without asking."""
        asked = []
        session, _ = make_session(
            mock_backend,
            [tool_reply(("get_document", {"collection_name": "products", "document_id": "1"}))],
            on_pending_action=asked.append,
        )

        await session.send_message("get product 1")

        assert asked == []
        mock_backend.get_document.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_later_writes(self, mock_backend, clock):
        """Test that a crashed confirmation UI fails one turn only."""
        session, _ = make_session(
            mock_backend,
            [tool_reply(DELETE_CALL), tool_reply(DELETE_CALL), text_reply("Deleted.")],
            clock=clock,
        )

        def broken(action):
            raise RuntimeError("confirmation UI unavailable")

        session.set_pending_action_listener(broken)
        first = await session.send_message("delete product 1")

        assert first.role == MessageRole.ERROR
        assert session.pending_action is None
        assert session.status == ConversationStatus.IDLE

        session.set_pending_action_listener(deciding_listener(session, True))
        clock.advance(2)
        second = await session.send_message("delete product 1")

        assert second.role == MessageRole.ASSISTANT
        assert second.content == "Deleted."
        mock_backend.delete_document.assert_awaited_once_with("products", "1")

    def test_respond_without_pending(self, mock_backend):
        """Test that a stray confirmation is ignored."""
        session, _ = make_session(mock_backend)
        assert session.respond_to_confirmation(True) is False
        assert session.status == ConversationStatus.IDLE

    @pytest.mark.asyncio
    async def test_clear_while_pending_denies_and_abandons(self, mock_backend):
        """Test that clearing auto-denies the pending write and drops the turn."""
        session, llm = make_session(mock_backend, [tool_reply(DELETE_CALL), text_reply("late")])

        def listener(action):
            asyncio.get_running_loop().call_soon(session.clear_messages)

        session.set_pending_action_listener(listener)

        result = await session.send_message("delete product 1")

        assert result is None
        mock_backend.delete_document.assert_not_awaited()
        assert session.messages == []
        assert session.pending_action is None
        assert session.status == ConversationStatus.IDLE
        assert len(llm.rounds[0].sent) == 1


class TestClearDuringTurn:
    """Tests for turns abandoned by clear_messages."""

    @pytest.mark.asyncio
    async def test_stale_turn_leaves_new_turn_alone(self, mock_backend, clock):
        """Test that a turn cleared mid-request cannot overwrite a newer turn."""
        statuses = []
        llm = BlockingLLMProvider([text_reply("fresh answer"), text_reply("stale answer")])
        session = ConversationSession(
            llm,
            ToolExecutor(mock_backend),
            clock=clock,
            on_status_change=statuses.append,
        )

        stale = asyncio.create_task(session.send_message("slow question"))
        await llm.entered.wait()

        session.clear_messages()
        clock.advance(2)
        fresh = await session.send_message("fast question")

        assert fresh.content == "fresh answer"
        statuses.clear()

        llm.release.set()
        assert await stale is None

        assert [m.content for m in session.messages] == ["fast question", "fresh answer"]
        assert session.status == ConversationStatus.IDLE
        assert statuses == []
        assert session.last_error is None

    @pytest.mark.asyncio
    async def test_stale_turn_failure_is_discarded(self, mock_backend, clock):
        """Test that an error from an abandoned turn is not recorded."""
        llm = BlockingLLMProvider([RuntimeError("429 RESOURCE_EXHAUSTED")])
        session = ConversationSession(llm, ToolExecutor(mock_backend), clock=clock)

        stale = asyncio.create_task(session.send_message("slow question"))
        await llm.entered.wait()
        session.clear_messages()

        llm.release.set()

        assert await stale is None
        assert session.messages == []
        assert session.last_error is None


class TestSessionState:
    """Tests for error state and collection selection."""

    @pytest.mark.asyncio
    async def test_last_error_tracks_retryable_failures(self, mock_backend, clock):
        """Test that the classified error is kept until the next successful turn."""
        session, _ = make_session(
            mock_backend,
            [RuntimeError("Failed to fetch"), text_reply("ok")],
            clock=clock,
        )

        await session.send_message("hello")
        assert isinstance(session.last_error, ModelNetworkError)
        assert session.last_error.is_retryable()

        clock.advance(2)
        await session.send_message("hello again")
        assert session.last_error is None

    @pytest.mark.asyncio
    async def test_auth_error_is_not_retryable(self, mock_backend):
        """Test that a rejected key is reported as permanent."""
        session, _ = make_session(mock_backend, [RuntimeError("API_KEY_INVALID")])

        await session.send_message("hello")

        assert not session.last_error.is_retryable()

    @pytest.mark.asyncio
    async def test_select_collection_changes_prompt(self, mock_backend, products_schema, clock):
        """Test that the selected collection is used for the next round."""
        session, llm = make_session(
            mock_backend,
            [text_reply("a"), text_reply("b")],
            clock=clock,
            collections=[products_schema],
        )

        await session.send_message("first")
        session.select_collection("products")
        clock.advance(2)
        await session.send_message("second")

        assert session.selected_collection == "products"
        assert "No collection is currently selected" in llm.rounds[0].system_prompt
        assert 'assume they mean "products"' in llm.rounds[1].system_prompt


class TestHistory:
    """Tests for history bounds and lifecycle."""

    def test_default_limits(self):
        """Test the default history and iteration limits."""
        assert MAX_HISTORY == 50
        assert MAX_ITERATIONS == 5

    @pytest.mark.asyncio
    async def test_history_is_truncated(self, mock_backend, clock):
        """Test that only the most recent messages are kept."""
        session, _ = make_session(
            mock_backend,
            [text_reply(f"A{i}") for i in range(3)],
            clock=clock,
            max_history=4,
        )

        for i in range(3):
            await session.send_message(f"Q{i}")
            clock.advance(2)

        assert [m.content for m in session.messages] == ["Q1", "A1", "Q2", "A2"]

    @pytest.mark.asyncio
    async def test_clear_messages(self, mock_backend):
        """Test that clearing empties the conversation."""
        session, _ = make_session(mock_backend, [text_reply("hi")])
        await session.send_message("hello")

        session.clear_messages()

        assert session.messages == []
        assert session.status == ConversationStatus.IDLE

    @pytest.mark.asyncio
    async def test_close(self, mock_backend):
        """Test that closing clears messages and releases the model backend."""
        session, llm = make_session(mock_backend, [text_reply("hi")])
        await session.send_message("hello")

        await session.close()

        assert llm.closed
        assert session.messages == []

    @pytest.mark.asyncio
    async def test_refresh_catalogue(self, mock_backend):
        """Test that the catalogue is reloaded from the backend."""
        session, _ = make_session(mock_backend)

        collections = await session.refresh_catalogue()

        assert [c.name for c in collections] == ["products"]
        assert session.collections == collections

    @pytest.mark.asyncio
    async def test_debug_callback_reaches_executor(self, mock_backend):
        """Test that session and tool events share one debug callback."""
        events = []
        session, _ = make_session(mock_backend, [tool_reply(("list_collections", {}))])
        session.set_debug_callback(lambda level, component, message: events.append(component))

        await session.send_message("list")

        assert "Session" in events
        assert "Tool" in events
