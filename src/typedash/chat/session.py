"""Conversation session driving multi-round tool calling.

A session owns the message history and the status state machine:

    idle -> sending -> calling-function <-> awaiting-confirmation
                    -> generating -> ... -> idle

One turn runs at a time. Each turn opens a model round, executes the tools
the model asks for (write tools only after confirmation), feeds the results
back, and stops when the model answers without tool calls or the iteration
cap is reached.
"""

import time
from collections.abc import Callable, Sequence
from typing import Any

from ..config import (
    DENIED_MODEL_MESSAGE,
    DENIED_RECORD_MESSAGE,
    MAX_HISTORY,
    MAX_ITERATIONS,
    RATE_LIMIT_MS,
)
from ..errors import ModelBackendError, ToolExecutionError, classify_model_error
from ..llm import ChatMessage, FunctionResponse, LLMProvider, ToolCallRequest
from ..prompts import build_system_prompt
from ..search import CollectionSchema
from ..tools import TOOL_DECLARATIONS, ToolExecutor, describe_action, is_write_tool
from .confirmation import ConfirmationGate
from .materializer import materialize
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


class _TurnAbandoned(Exception):
    """The session was cleared while a turn was in flight."""


def messages_to_history(messages: Sequence[Message]) -> list[ChatMessage]:
    """Convert chat messages to model history, skipping errors and placeholders."""
    return [
        ChatMessage(role=m.role.value, content=m.content)
        for m in messages
        if m.role in (MessageRole.USER, MessageRole.ASSISTANT) and not m.is_loading
    ]


class ConversationSession:
    """A chat conversation with tool calling against a search backend.

    Hidden design decisions:
    - Status state machine and input gating
    - Tool-calling loop and iteration cap
    - Confirmation of write tools
    - History truncation and rate limiting
    """

    def __init__(
        self,
        llm: LLMProvider,
        executor: ToolExecutor,
        collections: Sequence[CollectionSchema] | None = None,
        selected_collection: str | None = None,
        max_history: int = MAX_HISTORY,
        max_iterations: int = MAX_ITERATIONS,
        rate_limit_ms: int = RATE_LIMIT_MS,
        clock: Callable[[], float] = time.monotonic,
        on_status_change: Callable[[ConversationStatus], None] | None = None,
        on_pending_action: Callable[[PendingAction], None] | None = None,
        on_table_data: Callable[[TableResult], None] | None = None,
    ):
        """Initialize the session.

        Args:
            llm: Model backend
            executor: Tool executor bound to the search backend
            collections: Collection catalogue used in the system prompt
            selected_collection: Default collection for ambiguous requests
            max_history: Messages kept before the oldest are dropped
            max_iterations: Tool-calling rounds allowed per turn
            rate_limit_ms: Minimum gap between accepted sends
            clock: Time source for rate limiting, in seconds
            on_status_change: Called on every status transition
            on_pending_action: Called when a write action awaits confirmation
            on_table_data: Called when a turn derives a table
        """
        self._llm = llm
        self._executor = executor
        self._collections: list[CollectionSchema] = list(collections or [])
        self._selected_collection = selected_collection
        self._max_history = max_history
        self._max_iterations = max_iterations
        self._rate_limiter = RateLimiter(rate_limit_ms, clock)
        self._on_status_change = on_status_change
        self._on_table_data = on_table_data
        self._debug_callback: Any | None = None

        self._messages: list[Message] = []
        self._status = ConversationStatus.IDLE
        self._table_data: TableResult | None = None
        self._last_error: ModelBackendError | None = None
        self._epoch = 0
        self._gate = ConfirmationGate(set_status=self._set_status, listener=on_pending_action)

    @property
    def messages(self) -> list[Message]:
        """Get a copy of the visible messages, oldest first."""
        return list(self._messages)

    @property
    def status(self) -> ConversationStatus:
        """Get the current status."""
        return self._status

    @property
    def pending_action(self) -> PendingAction | None:
        """Get the write action awaiting confirmation, if any."""
        return self._gate.pending_action

    @property
    def table_data(self) -> TableResult | None:
        """Get the most recently derived table."""
        return self._table_data

    @property
    def last_error(self) -> ModelBackendError | None:
        """Get the classified error of the most recent turn, if it failed."""
        return self._last_error

    @property
    def collections(self) -> list[CollectionSchema]:
        """Get the collection catalogue."""
        return list(self._collections)

    @property
    def selected_collection(self) -> str | None:
        """Get the default collection."""
        return self._selected_collection

    def set_catalogue(
        self,
        collections: Sequence[CollectionSchema],
        selected_collection: str | None = None
    ) -> None:
        """Replace the collection catalogue and the selected collection."""
        self._collections = list(collections)
        self._selected_collection = selected_collection

    def select_collection(self, name: str | None) -> None:
        """Change the default collection."""
        self._selected_collection = name

    async def refresh_catalogue(self) -> list[CollectionSchema]:
        """Reload the collection catalogue from the search backend."""
        self._collections = await self._executor.backend.list_collections()
        return self.collections

    def set_pending_action_listener(self, listener: Callable[[PendingAction], None] | None) -> None:
        """Set the callback notified when a write action awaits confirmation."""
        self._gate.set_listener(listener)

    def set_debug_callback(self, callback: Any) -> None:
        """Set the debug callback for detailed execution logging.

        Args:
            callback: Callable(level: str, component: str, message: str)
                      level: 'debug', 'info', 'warning', 'error'
                      component: Source component name
                      message: Log message
        """
        self._debug_callback = callback
        self._executor.set_debug_callback(callback)

    def _debug(self, level: str, component: str, message: str) -> None:
        """Send a debug log message if callback is set."""
        if self._debug_callback:
            self._debug_callback(level, component, message)

    def _set_status(self, status: ConversationStatus) -> None:
        if status == self._status:
            return
        self._status = status
        self._debug("debug", "Session", f"Status: {status.value}")
        if self._on_status_change:
            self._on_status_change(status)

    def _check_current(self, epoch: int) -> None:
        if epoch != self._epoch:
            raise _TurnAbandoned()

    async def send_message(self, text: str) -> Message | None:
        """Send a user message and run the turn to completion.

        The send is ignored (returns None) when the text is blank, a turn is
        already running, the model backend is not initialized, or the previous
        accepted send was too recent.

        Args:
            text: The user's message

        Returns:
            The final assistant (or error) message, or None if the send was
            ignored or the session was cleared mid-turn
        """
        text = text.strip()
        if not text or self._status != ConversationStatus.IDLE:
            return None
        if not self._llm.is_initialized():
            return None
        if not self._rate_limiter.try_acquire():
            self._debug("debug", "Session", "Send ignored: rate limited")
            return None

        epoch = self._epoch
        history = messages_to_history(self._messages)
        placeholder = Message(role=MessageRole.ASSISTANT, content="", is_loading=True)
        self._messages.extend([Message(role=MessageRole.USER, content=text), placeholder])
        self._set_status(ConversationStatus.SENDING)

        try:
            try:
                result = await self._run_turn(epoch, text, history)
            except _TurnAbandoned:
                self._debug("info", "Session", "Turn abandoned after clear")
                return None
            except Exception as e:
                if epoch != self._epoch:
                    return None
                error = classify_model_error(e)
                self._debug("error", "Session", f"Turn failed: {e}")
                self._last_error = error
                final = Message(id=placeholder.id, role=MessageRole.ERROR, content=str(error))
            else:
                self._last_error = None
                final = Message(
                    id=placeholder.id,
                    role=MessageRole.ASSISTANT,
                    content=result.text,
                    table_data=result.table_data,
                    function_calls=result.function_calls,
                )
                if result.table_data is not None:
                    self._table_data = result.table_data
                    if self._on_table_data:
                        self._on_table_data(result.table_data)

            if epoch != self._epoch:
                return None
            self._messages = [final if m.id == placeholder.id else m for m in self._messages]
            self._messages = self._messages[-self._max_history:]
            return final
        finally:
            if epoch == self._epoch:
                self._set_status(ConversationStatus.IDLE)

    async def _run_turn(
        self,
        epoch: int,
        text: str,
        history: list[ChatMessage]
    ) -> SendMessageResult:
        """Run one model round with tool calling."""
        system_prompt = build_system_prompt(self._collections, self._selected_collection)
        handle = self._llm.start_round(history, system_prompt, TOOL_DECLARATIONS)

        self._debug("info", "LLM", f"Sending user message ({len(history)} history turns)")
        reply = await self._llm.send_turn(handle, text)
        self._check_current(epoch)

        records: list[FunctionCallRecord] = []
        iterations = 0

        while iterations < self._max_iterations and reply.tool_calls:
            self._set_status(ConversationStatus.CALLING_FUNCTION)
            self._debug("info", "LLM", f"Round {iterations + 1}: {len(reply.tool_calls)} tool call(s)")

            responses: list[FunctionResponse] = []
            for call in reply.tool_calls:
                record, response = await self._invoke_tool(call)
                self._check_current(epoch)
                records.append(record)
                responses.append(response)

            self._set_status(ConversationStatus.GENERATING)
            reply = await self._llm.send_turn(handle, responses)
            self._check_current(epoch)
            iterations += 1

        if reply.tool_calls:
            self._debug("warning", "LLM", f"Stopped after {self._max_iterations} tool rounds")

        text_out, table = materialize(reply.text or "", records)
        return SendMessageResult(text=text_out, table_data=table, function_calls=records)

    async def _invoke_tool(self, call: ToolCallRequest) -> tuple[FunctionCallRecord, FunctionResponse]:
        """Run one tool call, confirming write tools first.

        Denials and tool failures become error payloads; they never abort the round.
        """
        if is_write_tool(call.name):
            action = PendingAction(
                tool_name=call.name,
                args=call.args,
                description=describe_action(call.name, call.args),
            )
            self._debug("info", "Confirm", f"Awaiting confirmation: {action.description}")
            if not await self._gate.request_confirmation(action):
                self._debug("info", "Confirm", f"Denied: {call.name}")
                return (
                    FunctionCallRecord(name=call.name, args=call.args, result={"error": DENIED_RECORD_MESSAGE}),
                    FunctionResponse(name=call.name, response={"error": DENIED_MODEL_MESSAGE}),
                )

        try:
            result = await self._executor.execute(call.name, call.args)
        except ToolExecutionError as e:
            return (
                FunctionCallRecord(name=call.name, args=call.args, result={"error": str(e)}),
                FunctionResponse(name=call.name, response={"error": str(e)}),
            )

        return (
            FunctionCallRecord(name=call.name, args=call.args, result=result),
            FunctionResponse(name=call.name, response={"result": result}),
        )

    def respond_to_confirmation(self, confirmed: bool) -> bool:
        """Approve or deny the pending write action.

        Returns:
            False if no action was pending
        """
        return self._gate.resolve(confirmed)

    def clear_messages(self) -> None:
        """Discard all messages and abandon any in-flight turn.

        A pending confirmation is denied so the waiting round does not leak.
        """
        self._epoch += 1
        self._gate.cancel()
        self._messages = []
        self._last_error = None
        self._set_status(ConversationStatus.IDLE)

    async def close(self) -> None:
        """Tear down the session and release the model backend."""
        self.clear_messages()
        self._rate_limiter.reset()
        await self._llm.close()
