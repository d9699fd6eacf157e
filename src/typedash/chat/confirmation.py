"""Human confirmation for write tool calls.

A write call suspends the tool-calling round on a future until an external
actor (the confirmation UI) resolves it.
"""

import asyncio
from collections.abc import Callable

from ..errors import ConfirmationError
from .models import ConversationStatus, PendingAction

StatusSetter = Callable[[ConversationStatus], None]
PendingListener = Callable[[PendingAction], None]


class ConfirmationGate:
    """Holds at most one pending write action and the future awaiting its decision.

    Hidden design decisions:
    - Future-based suspension of the calling coroutine
    - Status transitions around the wait
    - Auto-deny on abandonment
    """

    def __init__(
        self,
        set_status: StatusSetter | None = None,
        listener: PendingListener | None = None
    ):
        """Initialize the gate.

        Args:
            set_status: Called with AWAITING_CONFIRMATION and CALLING_FUNCTION
            listener: Notified when an action starts waiting for approval
        """
        self._set_status = set_status or (lambda status: None)
        self._listener = listener
        self._pending: PendingAction | None = None
        self._future: asyncio.Future[bool] | None = None

    @property
    def pending_action(self) -> PendingAction | None:
        """Get the action awaiting approval, if any."""
        return self._pending

    def set_listener(self, listener: PendingListener | None) -> None:
        """Set the callback notified when an action starts waiting."""
        self._listener = listener

    async def request_confirmation(self, action: PendingAction) -> bool:
        """Wait until the action is approved or denied.

        Args:
            action: The write action to confirm

        Returns:
            True if approved, False if denied or abandoned

        Raises:
            ConfirmationError: If another confirmation is outstanding
        """
        if self._future is not None:
            raise ConfirmationError(
                f"Cannot confirm {action.tool_name}: "
                f"{self._pending.tool_name if self._pending else 'another action'} is still pending"
            )

        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._future = future
        self._pending = action
        self._set_status(ConversationStatus.AWAITING_CONFIRMATION)

        try:
            if self._listener:
                self._listener(action)
            return await future
        finally:
            if self._future is future:
                self._future = None
                self._pending = None

    def resolve(self, confirmed: bool) -> bool:
        """Deliver the approver's decision.

        Args:
            confirmed: True to allow the action, False to deny it

        Returns:
            False if nothing was pending
        """
        future = self._future
        if future is None or future.done():
            return False

        self._future = None
        self._pending = None
        self._set_status(ConversationStatus.CALLING_FUNCTION)
        future.set_result(confirmed)
        return True

    def cancel(self) -> None:
        """Abandon any pending action by denying it, without a status change."""
        future = self._future
        self._future = None
        self._pending = None
        if future is not None and not future.done():
            future.set_result(False)
