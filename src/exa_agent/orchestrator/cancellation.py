"""Cooperative cancellation of in-flight orchestrator work.

Every backend call, approval wait and tool execution runs under its own
CancellationToken, minted fresh so a stale interrupt can never abort a later
call. Backend calls and approval waits are cancelled outright; tool
executions are only flagged and allowed to finish.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised from ``CancellationController.run`` when its token was cancelled."""

    pass


class CancellationToken:
    """Cancellation handle for one operation.

    Args:
        hard: Cancel the underlying task on ``cancel()``. When False the
            operation runs to completion and only the flag is set.
    """

    def __init__(self, *, hard: bool = True) -> None:
        self.hard = hard
        self._cancelled = False
        self._task: asyncio.Future | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self.hard and self._task is not None and not self._task.done():
            self._task.cancel()


class CancellationController:
    """Holds the single live token of the current run."""

    def __init__(self) -> None:
        self._current: CancellationToken | None = None

    @property
    def current(self) -> CancellationToken | None:
        return self._current

    def mint(self, *, hard: bool = True) -> CancellationToken:
        """Create the token for the next operation, replacing the previous one."""
        self._current = CancellationToken(hard=hard)
        return self._current

    def cancel_current(self) -> bool:
        """Cancel the live token, if any.

        Returns:
            True if there was a token to cancel.
        """
        token = self._current
        if token is None or token.cancelled:
            return False
        token.cancel()
        return True

    def release(self, token: CancellationToken) -> None:
        if self._current is token:
            self._current = None

    async def run(self, token: CancellationToken, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` under ``token``.

        Raises:
            OperationCancelled: If a hard token was cancelled before or during
                the operation. Soft tokens never raise; callers check
                ``token.cancelled`` after the operation returns.
        """
        task = asyncio.ensure_future(awaitable)
        token._task = task
        if token.cancelled and token.hard:
            task.cancel()
        try:
            result = await task
        except asyncio.CancelledError:
            if token.cancelled and token.hard and task.cancelled():
                raise OperationCancelled() from None
            raise
        finally:
            self.release(token)
        if token.cancelled and token.hard:
            raise OperationCancelled()
        return result
