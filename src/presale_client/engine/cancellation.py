"""
Cooperative cancellation for long-running awaits.

A CancellationToken is handed to receipt polling and other multi-step
operations. The wallet session cancels its current token whenever the
account or chain changes, which aborts every operation that was started
against the old account/chain at its next checkpoint.
"""

import asyncio
from typing import Optional

from .exceptions import OperationCancelledError


class CancellationToken:
    """
    One-shot cancellation flag with an awaitable sleep.

    Example:
        token = CancellationToken()
        await token.sleep(2.0)          # returns after 2s
        token.cancel("chain changed")
        await token.sleep(2.0)          # raises OperationCancelledError at once
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "cancelled")

    async def sleep(self, seconds: float) -> None:
        """
        Wait ``seconds`` unless cancelled first.

        Raises:
            OperationCancelledError: If the token is or becomes cancelled.
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            await asyncio.sleep(0)
            self.raise_if_cancelled()
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()
