"""Per-session cooperative cancellation."""

from __future__ import annotations

import asyncio

from ..infrastructure.errors import UserCancellation


class CancellationToken:
    """
    Wraps an asyncio.Event. Checked at step boundaries, before every attempt
    and after every completion call; an in-flight call is never interrupted.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UserCancellation()

    async def sleep(self, delay: float) -> None:
        """Wait up to `delay` seconds; return early and raise if cancelled."""
        if delay > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        self.raise_if_cancelled()
