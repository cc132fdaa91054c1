"""
Per-request cancellation tokens.

A token is created for each request and shared between the caller and the
in-flight network operation. Cancellation is cooperative: the provider races
the network task against `wait()` and closes the response when the token
fires. There is no built-in timeout; compose one with the event loop:

    token = CancellationToken()
    asyncio.get_running_loop().call_later(30, token.cancel, "timeout")
"""

from __future__ import annotations

import asyncio as _asyncio
import logging as _logging
import typing as _typing

import flarecore.api.errors as errors

_logger = _logging.getLogger(__name__)


class CancellationToken:
    """Cancellation handle for one request."""

    def __init__(self) -> None:
        self._event = _asyncio.Event()
        self._reason: str | None = None
        self._callbacks: list[_typing.Callable[[CancellationToken], None]] = []

    def __repr__(self) -> str:
        state = f"cancelled, reason={self._reason!r}" if self.cancelled else "active"
        return f"<CancellationToken {state}>"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """
        Cancel the token.

        Returns:
            True if this call cancelled it, False if it was already cancelled.
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                _logger.exception("Cancellation callback %r failed", callback)
        return True

    def cancel_threadsafe(
        self,
        loop: _asyncio.AbstractEventLoop,
        reason: str | None = None,
    ) -> None:
        """Cancel from a thread that does not run `loop`."""
        loop.call_soon_threadsafe(self.cancel, reason)

    def add_callback(self, callback: _typing.Callable[[CancellationToken], None]) -> None:
        """Run `callback` once when the token is cancelled (now, if it already is)."""
        if self.cancelled:
            callback(self)
        else:
            self._callbacks.append(callback)

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise errors.CancelledError(self._reason or "Request cancelled")
