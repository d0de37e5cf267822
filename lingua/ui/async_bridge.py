"""Async Bridge.

Runs one asyncio event loop on a daemon thread so the Tk main loop is
never blocked by network calls.  Coroutines are submitted from the UI
thread; their results are marshalled back with ``widget.after(0, ...)``
because Tk widgets may only be touched from the main thread.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future
from typing import Any, Callable, Coroutine, Optional, TypeVar

import customtkinter as ctk

from lingua.logger import StructuredLogger

T = TypeVar("T")


class AsyncBridge:
    """Background event loop shared by every view.

    Parameters
    ----------
    logger:
        Structured logger instance.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger = logger
        self._loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
        self._thread: Optional[threading.Thread] = None

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def start(self) -> None:
        """Start the loop thread.  Idempotent."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self._run_loop, name="AsyncBridge", daemon=True,
        )
        self._thread.start()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future[T]:
        """Schedule *coro* on the loop thread."""
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def run(
        self,
        widget: ctk.CTkBaseClass | ctk.CTk,
        coro: Coroutine[Any, Any, T],
        on_done: Callable[[T], None],
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> Future[T]:
        """Run *coro* and deliver its outcome to *widget*'s main thread."""
        future = self.submit(coro)

        def _deliver(done: Future[T]) -> None:
            try:
                result = done.result()
            except BaseException as exc:
                self._logger.error("Background task failed: %s", exc, exc_info=exc)
                if on_error is not None:
                    self._after(widget, lambda: on_error(exc))
                return
            self._after(widget, lambda: on_done(result))

        future.add_done_callback(_deliver)
        return future

    def call_soon(self, widget: ctk.CTkBaseClass | ctk.CTk, callback: Callable[[], None]) -> None:
        """Run *callback* on the UI thread (safe from the loop thread)."""
        self._after(widget, callback)

    def _after(self, widget: ctk.CTkBaseClass | ctk.CTk, callback: Callable[[], None]) -> None:
        try:
            widget.after(0, callback)
        except RuntimeError:
            # Widget destroyed or main loop gone (window closing).
            self._logger.debug("Dropped UI callback: main loop not available.")

    def stop(self, timeout_s: float = 5.0) -> None:
        """Stop the loop and join its thread."""
        if self._thread is None:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout_s)
        if self._thread.is_alive():
            self._logger.warning("Async loop thread did not terminate within %.0f s.", timeout_s)
        self._thread = None
