"""Cooperative asyncio timer running one async action with a fixed delay.

The delay is measured from the end of one invocation to the start of the
next, so invocations never overlap. Exceptions raised by the action are
logged and handed to the registered error handlers; they never stop the
loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .constants import DEFAULT_LOOP_DELAY_S
from .errors import LoopClosedError

LOGGER = logging.getLogger(__name__)

LoopAction = Callable[[asyncio.Event], Awaitable[None]]
"""Async callable invoked once per iteration with the loop's stop event."""

ErrorHandler = Callable[[object, Exception], None]
"""Called as ``handler(sender, exc)`` for every failed iteration."""


class PeriodicLoop:
    def __init__(
        self,
        action: LoopAction,
        delay_s: float = DEFAULT_LOOP_DELAY_S,
        *,
        name: str = "periodic-loop",
    ) -> None:
        self._action = action
        self.delay_s = delay_s
        self.name = name
        self._error_handlers: list[ErrorHandler] = []
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._retiring: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def delay_s(self) -> float:
        return self._delay_s

    @delay_s.setter
    def delay_s(self, value: float) -> None:
        if value <= 0:
            raise ValueError(f"delay_s must be positive, got {value!r}")
        self._delay_s = float(value)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def add_error_handler(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)

    def start(self) -> None:
        """Schedule the loop on the running event loop; no-op if already running."""
        if self._closed:
            raise LoopClosedError(self)
        if self.is_running:
            return
        previous, self._retiring = self._retiring, None
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event, previous), name=self.name)

    async def stop(self) -> None:
        """Signal the loop to stop and wait until its task has exited.

        An iteration that is in progress runs to completion; the action sees
        the stop event set and may return early.
        """
        if self._closed:
            raise LoopClosedError(self)
        task, stop_event = self._task, self._stop_event
        if task is None or stop_event is None:
            retiring = self._retiring
            if retiring is not None and retiring is not asyncio.current_task():
                await asyncio.wait({retiring})
            return
        stop_event.set()
        if task is asyncio.current_task():
            # Stopping from inside the action: the loop exits after this iteration.
            # A later start() schedules a new task that waits for this one.
            self._retiring, self._task, self._stop_event = task, None, None
            return
        try:
            await task
        finally:
            if self._task is task:
                self._task = None
                self._stop_event = None

    async def aclose(self) -> None:
        if self._closed:
            return
        try:
            await self.stop()
        finally:
            self._closed = True
            self._error_handlers.clear()

    async def __aenter__(self) -> PeriodicLoop:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _report(self, exc: Exception) -> None:
        for handler in list(self._error_handlers):
            try:
                handler(self, exc)
            except Exception:
                LOGGER.warning("Error handler %r failed", handler, exc_info=True)

    async def _run(
        self, stop_event: asyncio.Event, previous: asyncio.Task[None] | None = None
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        while not stop_event.is_set():
            try:
                await self._action(stop_event)
            except Exception as exc:
                LOGGER.warning("%s iteration failed; will retry.", self.name, exc_info=True)
                self._report(exc)
            if stop_event.is_set():
                break
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._delay_s)
            except TimeoutError:
                pass
