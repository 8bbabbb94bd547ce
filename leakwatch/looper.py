#=============================================================================
# File        : leakwatch/looper.py
# Project     : LeakWatch v1.0
# Component   : Message Loops - Primary and Background Scheduling Threads
# Description : Serial message loops used by the watch executor
#               • Looper: delayed-message heap with idle handlers
#               • AsyncioMainLoop: adapts an asyncio event loop
#               • MainLoop protocol shared by both
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading, AsyncIO
# Standards   : PEP 8, Type Hints, Thread Safety
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: threading, heapq, asyncio, logging
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Protocol, Tuple, runtime_checkable

_logger = logging.getLogger(__name__)

# An idle handler returns True to stay registered for the next idle period.
IdleHandler = Callable[[], bool]


@runtime_checkable
class MainLoop(Protocol):
    """The primary scheduling loop whose idleness gates leak checks."""

    def post(self, callback: Callable[[], None]) -> None:
        ...

    def add_idle_handler(self, handler: IdleHandler) -> None:
        ...

    def is_loop_thread(self) -> bool:
        ...


class Looper:
    """
    A serial message loop.

    Messages run in due-time order on a single thread. Idle handlers run
    once per idle period, i.e. when no message is due. A handler that
    returns False is dropped; one that returns True runs again after the
    next message has been dispatched and the loop goes idle again.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._cond = threading.Condition()
        self._messages: List[Tuple[float, int, Callable[[], None]]] = []
        self._sequence = itertools.count()
        self._idle_handlers: List[IdleHandler] = []
        self._idle_ran = False
        self._quitting = False
        self._thread: Optional[threading.Thread] = None
        self._loop_thread_id: Optional[int] = None

    def __repr__(self) -> str:
        return f"Looper(name='{self.name}', pending={len(self._messages)})"

    # --------- Posting ---------

    def post(self, callback: Callable[[], None]) -> None:
        self.post_delayed(callback, 0)

    def post_delayed(self, callback: Callable[[], None], delay_ms: int) -> None:
        when = time.monotonic() + max(0, delay_ms) / 1000.0
        with self._cond:
            if self._quitting:
                _logger.debug(f"{self.name}: dropping message posted after quit")
                return
            heapq.heappush(self._messages, (when, next(self._sequence), callback))
            self._cond.notify()

    def add_idle_handler(self, handler: IdleHandler) -> None:
        with self._cond:
            self._idle_handlers.append(handler)
            self._idle_ran = False
            self._cond.notify()

    def is_loop_thread(self) -> bool:
        return self._loop_thread_id == threading.get_ident()

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._messages)

    # --------- Running ---------

    def start(self) -> "Looper":
        """Run the loop on a new daemon thread named after the looper."""
        with self._cond:
            if self._thread is not None:
                return self
            self._thread = threading.Thread(target=self.loop, name=self.name, daemon=True)
        self._thread.start()
        return self

    def loop(self) -> None:
        """Run the loop on the calling thread until quit() is called."""
        self._loop_thread_id = threading.get_ident()
        try:
            while True:
                work = self._next()
                if work is None:
                    return
                message, idle_handlers = work
                if message is not None:
                    self._dispatch(message)
                else:
                    self._run_idle_handlers(idle_handlers)
        finally:
            self._loop_thread_id = None

    def quit(self, timeout: Optional[float] = 2.0) -> None:
        with self._cond:
            self._quitting = True
            self._messages.clear()
            self._idle_handlers.clear()
            self._cond.notify_all()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _next(self):
        with self._cond:
            while True:
                if self._quitting:
                    return None
                now = time.monotonic()
                if self._messages and self._messages[0][0] <= now:
                    _, _, callback = heapq.heappop(self._messages)
                    self._idle_ran = False
                    return callback, None
                if self._idle_handlers and not self._idle_ran:
                    handlers = self._idle_handlers
                    self._idle_handlers = []
                    self._idle_ran = True
                    return None, handlers
                timeout = None
                if self._messages:
                    timeout = min(self._messages[0][0] - now, threading.TIMEOUT_MAX)
                self._cond.wait(timeout)

    def _dispatch(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            _logger.exception(f"{self.name}: message raised")

    def _run_idle_handlers(self, handlers: List[IdleHandler]) -> None:
        keep = []
        for handler in handlers:
            try:
                if handler():
                    keep.append(handler)
            except Exception:
                _logger.exception(f"{self.name}: idle handler raised")
        if keep:
            with self._cond:
                self._idle_handlers[:0] = keep


class AsyncioMainLoop:
    """
    MainLoop backed by an asyncio event loop.

    asyncio has no idle notification, so an idle handler is queued behind
    everything already scheduled by hopping through ``call_soon`` twice.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def post(self, callback: Callable[[], None]) -> None:
        self._loop.call_soon_threadsafe(callback)

    def add_idle_handler(self, handler: IdleHandler) -> None:
        def run_when_idle() -> None:
            if handler():
                self.add_idle_handler(handler)

        if self.is_loop_thread():
            self._loop.call_soon(self._loop.call_soon, run_when_idle)
        else:
            self._loop.call_soon_threadsafe(self._loop.call_soon, run_when_idle)

    def is_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False
