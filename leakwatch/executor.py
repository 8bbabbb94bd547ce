#=============================================================================
# File        : leakwatch/executor.py
# Project     : LeakWatch v1.0
# Component   : Watch Executor - Idle-Gated Retry Scheduling
# Description : Runs retryable leak checks off the calling thread
#               • Waits for the primary loop to go idle before each attempt
#               • Serial background thread for all checks
#               • Exponential backoff with an overflow-safe cap
#               • Null executor for the disabled watcher
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading
# Standards   : PEP 8, Type Hints, Thread Safety
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: looper, logging, enum
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
import sys
from enum import Enum
from typing import Callable, Optional, Protocol, runtime_checkable

from .looper import Looper, MainLoop

# Configure safe logging defaults
_logger = logging.getLogger(__name__)
_logger.setLevel(logging.WARNING)  # Only WARN/ERROR by default

# Add console handler only if none exists
if not _logger.handlers and not logging.getLogger().handlers:
    _console_handler = logging.StreamHandler()
    _console_handler.setLevel(logging.WARNING)
    _formatter = logging.Formatter('[LeakWatch] %(levelname)s: %(message)s')
    _console_handler.setFormatter(_formatter)
    _logger.addHandler(_console_handler)

LEAKWATCH_THREAD_NAME = "LeakWatch-Heap-Dump"

# Largest delay representable in the millisecond delay unit (signed 64 bit).
MAX_DELAY_MS = sys.maxsize
_MAX_EXPONENT = MAX_DELAY_MS.bit_length() - 1


class Result(Enum):
    """Outcome of one attempt of a retryable unit."""
    DONE = "done"
    RETRY = "retry"


Retryable = Callable[[], Result]


@runtime_checkable
class WatchExecutor(Protocol):
    """Executes a Retryable in the future, and again later if it asks to."""

    def execute(self, retryable: Retryable) -> None:
        ...


class NullWatchExecutor:
    """Drops every submitted unit. Used when watching is turned off."""

    def execute(self, retryable: Retryable) -> None:
        pass


def max_backoff_factor(initial_delay_ms: int) -> int:
    return MAX_DELAY_MS // initial_delay_ms


def backoff_delay_ms(initial_delay_ms: int, failed_attempts: int,
                     backoff_cap: Optional[int] = None) -> int:
    """
    Delay before the attempt following ``failed_attempts`` consecutive RETRYs.

    Equals ``initial_delay_ms * min(2 ** failed_attempts, cap)`` and never
    exceeds MAX_DELAY_MS. The exponent is clamped first so huge attempt
    counts stay cheap.
    """
    if backoff_cap is None:
        backoff_cap = max_backoff_factor(initial_delay_ms)
    exponent = min(max(0, failed_attempts), _MAX_EXPONENT)
    factor = min(1 << exponent, backoff_cap)
    return initial_delay_ms * factor


class IdleWatchExecutor:
    """
    WatchExecutor that waits for the main loop to be idle, then posts the
    unit to a serial background thread with an exponentially growing delay.

    If no main loop is given, the executor's own background looper doubles
    as the primary loop, so checks wait until queued checks have drained.
    """

    def __init__(self, initial_delay_ms: int, main_loop: Optional[MainLoop] = None,
                 background: Optional[Looper] = None) -> None:
        if (isinstance(initial_delay_ms, bool) or not isinstance(initial_delay_ms, int)
                or initial_delay_ms < 1):
            raise ValueError(f"initial_delay_ms must be a positive integer, got {initial_delay_ms!r}")

        self._owns_background = background is None
        self._background = background or Looper(LEAKWATCH_THREAD_NAME)
        self._background.start()
        self._main_loop = main_loop if main_loop is not None else self._background
        self.initial_delay_ms = initial_delay_ms
        self.max_backoff_factor = max_backoff_factor(initial_delay_ms)

    def __repr__(self) -> str:
        return (f"IdleWatchExecutor(initial_delay_ms={self.initial_delay_ms}, "
                f"main_loop={self._main_loop!r})")

    @property
    def main_loop(self) -> MainLoop:
        return self._main_loop

    @property
    def background(self) -> Looper:
        return self._background

    def execute(self, retryable: Retryable) -> None:
        if self._main_loop.is_loop_thread():
            self._wait_for_idle(retryable, 0)
        else:
            self._post_wait_for_idle(retryable, 0)

    def shutdown(self) -> None:
        """Stop the background looper if this executor created it."""
        if self._owns_background:
            self._background.quit()

    def delay_for(self, failed_attempts: int) -> int:
        return backoff_delay_ms(self.initial_delay_ms, failed_attempts, self.max_backoff_factor)

    def _post_wait_for_idle(self, retryable: Retryable, failed_attempts: int) -> None:
        self._main_loop.post(lambda: self._wait_for_idle(retryable, failed_attempts))

    def _wait_for_idle(self, retryable: Retryable, failed_attempts: int) -> None:
        # Must run on the main loop thread; the handler is one-shot.
        def on_idle() -> bool:
            self._post_to_background_with_delay(retryable, failed_attempts)
            return False

        self._main_loop.add_idle_handler(on_idle)

    def _post_to_background_with_delay(self, retryable: Retryable, failed_attempts: int) -> None:
        delay_ms = self.delay_for(failed_attempts)

        def attempt() -> None:
            result = retryable()
            if result is Result.RETRY:
                _logger.debug(f"Retrying watch check (attempt {failed_attempts + 1})")
                self._post_wait_for_idle(retryable, failed_attempts + 1)

        self._background.post_delayed(attempt, delay_ms)
