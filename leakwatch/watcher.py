#=============================================================================
# File        : leakwatch/watcher.py
# Project     : LeakWatch v1.0
# Component   : Ref Watcher - Liveness Check State Machine
# Description : Watches objects that should become unreachable
#               • Keyed weak probes on a shared reference queue
#               • Two-phase check around a forced collection pass
#               • Heap dump capture on sustained retention
#               • Immutable disabled watcher for the analyzer process
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Weak References, Threading
# Standards   : PEP 8, Type Hints, Thread Safety
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: reference, executor, runtime, heapdump, uuid
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, FrozenSet, Optional

from .analysis.excluded_refs import ExcludedRefs
from .executor import NullWatchExecutor, Result, WatchExecutor
from .heapdump import (
    RETRY_LATER, HeapDump, HeapDumper, HeapDumpListener, NullHeapDumper, NullHeapDumpListener
)
from .reference import KeyedWeakReference, ReferenceQueue, RetainedKeySet
from .runtime import DebuggerControl, DefaultGcTrigger, GcTrigger, NoDebuggerControl

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


def _check_not_none(value: Any, name: str) -> Any:
    if value is None:
        raise ValueError(f"{name} must not be None")
    return value


def _elapsed_ms(start_ns: int, end_ns: int) -> int:
    return max(0, (end_ns - start_ns) // 1_000_000)


class RefWatcher:
    """
    Watches references that should become weakly reachable. When the
    RefWatcher detects that a reference might not be weakly reachable when
    it should, it triggers the HeapDumper.

    Thread-safe: watch() may be called from any thread. Checks run on the
    WatchExecutor this watcher was built with.
    """

    DISABLED: "RefWatcher"

    def __init__(self, watch_executor: WatchExecutor, debugger_control: DebuggerControl,
                 gc_trigger: GcTrigger, heap_dumper: HeapDumper,
                 heap_dump_listener: HeapDumpListener, excluded_refs: ExcludedRefs,
                 disabled: bool = False) -> None:
        self._watch_executor = _check_not_none(watch_executor, "watch_executor")
        self._debugger_control = _check_not_none(debugger_control, "debugger_control")
        self._gc_trigger = _check_not_none(gc_trigger, "gc_trigger")
        self._heap_dumper = _check_not_none(heap_dumper, "heap_dumper")
        self._heap_dump_listener = _check_not_none(heap_dump_listener, "heap_dump_listener")
        self._excluded_refs = _check_not_none(excluded_refs, "excluded_refs")
        self._disabled = bool(disabled)
        self._retained_keys = RetainedKeySet()
        self._queue = ReferenceQueue()

    def __repr__(self) -> str:
        if self._disabled:
            return "RefWatcher(DISABLED)"
        return f"RefWatcher(retained={len(self._retained_keys)}, executor={self._watch_executor!r})"

    # --------- Public API ---------

    @property
    def is_disabled(self) -> bool:
        return self._disabled

    @property
    def retained_keys(self) -> FrozenSet[str]:
        return self._retained_keys.snapshot()

    @property
    def watch_executor(self) -> WatchExecutor:
        return self._watch_executor

    @property
    def heap_dumper(self) -> HeapDumper:
        return self._heap_dumper

    @property
    def heap_dump_listener(self) -> HeapDumpListener:
        return self._heap_dump_listener

    @property
    def excluded_refs(self) -> ExcludedRefs:
        return self._excluded_refs

    def watch(self, watched_reference: Any, reference_name: str = "") -> Optional[str]:
        """
        Watch ``watched_reference`` and check later whether it was collected.

        Non-blocking: the check runs on the watch executor. Returns the key
        identifying the watch, or None for the disabled watcher.

        Args:
            watched_reference: Object expected to become unreachable soon
            reference_name: Logical identifier for the watched object
        """
        if self._disabled:
            return None
        _check_not_none(watched_reference, "watched_reference")
        _check_not_none(reference_name, "reference_name")

        watch_start_ns = time.perf_counter_ns()
        key = str(uuid.uuid4())
        reference = KeyedWeakReference(watched_reference, key, reference_name, self._queue)
        self._retained_keys.add(key)
        self._ensure_gone_async(reference, watch_start_ns)
        return key

    def is_retained(self, key: str) -> bool:
        return key in self._retained_keys

    # --------- Liveness check ---------

    def _ensure_gone_async(self, reference: KeyedWeakReference, watch_start_ns: int) -> None:
        self._watch_executor.execute(lambda: self.ensure_gone(reference, watch_start_ns))

    def ensure_gone(self, reference: KeyedWeakReference, watch_start_ns: int) -> Result:
        gc_start_ns = time.perf_counter_ns()
        watch_duration_ms = _elapsed_ms(watch_start_ns, gc_start_ns)

        self._remove_weakly_reachable_references()

        if self._debugger_control.is_debugger_attached():
            # The debugger can create false leaks.
            _logger.debug(f"Debugger attached, deferring check of '{reference.key}'")
            return Result.RETRY
        if self._gone(reference):
            return Result.DONE

        self._gc_trigger.run_gc()
        self._remove_weakly_reachable_references()
        if self._gone(reference):
            return Result.DONE

        heap_dump_start_ns = time.perf_counter_ns()
        gc_duration_ms = _elapsed_ms(gc_start_ns, heap_dump_start_ns)

        heap_dump_file = self._heap_dumper.dump_heap()
        if heap_dump_file is RETRY_LATER:
            # Could not dump the heap.
            _logger.debug(f"Heap dumper busy, retrying check of '{reference.key}' later")
            return Result.RETRY
        heap_dump_duration_ms = _elapsed_ms(heap_dump_start_ns, time.perf_counter_ns())

        _logger.warning(
            f"Suspected leak: '{reference.name or reference.key}' still reachable "
            f"after {watch_duration_ms} ms, heap dumped to {heap_dump_file}")
        self._heap_dump_listener.analyze(HeapDump(
            heap_dump_file=heap_dump_file,
            reference_key=reference.key,
            reference_name=reference.name,
            excluded_refs=self._excluded_refs,
            watch_duration_ms=watch_duration_ms,
            gc_duration_ms=gc_duration_ms,
            heap_dump_duration_ms=heap_dump_duration_ms,
        ))
        return Result.DONE

    def _gone(self, reference: KeyedWeakReference) -> bool:
        return reference.key not in self._retained_keys

    def _remove_weakly_reachable_references(self) -> None:
        # Probes are enqueued by their weakref callback once the referent has
        # been collected.
        while True:
            reference = self._queue.poll()
            if reference is None:
                return
            self._retained_keys.discard(reference.key)


RefWatcher.DISABLED = RefWatcher(
    NullWatchExecutor(), NoDebuggerControl(), DefaultGcTrigger(), NullHeapDumper(),
    NullHeapDumpListener(), ExcludedRefs(), disabled=True,
)
