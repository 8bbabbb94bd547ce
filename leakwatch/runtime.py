#=============================================================================
# File        : leakwatch/runtime.py
# Project     : LeakWatch v1.0
# Component   : Runtime Collaborators - GC Trigger and Debugger Detection
# Description : Interpreter-facing hooks used by the ref watcher
#               • Forced collection pass before a leak is suspected
#               • Debugger detection to avoid false leaks while stepping
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, GC, sys tracing hooks
# Standards   : PEP 8, Type Hints
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: gc, sys, threading, time
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import gc
import sys
import threading
import time
from typing import Any, Protocol, runtime_checkable

# Tracers installed by these packages are not debuggers.
_NON_DEBUGGER_TRACERS = ("coverage", "pytest_cov", "cProfile", "profile")
_DEBUGGER_MODULES = ("pydevd",)


@runtime_checkable
class GcTrigger(Protocol):
    """Best-effort hint that a full collection should happen now."""

    def run_gc(self) -> None:
        ...


class DefaultGcTrigger:
    """
    Collects all generations twice with a short pause in between, giving
    other threads a chance to drop references they were about to release.
    """

    def __init__(self, pause_s: float = 0.1) -> None:
        self.pause_s = pause_s

    def run_gc(self) -> None:
        gc.collect()
        if self.pause_s > 0:
            time.sleep(self.pause_s)
        gc.collect()


@runtime_checkable
class DebuggerControl(Protocol):

    def is_debugger_attached(self) -> bool:
        ...


class NoDebuggerControl:
    """Never reports a debugger."""

    def is_debugger_attached(self) -> bool:
        return False


def _tracer_module(tracer: Any) -> str:
    owner = getattr(tracer, "__self__", None)
    target = owner if owner is not None else tracer
    module = getattr(target, "__module__", None) or type(target).__module__
    return module or ""


def _is_debugger_tracer(tracer: Any) -> bool:
    if tracer is None:
        return False
    module = _tracer_module(tracer)
    return module.split(".")[0] not in _NON_DEBUGGER_TRACERS


def _any_frame_traced_by_debugger() -> bool:
    # sys.gettrace() only sees the calling thread; a pdb session on another
    # thread leaves its tracer on that thread's frames.
    current_frames = getattr(sys, "_current_frames", None)
    if current_frames is None:
        return False
    frames = current_frames()
    frame = None
    try:
        for frame in frames.values():
            while frame is not None:
                if _is_debugger_tracer(frame.f_trace):
                    return True
                frame = frame.f_back
        return False
    finally:
        del frames, frame


class PythonDebuggerControl:
    """
    Reports a debugger when a non-coverage trace function is installed
    (for this thread, for new threads, or on a frame of any running thread),
    when a tool holds the sys.monitoring debugger slot, or when pydevd is
    loaded (PyCharm / VS Code).
    """

    def is_debugger_attached(self) -> bool:
        if _is_debugger_tracer(sys.gettrace()):
            return True
        gettrace = getattr(threading, "gettrace", None)  # Python 3.10+
        if gettrace is not None and _is_debugger_tracer(gettrace()):
            return True
        if _any_frame_traced_by_debugger():
            return True
        monitoring = getattr(sys, "monitoring", None)  # Python 3.12+
        if monitoring is not None and monitoring.get_tool(monitoring.DEBUGGER_ID) is not None:
            return True
        return any(name in sys.modules for name in _DEBUGGER_MODULES)
