#=============================================================================
# File        : tests/test_runtime.py
# Project     : LeakWatch v1.0
# Component   : Runtime Hooks Test Suite
# Description : GC trigger and debugger detection
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import gc
import sys
import threading
import weakref
from types import SimpleNamespace

import pytest

from leakwatch import runtime
from leakwatch.runtime import (
    DebuggerControl, DefaultGcTrigger, GcTrigger, NoDebuggerControl, PythonDebuggerControl
)


def debugger_trace(frame, event, arg):
    return debugger_trace


class CoverageTracer:
    __module__ = "coverage.collector"

    def __call__(self, frame, event, arg):
        return self


class FakeMonitoring:
    DEBUGGER_ID = 0

    def __init__(self, tool=None):
        self.tool = tool

    def get_tool(self, tool_id):
        return self.tool


@pytest.fixture
def fake_runtime(monkeypatch):
    """Replaces the interpreter hooks PythonDebuggerControl reads."""
    fake_sys = SimpleNamespace(gettrace=lambda: None, modules={}, monitoring=FakeMonitoring(),
                               _current_frames=lambda: {})
    fake_threading = SimpleNamespace(gettrace=lambda: None)
    monkeypatch.setattr(runtime, "sys", fake_sys)
    monkeypatch.setattr(runtime, "threading", fake_threading)
    return fake_sys, fake_threading


class TestGcTrigger:

    def test_collects_cycles(self):
        class Node:
            pass

        freed = []
        a, b = Node(), Node()
        a.other, b.other = b, a
        weakref.finalize(a, freed.append, "a")
        gc.disable()
        try:
            del a, b
            DefaultGcTrigger(pause_s=0).run_gc()
        finally:
            gc.enable()
        assert freed == ["a"]

    def test_protocols(self):
        assert isinstance(DefaultGcTrigger(), GcTrigger)
        assert isinstance(NoDebuggerControl(), DebuggerControl)
        assert isinstance(PythonDebuggerControl(), DebuggerControl)


class TestPythonDebuggerControl:

    def test_no_tracer(self, fake_runtime):
        assert not PythonDebuggerControl().is_debugger_attached()

    def test_trace_function_is_a_debugger(self, fake_runtime):
        fake_sys, _ = fake_runtime
        fake_sys.gettrace = lambda: debugger_trace
        assert PythonDebuggerControl().is_debugger_attached()

    def test_thread_trace_function_is_a_debugger(self, fake_runtime):
        _, fake_threading = fake_runtime
        fake_threading.gettrace = lambda: debugger_trace
        assert PythonDebuggerControl().is_debugger_attached()

    def test_coverage_tracer_is_not_a_debugger(self, fake_runtime):
        fake_sys, _ = fake_runtime
        fake_sys.gettrace = lambda: CoverageTracer()
        assert not PythonDebuggerControl().is_debugger_attached()

    def test_monitoring_debugger_slot(self, fake_runtime):
        fake_sys, _ = fake_runtime
        fake_sys.monitoring = FakeMonitoring(tool="pdb")
        assert PythonDebuggerControl().is_debugger_attached()

    def test_pydevd_loaded(self, fake_runtime):
        fake_sys, _ = fake_runtime
        fake_sys.modules["pydevd"] = object()
        assert PythonDebuggerControl().is_debugger_attached()

    def test_no_debugger_control(self):
        assert not NoDebuggerControl().is_debugger_attached()

    def test_frame_traced_on_other_thread(self, fake_runtime):
        fake_sys, _ = fake_runtime
        outer = SimpleNamespace(f_trace=debugger_trace, f_back=None)
        inner = SimpleNamespace(f_trace=None, f_back=outer)
        fake_sys._current_frames = lambda: {1: inner}
        assert PythonDebuggerControl().is_debugger_attached()

    def test_frame_traced_by_coverage_is_ignored(self, fake_runtime):
        fake_sys, _ = fake_runtime
        frame = SimpleNamespace(f_trace=CoverageTracer(), f_back=None)
        fake_sys._current_frames = lambda: {1: frame}
        assert not PythonDebuggerControl().is_debugger_attached()


class TestDebuggerOnAnotherThread:

    def test_tracer_installed_on_calling_thread_is_seen_from_worker(self):
        seen = []

        def query():
            seen.append(PythonDebuggerControl().is_debugger_attached())

        def stepped_code():
            worker = threading.Thread(target=query)
            worker.start()
            worker.join()

        previous = sys.gettrace()
        sys.settrace(debugger_trace)
        try:
            stepped_code()
        finally:
            sys.settrace(previous)

        assert seen == [True]
