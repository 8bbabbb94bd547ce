#=============================================================================
# File        : tests/conftest.py
# Project     : LeakWatch v1.0
# Component   : Shared Test Fixtures
# Description : Controllable collaborators for RefWatcher tests
#               • Manual executor that runs checks on demand
#               • Counting GC trigger, switchable debugger, fake heap dumper
#               • Global state reset between tests
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import gc
import sys
import time
from pathlib import Path

import pytest

# Add leakwatch to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

import leakwatch
from leakwatch import memory
from leakwatch.analysis.excluded_refs import ExcludedRefs
from leakwatch.executor import Result
from leakwatch.heapdump import RETRY_LATER
from leakwatch.watcher import RefWatcher


def wait_until(predicate, timeout=5.0, interval=0.01):
    """Poll ``predicate`` until it is truthy or ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


class Thing:
    """Weak-referenceable object to watch."""

    def __init__(self, label="thing"):
        self.label = label


class ManualExecutor:
    """WatchExecutor that only runs submitted checks when told to."""

    def __init__(self):
        self.pending = []
        self.executed = 0

    def execute(self, retryable):
        self.pending.append(retryable)

    def run_next(self):
        """Run the oldest check; a RETRY puts it back at the end."""
        retryable = self.pending.pop(0)
        self.executed += 1
        result = retryable()
        if result is Result.RETRY:
            self.pending.append(retryable)
        return result

    def run_all(self):
        return [self.run_next() for _ in range(len(self.pending))]


class CountingGcTrigger:

    def __init__(self, on_gc=None):
        self.calls = 0
        self.on_gc = on_gc

    def run_gc(self):
        self.calls += 1
        if self.on_gc is not None:
            self.on_gc()
        gc.collect()


class SwitchableDebugger:

    def __init__(self, attached=False):
        self.attached = attached

    def is_debugger_attached(self):
        return self.attached


class FakeHeapDumper:
    """Writes an empty file per dump, or reports busy while ``busy`` is set."""

    def __init__(self, directory):
        self.directory = Path(directory)
        self.busy = False
        self.calls = 0
        self.files = []

    def dump_heap(self):
        self.calls += 1
        if self.busy:
            return RETRY_LATER
        path = self.directory / f"fake-{self.calls}.lwheap.json"
        path.write_text("{}", encoding="utf-8")
        self.files.append(path)
        return path


class RecordingListener:

    def __init__(self):
        self.heap_dumps = []

    def analyze(self, heap_dump):
        self.heap_dumps.append(heap_dump)


@pytest.fixture(autouse=True)
def reset_leakwatch_state():
    """Make sure every test starts without an installed watcher."""
    leakwatch.uninstall()
    memory.reset_global_state()
    yield
    leakwatch.uninstall()
    memory.reset_global_state()


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def gc_trigger():
    return CountingGcTrigger()


@pytest.fixture
def debugger():
    return SwitchableDebugger()


@pytest.fixture
def heap_dumper(tmp_path):
    return FakeHeapDumper(tmp_path)


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def ref_watcher(manual_executor, debugger, gc_trigger, heap_dumper, listener):
    return RefWatcher(manual_executor, debugger, gc_trigger, heap_dumper, listener, ExcludedRefs())
