#=============================================================================
# File        : tests/test_watcher.py
# Project     : LeakWatch v1.0
# Component   : RefWatcher Test Suite
# Description : Liveness check state machine with controllable collaborators
#               • Collected objects never trigger a heap dump
#               • One forced collection before every heap dump decision
#               • Debugger and busy dumper defer the check
#               • Disabled watcher ignores every input
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import threading

import pytest
from conftest import (
    CountingGcTrigger, FakeHeapDumper, ManualExecutor, RecordingListener, SwitchableDebugger, Thing
)

from leakwatch.analysis.excluded_refs import ExcludedRefs
from leakwatch.executor import Result
from leakwatch.heapdump import HeapDump
from leakwatch.watcher import RefWatcher


class TestWatch:

    def test_returns_unique_keys_and_retains_them(self, ref_watcher):
        a, b = Thing(), Thing()
        key_a = ref_watcher.watch(a, "a")
        key_b = ref_watcher.watch(b, "b")
        assert key_a != key_b
        assert ref_watcher.retained_keys == {key_a, key_b}
        assert ref_watcher.is_retained(key_a)

    def test_submits_one_check_per_watch(self, ref_watcher, manual_executor):
        ref_watcher.watch(Thing())
        ref_watcher.watch(Thing())
        assert len(manual_executor.pending) == 2

    def test_none_object_is_rejected(self, ref_watcher, manual_executor):
        with pytest.raises(ValueError):
            ref_watcher.watch(None)
        assert manual_executor.pending == []
        assert ref_watcher.retained_keys == frozenset()

    def test_none_name_is_rejected(self, ref_watcher):
        with pytest.raises(ValueError):
            ref_watcher.watch(Thing(), None)

    def test_object_without_weakref_support_is_rejected(self, ref_watcher):
        with pytest.raises(TypeError):
            ref_watcher.watch(42, "int")
        assert ref_watcher.retained_keys == frozenset()

    def test_concurrent_watch_calls(self, ref_watcher, manual_executor):
        keep = []
        keys = []
        lock = threading.Lock()

        def watch_many():
            for _ in range(50):
                thing = Thing()
                key = ref_watcher.watch(thing, "thing")
                with lock:
                    keep.append(thing)
                    keys.append(key)

        threads = [threading.Thread(target=watch_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(set(keys)) == 400
        assert len(ref_watcher.retained_keys) == 400
        assert len(manual_executor.pending) == 400


class TestEnsureGone:

    def test_collected_before_first_check(self, ref_watcher, manual_executor, gc_trigger,
                                          heap_dumper, listener):
        thing = Thing()
        key = ref_watcher.watch(thing, "thing")
        del thing

        assert manual_executor.run_next() is Result.DONE
        assert key not in ref_watcher.retained_keys
        assert gc_trigger.calls == 0
        assert heap_dumper.calls == 0
        assert listener.heap_dumps == []

    def test_retained_object_is_dumped_after_one_gc(self, ref_watcher, manual_executor,
                                                    gc_trigger, heap_dumper, listener):
        thing = Thing()
        key = ref_watcher.watch(thing, "session")

        assert manual_executor.run_next() is Result.DONE
        assert gc_trigger.calls == 1
        assert heap_dumper.calls == 1
        assert len(listener.heap_dumps) == 1

        heap_dump = listener.heap_dumps[0]
        assert isinstance(heap_dump, HeapDump)
        assert heap_dump.reference_key == key
        assert heap_dump.reference_name == "session"
        assert heap_dump.heap_dump_file == heap_dumper.files[0]
        assert heap_dump.excluded_refs is ref_watcher.excluded_refs
        assert heap_dump.watch_duration_ms >= 0
        assert heap_dump.gc_duration_ms >= 0
        assert heap_dump.heap_dump_duration_ms >= 0
        assert key in ref_watcher.retained_keys

    def test_released_during_forced_gc(self, manual_executor, debugger, heap_dumper, listener):
        holder = [Thing()]
        gc_trigger = CountingGcTrigger(on_gc=holder.clear)
        watcher = RefWatcher(manual_executor, debugger, gc_trigger, heap_dumper, listener,
                             ExcludedRefs())
        key = watcher.watch(holder[0], "held")

        assert manual_executor.run_next() is Result.DONE
        assert gc_trigger.calls == 1
        assert heap_dumper.calls == 0
        assert key not in watcher.retained_keys

    @pytest.mark.parametrize("retained", [True, False])
    def test_debugger_attached_defers_check(self, ref_watcher, manual_executor, debugger,
                                            gc_trigger, heap_dumper, listener, retained):
        debugger.attached = True
        thing = Thing()
        ref_watcher.watch(thing)
        if not retained:
            del thing

        assert manual_executor.run_next() is Result.RETRY
        assert manual_executor.run_next() is Result.RETRY
        assert gc_trigger.calls == 0
        assert heap_dumper.calls == 0
        assert listener.heap_dumps == []

    def test_check_resumes_once_debugger_detaches(self, ref_watcher, manual_executor, debugger,
                                                  listener):
        debugger.attached = True
        thing = Thing()
        ref_watcher.watch(thing)
        assert manual_executor.run_next() is Result.RETRY

        debugger.attached = False
        assert manual_executor.run_next() is Result.DONE
        assert len(listener.heap_dumps) == 1

    def test_busy_dumper_retries_then_dumps_once(self, ref_watcher, manual_executor, gc_trigger,
                                                 heap_dumper, listener):
        heap_dumper.busy = True
        thing = Thing()
        ref_watcher.watch(thing)

        assert manual_executor.run_next() is Result.RETRY
        assert listener.heap_dumps == []

        heap_dumper.busy = False
        assert manual_executor.run_next() is Result.DONE
        assert manual_executor.pending == []
        assert gc_trigger.calls == 2
        assert heap_dumper.calls == 2
        assert len(listener.heap_dumps) == 1

    def test_queue_drain_removes_other_collected_keys(self, ref_watcher, manual_executor):
        kept, dropped = Thing(), Thing()
        ref_watcher.watch(kept)
        dropped_key = ref_watcher.watch(dropped)
        del dropped

        manual_executor.run_next()
        assert dropped_key not in ref_watcher.retained_keys


class TestConstruction:

    @pytest.mark.parametrize("position", range(6))
    def test_none_collaborator_is_rejected(self, tmp_path, position):
        collaborators = [ManualExecutor(), SwitchableDebugger(), CountingGcTrigger(),
                         FakeHeapDumper(tmp_path), RecordingListener(), ExcludedRefs()]
        collaborators[position] = None
        with pytest.raises(ValueError):
            RefWatcher(*collaborators)


class TestDisabled:

    @pytest.mark.parametrize("target, name", [
        (None, None), (None, ""), (Thing(), None), (42, "int"), ("", ""), (Thing(), "thing"),
    ])
    def test_watch_is_a_no_op(self, target, name):
        assert RefWatcher.DISABLED.watch(target, name) is None
        assert RefWatcher.DISABLED.retained_keys == frozenset()

    def test_flags(self):
        assert RefWatcher.DISABLED.is_disabled
        assert "DISABLED" in repr(RefWatcher.DISABLED)
