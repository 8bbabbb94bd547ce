#=============================================================================
# File        : tests/test_builder.py
# Project     : LeakWatch v1.0
# Component   : RefWatcher Builder Test Suite
# Description : Collaborator defaults, overrides and the disabled short-circuit
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import pytest
from conftest import Thing

from leakwatch.analysis.excluded_refs import ExcludedRefs
from leakwatch.analysis.service import ServiceHeapDumpListener
from leakwatch.builder import DefaultRefWatcherBuilder, RefWatcherBuilder
from leakwatch.capture.heap_dumper import GcHeapDumper
from leakwatch.config import LeakWatchConfig
from leakwatch.executor import IdleWatchExecutor, NullWatchExecutor
from leakwatch.heapdump import NullHeapDumper, NullHeapDumpListener
from leakwatch.runtime import DefaultGcTrigger, NoDebuggerControl, PythonDebuggerControl
from leakwatch.watcher import RefWatcher


class DisabledBuilder(RefWatcherBuilder):

    def is_disabled(self):
        return True


class TestRefWatcherBuilder:

    def test_null_defaults(self):
        watcher = RefWatcherBuilder().build()
        assert not watcher.is_disabled
        assert isinstance(watcher.watch_executor, NullWatchExecutor)
        assert isinstance(watcher.heap_dumper, NullHeapDumper)
        assert isinstance(watcher.heap_dump_listener, NullHeapDumpListener)
        assert watcher.excluded_refs == ExcludedRefs()

    def test_setters_override_defaults(self, manual_executor, debugger, gc_trigger, heap_dumper,
                                       listener):
        excluded_refs = ExcludedRefs()
        watcher = (RefWatcherBuilder()
                   .watch_executor(manual_executor)
                   .debugger_control(debugger)
                   .gc_trigger(gc_trigger)
                   .heap_dumper(heap_dumper)
                   .heap_dump_listener(listener)
                   .excluded_refs(excluded_refs)
                   .build())

        assert watcher.watch_executor is manual_executor
        assert watcher.heap_dumper is heap_dumper
        assert watcher.heap_dump_listener is listener
        assert watcher.excluded_refs is excluded_refs

        thing = Thing()
        watcher.watch(thing)
        assert len(manual_executor.pending) == 1

    def test_disabled_builder_returns_disabled_singleton(self):
        assert DisabledBuilder().build() is RefWatcher.DISABLED


@pytest.fixture
def config(tmp_path):
    return LeakWatchConfig(watch_delay_s=0.05, heap_dump_dir=str(tmp_path),
                           analyze_in_process=True)


class TestDefaultRefWatcherBuilder:

    def test_process_defaults(self, config, tmp_path):
        watcher = DefaultRefWatcherBuilder(config).build()
        try:
            assert isinstance(watcher.watch_executor, IdleWatchExecutor)
            assert watcher.watch_executor.initial_delay_ms == 50
            assert isinstance(watcher.heap_dumper, GcHeapDumper)
            assert watcher.heap_dumper.leak_directory.directory == tmp_path
            assert isinstance(watcher.heap_dump_listener, ServiceHeapDumpListener)
            assert watcher.heap_dump_listener.in_process
            assert watcher.excluded_refs == ExcludedRefs.python_defaults()
        finally:
            watcher.watch_executor.shutdown()

    def test_default_hooks(self, config):
        builder = DefaultRefWatcherBuilder(config)
        assert isinstance(builder.default_debugger_control(), PythonDebuggerControl)
        assert isinstance(builder.default_gc_trigger(), DefaultGcTrigger)
        assert builder.default_gc_trigger().pause_s == config.gc_pause_s

        no_debugger = DefaultRefWatcherBuilder(config.merge(detect_debugger=False))
        assert isinstance(no_debugger.default_debugger_control(), NoDebuggerControl)

    def test_kill_switch_disables(self, config):
        builder = DefaultRefWatcherBuilder(config.merge(kill_switch=True))
        assert builder.is_disabled()
        assert builder.build() is RefWatcher.DISABLED

    def test_tuning_setters(self, config):
        builder = DefaultRefWatcherBuilder(config).watch_delay(0.2).max_stored_heap_dumps(3)
        assert builder.config.watch_delay_ms == 200
        assert builder.config.max_stored_heap_dumps == 3
        assert builder.default_heap_dumper().leak_directory.max_stored_heap_dumps == 3

    def test_invalid_max_stored_heap_dumps(self, config):
        with pytest.raises(ValueError):
            DefaultRefWatcherBuilder(config).max_stored_heap_dumps(0)

    def test_unknown_listener_service_fails_fast(self, config):
        with pytest.raises(RuntimeError):
            DefaultRefWatcherBuilder(config).listener_service_class("missing_module_xyz:Service")

    def test_explicit_collaborators_win(self, config, manual_executor):
        watcher = DefaultRefWatcherBuilder(config).watch_executor(manual_executor).build()
        assert watcher.watch_executor is manual_executor
