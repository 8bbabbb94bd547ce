#=============================================================================
# File        : leakwatch/builder.py
# Project     : LeakWatch v1.0
# Component   : RefWatcher Builders - Collaborator Wiring
# Description : Assembles a RefWatcher from its collaborators
#               • Fluent setters, unset collaborators filled from defaults
#               • Null defaults for the generic builder
#               • Python process defaults driven by LeakWatchConfig
#               • Disabled watcher in the analyzer process or on kill switch
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+
# Standards   : PEP 8, Type Hints
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: config, watcher, executor, runtime, capture, analysis
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
from typing import Optional

from .analysis.excluded_refs import ExcludedRefs
from .analysis.result_service import ServiceRef
from .analysis.service import ServiceHeapDumpListener, is_in_analyzer_process
from .capture.heap_dumper import GcHeapDumper
from .capture.leak_directory import LeakDirectoryProvider
from .config import LeakWatchConfig
from .executor import IdleWatchExecutor, NullWatchExecutor, WatchExecutor
from .heapdump import HeapDumper, HeapDumpListener, NullHeapDumper, NullHeapDumpListener
from .looper import MainLoop
from .runtime import (
    DebuggerControl, DefaultGcTrigger, GcTrigger, NoDebuggerControl, PythonDebuggerControl
)
from .watcher import RefWatcher

_logger = logging.getLogger(__name__)


def _or_default(value, factory):
    return value if value is not None else factory()


class RefWatcherBuilder:
    """
    Responsible for building RefWatcher instances.

    Every collaborator left unset is taken from the matching ``default_*``
    hook; subclasses override the hooks to supply platform defaults.
    """

    def __init__(self) -> None:
        self._heap_dump_listener: Optional[HeapDumpListener] = None
        self._excluded_refs: Optional[ExcludedRefs] = None
        self._heap_dumper: Optional[HeapDumper] = None
        self._watch_executor: Optional[WatchExecutor] = None
        self._debugger_control: Optional[DebuggerControl] = None
        self._gc_trigger: Optional[GcTrigger] = None

    # --------- Fluent setters ---------

    def heap_dump_listener(self, heap_dump_listener: HeapDumpListener) -> "RefWatcherBuilder":
        self._heap_dump_listener = heap_dump_listener
        return self

    def excluded_refs(self, excluded_refs: ExcludedRefs) -> "RefWatcherBuilder":
        self._excluded_refs = excluded_refs
        return self

    def heap_dumper(self, heap_dumper: HeapDumper) -> "RefWatcherBuilder":
        self._heap_dumper = heap_dumper
        return self

    def debugger_control(self, debugger_control: DebuggerControl) -> "RefWatcherBuilder":
        self._debugger_control = debugger_control
        return self

    def watch_executor(self, watch_executor: WatchExecutor) -> "RefWatcherBuilder":
        self._watch_executor = watch_executor
        return self

    def gc_trigger(self, gc_trigger: GcTrigger) -> "RefWatcherBuilder":
        self._gc_trigger = gc_trigger
        return self

    # --------- Build ---------

    def build(self) -> RefWatcher:
        """Creates a RefWatcher, or RefWatcher.DISABLED when is_disabled()."""
        if self.is_disabled():
            _logger.debug(f"{type(self).__name__}: building the disabled RefWatcher")
            return RefWatcher.DISABLED

        excluded_refs = _or_default(self._excluded_refs, self.default_excluded_refs)
        heap_dump_listener = _or_default(self._heap_dump_listener, self.default_heap_dump_listener)
        debugger_control = _or_default(self._debugger_control, self.default_debugger_control)
        heap_dumper = _or_default(self._heap_dumper, self.default_heap_dumper)
        watch_executor = _or_default(self._watch_executor, self.default_watch_executor)
        gc_trigger = _or_default(self._gc_trigger, self.default_gc_trigger)

        return RefWatcher(watch_executor, debugger_control, gc_trigger, heap_dumper,
                          heap_dump_listener, excluded_refs)

    # --------- Default hooks ---------

    def is_disabled(self) -> bool:
        return False

    def default_gc_trigger(self) -> GcTrigger:
        return DefaultGcTrigger()

    def default_debugger_control(self) -> DebuggerControl:
        return NoDebuggerControl()

    def default_excluded_refs(self) -> ExcludedRefs:
        return ExcludedRefs()

    def default_heap_dumper(self) -> HeapDumper:
        return NullHeapDumper()

    def default_heap_dump_listener(self) -> HeapDumpListener:
        return NullHeapDumpListener()

    def default_watch_executor(self) -> WatchExecutor:
        return NullWatchExecutor()


class DefaultRefWatcherBuilder(RefWatcherBuilder):
    """
    Builder wired for a regular Python process.

    Defaults come from ``config`` (LeakWatchConfig.from_env() when omitted).
    The built watcher is disabled inside the analyzer process and when the
    kill switch is on.
    """

    def __init__(self, config: Optional[LeakWatchConfig] = None) -> None:
        super().__init__()
        self._config = config or LeakWatchConfig.from_env()
        self._main_loop: Optional[MainLoop] = None

    @property
    def config(self) -> LeakWatchConfig:
        return self._config

    def listener_service_class(self, listener_service: ServiceRef) -> "DefaultRefWatcherBuilder":
        """Deliver analysis results to ``listener_service`` (class or ``module:Class``)."""
        return self.heap_dump_listener(ServiceHeapDumpListener(
            listener_service, in_process=self._config.analyze_in_process))

    def watch_delay(self, seconds: float) -> "DefaultRefWatcherBuilder":
        """Delay before the first check; later checks back off from it."""
        self._config = self._config.merge(watch_delay_s=seconds)
        return self

    def max_stored_heap_dumps(self, max_stored_heap_dumps: int) -> "DefaultRefWatcherBuilder":
        self._config = self._config.merge(max_stored_heap_dumps=max_stored_heap_dumps)
        return self

    def main_loop(self, main_loop: MainLoop) -> "DefaultRefWatcherBuilder":
        """Run idle waits on the host's loop instead of the background looper."""
        self._main_loop = main_loop
        return self

    def build_and_install(self) -> RefWatcher:
        """Build the watcher and make it the process-wide one."""
        from .core import install_ref_watcher
        return install_ref_watcher(self.build(), self._config)

    # --------- Default hooks ---------

    def is_disabled(self) -> bool:
        if not self._config.is_enabled():
            return True
        return is_in_analyzer_process()

    def default_gc_trigger(self) -> GcTrigger:
        return DefaultGcTrigger(self._config.gc_pause_s)

    def default_debugger_control(self) -> DebuggerControl:
        if not self._config.detect_debugger:
            return NoDebuggerControl()
        return PythonDebuggerControl()

    def default_excluded_refs(self) -> ExcludedRefs:
        return ExcludedRefs.python_defaults()

    def default_heap_dumper(self) -> HeapDumper:
        leak_directory = LeakDirectoryProvider(self._config.resolved_heap_dump_dir(),
                                               self._config.max_stored_heap_dumps)
        return GcHeapDumper(leak_directory, max_nodes=self._config.max_graph_nodes,
                            max_depth=self._config.max_graph_depth)

    def default_heap_dump_listener(self) -> HeapDumpListener:
        return ServiceHeapDumpListener(self._config.listener_service,
                                       in_process=self._config.analyze_in_process)

    def default_watch_executor(self) -> WatchExecutor:
        return IdleWatchExecutor(self._config.watch_delay_ms, self._main_loop)
