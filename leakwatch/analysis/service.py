#=============================================================================
# File        : leakwatch/analysis/service.py
# Project     : LeakWatch v1.0
# Component   : Heap Analyzer Service - Out of Process Analysis
# Description : Runs heap analysis away from the watched process
#               • Spawned "LeakWatch-HeapAnalyzer" process or worker thread
#               • JSON envelope across the process boundary
#               • Listener handing heap dumps to the worker
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, multiprocessing, threading
# Standards   : PEP 8, Type Hints, Process Isolation
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: multiprocessing, json, analyzer, result_service
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import json
import logging
import multiprocessing
import threading
import time
from typing import Any, Type, Union

from ..heapdump import HeapDump
from .analyzer import HeapAnalyzer
from .result import AnalysisResult
from .result_service import (
    ServiceRef, import_object, resolve_service_class, send_result_to_listener, service_name
)

_logger = logging.getLogger(__name__)

ANALYZER_PROCESS_NAME = "LeakWatch-HeapAnalyzer"

AnalyzerRef = Union[str, Type[HeapAnalyzer]]


def is_in_analyzer_process() -> bool:
    """True inside the process started to analyze a heap dump."""
    return multiprocessing.current_process().name == ANALYZER_PROCESS_NAME


def _class_name(cls: Union[str, type]) -> str:
    return cls if isinstance(cls, str) else service_name(cls)


def build_request(heap_dump: HeapDump, listener_service: ServiceRef,
                  analyzer_class: AnalyzerRef = HeapAnalyzer) -> str:
    return json.dumps({
        'heap_dump': heap_dump.to_dict(),
        'listener_service': _class_name(listener_service),
        'analyzer': _class_name(analyzer_class),
    })


def run_analysis(heap_dump: HeapDump, listener_service: ServiceRef,
                 analyzer_class: AnalyzerRef = HeapAnalyzer,
                 in_process: bool = False) -> Any:
    """
    Start analyzing ``heap_dump`` and return immediately.

    Returns the started ``multiprocessing.Process``, or the worker thread
    when ``in_process`` is set.
    """
    request = build_request(heap_dump, listener_service, analyzer_class)
    if in_process:
        worker = threading.Thread(target=handle_analysis, args=(request,),
                                  name=ANALYZER_PROCESS_NAME, daemon=True)
    else:
        # spawn: never fork a process that may hold locks in other threads
        context = multiprocessing.get_context("spawn")
        worker = context.Process(target=_analyzer_main, args=(request,),
                                 name=ANALYZER_PROCESS_NAME)
    worker.start()
    _logger.debug(f"Started analysis of {heap_dump.heap_dump_file} in {worker.name}")
    return worker


def handle_analysis(request: str) -> None:
    """Analyze one heap dump and deliver the result; worker entry point."""
    try:
        data = json.loads(request)
        heap_dump = HeapDump.from_dict(data['heap_dump'])
        listener_service = data['listener_service']
        analyzer_name = data.get('analyzer')
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        _logger.error(f"Ignoring malformed analysis request: {e}")
        return

    start = time.monotonic()
    try:
        analyzer_class = import_object(analyzer_name) if analyzer_name else HeapAnalyzer
        analyzer = analyzer_class(heap_dump.excluded_refs)
        result = analyzer.check_for_leak(heap_dump.heap_dump_file, heap_dump.reference_key)
    except Exception as e:
        # The listener still gets a result so that it deletes the dump.
        _logger.debug(f"Analyzer {analyzer_name} failed: {e}")
        result = AnalysisResult.failure_from(e, int((time.monotonic() - start) * 1000))
    send_result_to_listener(listener_service, heap_dump, result)


def _analyzer_main(request: str) -> None:
    logging.basicConfig(level=logging.INFO, format='[LeakWatch] %(levelname)s: %(message)s')
    handle_analysis(request)


class ServiceHeapDumpListener:
    """
    HeapDumpListener starting one analysis worker per heap dump.

    The result service is resolved here so that a misconfigured name fails
    when the watcher is built rather than after the first leak.
    """

    def __init__(self, listener_service: ServiceRef,
                 analyzer_class: AnalyzerRef = HeapAnalyzer,
                 in_process: bool = False) -> None:
        if listener_service is None:
            raise ValueError("listener_service must not be None")
        self.listener_service_class = resolve_service_class(listener_service)
        self.analyzer_class = analyzer_class
        self.in_process = in_process

    def __repr__(self) -> str:
        mode = "thread" if self.in_process else "process"
        return f"ServiceHeapDumpListener({service_name(self.listener_service_class)}, {mode})"

    def analyze(self, heap_dump: HeapDump) -> None:
        if heap_dump is None:
            raise ValueError("heap_dump must not be None")
        run_analysis(heap_dump, self.listener_service_class, self.analyzer_class, self.in_process)
