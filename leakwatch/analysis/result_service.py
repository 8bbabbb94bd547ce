#=============================================================================
# File        : leakwatch/analysis/result_service.py
# Project     : LeakWatch v1.0
# Component   : Analysis Result Service - Delivery and Dump Cleanup
# Description : Final stop of every analysis
#               • Resolves the result service class named by the host
#               • Runs the host callback with the heap dump and its result
#               • Deletes the heap dump file exactly once afterwards
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, importlib, JSON
# Standards   : PEP 8, Type Hints
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: importlib, json, heapdump, result
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import importlib
import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, Type, Union

from ..heapdump import HeapDump
from .result import AnalysisResult

_logger = logging.getLogger(__name__)

ServiceRef = Union[str, Type["AbstractAnalysisResultService"]]


class AbstractAnalysisResultService(ABC):
    """
    Receives the outcome of one heap analysis.

    Subclasses implement ``on_heap_analyzed``; the heap dump file is
    deleted once it returns or raises, so do not keep a reference to it.
    Must be importable by name from the analyzer process.
    """

    def on_handle_result(self, envelope: Union[str, Dict[str, Any]]) -> None:
        if isinstance(envelope, str):
            envelope = json.loads(envelope)
        heap_dump = HeapDump.from_dict(envelope['heap_dump'])
        result = AnalysisResult.from_dict(envelope['result'])
        try:
            self.on_heap_analyzed(heap_dump, result)
        finally:
            self._delete_heap_dump(heap_dump)

    @abstractmethod
    def on_heap_analyzed(self, heap_dump: HeapDump, result: AnalysisResult) -> None:
        """Called with the analysis outcome; runs in the analyzer process."""

    @staticmethod
    def _delete_heap_dump(heap_dump: HeapDump) -> None:
        try:
            heap_dump.heap_dump_file.unlink()
        except FileNotFoundError:
            _logger.debug(f"Heap dump {heap_dump.heap_dump_file} already removed")
        except OSError as e:
            _logger.error(f"Could not delete heap dump {heap_dump.heap_dump_file}: {e}")


class LoggingResultService(AbstractAnalysisResultService):
    """Default result service: reports every analysis through logging."""

    def on_heap_analyzed(self, heap_dump: HeapDump, result: AnalysisResult) -> None:
        name = heap_dump.reference_name or heap_dump.reference_key
        if result.failed:
            _logger.error(f"Analysis of '{name}' failed: {result.failure}")
        elif not result.leak_found:
            _logger.debug(f"'{name}' was not leaking ({result.analysis_duration_ms} ms)")
        elif result.excluded_leak:
            _logger.info(f"Excluded leak of '{name}': {result.summary()}\n{result.leak_trace}")
        else:
            _logger.warning(
                f"Leak of '{name}' ({result.class_name}, {result.retained_heap_size} bytes, "
                f"watched {heap_dump.watch_duration_ms} ms):\n{result.leak_trace}")


def service_name(service_class: type) -> str:
    return f"{service_class.__module__}:{service_class.__qualname__}"


def resolve_service_class(service: ServiceRef) -> Type[AbstractAnalysisResultService]:
    """
    Resolve a result service from a class or a ``module:QualName`` /
    ``module.Class`` name.

    Raises:
        RuntimeError: The class cannot be found or is not a result service
    """
    if isinstance(service, str):
        service_class = import_object(service)
    else:
        service_class = service
    if not (isinstance(service_class, type)
            and issubclass(service_class, AbstractAnalysisResultService)):
        raise RuntimeError(f"{service!r} is not an AbstractAnalysisResultService subclass")
    return service_class


def import_object(name: str) -> Any:
    """Import ``module:QualName`` or ``module.Name``; RuntimeError when missing."""
    if ":" in name:
        module_name, qualname = name.split(":", 1)
    else:
        module_name, _, qualname = name.rpartition(".")
    if not module_name or not qualname:
        raise RuntimeError(f"Invalid object name '{name}'")
    module = sys.modules.get(module_name)
    if module is None:
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise RuntimeError(f"Cannot import module '{module_name}': {e}") from e
    obj: Any = module
    for part in qualname.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise RuntimeError(f"'{name}' not found") from e
    return obj


def build_envelope(heap_dump: HeapDump, result: AnalysisResult) -> str:
    return json.dumps({'heap_dump': heap_dump.to_dict(), 'result': result.to_dict()})


def send_result_to_listener(service: ServiceRef, heap_dump: HeapDump,
                            result: AnalysisResult) -> None:
    """Deliver ``result`` to a fresh instance of the named result service."""
    service_class = resolve_service_class(service)
    service_class().on_handle_result(build_envelope(heap_dump, result))
