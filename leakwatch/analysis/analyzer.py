#=============================================================================
# File        : leakwatch/analysis/analyzer.py
# Project     : LeakWatch v1.0
# Component   : Heap Analyzer - Shortest Path to a Root
# Description : Explains why a watched object is still reachable
#               • Loads a referrer graph snapshot written by GcHeapDumper
#               • Shortest path from a module global to the leaking object
#               • Excluded references tried only when no clean path exists
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Graph Search, JSON
# Standards   : PEP 8, Type Hints
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: json, collections, excluded_refs, result
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import json
import logging
import time
from collections import defaultdict, deque
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .excluded_refs import ExcludedRefs, Exclusion
from .result import AnalysisResult, LeakTrace, LeakTraceElement

_logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("leakwatch-heap/1",)

# holder id -> (edge to the child, child id, matching exclusion)
_Parents = Dict[str, Tuple[Dict[str, Any], str, Optional[Exclusion]]]


def _since_ms(start_ns: int) -> int:
    return max(0, (time.perf_counter_ns() - start_ns) // 1_000_000)


class HeapAnalyzer:
    """
    Analyzes heap dumps to find whether a watched object is leaking.

    ``check_for_leak`` never raises for a bad snapshot: unreadable files
    and unknown keys come back as a failed AnalysisResult.
    """

    def __init__(self, excluded_refs: ExcludedRefs) -> None:
        if excluded_refs is None:
            raise ValueError("excluded_refs must not be None")
        self.excluded_refs = excluded_refs

    def check_for_leak(self, heap_dump_file: Union[str, Path], reference_key: str) -> AnalysisResult:
        start_ns = time.perf_counter_ns()
        try:
            snapshot = self._load(Path(heap_dump_file))
            return self._find_leak(snapshot, reference_key, start_ns)
        except Exception as e:
            _logger.debug(f"Heap analysis of {heap_dump_file} failed: {e}")
            return AnalysisResult.failure_from(e, _since_ms(start_ns))

    @staticmethod
    def _load(path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            snapshot = json.load(f)
        if not isinstance(snapshot, dict) or snapshot.get('format') not in SUPPORTED_FORMATS:
            raise ValueError(f"{path} is not a LeakWatch heap dump")
        return snapshot

    def _find_leak(self, snapshot: Dict[str, Any], reference_key: str,
                   start_ns: int) -> AnalysisResult:
        reference = next((r for r in snapshot.get('references', [])
                          if r.get('key') == reference_key), None)
        if reference is None:
            raise ValueError(f"Could not find weak reference with key {reference_key}")

        nodes: Dict[str, Dict[str, Any]] = snapshot.get('nodes', {})
        target = reference.get('target')
        if not reference.get('alive') or target is None or target not in nodes:
            # Collected between the last check and the capture.
            return AnalysisResult.no_leak(_since_ms(start_ns))

        incoming: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for edge in snapshot.get('edges', []):
            incoming[edge['to']].append(edge)

        excluded_leak = False
        found = self._shortest_path(target, nodes, incoming, allow_excluded=False)
        if found is None:
            found = self._shortest_path(target, nodes, incoming, allow_excluded=True)
            excluded_leak = found is not None
        if found is None:
            if snapshot.get('truncated'):
                _logger.debug(f"No root path for {reference_key} in a truncated snapshot")
            return AnalysisResult.no_leak(_since_ms(start_ns))

        root, parents = found
        target_node = nodes[target]
        return AnalysisResult.leak_detected(
            excluded_leak=excluded_leak,
            class_name=target_node['type'],
            leak_trace=self._build_trace(root, target, nodes, parents),
            retained_heap_size=int(target_node.get('size', 0)),
            analysis_duration_ms=_since_ms(start_ns),
        )

    def _shortest_path(self, target: str, nodes: Dict[str, Dict[str, Any]],
                       incoming: Dict[str, List[Dict[str, Any]]],
                       allow_excluded: bool) -> Optional[Tuple[str, _Parents]]:
        parents: _Parents = {}
        visited = {target}
        pending = deque([target])
        while pending:
            current = pending.popleft()
            if nodes[current].get('root'):
                return current, parents
            for edge in incoming.get(current, ()):
                holder_id = edge['from']
                holder = nodes.get(holder_id)
                if holder is None or holder_id in visited:
                    continue
                exclusion = self.excluded_refs.match(edge, holder)
                if exclusion is not None and (exclusion.always_exclude or not allow_excluded):
                    continue
                visited.add(holder_id)
                parents[holder_id] = (edge, current, exclusion)
                pending.append(holder_id)
        return None

    @staticmethod
    def _build_trace(root: str, target: str, nodes: Dict[str, Dict[str, Any]],
                     parents: _Parents) -> LeakTrace:
        elements = []
        current = root
        while current != target:
            edge, child, exclusion = parents[current]
            node = nodes[current]
            elements.append(LeakTraceElement(
                holder_type=node['type'],
                label=node['label'],
                reference_kind=edge.get('kind'),
                reference_name=edge.get('name'),
                exclusion=exclusion.describe() if exclusion is not None else None,
            ))
            current = child
        leaking = nodes[target]
        elements.append(LeakTraceElement(holder_type=leaking['type'], label=leaking['label']))
        return LeakTrace(tuple(elements))
