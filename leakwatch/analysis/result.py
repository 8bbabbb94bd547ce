#=============================================================================
# File        : leakwatch/analysis/result.py
# Project     : LeakWatch v1.0
# Component   : Analysis Result - Outcome of One Heap Snapshot Analysis
# Description : Immutable analysis outcome handed to result services
#               • Leak / excluded leak / no leak / failure factories
#               • Leak trace from a root to the leaking object
#               • Dictionary serialization for the process boundary
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: dataclasses, traceback
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class LeakTraceElement:
    """One hop of a leak trace: ``holder`` references the next element."""
    holder_type: str
    label: str
    reference_kind: Optional[str] = None
    reference_name: Optional[str] = None
    exclusion: Optional[str] = None

    def __str__(self) -> str:
        text = self.label
        if self.reference_kind:
            ref = self.reference_name or "?"
            text += f" [{self.reference_kind}] {ref}"
        if self.exclusion:
            text += f"  (excluded: {self.exclusion})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            'holder_type': self.holder_type,
            'label': self.label,
            'reference_kind': self.reference_kind,
            'reference_name': self.reference_name,
            'exclusion': self.exclusion,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeakTraceElement":
        return cls(**{k: data.get(k) for k in
                      ('holder_type', 'label', 'reference_kind', 'reference_name', 'exclusion')})


@dataclass(frozen=True)
class LeakTrace:
    """Shortest reference path from a root (first) to the leaking object (last)."""
    elements: Tuple[LeakTraceElement, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        lines = []
        for i, element in enumerate(self.elements):
            prefix = "* " if i == 0 else "* ↳ "
            lines.append(f"{prefix}{element}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.elements)

    def to_dict(self) -> Dict[str, Any]:
        return {'elements': [e.to_dict() for e in self.elements]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeakTrace":
        return cls(tuple(LeakTraceElement.from_dict(e) for e in data.get('elements', [])))


@dataclass(frozen=True)
class AnalysisResult:
    """
    Outcome of analyzing one heap dump.

    Check ``leak_found`` and ``excluded_leak`` to see whether there was a
    leak and whether it can be ignored; ``failure`` is set when the
    analysis itself could not complete.
    """
    leak_found: bool
    excluded_leak: bool
    class_name: Optional[str] = None
    leak_trace: Optional[LeakTrace] = None
    retained_heap_size: int = 0
    failure: Optional[str] = None
    analysis_duration_ms: int = 0

    def __post_init__(self):
        if self.excluded_leak and not self.leak_found:
            raise ValueError("excluded_leak requires leak_found")

    @classmethod
    def no_leak(cls, analysis_duration_ms: int) -> "AnalysisResult":
        return cls(False, False, analysis_duration_ms=analysis_duration_ms)

    @classmethod
    def leak_detected(cls, excluded_leak: bool, class_name: str, leak_trace: LeakTrace,
                      retained_heap_size: int, analysis_duration_ms: int) -> "AnalysisResult":
        return cls(True, excluded_leak, class_name, leak_trace, retained_heap_size,
                   None, analysis_duration_ms)

    @classmethod
    def failure_from(cls, error: BaseException, analysis_duration_ms: int) -> "AnalysisResult":
        text = "".join(traceback.format_exception_only(type(error), error)).strip()
        return cls(False, False, failure=text, analysis_duration_ms=analysis_duration_ms)

    @property
    def failed(self) -> bool:
        return self.failure is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'leak_found': self.leak_found,
            'excluded_leak': self.excluded_leak,
            'class_name': self.class_name,
            'leak_trace': self.leak_trace.to_dict() if self.leak_trace is not None else None,
            'retained_heap_size': self.retained_heap_size,
            'failure': self.failure,
            'analysis_duration_ms': self.analysis_duration_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        trace = data.get('leak_trace')
        return cls(
            leak_found=bool(data['leak_found']),
            excluded_leak=bool(data['excluded_leak']),
            class_name=data.get('class_name'),
            leak_trace=LeakTrace.from_dict(trace) if trace is not None else None,
            retained_heap_size=int(data.get('retained_heap_size', 0)),
            failure=data.get('failure'),
            analysis_duration_ms=int(data.get('analysis_duration_ms', 0)),
        )

    def summary(self) -> str:
        """One line, human readable."""
        if self.failed:
            return f"Analysis failed: {self.failure}"
        if not self.leak_found:
            return "No leak found."
        kind = "Excluded leak" if self.excluded_leak else "Leak"
        return f"{kind}: {self.class_name} ({len(self.leak_trace or ())} hops)"
