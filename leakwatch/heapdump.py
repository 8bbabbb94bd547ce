#=============================================================================
# File        : leakwatch/heapdump.py
# Project     : LeakWatch v1.0
# Component   : Heap Dump Handoff - Snapshot Metadata and Capture Contracts
# Description : Data contract between the watcher and the analysis side
#               • HeapDump envelope with timing metadata
#               • HeapDumper / HeapDumpListener collaborator protocols
#               • RETRY_LATER sentinel for busy capture mechanisms
#               • JSON serialization across the process boundary
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, JSON
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: json, pathlib, dataclasses, analysis.excluded_refs
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Protocol, Union, runtime_checkable

from .analysis.excluded_refs import ExcludedRefs


class _RetryLater:
    """Returned by a HeapDumper that cannot capture right now."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "RETRY_LATER"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_RetryLater, ())


RETRY_LATER = _RetryLater()

DumpOutcome = Union[Path, _RetryLater]


@runtime_checkable
class HeapDumper(Protocol):
    """
    Captures a heap snapshot to a file.

    Must not block indefinitely: a capture already in flight, or any other
    transient unavailability, is reported as RETRY_LATER.
    """

    def dump_heap(self) -> DumpOutcome:
        ...


class NullHeapDumper:
    """Never captures; every call asks to retry later."""

    def dump_heap(self) -> DumpOutcome:
        return RETRY_LATER


@dataclass(frozen=True)
class HeapDump:
    """
    Everything the analysis side needs about one captured snapshot.

    The watching process owns ``heap_dump_file`` until the dump is handed
    to a listener; the result service deletes it after its callback.
    """
    heap_dump_file: Path
    reference_key: str
    reference_name: str
    excluded_refs: ExcludedRefs
    watch_duration_ms: int
    gc_duration_ms: int
    heap_dump_duration_ms: int

    def __post_init__(self):
        for name in ('heap_dump_file', 'reference_key', 'reference_name', 'excluded_refs'):
            if getattr(self, name) is None:
                raise ValueError(f"{name} must not be None")
        object.__setattr__(self, 'heap_dump_file', Path(self.heap_dump_file))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'heap_dump_file': str(self.heap_dump_file),
            'reference_key': self.reference_key,
            'reference_name': self.reference_name,
            'excluded_refs': self.excluded_refs.to_dict(),
            'watch_duration_ms': self.watch_duration_ms,
            'gc_duration_ms': self.gc_duration_ms,
            'heap_dump_duration_ms': self.heap_dump_duration_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HeapDump":
        return cls(
            heap_dump_file=Path(data['heap_dump_file']),
            reference_key=data['reference_key'],
            reference_name=data.get('reference_name', ""),
            excluded_refs=ExcludedRefs.from_dict(data.get('excluded_refs', {})),
            watch_duration_ms=int(data['watch_duration_ms']),
            gc_duration_ms=int(data['gc_duration_ms']),
            heap_dump_duration_ms=int(data['heap_dump_duration_ms']),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> "HeapDump":
        return cls.from_dict(json.loads(payload))


@runtime_checkable
class HeapDumpListener(Protocol):
    """Receives captured heap dumps; expected to return quickly."""

    def analyze(self, heap_dump: HeapDump) -> None:
        ...


class NullHeapDumpListener:

    def analyze(self, heap_dump: HeapDump) -> None:
        pass
