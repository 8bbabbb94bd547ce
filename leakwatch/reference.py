#=============================================================================
# File        : leakwatch/reference.py
# Project     : LeakWatch v1.0
# Component   : References - Liveness Probes and Retained Keys
# Description : Weak, keyed handles on watched objects
#               • KeyedWeakReference probes tagged with a unique key
#               • Reference queue fed by weakref callbacks
#               • Thread-safe set of keys still believed alive
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Weak References
# Standards   : PEP 8, Type Hints
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: weakref, threading, collections
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import threading
import weakref
from collections import deque
from typing import Any, FrozenSet, Iterator, Optional, Set


class ReferenceQueue:
    """
    Queue of probes whose referent has been collected.

    CPython invokes weakref callbacks on whichever thread happens to drop
    the last reference (or run the collector), so the queue relies on
    ``deque.append``/``deque.popleft`` being atomic.
    """

    def __init__(self) -> None:
        self._items: deque = deque()

    def enqueue(self, reference: "KeyedWeakReference") -> None:
        self._items.append(reference)

    def poll(self) -> Optional["KeyedWeakReference"]:
        """Return the next enqueued probe, or None when the queue is empty."""
        try:
            return self._items.popleft()
        except IndexError:
            return None

    def __len__(self) -> int:
        return len(self._items)


class KeyedWeakReference(weakref.ref):
    """
    A weak reference tagged with a unique key and a human readable name.

    The probe enqueues itself on ``queue`` once its referent is collected.
    It never holds a strong reference to the referent.
    """

    def __new__(cls, referent: Any, key: str, name: str, queue: ReferenceQueue):
        return super().__new__(cls, referent, queue.enqueue)

    def __init__(self, referent: Any, key: str, name: str, queue: ReferenceQueue) -> None:
        super().__init__(referent, queue.enqueue)
        self.key = key
        self.name = name

    def __repr__(self) -> str:
        state = "dead" if self() is None else "alive"
        return f"KeyedWeakReference(key='{self.key}', name='{self.name}', {state})"


class RetainedKeySet:
    """Keys of watched objects that no queue drain has yet seen collected."""

    def __init__(self) -> None:
        self._keys: Set[str] = set()
        self._lock = threading.Lock()

    def add(self, key: str) -> None:
        with self._lock:
            self._keys.add(key)

    def discard(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    def snapshot(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._keys)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())
