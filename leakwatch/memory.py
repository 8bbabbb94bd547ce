#=============================================================================
# File        : leakwatch/memory.py
# Project     : LeakWatch v1.0
# Component   : Memory - Process Memory Measurement
# Description : Process memory figures recorded alongside heap snapshots
#               • psutil-backed RSS and peak measurement
#               • Null provider when measurement is disabled
#               • Cached reads to keep snapshot headers cheap
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, psutil
# Standards   : PEP 8, Type Hints, Cross-platform Compatibility
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: os, time, psutil
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import os
import time
from typing import Optional, Protocol, runtime_checkable

import psutil

_MB = 1024 * 1024


@runtime_checkable
class MemoryProvider(Protocol):
    """Protocol for memory measurement providers."""

    def get_rss_mb(self) -> float:
        """Get current RSS memory usage in MB."""
        ...

    def get_peak_mb(self) -> Optional[float]:
        """OS-reported peak RSS in MB, or None when the OS does not track it."""
        ...


class PsutilProvider:
    """Memory provider using psutil."""

    def __init__(self, pid: Optional[int] = None) -> None:
        self._process = psutil.Process(pid or os.getpid())

    def get_rss_mb(self) -> float:
        try:
            return self._process.memory_info().rss / _MB
        except psutil.Error:
            return 0.0

    def get_peak_mb(self) -> Optional[float]:
        # Only Windows exposes a peak working set through psutil.
        try:
            peak = getattr(self._process.memory_info(), 'peak_wset', None)
        except psutil.Error:
            return None
        return peak / _MB if peak is not None else None


class NullProvider:
    """Null memory provider when no measurement is available."""

    def get_rss_mb(self) -> float:
        return 0.0

    def get_peak_mb(self) -> Optional[float]:
        return None


class MemoryTracker:
    """
    Process memory tracking with a pluggable provider.

    Reads are cached for a short window so that repeated snapshot headers
    do not hammer the OS. The tracker also keeps the highest RSS it has
    read, which stands in for the peak where the OS does not report one.
    """

    def __init__(self, provider: Optional[MemoryProvider] = None) -> None:
        self._provider = provider if provider is not None else self._detect_provider()
        self._last_measurement: Optional[float] = None
        self._measurement_cache = 0.0
        self._cache_duration = 0.1
        self._high_water_mb = 0.0

    @staticmethod
    def _detect_provider() -> MemoryProvider:
        try:
            return PsutilProvider()
        except psutil.Error:
            return NullProvider()

    def get_rss_mb(self) -> float:
        """Get current RSS memory usage in MB with caching."""
        now = time.monotonic()
        if self._last_measurement is not None and now - self._last_measurement < self._cache_duration:
            return self._measurement_cache

        self._measurement_cache = self._provider.get_rss_mb()
        self._last_measurement = now
        self._high_water_mb = max(self._high_water_mb, self._measurement_cache)
        return self._measurement_cache

    def get_peak_mb(self) -> float:
        """Peak RSS in MB: the OS figure when available, else the highest read so far."""
        observed = max(self._high_water_mb, self.get_rss_mb())
        reported = self._provider.get_peak_mb()
        return max(reported, observed) if reported is not None else observed

    def get_provider_type(self) -> str:
        return type(self._provider).__name__


_default_tracker: Optional[MemoryTracker] = None


def get_memory_tracker() -> MemoryTracker:
    """Get the default global memory tracker instance."""
    global _default_tracker
    if _default_tracker is None:
        _default_tracker = MemoryTracker()
    return _default_tracker


# Testing hooks
def force_provider(provider: MemoryProvider) -> None:
    """Force a specific memory provider (replaces global tracker)."""
    global _default_tracker
    _default_tracker = MemoryTracker(provider)


def reset_global_state() -> None:
    global _default_tracker
    _default_tracker = None
