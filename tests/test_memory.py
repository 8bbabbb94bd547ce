#=============================================================================
# File        : tests/test_memory.py
# Project     : LeakWatch v1.0
# Component   : Memory Tracking Test Suite
# Description : Provider selection, caching, peak tracking and global hooks
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

from leakwatch import memory
from leakwatch.memory import MemoryTracker, NullProvider, PsutilProvider


class CountingProvider:

    def __init__(self):
        self.reads = 0

    def get_rss_mb(self):
        self.reads += 1
        return 12.5

    def get_peak_mb(self):
        return None


class SequenceProvider:
    """Returns the given RSS readings in order, then repeats the last one."""

    def __init__(self, readings, peak=None):
        self.readings = list(readings)
        self.peak = peak

    def get_rss_mb(self):
        if len(self.readings) > 1:
            return self.readings.pop(0)
        return self.readings[0]

    def get_peak_mb(self):
        return self.peak


class TestMemoryTracker:

    def test_psutil_provider_by_default(self):
        tracker = MemoryTracker()
        assert tracker.get_provider_type() == "PsutilProvider"
        assert tracker.get_rss_mb() > 0
        assert tracker.get_peak_mb() >= tracker.get_rss_mb()

    def test_reads_are_cached(self):
        provider = CountingProvider()
        tracker = MemoryTracker(provider)
        assert tracker.get_rss_mb() == 12.5
        assert tracker.get_rss_mb() == 12.5
        assert provider.reads == 1

    def test_peak_falls_back_to_highest_reading(self):
        tracker = MemoryTracker(SequenceProvider([10.0, 30.0, 20.0]))
        tracker._cache_duration = 0
        readings = [tracker.get_rss_mb() for _ in range(3)]
        assert readings == [10.0, 30.0, 20.0]
        assert tracker.get_peak_mb() == 30.0

    def test_peak_prefers_os_figure(self):
        tracker = MemoryTracker(SequenceProvider([10.0], peak=50.0))
        assert tracker.get_peak_mb() == 50.0

    def test_null_provider(self):
        tracker = MemoryTracker(NullProvider())
        assert tracker.get_rss_mb() == 0.0
        assert tracker.get_peak_mb() == 0.0

    def test_psutil_provider_reads_current_process(self):
        provider = PsutilProvider()
        assert provider.get_rss_mb() > 0
        peak = provider.get_peak_mb()
        assert peak is None or peak > 0


class TestGlobalTracker:

    def test_global_tracker_is_shared(self):
        assert memory.get_memory_tracker() is memory.get_memory_tracker()

    def test_force_provider_and_reset(self):
        memory.force_provider(NullProvider())
        assert memory.get_memory_tracker().get_provider_type() == "NullProvider"
        memory.reset_global_state()
        assert memory.get_memory_tracker().get_provider_type() == "PsutilProvider"
