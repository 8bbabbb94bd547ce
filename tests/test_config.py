#=============================================================================
# File        : tests/test_config.py
# Project     : LeakWatch v1.0
# Component   : Configuration Test Suite
# Description : Defaults, validation and environment overrides
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import dataclasses
from pathlib import Path

import pytest

from leakwatch.config import DEFAULT_LISTENER_SERVICE, LeakWatchConfig


class TestLeakWatchConfig:

    def test_defaults(self):
        config = LeakWatchConfig()
        assert config.watch_delay_ms == 5000
        assert config.max_stored_heap_dumps == 7
        assert config.listener_service == DEFAULT_LISTENER_SERVICE
        assert config.is_enabled()
        assert config.resolved_heap_dump_dir() == Path.home() / ".leakwatch" / "heap_dumps"

    def test_is_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            LeakWatchConfig().watch_delay_s = 1.0

    def test_merge_returns_copy(self):
        config = LeakWatchConfig()
        merged = config.merge(kill_switch=True)
        assert not merged.is_enabled()
        assert config.is_enabled()

    @pytest.mark.parametrize("value", [0, -1])
    def test_rejects_non_positive_max_stored(self, value):
        with pytest.raises(ValueError):
            LeakWatchConfig(max_stored_heap_dumps=value)

    def test_rejects_empty_listener_service(self):
        with pytest.raises(ValueError):
            LeakWatchConfig(listener_service="")

    def test_clamps_small_values(self):
        config = LeakWatchConfig(watch_delay_s=0.0, gc_pause_s=-1.0, max_graph_nodes=0,
                                 max_graph_depth=-3)
        assert config.watch_delay_ms == 1
        assert config.gc_pause_s == 0.0
        assert config.max_graph_nodes == 1
        assert config.max_graph_depth == 1

    def test_custom_heap_dump_dir(self, tmp_path):
        config = LeakWatchConfig(heap_dump_dir=str(tmp_path))
        assert config.resolved_heap_dump_dir() == tmp_path


class TestFromEnv:

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LEAKWATCH_WATCH_DELAY_S", "0.25")
        monkeypatch.setenv("LEAKWATCH_GC_PAUSE_S", "0")
        monkeypatch.setenv("LEAKWATCH_MAX_STORED_HEAP_DUMPS", "3")
        monkeypatch.setenv("LEAKWATCH_HEAP_DUMP_DIR", str(tmp_path))
        monkeypatch.setenv("LEAKWATCH_ANALYZE_IN_PROCESS", "1")
        monkeypatch.setenv("LEAKWATCH_DETECT_DEBUGGER", "no")
        monkeypatch.setenv("LEAKWATCH_KILL_SWITCH", "true")
        monkeypatch.setenv("LEAKWATCH_LISTENER_SERVICE", "app.services:LeakReporter")

        config = LeakWatchConfig.from_env()

        assert config.watch_delay_ms == 250
        assert config.gc_pause_s == 0.0
        assert config.max_stored_heap_dumps == 3
        assert config.resolved_heap_dump_dir() == tmp_path
        assert config.analyze_in_process
        assert not config.detect_debugger
        assert not config.is_enabled()
        assert config.listener_service == "app.services:LeakReporter"

    def test_invalid_numbers_fall_back(self, monkeypatch):
        monkeypatch.setenv("LEAKWATCH_WATCH_DELAY_S", "soon")
        monkeypatch.setenv("LEAKWATCH_MAX_STORED_HEAP_DUMPS", "many")
        base = LeakWatchConfig(watch_delay_s=2.0)

        config = LeakWatchConfig.from_env(base)

        assert config.watch_delay_s == 2.0
        assert config.max_stored_heap_dumps == 7

    def test_unset_environment_keeps_base(self, monkeypatch):
        for name in ("LEAKWATCH_WATCH_DELAY_S", "LEAKWATCH_KILL_SWITCH",
                     "LEAKWATCH_HEAP_DUMP_DIR", "LEAKWATCH_LISTENER_SERVICE"):
            monkeypatch.delenv(name, raising=False)
        base = LeakWatchConfig(watch_delay_s=1.5, heap_dump_dir="/tmp/leaks")
        assert LeakWatchConfig.from_env(base) == base
