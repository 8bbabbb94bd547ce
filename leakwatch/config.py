#=============================================================================
# File        : leakwatch/config.py
# Project     : LeakWatch v1.0
# Component   : Configuration - LeakWatch Configuration Dataclass
# Description : Central configuration with validation and env overrides.
#               • Validation & coercion for safe values
#               • Environment variable overrides for ops
#               • Kill-switch and immutable runtime config
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses
# Standards   : PEP 8, Type Hints, Immutable Configuration
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: dataclasses, typing, os, pathlib
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

DEFAULT_LISTENER_SERVICE = "leakwatch.analysis.result_service:LoggingResultService"


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None: return default
    return v.strip().lower() in {"1", "true", "yes", "on"}

def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None: return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None: return default
    try:
        return int(v)
    except ValueError:
        return default


@dataclass(frozen=True)
class LeakWatchConfig:
    """
    LeakWatch runtime configuration.

    Safety defaults:
      - first check 5 seconds after watch(), then exponential backoff
      - analysis in a separate process
      - at most 7 heap dumps kept on disk
    """
    watch_delay_s: float = 5.0
    gc_pause_s: float = 0.1           # pause between the two gc.collect() calls
    max_stored_heap_dumps: int = 7
    heap_dump_dir: Optional[str] = None   # None -> ~/.leakwatch/heap_dumps
    analyze_in_process: bool = False      # thread instead of a spawned process
    max_graph_nodes: int = 5000
    max_graph_depth: int = 16
    detect_debugger: bool = True
    kill_switch: bool = False  # hard-off (e.g., LEAKWATCH_KILL_SWITCH=1)
    listener_service: str = DEFAULT_LISTENER_SERVICE

    def __post_init__(self):
        if self.max_stored_heap_dumps < 1:
            raise ValueError(
                f"max_stored_heap_dumps must be at least 1, got {self.max_stored_heap_dumps}")
        if not self.listener_service:
            raise ValueError("listener_service must name a result service class")

        # Normalize into the frozen dataclass
        object.__setattr__(self, "watch_delay_s", max(0.001, self.watch_delay_s))
        object.__setattr__(self, "gc_pause_s", max(0.0, self.gc_pause_s))
        object.__setattr__(self, "max_graph_nodes", max(1, self.max_graph_nodes))
        object.__setattr__(self, "max_graph_depth", max(1, self.max_graph_depth))

    # --------- Factory helpers ---------

    @staticmethod
    def from_env(base: Optional["LeakWatchConfig"] = None) -> "LeakWatchConfig":
        """
        Build config from environment variables, overlaying a base config.
        Supported envs:
          LEAKWATCH_WATCH_DELAY_S
          LEAKWATCH_GC_PAUSE_S
          LEAKWATCH_MAX_STORED_HEAP_DUMPS
          LEAKWATCH_HEAP_DUMP_DIR
          LEAKWATCH_ANALYZE_IN_PROCESS (0|1)
          LEAKWATCH_DETECT_DEBUGGER (0|1)
          LEAKWATCH_KILL_SWITCH (0|1)
          LEAKWATCH_LISTENER_SERVICE (module:ClassName)
        """
        base = base or LeakWatchConfig()
        return replace(
            base,
            watch_delay_s=_env_float("LEAKWATCH_WATCH_DELAY_S", base.watch_delay_s),
            gc_pause_s=_env_float("LEAKWATCH_GC_PAUSE_S", base.gc_pause_s),
            max_stored_heap_dumps=_env_int("LEAKWATCH_MAX_STORED_HEAP_DUMPS",
                                           base.max_stored_heap_dumps),
            heap_dump_dir=os.getenv("LEAKWATCH_HEAP_DUMP_DIR", base.heap_dump_dir),
            analyze_in_process=_env_bool("LEAKWATCH_ANALYZE_IN_PROCESS", base.analyze_in_process),
            detect_debugger=_env_bool("LEAKWATCH_DETECT_DEBUGGER", base.detect_debugger),
            kill_switch=_env_bool("LEAKWATCH_KILL_SWITCH", base.kill_switch),
            listener_service=(os.getenv("LEAKWATCH_LISTENER_SERVICE") or base.listener_service),
        )

    def merge(self, **overrides) -> "LeakWatchConfig":
        """Return a copy with provided fields overridden (immutably)."""
        return replace(self, **overrides)

    # --------- Convenience getters ---------

    def is_enabled(self) -> bool:
        return not self.kill_switch

    @property
    def watch_delay_ms(self) -> int:
        return max(1, int(round(self.watch_delay_s * 1000)))

    def resolved_heap_dump_dir(self) -> Path:
        if self.heap_dump_dir:
            return Path(self.heap_dump_dir).expanduser()
        return Path.home() / ".leakwatch" / "heap_dumps"
