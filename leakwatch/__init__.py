#=============================================================================
# File        : leakwatch/__init__.py
# Project     : LeakWatch v1.0
# Component   : Package Initialization
# Description : Retained object detection for Python applications
#               • Weak reference watches with delayed, backed off checks
#               • Heap snapshots of objects that outlive their expected lifetime
#               • Out of process leak trace analysis
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Weak References, Threading, multiprocessing
# Standards   : PEP 8, Type Hints, Dataclasses
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: typing, pathlib, threading, asyncio, psutil
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. Released under MIT License.
#=============================================================================

"""
LeakWatch - Retained Object Detection

Watch objects that should be garbage soon. If one is still reachable after
a delay and a forced collection, LeakWatch captures a heap snapshot and
reports the shortest reference path keeping it alive.

Quick Start:
    import leakwatch

    leakwatch.install()

    def close_session(session):
        session.close()
        leakwatch.watch(session, "closed session")

    # Later
    print(leakwatch.get_status()['retained_count'])
"""

from .core import (
    install,
    install_ref_watcher,
    uninstall,
    watch,
    get_ref_watcher,
    is_installed,
    get_status,
)

from .config import LeakWatchConfig

from .watcher import RefWatcher
from .builder import RefWatcherBuilder, DefaultRefWatcherBuilder
from .executor import Result, IdleWatchExecutor
from .heapdump import HeapDump, RETRY_LATER

from .analysis.excluded_refs import ExcludedRefs
from .analysis.result import AnalysisResult, LeakTrace
from .analysis.result_service import AbstractAnalysisResultService

__version__ = "1.0.0"
__author__ = "LeakWatch Contributors"
__license__ = "MIT"
__description__ = "Retained object detection for Python applications"

__all__ = [
    # Core functions
    "install",
    "install_ref_watcher",
    "uninstall",
    "watch",
    "get_ref_watcher",
    "is_installed",
    "get_status",

    # Configuration
    "LeakWatchConfig",

    # Watching
    "RefWatcher",
    "RefWatcherBuilder",
    "DefaultRefWatcherBuilder",
    "Result",
    "IdleWatchExecutor",
    "HeapDump",
    "RETRY_LATER",

    # Analysis
    "ExcludedRefs",
    "AnalysisResult",
    "LeakTrace",
    "AbstractAnalysisResultService",

    # Metadata
    "__version__",
    "__author__",
    "__license__",
]
