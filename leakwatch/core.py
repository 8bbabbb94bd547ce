#=============================================================================
# File        : leakwatch/core.py
# Project     : LeakWatch v1.0
# Component   : Core API - Process-Wide Leak Watcher
# Description : Single entry point for applications
#               • install() / uninstall() of the process-wide RefWatcher
#               • watch() shortcut usable before install (no-op)
#               • Status reporting with process memory
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading
# Standards   : PEP 8, Type Hints, Thread Safety
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: builder, config, memory, watcher
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict
from typing import Any, Dict, Optional

from .builder import DefaultRefWatcherBuilder
from .config import LeakWatchConfig
from .memory import get_memory_tracker
from .watcher import RefWatcher

# Configure safe logging defaults
_logger = logging.getLogger(__name__)
_logger.setLevel(logging.WARNING)  # Only WARN/ERROR by default

# Add console handler only if none exists
if not _logger.handlers and not logging.getLogger().handlers:
    _console_handler = logging.StreamHandler()
    _console_handler.setLevel(logging.WARNING)
    _formatter = logging.Formatter('[LeakWatch] %(levelname)s: %(message)s')
    _console_handler.setFormatter(_formatter)
    _logger.addHandler(_console_handler)

# Builder methods install() accepts as keyword arguments
_BUILDER_OPTIONS = (
    'heap_dump_listener', 'excluded_refs', 'heap_dumper', 'debugger_control',
    'watch_executor', 'gc_trigger', 'listener_service_class', 'watch_delay',
    'max_stored_heap_dumps', 'main_loop',
)

# Global state for the process-wide watcher
_leakwatch_state = {
    'is_installed': False,
    'ref_watcher': RefWatcher.DISABLED,
    'config': None,
    'install_time': 0.0,
    'watch_count': 0,
    'state_lock': threading.RLock(),
}


def install(config: Optional[LeakWatchConfig] = None, **builder_overrides: Any) -> RefWatcher:
    """
    Build the default RefWatcher and make it the process-wide one.

    Args:
        config: Configuration; LeakWatchConfig.from_env() when omitted
        **builder_overrides: DefaultRefWatcherBuilder setters to apply,
            e.g. ``listener_service_class=MyService`` or ``main_loop=loop``

    Returns the installed watcher, which is RefWatcher.DISABLED inside the
    analyzer process or when the kill switch is on. Calling install() again
    returns the current watcher unchanged.
    """
    with _leakwatch_state['state_lock']:
        if _leakwatch_state['is_installed']:
            _logger.warning("LeakWatch already installed")
            return _leakwatch_state['ref_watcher']

        builder = DefaultRefWatcherBuilder(config)
        for name, value in builder_overrides.items():
            if name not in _BUILDER_OPTIONS:
                raise TypeError(f"install() got an unexpected keyword argument '{name}'")
            getattr(builder, name)(value)
        return builder.build_and_install()


def install_ref_watcher(ref_watcher: RefWatcher,
                        config: Optional[LeakWatchConfig] = None) -> RefWatcher:
    """Make ``ref_watcher`` the process-wide watcher, replacing any previous one."""
    if ref_watcher is None:
        raise ValueError("ref_watcher must not be None")
    with _leakwatch_state['state_lock']:
        previous = _leakwatch_state['ref_watcher']
        if previous is not ref_watcher:
            _shutdown(previous)
        _leakwatch_state['ref_watcher'] = ref_watcher
        _leakwatch_state['config'] = config
        _leakwatch_state['is_installed'] = True
        _leakwatch_state['install_time'] = time.time()
        _leakwatch_state['watch_count'] = 0

    if ref_watcher.is_disabled:
        _logger.info("LeakWatch installed disabled")
    else:
        _logger.info(f"LeakWatch installed: {ref_watcher!r}")
    return ref_watcher


def uninstall() -> None:
    """Stop the process-wide watcher; pending checks are dropped."""
    with _leakwatch_state['state_lock']:
        if not _leakwatch_state['is_installed']:
            return
        _shutdown(_leakwatch_state['ref_watcher'])
        _leakwatch_state['ref_watcher'] = RefWatcher.DISABLED
        _leakwatch_state['config'] = None
        _leakwatch_state['is_installed'] = False
        _leakwatch_state['install_time'] = 0.0
        _logger.info("LeakWatch uninstalled")


def _shutdown(ref_watcher: RefWatcher) -> None:
    shutdown = getattr(ref_watcher.watch_executor, 'shutdown', None)
    if callable(shutdown):
        try:
            shutdown()
        except Exception as e:
            _logger.error(f"Error stopping watch executor: {e}")


def watch(watched_reference: Any, reference_name: str = "") -> Optional[str]:
    """
    Watch an object with the process-wide watcher.

    Returns the watch key, or None when LeakWatch is not installed or
    disabled.
    """
    key = get_ref_watcher().watch(watched_reference, reference_name)
    if key is not None:
        with _leakwatch_state['state_lock']:
            _leakwatch_state['watch_count'] += 1
    return key


def get_ref_watcher() -> RefWatcher:
    return _leakwatch_state['ref_watcher']


def is_installed() -> bool:
    """Check if LeakWatch is currently installed."""
    return _leakwatch_state['is_installed']


def get_status() -> Dict[str, Any]:
    """
    Get status information about LeakWatch.

    Returns:
        Dictionary with install state, retained keys and process memory
    """
    with _leakwatch_state['state_lock']:
        ref_watcher = _leakwatch_state['ref_watcher']
        config = _leakwatch_state['config']
        install_time = _leakwatch_state['install_time']

        status = {
            'is_installed': _leakwatch_state['is_installed'],
            'is_disabled': ref_watcher.is_disabled,
            'uptime_seconds': time.time() - install_time if install_time else 0,
            'watch_count': _leakwatch_state['watch_count'],
            'retained_count': len(ref_watcher.retained_keys),
        }

    memory_tracker = get_memory_tracker()
    status['memory'] = {
        'rss_mb': memory_tracker.get_rss_mb(),
        'peak_rss_mb': memory_tracker.get_peak_mb(),
        'provider': memory_tracker.get_provider_type(),
    }
    if config is not None:
        status['configuration'] = asdict(config)
    return status
