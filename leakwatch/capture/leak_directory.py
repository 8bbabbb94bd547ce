#=============================================================================
# File        : leakwatch/capture/leak_directory.py
# Project     : LeakWatch v1.0
# Component   : Leak Directory - Heap Dump File Storage
# Description : Owns the directory heap dumps are written to
#               • Unique file names for new dumps
#               • Bounded number of stored dumps (oldest pruned first)
#               • Listing and clearing for the CLI
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, pathlib
# Standards   : PEP 8, Type Hints
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: os, pathlib, uuid, logging
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

import logging
import os
import time
import uuid
from pathlib import Path
from typing import List, Optional, Union

_logger = logging.getLogger(__name__)

HEAP_DUMP_SUFFIX = ".lwheap.json"
DEFAULT_MAX_STORED_HEAP_DUMPS = 7


class LeakDirectoryProvider:
    """Hands out new heap dump files and keeps the directory bounded."""

    def __init__(self, directory: Union[str, Path],
                 max_stored_heap_dumps: int = DEFAULT_MAX_STORED_HEAP_DUMPS) -> None:
        if max_stored_heap_dumps < 1:
            raise ValueError(
                f"max_stored_heap_dumps must be at least 1, got {max_stored_heap_dumps}")
        self.directory = Path(directory).expanduser()
        self.max_stored_heap_dumps = max_stored_heap_dumps

    def __repr__(self) -> str:
        return (f"LeakDirectoryProvider(directory='{self.directory}', "
                f"max_stored_heap_dumps={self.max_stored_heap_dumps})")

    def list_files(self) -> List[Path]:
        """Stored heap dumps, oldest first."""
        if not self.directory.is_dir():
            return []
        stamped = []
        for path in self.directory.iterdir():
            if not path.name.endswith(HEAP_DUMP_SUFFIX):
                continue
            try:
                stamped.append((path.stat().st_mtime, path.name, path))
            except FileNotFoundError:
                continue  # deleted by a result service meanwhile
        return [path for _, _, path in sorted(stamped)]

    def new_heap_dump_file(self) -> Optional[Path]:
        """
        Path for the next heap dump, or None when the directory is unusable.

        Makes room first so that, once written, at most
        ``max_stored_heap_dumps`` dumps are on disk.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            _logger.warning(f"Could not create leak directory {self.directory}: {e}")
            return None
        if not os.access(self.directory, os.W_OK):
            _logger.warning(f"Leak directory {self.directory} is not writable")
            return None

        self._prune(self.max_stored_heap_dumps - 1)
        stamp = time.strftime("%Y%m%d-%H%M%S")
        return self.directory / f"{stamp}-{os.getpid()}-{uuid.uuid4().hex[:8]}{HEAP_DUMP_SUFFIX}"

    def clear_leak_directory(self) -> int:
        """Delete every stored heap dump; returns how many were removed."""
        return self._prune(0)

    def _prune(self, keep: int) -> int:
        files = self.list_files()
        removed = 0
        for path in files[:max(0, len(files) - keep)]:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                _logger.warning(f"Could not delete old heap dump {path}: {e}")
        if removed:
            _logger.debug(f"Pruned {removed} heap dump(s) from {self.directory}")
        return removed
