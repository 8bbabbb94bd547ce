"""Heap dump capture and storage."""

from .leak_directory import HEAP_DUMP_SUFFIX, LeakDirectoryProvider
from .heap_dumper import GcHeapDumper

__all__ = ['HEAP_DUMP_SUFFIX', 'LeakDirectoryProvider', 'GcHeapDumper']
