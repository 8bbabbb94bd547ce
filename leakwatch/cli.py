#!/usr/bin/env python3
"""
LeakWatch CLI Interface

Command-line interface for inspecting LeakWatch heap dumps.
"""

import argparse
import json
import sys
import time
from pathlib import Path

from . import __version__
from .analysis.analyzer import HeapAnalyzer
from .analysis.excluded_refs import ExcludedRefs
from .capture.leak_directory import LeakDirectoryProvider
from .config import LeakWatchConfig


def create_parser():
    """Create the argument parser for LeakWatch CLI."""
    parser = argparse.ArgumentParser(
        prog='leakwatch',
        description='LeakWatch - Retained Object Detection for Python Applications',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  leakwatch dumps
  leakwatch analyze ~/.leakwatch/heap_dumps/20250902-101500-4242-1a2b3c4d.lwheap.json
  leakwatch analyze DUMP --key 5f0c... --json
  leakwatch clear --dir /tmp/leaks
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Analyze command
    analyze_parser = subparsers.add_parser('analyze', help='Find the leak trace in a heap dump')
    analyze_parser.add_argument('dump', type=str, help='Heap dump file')
    analyze_parser.add_argument('--key', '-k', type=str,
                                help='Watch key to analyze (default: every retained object)')
    analyze_parser.add_argument('--json', action='store_true',
                                help='Output results as JSON')
    analyze_parser.add_argument('--no-default-exclusions', action='store_true',
                                help='Do not exclude interpreter-level references')

    # Dumps command
    dumps_parser = subparsers.add_parser('dumps', help='List stored heap dumps')
    dumps_parser.add_argument('--dir', '-d', type=str,
                              help='Heap dump directory (default: from environment)')

    # Clear command
    clear_parser = subparsers.add_parser('clear', help='Delete stored heap dumps')
    clear_parser.add_argument('--dir', '-d', type=str,
                              help='Heap dump directory (default: from environment)')

    return parser


def _leak_directory(args):
    config = LeakWatchConfig.from_env()
    directory = Path(args.dir).expanduser() if args.dir else config.resolved_heap_dump_dir()
    return LeakDirectoryProvider(directory, config.max_stored_heap_dumps)


def _retained_keys(path):
    with open(path, 'r', encoding='utf-8') as f:
        snapshot = json.load(f)
    if not isinstance(snapshot, dict):
        raise ValueError(f"{path} is not a LeakWatch heap dump")
    references = snapshot.get('references') or []
    return [r['key'] for r in references if isinstance(r, dict) and r.get('alive') and 'key' in r]


def format_result_text(key, result):
    """Format one analysis result for text output."""
    lines = [f"Key: {key}", result.summary()]
    if result.leak_found:
        lines.append(f"Retained size: {result.retained_heap_size} bytes")
        lines.append(str(result.leak_trace))
    lines.append(f"Analysis Duration: {result.analysis_duration_ms} ms")
    return "\n".join(lines)


def cmd_analyze(args):
    """Handle analyze command."""
    excluded_refs = ExcludedRefs() if args.no_default_exclusions else ExcludedRefs.python_defaults()
    analyzer = HeapAnalyzer(excluded_refs)

    try:
        keys = [args.key] if args.key else _retained_keys(args.dump)
    except (OSError, ValueError, TypeError) as e:
        print(f"Failed to read heap dump: {e}")
        return 1

    results = [(key, analyzer.check_for_leak(args.dump, key)) for key in keys]

    if args.json:
        print(json.dumps([dict(key=key, **result.to_dict()) for key, result in results], indent=2))
    elif not results:
        print("No retained objects in this heap dump.")
    else:
        print("\n\n".join(format_result_text(key, result) for key, result in results))

    return 1 if any(result.failed for _, result in results) else 0


def cmd_dumps(args):
    """Handle dumps command."""
    leak_directory = _leak_directory(args)
    files = leak_directory.list_files()
    if not files:
        print(f"No heap dumps in {leak_directory.directory}")
        return 0

    print(f"{len(files)} heap dump(s) in {leak_directory.directory}")
    for path in files:
        try:
            stat = path.stat()
        except FileNotFoundError:
            continue
        created = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stat.st_mtime))
        print(f"  {created}  {stat.st_size / 1024:8.1f} KB  {path.name}")
    return 0


def cmd_clear(args):
    """Handle clear command."""
    leak_directory = _leak_directory(args)
    removed = leak_directory.clear_leak_directory()
    print(f"Removed {removed} heap dump(s) from {leak_directory.directory}")
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Dispatch to command handlers
    handlers = {
        'analyze': cmd_analyze,
        'dumps': cmd_dumps,
        'clear': cmd_clear,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
