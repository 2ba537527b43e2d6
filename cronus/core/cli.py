# cronus/core/cli.py
"""
CLI for inspecting cron patterns: check, next and previous.

Examples:
    cronus check '*/15 9-17 * * mon-fri'
    cronus next '30 2 * * *' --tz America/New_York --count 3
    cronus previous '0 0 1 * *' --from 2024-03-15T12:00:00
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import Optional, Sequence

from cronus.core.defaults import DEFAULT_TIMEZONE
from cronus.core.errors import ConfigurationError, CronusError, ErrorCode
from cronus.core.logging import get_logger
from cronus.core.models.pattern import CronPattern
from cronus.core.parser import print_pattern
from cronus.core.utils.zones import resolve_local, resolve_timezone


def setup_logging(loglevel: str) -> None:
    """Configure logging level globally."""
    from cronus.core.logging import set_default_level

    level = getattr(logging, loglevel.upper(), logging.INFO)
    set_default_level(level)
    logging.getLogger('cronus').setLevel(level)


def _parse_start(args: argparse.Namespace) -> datetime:
    """Resolve --from/--tz into an aware starting datetime."""
    try:
        tz = resolve_timezone(args.tz)
    except ValueError as e:
        raise ConfigurationError(
            message=f"invalid timezone '{args.tz}'",
            code=ErrorCode.CLI_INVALID_ARGS,
            notes=[str(e)],
            help_text="use an IANA zone name such as 'UTC' or 'Europe/Berlin'",
        ) from e

    if args.start is None:
        return datetime.now(tz).replace(second=0, microsecond=0)
    try:
        start = datetime.fromisoformat(args.start)
    except ValueError as e:
        raise ConfigurationError(
            message=f"invalid --from value '{args.start}'",
            code=ErrorCode.CLI_INVALID_ARGS,
            notes=[str(e)],
            help_text='use ISO 8601, e.g. 2024-03-10T01:30 or 2024-03-10T01:30:00-05:00',
        ) from e
    if start.tzinfo is None:
        return resolve_local(start, tz)
    return start.astimezone(tz)


def _parse_pattern_or_exit(text: str) -> CronPattern:
    try:
        return CronPattern.build(text)
    except CronusError as e:
        print(e.format_rust_style(), file=sys.stderr)
        sys.exit(1)


def check_command(args: argparse.Namespace) -> None:
    """Handle check command: parse and print the canonical form."""
    setup_logging(args.loglevel)
    pattern = _parse_pattern_or_exit(args.pattern)
    print(f'ok: {pattern.source}')
    print(f'  canonical: {print_pattern(pattern)}')
    print(f"  empty: {'yes' if pattern.is_empty else 'no'}")
    sys.exit(0)


def walk_command(args: argparse.Namespace) -> None:
    """Handle next/previous commands: print successive firing times."""
    logger = get_logger('cli')
    setup_logging(args.loglevel)
    pattern = _parse_pattern_or_exit(args.pattern)

    try:
        if args.count < 1:
            raise ConfigurationError(
                message=f'--count must be >= 1, got {args.count}',
                code=ErrorCode.CLI_INVALID_ARGS,
            )
        start = _parse_start(args)
    except CronusError as e:
        print(e.format_rust_style(), file=sys.stderr)
        sys.exit(1)

    forward = args.command == 'next'
    logger.debug(f"Walking '{pattern}' {'forward' if forward else 'backward'} from {start}")

    current: datetime = start
    inclusive: bool = args.inclusive
    for _ in range(args.count):
        if forward:
            found = pattern.next(current, inclusive)
        else:
            found = pattern.previous(current, inclusive)
        if found is None:
            print(f"error: pattern '{pattern}' never fires", file=sys.stderr)
            sys.exit(1)
        print(found.isoformat())
        current = found
        inclusive = False
    sys.exit(0)


def _add_common_arguments(parser: argparse.ArgumentParser, default_level: str) -> None:
    parser.add_argument(
        'pattern',
        help="Cron pattern, quoted (e.g. '*/5 * * * *')",
    )
    parser.add_argument(
        '--loglevel',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default=default_level,
        type=str.upper,
        help=f'Logging level (default: {default_level})',
    )


def _add_walk_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--from',
        dest='start',
        default=None,
        help='Starting point in ISO 8601 (default: now, truncated to the minute)',
    )
    parser.add_argument(
        '--count',
        type=int,
        default=1,
        help='Number of firing times to print (default: 1)',
    )
    parser.add_argument(
        '--tz',
        default=DEFAULT_TIMEZONE,
        help=f'IANA timezone for evaluation (default: {DEFAULT_TIMEZONE})',
    )
    parser.add_argument(
        '--inclusive',
        action='store_true',
        default=False,
        help='Include the starting point when it matches',
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point."""
    try:
        parser = argparse.ArgumentParser(
            prog='cronus',
            description='Cronus cron patterns - validate and evaluate',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  cronus check '*/15 9-17 * * mon-fri'
  cronus next '30 2 * * *' --tz America/New_York --count 3
  cronus previous '0 0 1 * *' --from 2024-03-15T12:00:00
""",
        )
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        check_parser = subparsers.add_parser(
            'check',
            help='Parse a pattern and print its canonical form',
        )
        _add_common_arguments(check_parser, 'WARNING')

        next_parser = subparsers.add_parser(
            'next',
            help='Print the next firing times of a pattern',
        )
        _add_common_arguments(next_parser, 'WARNING')
        _add_walk_arguments(next_parser)

        previous_parser = subparsers.add_parser(
            'previous',
            help='Print the previous firing times of a pattern',
        )
        _add_common_arguments(previous_parser, 'WARNING')
        _add_walk_arguments(previous_parser)

        args = parser.parse_args(argv)

        match args.command:
            case 'check':
                check_command(args)
            case 'next' | 'previous':
                walk_command(args)
            case _:
                parser.print_help()
                sys.exit(1)
    except KeyboardInterrupt:
        print('\nInterrupted by user')
        sys.exit(0)


if __name__ == '__main__':
    main()
