#!/usr/bin/env python3
"""
StemSplit CLI entry point.

With no subcommand the interactive shell starts; the subcommands below run
one library operation against the persisted library and exit.
"""

import argparse
import asyncio
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Awaitable, Callable, List, Tuple

from stemsplit.commands import library
from stemsplit.context import SessionContext

Handler = Callable[[SessionContext], Awaitable[Tuple[SessionContext, bool]]]


def get_version() -> str:
    try:
        return version("stemsplit")
    except PackageNotFoundError:
        return "unknown"


async def run_once(handler: Handler) -> int:
    """Load the library, run one handler and wait for its background work."""
    from .main import load_session_config
    from .core.console import get_console

    ctx = SessionContext.create(load_session_config(), console=get_console())
    try:
        await ctx.library.load()
        await handler(ctx)
    finally:
        await ctx.aclose()

    failures = ctx.library.background_failures
    for failure in failures:
        print(f"{failure.operation} failed for {failure.target}: {failure.error}", file=sys.stderr)
    return 1 if failures else 0


def _as_async(handler: Callable[..., Tuple[SessionContext, bool]], *args: List[str]) -> Handler:
    async def run(ctx: SessionContext) -> Tuple[SessionContext, bool]:
        return handler(ctx, *args)

    return run


def main() -> None:
    """Main entry point for the stemsplit command."""
    parser = argparse.ArgumentParser(
        description="StemSplit - split songs into stems and play them back together",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {get_version()}")

    subparsers = parser.add_subparsers(dest='subcommand', help='Available commands')

    subparsers.add_parser('list', help='Show the library')
    subparsers.add_parser('refresh', help='Reconcile the library with the server')
    subparsers.add_parser('clear', help='Remove every track')

    upload_parser = subparsers.add_parser('upload', help='Upload and split a song')
    upload_parser.add_argument('file', help='Audio file to split')
    upload_parser.add_argument(
        '--accept-terms',
        action='store_true',
        help='Accept the Terms of Service (required to split)'
    )
    upload_parser.add_argument('--stems', help='Comma separated stems, e.g. vocals,drums')

    remove_parser = subparsers.add_parser('remove', help='Remove a track')
    remove_parser.add_argument('track', help='List number or id prefix')

    rename_parser = subparsers.add_parser('rename', help='Rename a track')
    rename_parser.add_argument('track', help='List number or id prefix')
    rename_parser.add_argument('title', nargs='+', help='New title')

    args = parser.parse_args()

    if args.subcommand == 'list':
        sys.exit(asyncio.run(run_once(_as_async(library.handle_list_command))))

    elif args.subcommand == 'refresh':
        sys.exit(asyncio.run(run_once(library.handle_refresh_command)))

    elif args.subcommand == 'clear':
        sys.exit(asyncio.run(run_once(library.handle_clear_command)))

    elif args.subcommand == 'upload':
        upload_args = [args.file]
        if args.accept_terms:
            upload_args.append('--accept-terms')
        if args.stems:
            upload_args.extend(['--stems', args.stems])
        sys.exit(asyncio.run(run_once(
            lambda ctx: library.handle_upload_command(ctx, upload_args)
        )))

    elif args.subcommand == 'remove':
        sys.exit(asyncio.run(run_once(
            lambda ctx: library.handle_remove_command(ctx, [args.track])
        )))

    elif args.subcommand == 'rename':
        sys.exit(asyncio.run(run_once(
            _as_async(library.handle_rename_command, [args.track, ' '.join(args.title)])
        )))

    # No subcommand - start interactive mode
    from .main import interactive_mode
    interactive_mode()


if __name__ == "__main__":
    main()
