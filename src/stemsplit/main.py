"""
StemSplit - Main entry point and interactive loop
"""

import asyncio
import sys

from loguru import logger
from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout

from stemsplit import router
from stemsplit.completers import StemSplitCompleter
from stemsplit.context import SessionContext
from stemsplit.core import config
from stemsplit.core.console import get_console, safe_print
from stemsplit.core.output import setup_from_config
from stemsplit.notifications import Notice
from stemsplit.utils import parsers


def print_notice(notice: Notice) -> None:
    """Echo a notice posted by one of the engines."""
    if notice.variant == "destructive":
        safe_print(f"✗ {notice.title}: {notice.description}", style="red")
    else:
        safe_print(f"✓ {notice.title}: {notice.description}", style="green")


def bottom_toolbar(ctx: SessionContext) -> str:
    """Voice state and the live transcript, plus the current route."""
    voice = ctx.voice
    parts = [f"🎙 {voice.state.value}"]
    if voice.status:
        parts.append(voice.status)
    if voice.live_transcript:
        parts.append(f'"{voice.live_transcript}"')
    parts.append(f"📍 {ctx.navigator.route}")
    return "  |  ".join(parts)


def load_session_config() -> config.Config:
    """Load config, set up logging and make sure data directories exist."""
    current_config = config.load_config()
    setup_from_config(current_config.logging)
    config.ensure_directories()
    return current_config


async def run_shell() -> None:
    """Run the interactive command loop on the session's event loop."""
    current_config = load_session_config()
    console = get_console()
    ctx = SessionContext.create(current_config, console=console)
    ctx.notices.subscribe(print_notice)

    session: PromptSession = PromptSession(
        completer=StemSplitCompleter(lambda: ctx.library.tracks),
        bottom_toolbar=lambda: bottom_toolbar(ctx),
        refresh_interval=0.5,
    )

    try:
        tracks = await ctx.library.load()
        console.print(f"[bold]StemSplit[/bold] - {len(tracks)} tracks. Type 'help' for commands.")

        should_continue = True
        while should_continue:
            try:
                with patch_stdout():
                    user_input = await session.prompt_async("stemsplit> ")
                command, args = parsers.parse_command(user_input)
                ctx, should_continue = await router.handle_command(ctx, command, args)

            except KeyboardInterrupt:
                console.print("\n[yellow]Use 'quit' or 'exit' to leave gracefully.[/yellow]")
            except EOFError:
                console.print("\n[green]Goodbye![/green]")
                break

    except Exception as e:
        logger.exception("Shell loop failed")
        console.print(f"[red]An unexpected error occurred: {e}[/red]")
        sys.exit(1)
    finally:
        await ctx.aclose()


def interactive_mode() -> None:
    """Run the interactive command loop."""
    asyncio.run(run_shell())
