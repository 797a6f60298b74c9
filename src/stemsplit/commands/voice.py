"""
Voice command handlers for StemSplit.

Handles: listen, say
"""

from typing import List, Tuple

from stemsplit.context import SessionContext
from stemsplit.core.output import log


async def handle_listen_command(ctx: SessionContext) -> Tuple[SessionContext, bool]:
    """Handle listen command - toggle voice control."""
    await ctx.voice.toggle()
    log(f"🎙 Voice control: {ctx.voice.state.value}", "info")
    return ctx, True


async def handle_say_command(ctx: SessionContext, args: List[str]) -> Tuple[SessionContext, bool]:
    """Handle say command - run text through the voice command grammar."""
    if not args:
        log('Usage: say <utterance>   e.g. say play vocals from bohemian rhapsody', "info")
        return ctx, True

    result = await ctx.dispatcher.dispatch(" ".join(args))
    if not result.matched:
        log("🤷 No command matched", "warning")
    elif result.status:
        log(f"🎙 {result.status}", "info")
    return ctx, True
