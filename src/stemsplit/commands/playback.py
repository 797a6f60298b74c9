"""
Playback command handlers for StemSplit.

Handles: play, playall, seek, stop, pause, status
"""

from typing import List, Tuple

from stemsplit.commands.library import find_stem_file, find_track
from stemsplit.context import SessionContext
from stemsplit.core.output import log
from stemsplit.domain.library.models import channel_key
from stemsplit.domain.playback.channel import format_time
from stemsplit.domain.playback.exceptions import PlaybackError


async def handle_play_command(ctx: SessionContext, args: List[str]) -> Tuple[SessionContext, bool]:
    """Handle play command - toggle one stem channel.

    Usage: play <track> <stem>
    """
    if len(args) < 2:
        log("Usage: play <track> <stem>", "info")
        return ctx, True

    track = find_track(ctx, args[0])
    if not track:
        log(f"❌ Track '{args[0]}' not found", "error")
        return ctx, True

    stem_file = find_stem_file(track, args[1])
    if not stem_file:
        log(f"❌ Stem '{args[1]}' not found in '{track.title}'", "error")
        return ctx, True

    key = channel_key(track.id, stem_file.filename)
    try:
        await ctx.playback.play(key, stem_file, track)
    except PlaybackError as e:
        log(f"❌ {e}", "error")
        return ctx, True

    state = "▶ Playing" if ctx.playback.state.is_playing(key) else "⏸ Paused"
    log(f"{state} {stem_file.filename} ({track.title})", "info")
    return ctx, True


async def handle_playall_command(
    ctx: SessionContext, args: List[str]
) -> Tuple[SessionContext, bool]:
    """Handle playall command - every stem of a track (default: most recent)."""
    tracks = ctx.library.tracks
    if not tracks:
        log("No tracks found in library.", "info")
        return ctx, True

    track = find_track(ctx, args[0]) if args else tracks[0]
    if not track:
        log(f"❌ Track '{args[0]}' not found", "error")
        return ctx, True

    started = await ctx.playback.play_all(track)
    log(f"▶ Playing {len(started)} stems for: {track.title}", "info")
    return ctx, True


async def handle_seek_command(ctx: SessionContext, args: List[str]) -> Tuple[SessionContext, bool]:
    """Handle seek command - move every live channel of a track.

    Usage: seek <track> <seconds|mm:ss>
    """
    if len(args) < 2:
        log("Usage: seek <track> <seconds|mm:ss>", "info")
        return ctx, True

    track = find_track(ctx, args[0])
    if not track:
        log(f"❌ Track '{args[0]}' not found", "error")
        return ctx, True

    try:
        if ":" in args[1]:
            minutes, seconds = args[1].split(":", 1)
            position = int(minutes) * 60 + float(seconds)
        else:
            position = float(args[1])
    except ValueError:
        log(f"❌ Invalid position: {args[1]}", "error")
        return ctx, True

    keys = [channel_key(track.id, f.filename) for f in track.files]
    live = [k for k in keys if ctx.playback.has_channel(k)]
    if not live:
        log("Nothing from this track is playing", "warning")
        return ctx, True

    for key in live:
        await ctx.playback.seek(key, position)
    log(f"⏩ {track.title} -> {format_time(position)}", "info")
    return ctx, True


async def handle_stop_command(ctx: SessionContext) -> Tuple[SessionContext, bool]:
    """Handle stop command - release every channel."""
    await ctx.playback.stop_all()
    log("■ Stopped playback", "info")
    return ctx, True


async def handle_pause_command(ctx: SessionContext) -> Tuple[SessionContext, bool]:
    """Handle pause command - pause every playing channel."""
    await ctx.playback.pause_all()
    log("⏸ Paused", "info")
    return ctx, True


def handle_status_command(ctx: SessionContext) -> Tuple[SessionContext, bool]:
    """Handle status command - show channels, voice and library state."""
    state = ctx.playback.state
    log("StemSplit Status:", "info")
    log("─" * 40, "info")
    log(f"📚 Library: {len(ctx.library.tracks)} tracks", "info")
    log(f"🎙 Voice: {ctx.voice.state.value}", "info")
    if ctx.voice.live_transcript:
        log(f'   "{ctx.voice.live_transcript}"', "info")

    keys = ctx.playback.keys
    if not keys:
        log("♪ Channels: none", "info")
    for key in keys:
        icon = "▶" if key in state.playing else "⏸"
        position = state.current_times.get(key, 0.0)
        duration = state.durations.get(key, 0.0)
        log(f"{icon} {key}  {format_time(position)} / {format_time(duration)}", "info")

    for key in ctx.downloads.active_keys:
        log(f"⬇  Downloading {key}", "info")

    if ctx.library.background_failures:
        log(f"⚠  {len(ctx.library.background_failures)} background sync failures (see log)", "warning")
    return ctx, True
