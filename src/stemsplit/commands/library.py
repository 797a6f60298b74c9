"""
Library command handlers for StemSplit.

Handles: list, upload, remove, rename, clear, refresh, download
"""

from pathlib import Path
from typing import List, Optional, Tuple

from stemsplit.context import SessionContext
from stemsplit.core.output import log
from stemsplit.domain.library.exceptions import LibraryError
from stemsplit.domain.library.models import StemFile, Track
from stemsplit.domain.library.layers import stem_basename


def find_track(ctx: SessionContext, ref: str) -> Optional[Track]:
    """Look up a track by 1-based list position or (a prefix of) its id."""
    tracks = ctx.library.tracks
    if ref.isdigit():
        index = int(ref) - 1
        if 0 <= index < len(tracks):
            return tracks[index]

    exact = ctx.library.get(ref)
    if exact:
        return exact

    matches = [t for t in tracks if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def find_stem_file(track: Track, ref: str) -> Optional[StemFile]:
    """Look up a stem file by 1-based position, filename, or stem name."""
    if ref.isdigit():
        index = int(ref) - 1
        if 0 <= index < len(track.files):
            return track.files[index]

    ref = ref.lower()
    for stem_file in track.files:
        if stem_file.filename.lower() == ref or stem_basename(stem_file.filename) == ref:
            return stem_file
    return None


def handle_list_command(ctx: SessionContext) -> Tuple[SessionContext, bool]:
    """Handle list command - show the library, most recent first."""
    tracks = ctx.library.tracks
    if not tracks:
        log("Library is empty. Add a song with: upload <file> --accept-terms", "info")
        return ctx, True

    log(f"📚 Library ({len(tracks)} tracks)", "info")
    for number, track in enumerate(tracks, 1):
        added = track.added_at.strftime("%Y-%m-%d %H:%M") if track.added_at else "unknown"
        where = "☁" if track.remote_id else "💾"
        log(f"  {number:>2}. {where} {track.title}  [{track.id[:8]}]  {added}", "info")
        if track.layers:
            log(f"      {', '.join(l.display_name for l in track.layers)}", "info")
    return ctx, True


async def handle_upload_command(
    ctx: SessionContext, args: List[str]
) -> Tuple[SessionContext, bool]:
    """Handle upload command - choose a file and optionally split it.

    Usage: upload <file> [--accept-terms] [--stems a,b,c]
    """
    if not args:
        log("Usage: upload <file> [--accept-terms] [--stems vocals,drums]", "info")
        return ctx, True

    path = None
    stems = None
    accept = False
    i = 0
    while i < len(args):
        if args[i] == "--accept-terms":
            accept = True
        elif args[i] == "--stems" and i + 1 < len(args):
            stems = [s for s in args[i + 1].split(",") if s]
            i += 1
        elif path is None:
            path = Path(args[i]).expanduser()
        i += 1

    signals = ctx.signals
    if path is not None:
        try:
            signals.choose_file(path)
        except LibraryError as e:
            log(f"❌ {e}", "error")
            return ctx, True
        log(f"🎵 Selected {path.name}", "info")

    if stems is not None:
        signals.selection.selected = []
        for stem in stems:
            try:
                signals.selection.toggle(stem.strip().lower())
            except LibraryError as e:
                log(f"❌ {e}", "error")
                return ctx, True

    if accept:
        signals.terms_accepted = True
        track = await signals.split()
        if track:
            log(f"✅ Added '{track.title}' ({len(track.files)} files)", "info")
    else:
        log("Accept the Terms of Service to split: upload --accept-terms", "info")

    return ctx, True


async def handle_remove_command(
    ctx: SessionContext, args: List[str]
) -> Tuple[SessionContext, bool]:
    """Handle remove command - remove a track (remote deletion runs in background)."""
    if not args:
        log("Usage: remove <number|id>", "info")
        return ctx, True

    track = find_track(ctx, args[0])
    if not track:
        log(f"❌ Track '{args[0]}' not found", "error")
        return ctx, True

    await ctx.library.remove_track(track.id)
    log(f"🗑  Removed '{track.title}'", "info")
    return ctx, True


def handle_rename_command(ctx: SessionContext, args: List[str]) -> Tuple[SessionContext, bool]:
    """Handle rename command - change a track's display title."""
    if len(args) < 2:
        log('Usage: rename <number|id> "New Title"', "info")
        return ctx, True

    track = find_track(ctx, args[0])
    if not track:
        log(f"❌ Track '{args[0]}' not found", "error")
        return ctx, True

    try:
        renamed = ctx.library.rename_track(track.id, " ".join(args[1:]))
    except LibraryError as e:
        log(f"❌ {e}", "error")
        return ctx, True

    log(f"✅ Renamed to '{renamed.title}'", "info")
    return ctx, True


async def handle_clear_command(ctx: SessionContext) -> Tuple[SessionContext, bool]:
    """Handle clear command - remove every track."""
    removed = await ctx.library.clear_library()
    log(f"🗑  Cleared {len(removed)} tracks", "info")
    return ctx, True


async def handle_refresh_command(ctx: SessionContext) -> Tuple[SessionContext, bool]:
    """Handle refresh command - reconcile with the backend now."""
    tracks = await ctx.library.refresh()
    log(f"🔄 Library refreshed ({len(tracks)} tracks)", "info")
    return ctx, True


def handle_download_command(
    ctx: SessionContext, args: List[str]
) -> Tuple[SessionContext, bool]:
    """Handle download command.

    Usage:
        download <track>            Whole song as a zip
        download <track> <stem>     One stem
        download cancel <key>       Abort an in-flight download
    """
    if not args:
        log("Usage: download <track> [stem] | download cancel <key>", "info")
        return ctx, True

    if args[0] == "cancel":
        keys = args[1:] or ctx.downloads.active_keys
        if not keys:
            log("No downloads in progress", "info")
        for key in keys:
            if not ctx.downloads.cancel(key):
                log(f"No download in progress for {key}", "warning")
        return ctx, True

    track = find_track(ctx, args[0])
    if not track:
        log(f"❌ Track '{args[0]}' not found", "error")
        return ctx, True

    if len(args) > 1:
        stem_file = find_stem_file(track, args[1])
        if not stem_file:
            log(f"❌ Stem '{args[1]}' not found in '{track.title}'", "error")
            return ctx, True
        key = ctx.downloads.start(track, stem_file)
    else:
        key = ctx.downloads.start(track)

    log(f"⬇  Downloading... (cancel with: download cancel {key})", "info")
    return ctx, True
