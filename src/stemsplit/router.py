"""
Command routing for the StemSplit shell.

Routes user commands to appropriate handler functions.
"""

from typing import List, Tuple

from stemsplit.context import SessionContext

# Import command handlers
from stemsplit.commands import library
from stemsplit.commands import playback
from stemsplit.commands import voice


def print_help() -> None:
    """Display help information for available commands."""
    help_text = """
StemSplit - split songs into stems and play them back together

Library commands:
  list                          Show the library, most recent first
  upload <file> [--accept-terms] [--stems vocals,drums]
                                Choose a file and split it into stems
  remove <track>                Remove a track (and its server copy)
  rename <track> "New Title"    Rename a track
  clear                         Remove every track
  refresh                       Reconcile the library with the server
  download <track> [stem]       Download the whole song (zip) or one stem
  download cancel [key]         Abort in-flight downloads

Playback commands:
  play <track> <stem>           Play or pause one stem
  playall <track>               Play every stem of a track in sync
  seek <track> <mm:ss|seconds>  Seek every playing stem of a track
  pause                         Pause everything
  stop                          Stop everything and release players
  status                        Show what is playing

Voice commands:
  listen                        Toggle voice control
  say <utterance>               Run a voice command typed as text

  help                          Show this help message
  quit, exit                    Exit the program

A <track> is its list number or the start of its id.

Examples:
  upload ~/Music/song.mp3 --accept-terms --stems vocals,drums,bass
  play 1 vocals
  say play drums from bohemian rhapsody
  say go to pricing
"""
    print(help_text.strip())


async def handle_command(
    ctx: SessionContext, command: str, args: List[str]
) -> Tuple[SessionContext, bool]:
    """
    Handle a single command with explicit state passing.

    Args:
        ctx: Session context
        command: Command name
        args: Command arguments

    Returns:
        (updated_context, should_continue) - Updated context and whether to continue
    """
    if command in ['quit', 'exit']:
        print("Goodbye!")
        return ctx, False

    elif command == 'help':
        print_help()
        return ctx, True

    elif command == 'list':
        return library.handle_list_command(ctx)

    elif command == 'upload':
        return await library.handle_upload_command(ctx, args)

    elif command == 'remove':
        return await library.handle_remove_command(ctx, args)

    elif command == 'rename':
        return library.handle_rename_command(ctx, args)

    elif command == 'clear':
        return await library.handle_clear_command(ctx)

    elif command == 'refresh':
        return await library.handle_refresh_command(ctx)

    elif command == 'download':
        return library.handle_download_command(ctx, args)

    elif command == 'play':
        return await playback.handle_play_command(ctx, args)

    elif command == 'playall':
        return await playback.handle_playall_command(ctx, args)

    elif command == 'seek':
        return await playback.handle_seek_command(ctx, args)

    elif command == 'pause':
        return await playback.handle_pause_command(ctx)

    elif command == 'stop':
        return await playback.handle_stop_command(ctx)

    elif command == 'status':
        return playback.handle_status_command(ctx)

    elif command == 'listen':
        return await voice.handle_listen_command(ctx)

    elif command == 'say':
        return await voice.handle_say_command(ctx, args)

    elif command == '':
        # Empty command, do nothing
        return ctx, True

    else:
        print(f"Unknown command: '{command}'. Type 'help' for available commands.")
        return ctx, True
