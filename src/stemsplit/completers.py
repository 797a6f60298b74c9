"""
prompt_toolkit completers for the StemSplit shell
Provides autocomplete for commands and for track references
"""

from typing import Callable, Iterable, List

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .domain.library.models import Track

# Commands whose first argument is a track reference
TRACK_COMMANDS = {'play', 'playall', 'remove', 'rename', 'download', 'seek'}


class StemSplitCompleter(Completer):
    """
    Command completer with descriptions.

    Completes command names on the first word and, for commands that take a
    track, the track's list number with its title as the hint.
    """

    # Format: 'command': ('icon', 'description')
    COMMANDS = {
        # Library commands
        'list': ('📚', 'Show the library'),
        'upload': ('⬆', 'Upload and split a song'),
        'remove': ('🗑', 'Remove a track'),
        'rename': ('✏', 'Rename a track'),
        'clear': ('🧹', 'Remove every track'),
        'refresh': ('🔄', 'Reconcile with the server'),
        'download': ('⬇', 'Download a song or stem'),

        # Playback commands
        'play': ('▶', 'Play or pause one stem'),
        'playall': ('⏯', 'Play every stem of a track'),
        'seek': ('⏩', 'Seek a track to a position'),
        'pause': ('⏸', 'Pause everything'),
        'stop': ('■', 'Stop everything'),
        'status': ('📊', 'Show what is playing'),

        # Voice commands
        'listen': ('🎙', 'Toggle voice control'),
        'say': ('💬', 'Run a voice command as text'),

        # System commands
        'help': ('❓', 'Show help'),
        'quit': ('👋', 'Exit StemSplit'),
        'exit': ('👋', 'Exit StemSplit'),
    }

    def __init__(self, tracks: Callable[[], List[Track]] = list):
        self.tracks = tracks

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        text = document.text_before_cursor.lstrip()
        if ' ' not in text:
            yield from self._complete_command(text.lower())
            return

        command, _, rest = text.partition(' ')
        if command.lower() in TRACK_COMMANDS and ' ' not in rest:
            yield from self._complete_track(rest)

    def _complete_command(self, word: str) -> Iterable[Completion]:
        matches = sorted(
            (command, icon, description)
            for command, (icon, description) in self.COMMANDS.items()
            if command.startswith(word)
        )
        for command, icon, description in matches[:10]:
            yield Completion(
                command,
                start_position=-len(word),
                display=command,
                display_meta=f"{icon}\t{description}"
            )

    def _complete_track(self, word: str) -> Iterable[Completion]:
        for number, track in enumerate(self.tracks(), 1):
            ref = str(number)
            if ref.startswith(word) or track.title.lower().startswith(word.lower()):
                yield Completion(
                    ref,
                    start_position=-len(word),
                    display=f"{ref}. {track.title}",
                    display_meta=track.id[:8]
                )
