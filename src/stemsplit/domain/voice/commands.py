"""
Voice command grammar and dispatcher.

The grammar is an ordered list of rules; the first rule whose predicate
matches the normalized utterance wins. Parsing is pure; applying an action
calls into the library, playback, navigation and UI collaborators.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, NamedTuple, Optional, Protocol, Sequence

from loguru import logger

from stemsplit.domain.library.engine import LibraryEngine
from stemsplit.domain.library.exceptions import LibraryError
from stemsplit.domain.library.layers import stem_basename
from stemsplit.domain.library.models import Layer, StemFile, Track, channel_key
from stemsplit.domain.playback.engine import PlaybackEngine
from stemsplit.domain.playback.exceptions import PlaybackError

# Stem ids accepted by "select <stem>"
VOICE_STEMS = ("vocals", "percussion", "bass", "other", "instrumental", "original audio")


class Navigator(Protocol):
    def navigate(self, route: str) -> None:
        ...

    def back(self) -> None:
        ...

    def reload(self) -> None:
        ...

    def logout(self) -> None:
        ...


class UiSignals(Protocol):
    def open_file_chooser(self) -> None:
        ...

    def trigger_split(self) -> None:
        ...

    def view_terms(self) -> None:
        ...

    def select_stem(self, stem_id: str) -> None:
        ...


class ActionKind(str, Enum):
    NAVIGATE = "navigate"
    NAVIGATE_BACK = "navigate_back"
    PLAY_ALL = "play_all"
    STOP_ALL = "stop_all"
    CLEAR_LIBRARY = "clear_library"
    RELOAD = "reload"
    LOGOUT = "logout"
    STOP_LISTENING = "stop_listening"
    OPEN_FILE_CHOOSER = "open_file_chooser"
    TRIGGER_SPLIT = "trigger_split"
    VIEW_TERMS = "view_terms"
    SELECT_STEM = "select_stem"
    PLAY_STEM = "play_stem"
    NONE = "none"  # matched, but nothing to do


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    status: Optional[str] = None
    route: Optional[str] = None
    stem_id: Optional[str] = None
    track: Optional[Track] = None
    stem_file: Optional[StemFile] = None


class DispatchResult(NamedTuple):
    matched: bool
    status: Optional[str] = None
    action: Optional[Action] = None


class Rule(NamedTuple):
    name: str
    matches: Callable[[str], Any]
    build: Callable[[Any, Sequence[Track]], Action]


def normalize(utterance: str) -> str:
    return utterance.lower().strip()


def contains_any(*phrases: str) -> Callable[[str], bool]:
    return lambda text: any(phrase in text for phrase in phrases)


def _always(action: Action) -> Callable[[Any, Sequence[Track]], Action]:
    return lambda match, tracks: action


def normalize_stem_alias(spoken: str) -> str:
    """Map a spoken stem name onto the voice stem vocabulary.

    Aliases apply in sequence, so later ones see the result of earlier ones.
    """
    stem_id = spoken.strip()
    if "drum" in stem_id or "percussion" in stem_id:
        stem_id = "percussion"
    if "vocal" in stem_id:
        stem_id = "vocals"
    if "instrumental" in stem_id or "instrument" in stem_id:
        stem_id = "instrumental"
    if "original" in stem_id or "source" in stem_id:
        stem_id = "original audio"
    return stem_id


def _build_play_all(match: Any, tracks: Sequence[Track]) -> Action:
    if not tracks:
        return Action(ActionKind.NONE, status="No tracks found in library.")
    latest = tracks[0]
    return Action(ActionKind.PLAY_ALL, status=f"Playing all tracks for: {latest.title}", track=latest)


def _build_select_stem(match: re.Match, tracks: Sequence[Track]) -> Action:
    stem_id = normalize_stem_alias(match.group(1))
    if stem_id not in VOICE_STEMS:
        return Action(ActionKind.NONE)
    return Action(ActionKind.SELECT_STEM, status=f"Toggling {stem_id}...", stem_id=stem_id)


def _layer_matches(layer: Layer, stem_name: str) -> bool:
    return (
        stem_name in layer.display_name.lower()
        or stem_name in layer.id.lower()
        or (stem_name == "original audio" and layer.id == "original")
        or (stem_name == "percussion" and layer.id == "drums")
    )


def _build_play_stem(match: re.Match, tracks: Sequence[Track]) -> Action:
    stem_name = match.group(1).strip()
    song_title = match.group(2).strip()

    track = next((t for t in tracks if song_title in t.title.lower()), None)
    if track is None:
        return Action(ActionKind.NONE, status=f'Could not find song "{song_title}" in library')

    layer = next((l for l in track.layers if _layer_matches(l, stem_name)), None)
    if layer is None:
        return Action(
            ActionKind.NONE, status=f'Could not find stem "{stem_name}" for "{track.title}"'
        )

    stem_file = next(
        (f for f in track.files if stem_basename(f.filename) == layer.id.lower()), None
    )
    if stem_file is None:
        return Action(ActionKind.NONE)

    return Action(
        ActionKind.PLAY_STEM,
        status=f"Playing {layer.display_name} for {track.title}",
        track=track,
        stem_file=stem_file,
    )


_SELECT_PATTERN = re.compile(r"select (.+)", re.IGNORECASE)
_PLAY_STEM_PATTERN = re.compile(r"play (.+) (?:for|from) (.+)", re.IGNORECASE)


GRAMMAR: List[Rule] = [
    # Navigation
    Rule(
        "go to profile",
        contains_any("go to profile"),
        _always(Action(ActionKind.NAVIGATE, "Navigating to profile...", route="/profile")),
    ),
    Rule(
        "go home",
        contains_any("go home", "go to home"),
        _always(Action(ActionKind.NAVIGATE, "Navigating home...", route="/")),
    ),
    Rule(
        "go back",
        contains_any("go back", "back to app"),
        _always(Action(ActionKind.NAVIGATE_BACK, "Navigating back...")),
    ),
    Rule(
        "pricing",
        contains_any("go to pricing", "view pricing", "show pricing"),
        _always(Action(ActionKind.NAVIGATE, "Navigating to pricing...", route="/pricing")),
    ),
    Rule(
        "view profile",
        contains_any("view profile", "show profile"),
        _always(Action(ActionKind.NAVIGATE, "Navigating to profile...", route="/profile")),
    ),
    # Playback
    Rule("play all", contains_any("play all", "play music"), _build_play_all),
    Rule(
        "stop all",
        contains_any("stop music", "stop all"),
        _always(Action(ActionKind.STOP_ALL, "Stopping playback...")),
    ),
    Rule(
        "clear library",
        contains_any("clear library"),
        _always(Action(ActionKind.CLEAR_LIBRARY, "Clearing library...")),
    ),
    # System
    Rule(
        "refresh",
        contains_any("refresh page", "refresh"),
        _always(Action(ActionKind.RELOAD, "Refreshing page...")),
    ),
    Rule(
        "logout",
        contains_any("logout", "sign out"),
        _always(Action(ActionKind.LOGOUT, "Logging out...")),
    ),
    # Session control
    Rule(
        "stop listening",
        lambda text: text.endswith("done") or text in ("stop listening", "turn off"),
        _always(Action(ActionKind.STOP_LISTENING, "Powering off voice control...")),
    ),
    # File actions
    Rule(
        "upload",
        contains_any("upload file", "upload music"),
        _always(Action(ActionKind.OPEN_FILE_CHOOSER, "Opening file picker...")),
    ),
    Rule(
        "split",
        contains_any("split"),
        _always(Action(ActionKind.TRIGGER_SPLIT, "Starting analysis...")),
    ),
    Rule(
        "view terms",
        contains_any("view tos", "view terms", "show terms"),
        _always(Action(ActionKind.VIEW_TERMS, "Opening Terms of Service...")),
    ),
    # Stem selection; "deselect all" is checked first since it contains "select all"
    Rule(
        "deselect all",
        contains_any("deselect all stems", "deselect all", "clear stems"),
        _always(Action(ActionKind.SELECT_STEM, "Deselecting all stems...", stem_id="none")),
    ),
    Rule(
        "select all",
        contains_any("select all stems", "select all"),
        _always(Action(ActionKind.SELECT_STEM, "Selecting all stems...", stem_id="all")),
    ),
    Rule("select stem", _SELECT_PATTERN.search, _build_select_stem),
    # Targeted stem playback
    Rule("play stem", _PLAY_STEM_PATTERN.search, _build_play_stem),
]


def parse_command(utterance: str, tracks: Sequence[Track]) -> Optional[Action]:
    """Map an utterance to at most one action; None when nothing matches."""
    text = normalize(utterance)
    for rule in GRAMMAR:
        match = rule.matches(text)
        if match:
            return rule.build(match, tracks)
    return None


class CommandDispatcher:
    """Parses utterances and applies the resulting action."""

    def __init__(
        self,
        library: LibraryEngine,
        playback: PlaybackEngine,
        navigator: Navigator,
        signals: UiSignals,
        stop_listening: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.library = library
        self.playback = playback
        self.navigator = navigator
        self.signals = signals
        self.stop_listening = stop_listening
        self.status: Optional[str] = None

    async def dispatch(self, utterance: str) -> DispatchResult:
        """Handle one finalized utterance. Never raises for unmatched input."""
        logger.info(f"Command transcript: {normalize(utterance)!r}")
        action = parse_command(utterance, self.library.tracks)
        if action is None:
            return DispatchResult(matched=False)

        if action.status:
            self.status = action.status
        try:
            await self.apply(action)
        except (PlaybackError, LibraryError) as e:
            logger.warning(f"Voice command {action.kind.value} failed: {e}")
            self.status = str(e)
            return DispatchResult(matched=True, status=self.status, action=action)

        return DispatchResult(matched=True, status=action.status, action=action)

    async def apply(self, action: Action) -> None:
        kind = action.kind

        if kind is ActionKind.NAVIGATE:
            self.navigator.navigate(action.route)
        elif kind is ActionKind.NAVIGATE_BACK:
            self.navigator.back()
        elif kind is ActionKind.PLAY_ALL:
            await self.playback.play_all(action.track)
        elif kind is ActionKind.STOP_ALL:
            await self.playback.stop_all()
        elif kind is ActionKind.CLEAR_LIBRARY:
            await self.library.clear_library()
        elif kind is ActionKind.RELOAD:
            self.navigator.reload()
        elif kind is ActionKind.LOGOUT:
            self.navigator.logout()
        elif kind is ActionKind.STOP_LISTENING:
            if self.stop_listening:
                await self.stop_listening()
        elif kind is ActionKind.OPEN_FILE_CHOOSER:
            self.signals.open_file_chooser()
        elif kind is ActionKind.TRIGGER_SPLIT:
            self.signals.trigger_split()
        elif kind is ActionKind.VIEW_TERMS:
            self.signals.view_terms()
        elif kind is ActionKind.SELECT_STEM:
            self.signals.select_stem(action.stem_id)
        elif kind is ActionKind.PLAY_STEM:
            key = channel_key(action.track.id, action.stem_file.filename)
            await self.playback.play(key, action.stem_file, action.track)
