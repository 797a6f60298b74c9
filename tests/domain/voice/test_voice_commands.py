"""Tests for the voice command grammar and dispatcher."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from stemsplit.domain.library.models import channel_key
from stemsplit.domain.playback.exceptions import NoPlayableSourceError
from stemsplit.domain.voice.commands import (
    ActionKind,
    CommandDispatcher,
    normalize_stem_alias,
    parse_command,
)


@pytest.fixture
def tracks(make_track):
    return [
        make_track("t2", title="Bohemian Rhapsody.mp3", filenames=("vocals.mp3", "drums.mp3", "original.mp3")),
        make_track("t1", title="Older Song.mp3", minutes_ago=10),
    ]


@pytest.fixture
def navigator() -> MagicMock:
    return MagicMock()


@pytest.fixture
def signals() -> MagicMock:
    return MagicMock()


@pytest.fixture
def playback() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def dispatcher(library, playback, navigator, signals, tracks) -> CommandDispatcher:
    for track in reversed(tracks):
        library.store.prepend(track)
    return CommandDispatcher(library, playback, navigator, signals, stop_listening=AsyncMock())


class TestNormalizeStemAlias:
    @pytest.mark.parametrize(
        "spoken,expected",
        [
            ("drums", "percussion"),
            ("the drum track", "percussion"),
            ("vocal", "vocals"),
            ("instruments", "instrumental"),
            ("original", "original audio"),
            ("source", "original audio"),
            ("bass", "bass"),
        ],
    )
    def test_aliases(self, spoken: str, expected: str) -> None:
        assert normalize_stem_alias(spoken) == expected


class TestParseCommand:
    @pytest.mark.parametrize(
        "utterance,route",
        [
            ("Go to profile", "/profile"),
            ("go home please", "/"),
            ("view pricing", "/pricing"),
            ("show profile", "/profile"),
        ],
    )
    def test_navigation(self, utterance: str, route: str) -> None:
        action = parse_command(utterance, [])
        assert action.kind is ActionKind.NAVIGATE
        assert action.route == route

    @pytest.mark.parametrize(
        "utterance,kind",
        [
            ("go back", ActionKind.NAVIGATE_BACK),
            ("stop music", ActionKind.STOP_ALL),
            ("clear library", ActionKind.CLEAR_LIBRARY),
            ("refresh", ActionKind.RELOAD),
            ("sign out", ActionKind.LOGOUT),
            ("okay I'm done", ActionKind.STOP_LISTENING),
            ("stop listening", ActionKind.STOP_LISTENING),
            ("upload file", ActionKind.OPEN_FILE_CHOOSER),
            ("split it", ActionKind.TRIGGER_SPLIT),
            ("view terms", ActionKind.VIEW_TERMS),
        ],
    )
    def test_simple_commands(self, utterance: str, kind: ActionKind) -> None:
        assert parse_command(utterance, []).kind is kind

    def test_no_match(self) -> None:
        assert parse_command("what a lovely day", []) is None
        assert parse_command("   ", []) is None

    def test_play_all_with_empty_library_matches_without_action(self) -> None:
        action = parse_command("play all", [])
        assert action.kind is ActionKind.NONE
        assert action.status == "No tracks found in library."

    def test_play_all_uses_most_recent_track(self, tracks) -> None:
        action = parse_command("play music", tracks)
        assert action.kind is ActionKind.PLAY_ALL
        assert action.track.id == "t2"
        assert action.status == "Playing all tracks for: Bohemian Rhapsody.mp3"

    def test_first_rule_wins(self, tracks) -> None:
        assert parse_command("play all from older", tracks).kind is ActionKind.PLAY_ALL

    def test_select_stem_aliases(self) -> None:
        action = parse_command("select drums", [])
        assert action.kind is ActionKind.SELECT_STEM
        assert action.stem_id == "percussion"

    def test_select_unknown_stem_is_consumed(self) -> None:
        action = parse_command("select the kazoo", [])
        assert action.kind is ActionKind.NONE

    def test_deselect_all_is_not_select_all(self) -> None:
        assert parse_command("deselect all", []).stem_id == "none"
        assert parse_command("deselect all stems", []).stem_id == "none"
        assert parse_command("clear stems", []).stem_id == "none"
        assert parse_command("select all stems", []).stem_id == "all"

    @pytest.mark.parametrize("stem", ["vocals", "drums", "percussion", "original audio"])
    def test_play_stem_for_song(self, tracks, stem: str) -> None:
        action = parse_command(f"play {stem} from bohemian rhapsody", tracks)

        assert action.kind is ActionKind.PLAY_STEM
        assert action.track.id == "t2"

    def test_play_stem_resolves_file(self, tracks) -> None:
        action = parse_command("Play drums for Bohemian", tracks)

        assert action.stem_file.filename == "drums.mp3"
        assert action.status == "Playing Percussion for Bohemian Rhapsody.mp3"

    def test_play_stem_unknown_song(self, tracks) -> None:
        action = parse_command("play vocals from stairway", tracks)
        assert action.kind is ActionKind.NONE
        assert action.status == 'Could not find song "stairway" in library'

    def test_play_stem_unknown_stem(self, tracks) -> None:
        action = parse_command("play kazoo from bohemian", tracks)
        assert action.kind is ActionKind.NONE
        assert "kazoo" in action.status


class TestCommandDispatcher:
    @pytest.mark.anyio
    async def test_unmatched(self, dispatcher, navigator, playback) -> None:
        result = await dispatcher.dispatch("hello there")

        assert not result.matched
        assert navigator.method_calls == []
        assert playback.method_calls == []

    @pytest.mark.anyio
    async def test_navigation(self, dispatcher, navigator) -> None:
        result = await dispatcher.dispatch("go to pricing")

        assert result.matched
        assert result.status == "Navigating to pricing..."
        navigator.navigate.assert_called_once_with("/pricing")

    @pytest.mark.anyio
    async def test_play_all(self, dispatcher, playback, tracks) -> None:
        await dispatcher.dispatch("play all")
        playback.play_all.assert_awaited_once_with(tracks[0])

    @pytest.mark.anyio
    async def test_play_all_empty_library(self, library, playback, navigator, signals) -> None:
        dispatcher = CommandDispatcher(library, playback, navigator, signals)

        result = await dispatcher.dispatch("play all")

        assert result.matched
        assert result.status == "No tracks found in library."
        playback.play_all.assert_not_awaited()

    @pytest.mark.anyio
    async def test_play_stem(self, dispatcher, playback, tracks) -> None:
        await dispatcher.dispatch("play vocals from bohemian")

        track = tracks[0]
        playback.play.assert_awaited_once_with(
            channel_key(track.id, "vocals.mp3"), track.files[0], track
        )

    @pytest.mark.anyio
    async def test_playback_error_becomes_status(self, dispatcher, playback) -> None:
        playback.play.side_effect = NoPlayableSourceError("vocals.mp3")

        result = await dispatcher.dispatch("play vocals from bohemian")

        assert result.matched
        assert result.status == "No playable source for vocals.mp3"
        assert dispatcher.status == result.status

    @pytest.mark.anyio
    async def test_select_and_ui_signals(self, dispatcher, signals) -> None:
        await dispatcher.dispatch("select vocal")
        await dispatcher.dispatch("upload music")
        await dispatcher.dispatch("split")
        await dispatcher.dispatch("show terms")

        signals.select_stem.assert_called_once_with("vocals")
        signals.open_file_chooser.assert_called_once()
        signals.trigger_split.assert_called_once()
        signals.view_terms.assert_called_once()

    @pytest.mark.anyio
    async def test_stop_listening(self, dispatcher) -> None:
        await dispatcher.dispatch("turn off")
        dispatcher.stop_listening.assert_awaited_once()

    @pytest.mark.anyio
    async def test_clear_library(self, dispatcher, library) -> None:
        await dispatcher.dispatch("clear library")
        await library.drain()
        assert library.tracks == []
