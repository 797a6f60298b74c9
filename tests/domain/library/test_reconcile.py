"""Tests for merging the local cache with the remote listing."""

from stemsplit.domain.library.models import StemFile
from stemsplit.domain.library.reconcile import (
    is_visible_to,
    merge_track,
    parse_remote_listing,
    reconcile,
    sort_tracks,
)


class TestVisibility:
    def test_unowned_entries_visible_to_everyone(self, make_track) -> None:
        track = make_track(owner_id=None)
        assert is_visible_to(track, None)
        assert is_visible_to(track, "user-1")

    def test_owned_entries_only_visible_to_owner(self, make_track) -> None:
        track = make_track(owner_id="user-1")
        assert is_visible_to(track, "user-1")
        assert not is_visible_to(track, "user-2")
        assert not is_visible_to(track, None)


class TestParseRemoteListing:
    def test_converts_songs(self) -> None:
        tracks = parse_remote_listing(
            {
                "uid": "user-1",
                "songs": [
                    {
                        "song_id": "abcdef123456",
                        "files": [{"filename": "vocals.mp3"}, "drums.mp3"],
                        "created_at": "2024-04-30T08:00:00Z",
                    },
                    {"title": "no id"},
                    "garbage",
                ],
            }
        )

        assert len(tracks) == 1
        track = tracks[0]
        assert track.id == track.remote_id == "abcdef123456"
        assert track.title == "Song abcdef12"
        assert track.owner_id == "user-1"
        assert [f.filename for f in track.files] == ["vocals.mp3", "drums.mp3"]
        assert [layer.id for layer in track.layers] == ["drums", "vocals"]
        assert track.added_at.year == 2024

    def test_empty_payload(self) -> None:
        assert parse_remote_listing({}) == []


class TestReconcile:
    def test_sorted_most_recent_first(self, make_track) -> None:
        old = make_track("old", minutes_ago=30)
        new = make_track("new", minutes_ago=1)
        undated = make_track("undated", added_at=None)

        result = reconcile([undated, old, new], None, None)

        assert [t.id for t in result] == ["new", "old", "undated"]

    def test_failed_fetch_keeps_filtered_cache(self, make_track) -> None:
        mine = make_track("mine", owner_id="user-1")
        theirs = make_track("theirs", owner_id="user-2")

        assert [t.id for t in reconcile([mine, theirs], None, "user-1")] == ["mine"]

    def test_anonymous_sees_only_unowned(self, make_track) -> None:
        local = make_track("local")
        owned = make_track("owned", owner_id="user-1")

        assert [t.id for t in reconcile([local, owned], None, None)] == ["local"]

    def test_merge_keeps_local_id_and_blobs(self, make_track) -> None:
        local = make_track(
            "client-1",
            title="Old title",
            remote_id="r1",
            owner_id="user-1",
            files=(StemFile("vocals.mp3", "/blobs/vocals.mp3"), StemFile("extra.wav", "/blobs/extra.wav")),
        )
        remote = make_track(
            "r1",
            title="New title",
            remote_id="r1",
            owner_id="user-1",
            filenames=("vocals.mp3", "bass.mp3"),
            minutes_ago=5,
        )

        result = reconcile([local], [remote], "user-1")

        assert len(result) == 1
        merged = result[0]
        assert merged.id == "client-1"
        assert merged.title == "New title"
        assert merged.files == (
            StemFile("vocals.mp3", "/blobs/vocals.mp3"),
            StemFile("bass.mp3"),
            StemFile("extra.wav", "/blobs/extra.wav"),
        )
        assert {layer.id for layer in merged.layers} == {"vocals", "bass", "extra"}

    def test_remote_record_appears_once(self, make_track) -> None:
        first = make_track("a", remote_id="r1", owner_id="user-1")
        duplicate = make_track("b", remote_id="r1", owner_id="user-1")
        remote = make_track("r1", remote_id="r1", owner_id="user-1")
        remote_only = make_track("r2", remote_id="r2", owner_id="user-1", minutes_ago=10)

        result = reconcile([first, duplicate], [remote, remote_only], "user-1")

        assert [t.id for t in result] == ["a", "r2"]
        assert [t.remote_id for t in result] == ["r1", "r2"]

    def test_local_only_tracks_survive_remote_merge(self, make_track) -> None:
        local = make_track("local", cache_key="k1", minutes_ago=3)
        remote = make_track("r1", remote_id="r1", owner_id="user-1")

        result = reconcile([local], [remote], "user-1")

        assert [t.id for t in result] == ["r1", "local"]


def test_merge_prefers_remote_metadata_but_keeps_cache_key(make_track) -> None:
    local = make_track("c", cache_key="k1", source_name="song.mp3", remote_id="r1")
    remote = make_track("r1", title="Remote", remote_id="r1", owner_id="user-1")

    merged = merge_track(local, remote)

    assert merged.cache_key == "k1"
    assert merged.source_name == "song.mp3"
    assert merged.owner_id == "user-1"


def test_sort_is_stable_for_equal_timestamps(make_track) -> None:
    tracks = [make_track("a"), make_track("b"), make_track("c")]
    assert [t.id for t in sort_tracks(tracks)] == ["a", "b", "c"]
