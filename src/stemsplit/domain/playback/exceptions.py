"""Playback-specific exceptions."""


class PlaybackError(Exception):
    """Base exception for playback operations."""

    pass


class NoPlayableSourceError(PlaybackError):
    """Raised when none of a stem file's content-locators resolve."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"No playable source for {filename}")


class ChannelStartError(PlaybackError):
    """Raised when a playback channel cannot be started."""

    pass
