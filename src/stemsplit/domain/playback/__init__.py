"""Playback domain - per-stem channels and shared playback state.

This domain handles:
- MPV channels driven over JSON IPC, one process per stem
- Toggle/seek/stop semantics keyed by track id and filename
- Observable playing/paused sets, current times and durations
"""

from .channel import (
    AudioChannel,
    ChannelEvents,
    ChannelFactory,
    MpvChannel,
    check_mpv_available,
    format_time,
    mpv_channel_factory,
)
from .engine import PlaybackEngine
from .exceptions import ChannelStartError, NoPlayableSourceError, PlaybackError
from .state import PlaybackState

__all__ = [
    "AudioChannel",
    "ChannelEvents",
    "ChannelFactory",
    "MpvChannel",
    "check_mpv_available",
    "format_time",
    "mpv_channel_factory",
    "PlaybackEngine",
    "ChannelStartError",
    "NoPlayableSourceError",
    "PlaybackError",
    "PlaybackState",
]
