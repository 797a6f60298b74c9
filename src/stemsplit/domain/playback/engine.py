"""
Multi-channel stem playback.

The engine owns the channel registry, keyed by f"{track_id}__{filename}".
It is the only code that creates, toggles or releases channels; the library
asks for teardown through release_track().

Known limitation: when a stem starts while others are playing, it is seeked
once to the position of a playing channel. Channels are not resynchronized
afterwards and may drift apart over long playback.
"""

import asyncio
from typing import Dict, List, Optional, Set

from loguru import logger

from stemsplit.core.config import PlayerConfig
from stemsplit.domain.library.engine import LibraryEngine
from stemsplit.domain.library.layers import ORIGINAL_LAYER_ID, stem_basename
from stemsplit.domain.library.models import StemFile, Track, channel_key
from stemsplit.domain.library.sources import resolve_source
from stemsplit.notifications import NoticeBoard

from .channel import AudioChannel, ChannelEvents, ChannelFactory, mpv_channel_factory
from .exceptions import ChannelStartError, NoPlayableSourceError, PlaybackError
from .state import PlaybackState


class PlaybackEngine:
    """Registry of live channels plus the shared observable state."""

    def __init__(
        self,
        library: LibraryEngine,
        channel_factory: Optional[ChannelFactory] = None,
        config: Optional[PlayerConfig] = None,
        notices: Optional[NoticeBoard] = None,
    ):
        self.library = library
        self.channel_factory = channel_factory or mpv_channel_factory(config or PlayerConfig())
        self.notices = notices
        self.state = PlaybackState()
        self._channels: Dict[str, AudioChannel] = {}
        self._starting: Dict[str, asyncio.Task] = {}
        # Keys released while their channel was still starting
        self._released: Set[str] = set()
        self._closing: Set[asyncio.Task] = set()

    @property
    def keys(self) -> List[str]:
        return list(self._channels)

    def has_channel(self, key: str) -> bool:
        return key in self._channels

    async def play(self, key: str, stem_file: StemFile, track: Track) -> None:
        """Start a channel for key, or toggle pause/resume if it already exists.

        Raises:
            NoPlayableSourceError: If no content-locator resolves
            ChannelStartError: If the channel fails to start
        """
        starting = self._starting.get(key)
        if starting is not None:
            # A concurrent call is creating this channel; toggle what it creates
            await asyncio.wait([starting])
            if key not in self._channels:
                return

        channel = self._channels.get(key)
        if channel is not None:
            await self._toggle(key, channel)
            return

        task = asyncio.get_running_loop().create_task(self._start_channel(key, stem_file, track))
        self._starting[key] = task
        try:
            await task
        finally:
            self._starting.pop(key, None)
            self._released.discard(key)

    async def _toggle(self, key: str, channel: AudioChannel) -> None:
        if self.state.is_playing(key):
            await channel.pause()
            self.state.mark_paused(key)
            logger.debug(f"Paused {key}")
        else:
            await channel.resume()
            self.state.mark_playing(key)
            logger.debug(f"Resumed {key}")

    def _alignment_position(self) -> float:
        for other_key in self.state.playing:
            channel = self._channels.get(other_key)
            if channel is not None:
                return self.state.current_times.get(other_key, channel.current_time)
        return 0.0

    async def _start_channel(self, key: str, stem_file: StemFile, track: Track) -> None:
        source = await resolve_source(self.library, track, stem_file)
        if source is None:
            raise NoPlayableSourceError(stem_file.filename)
        if key in self._released:
            logger.debug(f"Released {key} before it started")
            return

        position = self._alignment_position()
        events = ChannelEvents(
            on_time=lambda t: self._on_time(key, t),
            on_duration=lambda d: self.state.set_duration(key, d),
            on_end=lambda: self._on_end(key),
        )
        channel = self.channel_factory(key, events)
        try:
            await channel.start(source, position)
        except ChannelStartError:
            await channel.close()
            raise
        except (OSError, PlaybackError) as e:
            await channel.close()
            raise ChannelStartError(f"Failed to start {stem_file.filename}: {e}") from e

        if key in self._released:
            logger.debug(f"Released {key} while starting, closing it")
            await channel.close()
            return

        self._channels[key] = channel
        self.state.current_times[key] = position
        self.state.mark_playing(key)
        logger.info(f"Playing {key} at {position:.2f}s")

    def _on_time(self, key: str, seconds: float) -> None:
        if key in self._channels:
            self.state.set_time(key, seconds)

    def _on_end(self, key: str) -> None:
        channel = self._channels.pop(key, None)
        if channel is None:
            return
        self.state.playing.discard(key)
        self.state.paused.discard(key)
        self.state.set_time(key, 0.0)
        self._close_later(channel)

    async def seek(self, key: str, seconds: float) -> None:
        """Move a channel; the shared time map is updated without waiting."""
        channel = self._channels.get(key)
        if channel is None:
            return
        self.state.set_time(key, seconds)
        await channel.seek(seconds)

    async def pause_all(self) -> None:
        for key in list(self.state.playing):
            channel = self._channels.get(key)
            if channel is not None:
                await channel.pause()
                self.state.mark_paused(key)

    async def stop_all(self) -> None:
        """Pause and release every channel."""
        channels = list(self._channels.items())
        self._channels.clear()
        self._released.update(self._starting)
        for key, channel in channels:
            try:
                await channel.pause()
            except PlaybackError as e:
                logger.debug(f"Pause before release failed for {key}: {e}")
            await channel.close()
        self.state.clear()
        if channels:
            logger.info(f"Stopped {len(channels)} channels")

    async def play_all(self, track: Track) -> List[str]:
        """Play every stem of a track except the original mix.

        Stems already playing are skipped. A stem that fails to start is
        reported and the rest still start.

        Returns:
            Keys of the stems that were started or toggled
        """
        started = []
        for stem_file in track.files:
            if stem_basename(stem_file.filename) == ORIGINAL_LAYER_ID:
                continue
            key = channel_key(track.id, stem_file.filename)
            if self.state.is_playing(key):
                continue
            try:
                await self.play(key, stem_file, track)
                started.append(key)
            except PlaybackError as e:
                logger.warning(f"Could not play {key}: {e}")
                if self.notices:
                    self.notices.post("Playback Error", str(e), variant="destructive")
        return started

    def release_track(self, track_id: str) -> int:
        """Tear down every channel belonging to a track."""
        prefix = f"{track_id}__"
        keys = [k for k in self._channels if k.startswith(prefix)]
        for key in keys:
            channel = self._channels.pop(key)
            self.state.forget(key)
            self._close_later(channel)

        starting = [k for k in self._starting if k.startswith(prefix)]
        self._released.update(starting)
        return len(keys) + len(starting)

    def _close_later(self, channel: AudioChannel) -> None:
        task = asyncio.get_running_loop().create_task(channel.close())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def aclose(self) -> None:
        await self.stop_all()
        if self._closing:
            await asyncio.gather(*list(self._closing), return_exceptions=True)
