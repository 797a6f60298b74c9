"""
Playback channels: one independently controllable audio source per stem.

The production channel is an mpv process driven over JSON IPC. Each channel
owns its own mpv instance, so stems are mixed by the sound server rather than
by us.
"""

import asyncio
import itertools
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, NamedTuple, Optional, Protocol

from loguru import logger

from stemsplit.core.config import PlayerConfig

from .exceptions import ChannelStartError, PlaybackError

# Seconds to wait for mpv to create its IPC socket
SOCKET_TIMEOUT = 5.0

# Seconds to wait for an IPC reply
COMMAND_TIMEOUT = 2.0

_OBSERVE_TIME_POS = 1
_OBSERVE_DURATION = 2

_socket_counter = itertools.count(1)


class ChannelEvents(NamedTuple):
    """Callbacks a channel reports into; all run on the event loop."""

    on_time: Callable[[float], None]
    on_duration: Callable[[float], None]
    on_end: Callable[[], None]


class AudioChannel(Protocol):
    key: str

    @property
    def current_time(self) -> float:
        ...

    async def start(self, source: str, position: float = 0.0) -> None:
        ...

    async def pause(self) -> None:
        ...

    async def resume(self) -> None:
        ...

    async def seek(self, position: float) -> None:
        ...

    async def close(self) -> None:
        ...


ChannelFactory = Callable[[str, ChannelEvents], AudioChannel]


def check_mpv_available(mpv_path: str = "mpv") -> bool:
    """Check if MPV is available on the system."""
    return shutil.which(mpv_path) is not None


def format_time(seconds: float) -> str:
    """Format time in seconds to MM:SS format."""
    if seconds < 0:
        return "00:00"

    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes:02d}:{secs:02d}"


class MpvChannel:
    """A single mpv process playing one stem file."""

    def __init__(self, key: str, events: ChannelEvents, config: Optional[PlayerConfig] = None):
        self.key = key
        self.events = events
        self.config = config or PlayerConfig()
        self.socket_path: Optional[str] = None
        self._time = 0.0
        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._read_task: Optional[asyncio.Task] = None
        self._pending: Dict[int, asyncio.Future] = {}
        self._request_ids = itertools.count(1)
        self._closed = False

    @property
    def current_time(self) -> float:
        return self._time

    def _make_socket_path(self) -> str:
        base = Path(self.config.socket_dir) if self.config.socket_dir else Path(tempfile.gettempdir())
        return str(base / f"stemsplit-mpv-{os.getpid()}-{next(_socket_counter)}")

    async def start(self, source: str, position: float = 0.0) -> None:
        """Spawn mpv, connect to its IPC socket and begin playing source.

        Raises:
            ChannelStartError: If mpv cannot be spawned or never opens its socket
        """
        self.socket_path = self._make_socket_path()
        if os.path.exists(self.socket_path):
            os.unlink(self.socket_path)

        cmd = [
            self.config.mpv_path,
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={self.socket_path}",
            f"--volume={self.config.volume}",
            "--load-scripts=no",
        ]
        if position > 0:
            cmd.append(f"--start={position:.3f}")

        logger.debug(f"Starting mpv channel {self.key} with socket: {self.socket_path}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise ChannelStartError(f"Failed to start mpv: {e}") from e

        try:
            await self._connect()
            self._read_task = asyncio.get_running_loop().create_task(self._read_loop())
            await self.command("observe_property", _OBSERVE_TIME_POS, "time-pos")
            await self.command("observe_property", _OBSERVE_DURATION, "duration")
            await self.command("loadfile", source, "replace")
            await self.command("set_property", "pause", False)
        except (OSError, PlaybackError, asyncio.TimeoutError) as e:
            await self.close()
            raise ChannelStartError(f"mpv channel {self.key} failed to start: {e}") from e

        self._time = position
        logger.info(f"Channel {self.key} playing from {format_time(position)}")

    async def _connect(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + SOCKET_TIMEOUT
        while not os.path.exists(self.socket_path):
            if self._process and self._process.returncode is not None:
                raise ChannelStartError(f"mpv exited with code {self._process.returncode}")
            if loop.time() > deadline:
                raise ChannelStartError(f"MPV socket creation timeout after {SOCKET_TIMEOUT}s")
            await asyncio.sleep(0.05)

        self._reader, self._writer = await asyncio.open_unix_connection(self.socket_path)

    async def command(self, *args: Any) -> Any:
        """Send an IPC command and wait for its reply data."""
        if self._writer is None or self._closed:
            raise PlaybackError(f"Channel {self.key} is not running")

        request_id = next(self._request_ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        payload = json.dumps({"command": list(args), "request_id": request_id}) + "\n"
        self._writer.write(payload.encode("utf-8"))
        try:
            await self._writer.drain()
            reply = await asyncio.wait_for(future, COMMAND_TIMEOUT)
        finally:
            self._pending.pop(request_id, None)

        if reply.get("error") != "success":
            raise PlaybackError(f"mpv {args[0]} failed: {reply.get('error')}")
        return reply.get("data")

    async def _read_loop(self) -> None:
        assert self._reader is not None
        while True:
            line = await self._reader.readline()
            if not line:
                break
            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"Ignoring malformed mpv message on {self.key}: {line!r}")
                continue
            self._dispatch(message)

        for future in self._pending.values():
            if not future.done():
                future.set_exception(PlaybackError(f"mpv connection closed for {self.key}"))

    def _dispatch(self, message: Dict[str, Any]) -> None:
        request_id = message.get("request_id")
        if request_id is not None and "event" not in message:
            future = self._pending.get(request_id)
            if future and not future.done():
                future.set_result(message)
            return

        event = message.get("event")
        if event == "property-change":
            data = message.get("data")
            if data is None:
                return
            if message.get("id") == _OBSERVE_TIME_POS:
                self._time = float(data)
                self.events.on_time(self._time)
            elif message.get("id") == _OBSERVE_DURATION:
                self.events.on_duration(float(data))
        elif event == "end-file" and message.get("reason") == "eof":
            logger.debug(f"Channel {self.key} reached end of file")
            self.events.on_end()

    async def pause(self) -> None:
        await self.command("set_property", "pause", True)

    async def resume(self) -> None:
        await self.command("set_property", "pause", False)

    async def seek(self, position: float) -> None:
        await self.command("seek", position, "absolute")
        self._time = position

    async def close(self) -> None:
        """Quit mpv and release the socket. Safe to call more than once."""
        if self._closed:
            return
        if self._writer is not None:
            try:
                self._writer.write(b'{"command": ["quit"]}\n')
                await self._writer.drain()
            except (OSError, RuntimeError):
                pass  # mpv already gone
            self._writer.close()
        self._closed = True

        if self._read_task and self._read_task is not asyncio.current_task():
            self._read_task.cancel()

        if self._process and self._process.returncode is None:
            try:
                await asyncio.wait_for(self._process.wait(), 2.0)
            except asyncio.TimeoutError:
                self._process.kill()
                await self._process.wait()

        if self.socket_path and os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                pass

        logger.debug(f"Closed channel {self.key}")


def mpv_channel_factory(config: PlayerConfig) -> ChannelFactory:
    def _factory(key: str, events: ChannelEvents) -> AudioChannel:
        return MpvChannel(key, events, config)

    return _factory
