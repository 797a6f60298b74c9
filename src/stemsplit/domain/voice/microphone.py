"""
Microphone capture with sounddevice.

PortAudio delivers blocks on its own thread; each block is handed to the
event loop with call_soon_threadsafe and read back as an async iterator of
fixed-duration PCM chunks.
"""

import asyncio
from typing import Any, AsyncIterator, Callable, Optional, Protocol

from loguru import logger

from stemsplit.core.config import VoiceConfig

from .exceptions import MicrophoneUnavailableError


class Microphone(Protocol):
    def open(self) -> None:
        ...

    def start(self) -> None:
        ...

    def chunks(self) -> AsyncIterator[bytes]:
        ...

    def close(self) -> None:
        ...


MicrophoneFactory = Callable[[VoiceConfig], Microphone]


class SoundDeviceMicrophone:
    """16-bit mono capture in chunk_ms blocks."""

    def __init__(self, config: VoiceConfig):
        self.config = config
        self.blocksize = int(config.sample_rate * config.chunk_ms / 1000)
        self._stream: Any = None
        self._queue: "asyncio.Queue[Optional[bytes]]" = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._sd: Any = None

    def open(self) -> None:
        """Acquire the input device without starting capture.

        Raises:
            MicrophoneUnavailableError: If no input device can be opened
        """
        self._loop = asyncio.get_running_loop()
        try:
            # Loads the PortAudio shared library
            import sounddevice as sd
        except OSError as e:
            raise MicrophoneUnavailableError(f"PortAudio is not available: {e}") from e

        self._sd = sd
        try:
            self._stream = sd.RawInputStream(
                samplerate=self.config.sample_rate,
                channels=self.config.channels,
                dtype="int16",
                blocksize=self.blocksize,
                callback=self._callback,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise MicrophoneUnavailableError(f"Cannot open microphone: {e}") from e

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"Microphone status: {status}")
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, bytes(indata))

    def start(self) -> None:
        if self._stream is None:
            raise MicrophoneUnavailableError("Microphone is not open")
        try:
            self._stream.start()
        except self._sd.PortAudioError as e:
            raise MicrophoneUnavailableError(f"Cannot start microphone: {e}") from e
        logger.debug(f"Microphone started: {self.config.sample_rate} Hz, {self.blocksize} frames/chunk")

    async def chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            if chunk:
                yield chunk

    def close(self) -> None:
        """Stop capture and release the device. Safe to call more than once."""
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except self._sd.PortAudioError as e:
                logger.warning(f"Error releasing microphone: {e}")
        self._queue.put_nowait(None)
