"""
Streaming voice-command pipeline.

Microphone chunks are streamed over a websocket to the transcription
endpoint; the server answers with {"transcript", "isFinal"} frames. A final
transcript is dispatched as a command and the session then pauses itself.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional, Protocol

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException

from stemsplit.core.config import VoiceConfig
from stemsplit.notifications import NoticeBoard

from .commands import CommandDispatcher
from .exceptions import MicrophoneUnavailableError
from .microphone import Microphone, MicrophoneFactory, SoundDeviceMicrophone
from .state import VoiceEvent, VoiceState, transition


class TranscriptSocket(Protocol):
    async def send(self, message: bytes) -> None:
        ...

    async def close(self) -> None:
        ...

    def __aiter__(self) -> Any:
        ...


SocketFactory = Callable[[str], Awaitable[TranscriptSocket]]


async def connect_transcriber(url: str) -> TranscriptSocket:
    return await websockets.connect(url)


async def socket_close_quietly(socket: Optional[TranscriptSocket]) -> None:
    if socket is None:
        return
    try:
        await socket.close()
    except (ConnectionClosed, OSError) as e:
        logger.debug(f"Error closing voice socket: {e}")


def parse_transcript_frame(raw: Any) -> tuple[Optional[str], bool]:
    """Extract (transcript, is_final) from a server frame."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        return None, False
    transcript = data.get("transcript")
    is_final = bool(data.get("isFinal", data.get("is_final", False)))
    return (transcript or None), is_final


class VoicePipeline:
    """Owns one voice session at a time: microphone, socket and timers."""

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        url: str,
        config: Optional[VoiceConfig] = None,
        notices: Optional[NoticeBoard] = None,
        socket_factory: Optional[SocketFactory] = None,
        microphone_factory: Optional[MicrophoneFactory] = None,
    ):
        self.dispatcher = dispatcher
        self.url = url
        self.config = config or VoiceConfig()
        self.notices = notices or NoticeBoard()
        self.socket_factory = socket_factory or connect_transcriber
        self.microphone_factory = microphone_factory or SoundDeviceMicrophone

        self.state = VoiceState.OFFLINE
        self.status: Optional[str] = None
        self.live_transcript: Optional[str] = None

        self._microphone: Optional[Microphone] = None
        self._socket: Optional[TranscriptSocket] = None
        self._send_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._inactivity: Optional[asyncio.TimerHandle] = None
        self._linger: Optional[asyncio.TimerHandle] = None
        self._stopping: set[asyncio.Task] = set()

        if dispatcher.stop_listening is None:
            dispatcher.stop_listening = self.stop

    @property
    def is_listening(self) -> bool:
        return self.state is VoiceState.ONLINE

    def _apply(self, event: VoiceEvent) -> None:
        previous = self.state
        self.state = transition(self.state, event)
        if previous is not self.state:
            logger.debug(f"Voice {previous.value} -> {self.state.value} ({event.value})")

    async def start(self) -> None:
        """Open the microphone and connect; no-op unless offline."""
        if self.state is not VoiceState.OFFLINE:
            return
        self._apply(VoiceEvent.START)

        try:
            microphone = self.microphone_factory(self.config)
            self._microphone = microphone
            microphone.open()
        except MicrophoneUnavailableError as e:
            logger.error(f"Error starting voice control: {e}")
            self.notices.post(
                "Microphone Access Denied",
                "Please enable microphone access for this application.",
                variant="destructive",
            )
            await self._shutdown(VoiceEvent.MICROPHONE_FAILED)
            return

        try:
            self._socket = await self.socket_factory(self.url)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.error(f"Voice socket connection failed: {e}")
            self.notices.post(
                "Connection Error", "Failed to connect to speech server.", variant="destructive"
            )
            await self._shutdown(VoiceEvent.TRANSPORT_CLOSED)
            return

        if self.state is not VoiceState.CONNECTING:
            # Stopped while connecting
            await socket_close_quietly(self._socket)
            self._socket = None
            return

        self._on_open()

    def _on_open(self) -> None:
        logger.info("Voice socket connected")
        self._apply(VoiceEvent.SOCKET_OPEN)
        self.status = "Online"
        self.live_transcript = None
        self._cancel_linger()
        self._reset_inactivity()

        try:
            self._microphone.start()
        except MicrophoneUnavailableError as e:
            logger.error(f"Microphone failed after connect: {e}")
            self.notices.post(
                "Microphone Access Denied",
                "Please enable microphone access for this application.",
                variant="destructive",
            )
            self._spawn_stop(VoiceEvent.MICROPHONE_FAILED)
            return

        loop = asyncio.get_running_loop()
        self._send_task = loop.create_task(self._stream_audio())
        self._receive_task = loop.create_task(self._receive())

    async def _stream_audio(self) -> None:
        microphone, socket = self._microphone, self._socket
        sent = 0
        try:
            async for chunk in microphone.chunks():
                await socket.send(chunk)
                sent += 1
                if sent <= 3:
                    logger.debug(f"Sent audio chunk #{sent} ({len(chunk)} bytes)")
        except (ConnectionClosed, OSError) as e:
            logger.info(f"Voice socket closed while streaming: {e}")
            self._spawn_stop()

    async def _receive(self) -> None:
        try:
            async for raw in self._socket:
                try:
                    transcript, is_final = parse_transcript_frame(raw)
                except (ValueError, UnicodeDecodeError) as e:
                    logger.error(f"Error parsing transcript message: {e}")
                    continue

                if not transcript:
                    continue
                if self.state is not VoiceState.ONLINE:
                    return

                self._apply(VoiceEvent.TRANSCRIPT)
                self._reset_inactivity()
                self.live_transcript = transcript

                if is_final:
                    await self._handle_final(transcript)
                    return
        except ConnectionClosed as e:
            logger.info(f"Voice socket closed: {e}")
        except OSError as e:
            logger.error(f"Voice socket error: {e}")

        if self.state is not VoiceState.OFFLINE:
            await self._shutdown(VoiceEvent.TRANSPORT_CLOSED)

    async def _handle_final(self, transcript: str) -> None:
        result = await self.dispatcher.dispatch(transcript)
        if result.matched:
            self.notices.post("Voice Command", transcript)

        # Auto-pause whether or not a command matched
        await self._shutdown(VoiceEvent.FINAL_TRANSCRIPT)

        self._cancel_linger()
        self._linger = asyncio.get_running_loop().call_later(
            self.config.transcript_linger_seconds, self._clear_transcript
        )

    def _clear_transcript(self) -> None:
        self._linger = None
        self.live_transcript = None

    def _reset_inactivity(self) -> None:
        self._cancel_inactivity()
        self._inactivity = asyncio.get_running_loop().call_later(
            self.config.inactivity_timeout_seconds, self._on_inactive
        )

    def _on_inactive(self) -> None:
        self._inactivity = None
        if self.state is VoiceState.ONLINE:
            logger.info("Auto-stopping due to inactivity")
            self._spawn_stop(VoiceEvent.INACTIVITY_TIMEOUT)

    def _cancel_inactivity(self) -> None:
        if self._inactivity is not None:
            self._inactivity.cancel()
            self._inactivity = None

    def _cancel_linger(self) -> None:
        if self._linger is not None:
            self._linger.cancel()
            self._linger = None

    def _spawn_stop(self, event: VoiceEvent = VoiceEvent.TRANSPORT_CLOSED) -> None:
        task = asyncio.get_running_loop().create_task(self._shutdown(event))
        self._stopping.add(task)
        task.add_done_callback(self._stopping.discard)

    async def stop(self) -> None:
        """Stop capture, close the socket and clear timers. Idempotent."""
        await self._shutdown(VoiceEvent.STOP)

    async def toggle(self) -> None:
        if self.state is VoiceState.OFFLINE:
            await self.start()
        else:
            await self.stop()

    async def _shutdown(self, event: VoiceEvent) -> None:
        if self.state is not VoiceState.OFFLINE:
            self._apply(event)
        self.state = VoiceState.OFFLINE
        self.status = None
        self._cancel_inactivity()

        microphone, self._microphone = self._microphone, None
        if microphone is not None:
            microphone.close()

        socket, self._socket = self._socket, None
        await socket_close_quietly(socket)

        current = asyncio.current_task()
        for task in (self._send_task, self._receive_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._send_task = None
        self._receive_task = None

    async def aclose(self) -> None:
        await self.stop()
        self._cancel_linger()
        if self._stopping:
            await asyncio.gather(*list(self._stopping), return_exceptions=True)
