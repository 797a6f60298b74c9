"""Session context for explicit state passing.

SessionContext bundles the engines and collaborators of one running session
so command handlers receive everything through a single argument.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from rich.console import Console

from stemsplit.core.api import BackendClient
from stemsplit.core.config import Config, get_data_dir, transcribe_url
from stemsplit.core.identity import IdentityProvider, StaticIdentity
from stemsplit.core.storage import KeyValueStore, SqliteKeyValueStore
from stemsplit.domain.library.archive import SessionBlobs
from stemsplit.domain.library.downloads import DownloadManager
from stemsplit.domain.library.engine import LibraryEngine, TokenSource
from stemsplit.domain.library.store import TrackStore
from stemsplit.domain.playback.channel import ChannelFactory
from stemsplit.domain.playback.engine import PlaybackEngine
from stemsplit.domain.voice.commands import CommandDispatcher
from stemsplit.domain.voice.microphone import MicrophoneFactory
from stemsplit.domain.voice.pipeline import SocketFactory, VoicePipeline
from stemsplit.notifications import NoticeBoard
from stemsplit.shell import ShellNavigator, ShellSignals


@dataclass
class SessionContext:
    """Application context passed to all command handlers.

    Attributes:
        config: Application configuration
        library: Track list, reconciliation and optimistic mutations
        playback: Channel registry and playback state
        voice: Voice command pipeline
        dispatcher: Utterance -> action mapping shared by voice and the `say` command
        downloads: Stem/song downloads with abort handles
        notices: User-facing notices
        navigator: Route/history collaborator
        signals: Upload form state
        console: Rich Console for formatted output
    """

    config: Config
    library: LibraryEngine
    playback: PlaybackEngine
    voice: VoicePipeline
    dispatcher: CommandDispatcher
    downloads: DownloadManager
    notices: NoticeBoard
    navigator: ShellNavigator
    signals: ShellSignals
    console: Optional[Console] = None
    ui_action: Optional[Dict[str, Any]] = field(default=None)

    @classmethod
    def create(
        cls,
        config: Config,
        console: Optional[Console] = None,
        identity: Optional[IdentityProvider] = None,
        storage: Optional[KeyValueStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        blobs: Optional[SessionBlobs] = None,
        channel_factory: Optional[ChannelFactory] = None,
        socket_factory: Optional[SocketFactory] = None,
        microphone_factory: Optional[MicrophoneFactory] = None,
        token_source: Optional[TokenSource] = None,
        download_dir: Optional[Path] = None,
    ) -> "SessionContext":
        """Wire up a session from configuration.

        Every collaborator can be injected; by default the session talks to
        the configured backend, stores the library in SQLite and plays through
        mpv.
        """
        identity = identity or StaticIdentity(
            config.identity.user_id, config.identity.auth_token
        )
        storage = storage or SqliteKeyValueStore(config.storage.database_path)
        notices = NoticeBoard(config.notifications)

        api = BackendClient(config.api, identity, transport=transport)
        library = LibraryEngine(
            TrackStore(storage),
            api,
            identity,
            blobs=blobs,
            recaptcha_site_key=config.api.recaptcha_site_key,
            recaptcha_token_source=token_source,
        )
        playback = PlaybackEngine(
            library, channel_factory=channel_factory, config=config.player, notices=notices
        )
        library.on_track_removed(lambda track: playback.release_track(track.id))

        navigator = ShellNavigator(library)
        signals = ShellSignals(library, notices, config.upload)
        dispatcher = CommandDispatcher(library, playback, navigator, signals)
        voice = VoicePipeline(
            dispatcher,
            transcribe_url(config.api),
            config=config.voice,
            notices=notices,
            socket_factory=socket_factory,
            microphone_factory=microphone_factory,
        )
        downloads = DownloadManager(
            library, notices, download_dir or get_data_dir() / "downloads"
        )

        return cls(
            config=config,
            library=library,
            playback=playback,
            voice=voice,
            dispatcher=dispatcher,
            downloads=downloads,
            notices=notices,
            navigator=navigator,
            signals=signals,
            console=console,
        )

    async def aclose(self) -> None:
        """Stop voice and playback, wait for background work, release blobs."""
        await self.voice.aclose()
        await self.playback.aclose()
        await self.navigator.drain()
        await self.signals.drain()
        await self.downloads.drain()
        await self.notices.drain()
        await self.library.drain()
        await self.library.api.aclose()
        self.library.blobs.cleanup()
