"""
Shell-side collaborators for the command dispatcher.

ShellNavigator keeps a route plus a history stack; ShellSignals holds the
upload form state (chosen file, terms acceptance, stem selection) that voice
commands toggle.
"""

import asyncio
from pathlib import Path
from typing import Coroutine, List, Optional, Set

from loguru import logger

from stemsplit.core.config import UploadConfig
from stemsplit.core.identity import ANONYMOUS
from stemsplit.core.output import log
from stemsplit.domain.library.engine import LibraryEngine
from stemsplit.domain.library.exceptions import LibraryError
from stemsplit.domain.library.models import Track
from stemsplit.domain.library.uploads import (
    StemSelection,
    validate_stems,
    validate_upload_file,
)
from stemsplit.notifications import NoticeBoard

TERMS_SUMMARY = """Terms of Service (summary)
  - Only upload audio you own or are licensed to process.
  - Uploaded files and generated stems may be stored to serve your library.
  - Stems are provided for personal, non-commercial use.
Accept with: upload <file> --accept-terms"""


class _TaskOwner:
    def __init__(self) -> None:
        self._pending: Set[asyncio.Task] = set()

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class ShellNavigator(_TaskOwner):
    """Route/history tracking for the interactive shell."""

    def __init__(self, library: LibraryEngine, route: str = "/"):
        super().__init__()
        self.library = library
        self.route = route
        self.history: List[str] = []

    def navigate(self, route: str) -> None:
        if route != self.route:
            self.history.append(self.route)
            self.route = route
        log(f"📍 {route}", "info")

    def back(self) -> None:
        if not self.history:
            log("Already at the first page", "info")
            return
        self.route = self.history.pop()
        log(f"📍 {self.route}", "info")

    def reload(self) -> None:
        """Re-run library reconciliation."""
        self._spawn(self.library.refresh())

    def logout(self) -> None:
        """Drop the identity; the library reconciles as anonymous."""
        self._spawn(self.library.set_identity(ANONYMOUS))
        self.history.clear()
        self.route = "/"
        log("👋 Logged out", "info")


class ShellSignals(_TaskOwner):
    """Upload form state driven by shell commands and voice signals."""

    def __init__(
        self,
        library: LibraryEngine,
        notices: NoticeBoard,
        upload_config: Optional[UploadConfig] = None,
    ):
        super().__init__()
        self.library = library
        self.notices = notices
        self.upload_config = upload_config or UploadConfig()
        self.selection = StemSelection(self.upload_config.default_stems)
        self.pending_file: Optional[Path] = None
        self.terms_accepted = False

    def open_file_chooser(self) -> None:
        log("📂 Choose a file with: upload <path>", "info")

    def trigger_split(self) -> None:
        if self.pending_file is None:
            log("No file chosen. Use: upload <path>", "warning")
            return
        self._spawn(self.split())

    def view_terms(self) -> None:
        log(TERMS_SUMMARY, "info")

    def select_stem(self, stem_id: str) -> None:
        try:
            selected = self.selection.toggle(stem_id)
        except LibraryError as e:
            log(f"❌ {e}", "error")
            return

        if stem_id in ("all", "none"):
            log(f"Stems: {', '.join(self.selection.selected) or '(none)'}", "info")
        else:
            log(f"{'✅ Selected' if selected else '➖ Deselected'} {stem_id}", "info")

    def choose_file(self, path: Path) -> Path:
        """Validate and remember the file for the next split."""
        self.pending_file = validate_upload_file(path, self.upload_config)
        return self.pending_file

    async def split(self) -> Optional[Track]:
        """Upload the chosen file with the current stem selection."""
        if self.pending_file is None:
            log("No file chosen. Use: upload <path>", "warning")
            return None

        try:
            stems = validate_stems(self.selection.selected)
            log(f"⏳ Splitting {self.pending_file.name} ({', '.join(stems)})...", "info")
            track = await self.library.add_track(self.pending_file, self.terms_accepted, stems)
        except LibraryError as e:
            logger.error(f"Upload failed: {e}")
            self.notices.post("Upload failed", str(e), variant="destructive")
            return None

        self.pending_file = None
        self.notices.post("Upload complete", f"{track.title} split into {len(track.files)} files")
        return track
