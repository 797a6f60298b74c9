"""User-facing notices and desktop notification helpers for StemSplit."""

import asyncio
import shutil
import subprocess
from typing import Callable, List, Literal, NamedTuple, Optional, Set

from loguru import logger

from stemsplit.core.config import NotificationsConfig

Variant = Literal["default", "destructive"]


class Notice(NamedTuple):
    """A toast-style message for the user."""

    title: str
    description: str
    variant: Variant = "default"


NOTIFY_TIMEOUT = 2.0


def _notify_command(title: str, message: str, urgency: str) -> Optional[List[str]]:
    if not shutil.which("notify-send"):
        return None
    return ["notify-send", "--urgency", urgency, "--app-name", "StemSplit", title, message]


def notify(
    title: str, message: str, urgency: Literal["low", "normal", "critical"] = "normal"
) -> None:
    """
    Show a desktop notification using notify-send, blocking until it returns.

    Only for callers without a running event loop; see notify_async().
    Silently skips notification if notify-send is not available.
    """
    command = _notify_command(title, message, urgency)
    if command is None:
        return

    try:
        subprocess.run(command, check=False, timeout=NOTIFY_TIMEOUT, capture_output=True)
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"notify-send failed: {e}")


async def notify_async(
    title: str, message: str, urgency: Literal["low", "normal", "critical"] = "normal"
) -> None:
    """Show a desktop notification without blocking the event loop."""
    command = _notify_command(title, message, urgency)
    if command is None:
        return

    try:
        process = await asyncio.create_subprocess_exec(
            *command, stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.DEVNULL
        )
    except OSError as e:
        logger.debug(f"notify-send failed: {e}")
        return

    try:
        await asyncio.wait_for(process.wait(), NOTIFY_TIMEOUT)
    except asyncio.TimeoutError:
        logger.debug("notify-send timed out")
        if process.returncode is None:
            process.kill()
            await process.wait()


class NoticeBoard:
    """Ordered record of notices with subscriber callbacks.

    Engines post here instead of raising across optimistic boundaries; the
    shell subscribes to print them.
    """

    def __init__(self, config: Optional[NotificationsConfig] = None, history: int = 100):
        self.config = config or NotificationsConfig()
        self.history = history
        self.notices: List[Notice] = []
        self._listeners: List[Callable[[Notice], None]] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, listener: Callable[[Notice], None]) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def post(self, title: str, description: str, variant: Variant = "default") -> Notice:
        notice = Notice(title, description, variant)
        if variant == "destructive":
            logger.warning(f"{title}: {description}")
        else:
            logger.info(f"{title}: {description}")

        self.notices.append(notice)
        del self.notices[: -self.history]

        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception:
                logger.exception("Notice listener failed")

        if self.config.enabled:
            if variant == "destructive" and self.config.show_errors:
                self._desktop(f"✗ {title}", description, urgency="critical")
            elif variant == "default" and self.config.show_success:
                self._desktop(f"✓ {title}", description)

        return notice

    @property
    def latest(self) -> Optional[Notice]:
        return self.notices[-1] if self.notices else None

    def _desktop(self, title: str, description: str, urgency: str = "normal") -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            notify(title, description, urgency=urgency)
            return

        task = loop.create_task(notify_async(title, description, urgency=urgency))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for desktop notifications still being shown."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
