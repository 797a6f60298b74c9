"""Tests for user-facing notices and desktop notifications."""

import asyncio
import shutil
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from stemsplit import notifications
from stemsplit.core.config import NotificationsConfig
from stemsplit.notifications import NoticeBoard


@pytest.fixture
def desktop(monkeypatch):
    """Replace both notify-send helpers with mocks."""
    blocking = MagicMock()
    background = AsyncMock()
    monkeypatch.setattr(notifications, "notify", blocking)
    monkeypatch.setattr(notifications, "notify_async", background)
    return blocking, background


class TestNoticeBoard:
    def test_history_and_listeners(self) -> None:
        board = NoticeBoard(history=2)
        seen = []
        unsubscribe = board.subscribe(seen.append)

        board.post("One", "first")
        board.post("Two", "second")
        unsubscribe()
        board.post("Three", "third", variant="destructive")

        assert [n.title for n in board.notices] == ["Two", "Three"]
        assert [n.title for n in seen] == ["One", "Two"]
        assert board.latest.variant == "destructive"

    def test_failing_listener_does_not_stop_others(self) -> None:
        board = NoticeBoard()
        seen = []
        board.subscribe(MagicMock(side_effect=RuntimeError("broken")))
        board.subscribe(seen.append)

        board.post("Saved", "ok")

        assert len(seen) == 1

    def test_disabled_by_default(self, desktop) -> None:
        blocking, background = desktop

        NoticeBoard().post("Saved", "ok")

        blocking.assert_not_called()
        background.assert_not_called()

    def test_without_event_loop_uses_blocking_call(self, desktop) -> None:
        blocking, background = desktop

        NoticeBoard(NotificationsConfig(enabled=True)).post("Saved", "ok")

        blocking.assert_called_once_with("✓ Saved", "ok", urgency="normal")
        background.assert_not_called()

    @pytest.mark.anyio
    async def test_inside_event_loop_runs_in_background(self, desktop) -> None:
        blocking, background = desktop
        board = NoticeBoard(NotificationsConfig(enabled=True))

        board.post("Upload failed", "File too large", variant="destructive")
        await board.drain()

        blocking.assert_not_called()
        background.assert_awaited_once_with("✗ Upload failed", "File too large", urgency="critical")

    @pytest.mark.anyio
    async def test_show_flags(self, desktop) -> None:
        _, background = desktop
        board = NoticeBoard(NotificationsConfig(enabled=True, show_success=False))

        board.post("Saved", "ok")
        await board.drain()

        background.assert_not_called()


class TestNotifyAsync:
    @pytest.mark.anyio
    async def test_missing_notify_send_is_skipped(self, monkeypatch) -> None:
        monkeypatch.setattr(notifications.shutil, "which", lambda name: None)
        await notifications.notify_async("Saved", "ok")

    @pytest.mark.anyio
    @pytest.mark.skipif(shutil.which("sleep") is None, reason="needs sleep(1)")
    async def test_slow_notifier_is_killed_without_blocking(self, monkeypatch) -> None:
        monkeypatch.setattr(notifications, "_notify_command", lambda *args: ["sleep", "5"])
        monkeypatch.setattr(notifications, "NOTIFY_TIMEOUT", 0.05)
        ticks = 0

        async def ticker() -> None:
            nonlocal ticks
            while True:
                ticks += 1
                await asyncio.sleep(0.01)

        counter = asyncio.get_running_loop().create_task(ticker())
        started = time.monotonic()
        await notifications.notify_async("Saved", "ok")
        counter.cancel()

        assert time.monotonic() - started < 2.0
        assert ticks > 1
