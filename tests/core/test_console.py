"""Tests for the shared console."""

import pytest
from rich.console import Console

from stemsplit.core.console import get_console, safe_print, set_console


@pytest.fixture
def recorded():
    console = Console(record=True, width=120, color_system=None)
    set_console(console)
    yield console
    set_console(None)


def test_brackets_in_titles_are_printed_verbatim(recorded) -> None:
    safe_print("▶ Playing vocals.mp3 (Song [Live] [bold])", style="green")

    assert "Song [Live] [bold]" in recorded.export_text()


def test_default_console_is_created_once() -> None:
    set_console(None)
    try:
        assert get_console() is get_console()
    finally:
        set_console(None)
