"""
Observable playback state shared with the UI.

Only the playback engine mutates it; listeners receive the state after every
change.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Set

from loguru import logger


@dataclass
class PlaybackState:
    playing: Set[str] = field(default_factory=set)
    paused: Set[str] = field(default_factory=set)
    current_times: Dict[str, float] = field(default_factory=dict)
    durations: Dict[str, float] = field(default_factory=dict)
    _listeners: List[Callable[["PlaybackState"], None]] = field(
        default_factory=list, repr=False
    )

    def subscribe(self, listener: Callable[["PlaybackState"], None]) -> None:
        self._listeners.append(listener)

    def is_playing(self, key: str) -> bool:
        return key in self.playing

    def mark_playing(self, key: str) -> None:
        self.paused.discard(key)
        self.playing.add(key)
        self._notify()

    def mark_paused(self, key: str) -> None:
        self.playing.discard(key)
        self.paused.add(key)
        self._notify()

    def set_time(self, key: str, seconds: float) -> None:
        self.current_times[key] = seconds
        self._notify()

    def set_duration(self, key: str, seconds: float) -> None:
        self.durations[key] = seconds
        self._notify()

    def forget(self, key: str) -> None:
        self.playing.discard(key)
        self.paused.discard(key)
        self.current_times.pop(key, None)
        self.durations.pop(key, None)
        self._notify()

    def clear(self) -> None:
        """Drop play/pause flags; last known times and durations stay for display."""
        self.playing.clear()
        self.paused.clear()
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Playback listener failed")
