"""
Voice session state machine.

offline -> connecting -> online -> offline, with an explicit stop allowed
from any state.
"""

from enum import Enum

from .exceptions import InvalidTransitionError


class VoiceState(str, Enum):
    OFFLINE = "offline"
    CONNECTING = "connecting"
    ONLINE = "online"


class VoiceEvent(str, Enum):
    START = "start"
    SOCKET_OPEN = "socket_open"
    TRANSCRIPT = "transcript"
    FINAL_TRANSCRIPT = "final_transcript"
    INACTIVITY_TIMEOUT = "inactivity_timeout"
    TRANSPORT_CLOSED = "transport_closed"
    MICROPHONE_FAILED = "microphone_failed"
    STOP = "stop"


_TRANSITIONS = {
    (VoiceState.OFFLINE, VoiceEvent.START): VoiceState.CONNECTING,
    (VoiceState.CONNECTING, VoiceEvent.SOCKET_OPEN): VoiceState.ONLINE,
    (VoiceState.CONNECTING, VoiceEvent.MICROPHONE_FAILED): VoiceState.OFFLINE,
    (VoiceState.CONNECTING, VoiceEvent.TRANSPORT_CLOSED): VoiceState.OFFLINE,
    (VoiceState.ONLINE, VoiceEvent.TRANSCRIPT): VoiceState.ONLINE,
    # Final utterances auto-pause the session
    (VoiceState.ONLINE, VoiceEvent.FINAL_TRANSCRIPT): VoiceState.OFFLINE,
    (VoiceState.ONLINE, VoiceEvent.INACTIVITY_TIMEOUT): VoiceState.OFFLINE,
    (VoiceState.ONLINE, VoiceEvent.TRANSPORT_CLOSED): VoiceState.OFFLINE,
    (VoiceState.ONLINE, VoiceEvent.MICROPHONE_FAILED): VoiceState.OFFLINE,
}


def transition(state: VoiceState, event: VoiceEvent) -> VoiceState:
    """Next state for an event.

    Raises:
        InvalidTransitionError: If the event is not valid in this state
    """
    if event is VoiceEvent.STOP:
        return VoiceState.OFFLINE

    next_state = _TRANSITIONS.get((state, event))
    if next_state is None:
        raise InvalidTransitionError(f"Cannot handle {event.value} while {state.value}")
    return next_state
