"""Voice domain - streaming transcription and the command grammar.

This domain handles:
- Microphone capture and the transcription websocket
- The offline/connecting/online session state machine
- Mapping finalized utterances to library, playback and navigation actions
"""

from .commands import (
    GRAMMAR,
    Action,
    ActionKind,
    CommandDispatcher,
    DispatchResult,
    Navigator,
    UiSignals,
    normalize_stem_alias,
    parse_command,
)
from .exceptions import InvalidTransitionError, MicrophoneUnavailableError, VoiceError
from .microphone import Microphone, SoundDeviceMicrophone
from .pipeline import VoicePipeline, parse_transcript_frame
from .state import VoiceEvent, VoiceState, transition

__all__ = [
    "GRAMMAR",
    "Action",
    "ActionKind",
    "CommandDispatcher",
    "DispatchResult",
    "Navigator",
    "UiSignals",
    "normalize_stem_alias",
    "parse_command",
    "InvalidTransitionError",
    "MicrophoneUnavailableError",
    "VoiceError",
    "Microphone",
    "SoundDeviceMicrophone",
    "VoicePipeline",
    "parse_transcript_frame",
    "VoiceEvent",
    "VoiceState",
    "transition",
]
