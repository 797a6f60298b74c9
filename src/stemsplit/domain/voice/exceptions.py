"""Voice-control exceptions."""


class VoiceError(Exception):
    """Base exception for the voice pipeline."""

    pass


class MicrophoneUnavailableError(VoiceError):
    """Raised when microphone access is denied or the device fails to open."""

    pass


class InvalidTransitionError(VoiceError):
    """Raised for a state change the voice state machine does not allow."""

    pass
