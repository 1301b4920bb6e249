"""Shared error codes and user-facing messages."""

from __future__ import annotations

# Recognizer error kinds
AUDIO = "AUDIO"
CLIENT = "CLIENT"
PERMISSIONS = "PERMISSIONS"
NETWORK = "NETWORK"
NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
NO_MATCH = "NO_MATCH"
SPEECH_TIMEOUT = "SPEECH_TIMEOUT"
BUSY = "BUSY"
SERVER = "SERVER"
UNKNOWN = "UNKNOWN"

# Session and pipeline errors
RECOGNIZER_UNAVAILABLE = "RECOGNIZER_UNAVAILABLE"
NO_SPEECH = "NO_SPEECH"
AI_BACKEND_UNCONFIGURED = "AI_BACKEND_UNCONFIGURED"
AI_BACKEND_FAILURE = "AI_BACKEND_FAILURE"
MALFORMED_INPUT_ROW = "MALFORMED_INPUT_ROW"
CANCELLED_SESSION = "CANCELLED_SESSION"

# Silence from the user, not a failure.
NO_SPEECH_KINDS = frozenset({NO_MATCH, SPEECH_TIMEOUT, NO_SPEECH})

ERROR_MESSAGES = {
    AUDIO: "Audio recording error",
    CLIENT: "Client side error",
    PERMISSIONS: "Insufficient permissions",
    NETWORK: "Network error",
    NETWORK_TIMEOUT: "Network timeout",
    NO_MATCH: "No speech match",
    SPEECH_TIMEOUT: "No speech input",
    BUSY: "Recognition service busy",
    SERVER: "Server error",
    UNKNOWN: "Recognition error",
    RECOGNIZER_UNAVAILABLE: "Speech recognition not available on this device",
    NO_SPEECH: "No speech recognized",
    AI_BACKEND_UNCONFIGURED: "AI service not configured. Please add your DashScope API key.",
    AI_BACKEND_FAILURE: "Failed to process command",
    MALFORMED_INPUT_ROW: "CSV row has too few fields",
    CANCELLED_SESSION: "Recognition was cancelled",
}


def message_for(code: str) -> str:
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[UNKNOWN])


class AIBackendError(Exception):
    """Raised by an AI backend when a call cannot produce a result."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES[AI_BACKEND_FAILURE])
        self.message = message or ERROR_MESSAGES[AI_BACKEND_FAILURE]
