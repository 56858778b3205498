"""Shared error codes and user-facing messages."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
RECOGNIZER_ERROR = "RECOGNIZER_ERROR"
PLAYBACK_FAILED = "PLAYBACK_FAILED"
MATCH_UNVERIFIED = "MATCH_UNVERIFIED"
INVALID_CONFIG = "INVALID_CONFIG"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required in system settings.",
    NETWORK_ERROR: "Network failed, retrying.",
    AUTH_FAILED: "API key is invalid.",
    RECOGNIZER_ERROR: "Speech recognizer stopped unexpectedly.",
    PLAYBACK_FAILED: "Could not play the cue for this phrase.",
    MATCH_UNVERIFIED: "A phrase match could not be confirmed and was ignored.",
    INVALID_CONFIG: "Setting value is not valid.",
}
