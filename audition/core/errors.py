"""
Error hierarchy for Audition.

Session errors are caught at the session boundary and surfaced as the single
current error message. Engine errors signal misuse of the audio engine itself.
"""
from __future__ import annotations
from typing import Optional


class SessionError(Exception):
    """Base class for every failure surfaced to the user."""
    prefix = "Error"

    def __init__(self, detail: str, cause: Optional[BaseException] = None):
        super().__init__(detail)
        self.detail = detail
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.prefix}: {self.detail}"


class LoadError(SessionError):
    """The audio source could not be fetched or decoded."""
    prefix = "Audio load error"


class InitError(SessionError):
    """An effect node could not be constructed."""
    prefix = "Initialization error"


class EngineUnlockError(SessionError):
    """The output device refused to start."""
    prefix = "Audio engine unavailable"


class PlaybackError(SessionError):
    """Starting or stopping the source failed."""
    prefix = "Playback error"


class RegenerationError(SessionError):
    """Recomputing the reverb impulse failed."""
    prefix = "Reverb update error"


class NotReadyError(SessionError):
    """An operation needed a ready session."""
    prefix = "Not ready"


class ParameterRangeError(SessionError, ValueError):
    """A control value fell outside its documented range."""
    prefix = "Invalid value"


class EngineError(RuntimeError):
    """Base class for audio engine misuse."""


class NodeDisposedError(EngineError):
    """A disposed node was rendered or had a parameter written."""
