"""
Type definitions for the Audition core module.
Provides type aliases, value objects and the operation result type.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional
import numpy as np
from numpy.typing import NDArray

from .config import PARAMETER_LIMITS

if TYPE_CHECKING:
    from .errors import SessionError

# Audio data types
AudioArray = NDArray[np.float32]  # Shape: (samples,) or (samples, channels)
StereoArray = NDArray[np.float32] # Shape: (samples, 2)

# Callback types
EndedCallback = Callable[[], None]
StateListener = Callable[["SessionSnapshot"], None]
AudioLoader = Callable[[str, int], AudioArray]  # (source, samplerate)


class EqualizerBand(Enum):
    """Bands of the three-band equalizer."""
    LOW = "low"
    MID = "mid"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class EqualizerSettings:
    """Gain of each equalizer band in dB."""
    low: int = 0
    mid: int = 0
    high: int = 0

    def gain(self, band: EqualizerBand) -> int:
        return getattr(self, band.value)

    def with_gain(self, band: EqualizerBand, db: int) -> EqualizerSettings:
        return replace(self, **{band.value: db})


@dataclass(frozen=True, slots=True)
class SessionParams:
    """The four parameter groups republished to the effect chain."""
    playback_rate: float = PARAMETER_LIMITS.playback_rate.default
    pitch_semitones: int = int(PARAMETER_LIMITS.pitch_semitones.default)
    reverb_decay: float = PARAMETER_LIMITS.reverb_decay.default
    equalizer: EqualizerSettings = field(default_factory=EqualizerSettings)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only view of the session handed to listeners and the UI."""
    ready: bool
    playing: bool
    params: SessionParams
    last_error: Optional[str]
    source: Optional[str] = None


class OperationResult:
    """Outcome of a session operation. Operations never raise to the caller."""
    __slots__ = ('success', 'value', 'error', 'cancelled')

    def __init__(
        self,
        success: bool,
        value: Any = None,
        error: Optional["SessionError"] = None,
        cancelled: bool = False
    ):
        self.success = success
        self.value = value
        self.error = error
        self.cancelled = cancelled

    @classmethod
    def ok(cls, value: Any = None) -> "OperationResult":
        return cls(True, value=value)

    @classmethod
    def failed(cls, error: "SessionError") -> "OperationResult":
        return cls(False, error=error)

    @classmethod
    def superseded(cls) -> "OperationResult":
        """The operation was overtaken by a teardown or a newer request."""
        return cls(False, cancelled=True)

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        if self.cancelled:
            return "OperationResult(cancelled)"
        if self.success:
            return f"OperationResult(ok, value={self.value!r})"
        return f"OperationResult(failed, error={self.error!r})"
