"""
Centralized configuration for Audition.
All magic numbers and default settings in one place.
"""
from dataclasses import dataclass
from enum import Enum, auto


class PlaybackState(Enum):
    """Playback state enumeration."""
    STOPPED = auto()
    PLAYING = auto()


class EngineState(Enum):
    """Output device state. The engine starts locked until a user gesture."""
    LOCKED = auto()
    RUNNING = auto()
    CLOSED = auto()


@dataclass(frozen=True, slots=True)
class AudioConfig:
    """Audio engine configuration."""
    default_samplerate: int = 44100
    playback_blocksize: int = 4096
    playback_channels: int = 2


@dataclass(frozen=True, slots=True)
class ParameterRange:
    """Bounds, slider step and default of one user-facing control."""
    minimum: float
    maximum: float
    step: float
    default: float
    integral: bool = False

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


@dataclass(frozen=True, slots=True)
class ParameterLimits:
    """Ranges of every control exposed by the session."""
    playback_rate: ParameterRange = ParameterRange(0.5, 2.0, 0.1, 1.0)
    pitch_semitones: ParameterRange = ParameterRange(-12, 12, 1, 0, integral=True)
    reverb_decay: ParameterRange = ParameterRange(0.0, 5.0, 0.1, 1.5)
    equalizer_gain: ParameterRange = ParameterRange(-30, 30, 1, 0, integral=True)


@dataclass(frozen=True, slots=True)
class ReverbConfig:
    """Impulse-response reverb settings."""
    pre_delay: float = 0.01  # seconds of silence before the tail
    wet: float = 0.35
    silence_db: float = -60.0  # tail level reached after `decay` seconds
    seed: int = 1234


@dataclass(frozen=True, slots=True)
class EqualizerConfig:
    """Three-band equalizer crossover points."""
    low_frequency: float = 400.0
    high_frequency: float = 2500.0
    shelf_q: float = 0.707
    mid_q: float = 0.7

    @property
    def mid_frequency(self) -> float:
        # Geometric centre between the two crossovers
        return (self.low_frequency * self.high_frequency) ** 0.5


@dataclass(frozen=True, slots=True)
class PitchShiftConfig:
    """Block pitch shifter settings."""
    n_fft: int = 1024
    overlap: int = 256  # crossfade between consecutive blocks, also the added latency
    bypass_threshold: float = 0.01  # semitones


# Global config instances (immutable singletons)
AUDIO_CONFIG = AudioConfig()
PARAMETER_LIMITS = ParameterLimits()
REVERB_CONFIG = ReverbConfig()
EQUALIZER_CONFIG = EqualizerConfig()
PITCH_SHIFT_CONFIG = PitchShiftConfig()
