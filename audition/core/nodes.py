"""
Audio graph nodes for Audition.

Nodes form a pull graph: the output stream asks the destination for a block,
the destination pulls its inputs, and each effect pulls its own input before
processing. Parameters are swapped as whole values so the audio thread never
sees a half-updated node.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional
import numpy as np

from . import effects
from .config import (
    AUDIO_CONFIG, EQUALIZER_CONFIG, PITCH_SHIFT_CONFIG, REVERB_CONFIG,
    PlaybackState
)
from .errors import EngineError, NodeDisposedError
from .types import AudioArray, EndedCallback

logger = logging.getLogger("Audition")

ImpulseBuilder = Callable[[int, float, float, int], AudioArray]


class AudioNode:
    """
    Base node: tracks its inputs, renders them, and processes the mix.
    """
    name = "node"

    def __init__(
        self,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        channels: int = AUDIO_CONFIG.playback_channels
    ) -> None:
        self._samplerate = samplerate
        self._channels = channels
        self._inputs: tuple[AudioNode, ...] = ()
        self._outputs: tuple[AudioNode, ...] = ()
        self._disposed = False

    @property
    def samplerate(self) -> int:
        return self._samplerate

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def inputs(self) -> tuple[AudioNode, ...]:
        return self._inputs

    @property
    def outputs(self) -> tuple[AudioNode, ...]:
        return self._outputs

    def _check_alive(self) -> None:
        if self._disposed:
            raise NodeDisposedError(f"{self.name} node has been disposed")

    def connect(self, destination: AudioNode) -> AudioNode:
        """
        Route this node's output into `destination`.

        Returns:
            The destination, so calls can be chained
        """
        self._check_alive()
        destination._check_alive()
        if destination not in self._outputs:
            self._outputs = self._outputs + (destination,)
            destination._inputs = destination._inputs + (self,)
        return destination

    def disconnect(self) -> None:
        """Detach this node from every downstream node."""
        for destination in self._outputs:
            destination._inputs = tuple(n for n in destination._inputs if n is not self)
        self._outputs = ()

    def pull(self, frames: int) -> AudioArray:
        """Render `frames` samples of this node's output."""
        if self._disposed:
            return self._silence(frames)
        return self.process(self._render_inputs(frames))

    def process(self, block: AudioArray) -> AudioArray:
        return block

    def dispose(self) -> None:
        """Release the node. Safe to call more than once."""
        if self._disposed:
            return
        self.disconnect()
        for source in self._inputs:
            source._outputs = tuple(n for n in source._outputs if n is not self)
        self._inputs = ()
        self._disposed = True
        self._release()
        logger.debug("Disposed %s node", self.name)

    def _release(self) -> None:
        """Hook for subclasses holding buffers or state."""

    def _silence(self, frames: int) -> AudioArray:
        return np.zeros((frames, self._channels), dtype=np.float32)

    def _render_inputs(self, frames: int) -> AudioArray:
        inputs = self._inputs
        if not inputs:
            return self._silence(frames)
        if len(inputs) == 1:
            return inputs[0].pull(frames)
        mix = self._silence(frames)
        for source in inputs:
            mix += source.pull(frames)
        return mix

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "live"
        return f"<{type(self).__name__} {state}>"


class Destination(AudioNode):
    """Sink feeding the output device."""
    name = "destination"

    def connect(self, destination: AudioNode) -> AudioNode:
        raise EngineError("The destination cannot be connected to another node")

    def render(self, frames: int) -> AudioArray:
        return self.pull(frames)


class PlayerNode(AudioNode):
    """
    Plays a decoded buffer at a variable rate.
    Stopping keeps the read position; reaching the end rewinds and
    notifies `on_ended` (from the audio thread).
    """
    name = "player"

    def __init__(
        self,
        buffer: AudioArray,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        channels: int = AUDIO_CONFIG.playback_channels,
        playback_rate: float = 1.0,
        on_ended: Optional[EndedCallback] = None
    ) -> None:
        super().__init__(samplerate, channels)
        self._buffer = effects.to_stereo(buffer) if channels == 2 else np.asarray(buffer, dtype=np.float32)
        self._position: float = 0.0
        self._playback_rate = float(playback_rate)
        self._state = PlaybackState.STOPPED
        self.on_ended = on_ended

    @property
    def buffer(self) -> AudioArray:
        return self._buffer

    @property
    def duration(self) -> float:
        """Buffer length in seconds."""
        return len(self._buffer) / self._samplerate if self._samplerate > 0 else 0.0

    @property
    def position(self) -> float:
        """Read position in seconds."""
        return self._position / self._samplerate if self._samplerate > 0 else 0.0

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def playback_rate(self) -> float:
        return self._playback_rate

    @playback_rate.setter
    def playback_rate(self, value: float) -> None:
        self._check_alive()
        if value <= 0:
            raise ValueError(f"Playback rate must be positive, got {value}")
        self._playback_rate = float(value)

    def start(self, offset: Optional[float] = None) -> None:
        """Start (or resume) playback, optionally from `offset` seconds."""
        self._check_alive()
        if len(self._buffer) == 0:
            raise EngineError("Cannot start a player with an empty buffer")
        if offset is not None:
            self.seek(offset)
        self._state = PlaybackState.PLAYING

    def stop(self) -> None:
        self._check_alive()
        self._state = PlaybackState.STOPPED

    def seek(self, seconds: float) -> None:
        self._check_alive()
        total = len(self._buffer)
        self._position = float(max(0, min(int(seconds * self._samplerate), total)))

    def process(self, block: AudioArray) -> AudioArray:
        frames = len(block)
        if self._state != PlaybackState.PLAYING:
            return block
        out, self._position, ended = effects.read_resampled(
            self._buffer, self._position, frames, self._playback_rate
        )
        if ended:
            self._state = PlaybackState.STOPPED
            self._position = 0.0
            callback = self.on_ended
            if callback is not None:
                callback()
        return block + out

    def _release(self) -> None:
        self._state = PlaybackState.STOPPED
        self.on_ended = None
        self._buffer = np.zeros((0, self._channels), dtype=np.float32)


class PitchShiftNode(AudioNode):
    """
    Transposes its input by a number of semitones, keeping tempo.
    Input context and a crossfaded tail are carried between blocks.
    """
    name = "pitch_shift"

    def __init__(
        self,
        pitch: float = 0,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        channels: int = AUDIO_CONFIG.playback_channels,
        n_fft: int = PITCH_SHIFT_CONFIG.n_fft,
        overlap: int = PITCH_SHIFT_CONFIG.overlap
    ) -> None:
        super().__init__(samplerate, channels)
        self._pitch = float(pitch)
        self._n_fft = n_fft
        self._overlap = overlap
        self._history: Optional[np.ndarray] = None
        self._pending: Optional[np.ndarray] = None

    @property
    def pitch(self) -> float:
        return self._pitch

    @pitch.setter
    def pitch(self, semitones: float) -> None:
        self._check_alive()
        self._pitch = float(semitones)

    def process(self, block: AudioArray) -> AudioArray:
        out, self._history, self._pending = effects.pitch_shift_block(
            block, self._samplerate, self._pitch, self._history, self._pending,
            self._n_fft, self._overlap
        )
        return out

    def _release(self) -> None:
        self._history = None
        self._pending = None


class ReverbNode(AudioNode):
    """
    Convolution reverb whose impulse is generated asynchronously.

    Until the first `generate()` completes the node passes audio through dry.
    A regeneration keeps the previous impulse in use until the new one is
    ready, and only the most recent request is applied.
    """
    name = "reverb"

    def __init__(
        self,
        decay: float = 1.5,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        channels: int = AUDIO_CONFIG.playback_channels,
        pre_delay: float = REVERB_CONFIG.pre_delay,
        wet: float = REVERB_CONFIG.wet,
        impulse_builder: Optional[ImpulseBuilder] = None
    ) -> None:
        super().__init__(samplerate, channels)
        if decay < 0:
            raise ValueError(f"Reverb decay must be >= 0, got {decay}")
        self._decay = float(decay)
        self._pre_delay = float(pre_delay)
        self._wet = float(np.clip(wet, 0.0, 1.0))
        self._impulse: Optional[AudioArray] = None
        self._impulse_decay: Optional[float] = None
        self._tail: Optional[np.ndarray] = None
        self._generation = 0
        self._impulse_builder = impulse_builder or effects.generate_impulse_response

    @property
    def decay(self) -> float:
        return self._decay

    @decay.setter
    def decay(self, seconds: float) -> None:
        """Takes effect at the next `generate()`."""
        self._check_alive()
        if seconds < 0:
            raise ValueError(f"Reverb decay must be >= 0, got {seconds}")
        self._decay = float(seconds)

    @property
    def pre_delay(self) -> float:
        return self._pre_delay

    @property
    def wet(self) -> float:
        return self._wet

    @wet.setter
    def wet(self, value: float) -> None:
        self._check_alive()
        self._wet = float(np.clip(value, 0.0, 1.0))

    @property
    def ready(self) -> bool:
        return self._impulse is not None

    @property
    def impulse(self) -> Optional[AudioArray]:
        return self._impulse

    @property
    def impulse_decay(self) -> Optional[float]:
        """Decay the current impulse was built for (None until ready)."""
        return self._impulse_decay

    async def generate(self) -> bool:
        """
        Compute the impulse for the current decay in a worker thread.

        Returns:
            True if the impulse was applied, False if a newer request or
            disposal overtook it
        """
        self._check_alive()
        self._generation += 1
        token = self._generation
        decay = self._decay

        impulse = await asyncio.to_thread(
            self._impulse_builder, self._samplerate, decay, self._pre_delay, self._channels
        )

        if self._disposed or token != self._generation:
            logger.debug("Discarding stale reverb impulse (decay=%.2fs)", decay)
            return False

        self._impulse = impulse
        self._impulse_decay = decay
        logger.debug("Reverb impulse ready: decay=%.2fs, %d taps", decay, len(impulse))
        return True

    def process(self, block: AudioArray) -> AudioArray:
        impulse = self._impulse
        if impulse is None or self._wet <= 0.0:
            return block
        wet_block, self._tail = effects.convolve_block(block, impulse, self._tail)
        return ((1.0 - self._wet) * block + self._wet * wet_block).astype(np.float32)

    def _release(self) -> None:
        self._impulse = None
        self._impulse_decay = None
        self._tail = None


class EqualizerNode(AudioNode):
    """
    Three-band equalizer: low shelf, peaking mid, high shelf.
    Gains change the coefficients in place; filter state is kept.
    """
    name = "equalizer"

    def __init__(
        self,
        low: float = 0.0,
        mid: float = 0.0,
        high: float = 0.0,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        channels: int = AUDIO_CONFIG.playback_channels,
        low_frequency: float = EQUALIZER_CONFIG.low_frequency,
        high_frequency: float = EQUALIZER_CONFIG.high_frequency
    ) -> None:
        super().__init__(samplerate, channels)
        self.low_frequency = low_frequency
        self.high_frequency = high_frequency
        self._gains = (float(low), float(mid), float(high))
        self._coefficients = self._design(self._gains)
        self._states: list[Optional[np.ndarray]] = [None, None, None]

    @property
    def mid_frequency(self) -> float:
        return (self.low_frequency * self.high_frequency) ** 0.5

    @property
    def low(self) -> float:
        return self._gains[0]

    @low.setter
    def low(self, db: float) -> None:
        self._set_gain(0, db)

    @property
    def mid(self) -> float:
        return self._gains[1]

    @mid.setter
    def mid(self, db: float) -> None:
        self._set_gain(1, db)

    @property
    def high(self) -> float:
        return self._gains[2]

    @high.setter
    def high(self, db: float) -> None:
        self._set_gain(2, db)

    @property
    def coefficients(self) -> tuple[effects.Coefficients, ...]:
        return self._coefficients

    def _set_gain(self, index: int, db: float) -> None:
        self._check_alive()
        gains = list(self._gains)
        gains[index] = float(db)
        gains = tuple(gains)
        self._coefficients = self._design(gains)
        self._gains = gains

    def _design(self, gains: tuple[float, float, float]) -> tuple[effects.Coefficients, ...]:
        sr = self._samplerate
        low, mid, high = gains
        return (
            effects.low_shelf_coefficients(sr, self.low_frequency, low, EQUALIZER_CONFIG.shelf_q),
            effects.peaking_coefficients(sr, self.mid_frequency, mid, EQUALIZER_CONFIG.mid_q),
            effects.high_shelf_coefficients(sr, self.high_frequency, high, EQUALIZER_CONFIG.shelf_q),
        )

    def process(self, block: AudioArray) -> AudioArray:
        gains, coefficients = self._gains, self._coefficients
        if not any(gains):
            return block
        out = block
        for i, coeffs in enumerate(coefficients):
            out, self._states[i] = effects.apply_biquad(out, coeffs, self._states[i])
        return out

    def _release(self) -> None:
        self._states = [None, None, None]
