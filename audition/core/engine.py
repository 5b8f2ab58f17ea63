"""
Audio engine for Audition.
Owns the output device (via sounddevice), decodes sources (via librosa)
and creates the nodes of the effect graph.
"""
from __future__ import annotations
import asyncio
import logging
import os
import threading
import weakref
from typing import Any, Callable, Optional
import numpy as np

try:
    import sounddevice as sd
    _sounddevice_import_error = None
except Exception as e:  # PortAudio missing on this machine
    sd = None
    _sounddevice_import_error = e

from . import effects
from .config import AUDIO_CONFIG, REVERB_CONFIG, EngineState
from .errors import EngineUnlockError, LoadError
from .nodes import (
    AudioNode, Destination, EqualizerNode, ImpulseBuilder, PitchShiftNode,
    PlayerNode, ReverbNode
)
from .types import AudioArray, AudioLoader, EndedCallback

logger = logging.getLogger("Audition")

# Called as factory(samplerate=, channels=, blocksize=, callback=) and
# must return an object with start(), stop() and close()
OutputFactory = Callable[..., Any]


def load_audio(source: str, samplerate: int) -> AudioArray:
    """
    Decode an audio file with librosa, resampled to `samplerate`.

    Returns:
        float32 audio, (samples,) or (samples, channels)
    """
    import librosa

    data, _ = librosa.load(source, sr=samplerate, mono=False)

    # Convert to (samples, channels)
    if data.ndim > 1:
        data = data.T

    return np.ascontiguousarray(data, dtype=np.float32)


def _sounddevice_output(**kwargs: Any) -> Any:
    if sd is None:
        raise RuntimeError(f"sounddevice is unavailable: {_sounddevice_import_error}")
    return sd.OutputStream(**kwargs)


class AudioEngine:
    """
    Process-wide audio engine.

    The output device stays closed until `start()` is awaited, which mirrors
    the one-time unlock a user gesture grants. Once running, the stream keeps
    rendering the destination; with nothing connected it plays silence.
    """

    def __init__(
        self,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        blocksize: int = AUDIO_CONFIG.playback_blocksize,
        channels: int = AUDIO_CONFIG.playback_channels,
        loader: Optional[AudioLoader] = None,
        output_factory: Optional[OutputFactory] = None,
        impulse_builder: Optional[ImpulseBuilder] = None
    ) -> None:
        self.samplerate = samplerate
        self.blocksize = blocksize
        self.channels = channels
        self._loader = loader or load_audio
        self._output_factory = output_factory or _sounddevice_output
        self._impulse_builder = impulse_builder
        self._stream: Any = None
        self._state = EngineState.LOCKED
        self._start_lock = threading.Lock()
        self._nodes: weakref.WeakSet[AudioNode] = weakref.WeakSet()
        self.destination = Destination(samplerate, channels)
        logger.info("AudioEngine initialized (%d Hz, %d channels)", samplerate, channels)

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state == EngineState.RUNNING

    @property
    def active_nodes(self) -> list[AudioNode]:
        """Nodes created by this engine and not yet disposed."""
        return [node for node in self._nodes if not node.disposed]

    # --- Lifecycle ---

    async def start(self) -> None:
        """
        Unlock the engine by opening the output device.
        Idempotent: returns immediately once running.

        Raises:
            EngineUnlockError: the device could not be opened or started
        """
        if self._state == EngineState.RUNNING:
            return
        if self._state == EngineState.CLOSED:
            raise EngineUnlockError("the audio engine has been closed")
        await asyncio.to_thread(self._open_stream)

    def _open_stream(self) -> None:
        with self._start_lock:
            if self._state == EngineState.RUNNING:
                return
            stream = None
            try:
                stream = self._output_factory(
                    samplerate=self.samplerate,
                    channels=self.channels,
                    blocksize=self.blocksize,
                    callback=self._callback
                )
                stream.start()
            except Exception as e:
                logger.error("Failed to open output stream: %s", e, exc_info=True)
                if stream is not None:
                    try:
                        stream.close()
                    except Exception as close_error:
                        logger.warning("Error closing stream: %s", close_error)
                raise EngineUnlockError(str(e), cause=e) from e
            self._stream = stream
            self._state = EngineState.RUNNING
            logger.info("Audio engine started")

    def close(self) -> None:
        """Stop and close the output device. Safe to call more than once."""
        with self._start_lock:
            if self._stream is not None:
                try:
                    self._stream.stop()
                    self._stream.close()
                except Exception as e:
                    logger.warning("Error stopping stream: %s", e)
                self._stream = None
            if self._state != EngineState.CLOSED:
                self._state = EngineState.CLOSED
                logger.info("Audio engine closed")

    def _callback(self, outdata: np.ndarray, frames: int, time: object, status: Any) -> None:
        """Real-time audio callback."""
        try:
            if status:
                logger.debug("Output stream status: %s", status)
            outdata[:] = self.destination.render(frames)
            # Prevent digital clipping
            np.clip(outdata, -1.0, 1.0, out=outdata)
        except Exception as e:
            logger.error("Playback callback error: %s", e, exc_info=True)
            outdata.fill(0)

    def render(self, frames: int) -> AudioArray:
        """Render one block offline, without the output device."""
        return np.clip(self.destination.render(frames), -1.0, 1.0)

    # --- Sources ---

    async def load(self, source: str) -> AudioArray:
        """
        Decode `source` in a worker thread.

        Raises:
            LoadError: missing file, unsupported format or empty audio
        """
        logger.info("Loading file: %s", source)
        try:
            data = await asyncio.to_thread(self._loader, source, self.samplerate)
        except Exception as e:
            logger.error("Failed to load %s: %s", source, e, exc_info=True)
            name = os.path.basename(str(source)) or str(source)
            raise LoadError(f"{name}: {e}", cause=e) from e
        if data is None or len(data) == 0:
            raise LoadError(f"{source}: no audio samples")
        return effects.to_stereo(data) if self.channels == 2 else data

    # --- Node factories ---

    def _register(self, node: AudioNode) -> AudioNode:
        self._nodes.add(node)
        return node

    def create_player(
        self,
        buffer: AudioArray,
        playback_rate: float = 1.0,
        on_ended: Optional[EndedCallback] = None
    ) -> PlayerNode:
        return self._register(PlayerNode(
            buffer, self.samplerate, self.channels, playback_rate, on_ended
        ))

    def create_pitch_shift(self, pitch: float = 0) -> PitchShiftNode:
        return self._register(PitchShiftNode(pitch, self.samplerate, self.channels))

    def create_reverb(
        self,
        decay: float,
        impulse_builder: Optional[ImpulseBuilder] = None
    ) -> ReverbNode:
        return self._register(ReverbNode(
            decay, self.samplerate, self.channels,
            pre_delay=REVERB_CONFIG.pre_delay,
            wet=REVERB_CONFIG.wet,
            impulse_builder=impulse_builder or self._impulse_builder
        ))

    def create_equalizer(self, low: float = 0, mid: float = 0, high: float = 0) -> EqualizerNode:
        return self._register(EqualizerNode(low, mid, high, self.samplerate, self.channels))

    def chain(self, *nodes: AudioNode) -> None:
        """Connect `nodes` in order, ending at the destination."""
        route = list(nodes) + [self.destination]
        for upstream, downstream in zip(route, route[1:]):
            upstream.connect(downstream)


# =============================================================================
# DEFAULT ENGINE
# =============================================================================

_default_engine: Optional[AudioEngine] = None
_default_engine_lock = threading.Lock()


def get_default_engine() -> AudioEngine:
    """The process-wide engine, created on first use."""
    global _default_engine
    with _default_engine_lock:
        if _default_engine is None or _default_engine.state == EngineState.CLOSED:
            _default_engine = AudioEngine()
        return _default_engine
