"""
Audio control session for Audition.

Mediates between the user-facing parameters and the engine's stateful nodes.
Runs on a single asyncio event loop; the only suspension points are source
decoding, reverb impulse generation and the engine unlock. Every resume
checks a generation counter so a stale completion never touches a chain that
has been torn down or replaced.
"""
from __future__ import annotations
import asyncio
import functools
import logging
import math
from dataclasses import replace
from typing import Any, Optional, Union

from .config import PARAMETER_LIMITS, ParameterRange
from .engine import AudioEngine, get_default_engine
from .errors import (
    EngineUnlockError, InitError, NotReadyError, ParameterRangeError,
    PlaybackError, RegenerationError, SessionError
)
from .nodes import AudioNode, EqualizerNode, PitchShiftNode, PlayerNode, ReverbNode
from .types import (
    AudioArray, EqualizerBand, OperationResult, SessionParams, SessionSnapshot,
    StateListener
)

logger = logging.getLogger("Audition")


class EffectChain:
    """The nodes built for one loaded source, in signal order."""
    __slots__ = ('player', 'pitch_shift', 'reverb', 'equalizer')

    def __init__(
        self,
        player: PlayerNode,
        pitch_shift: PitchShiftNode,
        reverb: ReverbNode,
        equalizer: EqualizerNode
    ) -> None:
        self.player = player
        self.pitch_shift = pitch_shift
        self.reverb = reverb
        self.equalizer = equalizer

    @property
    def nodes(self) -> tuple[AudioNode, ...]:
        return (self.player, self.pitch_shift, self.reverb, self.equalizer)

    def release(self) -> None:
        _release_nodes(self.nodes)


def _release_nodes(nodes: Any) -> None:
    """Dispose nodes downstream-first; one failure never skips the rest."""
    for node in reversed(list(nodes)):
        try:
            node.dispose()
        except Exception as e:
            logger.warning("Error disposing %s: %s", node, e)


class AudioControlSession:
    """
    One audio source played through pitch shift, reverb and a 3-band EQ.

    Every public operation resolves to an OperationResult; failures are kept
    as the single current `last_error` and never leave the session unusable.
    """

    def __init__(
        self,
        engine: Optional[AudioEngine] = None,
        on_state_changed: Optional[StateListener] = None
    ) -> None:
        self._engine = engine or get_default_engine()
        self._on_state_changed = on_state_changed
        self._chain: Optional[EffectChain] = None
        self._pending_nodes: list[AudioNode] = []
        self._params = SessionParams()
        self._ready = False
        self._playing = False
        self._last_error: Optional[str] = None
        self._source: Optional[str] = None
        self._generation = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # --- State ---

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def playing(self) -> bool:
        return self._playing

    @property
    def params(self) -> SessionParams:
        return self._params

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def on_state_changed(self) -> Optional[StateListener]:
        return self._on_state_changed

    @on_state_changed.setter
    def on_state_changed(self, listener: Optional[StateListener]) -> None:
        self._on_state_changed = listener

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            ready=self._ready,
            playing=self._playing,
            params=self._params,
            last_error=self._last_error,
            source=self._source
        )

    def _notify(self) -> None:
        listener = self._on_state_changed
        if listener is None:
            return
        try:
            listener(self.snapshot())
        except Exception as e:
            logger.error("State listener failed: %s", e, exc_info=True)

    def _fail(self, error: SessionError) -> OperationResult:
        logger.warning("%s", error)
        self._last_error = str(error)
        self._notify()
        return OperationResult.failed(error)

    def dismiss_error(self) -> None:
        """Clear the current error."""
        if self._last_error is not None:
            self._last_error = None
            self._notify()

    # --- Lifecycle ---

    async def initialize(
        self,
        source: str,
        params: Optional[SessionParams] = None
    ) -> OperationResult:
        """
        Load `source` and build the effect chain.

        Any previous chain is torn down first, and a newer initialize() or a
        teardown() supersedes this one: it then releases what it built and
        resolves to a cancelled result.
        """
        self.teardown()
        token = self._generation
        self._loop = asyncio.get_running_loop()

        if params is not None:
            try:
                params = self._validate(params)
            except ParameterRangeError as e:
                return self._fail(e)
            self._params = params
        self._source = source
        self._notify()

        built: list[AudioNode] = []
        self._pending_nodes = built
        try:
            buffer = await self._engine.load(source)
            if token != self._generation:
                return self._discard(built, source)

            chain = self._build_chain(buffer, built, token)

            # The parameters may move while the impulse is generated
            while True:
                decay = self._params.reverb_decay
                chain.reverb.decay = decay
                try:
                    await chain.reverb.generate()
                except Exception as e:
                    raise InitError(f"reverb impulse: {e}", cause=e) from e
                if token != self._generation:
                    return self._discard(built, source)
                if self._params.reverb_decay == decay:
                    break
            self._apply_in_place(chain, self._params)
        except asyncio.CancelledError:
            _release_nodes(built)
            raise
        except SessionError as e:
            _release_nodes(built)
            if token != self._generation:
                return OperationResult.superseded()
            return self._fail(e)
        except Exception as e:
            _release_nodes(built)
            if token != self._generation:
                return OperationResult.superseded()
            return self._fail(InitError(str(e), cause=e))
        finally:
            if self._pending_nodes is built:
                self._pending_nodes = []

        self._chain = chain
        self._ready = True
        logger.info("Session ready: %s", source)
        self._notify()
        return OperationResult.ok(self.snapshot())

    def _discard(self, built: list[AudioNode], source: str) -> OperationResult:
        logger.info("Initialization of %s superseded; releasing it", source)
        _release_nodes(built)
        return OperationResult.superseded()

    def _build_chain(self, buffer: AudioArray, built: list[AudioNode], token: int) -> EffectChain:
        params = self._params
        engine = self._engine
        try:
            player = engine.create_player(
                buffer,
                playback_rate=params.playback_rate,
                on_ended=functools.partial(self._on_source_ended, token)
            )
            built.append(player)
            pitch_shift = engine.create_pitch_shift(params.pitch_semitones)
            built.append(pitch_shift)
            reverb = engine.create_reverb(params.reverb_decay)
            built.append(reverb)
            eq = params.equalizer
            equalizer = engine.create_equalizer(eq.low, eq.mid, eq.high)
            built.append(equalizer)
            engine.chain(player, pitch_shift, reverb, equalizer)
        except Exception as e:
            raise InitError(str(e), cause=e) from e
        return EffectChain(player, pitch_shift, reverb, equalizer)

    def teardown(self) -> None:
        """
        Stop playback and release every node. Idempotent, and safe before,
        during or after initialization.
        """
        self._generation += 1
        chain, self._chain = self._chain, None
        pending, self._pending_nodes = self._pending_nodes, []
        active = self._ready or self._playing or chain is not None or bool(pending)

        if chain is not None:
            if self._playing:
                try:
                    chain.player.stop()
                except Exception as e:
                    logger.warning("Error stopping player: %s", e)
            chain.release()
        _release_nodes(pending)

        self._ready = False
        self._playing = False
        if active:
            logger.info("Session torn down")
            self._notify()

    # --- Transport ---

    async def toggle_playback(self) -> OperationResult:
        """Start or stop the source. Resolves with the new playing state."""
        if not self._ready or self._chain is None:
            return self._fail(NotReadyError("no audio loaded yet"))

        token = self._generation
        try:
            await self._engine.start()
        except EngineUnlockError as e:
            return self._fail(e)
        except Exception as e:
            return self._fail(EngineUnlockError(str(e), cause=e))

        chain = self._chain
        if token != self._generation or chain is None:
            return OperationResult.superseded()

        try:
            if not self._playing:
                chain.player.playback_rate = self._params.playback_rate
                chain.player.start()
            else:
                chain.player.stop()
        except Exception as e:
            return self._fail(PlaybackError(str(e), cause=e))

        self._playing = not self._playing
        logger.info("Playback %s", "started" if self._playing else "paused")
        self._notify()
        return OperationResult.ok(self._playing)

    def _on_source_ended(self, token: int) -> None:
        # Called from the audio thread
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._handle_source_ended, token)

    def _handle_source_ended(self, token: int) -> None:
        if token != self._generation or not self._playing:
            return
        self._playing = False
        logger.info("Playback reached the end of %s", self._source)
        self._notify()

    # --- Parameters ---

    @staticmethod
    def _check(name: str, limits: ParameterRange, value: Any) -> Union[int, float]:
        """Validate a control value; never clamps."""
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            raise ParameterRangeError(f"{name} must be a number, got {value!r}") from None
        if math.isnan(number) or not limits.contains(number):
            raise ParameterRangeError(
                f"{name} must be between {limits.minimum:g} and {limits.maximum:g}, got {value!r}"
            )
        if limits.integral:
            if not number.is_integer():
                raise ParameterRangeError(f"{name} must be a whole number, got {value!r}")
            return int(number)
        return number

    def _validate(self, params: SessionParams) -> SessionParams:
        eq = params.equalizer
        return SessionParams(
            playback_rate=self._check("Playback rate", PARAMETER_LIMITS.playback_rate, params.playback_rate),
            pitch_semitones=self._check("Pitch", PARAMETER_LIMITS.pitch_semitones, params.pitch_semitones),
            reverb_decay=self._check("Reverb decay", PARAMETER_LIMITS.reverb_decay, params.reverb_decay),
            equalizer=replace(
                eq,
                low=self._check("Low band", PARAMETER_LIMITS.equalizer_gain, eq.low),
                mid=self._check("Mid band", PARAMETER_LIMITS.equalizer_gain, eq.mid),
                high=self._check("High band", PARAMETER_LIMITS.equalizer_gain, eq.high),
            )
        )

    @staticmethod
    def _apply_in_place(chain: EffectChain, params: SessionParams) -> None:
        """Push every parameter that needs no rebuild to the live nodes."""
        chain.player.playback_rate = params.playback_rate
        chain.pitch_shift.pitch = params.pitch_semitones
        eq = params.equalizer
        chain.equalizer.low = eq.low
        chain.equalizer.mid = eq.mid
        chain.equalizer.high = eq.high

    def set_playback_rate(self, rate: float) -> OperationResult:
        """Store the rate and apply it to the live player."""
        try:
            rate = self._check("Playback rate", PARAMETER_LIMITS.playback_rate, rate)
        except ParameterRangeError as e:
            return self._fail(e)

        self._params = replace(self._params, playback_rate=rate)
        if self._chain is not None:
            try:
                self._chain.player.playback_rate = rate
            except Exception as e:
                return self._fail(PlaybackError(str(e), cause=e))
        self._notify()
        return OperationResult.ok(rate)

    def set_pitch(self, semitones: int) -> OperationResult:
        """Store the transposition and apply it to the live pitch shifter."""
        try:
            semitones = self._check("Pitch", PARAMETER_LIMITS.pitch_semitones, semitones)
        except ParameterRangeError as e:
            return self._fail(e)

        self._params = replace(self._params, pitch_semitones=semitones)
        if self._chain is not None:
            try:
                self._chain.pitch_shift.pitch = semitones
            except Exception as e:
                return self._fail(PlaybackError(str(e), cause=e))
        self._notify()
        return OperationResult.ok(semitones)

    def set_equalizer_band(self, band: Union[EqualizerBand, str], db: int) -> OperationResult:
        """Store one band gain and apply it to the live equalizer."""
        try:
            band = EqualizerBand(band)
        except ValueError:
            return self._fail(ParameterRangeError(f"unknown equalizer band {band!r}"))
        try:
            db = self._check(f"{band.value.capitalize()} band", PARAMETER_LIMITS.equalizer_gain, db)
        except ParameterRangeError as e:
            return self._fail(e)

        self._params = replace(self._params, equalizer=self._params.equalizer.with_gain(band, db))
        if self._chain is not None:
            try:
                setattr(self._chain.equalizer, band.value, db)
            except Exception as e:
                return self._fail(PlaybackError(str(e), cause=e))
        self._notify()
        return OperationResult.ok(db)

    async def set_reverb_decay(self, seconds: float) -> OperationResult:
        """
        Store the decay and regenerate the live reverb impulse.
        Only the latest request is applied; overtaken ones resolve cancelled.
        """
        try:
            seconds = self._check("Reverb decay", PARAMETER_LIMITS.reverb_decay, seconds)
        except ParameterRangeError as e:
            return self._fail(e)

        self._params = replace(self._params, reverb_decay=seconds)
        self._notify()
        return await self._regenerate_reverb(seconds)

    async def _regenerate_reverb(self, seconds: float) -> OperationResult:
        chain = self._chain
        if chain is None:
            return OperationResult.ok(seconds)
        try:
            chain.reverb.decay = seconds
            applied = await chain.reverb.generate()
        except Exception as e:
            if chain is not self._chain or self._params.reverb_decay != seconds:
                return OperationResult.superseded()
            # Keep params in step with the impulse that is still playing
            previous = chain.reverb.impulse_decay
            if previous is not None:
                chain.reverb.decay = previous
                self._params = replace(self._params, reverb_decay=previous)
            return self._fail(RegenerationError(str(e), cause=e))
        if not applied:
            return OperationResult.superseded()
        return OperationResult.ok(seconds)

    async def reset_to_defaults(self) -> OperationResult:
        """Restore default parameters. Leaves the playing state alone."""
        defaults = SessionParams()
        self._params = defaults
        chain = self._chain
        if chain is not None:
            try:
                self._apply_in_place(chain, defaults)
            except Exception as e:
                return self._fail(PlaybackError(str(e), cause=e))
        self._notify()

        if chain is not None and chain.reverb.decay != defaults.reverb_decay:
            result = await self._regenerate_reverb(defaults.reverb_decay)
            if not result.success:
                return result
        return OperationResult.ok(self.snapshot())
