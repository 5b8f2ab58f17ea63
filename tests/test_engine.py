"""
Tests for AudioEngine.
"""
import pytest
import numpy as np

from audition.core import engine as engine_module
from audition.core.config import EngineState
from audition.core.engine import AudioEngine, get_default_engine, load_audio
from audition.core.errors import EngineUnlockError, LoadError
from audition.core.nodes import PlayerNode

from conftest import TEST_BLOCKSIZE, TEST_SAMPLERATE, FakeOutputStream


class TestLifecycle:
    """Tests for unlocking and closing the output device."""

    def test_starts_locked(self, engine):
        assert engine.state == EngineState.LOCKED
        assert not engine.running
        assert FakeOutputStream.instances == []

    @pytest.mark.asyncio
    async def test_start_opens_stream(self, engine):
        await engine.start()

        assert engine.running
        stream = FakeOutputStream.instances[0]
        assert stream.started
        assert stream.samplerate == TEST_SAMPLERATE
        assert stream.blocksize == TEST_BLOCKSIZE
        assert stream.channels == 2

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, engine):
        await engine.start()
        await engine.start()
        assert len(FakeOutputStream.instances) == 1

    @pytest.mark.asyncio
    async def test_refused_start(self, refusing_engine):
        with pytest.raises(EngineUnlockError):
            await refusing_engine.start()

        assert refusing_engine.state == EngineState.LOCKED
        assert FakeOutputStream.instances[0].closed

    @pytest.mark.asyncio
    async def test_close(self, engine):
        await engine.start()
        engine.close()
        engine.close()

        assert engine.state == EngineState.CLOSED
        assert FakeOutputStream.instances[0].closed

    @pytest.mark.asyncio
    async def test_start_after_close(self, engine):
        engine.close()
        with pytest.raises(EngineUnlockError):
            await engine.start()

    def test_default_engine_is_shared(self):
        first = get_default_engine()
        assert get_default_engine() is first

        first.close()
        replacement = get_default_engine()
        assert replacement is not first
        replacement.close()


class TestRendering:
    """Tests for the output callback."""

    @pytest.mark.asyncio
    async def test_callback_renders_chain(self, engine, sample_stereo_audio):
        player = engine.create_player(sample_stereo_audio)
        engine.chain(player)
        player.start()
        await engine.start()

        block = FakeOutputStream.instances[0].pump(1)
        assert np.allclose(block, sample_stereo_audio[:TEST_BLOCKSIZE])

    @pytest.mark.asyncio
    async def test_callback_clips(self, engine, sample_stereo_audio):
        loud = sample_stereo_audio * 10
        player = engine.create_player(loud)
        engine.chain(player)
        player.start()
        await engine.start()

        block = FakeOutputStream.instances[0].pump(1)
        assert np.max(np.abs(block)) <= 1.0

    @pytest.mark.asyncio
    async def test_callback_errors_render_silence(self, engine, sample_stereo_audio):
        player = engine.create_player(sample_stereo_audio)
        engine.chain(player)
        player.start()

        def broken(block):
            raise RuntimeError("boom")

        player.process = broken
        await engine.start()

        block = FakeOutputStream.instances[0].pump(1)
        assert np.all(block == 0)

    def test_offline_render(self, engine, sample_stereo_audio):
        player = engine.create_player(sample_stereo_audio)
        engine.chain(player)
        player.start()
        assert engine.render(64).shape == (64, 2)


class TestLoading:
    """Tests for decoding sources."""

    @pytest.mark.asyncio
    async def test_load_returns_stereo(self, engine):
        data = await engine.load("a.mp3")
        assert data.shape == (TEST_SAMPLERATE, 2)
        assert data.dtype == np.float32

    @pytest.mark.asyncio
    async def test_missing_source(self, engine):
        with pytest.raises(LoadError) as excinfo:
            await engine.load("missing.mp3")

        assert "missing.mp3" in str(excinfo.value)
        assert isinstance(excinfo.value.cause, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_empty_source(self):
        engine = AudioEngine(
            samplerate=TEST_SAMPLERATE,
            loader=lambda source, sr: np.zeros(0, dtype=np.float32),
            output_factory=FakeOutputStream
        )
        with pytest.raises(LoadError):
            await engine.load("empty.wav")

    def test_load_audio_decodes_file(self, wav_file, sample_stereo_audio):
        data = load_audio(wav_file, TEST_SAMPLERATE)
        assert data.shape == sample_stereo_audio.shape
        assert np.allclose(data, sample_stereo_audio, atol=1e-3)


class TestNodeFactories:
    """Tests for node creation and bookkeeping."""

    def test_created_nodes_are_tracked(self, engine, sample_stereo_audio):
        nodes = [
            engine.create_player(sample_stereo_audio),
            engine.create_pitch_shift(2),
            engine.create_reverb(1.0),
            engine.create_equalizer(1, 2, 3),
        ]
        assert set(engine.active_nodes) == set(nodes)
        assert all(node.samplerate == TEST_SAMPLERATE for node in nodes)

        nodes[0].dispose()
        assert nodes[0] not in engine.active_nodes

    def test_chain_ends_at_destination(self, engine, sample_stereo_audio):
        player = engine.create_player(sample_stereo_audio)
        equalizer = engine.create_equalizer()
        engine.chain(player, equalizer)

        assert player.outputs == (equalizer,)
        assert engine.destination.inputs == (equalizer,)
        assert isinstance(player, PlayerNode)

    def test_sounddevice_missing(self, monkeypatch):
        monkeypatch.setattr(engine_module, "sd", None)
        monkeypatch.setattr(engine_module, "_sounddevice_import_error", OSError("PortAudio library not found"))

        with pytest.raises(RuntimeError, match="PortAudio"):
            engine_module._sounddevice_output(samplerate=TEST_SAMPLERATE)
