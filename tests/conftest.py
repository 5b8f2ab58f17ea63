"""
Pytest configuration and fixtures for Audition tests.
"""
import threading

import pytest
import numpy as np
import soundfile as sf

from audition.core.engine import AudioEngine
from audition.core.session import AudioControlSession

TEST_SAMPLERATE = 8000
TEST_BLOCKSIZE = 512


def make_sine(samplerate: int = TEST_SAMPLERATE, seconds: float = 1.0, stereo: bool = True) -> np.ndarray:
    t = np.linspace(0, seconds, int(samplerate * seconds), endpoint=False, dtype=np.float32)
    left = (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32)
    if not stereo:
        return left
    right = (0.5 * np.sin(2 * np.pi * 660 * t)).astype(np.float32)
    return np.column_stack((left, right))


class FakeOutputStream:
    """Stands in for sounddevice.OutputStream; `pump` drives the callback."""
    instances = []

    def __init__(self, samplerate, channels, blocksize, callback):
        self.samplerate = samplerate
        self.channels = channels
        self.blocksize = blocksize
        self.callback = callback
        self.started = False
        self.closed = False
        FakeOutputStream.instances.append(self)

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True

    def pump(self, blocks: int = 1) -> np.ndarray:
        rendered = []
        for _ in range(blocks):
            outdata = np.zeros((self.blocksize, self.channels), dtype=np.float32)
            self.callback(outdata, self.blocksize, None, None)
            rendered.append(outdata)
        return np.concatenate(rendered, axis=0)


class RefusingOutputStream(FakeOutputStream):
    """An output device that will not start (no user gesture, no device)."""

    def start(self):
        raise RuntimeError("device refused to start")


class GatedOutputStream(FakeOutputStream):
    """An output device whose start blocks until `gate` is set."""
    gate = threading.Event()

    def start(self):
        GatedOutputStream.gate.wait(5)
        super().start()


class GatedLoader:
    """
    Loader whose calls for `gated` sources block until `release()`.
    Runs in the engine's worker thread.
    """

    def __init__(self, gated=(), missing=()):
        self.gated = set(gated)
        self.missing = set(missing)
        self.gate = threading.Event()
        self.calls = []

    def __call__(self, source, samplerate):
        self.calls.append(source)
        if source in self.gated:
            self.gate.wait(5)
        if source in self.missing:
            raise FileNotFoundError(f"No such file: '{source}'")
        return make_sine(samplerate)

    def release(self):
        self.gate.set()


@pytest.fixture(autouse=True)
def _reset_fake_streams():
    FakeOutputStream.instances.clear()
    GatedOutputStream.gate.clear()
    yield
    FakeOutputStream.instances.clear()
    GatedOutputStream.gate.set()


@pytest.fixture
def sample_mono_audio() -> np.ndarray:
    """1 second of mono sine wave audio."""
    return make_sine(stereo=False)


@pytest.fixture
def sample_stereo_audio() -> np.ndarray:
    """1 second of stereo sine wave audio."""
    return make_sine()


@pytest.fixture
def wav_file(tmp_path, sample_stereo_audio):
    """A short stereo WAV on disk."""
    path = tmp_path / "a.wav"
    sf.write(str(path), sample_stereo_audio, TEST_SAMPLERATE)
    return str(path)


@pytest.fixture
def loader() -> GatedLoader:
    return GatedLoader(gated={"slow.mp3"}, missing={"missing.mp3"})


@pytest.fixture
def engine(loader) -> AudioEngine:
    """Engine with a fake output device and an in-memory loader."""
    engine = AudioEngine(
        samplerate=TEST_SAMPLERATE,
        blocksize=TEST_BLOCKSIZE,
        loader=loader,
        output_factory=FakeOutputStream
    )
    yield engine
    engine.close()
    loader.release()


@pytest.fixture
def refusing_engine(loader) -> AudioEngine:
    engine = AudioEngine(
        samplerate=TEST_SAMPLERATE,
        blocksize=TEST_BLOCKSIZE,
        loader=loader,
        output_factory=RefusingOutputStream
    )
    yield engine
    engine.close()


@pytest.fixture
def snapshots() -> list:
    return []


@pytest.fixture
def session(engine, snapshots) -> AudioControlSession:
    session = AudioControlSession(engine, on_state_changed=snapshots.append)
    yield session
    session.teardown()
