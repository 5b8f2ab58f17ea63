"""
Tests for the audio graph nodes.
"""
import asyncio
import threading

import pytest
import numpy as np

from audition.core.config import PlaybackState
from audition.core.effects import generate_impulse_response
from audition.core.errors import EngineError, NodeDisposedError
from audition.core.nodes import (
    AudioNode, Destination, EqualizerNode, PitchShiftNode, PlayerNode, ReverbNode
)

from conftest import TEST_SAMPLERATE


def make_player(audio, **kwargs):
    return PlayerNode(audio, samplerate=TEST_SAMPLERATE, channels=2, **kwargs)


class TestGraph:
    """Tests for connecting and disposing nodes."""

    def test_connect_links_both_sides(self):
        a, b = AudioNode(TEST_SAMPLERATE), AudioNode(TEST_SAMPLERATE)
        result = a.connect(b)

        assert result is b
        assert a.outputs == (b,)
        assert b.inputs == (a,)

    def test_connect_twice_is_noop(self):
        a, b = AudioNode(TEST_SAMPLERATE), AudioNode(TEST_SAMPLERATE)
        a.connect(b)
        a.connect(b)
        assert b.inputs == (a,)

    def test_inputs_are_mixed(self, sample_stereo_audio):
        first = make_player(sample_stereo_audio)
        second = make_player(sample_stereo_audio)
        sink = Destination(TEST_SAMPLERATE, 2)
        first.connect(sink)
        second.connect(sink)
        first.start()
        second.start()

        block = sink.render(256)
        assert np.allclose(block, 2 * sample_stereo_audio[:256])

    def test_destination_cannot_connect(self):
        sink = Destination(TEST_SAMPLERATE, 2)
        with pytest.raises(EngineError):
            sink.connect(AudioNode(TEST_SAMPLERATE))

    def test_unconnected_destination_renders_silence(self):
        block = Destination(TEST_SAMPLERATE, 2).render(128)
        assert block.shape == (128, 2)
        assert np.all(block == 0)

    def test_dispose_detaches_both_sides(self):
        a, b, c = (AudioNode(TEST_SAMPLERATE) for _ in range(3))
        a.connect(b).connect(c)

        b.dispose()

        assert b.disposed
        assert a.outputs == ()
        assert c.inputs == ()

    def test_dispose_is_idempotent(self):
        node = AudioNode(TEST_SAMPLERATE)
        node.dispose()
        node.dispose()
        assert node.disposed

    def test_connect_disposed_node_raises(self):
        a, b = AudioNode(TEST_SAMPLERATE), AudioNode(TEST_SAMPLERATE)
        b.dispose()
        with pytest.raises(NodeDisposedError):
            a.connect(b)

    def test_disposed_node_renders_silence(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        player.start()
        player.dispose()
        assert np.all(player.pull(64) == 0)


class TestPlayerNode:
    """Tests for PlayerNode."""

    def test_stopped_player_is_silent(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        assert player.state == PlaybackState.STOPPED
        assert np.all(player.pull(128) == 0)

    def test_mono_buffer_is_upmixed(self, sample_mono_audio):
        player = make_player(sample_mono_audio)
        assert player.buffer.shape == (len(sample_mono_audio), 2)
        assert player.duration == pytest.approx(1.0)

    def test_stop_keeps_position(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        player.start()
        player.pull(800)
        player.stop()

        assert player.position == pytest.approx(0.1)
        player.start()
        assert np.allclose(player.pull(10), sample_stereo_audio[800:810])

    def test_start_with_offset(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        player.start(offset=0.5)
        assert np.allclose(player.pull(10), sample_stereo_audio[4000:4010])

    def test_rate_changes_read_speed(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio, playback_rate=2.0)
        player.start()
        player.pull(1000)
        assert player.position == pytest.approx(2000 / TEST_SAMPLERATE)

    def test_invalid_rate_rejected(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        with pytest.raises(ValueError):
            player.playback_rate = 0

    def test_end_rewinds_and_notifies(self, sample_stereo_audio):
        ended = threading.Event()
        player = make_player(sample_stereo_audio, on_ended=ended.set)
        player.start()

        for _ in range(20):
            player.pull(512)

        assert ended.is_set()
        assert player.state == PlaybackState.STOPPED
        assert player.position == 0.0

    def test_empty_buffer_cannot_start(self):
        player = make_player(np.zeros((0, 2), dtype=np.float32))
        with pytest.raises(EngineError):
            player.start()

    def test_parameter_write_after_dispose_raises(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        player.dispose()
        with pytest.raises(NodeDisposedError):
            player.playback_rate = 1.5
        with pytest.raises(NodeDisposedError):
            player.start()


class TestPitchShiftNode:
    """Tests for PitchShiftNode."""

    def test_zero_pitch_passes_through(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        shifter = PitchShiftNode(0, TEST_SAMPLERATE, 2)
        player.connect(shifter)
        player.start()
        assert np.allclose(shifter.pull(256), sample_stereo_audio[:256])

    def test_pitch_is_writable(self):
        shifter = PitchShiftNode(0, TEST_SAMPLERATE, 2)
        shifter.pitch = -5
        assert shifter.pitch == -5.0

    def test_shifted_block_keeps_shape(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        shifter = PitchShiftNode(7, TEST_SAMPLERATE, 2)
        player.connect(shifter)
        player.start()
        assert shifter.pull(512).shape == (512, 2)

    def test_state_carried_between_blocks_and_released(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        shifter = PitchShiftNode(7, TEST_SAMPLERATE, 2)
        player.connect(shifter)
        player.start()

        first = shifter.pull(512)
        second = shifter.pull(512)
        # Output is delayed by the crossfade, so the seam continues the previous block
        assert abs(float(second[0, 0]) - float(first[-1, 0])) < 0.7

        shifter.dispose()
        assert np.all(shifter.pull(512) == 0)


class TestReverbNode:
    """Tests for ReverbNode."""

    def make_reverb(self, decay=1.0, **kwargs):
        return ReverbNode(decay, TEST_SAMPLERATE, 2, pre_delay=0.01, wet=0.35, **kwargs)

    def test_dry_until_generated(self, sample_stereo_audio):
        player = make_player(sample_stereo_audio)
        reverb = self.make_reverb()
        player.connect(reverb)
        player.start()

        assert not reverb.ready
        assert np.allclose(reverb.pull(256), sample_stereo_audio[:256])

    @pytest.mark.asyncio
    async def test_generate_builds_impulse(self):
        reverb = self.make_reverb(decay=0.5)
        assert await reverb.generate()
        assert reverb.ready
        assert len(reverb.impulse) == 80 + 4000

    @pytest.mark.asyncio
    async def test_generated_reverb_adds_tail(self):
        reverb = self.make_reverb(decay=0.5)
        await reverb.generate()

        click = np.zeros((256, 2), dtype=np.float32)
        click[0] = 1.0
        reverb.process(click)
        tail = reverb.process(np.zeros((256, 2), dtype=np.float32))
        assert np.max(np.abs(tail)) > 0

    @pytest.mark.asyncio
    async def test_stale_generation_discarded(self):
        gate = threading.Event()

        def builder(sr, decay, pre_delay, channels):
            if decay == 4.0:
                gate.wait(5)
            return generate_impulse_response(sr, decay, pre_delay, channels)

        reverb = self.make_reverb(impulse_builder=builder)
        reverb.decay = 4.0
        stale = asyncio.create_task(reverb.generate())
        await asyncio.sleep(0)

        reverb.decay = 0.5
        assert await reverb.generate()
        gate.set()

        assert not await stale
        assert len(reverb.impulse) == 80 + 4000

    @pytest.mark.asyncio
    async def test_dispose_during_generation(self):
        reverb = self.make_reverb(decay=0.5)
        task = asyncio.create_task(reverb.generate())
        await asyncio.sleep(0)
        reverb.dispose()

        assert not await task
        assert reverb.impulse is None

    def test_negative_decay_rejected(self):
        reverb = self.make_reverb()
        with pytest.raises(ValueError):
            reverb.decay = -1

    def test_wet_is_clamped_to_unit_range(self):
        reverb = self.make_reverb()
        reverb.wet = 3.0
        assert reverb.wet == 1.0


class TestEqualizerNode:
    """Tests for EqualizerNode."""

    def test_flat_is_bypassed(self, sample_stereo_audio):
        eq = EqualizerNode(0, 0, 0, TEST_SAMPLERATE, 2)
        assert eq.process(sample_stereo_audio) is sample_stereo_audio

    def test_mid_centre_is_geometric_mean(self):
        eq = EqualizerNode(samplerate=TEST_SAMPLERATE)
        assert eq.mid_frequency == pytest.approx(1000.0)

    def test_gain_change_redesigns_in_place(self):
        eq = EqualizerNode(0, 0, 0, TEST_SAMPLERATE, 2)
        before = eq.coefficients
        eq.low = 6
        assert eq.low == 6
        assert eq.coefficients[0] is not before[0]
        assert np.allclose(eq.coefficients[1][0], before[1][0])

    def test_cut_reduces_bass_energy(self):
        t = np.arange(TEST_SAMPLERATE, dtype=np.float32) / TEST_SAMPLERATE
        bass = np.column_stack([0.5 * np.sin(2 * np.pi * 60 * t)] * 2).astype(np.float32)

        eq = EqualizerNode(-30, 0, 0, TEST_SAMPLERATE, 2)
        out = np.concatenate([eq.process(bass[i:i + 512]) for i in range(0, len(bass), 512)])

        steady = slice(TEST_SAMPLERATE // 2, None)
        assert np.max(np.abs(out[steady])) < 0.1

    def test_write_after_dispose_raises(self):
        eq = EqualizerNode(samplerate=TEST_SAMPLERATE)
        eq.dispose()
        with pytest.raises(NodeDisposedError):
            eq.high = 3
