"""
Signal helpers the effect nodes delegate to.
All functions are pure (no side effects) and operate on numpy arrays.
Filtering and convolution come from scipy, pitch shifting from librosa.
"""
from __future__ import annotations
import logging
import math
from typing import Optional
import numpy as np
from scipy.signal import lfilter, oaconvolve

from .types import AudioArray, StereoArray
from .config import AUDIO_CONFIG, PITCH_SHIFT_CONFIG, REVERB_CONFIG

logger = logging.getLogger("Audition")

# (b, a) pair, both normalized by a0
Coefficients = tuple[np.ndarray, np.ndarray]


def to_stereo(data: AudioArray) -> StereoArray:
    """
    Convert audio to a (samples, 2) float32 array.

    Args:
        data: Mono (samples,) or multichannel (samples, channels) audio

    Returns:
        Stereo audio; mono is duplicated, extra channels are dropped
    """
    data = np.asarray(data, dtype=np.float32)
    if data.ndim == 1:
        return np.column_stack((data, data))
    if data.shape[1] == 1:
        return np.repeat(data, 2, axis=1)
    return np.ascontiguousarray(data[:, :2])


# =============================================================================
# BIQUADS (RBJ cookbook)
# =============================================================================

def low_shelf_coefficients(
    sr: int,
    cutoff: float,
    gain_db: float,
    Q: float = 0.707
) -> Coefficients:
    """
    Low-shelf biquad coefficients.

    Args:
        sr: Sample rate
        cutoff: Shelf frequency in Hz
        gain_db: Gain in dB (positive = boost, negative = cut)
        Q: Q factor for shelf shape

    Returns:
        Normalized (b, a) coefficients
    """
    A = 10 ** (gain_db / 40)
    omega = 2 * math.pi * cutoff / sr
    sn, cs = math.sin(omega), math.cos(omega)
    alpha = sn / (2 * Q)

    b0 = A * ((A + 1) - (A - 1) * cs + 2 * math.sqrt(A) * alpha)
    b1 = 2 * A * ((A - 1) - (A + 1) * cs)
    b2 = A * ((A + 1) - (A - 1) * cs - 2 * math.sqrt(A) * alpha)
    a0 = (A + 1) + (A - 1) * cs + 2 * math.sqrt(A) * alpha
    a1 = -2 * ((A - 1) + (A + 1) * cs)
    a2 = (A + 1) + (A - 1) * cs - 2 * math.sqrt(A) * alpha

    return np.array([b0, b1, b2]) / a0, np.array([a0, a1, a2]) / a0


def high_shelf_coefficients(
    sr: int,
    cutoff: float,
    gain_db: float,
    Q: float = 0.707
) -> Coefficients:
    """
    High-shelf biquad coefficients.

    Args:
        sr: Sample rate
        cutoff: Shelf frequency in Hz
        gain_db: Gain in dB (positive = boost, negative = cut)
        Q: Q factor for shelf shape

    Returns:
        Normalized (b, a) coefficients
    """
    A = 10 ** (gain_db / 40)
    omega = 2 * math.pi * cutoff / sr
    sn, cs = math.sin(omega), math.cos(omega)
    alpha = sn / (2 * Q)

    b0 = A * ((A + 1) + (A - 1) * cs + 2 * math.sqrt(A) * alpha)
    b1 = -2 * A * ((A - 1) + (A + 1) * cs)
    b2 = A * ((A + 1) + (A - 1) * cs - 2 * math.sqrt(A) * alpha)
    a0 = (A + 1) - (A - 1) * cs + 2 * math.sqrt(A) * alpha
    a1 = 2 * ((A - 1) - (A + 1) * cs)
    a2 = (A + 1) - (A - 1) * cs - 2 * math.sqrt(A) * alpha

    return np.array([b0, b1, b2]) / a0, np.array([a0, a1, a2]) / a0


def peaking_coefficients(
    sr: int,
    frequency: float,
    gain_db: float,
    Q: float = 1.0
) -> Coefficients:
    """
    Peaking EQ biquad coefficients.

    Args:
        sr: Sample rate
        frequency: Center frequency in Hz
        gain_db: Gain in dB (positive = boost, negative = cut)
        Q: Q factor (bandwidth control)

    Returns:
        Normalized (b, a) coefficients
    """
    A = 10 ** (gain_db / 40.0)
    omega = 2 * math.pi * frequency / sr
    sn = math.sin(omega)
    cs = math.cos(omega)
    alpha = sn / (2 * Q)

    b0 = 1 + alpha * A
    b1 = -2 * cs
    b2 = 1 - alpha * A
    a0 = 1 + alpha / A
    a1 = -2 * cs
    a2 = 1 - alpha / A

    return np.array([b0, b1, b2]) / a0, np.array([a0, a1, a2]) / a0


def apply_biquad(
    data: AudioArray,
    coefficients: Coefficients,
    zi: Optional[np.ndarray] = None
) -> tuple[AudioArray, np.ndarray]:
    """
    Filter one block, carrying the filter state across calls.

    Args:
        data: Audio block, (samples, channels)
        coefficients: (b, a) pair
        zi: State returned by the previous call (None = start from rest)

    Returns:
        Filtered block and the state to pass to the next call
    """
    b, a = coefficients
    if zi is None:
        zi = np.zeros((2,) + data.shape[1:], dtype=np.float64)
    out, zf = lfilter(b, a, data, axis=0, zi=zi)
    return out.astype(np.float32), zf


# =============================================================================
# REVERB
# =============================================================================

def generate_impulse_response(
    sr: int,
    decay: float,
    pre_delay: float = REVERB_CONFIG.pre_delay,
    channels: int = AUDIO_CONFIG.playback_channels,
    silence_db: float = REVERB_CONFIG.silence_db,
    seed: Optional[int] = REVERB_CONFIG.seed
) -> AudioArray:
    """
    Build a decaying-noise impulse response for convolution reverb.

    The envelope falls exponentially and reaches `silence_db` after
    `decay` seconds. Each channel is normalized to unit energy.

    Args:
        sr: Sample rate
        decay: Tail length in seconds (0 = dry, a unit impulse)
        pre_delay: Silence before the tail starts, in seconds
        channels: Number of impulse channels
        silence_db: Tail level at `decay` seconds
        seed: Noise seed (None = random)

    Returns:
        Impulse response, (samples, channels)
    """
    if decay <= 0:
        impulse = np.zeros((1, channels), dtype=np.float32)
        impulse[0] = 1.0
        return impulse

    pre_samples = int(sr * max(pre_delay, 0.0))
    tail_samples = max(1, int(sr * decay))

    t = np.arange(tail_samples, dtype=np.float64) / sr
    envelope = 10 ** ((silence_db / 20.0) * (t / decay))

    rng = np.random.default_rng(seed)
    noise = rng.uniform(-1.0, 1.0, size=(tail_samples, channels))

    impulse = np.zeros((pre_samples + tail_samples, channels), dtype=np.float64)
    impulse[pre_samples:] = noise * envelope[:, np.newaxis]

    energy = np.sqrt(np.sum(impulse ** 2, axis=0))
    energy[energy < 1e-12] = 1.0  # Avoid division by zero
    return (impulse / energy).astype(np.float32)


def convolve_block(
    data: AudioArray,
    impulse: AudioArray,
    tail: Optional[np.ndarray] = None
) -> tuple[AudioArray, np.ndarray]:
    """
    Overlap-add convolution of one block with an impulse response.

    Args:
        data: Audio block, (samples, channels)
        impulse: Impulse response, (taps, channels)
        tail: Overflow returned by the previous call

    Returns:
        Convolved block (same length as `data`) and the new overflow
    """
    frames = len(data)
    full = oaconvolve(data, impulse, axes=0)

    if tail is not None and len(tail):
        overlap = min(len(tail), len(full))
        full[:overlap] += tail[:overlap]
        if len(tail) > len(full):
            # Impulse got shorter since the last block; keep the old overflow
            full = np.concatenate((full, tail[len(full):]), axis=0)

    return full[:frames].astype(np.float32), full[frames:]


# =============================================================================
# PITCH / RATE
# =============================================================================

def pitch_shift_block(
    data: AudioArray,
    sr: int,
    semitones: float,
    history: Optional[np.ndarray] = None,
    pending: Optional[np.ndarray] = None,
    n_fft: int = PITCH_SHIFT_CONFIG.n_fft,
    overlap: int = PITCH_SHIFT_CONFIG.overlap
) -> tuple[AudioArray, np.ndarray, Optional[np.ndarray]]:
    """
    Pitch shift one block of a stream without clicks at block boundaries.

    Each block is shifted together with the preceding `n_fft` input samples,
    so the STFT sees continuous context. Output is delayed by `overlap`
    samples: the head of each block is crossfaded with the tail held back
    from the previous call.

    Args:
        data: Audio block, (samples, channels)
        sr: Sample rate
        semitones: Pitch shift in semitones
        history: Input context returned by the previous call
        pending: Held-back output returned by the previous call
        n_fft: STFT window, also the context length
        overlap: Crossfade length in samples

    Returns:
        Shifted block (same shape as `data`), the new history and the new
        held-back tail (None while bypassed)
    """
    frames = len(data)
    if history is None:
        history = np.zeros((n_fft,) + data.shape[1:], dtype=np.float32)
    context = np.concatenate((history, data), axis=0)
    new_history = context[-n_fft:]

    if abs(semitones) < PITCH_SHIFT_CONFIG.bypass_threshold or frames == 0:
        return data, new_history, None

    import librosa

    shifted = librosa.effects.pitch_shift(
        np.ascontiguousarray(context.T), sr=sr, n_steps=semitones, n_fft=n_fft
    ).T.astype(np.float32)

    hold = min(overlap, frames)
    start = n_fft - hold
    out = np.array(shifted[start:start + frames])
    if pending is not None and len(pending) == hold and hold > 0:
        fade = np.linspace(0.0, 1.0, hold, dtype=np.float32)
        if out.ndim > 1:
            fade = fade[:, np.newaxis]
        out[:hold] = pending * (1.0 - fade) + out[:hold] * fade

    return out, new_history, np.array(shifted[start + frames:])


def read_resampled(
    buffer: AudioArray,
    position: float,
    frames: int,
    rate: float = 1.0
) -> tuple[AudioArray, float, bool]:
    """
    Read `frames` output samples starting at a fractional buffer position.
    Changes speed and pitch together, like a tape machine.

    Args:
        buffer: Source audio, (samples, channels)
        position: Read position in source samples
        frames: Number of output samples to produce
        rate: Speed factor (>1 = faster/higher, <1 = slower/lower)

    Returns:
        The block (zero-padded past the end), the next read position,
        and whether the end of the buffer was reached
    """
    total = len(buffer)
    out = np.zeros((frames,) + buffer.shape[1:], dtype=np.float32)
    if total == 0:
        return out, position, True

    positions = position + np.arange(frames, dtype=np.float64) * rate
    valid = int(np.searchsorted(positions, total - 1, side='right'))

    if valid > 0:
        idx = np.floor(positions[:valid]).astype(np.int64)
        frac = positions[:valid] - idx
        nxt = np.minimum(idx + 1, total - 1)
        if buffer.ndim > 1:
            frac = frac[:, np.newaxis]
        out[:valid] = buffer[idx] * (1.0 - frac) + buffer[nxt] * frac

    next_position = position + frames * rate
    return out, next_position, next_position >= total - 1
