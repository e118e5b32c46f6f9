"""
Synthetic recording sessions with known geometry.

A point source radiates a speech-like signal to every microphone with its
propagation delay and 1/r spreading; the "party" recording is a few babble
talkers at other positions plus an incoherent per-channel floor. The result
is written in the same file layout as the recorded sessions so the full
pipeline can be exercised without recorded data.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence
import numpy as np

from cocktail_bf.audio_io import ArraySegmentSource, write_audio
from cocktail_bf.config import (
    SPEED_OF_SOUND_MPS,
    TARGET_WAV_PATTERN,
    NOISE_WAV_PATTERN,
    SOURCE_TRACK_PATTERN,
    MIC_POSITIONS_FILE,
    PARAMETER_FILE,
)
from cocktail_bf.geometry import SourceTrack
from cocktail_bf.helpers import mic_distances

# Corners of a 3 m x 3 m square, 1.5 m high
DEFAULT_MIC_POSITIONS = np.array([
    [0.5, 0.5, 1.5],
    [3.5, 0.5, 1.5],
    [3.5, 3.5, 1.5],
    [0.5, 3.5, 1.5],
], dtype=float)
DEFAULT_SOURCE_POSITION = np.array([1.6, 1.4, 1.6], dtype=float)


def fractional_shift(x: np.ndarray, shift_samples: float) -> np.ndarray:
    """Delay a 1-D signal by fractional samples; keeps length via zero padding."""
    n = len(x)
    idx = np.arange(n, dtype=np.float64) - float(shift_samples)
    i0 = np.floor(idx).astype(np.int64)
    w1 = idx - i0
    w0 = 1.0 - w1
    z = np.zeros(n, dtype=np.float64)
    for i, w in ((i0, w0), (i0 + 1, w1)):
        valid = (i >= 0) & (i < n)
        if np.any(valid):
            z[valid] += w[valid] * x[i[valid]]
    return z


def speech_like(num_samples: int, sample_rate: int, rng: np.random.Generator, f0: float = 140.0) -> np.ndarray:
    """Voiced harmonic bursts at a syllable rate, with jittered pitch and a little aspiration noise."""
    t = np.arange(num_samples) / float(sample_rate)
    pitch = f0 * (1.0 + 0.08 * np.sin(2 * np.pi * 0.7 * t + rng.uniform(0, 2 * np.pi)))
    phase = 2 * np.pi * np.cumsum(pitch) / float(sample_rate)
    harmonics = np.zeros(num_samples)
    for h in range(1, int((sample_rate / 2.0 * 0.8) // f0)):
        harmonics += np.sin(h * phase + rng.uniform(0, 2 * np.pi)) / h
    syllables = 0.5 * (1.0 - np.cos(2 * np.pi * 4.0 * t + rng.uniform(0, 2 * np.pi)))
    envelope = syllables ** 2
    aspiration = 0.05 * rng.standard_normal(num_samples)
    y = envelope * harmonics + aspiration
    return y / (np.max(np.abs(y)) + 1e-12)


def propagate(
    source_signal: np.ndarray,
    source_position: np.ndarray,
    mic_positions: np.ndarray,
    sample_rate: int,
    speed_of_sound_mps: float = SPEED_OF_SOUND_MPS,
) -> np.ndarray:
    """Free-field propagation to each microphone; returns (samples, num_mics)."""
    d = mic_distances(source_position, mic_positions)
    out = np.zeros((len(source_signal), len(d)), dtype=float)
    for ch, dist in enumerate(d):
        shift = dist / speed_of_sound_mps * sample_rate
        out[:, ch] = fractional_shift(source_signal, shift) / max(dist, 0.1)
    return out


@dataclass
class SyntheticSession:
    sample_rate: int
    target: np.ndarray             # (samples, mics)
    noise: np.ndarray              # (samples, mics)
    mic_positions: np.ndarray      # (mics, 3)
    track_table: np.ndarray        # (rows, 4): t, x, y, z with NaN when inactive
    speed_of_sound_mps: float

    @property
    def track(self) -> SourceTrack:
        return SourceTrack.from_table(self.track_table)

    def target_source(self) -> ArraySegmentSource:
        return ArraySegmentSource(self.target, self.sample_rate, name="target")

    def noise_source(self) -> ArraySegmentSource:
        return ArraySegmentSource(self.noise, self.sample_rate, name="noise")

    def write(self, out_dir: str, target_index: int = 1) -> Path:
        """Write soi/party WAVs, position track, mic positions and info file."""
        root = Path(out_dir)
        root.mkdir(parents=True, exist_ok=True)
        write_audio(str(root / TARGET_WAV_PATTERN.format(n=target_index)), self.target, self.sample_rate)
        write_audio(str(root / NOISE_WAV_PATTERN.format(n=target_index)), self.noise, self.sample_rate)
        np.savetxt(str(root / SOURCE_TRACK_PATTERN.format(n=target_index)), self.track_table, fmt="%.6f")
        # Session layout: one microphone per column, rows x, y, z
        np.savetxt(str(root / MIC_POSITIONS_FILE), self.mic_positions.T, fmt="%.6f")
        with open(root / PARAMETER_FILE, "w", encoding="utf-8") as f:
            f.write("Synthetic cocktail session\n")
            f.write(f"fs = {self.sample_rate}\n")
            f.write(f"c = {self.speed_of_sound_mps:.2f}\n")
        return root


def make_track_table(
    duration_s: float,
    source_position: np.ndarray,
    interval_s: float = 0.1,
    inactive_before_s: float = 0.0,
    inactive_after_s: Optional[float] = None,
) -> np.ndarray:
    """Stationary source track sampled every interval_s, NaN outside the active span."""
    times = np.arange(0.0, duration_s + 1e-9, interval_s)
    table = np.zeros((len(times), 4), dtype=float)
    table[:, 0] = times
    table[:, 1:4] = np.asarray(source_position, dtype=float)[None, :]
    inactive = times < inactive_before_s
    if inactive_after_s is not None:
        inactive |= times >= inactive_after_s
    table[inactive, 1:4] = np.nan
    return table


def make_session(
    duration_s: float = 2.0,
    sample_rate: int = 16000,
    mic_positions: Optional[np.ndarray] = None,
    source_position: Optional[np.ndarray] = None,
    babble_positions: Sequence[Sequence[float]] = (),
    noise_floor: float = 0.02,
    track_interval_s: float = 0.1,
    inactive_before_s: float = 0.0,
    inactive_after_s: Optional[float] = None,
    speed_of_sound_mps: float = SPEED_OF_SOUND_MPS,
    seed: int = 0,
) -> SyntheticSession:
    rng = np.random.default_rng(seed)
    mics = DEFAULT_MIC_POSITIONS if mic_positions is None else np.asarray(mic_positions, dtype=float)
    src = DEFAULT_SOURCE_POSITION if source_position is None else np.asarray(source_position, dtype=float)
    n = int(round(duration_s * sample_rate))

    target = propagate(speech_like(n, sample_rate, rng), src, mics, sample_rate, speed_of_sound_mps)
    noise = noise_floor * rng.standard_normal((n, mics.shape[0]))
    for pos in babble_positions:
        talker = speech_like(n, sample_rate, rng, f0=rng.uniform(100.0, 220.0))
        noise += 0.5 * propagate(talker, np.asarray(pos, dtype=float), mics, sample_rate, speed_of_sound_mps)

    return SyntheticSession(
        sample_rate=int(sample_rate),
        target=target,
        noise=noise,
        mic_positions=mics.copy(),
        track_table=make_track_table(duration_s, src, track_interval_s, inactive_before_s, inactive_after_s),
        speed_of_sound_mps=float(speed_of_sound_mps),
    )
