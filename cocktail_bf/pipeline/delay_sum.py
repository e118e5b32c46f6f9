from __future__ import annotations

from typing import Optional
import numpy as np

from cocktail_bf.helpers import propagation_delays, alignment_shifts_samples


def _previous_block(previous: Optional[np.ndarray], length: int, channels: int) -> np.ndarray:
    """Last `length` rows of the previous window, zero-filled where it is missing or short."""
    block = np.zeros((length, channels), dtype=float)
    if previous is None:
        return block
    prev = np.asarray(previous, dtype=float)
    if prev.ndim == 1:
        prev = prev[:, None]
    if prev.shape[1] != channels:
        raise ValueError(f"Previous window has {prev.shape[1]} channels, current has {channels}")
    take = min(length, prev.shape[0])
    if take > 0:
        block[length - take:, :] = prev[prev.shape[0] - take:, :]
    return block


def delay_and_sum(
    current: np.ndarray,
    previous: Optional[np.ndarray],
    shifts_samples: np.ndarray,
) -> np.ndarray:
    """
    Delay each channel of `current` by its (fractional) shift and sum across channels.
    Samples needed from before the window start come from `previous`, the same
    stream's preceding window. Fractional shifts use linear interpolation.
    Returns a (samples,) array; shifts are clamped to [0, window length].
    """
    cur = np.asarray(current, dtype=float)
    if cur.ndim == 1:
        cur = cur[:, None]
    n, channels = cur.shape
    if n == 0:
        return np.zeros(0, dtype=float)
    shifts = np.clip(np.asarray(shifts_samples, dtype=float).reshape(-1), 0.0, float(n))
    if shifts.shape[0] != channels:
        raise ValueError(f"Got {shifts.shape[0]} shifts for {channels} channels")

    buf = np.vstack([_previous_block(previous, n, channels), cur])  # (2n, channels)
    # Read position of output sample i for each channel: n + i - shift
    pos = (np.arange(n, dtype=float) + n)[:, None] - shifts[None, :]
    i0 = np.floor(pos).astype(np.int64)
    frac = pos - i0
    i1 = np.minimum(i0 + 1, 2 * n - 1)
    x0 = np.take_along_axis(buf, i0, axis=0)
    x1 = np.take_along_axis(buf, i1, axis=0)
    aligned = (1.0 - frac) * x0 + frac * x1
    return np.sum(aligned, axis=1)


class DelaySumBeamformer:
    """Fixed-geometry delay-and-sum beamformer steered at a point source."""

    def __init__(self, mic_positions: np.ndarray, sample_rate: float, speed_of_sound_mps: float):
        self.mic_positions = np.asarray(mic_positions, dtype=float)
        self.sample_rate = float(sample_rate)
        self.speed_of_sound_mps = float(speed_of_sound_mps)

    @property
    def num_channels(self) -> int:
        return int(self.mic_positions.shape[0])

    def delays(self, source_position: np.ndarray) -> np.ndarray:
        return propagation_delays(source_position, self.mic_positions, self.speed_of_sound_mps)

    def shifts(self, source_position: np.ndarray) -> np.ndarray:
        return alignment_shifts_samples(self.delays(source_position), self.sample_rate)

    def beamform(
        self,
        current_weighted: np.ndarray,
        previous_weighted: Optional[np.ndarray],
        source_position: np.ndarray,
        weights: np.ndarray,
    ) -> np.ndarray:
        """Align, sum and normalise one weighted window.

        Dividing by the weight sum undoes the arbitrary scale of the weights,
        so equal weights give the mean of the aligned channels.
        """
        weights = np.asarray(weights, dtype=float)
        if current_weighted.shape[1] != self.num_channels:
            raise ValueError(
                f"Window has {current_weighted.shape[1]} channels but array has {self.num_channels} microphones"
            )
        summed = delay_and_sum(current_weighted, previous_weighted, self.shifts(source_position))
        return summed / float(np.sum(weights))
