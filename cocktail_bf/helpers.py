import numpy as np


def mic_distances(source_position: np.ndarray, mic_positions: np.ndarray) -> np.ndarray:
    """Euclidean distance (m) from a 3D source position to each microphone (num_mics, 3)."""
    diff = np.asarray(mic_positions, dtype=float) - np.asarray(source_position, dtype=float)[None, :]
    return np.sqrt(np.sum(diff ** 2, axis=1))


def propagation_delays(
    source_position: np.ndarray,
    mic_positions: np.ndarray,
    speed_of_sound_mps: float
) -> np.ndarray:
    """Travel time (s) from source to each microphone."""
    return mic_distances(source_position, mic_positions) / float(speed_of_sound_mps)


def alignment_shifts_samples(delays_s: np.ndarray, sampling_rate_hz: float) -> np.ndarray:
    """
    Delay (in samples, possibly fractional) to apply to each channel so all
    channels line up with the channel farthest from the source.
    Every shift is >= 0; the farthest channel gets 0.
    """
    delays_s = np.asarray(delays_s, dtype=float)
    return (float(np.max(delays_s)) - delays_s) * float(sampling_rate_hz)
