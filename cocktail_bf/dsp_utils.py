from __future__ import annotations

import numpy as np
from scipy import signal

from cocktail_bf.config import POWER_EPS


def channel_power(x: np.ndarray) -> float:
    """Mean over channels of the per-channel variance (samples x channels).

    Uses the N-1 normalisation of the recorded-session analysis.
    """
    x = np.asarray(x, dtype=float)
    if x.ndim == 1:
        x = x[:, None]
    if x.shape[0] < 2:
        return 0.0
    return float(np.mean(np.std(x, axis=0, ddof=1) ** 2))


def snr_db(signal_power: float, noise_power: float) -> float:
    """Power ratio in dB with an epsilon guard on the denominator."""
    with np.errstate(divide='ignore'):
        return float(10.0 * np.log10(signal_power / (noise_power + POWER_EPS)))


def target_gain(signal_power: float, noise_power: float, desired_snr_db: float) -> float:
    """Linear amplitude factor that brings the measured SNR to desired_snr_db."""
    db_gain = float(desired_snr_db) - snr_db(signal_power, noise_power)
    return float(10.0 ** (db_gain / 20.0))


def design_highpass(cutoff_hz: float, sample_rate: float, order: int = 4) -> np.ndarray:
    """Butterworth high-pass as second-order sections."""
    nyquist = sample_rate / 2.0
    return signal.butter(int(order), float(cutoff_hz) / nyquist, btype='high', output='sos')


def window_bounds(window_idx: int, window_s: float, sample_rate: float) -> tuple[int, int]:
    """Sample range [start, stop) of window window_idx.

    Boundaries follow cumulative time so non-integer window lengths do not drift.
    """
    start = int(round(window_idx * window_s * sample_rate))
    stop = int(round((window_idx + 1) * window_s * sample_rate))
    return start, stop


def peak_normalize(x: np.ndarray) -> np.ndarray:
    """Scale to a peak magnitude of 1 (silence is returned unchanged)."""
    x = np.asarray(x, dtype=float)
    peak = float(np.max(np.abs(x))) if x.size else 0.0
    if peak > 0:
        return x / peak
    return x
