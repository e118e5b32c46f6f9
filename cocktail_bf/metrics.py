"""
Objective assessment of beamforming benefit.

SNR compares mean per-channel power of the target-only and noise-only
streams. The intelligibility index follows the octave-band procedure of
ANSI S3.5-1997: per band, the speech-to-noise ratio is mapped to an
audibility in [0, 1] and weighted by the band importance function. Band
levels come from the recordings themselves, so absolute hearing thresholds
and level distortion are not modelled.
"""
from __future__ import annotations

import numpy as np
from scipy import signal

from cocktail_bf.config import POWER_EPS
from cocktail_bf.dsp_utils import channel_power, snr_db
from cocktail_bf.messages import IntelligibilityTrace, Report, RunResult

# ANSI S3.5 octave-band centre frequencies and importance (average speech)
OCTAVE_BANDS_HZ = (250.0, 500.0, 1000.0, 2000.0, 4000.0, 8000.0)
OCTAVE_BAND_IMPORTANCE = (0.0617, 0.1671, 0.2373, 0.2648, 0.2142, 0.0549)
BAND_FILTER_ORDER = 3
# Usable upper edge as a fraction of Nyquist
NYQUIST_MARGIN = 0.95


def octave_band_sos(center_hz: float, sample_rate: float):
    """Band-pass for one octave band, or None if the band lies above the usable range."""
    nyquist = sample_rate / 2.0
    lo = center_hz / np.sqrt(2.0)
    hi = min(center_hz * np.sqrt(2.0), NYQUIST_MARGIN * nyquist)
    if lo >= hi:
        return None
    return signal.butter(BAND_FILTER_ORDER, [lo / nyquist, hi / nyquist], btype='band', output='sos')


def band_audibility(snr_band_db: np.ndarray) -> np.ndarray:
    return np.clip((np.asarray(snr_band_db, dtype=float) + 15.0) / 30.0, 0.0, 1.0)


def _block_power(x: np.ndarray, n_blocks: int, block: int) -> np.ndarray:
    return np.mean(x[: n_blocks * block].reshape(n_blocks, block) ** 2, axis=1)


def intelligibility_index(
    speech: np.ndarray,
    noise: np.ndarray,
    sample_rate: float,
    window_s: float,
) -> IntelligibilityTrace:
    """Speech intelligibility index per `window_s` block of a speech/noise pair.

    Bands above the usable bandwidth contribute nothing (their importance is not
    redistributed), so the index of narrow-band recordings stays below 1.
    """
    speech = np.asarray(speech, dtype=float).reshape(-1)
    noise = np.asarray(noise, dtype=float).reshape(-1)
    n = min(speech.size, noise.size)
    block = int(round(window_s * sample_rate))
    if block < 1:
        raise ValueError(f"Intelligibility window {window_s}s is shorter than one sample")
    n_blocks = n // block
    if n_blocks == 0:
        return IntelligibilityTrace(values=np.zeros(0), times_s=np.zeros(0))

    sii = np.zeros(n_blocks, dtype=float)
    for center, importance in zip(OCTAVE_BANDS_HZ, OCTAVE_BAND_IMPORTANCE):
        sos = octave_band_sos(center, sample_rate)
        if sos is None:
            continue
        ps = _block_power(signal.sosfilt(sos, speech[:n]), n_blocks, block)
        pn = _block_power(signal.sosfilt(sos, noise[:n]), n_blocks, block)
        with np.errstate(divide='ignore'):
            snr_band = 10.0 * np.log10(ps / (pn + POWER_EPS))
        sii += importance * band_audibility(snr_band)
    times = (np.arange(n_blocks) + 0.5) * block / float(sample_rate)
    return IntelligibilityTrace(values=sii, times_s=times)


def summarize(result: RunResult, intelligibility_window_s: float) -> Report:
    """SNR and intelligibility of the closest microphone vs the beamformed output."""
    fs = result.sample_rate
    snr_close = snr_db(channel_power(result.closest["target"]), channel_power(result.closest["noise"]))
    snr_beam = snr_db(channel_power(result.beamformed["target"]), channel_power(result.beamformed["noise"]))
    return Report(
        snr_closest_db=snr_close,
        snr_beamformed_db=snr_beam,
        sii_closest=intelligibility_index(result.closest["target"], result.closest["noise"], fs, intelligibility_window_s),
        sii_beamformed=intelligibility_index(
            result.beamformed["target"], result.beamformed["noise"], fs, intelligibility_window_s
        ),
        target_gain=result.target_gain,
        windows_processed=result.windows_processed,
        windows_skipped=result.windows_skipped,
    )
