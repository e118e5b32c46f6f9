from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Dict, List
import numpy as np

from cocktail_bf.config import (
    TARGET_INDEX,
    DISTANCE_WEIGHT_EXPONENT,
    DESIRED_SNR_DB,
    HIGHPASS_CUTOFF_HZ,
    HIGHPASS_ORDER,
    WINDOW_DURATION_S,
    INTELLIGIBILITY_WINDOW_S,
)

# Order in which the three parallel conditions are processed and reported
STREAMS = ("mixture", "noise", "target")


@dataclass
class BeamformConfig:
    target_index: int = TARGET_INDEX
    distance_weight_exponent: float = DISTANCE_WEIGHT_EXPONENT
    desired_snr_db: float = DESIRED_SNR_DB
    highpass_cutoff_hz: float = HIGHPASS_CUTOFF_HZ
    window_duration_s: float = WINDOW_DURATION_S
    highpass_order: int = HIGHPASS_ORDER
    intelligibility_window_s: float = INTELLIGIBILITY_WINDOW_S

    def validate(self, sample_rate: Optional[float] = None) -> None:
        if self.window_duration_s <= 0:
            raise ValueError(f"window_duration_s must be positive, got {self.window_duration_s}")
        if self.intelligibility_window_s <= 0:
            raise ValueError(f"intelligibility_window_s must be positive, got {self.intelligibility_window_s}")
        if self.highpass_order < 1:
            raise ValueError(f"highpass_order must be >= 1, got {self.highpass_order}")
        if self.highpass_cutoff_hz <= 0:
            raise ValueError(f"highpass_cutoff_hz must be positive, got {self.highpass_cutoff_hz}")
        if sample_rate is not None:
            if self.highpass_cutoff_hz >= sample_rate / 2.0:
                raise ValueError(
                    f"highpass_cutoff_hz={self.highpass_cutoff_hz} must be below Nyquist ({sample_rate / 2.0} Hz)"
                )
            if int(round(self.window_duration_s * sample_rate)) < 1:
                raise ValueError(f"window_duration_s={self.window_duration_s} is shorter than one sample")


@dataclass
class AudioWindow:
    stream: str           # one of STREAMS
    start: int            # first sample index in the recording
    samples: np.ndarray   # shape (length, channels)

    @property
    def length(self) -> int:
        return int(self.samples.shape[0])


@dataclass
class FilterState:
    """Continuation state of the high-pass filter for one stream.

    zi has shape (channels, sections, 2), one scipy sosfilt state per channel.
    """
    zi: np.ndarray

    @classmethod
    def rest(cls, num_sections: int, channels: int) -> "FilterState":
        return cls(zi=np.zeros((channels, num_sections, 2), dtype=float))


@dataclass
class BeamformerContext:
    window_idx: int
    location: np.ndarray            # (3,) resolved source position, metres
    weights: np.ndarray             # (channels,) in (0, 1] for wp >= 0
    closest_channel: int
    delays_s: np.ndarray            # (channels,) propagation delay source -> mic
    carried: bool = False           # location carried forward from an earlier window


@dataclass
class RunResult:
    sample_rate: int
    target_gain: float
    beamformed: Dict[str, np.ndarray]   # stream -> (samples,)
    closest: Dict[str, np.ndarray]      # stream -> (samples,)
    windows_processed: int = 0
    windows_skipped: int = 0
    contexts: List[Optional[BeamformerContext]] = field(default_factory=list)  # None for skipped windows

    @property
    def num_samples(self) -> int:
        return int(len(self.beamformed["mixture"]))


@dataclass
class IntelligibilityTrace:
    values: np.ndarray    # one index per assessment window
    times_s: np.ndarray   # window centres

    @property
    def mean(self) -> float:
        return float(np.mean(self.values)) if self.values.size else float("nan")

    @property
    def std(self) -> float:
        # Sample standard deviation (ddof=1)
        return float(np.std(self.values, ddof=1)) if self.values.size > 1 else 0.0


def _finite_or_none(value: float) -> Optional[float]:
    value = float(value)
    return value if np.isfinite(value) else None


@dataclass
class Report:
    snr_closest_db: float
    snr_beamformed_db: float
    sii_closest: IntelligibilityTrace
    sii_beamformed: IntelligibilityTrace
    target_gain: float
    windows_processed: int
    windows_skipped: int

    @property
    def snr_improvement_db(self) -> float:
        return self.snr_beamformed_db - self.snr_closest_db

    @property
    def sii_improvement(self) -> float:
        return self.sii_beamformed.mean - self.sii_closest.mean

    def to_dict(self) -> dict:
        """Plain JSON-safe summary; non-finite metrics (e.g. all windows skipped) become None."""
        return {
            "snr_closest_db": _finite_or_none(self.snr_closest_db),
            "snr_beamformed_db": _finite_or_none(self.snr_beamformed_db),
            "snr_improvement_db": _finite_or_none(self.snr_improvement_db),
            "sii_closest_mean": _finite_or_none(self.sii_closest.mean),
            "sii_closest_std": _finite_or_none(self.sii_closest.std),
            "sii_beamformed_mean": _finite_or_none(self.sii_beamformed.mean),
            "sii_beamformed_std": _finite_or_none(self.sii_beamformed.std),
            "sii_improvement": _finite_or_none(self.sii_improvement),
            "target_gain": _finite_or_none(self.target_gain),
            "windows_processed": self.windows_processed,
            "windows_skipped": self.windows_skipped,
        }
