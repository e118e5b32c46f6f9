from __future__ import annotations

from typing import Tuple
import numpy as np
from scipy import signal

from cocktail_bf.dsp_utils import design_highpass
from cocktail_bf.messages import FilterState


class ContinuityFilter:
    """Causal Butterworth high-pass applied window by window.

    The returned state must be passed back in with the next window of the
    same stream; filtering a recording in consecutive windows then matches
    filtering it in one pass.
    """
    def __init__(self, cutoff_hz: float, sample_rate: float, order: int = 4):
        self.cutoff_hz = float(cutoff_hz)
        self.sample_rate = float(sample_rate)
        self.order = int(order)
        self.sos = design_highpass(self.cutoff_hz, self.sample_rate, self.order)

    @property
    def num_sections(self) -> int:
        return int(self.sos.shape[0])

    def initial_state(self, channels: int) -> FilterState:
        return FilterState.rest(self.num_sections, channels)

    def filter(self, window: np.ndarray, state: FilterState) -> Tuple[np.ndarray, FilterState]:
        """Filter a (samples, channels) block; returns (filtered, new_state)."""
        x = np.asarray(window, dtype=float)
        if x.ndim == 1:
            x = x[:, None]
        channels = x.shape[1]
        if state.zi.shape != (channels, self.num_sections, 2):
            raise ValueError(
                f"Filter state shape {state.zi.shape} does not match {channels} channels x {self.num_sections} sections"
            )
        out = np.empty_like(x)
        zi_next = np.empty_like(state.zi)
        for ch in range(channels):
            out[:, ch], zi_next[ch] = signal.sosfilt(self.sos, x[:, ch], zi=state.zi[ch])
        return out, FilterState(zi=zi_next)

    def filter_full(self, x: np.ndarray) -> np.ndarray:
        """One-pass filtering from rest, along the sample axis."""
        return signal.sosfilt(self.sos, np.asarray(x, dtype=float), axis=0)
