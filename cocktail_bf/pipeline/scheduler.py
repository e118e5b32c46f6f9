from __future__ import annotations

import time
from typing import Dict, List, Optional
import numpy as np

from cocktail_bf.config import PROGRESS_EVERY_WINDOWS
from cocktail_bf.dsp_utils import target_gain, window_bounds
from cocktail_bf.errors import BeamformError, ChannelCountMismatch, SampleRateMismatch, ShortRead
from cocktail_bf.geometry import SourceTrack
from cocktail_bf.helpers import mic_distances
from cocktail_bf.messages import (
    STREAMS,
    AudioWindow,
    BeamformConfig,
    BeamformerContext,
    FilterState,
    RunResult,
)
from cocktail_bf.pipeline.continuity_filter import ContinuityFilter
from cocktail_bf.pipeline.delay_sum import DelaySumBeamformer
from cocktail_bf.pipeline.weighting import channel_weights


def check_recordings(target_source, noise_source, mic_positions: np.ndarray) -> None:
    """Both recordings and the geometry must describe the same array at one sample rate."""
    if target_source.channels != noise_source.channels:
        raise ChannelCountMismatch(
            f"Target recording has {target_source.channels} channels, noise recording has {noise_source.channels}"
        )
    if mic_positions.shape[0] != target_source.channels:
        raise ChannelCountMismatch(
            f"{mic_positions.shape[0]} microphone positions for {target_source.channels} audio channels"
        )
    if int(target_source.samplerate) != int(noise_source.samplerate):
        raise SampleRateMismatch(
            f"Target recording is {target_source.samplerate} Hz, noise recording is {noise_source.samplerate} Hz"
        )


# Scheduler states
INIT = "INIT"        # no source location seen yet
STEADY = "STEADY"    # at least one real location seen
DONE = "DONE"        # next window runs past the end of a stream


class WindowScheduler:
    """Drives the windowed beamforming loop over a target-only and a noise-only recording.

    Each window is mixed at the configured SNR, high-pass filtered with state
    carried per stream, steered at the tracked source location and appended to
    the beamformed and closest-microphone output streams.
    """
    def __init__(
        self,
        target_source,
        noise_source,
        mic_positions: np.ndarray,
        track: SourceTrack,
        speed_of_sound_mps: float,
        config: Optional[BeamformConfig] = None,
        verbose: bool = True,
    ):
        self.target_source = target_source
        self.noise_source = noise_source
        self.mic_positions = np.asarray(mic_positions, dtype=float)
        self.track = track
        self.config = config or BeamformConfig()
        self.verbose = verbose

        check_recordings(target_source, noise_source, self.mic_positions)
        self.sample_rate = int(target_source.samplerate)
        self.channels = int(target_source.channels)
        self.config.validate(self.sample_rate)

        self.filter = ContinuityFilter(self.config.highpass_cutoff_hz, self.sample_rate, self.config.highpass_order)
        self.beamformer = DelaySumBeamformer(self.mic_positions, self.sample_rate, speed_of_sound_mps)

        self.state = INIT
        # Carry-forward location, updated only when the track reports a real position
        self.last_location: Optional[np.ndarray] = None
        self.gain: Optional[float] = None

    @property
    def signal_length(self) -> int:
        return int(min(self.target_source.frames, self.noise_source.frames))

    def compute_target_gain(self) -> float:
        """Linear gain for the target stream from whole-recording average powers."""
        sig_power = self.target_source.channel_power()
        nos_power = self.noise_source.channel_power()
        if sig_power <= 0:
            raise BeamformError("Target recording is silent; cannot set the mixing SNR")
        return target_gain(sig_power, nos_power, self.config.desired_snr_db)

    def resolve_location(self, window_idx: int):
        """Location for a window: nearest track sample, else the last known one, else None."""
        t_mid = (window_idx + 0.5) * self.config.window_duration_s
        location = self.track.location_at(t_mid)
        if location is not None:
            return location, False
        if self.last_location is not None:
            return self.last_location.copy(), True
        return None, False

    def _read_windows(self, start: int, stop: int) -> Dict[str, AudioWindow]:
        target = self.target_source.read(start, stop) * self.gain
        noise = self.noise_source.read(start, stop)
        mixture = noise + target
        return {
            "mixture": AudioWindow("mixture", start, mixture),
            "noise": AudioWindow("noise", start, noise),
            "target": AudioWindow("target", start, target),
        }

    def run(self, max_windows: Optional[int] = None) -> RunResult:
        if self.gain is None:
            self.gain = self.compute_target_gain()
        ws = self.config.window_duration_s
        siglen = self.signal_length
        if self.verbose:
            print(
                f"[sched] fs={self.sample_rate} Hz | channels={self.channels} | window={ws * 1000.0:.1f} ms | "
                f"samples={siglen} | target gain={self.gain:.4f} ({20.0 * np.log10(self.gain):+.2f} dB)"
            )

        filter_states: Dict[str, FilterState] = {s: self.filter.initial_state(self.channels) for s in STREAMS}
        # Previous weighted window per stream; zeros before the first real window
        tails: Dict[str, Optional[np.ndarray]] = {s: None for s in STREAMS}
        beam_parts: Dict[str, List[np.ndarray]] = {s: [] for s in STREAMS}
        close_parts: Dict[str, List[np.ndarray]] = {s: [] for s in STREAMS}
        contexts: List[Optional[BeamformerContext]] = []
        processed = 0
        skipped = 0

        self.state = INIT
        self.last_location = None
        t0 = time.perf_counter()
        k = 0
        while True:
            if max_windows is not None and k >= max_windows:
                break
            start, stop = window_bounds(k, ws, self.sample_rate)
            if stop > siglen:
                break
            try:
                windows = self._read_windows(start, stop)
            except ShortRead:
                break
            n = stop - start

            filtered: Dict[str, np.ndarray] = {}
            for s in STREAMS:
                filtered[s], filter_states[s] = self.filter.filter(windows[s].samples, filter_states[s])

            location, carried = self.resolve_location(k)
            if location is None:
                for s in STREAMS:
                    beam_parts[s].append(np.zeros(n, dtype=float))
                    close_parts[s].append(np.zeros(n, dtype=float))
                    tails[s] = np.zeros((n, self.channels), dtype=float)
                contexts.append(None)
                skipped += 1
                k += 1
                continue

            self.state = STEADY
            weights, closest = channel_weights(
                mic_distances(location, self.mic_positions),
                self.config.distance_weight_exponent,
            )
            ctx = BeamformerContext(
                window_idx=k,
                location=location,
                weights=weights,
                closest_channel=closest,
                delays_s=self.beamformer.delays(location),
                carried=carried,
            )
            for s in STREAMS:
                weighted = filtered[s] * weights[None, :]
                beam_parts[s].append(self.beamformer.beamform(weighted, tails[s], location, weights))
                close_parts[s].append(filtered[s][:, closest].copy())
                tails[s] = weighted
            contexts.append(ctx)
            processed += 1
            if not carried:
                self.last_location = location

            if self.verbose and processed % PROGRESS_EVERY_WINDOWS == 0:
                print(f"[sched] window {k} | t={stop / self.sample_rate:.2f}s | closest mic={closest} | carried={carried}")
            k += 1

        self.state = DONE
        result = RunResult(
            sample_rate=self.sample_rate,
            target_gain=float(self.gain),
            beamformed={s: _concat(beam_parts[s]) for s in STREAMS},
            closest={s: _concat(close_parts[s]) for s in STREAMS},
            windows_processed=processed,
            windows_skipped=skipped,
            contexts=contexts,
        )
        if self.verbose:
            elapsed = time.perf_counter() - t0
            dur = result.num_samples / float(self.sample_rate)
            print(
                f"[sched] done: windows={processed + skipped} (beamformed={processed}, skipped={skipped}) | "
                f"output={result.num_samples} samples ({dur:.2f}s) | elapsed={elapsed:.2f}s"
            )
        return result


def _concat(parts: List[np.ndarray]) -> np.ndarray:
    if not parts:
        return np.zeros(0, dtype=float)
    return np.concatenate(parts)
