"""
Figures for a beamforming run: array/source geometry, waveforms and the
intelligibility index over time.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional
import numpy as np
import matplotlib as mpl
# Choose a safe backend before importing pyplot to avoid Qt/xcb issues
if not os.environ.get('DISPLAY') and not os.environ.get('MPLBACKEND'):
    mpl.use('Agg', force=True)
import matplotlib.pyplot as plt

from cocktail_bf.geometry import SourceTrack
from cocktail_bf.messages import Report, RunResult


def plot_geometry(mic_positions: np.ndarray, track: SourceTrack, room_extent=(4.0, 4.0, 2.5)):
    """3D scatter of microphones (blue o) and active source positions (red x)."""
    fig = plt.figure(figsize=(7, 6))
    ax = fig.add_subplot(111, projection='3d')
    mp = np.asarray(mic_positions, dtype=float)
    ax.plot(mp[:, 0], mp[:, 1], mp[:, 2], 'ob', label='Microphones')
    sp = track.active_positions()
    if sp.size:
        ax.plot(sp[:, 0], sp[:, 1], sp[:, 2], 'xr', label='Source')
    if room_extent is not None:
        ax.set_xlim(0, room_extent[0])
        ax.set_ylim(0, room_extent[1])
        ax.set_zlim(0, room_extent[2])
    ax.set_xlabel('Meters X')
    ax.set_ylabel('Meters Y')
    ax.set_zlabel('Meters Z')
    ax.set_title('Mic Positions (Blue o), Source Positions (red x)')
    ax.grid(True)
    return fig


def plot_waveforms(result: RunResult, fs: Optional[float] = None):
    fs = float(result.sample_rate if fs is None else fs)
    fig, ax = plt.subplots(figsize=(12, 5))
    close_target = result.closest["target"]
    close_mix = result.closest["mixture"]
    beam_mix = result.beamformed["mixture"]
    ax.plot(np.arange(len(close_mix)) / fs, close_mix, 'r', linewidth=0.6, label='Closest mic in noise')
    ax.plot(np.arange(len(beam_mix)) / fs, beam_mix, 'b', linewidth=0.6, label='Beamformed')
    ax.plot(np.arange(len(close_target)) / fs, close_target, 'g', linewidth=0.6, label='Target (closest mic)')
    ax.set_xlabel('Seconds')
    ax.set_title('SOI Signal (green), Closest Mic Signal (red), Beamformed Signal (blue)')
    ax.legend(loc='upper right')
    return fig


def plot_intelligibility(report: Report):
    fig, ax = plt.subplots(figsize=(12, 4))
    ax.plot(report.sii_closest.times_s, report.sii_closest.values, 'b', label='Closest mic')
    ax.plot(report.sii_beamformed.times_s, report.sii_beamformed.values, 'r', label='Beamformed')
    ax.set_xlabel('time in seconds')
    ax.set_ylabel('speech intelligibility index')
    ax.set_ylim(0.0, 1.0)
    ax.set_title('Intelligibility of closest mic signals (blue) and Beamformed signals (red)')
    ax.legend(loc='upper right')
    return fig


def save_figures(figures: Dict[str, object], out_dir: str) -> Dict[str, str]:
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    saved = {}
    for name, fig in figures.items():
        path = out / f"{name}.png"
        fig.savefig(str(path), dpi=120, bbox_inches='tight')
        saved[name] = str(path)
    return saved


def render_run(
    mic_positions: np.ndarray,
    track: SourceTrack,
    result: RunResult,
    report: Report,
    out_dir: Optional[str] = None,
    show: bool = False,
) -> Dict[str, object]:
    figures = {
        "geometry": plot_geometry(mic_positions, track),
        "waveforms": plot_waveforms(result, result.sample_rate),
        "intelligibility": plot_intelligibility(report),
    }
    if out_dir:
        saved = save_figures(figures, out_dir)
        print(f"[plots] saved {', '.join(Path(p).name for p in saved.values())}")
    if show and mpl.get_backend().lower() != 'agg':
        plt.show()
    return figures
