from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional

from cocktail_bf.audio_io import write_audio
from cocktail_bf.config import OUTPUT_WAVS, SUMMARY_JSON
from cocktail_bf.messages import Report, RunResult, BeamformConfig


class Reporter:
    """Console and file output of a beamforming run."""

    def __init__(self, out_dir: Optional[str] = None, quiet: bool = False):
        self.out_dir = Path(out_dir) if out_dir else None
        self.quiet = quiet

    def print_report(self, report: Report) -> None:
        if self.quiet:
            return
        print(f"1. SNR of closest mic is {report.snr_closest_db:.4g}dB")
        print(f"2. SNR of beamformed signal is {report.snr_beamformed_db:.4g}dB")
        print(f"3. Mean Intelligibility for closest mic is {report.sii_closest.mean:.4g}")
        print(f"Standard deviation of Intelligibility for closest mic is {report.sii_closest.std:.4g}")
        print(f"4. Mean Intelligibility for beamformed signal is {report.sii_beamformed.mean:.4g}")
        print(f"Standard deviation of Intelligibility for beamformed signal is {report.sii_beamformed.std:.4g}")
        print(
            f"[report] SNR improvement={report.snr_improvement_db:+.2f} dB | "
            f"intelligibility improvement={report.sii_improvement:+.3f} | "
            f"windows beamformed={report.windows_processed} skipped={report.windows_skipped}"
        )

    def write_outputs(self, result: RunResult, report: Report, config: Optional[BeamformConfig] = None) -> Dict[str, str]:
        """Write the six output streams as WAV plus a JSON summary; returns name -> path."""
        if self.out_dir is None:
            return {}
        self.out_dir.mkdir(parents=True, exist_ok=True)
        streams = {
            "beam_mix": result.beamformed["mixture"],
            "beam_noise": result.beamformed["noise"],
            "beam_target": result.beamformed["target"],
            "close_mix": result.closest["mixture"],
            "close_noise": result.closest["noise"],
            "close_target": result.closest["target"],
        }
        written: Dict[str, str] = {}
        for key, samples in streams.items():
            path = self.out_dir / OUTPUT_WAVS[key]
            write_audio(str(path), samples, result.sample_rate)
            written[key] = str(path)

        summary = report.to_dict()
        summary["sample_rate"] = result.sample_rate
        summary["num_samples"] = result.num_samples
        if config is not None:
            summary["config"] = dict(vars(config))
        summary_path = self.out_dir / SUMMARY_JSON
        with open(summary_path, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, allow_nan=False)
        written["summary"] = str(summary_path)
        if not self.quiet:
            print(f"[report] wrote {len(streams)} streams and {SUMMARY_JSON} to {self.out_dir}")
        return written
