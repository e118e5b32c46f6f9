from __future__ import annotations

import argparse

from cocktail_bf.config import (
    TARGET_INDEX,
    DISTANCE_WEIGHT_EXPONENT,
    DESIRED_SNR_DB,
    HIGHPASS_CUTOFF_HZ,
    WINDOW_DURATION_S,
    INTELLIGIBILITY_WINDOW_S,
)
from cocktail_bf.errors import BeamformError
from cocktail_bf.messages import BeamformConfig
from cocktail_bf.metrics import summarize
from cocktail_bf.pipeline.reporter import Reporter
from cocktail_bf.pipeline.session import load_session


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Delay-and-sum beamforming of a target talker in cocktail-party noise")
    p.add_argument("--data-dir", type=str, required=True, help="Directory with soi<n>.wav, party<n>.wav, soi<n>pos.txt, mpos.txt, info.txt")
    p.add_argument("--target-index", type=int, default=TARGET_INDEX, help="Which recorded target to load")
    p.add_argument("--wp", type=float, default=DISTANCE_WEIGHT_EXPONENT,
                   help="Distance weight exponent: 0 equal weights, >0 favour close mics, <0 distant mics")
    p.add_argument("--snr-db", type=float, default=DESIRED_SNR_DB, help="Target-to-party SNR (dB) for the mixture")
    p.add_argument("--hpf", type=float, default=HIGHPASS_CUTOFF_HZ, help="High-pass cutoff (Hz) applied before beamforming")
    p.add_argument("--window", type=float, default=WINDOW_DURATION_S, help="Processing window (s)")
    p.add_argument("--iwin", type=float, default=INTELLIGIBILITY_WINDOW_S, help="Intelligibility assessment window (s)")
    p.add_argument("--track-sentinel", type=float, default=None, help="Coordinate value that marks an inactive source (NaN always does)")
    p.add_argument("--out-dir", type=str, default="", help="Write output WAVs, plots and summary.json here")
    p.add_argument("--plot", action="store_true", help="Render geometry, waveform and intelligibility figures")
    p.add_argument("--play", action="store_true", help="Play closest-mic target, closest-mic mixture and beamformed mixture")
    p.add_argument("--device", type=str, default=None, help="Output device index or name for playback")
    p.add_argument("--quiet", action="store_true", help="Only print the result lines")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    verbose = not args.quiet
    config = BeamformConfig(
        target_index=args.target_index,
        distance_weight_exponent=args.wp,
        desired_snr_db=args.snr_db,
        highpass_cutoff_hz=args.hpf,
        window_duration_s=args.window,
        intelligibility_window_s=args.iwin,
    )

    try:
        config.validate()
        session = load_session(args.data_dir, args.target_index, track_sentinel=args.track_sentinel, verbose=verbose)
        result = session.run(config, verbose=verbose)
    except (BeamformError, FileNotFoundError, ValueError) as e:
        print(f"[error] {e}")
        return 2

    report = summarize(result, config.intelligibility_window_s)
    reporter = Reporter(out_dir=(args.out_dir or None), quiet=False)
    reporter.print_report(report)
    if args.out_dir:
        reporter.write_outputs(result, report, config)

    if args.plot:
        from cocktail_bf.plots import render_run
        render_run(session.mic_positions, session.track, result, report, out_dir=(args.out_dir or None), show=True)

    if args.play:
        from cocktail_bf.playback import play
        device = None
        if args.device is not None and len(str(args.device).strip()) > 0:
            # allow numeric index or name string
            try:
                device = int(args.device)
            except ValueError:
                device = str(args.device)
        fs = result.sample_rate
        play(result.closest["target"], fs, device=device, label="closest mic, target only")
        play(result.closest["mixture"], fs, device=device, label="closest mic, target in party noise")
        play(result.beamformed["mixture"], fs, device=device, label="beamformed mixture")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
