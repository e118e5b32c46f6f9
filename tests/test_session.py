import json

import numpy as np
import pytest

import bf_main
from cocktail_bf.audio_io import WavSegmentSource, load_audio
from cocktail_bf.errors import ChannelCountMismatch, MalformedGeometryFile, ShortRead
from cocktail_bf.messages import BeamformConfig
from cocktail_bf.metrics import summarize
from cocktail_bf.pipeline.reporter import Reporter
from cocktail_bf.pipeline.scheduler import WindowScheduler
from cocktail_bf.pipeline.session import SessionPaths, load_session
from cocktail_bf.synthetic import make_session


@pytest.fixture
def session_dir(tmp_path):
    session = make_session(duration_s=1.0, sample_rate=16000, noise_floor=0.05, inactive_before_s=0.2, seed=7)
    session.write(str(tmp_path), target_index=2)
    return tmp_path, session


def test_session_files_follow_target_index(tmp_path):
    paths = SessionPaths.for_target(str(tmp_path), 3)
    assert paths.target_wav.name == "soi3.wav"
    assert paths.noise_wav.name == "party3.wav"
    assert paths.source_track.name == "soi3pos.txt"
    assert paths.mic_positions.name == "mpos.txt"
    assert paths.parameters.name == "info.txt"


def test_load_session_round_trip(session_dir):
    root, synth = session_dir
    session = load_session(str(root), 2, verbose=False)
    assert session.channels == 4
    assert session.sample_rate == 16000
    assert session.speed_of_sound_mps == pytest.approx(synth.speed_of_sound_mps, abs=0.01)
    np.testing.assert_allclose(session.mic_positions, synth.mic_positions, atol=1e-6)
    assert not session.track.active[0]

    result = session.run(BeamformConfig(window_duration_s=0.040), verbose=False)
    assert result.num_samples == 25 * 640
    assert result.windows_skipped > 0


def test_wav_segment_reads(session_dir):
    root, synth = session_dir
    src = WavSegmentSource(str(root / "soi2.wav"))
    assert src.frames == synth.target.shape[0]
    seg = src.read(100, 740)
    np.testing.assert_allclose(seg, synth.target[100:740], atol=1e-6)
    with pytest.raises(ShortRead):
        src.read(src.frames - 10, src.frames + 10)
    audio, fs = load_audio(str(root / "soi2.wav"))
    assert fs == 16000 and audio.shape == synth.target.shape


def test_missing_files_raise(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_session(str(tmp_path), 1, verbose=False)


def test_geometry_channel_mismatch_is_fatal(session_dir):
    root, synth = session_dir
    np.savetxt(str(root / "mpos.txt"), synth.mic_positions[:3].T)
    with pytest.raises(ChannelCountMismatch):
        load_session(str(root), 2, verbose=False)


def test_malformed_track_is_fatal(session_dir):
    root, _ = session_dir
    (root / "soi2pos.txt").write_text("0.0 1.0\n0.1 2.0\n")
    with pytest.raises(MalformedGeometryFile):
        load_session(str(root), 2, verbose=False)


def test_cli_writes_outputs(session_dir, capsys):
    root, _ = session_dir
    out = root / "out"
    code = bf_main.main(["--data-dir", str(root), "--target-index", "2", "--out-dir", str(out), "--quiet"])
    assert code == 0
    printed = capsys.readouterr().out
    assert "1. SNR of closest mic is" in printed
    assert "4. Mean Intelligibility for beamformed signal is" in printed
    for name in ("beam_mix", "beam_noise", "beam_target", "close_mix", "close_noise", "close_target"):
        assert (out / f"{name}.wav").exists()
    summary = json.loads((out / "summary.json").read_text())
    assert summary["num_samples"] == 25 * 640
    assert summary["config"]["target_index"] == 2


def test_cli_reports_session_errors(tmp_path, capsys):
    code = bf_main.main(["--data-dir", str(tmp_path), "--target-index", "1"])
    assert code == 2
    assert "[error]" in capsys.readouterr().out


def test_summary_of_fully_skipped_run_is_strict_json(tmp_path):
    session = make_session(duration_s=0.5, sample_rate=8000, inactive_before_s=10.0, seed=4)
    result = WindowScheduler(
        target_source=session.target_source(),
        noise_source=session.noise_source(),
        mic_positions=session.mic_positions,
        track=session.track,
        speed_of_sound_mps=session.speed_of_sound_mps,
        verbose=False,
    ).run()
    assert result.windows_processed == 0
    report = summarize(result, 0.1)
    written = Reporter(out_dir=str(tmp_path), quiet=True).write_outputs(result, report, BeamformConfig())

    def _reject(token):
        raise AssertionError(f"non-standard JSON constant {token}")

    summary = json.loads((tmp_path / "summary.json").read_text(), parse_constant=_reject)
    assert written["summary"] == str(tmp_path / "summary.json")
    assert summary["snr_improvement_db"] is None
    assert summary["windows_skipped"] == result.windows_skipped
    assert summary["target_gain"] == pytest.approx(result.target_gain)
