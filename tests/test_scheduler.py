import numpy as np
import pytest

from cocktail_bf.audio_io import ArraySegmentSource
from cocktail_bf.errors import ChannelCountMismatch, SampleRateMismatch, ShortRead
from cocktail_bf.messages import STREAMS, BeamformConfig
from cocktail_bf.metrics import summarize
from cocktail_bf.pipeline.continuity_filter import ContinuityFilter
from cocktail_bf.pipeline.scheduler import DONE, INIT, WindowScheduler
from cocktail_bf.synthetic import make_session


def _scheduler(session, **cfg):
    return WindowScheduler(
        target_source=session.target_source(),
        noise_source=session.noise_source(),
        mic_positions=session.mic_positions,
        track=session.track,
        speed_of_sound_mps=session.speed_of_sound_mps,
        config=BeamformConfig(**cfg),
        verbose=False,
    )


def test_output_lengths_cover_whole_windows(session4):
    sched = _scheduler(session4, window_duration_s=0.040, distance_weight_exponent=1.0, desired_snr_db=-7.0)
    assert sched.state == INIT
    result = sched.run()
    assert sched.state == DONE
    expected = int(np.floor(2.0 / 0.040)) * 640
    for s in STREAMS:
        assert result.beamformed[s].shape == (expected,)
        assert result.closest[s].shape == (expected,)
    assert result.windows_processed == 50
    assert result.windows_skipped == 0


def test_partial_final_window_is_dropped():
    session = make_session(duration_s=2.03, sample_rate=16000, seed=3)
    result = _scheduler(session, window_duration_s=0.040).run()
    assert result.num_samples == 50 * 640
    assert result.windows_processed == 50


def test_beamforming_improves_snr_over_best_single_mic(session4):
    result = _scheduler(session4, window_duration_s=0.040, distance_weight_exponent=1.0, desired_snr_db=-7.0).run()
    report = summarize(result, 0.1)
    assert report.snr_beamformed_db > report.snr_closest_db
    assert np.all(np.isfinite(result.beamformed["mixture"]))


def test_target_gain_sets_mixture_snr(session4):
    sched = _scheduler(session4, desired_snr_db=-7.0)
    g = sched.compute_target_gain()
    sig = np.mean(np.var(session4.target * g, axis=0, ddof=1))
    nos = np.mean(np.var(session4.noise, axis=0, ddof=1))
    assert 10 * np.log10(sig / nos) == pytest.approx(-7.0, abs=1e-6)


def test_zero_db_with_equal_power_leaves_target_unscaled(rng):
    fs = 8000
    mics = np.array([[0.0, 0.0, 1.0], [1.0, 0.0, 1.0]])
    x = rng.standard_normal((fs, 2))
    session = make_session(duration_s=1.0, sample_rate=fs, mic_positions=mics, source_position=[0.5, 1.0, 1.0])
    sched = WindowScheduler(
        ArraySegmentSource(x, fs), ArraySegmentSource(x.copy(), fs), mics, session.track, 343.0,
        BeamformConfig(desired_snr_db=0.0), verbose=False,
    )
    assert sched.compute_target_gain() == pytest.approx(1.0, abs=1e-12)


def test_carry_forward_and_initial_zero_fill():
    # Track inactive before 0.5 s and from 1.0 s on, sampled every 0.1 s
    session = make_session(duration_s=2.0, sample_rate=16000, inactive_before_s=0.5, inactive_after_s=1.0, seed=5)
    result = _scheduler(session, window_duration_s=0.040).run()
    n = 640
    # Window midpoints up to 0.42 s are nearest to inactive samples 0.0 .. 0.4
    first_active = 11
    assert result.windows_skipped == first_active
    assert all(ctx is None for ctx in result.contexts[:first_active])
    for s in STREAMS:
        assert not np.any(result.beamformed[s][:first_active * n])
        assert not np.any(result.closest[s][:first_active * n])
        assert np.any(result.beamformed[s][first_active * n:(first_active + 1) * n])

    ctx = result.contexts[first_active]
    assert ctx is not None and not ctx.carried
    np.testing.assert_array_equal(ctx.location, session.track_table[5, 1:4])

    # Trailing inactive run keeps the last active location
    tail = [c for c in result.contexts if c is not None and c.carried]
    assert tail, "expected carried-forward windows after the source went inactive"
    for c in tail:
        assert c.window_idx > first_active
        np.testing.assert_array_equal(c.location, ctx.location)
    assert np.any(result.beamformed["target"][-n:])
    assert np.all(np.isfinite(result.beamformed["mixture"]))


def test_closest_streams_match_single_pass_filtering(session4):
    sched = _scheduler(session4, window_duration_s=0.040, highpass_cutoff_hz=300.0)
    result = sched.run()
    ch = result.contexts[0].closest_channel
    assert all(c.closest_channel == ch for c in result.contexts)
    hpf = ContinuityFilter(300.0, session4.sample_rate, 4)
    ref = hpf.filter_full(session4.target * result.target_gain)[: result.num_samples, ch]
    np.testing.assert_allclose(result.closest["target"], ref, rtol=1e-9, atol=1e-12)


def test_equidistant_source_beamforms_to_channel_average(square_mics):
    session = make_session(duration_s=1.0, sample_rate=16000, mic_positions=square_mics,
                           source_position=[2.0, 2.0, 1.5], seed=2)
    result = _scheduler(session, window_duration_s=0.040, distance_weight_exponent=0.0).run()
    hpf = ContinuityFilter(300.0, 16000, 4)
    filtered = hpf.filter_full(session.noise)[: result.num_samples]
    np.testing.assert_allclose(result.beamformed["noise"], filtered.mean(axis=1), rtol=1e-9, atol=1e-12)


def test_mixture_is_sum_of_noise_and_scaled_target(session4):
    result = _scheduler(session4).run()
    np.testing.assert_allclose(
        result.beamformed["mixture"],
        result.beamformed["noise"] + result.beamformed["target"],
        rtol=1e-9, atol=1e-12,
    )


def test_max_windows_limits_run(session4):
    result = _scheduler(session4).run(max_windows=5)
    assert result.num_samples == 5 * 640


class _TruncatedSource(ArraySegmentSource):
    """Claims more frames than it can deliver."""

    @property
    def frames(self) -> int:
        return int(self.audio.shape[0]) + 10000

    def read(self, start, stop):
        if stop > self.audio.shape[0]:
            raise ShortRead(start, stop, self.audio.shape[0])
        return super().read(start, stop)


def test_short_read_terminates_gracefully(session4):
    sched = WindowScheduler(
        _TruncatedSource(session4.target[:16000], 16000),
        _TruncatedSource(session4.noise[:16000], 16000),
        session4.mic_positions, session4.track, 343.0, BeamformConfig(), verbose=False,
    )
    result = sched.run()
    assert sched.state == DONE
    assert result.num_samples == 25 * 640


def test_channel_count_mismatch(session4):
    with pytest.raises(ChannelCountMismatch):
        WindowScheduler(
            ArraySegmentSource(session4.target, 16000),
            ArraySegmentSource(session4.noise[:, :3], 16000),
            session4.mic_positions, session4.track, 343.0, verbose=False,
        )
    with pytest.raises(ChannelCountMismatch):
        WindowScheduler(
            ArraySegmentSource(session4.target, 16000),
            ArraySegmentSource(session4.noise, 16000),
            session4.mic_positions[:3], session4.track, 343.0, verbose=False,
        )


def test_sample_rate_mismatch(session4):
    with pytest.raises(SampleRateMismatch):
        WindowScheduler(
            ArraySegmentSource(session4.target, 16000),
            ArraySegmentSource(session4.noise, 8000),
            session4.mic_positions, session4.track, 343.0, verbose=False,
        )


def test_invalid_config_rejected(session4):
    with pytest.raises(ValueError):
        _scheduler(session4, highpass_cutoff_hz=9000.0)
    with pytest.raises(ValueError):
        _scheduler(session4, window_duration_s=0.0)
