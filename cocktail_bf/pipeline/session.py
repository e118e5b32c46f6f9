from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import numpy as np

from cocktail_bf.config import (
    TARGET_WAV_PATTERN,
    NOISE_WAV_PATTERN,
    SOURCE_TRACK_PATTERN,
    MIC_POSITIONS_FILE,
    PARAMETER_FILE,
    SPEED_OF_SOUND_KEY,
)
from cocktail_bf.audio_io import WavSegmentSource
from cocktail_bf.geometry import SourceTrack, load_mic_positions, read_speed_of_sound
from cocktail_bf.messages import BeamformConfig, RunResult
from cocktail_bf.pipeline.scheduler import WindowScheduler, check_recordings


@dataclass
class SessionPaths:
    target_wav: Path
    noise_wav: Path
    source_track: Path
    mic_positions: Path
    parameters: Path

    @classmethod
    def for_target(cls, data_dir: str, target_index: int) -> "SessionPaths":
        root = Path(data_dir)
        return cls(
            target_wav=root / TARGET_WAV_PATTERN.format(n=int(target_index)),
            noise_wav=root / NOISE_WAV_PATTERN.format(n=int(target_index)),
            source_track=root / SOURCE_TRACK_PATTERN.format(n=int(target_index)),
            mic_positions=root / MIC_POSITIONS_FILE,
            parameters=root / PARAMETER_FILE,
        )

    def missing(self) -> list:
        return [str(p) for p in (self.target_wav, self.noise_wav, self.source_track, self.mic_positions, self.parameters)
                if not p.exists()]


@dataclass
class Session:
    """One recorded target plus its party noise, geometry and environment."""
    paths: Optional[SessionPaths]
    target_source: object
    noise_source: object
    mic_positions: np.ndarray   # (num_mics, 3)
    track: SourceTrack
    speed_of_sound_mps: float

    @property
    def sample_rate(self) -> int:
        return int(self.target_source.samplerate)

    @property
    def channels(self) -> int:
        return int(self.target_source.channels)

    def validate(self) -> None:
        check_recordings(self.target_source, self.noise_source, self.mic_positions)

    def scheduler(self, config: BeamformConfig, verbose: bool = True) -> WindowScheduler:
        return WindowScheduler(
            target_source=self.target_source,
            noise_source=self.noise_source,
            mic_positions=self.mic_positions,
            track=self.track,
            speed_of_sound_mps=self.speed_of_sound_mps,
            config=config,
            verbose=verbose,
        )

    def run(self, config: BeamformConfig, verbose: bool = True) -> RunResult:
        return self.scheduler(config, verbose=verbose).run()


def load_session(
    data_dir: str,
    target_index: int,
    track_sentinel: Optional[float] = None,
    speed_of_sound_key: str = SPEED_OF_SOUND_KEY,
    verbose: bool = True,
) -> Session:
    """Open the recordings and load geometry for one target; validates before any processing.

    Raises FileNotFoundError for missing files and BeamformError subclasses for
    malformed geometry, missing parameters or mismatched recordings.
    """
    paths = SessionPaths.for_target(data_dir, target_index)
    missing = paths.missing()
    if missing:
        raise FileNotFoundError(f"Session files not found: {', '.join(missing)}")

    mic_positions = load_mic_positions(str(paths.mic_positions))
    track = SourceTrack.load_txt(str(paths.source_track), sentinel=track_sentinel)
    c = read_speed_of_sound(str(paths.parameters), key=speed_of_sound_key)
    session = Session(
        paths=paths,
        target_source=WavSegmentSource(str(paths.target_wav)),
        noise_source=WavSegmentSource(str(paths.noise_wav)),
        mic_positions=mic_positions,
        track=track,
        speed_of_sound_mps=c,
    )
    session.validate()
    if verbose:
        n_active = int(np.count_nonzero(track.active))
        print(
            f"[session] target={paths.target_wav.name} noise={paths.noise_wav.name} | "
            f"mics={session.channels} | fs={session.sample_rate} Hz | c={c:.1f} m/s | "
            f"track={len(track)} samples ({n_active} active)"
        )
    return session
