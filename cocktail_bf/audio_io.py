from __future__ import annotations

import numpy as np
from pathlib import Path
from typing import Tuple
from scipy.io.wavfile import read as wav_read
import soundfile as sf

from cocktail_bf.errors import ShortRead
from cocktail_bf.dsp_utils import channel_power


def _to_float(audio: np.ndarray) -> np.ndarray:
    if audio.dtype == np.int16:
        audio = audio.astype(np.float64) / 32768.0
    elif audio.dtype == np.int32:
        audio = audio.astype(np.float64) / 2147483648.0
    elif audio.dtype == np.uint8:
        audio = (audio.astype(np.float64) - 128.0) / 128.0
    else:
        audio = audio.astype(np.float64)
    if audio.ndim == 1:
        audio = audio[:, None]
    return audio


def load_audio(audio_path: str) -> Tuple[np.ndarray, int]:
    """Load a whole recording as float64 array with shape (samples, channels).

    Tries scipy.io.wavfile first; falls back to soundfile for other formats.
    """
    p = str(audio_path)
    try:
        sr, audio = wav_read(p)
        return _to_float(audio), int(sr)
    except ValueError:
        pass
    data, sr = sf.read(p, always_2d=True, dtype='float64')
    return data, int(sr)


def write_audio(path: str, samples: np.ndarray, sample_rate: int) -> None:
    """Write float samples as 32-bit float WAV; 1-D input becomes a mono file."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(path), np.asarray(samples, dtype=np.float32), int(sample_rate), subtype='FLOAT')


class ArraySegmentSource:
    """In-memory multichannel recording with sample-range reads."""

    def __init__(self, audio: np.ndarray, samplerate: int, name: str = "array"):
        audio = np.asarray(audio, dtype=float)
        if audio.ndim == 1:
            audio = audio[:, None]
        self.audio = audio
        self.samplerate = int(samplerate)
        self.name = name

    @property
    def frames(self) -> int:
        return int(self.audio.shape[0])

    @property
    def channels(self) -> int:
        return int(self.audio.shape[1])

    def read(self, start: int, stop: int) -> np.ndarray:
        if start < 0 or stop > self.frames or stop < start:
            raise ShortRead(start, stop, self.frames)
        return self.audio[start:stop, :].copy()

    def channel_power(self) -> float:
        return channel_power(self.audio)


class WavSegmentSource:
    """Random-access reader over a multichannel sound file (blocking seek + read)."""

    def __init__(self, path: str):
        self.path = str(path)
        with sf.SoundFile(self.path) as f:
            self._frames = int(f.frames)
            self._channels = int(f.channels)
            self.samplerate = int(f.samplerate)
        self.name = Path(self.path).name

    @property
    def frames(self) -> int:
        return self._frames

    @property
    def channels(self) -> int:
        return self._channels

    def read(self, start: int, stop: int) -> np.ndarray:
        if start < 0 or stop > self._frames or stop < start:
            raise ShortRead(start, stop, self._frames)
        data, _ = sf.read(self.path, start=start, stop=stop, always_2d=True, dtype='float64')
        if data.shape[0] < stop - start:
            raise ShortRead(start, stop, start + data.shape[0])
        return data

    def channel_power(self) -> float:
        # Power over the full recording, as used to set the target gain
        audio, _ = load_audio(self.path)
        return channel_power(audio)
