from __future__ import annotations

from typing import Optional, Union
import numpy as np
try:
    import sounddevice as sd
    _SD_AVAILABLE = True
except Exception:
    _SD_AVAILABLE = False

from cocktail_bf.dsp_utils import peak_normalize


def playback_available() -> bool:
    return _SD_AVAILABLE


def play(samples: np.ndarray, sample_rate: int, device: Optional[Union[int, str]] = None, label: str = "") -> bool:
    """Play a peak-normalised copy of a mono stream and block until it finishes.

    Returns False (with a console notice) when playback is not possible.
    """
    if not _SD_AVAILABLE:
        print("[playback][warn] sounddevice is not available; skipping playback")
        return False
    x = peak_normalize(samples).astype(np.float32)
    if x.size == 0:
        return False
    if label:
        print(f"[playback] {label} ({x.size / float(sample_rate):.2f}s)")
    try:
        sd.play(x, samplerate=int(sample_rate), device=device)
        sd.wait()
    except Exception as e:
        print(f"[playback][warn] could not play audio: {e}")
        return False
    return True
