"""
Geometry store: static microphone positions, the time-indexed source track,
and the environment parameter file that carries the speed of sound.

Positions are metres in the room frame of the recording session.
"""
from __future__ import annotations

import re
from typing import Optional
import numpy as np

from cocktail_bf.config import SPEED_OF_SOUND_KEY
from cocktail_bf.errors import MalformedGeometryFile, ParameterNotFound


def _load_table(path: str) -> np.ndarray:
    try:
        table = np.loadtxt(str(path), dtype=float, ndmin=2)
    except ValueError as e:
        raise MalformedGeometryFile(f"Could not parse numeric table {path}: {e}") from e
    return table


def mic_positions_from_array(table: np.ndarray) -> np.ndarray:
    """Normalise a position table to shape (num_mics, 3).

    Session files list one microphone per column (rows are x, y, z); a
    one-microphone-per-row table is also accepted. A 3x3 table is read in
    the column layout.
    """
    table = np.asarray(table, dtype=float)
    if table.ndim != 2:
        raise MalformedGeometryFile(f"Microphone positions must be 2-D, got shape {table.shape}")
    if table.shape[0] == 3:
        positions = table.T
    elif table.shape[1] == 3:
        positions = table
    else:
        raise MalformedGeometryFile(f"Microphone positions need 3 coordinates, got shape {table.shape}")
    if positions.shape[0] < 1:
        raise MalformedGeometryFile("Microphone position table is empty")
    if not np.all(np.isfinite(positions)):
        raise MalformedGeometryFile("Microphone positions contain non-finite values")
    return np.ascontiguousarray(positions)


def load_mic_positions(path: str) -> np.ndarray:
    return mic_positions_from_array(_load_table(path))


class SourceTrack:
    """Irregularly sampled source positions; NaN coordinates mark inactivity."""

    def __init__(self, times: np.ndarray, positions: np.ndarray, sentinel: Optional[float] = None):
        times = np.asarray(times, dtype=float).reshape(-1)
        positions = np.asarray(positions, dtype=float)
        if positions.ndim != 2 or positions.shape[1] != 3 or positions.shape[0] != times.shape[0]:
            raise MalformedGeometryFile(
                f"Source track needs one (x, y, z) row per timestamp, got times {times.shape} positions {positions.shape}"
            )
        if times.size == 0:
            raise MalformedGeometryFile("Source track is empty")
        if not np.all(np.isfinite(times)):
            raise MalformedGeometryFile("Source track timestamps must be finite")
        # Stable sort keeps file order among equal timestamps
        order = np.argsort(times, kind='stable')
        self.times = times[order]
        self.positions = positions[order]
        inactive = ~np.all(np.isfinite(self.positions), axis=1)
        if sentinel is not None:
            # Only rows filled entirely with the sentinel; a real coordinate may equal it
            inactive |= np.all(self.positions == float(sentinel), axis=1)
        self.active = ~inactive

    @classmethod
    def from_table(cls, table: np.ndarray, sentinel: Optional[float] = None) -> "SourceTrack":
        table = np.asarray(table, dtype=float)
        if table.ndim != 2 or table.shape[1] < 4:
            raise MalformedGeometryFile(f"Source track rows must be (t, x, y, z), got shape {table.shape}")
        return cls(table[:, 0], table[:, 1:4], sentinel=sentinel)

    @classmethod
    def load_txt(cls, path: str, sentinel: Optional[float] = None) -> "SourceTrack":
        return cls.from_table(_load_table(path), sentinel=sentinel)

    def __len__(self) -> int:
        return int(self.times.shape[0])

    def nearest_index(self, t: float) -> int:
        # argmin returns the first minimum: ties resolve to the earlier sample
        return int(np.argmin(np.abs(self.times - float(t))))

    def location_at(self, t: float) -> Optional[np.ndarray]:
        """Position of the sample nearest in time to t, or None if that sample is inactive."""
        idx = self.nearest_index(t)
        if not self.active[idx]:
            return None
        return self.positions[idx].copy()

    def active_positions(self) -> np.ndarray:
        return self.positions[self.active]


_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"


def read_parameter(path: str, key: str) -> float:
    """Return the numeric value written as `key = value` in a text parameter file.

    Tokens may be separated by whitespace or written together (`c=343.2`).
    When the key appears more than once the last assignment wins.
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        text = f.read()
    pattern = re.compile(r"(?<![\w.])" + re.escape(key) + r"\s*=\s*(" + _NUMBER + r")")
    matches = pattern.findall(text)
    if not matches:
        raise ParameterNotFound(f"No '{key} = <number>' entry in {path}")
    return float(matches[-1])


def read_speed_of_sound(path: str, key: str = SPEED_OF_SOUND_KEY) -> float:
    c = read_parameter(path, key)
    if not np.isfinite(c) or c <= 0:
        raise ParameterNotFound(f"Speed of sound in {path} must be positive, got {c}")
    return c
