from __future__ import annotations

from typing import Tuple
import numpy as np

# Floor on distance so a source sitting on a capsule still yields a finite weight
MIN_DISTANCE_M: float = 1e-6


def inverse_distance_weights(distances: np.ndarray) -> np.ndarray:
    """Base weight per channel, decreasing with distance to the source."""
    d = np.asarray(distances, dtype=float)
    if d.ndim != 1 or d.size == 0:
        raise ValueError(f"distances must be a non-empty 1-D array, got shape {d.shape}")
    if np.any(d < 0) or not np.all(np.isfinite(d)):
        raise ValueError("distances must be finite and non-negative")
    return 1.0 / np.maximum(d, MIN_DISTANCE_M)


def channel_weights(distances: np.ndarray, exponent: float) -> Tuple[np.ndarray, int]:
    """Normalised, power-adjusted channel weights.

    The closest channel gets exactly 1.0; the other channels are scaled
    relative to it and raised to `exponent` (0 gives equal weights, positive
    values favour close microphones, negative values distant ones).

    Returns (weights, closest_channel).
    """
    base = inverse_distance_weights(distances)
    closest = int(np.argmax(base))
    normalized = base / base[closest]
    weights = np.power(normalized, float(exponent))
    # Keep the reference channel exact regardless of rounding in the power
    weights[closest] = 1.0
    return weights, closest
