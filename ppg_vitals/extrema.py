"""
Peak / valley extraction shared by every estimator.

Algorithm
---------
1. Candidate peaks (valleys) are points that dominate two neighbours on each
   side (5-point local maximum / minimum test).
2. A candidate is kept only if it clears a dynamic threshold: the local mean
   plus (minus) ``k`` times the local standard deviation, computed over a
   sliding sub-window.
3. Accepted extrema must be at least ``min_distance`` samples apart; the
   earlier candidate wins a collision.
4. Each peak is paired with its nearest preceding valley (else the nearest
   following one).  Peaks whose pair amplitude is below a fraction of the mean
   pair amplitude are discarded as noise spikes.
5. A 0 – 100 quality score blends interval regularity, peak density and
   normalised amplitude.

The detector is a pure function of its input window.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from scipy.ndimage import uniform_filter1d

from .config import HEART_DETECTOR, DetectorConfig
from .models import Extrema

_MIN_WINDOW = 5


def detect(window: Sequence[float], config: DetectorConfig = HEART_DETECTOR) -> Extrema:
    """
    Find peaks and valleys in *window*.

    Returns an empty :class:`Extrema` (quality 0) for windows that are too
    short, flat or contain non-finite values.
    """
    x = np.asarray(window, dtype=np.float64)
    n = x.size
    if n < _MIN_WINDOW or not np.all(np.isfinite(x)):
        return Extrema()

    p5, p95 = np.percentile(x, [5, 95])
    span = float(p95 - p5)
    if span <= 0.0:
        return Extrema()

    size = 2 * config.local_half_window + 1
    local_mean = uniform_filter1d(x, size=size, mode="nearest")
    local_sq = uniform_filter1d(x * x, size=size, mode="nearest")
    local_std = np.sqrt(np.maximum(local_sq - local_mean ** 2, 0.0))

    k = config.threshold_k
    peak_mask = _local_extrema_mask(x) & (x > local_mean + k * local_std)
    valley_mask = _local_extrema_mask(-x) & (x < local_mean - k * local_std)

    peaks = _enforce_distance(np.flatnonzero(peak_mask), config.min_distance)
    valleys = _enforce_distance(np.flatnonzero(valley_mask), config.min_distance)

    peaks, amplitudes = _reject_small_pulses(x, peaks, valleys, config.min_amplitude_ratio)

    quality = _quality(n, peaks, amplitudes, span, config.nominal_interval)
    return Extrema(peaks=tuple(peaks), valleys=tuple(valleys), quality=quality)


def pair_valley(peak: int, valleys: Sequence[int]) -> int | None:
    """Index of the valley paired with *peak* (nearest preceding, else following)."""
    before = [v for v in valleys if v < peak]
    if before:
        return before[-1]
    after = [v for v in valleys if v > peak]
    return after[0] if after else None


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

def _local_extrema_mask(x: np.ndarray) -> np.ndarray:
    """5-point local-maximum test; the left side allows ties so plateaus give one point."""
    mask = np.zeros(x.size, dtype=bool)
    c = x[2:-2]
    mask[2:-2] = (
        (c >= x[1:-3]) & (c >= x[:-4])
        & (c > x[3:-1]) & (c > x[4:])
    )
    return mask


def _enforce_distance(indices: np.ndarray, min_distance: int) -> List[int]:
    kept: List[int] = []
    for idx in indices:
        if not kept or idx - kept[-1] >= min_distance:
            kept.append(int(idx))
    return kept


def _reject_small_pulses(
    x: np.ndarray,
    peaks: List[int],
    valleys: List[int],
    min_ratio: float,
) -> Tuple[List[int], List[float]]:
    if not valleys:
        return peaks, []

    pairs = []
    for p in peaks:
        v = pair_valley(p, valleys)
        if v is not None:
            pairs.append((p, float(x[p] - x[v])))
    if not pairs:
        return [], []

    mean_amp = float(np.mean([a for _, a in pairs]))
    floor = min_ratio * mean_amp
    kept = [(p, a) for p, a in pairs if a > 0.0 and a >= floor]
    return [p for p, _ in kept], [a for _, a in kept]


def _quality(
    n: int,
    peaks: List[int],
    amplitudes: List[float],
    span: float,
    nominal_interval: int,
) -> float:
    if len(amplitudes) < 2:
        return 0.0

    intervals = np.diff(peaks).astype(np.float64)
    mean_interval = float(intervals.mean())
    cv = float(intervals.std() / mean_interval) if mean_interval > 0 else 1.0
    regularity = max(0.0, 1.0 - cv)

    expected = max(1.0, n / float(nominal_interval))
    density = min(1.0, len(peaks) / expected)

    amplitude = min(1.0, float(np.mean(amplitudes)) / span)

    score = 100.0 * (0.5 * regularity + 0.25 * density + 0.25 * amplitude)
    return float(np.clip(score, 0.0, 100.0))
