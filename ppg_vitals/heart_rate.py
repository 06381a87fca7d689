"""
Heart-rate tracking from detected pulse peaks.

Peak timestamps arrive every frame (the detector re-runs over the whole
window), so the tracker only appends peaks newer than the last accepted one.
RR intervals come from a bounded peak history; BPM is the mean of the
intervals that survive range and median-based outlier rejection.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, Optional, Tuple

import numpy as np

from .config import HeartRateConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeartRateResult:
    bpm: int = 0
    confidence: float = 0.0
    intervals: Tuple[float, ...] = ()       # RR intervals in the valid RR range
    new_intervals: Tuple[float, ...] = ()   # RR intervals created by this update


class HeartRateTracker:
    """
    Converts peak timestamps into RR intervals and a BPM estimate.

    Parameters
    ----------
    config:
        BPM range, median tolerance, history size and minimum peak spacing.
    """

    def __init__(self, config: HeartRateConfig | None = None) -> None:
        self.config = config or HeartRateConfig()
        self._peaks: Deque[int] = deque(maxlen=self.config.history_size)
        self._last_peak: Optional[int] = None
        self._last_result = HeartRateResult()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update(self, peak_timestamps: Iterable[int]) -> HeartRateResult:
        """Register new peaks and return the current heart-rate estimate."""
        cfg = self.config
        new_intervals = []
        low_rr, high_rr = cfg.rr_valid_range_ms

        for ts in sorted(int(t) for t in peak_timestamps):
            if self._last_peak is not None:
                gap = ts - self._last_peak
                if gap < cfg.min_peak_spacing_ms:
                    continue
                if low_rr <= gap <= high_rr:
                    new_intervals.append(float(gap))
            self._peaks.append(ts)
            self._last_peak = ts

        intervals = self._rr_intervals()
        bpm, confidence = self._estimate(intervals)
        self._last_result = HeartRateResult(
            bpm=bpm,
            confidence=confidence,
            intervals=tuple(float(i) for i in intervals if low_rr <= i <= high_rr),
            new_intervals=tuple(new_intervals),
        )
        return self._last_result

    @property
    def last_result(self) -> HeartRateResult:
        return self._last_result

    @property
    def last_peak_time(self) -> Optional[int]:
        return self._last_peak

    @property
    def peak_count(self) -> int:
        return len(self._peaks)

    def reset_detection(self) -> None:
        """Forget the peak history (e.g. after the finger was lifted)."""
        self._peaks.clear()
        self._last_peak = None
        self._last_result = HeartRateResult()

    def reset(self) -> None:
        self.reset_detection()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _rr_intervals(self) -> np.ndarray:
        if len(self._peaks) < 2:
            return np.array([], dtype=np.float64)
        return np.diff(np.asarray(self._peaks, dtype=np.float64))

    def _estimate(self, intervals: np.ndarray) -> Tuple[int, float]:
        cfg = self.config
        total = intervals.size
        if total == 0:
            return 0, 0.0

        shortest = 60000.0 / cfg.max_bpm
        longest = 60000.0 / cfg.min_bpm
        in_range = intervals[(intervals >= shortest) & (intervals <= longest)]
        if in_range.size < cfg.min_valid_intervals:
            return 0, 0.0

        anchor = float(np.median(in_range))
        tolerance = cfg.median_tolerance * anchor
        valid = in_range[np.abs(in_range - anchor) <= tolerance]
        if valid.size < cfg.min_valid_intervals:
            return 0, 0.0

        bpm = int(round(60000.0 / float(valid.mean())))
        confidence = valid.size / total
        return bpm, float(confidence)


class BpmSmoother:
    """Exponential smoothing of the displayed BPM."""

    def __init__(self, alpha: float = 0.25) -> None:
        self.alpha = alpha
        self._last: float = 0.0

    def smooth(self, raw_bpm: int) -> int:
        if raw_bpm <= 0:
            return 0
        if self._last <= 0:
            self._last = float(raw_bpm)
        else:
            self._last = self.alpha * raw_bpm + (1.0 - self.alpha) * self._last
        return int(round(self._last))

    def reset(self) -> None:
        self._last = 0.0
