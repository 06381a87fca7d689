"""
Respiratory-rate estimation from respiratory-induced amplitude modulation.

Algorithm
---------
1. Estimate the sampling rate from the timestamps; at least ``min_seconds``
   of signal are required.
2. Upper / lower envelopes are sliding maxima / minima over about one
   cardiac cycle; their difference is the pulse-amplitude modulation.
3. A low-order Butterworth low-pass keeps the breathing band and a wavelet
   approximation baseline removes the slow trend.
4. The shared extrema detector (respiration preset) finds breaths; the rate
   comes from the consistent inter-breath intervals.
5. The breathing pattern is classified from interval regularity and the
   relative modulation depth.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

import numpy as np
import pywt
from scipy.ndimage import maximum_filter1d, minimum_filter1d
from scipy.signal import butter, detrend, sosfiltfilt

from .config import DetectorConfig, RespirationConfig
from .extrema import detect
from .models import BreathingPattern, RespiratoryReading, VitalEstimate

logger = logging.getLogger(__name__)


class RespiratoryRateEstimator:
    """
    Breathing rate and pattern from a long PPG window.

    Parameters
    ----------
    config:
        Window length, filter corner, accepted rate range and pattern
        thresholds.
    """

    def __init__(self, config: RespirationConfig | None = None) -> None:
        self.config = config or RespirationConfig()
        self._smoothed_rate: Optional[float] = None
        self._last: VitalEstimate[RespiratoryReading] = VitalEstimate.pending(0)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def estimate(
        self,
        window: Sequence[float],
        timestamps: Sequence[int],
    ) -> VitalEstimate[RespiratoryReading]:
        """Return a breathing reading, or a pending estimate when none is possible."""
        cfg = self.config
        x = np.asarray(window, dtype=np.float64)
        t = np.asarray(timestamps, dtype=np.float64)
        now = int(t[-1]) if t.size else 0
        if x.size != t.size or x.size < 2 or not np.all(np.isfinite(x)):
            return VitalEstimate.pending(now)

        steps = np.diff(t)
        steps = steps[steps > 0]
        if steps.size == 0:
            return VitalEstimate.pending(now)
        fs = 1000.0 / float(np.median(steps))
        if (t[-1] - t[0]) / 1000.0 < cfg.min_seconds or fs <= 2.0 * cfg.lowpass_hz:
            return VitalEstimate.pending(now)

        modulation = self._modulation(x, fs)
        mean_modulation = float(np.mean(modulation))
        if mean_modulation <= 0:
            return VitalEstimate.pending(now)
        breathing = self._breathing_signal(modulation, fs)

        extrema = detect(breathing, DetectorConfig.respiration(fs))
        if len(extrema.peaks) < cfg.min_cycles + 1:
            logger.debug("Respiration: only %d breaths found", len(extrema.peaks))
            return VitalEstimate.pending(now)

        intervals = np.diff(t[list(extrema.peaks)])
        median = float(np.median(intervals))
        consistent = intervals[np.abs(intervals - median) <= 0.5 * median]
        if consistent.size < cfg.min_cycles:
            return VitalEstimate.pending(now)

        rate = 60000.0 / float(consistent.mean())
        low, high = cfg.rate_range
        if not low <= rate <= high:
            logger.debug("Respiration: rate %.1f outside [%.0f, %.0f]", rate, low, high)
            return VitalEstimate.pending(now)

        cv = float(consistent.std() / consistent.mean())
        p5, p95 = np.percentile(breathing, [5, 95])
        depth = float(p95 - p5) / mean_modulation
        pattern = self._pattern(cv, depth)

        if self._smoothed_rate is None:
            self._smoothed_rate = rate
        else:
            a = cfg.smoothing_alpha
            self._smoothed_rate = a * rate + (1 - a) * self._smoothed_rate

        confidence = (
            0.4 * min(1.0, consistent.size / (2.0 * cfg.min_cycles))
            + 0.3 * extrema.quality / 100.0
            + 0.3 * max(0.0, 1.0 - cv)
        )
        reading = RespiratoryReading(
            rate=round(self._smoothed_rate, 1),
            amplitude=depth,
            pattern=pattern,
        )
        self._last = VitalEstimate(reading, float(np.clip(confidence, 0.0, 1.0)), now)
        return self._last

    @property
    def last_estimate(self) -> VitalEstimate[RespiratoryReading]:
        return self._last

    def reset(self) -> None:
        self._smoothed_rate = None
        self._last = VitalEstimate.pending(0)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _modulation(self, x: np.ndarray, fs: float) -> np.ndarray:
        size = max(3, int(round(self.config.envelope_seconds * fs)))
        upper = maximum_filter1d(x, size=size, mode="nearest")
        lower = minimum_filter1d(x, size=size, mode="nearest")
        return upper - lower

    def _breathing_signal(self, modulation: np.ndarray, fs: float) -> np.ndarray:
        cfg = self.config
        sos = butter(cfg.filter_order, cfg.lowpass_hz, btype="low", fs=fs, output="sos")
        smoothed = sosfiltfilt(sos, modulation)
        return self._remove_trend(smoothed, fs)

    def _remove_trend(self, x: np.ndarray, fs: float) -> np.ndarray:
        """Subtract the wavelet approximation below ``trend_hz``; linear detrend if too short."""
        cfg = self.config
        level = int(math.ceil(math.log2(fs / (2.0 * cfg.trend_hz))))
        max_level = pywt.dwt_max_level(x.size, pywt.Wavelet(cfg.wavelet).dec_len)
        if level < 1 or level > max_level:
            return detrend(x)

        coeffs = pywt.wavedec(x, cfg.wavelet, level=level)
        for i in range(1, len(coeffs)):
            coeffs[i] = np.zeros_like(coeffs[i])
        baseline = pywt.waverec(coeffs, cfg.wavelet)[: x.size]
        return x - baseline

    def _pattern(self, cv: float, depth: float) -> BreathingPattern:
        cfg = self.config
        if cv > cfg.irregular_cv:
            return BreathingPattern.IRREGULAR
        if depth < cfg.shallow_depth:
            return BreathingPattern.SHALLOW
        if depth > cfg.deep_depth:
            return BreathingPattern.DEEP
        return BreathingPattern.NORMAL
