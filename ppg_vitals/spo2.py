"""
Blood-oxygen saturation (SpO2) estimation.

Algorithm
---------
1. DC = median of the window, AC = 95th − 5th percentile spread (robust to
   single-frame outliers).  Perfusion index PI = AC / DC.
2. Ratio R: the ratio of ratios (AC_red/DC_red) / (AC_ir/DC_ir) when separate
   channels are available, otherwise PI scaled into the same range.  R is
   divided by the calibration factor.
3. SpO2 = polynomial calibration curve in R, clamped to physiological bounds.
4. A session calibration offset (learnt while the rhythm classifier is in its
   learning phase) recentres readings on the target baseline.
5. The median of the last few readings is reported.

Notes
-----
- A camera sees visible light only; the single-channel path is a heuristic.
- Results are indicative, not clinical-grade.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Optional, Sequence

import numpy as np

from .config import SpO2Config
from .models import VitalEstimate

logger = logging.getLogger(__name__)


def ac_dc(window: Sequence[float]) -> tuple[float, float]:
    """Return ``(ac, dc)``: percentile spread and median of *window*."""
    x = np.asarray(window, dtype=np.float64)
    p5, p95 = np.percentile(x, [5, 95])
    return float(p95 - p5), float(np.median(x))


def perfusion_index(window: Sequence[float]) -> float:
    """AC/DC ratio of *window*; 0 when the DC level is not positive."""
    if len(window) == 0:
        return 0.0
    ac, dc = ac_dc(window)
    return ac / dc if dc > 0 else 0.0


class SpO2Calibration:
    """Session offset learnt from raw readings during the learning phase."""

    def __init__(self, config: SpO2Config) -> None:
        self.config = config
        self._values: Deque[float] = deque(maxlen=config.calibration_size)
        self._offset: float = 0.0
        self._calibrated: bool = False

    def add_value(self, value: float) -> None:
        if value > 0:
            self._values.append(float(value))

    def calibrate(self) -> bool:
        """
        Commit the offset from the middle 50 % of the collected values.

        Returns *False* (and leaves the state untouched) with too few values.
        """
        if len(self._values) < self.config.min_calibration_samples:
            return False
        ordered = sorted(self._values)
        start = len(ordered) // 4
        end = len(ordered) - start
        middle = ordered[start:end]
        mean = float(np.mean(middle))
        self._offset = self.config.target_baseline - mean
        self._calibrated = True
        logger.info("SpO2 calibrated: offset %.2f from %d samples", self._offset, len(ordered))
        return True

    def nudge(self, delta: float) -> None:
        self._offset += delta
        self._calibrated = True

    @property
    def offset(self) -> float:
        return self._offset

    @property
    def is_calibrated(self) -> bool:
        return self._calibrated

    @property
    def sample_count(self) -> int:
        return len(self._values)

    def reset(self) -> None:
        self._values.clear()
        self._offset = 0.0
        self._calibrated = False


class SpO2Estimator:
    """
    Windowed SpO2 estimator with calibration and output smoothing.

    Parameters
    ----------
    config:
        Ranges, perfusion thresholds, calibration curve and buffer sizes.
    rng:
        Random generator used only when ``config.natural_variation`` > 0.
    """

    def __init__(
        self,
        config: SpO2Config | None = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or SpO2Config()
        self.calibration = SpO2Calibration(self.config)
        self._rng = rng or np.random.default_rng()
        self._history: Deque[float] = deque(maxlen=self.config.smoothing_size)
        self._last: VitalEstimate[int] = VitalEstimate.pending(0)
        self._last_raw: float = 0.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def estimate(
        self,
        window: Sequence[float],
        timestamp: int = 0,
        red: Optional[Sequence[float]] = None,
        ir: Optional[Sequence[float]] = None,
    ) -> VitalEstimate[int]:
        """Return the current SpO2 reading for *window*."""
        cfg = self.config
        if len(window) < cfg.min_samples:
            return self._fallback(timestamp)

        raw, pi = self._raw(window, red, ir)
        if raw is None:
            return self._fallback(timestamp)
        self._last_raw = raw

        value = raw + self.calibration.offset
        if cfg.natural_variation > 0:
            value += float(self._rng.uniform(-cfg.natural_variation, cfg.natural_variation))
        self._history.append(self._clamp(value))

        smoothed = int(round(float(np.median(self._history))))
        smoothed = int(self._clamp(smoothed))

        spread = float(np.ptp(self._history)) if len(self._history) > 1 else 0.0
        stability = 1.0 / (1.0 + spread / 2.0)
        confidence = min(1.0, pi / cfg.good_perfusion) * stability

        self._last = VitalEstimate(smoothed, float(confidence), timestamp)
        return self._last

    # Calibration ------------------------------------------------------

    def add_calibration_sample(self, value: float) -> None:
        self.calibration.add_value(value)

    def calibrate(self) -> bool:
        return self.calibration.calibrate()

    def set_reference_value(self, measured: float) -> None:
        """Move the offset halfway towards an externally measured SpO2."""
        if self._last.value is None or measured <= 0:
            return
        delta = 0.5 * (float(measured) - self._last.value)
        self.calibration.nudge(delta)
        logger.info("SpO2 reference %.1f applied, offset now %.2f",
                    measured, self.calibration.offset)

    @property
    def last_estimate(self) -> VitalEstimate[int]:
        return self._last

    @property
    def last_raw(self) -> float:
        """Uncalibrated reading of the latest frame; 0 when that frame fell back."""
        return self._last_raw

    def reset(self) -> None:
        self.calibration.reset()
        self._history.clear()
        self._last = VitalEstimate.pending(0)
        self._last_raw = 0.0

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _raw(
        self,
        window: Sequence[float],
        red: Optional[Sequence[float]],
        ir: Optional[Sequence[float]],
    ) -> tuple[Optional[float], float]:
        """Return ``(raw_spo2, perfusion_index)``; raw is None on low perfusion."""
        cfg = self.config
        ac, dc = ac_dc(window)
        if not (np.isfinite(ac) and np.isfinite(dc)) or dc <= 0:
            return None, 0.0
        pi = ac / dc
        if pi < cfg.min_perfusion:
            logger.debug("SpO2 rejected: perfusion index %.5f", pi)
            return None, pi

        ratio = None
        if red is not None and ir is not None and len(red) >= cfg.min_samples:
            ac_red, dc_red = ac_dc(red)
            ac_ir, dc_ir = ac_dc(ir)
            if dc_red > 0 and dc_ir > 0 and ac_ir > 0:
                ratio = (ac_red / dc_red) / (ac_ir / dc_ir)
        if ratio is None:
            ratio = pi * cfg.ratio_scale
        ratio /= cfg.calibration_factor

        spo2 = float(np.polynomial.polynomial.polyval(ratio, cfg.curve))
        low, _ = cfg.valid_range
        return float(np.clip(spo2, low, cfg.realistic_max)), pi

    def _clamp(self, value: float) -> float:
        low, high = self.config.valid_range
        return float(np.clip(value, low, min(high, self.config.realistic_max)))

    def _fallback(self, timestamp: int) -> VitalEstimate[int]:
        self._last_raw = 0.0
        if self._last.value is None:
            return VitalEstimate.pending(timestamp)
        self._last = self._last.decayed(self.config.confidence_decay, timestamp)
        return self._last
