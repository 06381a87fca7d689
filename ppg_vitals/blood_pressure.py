"""
Cuffless blood-pressure estimation from PPG pulse morphology.

Only one sensing site is available, so the pulse-transit time is approximated
by the interval between consecutive detector-confirmed peaks.  Systolic and
diastolic pressure are regressed from the normalised pulse amplitude, the
transit-time deviation from the session baseline and an arterial-stiffness
sub-score derived from the shape of the normalised pulses.

The output is smoothed against the previous estimate and constrained to
physiological ranges.  Results are indicative, not clinical-grade.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence, Tuple

import numpy as np

from .config import BloodPressureConfig
from .extrema import pair_valley
from .models import BloodPressure, Extrema, VitalEstimate

logger = logging.getLogger(__name__)

_NEUTRAL_STIFFNESS = 5.0


@dataclass(frozen=True)
class PulseFeatures:
    amplitude: float        # mean peak - valley
    width_ms: float         # mean valley-to-valley span around a peak; 0 if none
    transit_ms: float       # mean peak-to-peak interval


def stiffness_score(values: Sequence[float], peaks: Sequence[int]) -> float:
    """
    Arterial-stiffness score (0 – 10) from up to five peak-to-peak pulses.

    Each pulse is min-max normalised.  A shallow (or missing) dicrotic notch
    in the middle third and a steep decay from the peak both raise the score.
    Returns the neutral score 5 with fewer than three peaks.
    """
    if len(peaks) < 3:
        return _NEUTRAL_STIFFNESS

    x = np.asarray(values, dtype=np.float64)
    notch_scores: List[float] = []
    decay_scores: List[float] = []
    for start, end in list(zip(peaks[:-1], peaks[1:]))[:5]:
        if not 5 < end - start < 90:
            continue
        pulse = x[start:end]
        rng = float(pulse.max() - pulse.min())
        if rng <= 0:
            continue
        pulse = (pulse - pulse.min()) / rng

        first, second = len(pulse) // 3, 2 * len(pulse) // 3
        notch_depth = 0.0
        for i in range(first + 1, second - 1):
            if pulse[i] < pulse[i - 1] and pulse[i] < pulse[i + 1]:
                notch_depth = float(max(pulse[i - 1], pulse[i + 1]) - pulse[i])
                break
        # deep notch -> elastic arteries -> low score
        notch_scores.append(10.0 * (1.0 - min(1.0, notch_depth * 5.0)))

        decay = pulse[: max(2, int(len(pulse) * 0.7))]
        max_slope = float(np.max(decay[:-1] - decay[1:])) if decay.size > 1 else 0.0
        decay_scores.append(min(10.0, max(0.0, max_slope) * 50.0))

    if not notch_scores:
        return _NEUTRAL_STIFFNESS
    return float(0.6 * np.mean(notch_scores) + 0.4 * np.mean(decay_scores))


def pulse_features(
    values: Sequence[float],
    extrema: Extrema,
    timestamps: Sequence[int],
) -> Optional[PulseFeatures]:
    """
    Mean amplitude, width and transit time of the pulses in a window.

    Amplitude pairs each peak with its preceding valley (or the following one
    at the window edge).  Width spans the valleys on either side of a peak.
    Returns *None* without a usable amplitude or a positive peak interval.
    """
    x = np.asarray(values, dtype=np.float64)
    t = np.asarray(timestamps, dtype=np.float64)
    valleys = np.asarray(extrema.valleys, dtype=np.int64)

    amplitudes: List[float] = []
    widths: List[float] = []
    for p in extrema.peaks:
        v = pair_valley(p, extrema.valleys)
        if v is not None and x[p] > x[v]:
            amplitudes.append(float(x[p] - x[v]))
        i = int(np.searchsorted(valleys, p))
        if 0 < i < valleys.size:
            widths.append(float(t[valleys[i]] - t[valleys[i - 1]]))

    transit = np.diff(t[list(extrema.peaks)])
    transit = transit[transit > 0]
    if not amplitudes or transit.size == 0:
        return None
    return PulseFeatures(
        amplitude=float(np.mean(amplitudes)),
        width_ms=float(np.mean(widths)) if widths else 0.0,
        transit_ms=float(np.mean(transit)),
    )


class BloodPressureEstimator:
    """
    Pulse-morphology blood-pressure regressor with history smoothing.

    Parameters
    ----------
    config:
        Base pressures, regression coefficients, clamps and smoothing weight.
    rng:
        Random generator used only when ``config.natural_variation`` > 0.
    """

    def __init__(
        self,
        config: BloodPressureConfig | None = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or BloodPressureConfig()
        self._rng = rng or np.random.default_rng()
        self._systolic_history: Deque[float] = deque(maxlen=self.config.stability_size)
        self._init_state()

    def _init_state(self) -> None:
        self._systolic_history.clear()
        self._smoothed: Optional[Tuple[float, float]] = None
        self._transit_baseline: float = 0.0
        self._amplitude_reference: float = 0.0
        self._last: VitalEstimate[BloodPressure] = VitalEstimate.pending(0)
        self._last_features: Optional[PulseFeatures] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def estimate(
        self,
        window: Sequence[float],
        extrema: Extrema,
        timestamps: Sequence[int],
        perfusion: float = 0.0,
        timestamp: int = 0,
    ) -> VitalEstimate[BloodPressure]:
        """Return the current pressure estimate for the analysed window."""
        cfg = self.config
        if (extrema.pair_count < 2
                or extrema.quality < cfg.min_quality
                or len(window) != len(timestamps)):
            return self._fallback(timestamp)

        features = pulse_features(window, extrema, timestamps)
        if features is None:
            return self._fallback(timestamp)
        self._last_features = features
        amplitude, transit = features.amplitude, features.transit_ms

        if self._amplitude_reference <= 0:
            self._amplitude_reference = amplitude
        if self._transit_baseline <= 0:
            self._transit_baseline = transit
        else:
            a = cfg.transit_baseline_alpha
            self._transit_baseline = (1 - a) * self._transit_baseline + a * transit

        amp_norm = amplitude / self._amplitude_reference - 1.0
        ptt_dev = (self._transit_baseline - transit) / self._transit_baseline
        stiff = stiffness_score(window, extrema.peaks) - _NEUTRAL_STIFFNESS

        amp_s, amp_d = cfg.amplitude_coefficients
        ptt_s, ptt_d = cfg.transit_coefficients
        st_s, st_d = cfg.stiffness_coefficients
        systolic = cfg.base_systolic - amp_s * amp_norm + ptt_s * ptt_dev + st_s * stiff
        diastolic = cfg.base_diastolic - amp_d * amp_norm + ptt_d * ptt_dev + st_d * stiff

        if cfg.natural_variation > 0:
            systolic += float(self._rng.uniform(-cfg.natural_variation, cfg.natural_variation))
            diastolic += float(self._rng.uniform(-cfg.natural_variation, cfg.natural_variation))

        if self._smoothed is not None:
            w = cfg.history_weight
            systolic = w * self._smoothed[0] + (1 - w) * systolic
            diastolic = w * self._smoothed[1] + (1 - w) * diastolic

        pressure = self._constrain(systolic, diastolic)
        self._smoothed = (float(pressure.systolic), float(pressure.diastolic))
        self._systolic_history.append(float(pressure.systolic))

        variance = float(np.var(self._systolic_history)) if len(self._systolic_history) > 1 else 0.0
        stability = 1.0 / (1.0 + variance / 25.0)
        confidence = (
            0.4 * extrema.quality / 100.0
            + 0.3 * min(1.0, perfusion / cfg.good_perfusion)
            + 0.3 * stability
        )
        self._last = VitalEstimate(pressure, float(np.clip(confidence, 0.0, 1.0)), timestamp)
        logger.debug("BP %s (amp %.3f, ptt %.0f ms, width %.0f ms, stiffness %.1f)",
                     pressure, amp_norm, transit, features.width_ms,
                     stiff + _NEUTRAL_STIFFNESS)
        return self._last

    @property
    def last_estimate(self) -> VitalEstimate[BloodPressure]:
        return self._last

    @property
    def last_features(self) -> Optional[PulseFeatures]:
        """Pulse features behind the latest accepted estimate."""
        return self._last_features

    def reset(self) -> None:
        self._init_state()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _constrain(self, systolic: float, diastolic: float) -> BloodPressure:
        cfg = self.config
        sys_lo, sys_hi = cfg.systolic_range
        dia_lo, dia_hi = cfg.diastolic_range
        pp_lo, pp_hi = cfg.pulse_pressure_range

        s = int(round(float(np.clip(systolic, sys_lo, sys_hi))))
        d = int(round(float(np.clip(diastolic, dia_lo, dia_hi))))
        d = min(max(d, s - pp_hi), s - pp_lo)
        d = min(max(d, dia_lo), dia_hi)
        return BloodPressure(s, d)

    def _fallback(self, timestamp: int) -> VitalEstimate[BloodPressure]:
        if self._last.value is None:
            return VitalEstimate.pending(timestamp)
        self._last = self._last.decayed(self.config.confidence_decay, timestamp)
        return self._last
