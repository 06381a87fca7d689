"""
Pipeline coordinator.

Every frame flows through the same path:

    raw value -> SignalConditioner -> rolling windows -> extrema detector
              -> heart-rate tracker -> arrhythmia classifier
              -> SpO2 / blood pressure / respiration estimators
              -> FrameResult

The coordinator owns all state.  The learning phase of the arrhythmia
classifier doubles as the SpO2 calibration period: raw SpO2 readings are
collected while the classifier learns and the calibration offset is committed
on the transition to monitoring.

``process_frame`` never raises; a failing component is logged and replaced by
its neutral result for that frame.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .arrhythmia import ArrhythmiaClassifier, RhythmResult
from .blood_pressure import BloodPressureEstimator
from .buffers import RollingWindow
from .conditioner import SignalConditioner
from .config import DetectorConfig, ProcessorConfig
from .extrema import detect
from .finger_detector import FingerDetector
from .heart_rate import BpmSmoother, HeartRateResult, HeartRateTracker
from .models import (
    PENDING_PRESSURE,
    BloodPressure,
    Extrema,
    FrameResult,
    RespirationSummary,
    RespiratoryReading,
    RhythmStatus,
    Sample,
    VitalEstimate,
)
from .respiration import RespiratoryRateEstimator
from .spo2 import SpO2Estimator, perfusion_index

logger = logging.getLogger(__name__)


class VitalSignsProcessor:
    """
    Per-frame vital-signs estimator.

    Parameters
    ----------
    config:
        Component configuration bundle.  Defaults assume ~30 fps.
    rng:
        Random generator shared by the estimators' optional jitter.  Only
        used when a ``natural_variation`` knob is enabled.
    """

    def __init__(
        self,
        config: ProcessorConfig | None = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or ProcessorConfig()
        cfg = self.config
        rng = rng or np.random.default_rng()

        self.conditioner = SignalConditioner(cfg.conditioner)
        self.signal_window = RollingWindow(cfg.signal_window)
        self.respiration_window = RollingWindow(cfg.respiration_window)
        self.finger = FingerDetector(cfg.finger)
        self.tracker = HeartRateTracker(cfg.heart_rate)
        self.smoother = BpmSmoother(cfg.heart_rate.smoothing_alpha)
        self.classifier = ArrhythmiaClassifier(cfg.arrhythmia)
        self.spo2 = SpO2Estimator(cfg.spo2, rng)
        self.blood_pressure = BloodPressureEstimator(cfg.blood_pressure, rng)
        self.respiration = RespiratoryRateEstimator(cfg.respiration)
        self._init_state()

    def _init_state(self) -> None:
        self._frame_count: int = 0
        self._finger_present: bool = False
        self._last_result: Optional[FrameResult] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_frame(self, sample: Sample) -> FrameResult:
        """Feed one sample and return the merged readings for this frame."""
        try:
            result = self._process(sample)
        except Exception as e:
            logger.warning("Frame processing failed: %s", e)
            result = FrameResult(
                timestamp=self._safe_timestamp(sample),
                rhythm_status=self.classifier.status,
                arrhythmia_count=self.classifier.count,
            )
        self._last_result = result
        return result

    def process_value(
        self,
        value: float,
        timestamp: int,
        red: Optional[float] = None,
        ir: Optional[float] = None,
    ) -> FrameResult:
        return self.process_frame(Sample(value, timestamp, red, ir))

    # Calibration ------------------------------------------------------

    def add_calibration_sample(self, value: float) -> None:
        self.spo2.add_calibration_sample(value)

    def calibrate(self) -> bool:
        return self.spo2.calibrate()

    def set_reference_value(self, measured: float) -> None:
        self.spo2.set_reference_value(measured)

    # State ------------------------------------------------------------

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def status(self) -> RhythmStatus:
        return self.classifier.status

    @property
    def arrhythmia_count(self) -> int:
        return self.classifier.count

    @property
    def last_result(self) -> Optional[FrameResult]:
        return self._last_result

    @property
    def buffer_fill_ratio(self) -> float:
        """How full the heart-rate window is (0 – 1)."""
        return self.signal_window.fill_ratio

    def reset(self) -> None:
        """Drop every buffer, baseline and counter; re-enter the learning phase."""
        self.conditioner.reset()
        self.signal_window.clear()
        self.respiration_window.clear()
        self.finger.reset()
        self.tracker.reset()
        self.smoother.reset()
        self.classifier.reset()
        self.spo2.reset()
        self.blood_pressure.reset()
        self.respiration.reset()
        self._init_state()
        logger.info("Processor reset")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _process(self, sample: Sample) -> FrameResult:
        cfg = self.config
        self._frame_count += 1
        ts = int(sample.timestamp)

        value = self.conditioner.condition(sample.value)
        conditioned = Sample(value, ts, sample.red, sample.ir)
        self.signal_window.append(conditioned)
        self.respiration_window.append(conditioned)

        if not self._update_finger(sample):
            return FrameResult(
                timestamp=ts,
                rhythm_status=self.classifier.status,
                arrhythmia_count=self.classifier.count,
            )

        values = self.signal_window.values()
        times = self.signal_window.timestamps()
        fs = self.signal_window.sampling_rate(cfg.fps)

        extrema = self._detect(values, fs)
        heart = self._update_heart_rate(extrema, times)
        bpm = self.smoother.smooth(heart.bpm)
        spo2 = self._update_spo2(values, ts)
        rhythm = self._update_rhythm(heart, ts)

        if self._frame_count % cfg.bp_interval == 0:
            pressure = self._update_blood_pressure(values, extrema, times, ts)
        else:
            pressure = self.blood_pressure.last_estimate

        if self._frame_count % cfg.respiration_interval == 0:
            breathing = self._update_respiration(ts)
        else:
            breathing = self.respiration.last_estimate

        return FrameResult(
            timestamp=ts,
            bpm=bpm,
            bpm_confidence=heart.confidence,
            spo2=spo2.value if spo2.value is not None else 0,
            spo2_confidence=spo2.confidence,
            pressure=str(pressure.value) if pressure.is_valid else PENDING_PRESSURE,
            pressure_confidence=pressure.confidence,
            rhythm_status=rhythm.status,
            arrhythmia_count=rhythm.count,
            respiration=self._summary(breathing),
            signal_quality=extrema.quality,
            finger_detected=True,
            hrv=rhythm.metrics,
        )

    def _update_finger(self, sample: Sample) -> bool:
        present = self.finger.update(sample)
        if self._finger_present and not present:
            self.tracker.reset_detection()
            self.smoother.reset()
        self._finger_present = present
        return present

    def _detect(self, values: np.ndarray, fs: float) -> Extrema:
        try:
            return detect(values, DetectorConfig.heart(fs))
        except Exception as e:
            logger.warning("Extrema detection failed: %s", e)
            return Extrema()

    def _update_heart_rate(self, extrema: Extrema, times: np.ndarray) -> HeartRateResult:
        try:
            return self.tracker.update(times[list(extrema.peaks)].tolist())
        except Exception as e:
            logger.warning("Heart-rate update failed: %s", e)
            return HeartRateResult()

    def _update_spo2(self, values: np.ndarray, ts: int) -> VitalEstimate[int]:
        try:
            estimate = self.spo2.estimate(
                values,
                timestamp=ts,
                red=self.signal_window.channel("red"),
                ir=self.signal_window.channel("ir"),
            )
            # calibrate on the same channel path the estimate used
            if self.classifier.is_learning and self.spo2.last_raw > 0:
                self.spo2.add_calibration_sample(self.spo2.last_raw)
            return estimate
        except Exception as e:
            logger.warning("SpO2 estimation failed: %s", e)
            return VitalEstimate.pending(ts)

    def _update_rhythm(self, heart: HeartRateResult, ts: int) -> RhythmResult:
        was_learning = self.classifier.is_learning
        try:
            rhythm = self.classifier.update(heart.new_intervals, ts, bpm=heart.bpm)
        except Exception as e:
            logger.warning("Rhythm classification failed: %s", e)
            return RhythmResult(status=self.classifier.status, count=self.classifier.count)

        if was_learning and not self.classifier.is_learning:
            if not self.spo2.calibrate():
                logger.info("SpO2 calibration skipped: not enough samples")
        return rhythm

    def _update_blood_pressure(
        self,
        values: np.ndarray,
        extrema: Extrema,
        times: np.ndarray,
        ts: int,
    ) -> VitalEstimate[BloodPressure]:
        try:
            return self.blood_pressure.estimate(
                values, extrema, times, perfusion=perfusion_index(values), timestamp=ts,
            )
        except Exception as e:
            logger.warning("Blood-pressure estimation failed: %s", e)
            return VitalEstimate.pending(ts)

    def _update_respiration(self, ts: int) -> VitalEstimate[RespiratoryReading]:
        try:
            return self.respiration.estimate(
                self.respiration_window.values(), self.respiration_window.timestamps(),
            )
        except Exception as e:
            logger.warning("Respiration estimation failed: %s", e)
            return VitalEstimate.pending(ts)

    @staticmethod
    def _summary(
        estimate: VitalEstimate[RespiratoryReading],
    ) -> Optional[RespirationSummary]:
        reading = estimate.value
        if reading is None:
            return None
        return RespirationSummary(reading.rate, reading.pattern, estimate.confidence)

    @staticmethod
    def _safe_timestamp(sample: Sample) -> int:
        try:
            return int(sample.timestamp)
        except (TypeError, ValueError, AttributeError):
            return 0
