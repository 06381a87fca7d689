"""
Integration tests for VitalSignsProcessor.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from ppg_vitals import FrameResult, RhythmStatus, Sample, VitalSignsProcessor
from ppg_vitals.models import PENDING_PRESSURE


def ppg_stream(bpm: float = 72.0, seconds: float = 20.0, fs: float = 30.0,
               amplitude: float = 3.0, breathing_depth: float = 0.0,
               breaths_per_min: float = 15.0, channels: bool = False) -> list[Sample]:
    """
    Synthetic finger-on-lens stream: sine pulse, optional breathing modulation.
    With *channels*, red = 1.2 x value and ir = value (ratio of ratios 1).
    """
    t = np.arange(int(fs * seconds)) / fs
    envelope = 1.0 + breathing_depth * np.sin(2 * np.pi * breaths_per_min / 60.0 * t)
    values = 100 + amplitude * envelope * np.sin(2 * np.pi * bpm / 60.0 * t)
    if channels:
        return [Sample(float(v), int(round(ts * 1000)), red=1.2 * float(v), ir=float(v))
                for v, ts in zip(values, t)]
    return [Sample(float(v), int(round(ts * 1000))) for v, ts in zip(values, t)]


def run(processor: VitalSignsProcessor, samples: list[Sample]) -> list[FrameResult]:
    return [processor.process_frame(s) for s in samples]


# ---------------------------------------------------------------------------
# Start-up behaviour
# ---------------------------------------------------------------------------

class TestStartup:

    def test_first_frame_is_pending(self):
        result = VitalSignsProcessor().process_value(100.0, 0)
        assert result.bpm == 0
        assert result.spo2 == 0
        assert result.pressure == PENDING_PRESSURE
        assert result.respiration is None
        assert result.rhythm_status is RhythmStatus.LEARNING
        assert result.arrhythmia_status == "LEARNING|0"

    def test_initial_state(self):
        p = VitalSignsProcessor()
        assert p.frame_count == 0
        assert p.last_result is None
        assert p.status is RhythmStatus.LEARNING
        assert p.arrhythmia_count == 0
        assert p.buffer_fill_ratio == 0.0

    def test_buffer_fill_ratio_grows(self):
        p = VitalSignsProcessor()
        run(p, ppg_stream(seconds=5.0))
        assert p.buffer_fill_ratio == pytest.approx(0.5)

    def test_no_finger_returns_neutral_result(self):
        p = VitalSignsProcessor()
        results = [p.process_value(0.0, i * 33) for i in range(60)]
        assert all(not r.finger_detected for r in results)
        assert results[-1].bpm == 0
        assert results[-1].pressure == PENDING_PRESSURE


# ---------------------------------------------------------------------------
# Steady-state readings
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def processed():
    p = VitalSignsProcessor()
    results = run(p, ppg_stream(bpm=72.0, seconds=20.0))
    return p, results[-1]


class TestSteadyState:

    def test_heart_rate(self, processed):
        _, result = processed
        assert abs(result.bpm - 72) <= 1, f"Expected ~72 BPM, got {result.bpm}"
        assert result.bpm_confidence == pytest.approx(1.0)
        assert result.finger_detected

    def test_learning_completed_without_events(self, processed):
        p, result = processed
        assert result.rhythm_status is RhythmStatus.NORMAL
        assert result.arrhythmia_count == 0
        assert result.hrv is not None
        assert p.status is RhythmStatus.NORMAL

    def test_spo2_calibrated_on_learning_exit(self, processed):
        p, result = processed
        assert p.spo2.calibration.is_calibrated
        assert abs(result.spo2 - 97) <= 1, f"Expected ~97 %, got {result.spo2}"
        assert 0.0 < result.spo2_confidence <= 1.0

    def test_blood_pressure_reported(self, processed):
        _, result = processed
        assert result.pressure != PENDING_PRESSURE
        systolic, diastolic = (int(v) for v in result.pressure.split("/"))
        assert 90 <= systolic <= 180
        assert 50 <= diastolic <= 115
        assert 20 <= systolic - diastolic <= 80

    def test_signal_quality(self, processed):
        _, result = processed
        assert result.signal_quality > 50.0

    def test_frame_count(self, processed):
        p, _ = processed
        assert p.frame_count == 600

    def test_spo2_calibrated_from_red_ir_channels(self):
        """The offset is learnt from the ratio-of-ratios reading it is applied to."""
        p = VitalSignsProcessor()
        results = run(p, ppg_stream(bpm=72.0, seconds=20.0, channels=True))
        assert p.spo2.calibration.is_calibrated
        assert p.spo2.last_raw == pytest.approx(83.0, abs=1.0)
        assert p.spo2.calibration.offset == pytest.approx(14.0, abs=1.0)
        assert abs(results[-1].spo2 - 97) <= 1, f"Expected ~97 %, got {results[-1].spo2}"

    def test_respiration_from_modulated_stream(self):
        p = VitalSignsProcessor()
        results = run(p, ppg_stream(seconds=32.0, breathing_depth=0.1))
        breathing = results[-1].respiration
        assert breathing is not None, "No respiration reading"
        assert abs(breathing.rate - 15.0) < 3.0, f"Expected ~15/min, got {breathing.rate:.1f}"


# ---------------------------------------------------------------------------
# Robustness
# ---------------------------------------------------------------------------

class TestRobustness:

    def test_invalid_values_do_not_raise(self):
        p = VitalSignsProcessor()
        for i, v in enumerate([100.0, float("nan"), float("inf"), -1e9, 100.0]):
            assert isinstance(p.process_value(v, i * 33), FrameResult)

    def test_bad_timestamp_does_not_raise(self):
        p = VitalSignsProcessor()
        result = p.process_frame(Sample(100.0, None))
        assert result.timestamp == 0
        assert p.last_result is result

    def test_component_fault_is_contained(self, monkeypatch):
        p = VitalSignsProcessor()

        def boom(*args, **kwargs):
            raise RuntimeError("sensor glitch")

        monkeypatch.setattr(p.spo2, "estimate", boom)
        results = run(p, ppg_stream(seconds=10.0))
        assert results[-1].spo2 == 0
        assert results[-1].bpm > 0

    def test_signal_loss_resets_peak_history(self):
        p = VitalSignsProcessor()
        run(p, ppg_stream(seconds=10.0))
        assert p.tracker.peak_count > 0
        results = [p.process_value(0.0, 10_000 + i * 33) for i in range(15)]
        assert not results[-1].finger_detected
        assert p.tracker.peak_count == 0

    def test_process_value_matches_process_frame(self):
        samples = ppg_stream(seconds=8.0)
        a = run(VitalSignsProcessor(), samples)
        p = VitalSignsProcessor()
        b = [p.process_value(s.value, s.timestamp) for s in samples]
        assert a == b


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------

class TestReset:

    def test_reset_restores_initial_state(self):
        p = VitalSignsProcessor()
        run(p, ppg_stream(seconds=10.0))
        p.reset()
        assert p.frame_count == 0
        assert p.last_result is None
        assert p.status is RhythmStatus.LEARNING
        assert p.arrhythmia_count == 0
        assert p.buffer_fill_ratio == 0.0
        assert not p.spo2.calibration.is_calibrated

    def test_reset_is_idempotent(self):
        p = VitalSignsProcessor()
        run(p, ppg_stream(seconds=5.0))
        p.reset()
        p.reset()
        assert p.frame_count == 0
        assert p.status is RhythmStatus.LEARNING

    def test_reset_equals_fresh_session(self):
        samples = ppg_stream(seconds=12.0)
        reused = VitalSignsProcessor()
        run(reused, ppg_stream(bpm=90.0, seconds=7.0))
        reused.reset()
        assert run(reused, samples) == run(VitalSignsProcessor(), samples)
