"""
Unit tests for BloodPressureEstimator.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from ppg_vitals.blood_pressure import BloodPressureEstimator, pulse_features, stiffness_score
from ppg_vitals.config import BloodPressureConfig, DetectorConfig
from ppg_vitals.extrema import detect
from ppg_vitals.models import BloodPressure, Extrema


def pulse_window(freq_hz: float = 1.2, amplitude: float = 5.0, fs: float = 30.0,
                 seconds: float = 10.0, noise: float = 0.0, seed: int = 0):
    n = int(fs * seconds)
    t = np.arange(n) / fs
    x = 100 + amplitude * np.sin(2 * np.pi * freq_hz * t)
    if noise:
        x = x + np.random.default_rng(seed).normal(0, noise, n)
    timestamps = np.round(t * 1000).astype(np.int64)
    return x, timestamps, detect(x, DetectorConfig.heart(fs))


def assert_physiological(bp: BloodPressure) -> None:
    assert 90 <= bp.systolic <= 180, f"Systolic {bp.systolic} out of range"
    assert 50 <= bp.diastolic <= 115, f"Diastolic {bp.diastolic} out of range"
    assert 20 <= bp.pulse_pressure <= 80, f"Pulse pressure {bp.pulse_pressure} out of range"


# ---------------------------------------------------------------------------
# BloodPressureEstimator tests
# ---------------------------------------------------------------------------

class TestBloodPressureEstimator:

    def test_insufficient_extrema_pending(self):
        x, ts, _ = pulse_window()
        est = BloodPressureEstimator().estimate(x, Extrema(), ts, timestamp=5)
        assert est.value is None
        assert est.confidence == 0.0
        assert est.timestamp == 5

    def test_low_quality_pending(self):
        x, ts, _ = pulse_window()
        weak = Extrema(peaks=(10, 40), valleys=(20, 50), quality=10.0)
        assert BloodPressureEstimator().estimate(x, weak, ts).value is None

    def test_clean_pulses_give_reading(self):
        x, ts, extrema = pulse_window()
        est = BloodPressureEstimator().estimate(x, extrema, ts, perfusion=0.1)
        assert est.value is not None
        assert_physiological(est.value)
        assert 0.0 < est.confidence <= 1.0

    def test_string_form(self):
        assert str(BloodPressure(120, 80)) == "120/80"

    def test_repeated_window_is_stable(self):
        estimator = BloodPressureEstimator()
        x, ts, extrema = pulse_window()
        first = estimator.estimate(x, extrema, ts).value
        for _ in range(5):
            assert estimator.estimate(x, extrema, ts).value == first

    def test_missing_data_keeps_last_with_decay(self):
        estimator = BloodPressureEstimator()
        x, ts, extrema = pulse_window()
        good = estimator.estimate(x, extrema, ts, perfusion=0.1, timestamp=100)
        later = estimator.estimate(x, Extrema(), ts, timestamp=200)
        assert later.value == good.value
        assert later.confidence == pytest.approx(good.confidence * 0.8)
        assert later.timestamp == 200

    @pytest.mark.parametrize("seed", range(5))
    def test_invariants_on_noisy_windows(self, seed):
        estimator = BloodPressureEstimator()
        for freq, amp in ((0.9, 3.0), (1.5, 8.0), (2.2, 1.0), (1.1, 20.0)):
            x, ts, extrema = pulse_window(freq, amp, noise=0.5, seed=seed)
            est = estimator.estimate(x, extrema, ts, perfusion=0.05)
            if est.value is not None:
                assert_physiological(est.value)
                assert 0.0 <= est.confidence <= 1.0

    def test_extreme_coefficients_still_constrained(self):
        config = BloodPressureConfig(stiffness_coefficients=(500.0, -500.0))
        x, ts, extrema = pulse_window()
        est = BloodPressureEstimator(config).estimate(x, extrema, ts)
        assert est.value is not None
        assert_physiological(est.value)

    def test_natural_variation_stays_in_range(self):
        config = BloodPressureConfig(natural_variation=5.0)
        estimator = BloodPressureEstimator(config, rng=np.random.default_rng(1))
        x, ts, extrema = pulse_window()
        for _ in range(10):
            assert_physiological(estimator.estimate(x, extrema, ts).value)

    def test_reset(self):
        estimator = BloodPressureEstimator()
        x, ts, extrema = pulse_window()
        estimator.estimate(x, extrema, ts)
        assert estimator.last_features is not None
        estimator.reset()
        assert estimator.last_estimate.value is None
        assert estimator.last_features is None


# ---------------------------------------------------------------------------
# Stiffness score tests
# ---------------------------------------------------------------------------

class TestStiffnessScore:

    def test_neutral_with_few_peaks(self):
        assert stiffness_score(np.zeros(50), [10, 30]) == 5.0

    def test_range(self):
        x, _, extrema = pulse_window()
        score = stiffness_score(x, extrema.peaks)
        assert 0.0 <= score <= 10.0


# ---------------------------------------------------------------------------
# Pulse feature tests
# ---------------------------------------------------------------------------

class TestPulseFeatures:

    def test_sine_features(self):
        """1.2 Hz sine: one pulse every ~833 ms, peak-to-valley ~10."""
        x, ts, extrema = pulse_window()
        features = pulse_features(x, extrema, ts)
        assert features is not None
        assert features.amplitude == pytest.approx(10.0, abs=0.5)
        assert features.transit_ms == pytest.approx(833.0, abs=20.0)
        assert features.width_ms == pytest.approx(833.0, abs=20.0), (
            f"Width {features.width_ms:.0f} ms should span one period"
        )

    def test_width_zero_without_enclosing_valleys(self):
        x = np.array([0.0, 5.0, 0.0, 5.0, 0.0, 5.0], dtype=np.float64)
        ts = np.arange(6) * 100
        features = pulse_features(x, Extrema(peaks=(1, 3), valleys=(0,)), ts)
        assert features.width_ms == 0.0
        assert features.transit_ms == pytest.approx(200.0)

    def test_none_without_amplitude(self):
        x = np.full(6, 3.0)
        ts = np.arange(6) * 100
        assert pulse_features(x, Extrema(peaks=(1, 3), valleys=(0, 2)), ts) is None

    def test_estimator_keeps_features(self):
        x, ts, extrema = pulse_window()
        estimator = BloodPressureEstimator()
        estimator.estimate(x, extrema, ts)
        assert estimator.last_features == pulse_features(x, extrema, ts)
