"""
Unit tests for the shared extrema detector.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np

from ppg_vitals.config import HEART_DETECTOR, RESPIRATION_DETECTOR, DetectorConfig
from ppg_vitals.extrema import detect, pair_valley
from ppg_vitals.models import Extrema


def sine(freq_hz: float, fs: float = 30.0, seconds: float = 10.0,
         amplitude: float = 5.0, offset: float = 100.0) -> np.ndarray:
    t = np.arange(int(fs * seconds)) / fs
    return offset + amplitude * np.sin(2 * np.pi * freq_hz * t)


# ---------------------------------------------------------------------------
# detect() tests
# ---------------------------------------------------------------------------

class TestDetect:

    def test_short_window_is_empty(self):
        assert detect([1.0, 2.0, 3.0, 2.0]) == Extrema()

    def test_flat_window_is_empty(self):
        result = detect(np.full(100, 80.0))
        assert result.peaks == ()
        assert result.valleys == ()
        assert result.quality == 0.0

    def test_non_finite_window_is_empty(self):
        x = sine(1.2)
        x[50] = np.nan
        assert detect(x) == Extrema()

    def test_sine_peaks_found(self):
        """1.2 Hz sine at 30 fps: one peak every 25 samples."""
        result = detect(sine(1.2), DetectorConfig.heart(30.0))
        assert 11 <= len(result.peaks) <= 13, f"Unexpected peak count {len(result.peaks)}"
        assert 11 <= len(result.valleys) <= 13
        intervals = np.diff(result.peaks)
        assert np.all(np.abs(intervals - 25) <= 1), f"Irregular intervals {intervals}"

    def test_clean_signal_quality_high(self):
        result = detect(sine(1.2))
        assert result.quality > 80.0, f"Quality too low: {result.quality:.1f}"
        assert 0.0 <= result.quality <= 100.0

    def test_min_distance_respected(self):
        config = DetectorConfig.heart(30.0)
        rng = np.random.default_rng(3)
        x = sine(1.5) + rng.normal(0, 1.0, 300)
        result = detect(x, config)
        assert np.all(np.diff(result.peaks) >= config.min_distance)
        assert np.all(np.diff(result.valleys) >= config.min_distance)

    def test_peaks_above_valleys(self):
        x = sine(1.0)
        result = detect(x)
        for p in result.peaks:
            v = pair_valley(p, result.valleys)
            assert v is None or x[p] > x[v]

    def test_pure_function(self):
        x = sine(1.2)
        copy = x.copy()
        assert detect(x) == detect(x)
        np.testing.assert_array_equal(x, copy)

    def test_respiration_preset_finds_breaths(self):
        """15 breaths/min over 30 s: one peak every 120 samples."""
        x = sine(0.25, seconds=30.0)
        result = detect(x, DetectorConfig.respiration(30.0))
        assert 6 <= len(result.peaks) <= 8, f"Unexpected breath count {len(result.peaks)}"

    def test_presets_at_default_rate(self):
        assert HEART_DETECTOR == DetectorConfig.heart()
        assert RESPIRATION_DETECTOR.min_distance == 72
        assert HEART_DETECTOR.min_distance == 9


# ---------------------------------------------------------------------------
# pair_valley() tests
# ---------------------------------------------------------------------------

class TestPairValley:

    def test_prefers_preceding(self):
        assert pair_valley(10, [3, 8, 15]) == 8

    def test_falls_back_to_following(self):
        assert pair_valley(2, [5, 9]) == 5

    def test_none_without_valleys(self):
        assert pair_valley(4, []) is None
