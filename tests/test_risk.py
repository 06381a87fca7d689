"""
Unit tests for the reference-range risk helpers.
Run with:  pytest tests/
"""

from __future__ import annotations

import pytest

from ppg_vitals.models import BloodPressure
from ppg_vitals.risk import (
    RiskLevel,
    assess_blood_pressure,
    assess_heart_rate,
    assess_respiration,
    assess_spo2,
)


class TestRisk:

    @pytest.mark.parametrize("bpm, level", [
        (0, RiskLevel.UNKNOWN),
        (35, RiskLevel.DANGER),
        (45, RiskLevel.ALERT),
        (72, RiskLevel.NORMAL),
        (120, RiskLevel.ALERT),
        (150, RiskLevel.DANGER),
    ])
    def test_heart_rate(self, bpm, level):
        assert assess_heart_rate(bpm).level is level

    @pytest.mark.parametrize("spo2, level", [
        (0, RiskLevel.UNKNOWN),
        (88, RiskLevel.DANGER),
        (91, RiskLevel.ALERT),
        (97, RiskLevel.NORMAL),
    ])
    def test_spo2(self, spo2, level):
        assert assess_spo2(spo2).level is level

    @pytest.mark.parametrize("pressure, level", [
        (None, RiskLevel.UNKNOWN),
        (BloodPressure(160, 105), RiskLevel.DANGER),
        (BloodPressure(142, 92), RiskLevel.ALERT),
        (BloodPressure(120, 80), RiskLevel.NORMAL),
        (BloodPressure(105, 65), RiskLevel.ALERT),
        (BloodPressure(160, 80), RiskLevel.ALERT),
    ])
    def test_blood_pressure(self, pressure, level):
        assert assess_blood_pressure(pressure).level is level

    @pytest.mark.parametrize("rate, variability, level", [
        (0, 0.0, RiskLevel.UNKNOWN),
        (6, 0.0, RiskLevel.DANGER),
        (32, 0.0, RiskLevel.DANGER),
        (11, 0.0, RiskLevel.ALERT),
        (22, 0.0, RiskLevel.ALERT),
        (15, 0.0, RiskLevel.NORMAL),
        (15, 0.4, RiskLevel.ALERT),
    ])
    def test_respiration(self, rate, variability, level):
        assert assess_respiration(rate, variability).level is level

    def test_messages_not_empty(self):
        assert assess_heart_rate(72).message
        assert assess_respiration(15).message
