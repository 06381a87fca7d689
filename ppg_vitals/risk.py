"""
Reference-range risk labels for surfaced readings.

The helpers are stateless; a reading of 0 (or a pending pressure) maps to
``RiskLevel.UNKNOWN``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import BloodPressure


class RiskLevel(str, Enum):
    UNKNOWN = "unknown"
    NORMAL  = "normal"
    ALERT   = "alert"
    DANGER  = "danger"


@dataclass(frozen=True)
class RiskAssessment:
    level: RiskLevel
    message: str


UNKNOWN = RiskAssessment(RiskLevel.UNKNOWN, "No reading")

# Heart rate (BPM)
HR_TACHYCARDIA = 140
HR_MILD_TACHYCARDIA = 110
HR_NORMAL_MIN = 50
HR_BRADYCARDIA = 40

# SpO2 (%)
SPO2_INSUFFICIENCY = 90
SPO2_MILD_INSUFFICIENCY = 92

# Blood pressure (mmHg)
BP_HIGH = (150, 100)
BP_MILD_HIGH = (140, 90)
BP_LOW = (110, 70)

# Respiration (breaths / min)
RESP_MIN_NORMAL = 12
RESP_MAX_NORMAL = 20
RESP_SEVERE_BRADYPNEA = 8
RESP_SEVERE_TACHYPNEA = 30
RESP_HIGH_VARIABILITY = 0.30


def assess_heart_rate(bpm: float) -> RiskAssessment:
    if bpm <= 0:
        return UNKNOWN
    if bpm >= HR_TACHYCARDIA:
        return RiskAssessment(RiskLevel.DANGER, "Tachycardia")
    if bpm >= HR_MILD_TACHYCARDIA:
        return RiskAssessment(RiskLevel.ALERT, "Mild tachycardia")
    if bpm >= HR_NORMAL_MIN:
        return RiskAssessment(RiskLevel.NORMAL, "Normal heart rate")
    if bpm >= HR_BRADYCARDIA:
        return RiskAssessment(RiskLevel.ALERT, "Bradycardia")
    return RiskAssessment(RiskLevel.DANGER, "Severe bradycardia")


def assess_spo2(spo2: float) -> RiskAssessment:
    if spo2 <= 0:
        return UNKNOWN
    if spo2 <= SPO2_INSUFFICIENCY:
        return RiskAssessment(RiskLevel.DANGER, "Respiratory insufficiency")
    if spo2 <= SPO2_MILD_INSUFFICIENCY:
        return RiskAssessment(RiskLevel.ALERT, "Mild respiratory insufficiency")
    return RiskAssessment(RiskLevel.NORMAL, "Normal oxygenation")


def assess_blood_pressure(pressure: Optional[BloodPressure]) -> RiskAssessment:
    """Danger and low pressure need both values out of range; one raised value is an alert."""
    if pressure is None or pressure.systolic <= 0 or pressure.diastolic <= 0:
        return UNKNOWN
    s, d = pressure.systolic, pressure.diastolic
    if s >= BP_HIGH[0] and d >= BP_HIGH[1]:
        return RiskAssessment(RiskLevel.DANGER, "High pressure")
    if s >= BP_MILD_HIGH[0] or d >= BP_MILD_HIGH[1]:
        return RiskAssessment(RiskLevel.ALERT, "Mildly high pressure")
    if s <= BP_LOW[0] and d <= BP_LOW[1]:
        return RiskAssessment(RiskLevel.ALERT, "Mildly low pressure")
    return RiskAssessment(RiskLevel.NORMAL, "Normal pressure")


def assess_respiration(rate: float, variability: float = 0.0) -> RiskAssessment:
    if rate <= 0:
        return UNKNOWN
    if rate <= RESP_SEVERE_BRADYPNEA:
        return RiskAssessment(RiskLevel.DANGER, "Extremely slow breathing")
    if rate >= RESP_SEVERE_TACHYPNEA:
        return RiskAssessment(RiskLevel.DANGER, "Extremely fast breathing")
    if rate < RESP_MIN_NORMAL:
        return RiskAssessment(RiskLevel.ALERT, "Slow breathing")
    if rate > RESP_MAX_NORMAL:
        return RiskAssessment(RiskLevel.ALERT, "Fast breathing")
    if variability > RESP_HIGH_VARIABILITY:
        return RiskAssessment(RiskLevel.ALERT, "Irregular breathing")
    return RiskAssessment(RiskLevel.NORMAL, "Normal breathing")
