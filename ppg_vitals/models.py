"""
Record types shared by the pipeline components.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Tuple, TypeVar

T = TypeVar("T")

PENDING_PRESSURE = "--/--"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class RhythmStatus(str, Enum):
    LEARNING        = "LEARNING"
    NORMAL          = "NORMAL"
    BRADYCARDIA     = "BRADYCARDIA"
    TACHYCARDIA     = "TACHYCARDIA"
    IRREGULAR       = "IRREGULAR"
    PREMATURE_BEAT  = "PREMATURE_BEAT"


class BreathingPattern(str, Enum):
    SHALLOW     = "shallow"
    NORMAL      = "normal"
    DEEP        = "deep"
    IRREGULAR   = "irregular"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Sample:
    """One camera frame reduced to a brightness value (and optional channels)."""

    value: float
    timestamp: int                  # monotonic, milliseconds
    red: Optional[float] = None
    ir: Optional[float] = None


# ---------------------------------------------------------------------------
# Intermediate results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Extrema:
    peaks:   Tuple[int, ...] = ()
    valleys: Tuple[int, ...] = ()
    quality: float = 0.0            # 0 – 100

    @property
    def pair_count(self) -> int:
        return min(len(self.peaks), len(self.valleys))


@dataclass(frozen=True)
class VitalEstimate(Generic[T]):
    """
    Uniform output of the derived-parameter estimators.

    ``value is None`` means no reading is available yet.
    """

    value: Optional[T]
    confidence: float
    timestamp: int

    @property
    def is_valid(self) -> bool:
        return self.value is not None

    def decayed(self, factor: float, timestamp: int) -> "VitalEstimate[T]":
        """Same value with confidence multiplied by *factor*."""
        return VitalEstimate(self.value, self.confidence * factor, timestamp)

    @classmethod
    def pending(cls, timestamp: int) -> "VitalEstimate[T]":
        return cls(None, 0.0, timestamp)


@dataclass(frozen=True)
class BloodPressure:
    systolic: int
    diastolic: int

    @property
    def pulse_pressure(self) -> int:
        return self.systolic - self.diastolic

    def __str__(self) -> str:
        return f"{self.systolic}/{self.diastolic}"


@dataclass(frozen=True)
class RespiratoryReading:
    rate: float                     # breaths per minute
    amplitude: float                # relative modulation depth
    pattern: BreathingPattern


@dataclass(frozen=True)
class HrvMetrics:
    rmssd: float
    sdnn: float
    sd1: float
    sd2: float
    rr_variation: float
    premature_beat: bool
    pattern_match: bool


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RespirationSummary:
    rate: float
    pattern: BreathingPattern
    confidence: float


@dataclass(frozen=True)
class FrameResult:
    """Everything the display layer needs for one frame."""

    timestamp: int
    bpm: int = 0
    bpm_confidence: float = 0.0
    spo2: int = 0                   # 0 = insufficient data
    spo2_confidence: float = 0.0
    pressure: str = PENDING_PRESSURE
    pressure_confidence: float = 0.0
    rhythm_status: RhythmStatus = RhythmStatus.LEARNING
    arrhythmia_count: int = 0
    respiration: Optional[RespirationSummary] = None
    signal_quality: float = 0.0
    finger_detected: bool = False
    hrv: Optional[HrvMetrics] = None

    @property
    def arrhythmia_status(self) -> str:
        """Tag and counter in the ``STATUS|count`` form used by displays."""
        return f"{self.rhythm_status.value}|{self.arrhythmia_count}"
