"""
Tuning constants and per-component configuration.

Every threshold used by the pipeline lives here as a named constant so it can
be tuned and tested on its own.  The dataclasses below group the constants per
component; :class:`ProcessorConfig` bundles them for the coordinator.

Values assume a camera stream of roughly 30 frames per second with the finger
held over the lens and the torch switched on.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

# ---------------------------------------------------------------------------
# Stream / windows
# ---------------------------------------------------------------------------

DEFAULT_FPS = 30.0
SIGNAL_WINDOW_SIZE = 300            # 10 s at 30 Hz
RESPIRATION_WINDOW_SIZE = 900       # 30 s at 30 Hz
RR_WINDOW_SIZE = 8                  # intervals used for HRV metrics
RR_HISTORY_SIZE = 20                # long-term RR / peak history

# ---------------------------------------------------------------------------
# Signal conditioner
# ---------------------------------------------------------------------------

SMA_WINDOW = 3
EMA_ALPHA: Optional[float] = None   # single-pole low-pass, off by default

# ---------------------------------------------------------------------------
# Extrema detector
# ---------------------------------------------------------------------------

HEART_THRESHOLD_K = 0.8
HEART_MIN_PEAK_DISTANCE_MS = 300.0  # 200 BPM
HEART_LOCAL_WINDOW_MS = 1000.0
HEART_NOMINAL_INTERVAL_MS = 750.0   # 80 BPM, used for peak density

RESPIRATION_THRESHOLD_K = 0.3
RESPIRATION_MIN_PEAK_DISTANCE_MS = 2400.0   # 25 breaths/min
RESPIRATION_LOCAL_WINDOW_MS = 6000.0
RESPIRATION_NOMINAL_INTERVAL_MS = 4000.0    # 15 breaths/min

MIN_PAIR_AMPLITUDE_RATIO = 0.25     # fraction of mean peak-valley amplitude

# ---------------------------------------------------------------------------
# Heart-rate tracker
# ---------------------------------------------------------------------------

MIN_BPM = 40
MAX_BPM = 200
RR_VALID_RANGE_MS = (300.0, 1700.0)
MEDIAN_TOLERANCE = 0.25             # ±25 % around the median interval
MIN_VALID_INTERVALS = 3
BPM_SMOOTHING_ALPHA = 0.25

# ---------------------------------------------------------------------------
# Arrhythmia classifier
# ---------------------------------------------------------------------------

LEARNING_PERIOD_MS = 5000
MIN_LEARNING_BEATS = 5
LEARNING_CONSISTENCY = 0.25
BRADYCARDIA_BPM = 50
TACHYCARDIA_BPM = 100
PREMATURE_RATIO = 0.75
COMPENSATORY_RATIO = 1.2
RR_VARIATION_THRESHOLD = 0.20
SD1_THRESHOLD_MS = 60.0
SD1_SD2_RATIO_THRESHOLD = 0.8
EVENT_DEBOUNCE_MS = 1000

# ---------------------------------------------------------------------------
# SpO2
# ---------------------------------------------------------------------------

SPO2_MIN_SAMPLES = 20
SPO2_RANGE = (70, 100)
SPO2_REALISTIC_MAX = 98
SPO2_MIN_PERFUSION = 0.001
SPO2_GOOD_PERFUSION = 0.02
SPO2_RATIO_SCALE = 25.0             # single-channel perfusion -> ratio R
SPO2_CALIBRATION_FACTOR = 1.05
# SpO2 = c0 + c1*R + c2*R^2 (Maxim reference curve)
SPO2_CURVE: Tuple[float, ...] = (94.845, 30.354, -45.060)
SPO2_TARGET_BASELINE = 97.0
SPO2_SMOOTHING_SIZE = 5
SPO2_CALIBRATION_SIZE = 20
SPO2_MIN_CALIBRATION_SAMPLES = 5
CONFIDENCE_DECAY = 0.8

# ---------------------------------------------------------------------------
# Blood pressure
# ---------------------------------------------------------------------------

BP_BASE_SYSTOLIC = 120.0
BP_BASE_DIASTOLIC = 80.0
BP_SYSTOLIC_RANGE = (90, 180)
BP_DIASTOLIC_RANGE = (50, 115)
BP_PULSE_PRESSURE_RANGE = (20, 80)
BP_HISTORY_WEIGHT = 0.75
BP_MIN_QUALITY = 30.0
BP_AMPLITUDE_COEFFICIENTS = (15.0, 8.0)     # systolic, diastolic
BP_TRANSIT_COEFFICIENTS = (40.0, 25.0)
BP_STIFFNESS_COEFFICIENTS = (3.0, 2.0)
BP_TRANSIT_BASELINE_ALPHA = 0.05
BP_GOOD_PERFUSION = 0.02

# ---------------------------------------------------------------------------
# Respiration
# ---------------------------------------------------------------------------

RESP_MIN_SECONDS = 15.0
RESP_ENVELOPE_SECONDS = 1.0
RESP_LOWPASS_HZ = 0.4
RESP_RATE_RANGE = (8.0, 25.0)
RESP_MIN_CYCLES = 3
RESP_IRREGULAR_CV = 0.25
RESP_SHALLOW_DEPTH = 0.10
RESP_DEEP_DEPTH = 0.35
RESP_SMOOTHING_ALPHA = 0.3
RESP_WAVELET = "sym4"
RESP_TREND_HZ = 0.12                # wavelet baseline cutoff, below 8 breaths/min

# ---------------------------------------------------------------------------
# Finger / signal presence
# ---------------------------------------------------------------------------

FINGER_MIN_BRIGHTNESS = 5.0
FINGER_MAX_BRIGHTNESS = 250.0
FINGER_RED_DOMINANCE = 1.05
FINGER_MIN_PULSATILE_RATIO = 0.0005
FINGER_LOW_SIGNAL_FRAMES = 10
FINGER_SPAN_WINDOW = 30


@dataclass(frozen=True)
class ConditionerConfig:
    window: int = SMA_WINDOW
    ema_alpha: Optional[float] = EMA_ALPHA
    valid_range: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class DetectorConfig:
    """
    Extrema detector parameters, all distances in samples.

    Use :meth:`for_rate` to build one from the millisecond constants for a
    given sampling rate.
    """

    threshold_k: float = HEART_THRESHOLD_K
    min_distance: int = 9
    local_half_window: int = 15
    nominal_interval: int = 22
    min_amplitude_ratio: float = MIN_PAIR_AMPLITUDE_RATIO

    @classmethod
    def for_rate(
        cls,
        fs: float,
        threshold_k: float = HEART_THRESHOLD_K,
        min_distance_ms: float = HEART_MIN_PEAK_DISTANCE_MS,
        local_window_ms: float = HEART_LOCAL_WINDOW_MS,
        nominal_interval_ms: float = HEART_NOMINAL_INTERVAL_MS,
        min_amplitude_ratio: float = MIN_PAIR_AMPLITUDE_RATIO,
    ) -> "DetectorConfig":
        fs = fs if fs > 0 else DEFAULT_FPS
        return cls(
            threshold_k=threshold_k,
            min_distance=max(1, int(round(min_distance_ms * fs / 1000.0))),
            local_half_window=max(2, int(round(local_window_ms * fs / 2000.0))),
            nominal_interval=max(1, int(round(nominal_interval_ms * fs / 1000.0))),
            min_amplitude_ratio=min_amplitude_ratio,
        )

    @classmethod
    def heart(cls, fs: float = DEFAULT_FPS) -> "DetectorConfig":
        return cls.for_rate(fs)

    @classmethod
    def respiration(cls, fs: float = DEFAULT_FPS) -> "DetectorConfig":
        return cls.for_rate(
            fs,
            threshold_k=RESPIRATION_THRESHOLD_K,
            min_distance_ms=RESPIRATION_MIN_PEAK_DISTANCE_MS,
            local_window_ms=RESPIRATION_LOCAL_WINDOW_MS,
            nominal_interval_ms=RESPIRATION_NOMINAL_INTERVAL_MS,
        )


HEART_DETECTOR = DetectorConfig.heart()
RESPIRATION_DETECTOR = DetectorConfig.respiration()


@dataclass(frozen=True)
class HeartRateConfig:
    min_bpm: float = MIN_BPM
    max_bpm: float = MAX_BPM
    rr_valid_range_ms: Tuple[float, float] = RR_VALID_RANGE_MS
    median_tolerance: float = MEDIAN_TOLERANCE
    min_valid_intervals: int = MIN_VALID_INTERVALS
    history_size: int = RR_HISTORY_SIZE
    min_peak_spacing_ms: float = HEART_MIN_PEAK_DISTANCE_MS
    smoothing_alpha: float = BPM_SMOOTHING_ALPHA


@dataclass(frozen=True)
class ArrhythmiaConfig:
    learning_period_ms: int = LEARNING_PERIOD_MS
    min_learning_beats: int = MIN_LEARNING_BEATS
    learning_consistency: float = LEARNING_CONSISTENCY
    rr_window: int = RR_WINDOW_SIZE
    history_size: int = RR_HISTORY_SIZE
    bradycardia_bpm: float = BRADYCARDIA_BPM
    tachycardia_bpm: float = TACHYCARDIA_BPM
    premature_ratio: float = PREMATURE_RATIO
    compensatory_ratio: float = COMPENSATORY_RATIO
    rr_variation_threshold: float = RR_VARIATION_THRESHOLD
    sd1_threshold_ms: float = SD1_THRESHOLD_MS
    sd1_sd2_ratio_threshold: float = SD1_SD2_RATIO_THRESHOLD
    debounce_ms: int = EVENT_DEBOUNCE_MS


@dataclass(frozen=True)
class SpO2Config:
    min_samples: int = SPO2_MIN_SAMPLES
    valid_range: Tuple[int, int] = SPO2_RANGE
    realistic_max: int = SPO2_REALISTIC_MAX
    min_perfusion: float = SPO2_MIN_PERFUSION
    good_perfusion: float = SPO2_GOOD_PERFUSION
    ratio_scale: float = SPO2_RATIO_SCALE
    calibration_factor: float = SPO2_CALIBRATION_FACTOR
    curve: Tuple[float, ...] = SPO2_CURVE
    target_baseline: float = SPO2_TARGET_BASELINE
    smoothing_size: int = SPO2_SMOOTHING_SIZE
    calibration_size: int = SPO2_CALIBRATION_SIZE
    min_calibration_samples: int = SPO2_MIN_CALIBRATION_SAMPLES
    confidence_decay: float = CONFIDENCE_DECAY
    # Random +/- jitter added to surfaced values; 0 disables it.
    natural_variation: float = 0.0


@dataclass(frozen=True)
class BloodPressureConfig:
    base_systolic: float = BP_BASE_SYSTOLIC
    base_diastolic: float = BP_BASE_DIASTOLIC
    systolic_range: Tuple[int, int] = BP_SYSTOLIC_RANGE
    diastolic_range: Tuple[int, int] = BP_DIASTOLIC_RANGE
    pulse_pressure_range: Tuple[int, int] = BP_PULSE_PRESSURE_RANGE
    history_weight: float = BP_HISTORY_WEIGHT
    min_quality: float = BP_MIN_QUALITY
    amplitude_coefficients: Tuple[float, float] = BP_AMPLITUDE_COEFFICIENTS
    transit_coefficients: Tuple[float, float] = BP_TRANSIT_COEFFICIENTS
    stiffness_coefficients: Tuple[float, float] = BP_STIFFNESS_COEFFICIENTS
    transit_baseline_alpha: float = BP_TRANSIT_BASELINE_ALPHA
    good_perfusion: float = BP_GOOD_PERFUSION
    confidence_decay: float = CONFIDENCE_DECAY
    stability_size: int = 10
    natural_variation: float = 0.0


@dataclass(frozen=True)
class RespirationConfig:
    min_seconds: float = RESP_MIN_SECONDS
    envelope_seconds: float = RESP_ENVELOPE_SECONDS
    lowpass_hz: float = RESP_LOWPASS_HZ
    filter_order: int = 2
    rate_range: Tuple[float, float] = RESP_RATE_RANGE
    min_cycles: int = RESP_MIN_CYCLES
    irregular_cv: float = RESP_IRREGULAR_CV
    shallow_depth: float = RESP_SHALLOW_DEPTH
    deep_depth: float = RESP_DEEP_DEPTH
    smoothing_alpha: float = RESP_SMOOTHING_ALPHA
    wavelet: str = RESP_WAVELET
    trend_hz: float = RESP_TREND_HZ


@dataclass(frozen=True)
class FingerConfig:
    min_brightness: float = FINGER_MIN_BRIGHTNESS
    max_brightness: float = FINGER_MAX_BRIGHTNESS
    red_dominance: float = FINGER_RED_DOMINANCE
    min_pulsatile_ratio: float = FINGER_MIN_PULSATILE_RATIO
    low_signal_frames: int = FINGER_LOW_SIGNAL_FRAMES
    span_window: int = FINGER_SPAN_WINDOW


@dataclass(frozen=True)
class ProcessorConfig:
    """Bundle of component configs owned by the pipeline coordinator."""

    fps: float = DEFAULT_FPS
    signal_window: int = SIGNAL_WINDOW_SIZE
    respiration_window: int = RESPIRATION_WINDOW_SIZE
    bp_interval: int = 1            # frames between blood-pressure updates
    respiration_interval: int = 15  # frames between respiration updates
    conditioner: ConditionerConfig = field(default_factory=ConditionerConfig)
    heart_rate: HeartRateConfig = field(default_factory=HeartRateConfig)
    arrhythmia: ArrhythmiaConfig = field(default_factory=ArrhythmiaConfig)
    spo2: SpO2Config = field(default_factory=SpO2Config)
    blood_pressure: BloodPressureConfig = field(default_factory=BloodPressureConfig)
    respiration: RespirationConfig = field(default_factory=RespirationConfig)
    finger: FingerConfig = field(default_factory=FingerConfig)

    def with_learning_period(self, learning_period_ms: int) -> "ProcessorConfig":
        return replace(
            self, arrhythmia=replace(self.arrhythmia, learning_period_ms=learning_period_ms)
        )
