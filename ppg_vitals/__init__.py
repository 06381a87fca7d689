"""
PPG Vitals – vital-signs estimation from a camera photoplethysmography stream.
Place your finger on the camera lens with the torch on; feed one brightness
value per frame and read heart rate, SpO2, blood pressure, respiration and
rhythm status back.  Indicative only, not a medical device.
"""

from .errors import InputFileError, PPGVitalsError
from .models import FrameResult, RhythmStatus, Sample
from .processor import VitalSignsProcessor

__version__ = "0.1.0"
__author__ = "ppg_vitals"

__all__ = [
    "FrameResult",
    "InputFileError",
    "PPGVitalsError",
    "RhythmStatus",
    "Sample",
    "VitalSignsProcessor",
]
