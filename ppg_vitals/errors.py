"""Exceptions raised outside the per-frame pipeline (which never raises)."""


class PPGVitalsError(Exception):
    """Base class for ppg_vitals errors."""


class InputFileError(PPGVitalsError):
    """A recorded sample file is missing, unreadable or malformed."""
