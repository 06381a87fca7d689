"""
Per-sample PPG conditioning.

Each raw brightness value is sanitised (NaN / infinite / out-of-range values
are replaced by the previous valid value) and smoothed with a short simple
moving average, optionally followed by a single-pole low-pass stage.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Deque

from .config import ConditionerConfig

logger = logging.getLogger(__name__)


class SignalConditioner:
    """
    Streaming smoother for the raw PPG brightness value.

    Parameters
    ----------
    config:
        Window length, optional EMA coefficient and optional valid input range.
    """

    def __init__(self, config: ConditionerConfig | None = None) -> None:
        self.config = config or ConditionerConfig()
        if self.config.window < 1:
            raise ValueError("conditioner window must be >= 1")
        self._window: Deque[float] = deque(maxlen=self.config.window)
        self._last_valid: float = 0.0
        self._ema: float | None = None
        self._invalid_count: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def condition(self, raw: float) -> float:
        """Return the smoothed value for *raw*."""
        value = self._sanitise(raw)
        self._window.append(value)
        smoothed = sum(self._window) / len(self._window)

        alpha = self.config.ema_alpha
        if alpha is not None:
            if self._ema is None:
                self._ema = smoothed
            else:
                self._ema = alpha * smoothed + (1.0 - alpha) * self._ema
            smoothed = self._ema
        return smoothed

    @property
    def invalid_count(self) -> int:
        """Number of inputs replaced since the last reset."""
        return self._invalid_count

    def reset(self) -> None:
        self._window.clear()
        self._last_valid = 0.0
        self._ema = None
        self._invalid_count = 0

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _sanitise(self, raw: float) -> float:
        try:
            value = float(raw)
        except (TypeError, ValueError):
            value = math.nan

        valid = math.isfinite(value)
        if valid and self.config.valid_range is not None:
            low, high = self.config.valid_range
            valid = low <= value <= high

        if not valid:
            self._invalid_count += 1
            logger.debug("Invalid sample %r replaced by %.3f", raw, self._last_valid)
            return self._last_valid

        self._last_valid = value
        return value
