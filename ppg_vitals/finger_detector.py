"""
Finger-on-lens detector for the scalar sample stream.

When a finger covers the camera and the torch is on, each frame reduces to:
  - A brightness level that is neither black (lens open in the dark) nor
    saturated (lens open towards a light).
  - A red channel that dominates the other channel (blood tissue).
  - A small but non-zero pulsatile variation.

The check gates the pipeline so it does not emit spurious readings while the
lens is uncovered.  Loss is only declared after several consecutive failing
frames so a single bad frame does not reset the heart-rate tracker.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Deque

from .config import FingerConfig
from .models import Sample

logger = logging.getLogger(__name__)


class FingerDetector:
    """
    Heuristic detector: is the camera lens covered by a finger?

    Parameters
    ----------
    config:
        Brightness bounds, red dominance ratio, minimum pulsatile ratio and
        the number of failing frames tolerated before the signal is lost.
    """

    def __init__(self, config: FingerConfig | None = None) -> None:
        self.config = config or FingerConfig()
        self._values: Deque[float] = deque(maxlen=self.config.span_window)
        self._present = False
        self._failing = 0

    def update(self, sample: Sample) -> bool:
        """Feed one sample and return whether a finger is currently detected."""
        ok = self._frame_ok(sample)
        if ok:
            self._failing = 0
            if not self._present:
                self._present = True
                logger.info("Finger detected at %d ms", sample.timestamp)
        else:
            self._failing += 1
            if self._present and self._failing >= self.config.low_signal_frames:
                self._present = False
                logger.info("Signal lost at %d ms after %d weak frames",
                            sample.timestamp, self._failing)
        return self._present

    @property
    def present(self) -> bool:
        return self._present

    def reset(self) -> None:
        self._values.clear()
        self._present = False
        self._failing = 0

    def _frame_ok(self, sample: Sample) -> bool:
        cfg = self.config
        value = sample.value
        if value is None or not math.isfinite(value):
            return False
        self._values.append(float(value))

        bright_enough = cfg.min_brightness <= value <= cfg.max_brightness

        skin_tone = True
        if sample.red is not None and sample.ir is not None and sample.ir > 0:
            skin_tone = sample.red / sample.ir >= cfg.red_dominance

        pulsatile = True
        if len(self._values) == self._values.maxlen:
            mean = sum(self._values) / len(self._values)
            span = max(self._values) - min(self._values)
            pulsatile = mean > 0 and span / mean >= cfg.min_pulsatile_ratio

        return bright_enough and skin_tone and pulsatile
