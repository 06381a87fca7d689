"""
Cardiac-rhythm classification from the RR-interval series.

State machine
-------------
``LEARNING``
    RR intervals are accumulated until both the learning period has elapsed
    (measured on the sample clock) and a run of consecutive consistent beats
    has been seen.  The median of that run becomes the rhythm baseline.
    No classification is emitted.
``MONITORING``
    Every new RR interval is classified from heart-rate-variability metrics
    over the last ``rr_window`` intervals (RMSSD, SDNN, Poincaré SD1/SD2),
    the deviation from the baseline and a premature-beat pattern scan.

Non-normal classifications are counted as events, debounced so that two
events are at least ``debounce_ms`` apart.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Iterable, Optional, Sequence

import numpy as np

from .config import ArrhythmiaConfig
from .models import HrvMetrics, RhythmStatus

logger = logging.getLogger(__name__)


class Phase(Enum):
    LEARNING    = "learning"
    MONITORING  = "monitoring"


@dataclass(frozen=True)
class RhythmResult:
    status: RhythmStatus = RhythmStatus.LEARNING
    count: int = 0
    new_event: bool = False
    metrics: Optional[HrvMetrics] = None


# ---------------------------------------------------------------------------
# HRV metrics
# ---------------------------------------------------------------------------

def rmssd(rr: Sequence[float]) -> float:
    """Root mean square of successive differences (ms)."""
    if len(rr) < 2:
        return 0.0
    diffs = np.diff(np.asarray(rr, dtype=np.float64))
    return float(np.sqrt(np.mean(diffs ** 2)))


def sdnn(rr: Sequence[float]) -> float:
    """Standard deviation of the RR intervals (ms)."""
    if len(rr) < 2:
        return 0.0
    return float(np.std(np.asarray(rr, dtype=np.float64)))


def poincare(rr: Sequence[float]) -> tuple[float, float]:
    """
    Poincaré descriptors ``(SD1, SD2)``.

    SD1 is the spread perpendicular to the identity line, SD2 the spread
    along it.  Both are 0 with fewer than three intervals.
    """
    if len(rr) < 3:
        return 0.0, 0.0
    x = np.asarray(rr, dtype=np.float64)
    rr_n, rr_n1 = x[:-1], x[1:]
    sd1 = float(np.std((rr_n1 - rr_n) / math.sqrt(2.0)))
    sd2 = float(np.std((rr_n1 + rr_n) / math.sqrt(2.0)))
    return sd1, sd2


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class ArrhythmiaClassifier:
    """
    Learning / monitoring rhythm classifier.

    Parameters
    ----------
    config:
        Learning period, thresholds and window sizes.
    """

    def __init__(self, config: ArrhythmiaConfig | None = None) -> None:
        self.config = config or ArrhythmiaConfig()
        self._learning: Deque[float] = deque(maxlen=self.config.history_size)
        self._window: Deque[float] = deque(maxlen=self.config.rr_window)
        self._init_state()

    def _init_state(self) -> None:
        self._learning.clear()
        self._window.clear()
        self._phase = Phase.LEARNING
        self._session_start: Optional[int] = None
        self._consistent_run: int = 0
        self._baseline: float = 0.0
        self._status = RhythmStatus.LEARNING
        self._count: int = 0
        self._last_event_time: Optional[int] = None
        self._last_metrics: Optional[HrvMetrics] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update(
        self,
        new_intervals: Iterable[float],
        timestamp: int,
        bpm: float = 0.0,
    ) -> RhythmResult:
        """
        Feed the RR intervals produced since the last call.

        Parameters
        ----------
        new_intervals:
            RR intervals in ms, oldest first.
        timestamp:
            Current sample time (ms).  The first call marks the session start.
        bpm:
            Current heart rate from the tracker; 0 means "derive from the RR
            window".
        """
        if self._session_start is None:
            self._session_start = timestamp

        new_event = False
        for rr in new_intervals:
            if self._phase is Phase.LEARNING:
                self._learn(float(rr))
            else:
                new_event = self._classify(float(rr), timestamp, bpm) or new_event

        if self._phase is Phase.LEARNING:
            self._maybe_finish_learning(timestamp)

        return RhythmResult(
            status=self._status,
            count=self._count,
            new_event=new_event,
            metrics=self._last_metrics,
        )

    @property
    def is_learning(self) -> bool:
        return self._phase is Phase.LEARNING

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def baseline(self) -> float:
        """Learned median RR interval (ms); 0 while learning."""
        return self._baseline

    @property
    def status(self) -> RhythmStatus:
        return self._status

    @property
    def count(self) -> int:
        return self._count

    def reset(self) -> None:
        """Return to ``LEARNING`` and drop the baseline."""
        self._init_state()
        logger.info("Arrhythmia classifier reset")

    # ------------------------------------------------------------------
    # Learning phase
    # ------------------------------------------------------------------

    def _learn(self, rr: float) -> None:
        self._learning.append(rr)
        median = float(np.median(self._learning))
        if median > 0 and abs(rr - median) / median <= self.config.learning_consistency:
            self._consistent_run += 1
        else:
            self._consistent_run = 0

    def _maybe_finish_learning(self, timestamp: int) -> None:
        cfg = self.config
        start = timestamp if self._session_start is None else self._session_start
        elapsed = timestamp - start
        run = min(self._consistent_run, len(self._learning))
        if elapsed < cfg.learning_period_ms or run < cfg.min_learning_beats:
            return

        consistent = list(self._learning)[-run:]
        self._baseline = float(np.median(consistent))
        self._window.extend(consistent)
        self._phase = Phase.MONITORING
        self._status = RhythmStatus.NORMAL
        logger.info(
            "Learning complete after %d ms: baseline RR %.0f ms (%d beats)",
            elapsed, self._baseline, run,
        )

    # ------------------------------------------------------------------
    # Monitoring phase
    # ------------------------------------------------------------------

    def _classify(self, rr: float, timestamp: int, bpm: float) -> bool:
        cfg = self.config
        self._window.append(rr)
        rr_list = list(self._window)

        metrics = self._metrics(rr_list)
        self._last_metrics = metrics

        if bpm <= 0:
            bpm = 60000.0 / float(np.mean(rr_list))

        status = self._rule(bpm, metrics)
        self._status = status
        if status is RhythmStatus.NORMAL:
            return False

        if (self._last_event_time is not None
                and timestamp - self._last_event_time < cfg.debounce_ms):
            return False

        self._count += 1
        self._last_event_time = timestamp
        logger.info(
            "Rhythm event #%d: %s (rr=%.0f ms, rmssd=%.1f, variation=%.2f)",
            self._count, status.value, rr, metrics.rmssd, metrics.rr_variation,
        )
        return True

    def _metrics(self, rr_list: Sequence[float]) -> HrvMetrics:
        cfg = self.config
        last = rr_list[-1]
        sd1, sd2 = poincare(rr_list)
        variation = abs(last - self._baseline) / self._baseline if self._baseline > 0 else 0.0
        premature = last < self._baseline * cfg.premature_ratio
        return HrvMetrics(
            rmssd=rmssd(rr_list),
            sdnn=sdnn(rr_list),
            sd1=sd1,
            sd2=sd2,
            rr_variation=variation,
            premature_beat=premature,
            pattern_match=self._pattern_match(rr_list),
        )

    def _pattern_match(self, rr_list: Sequence[float]) -> bool:
        """normal -> short -> compensatory pause over the last three intervals."""
        if len(rr_list) < 3:
            return False
        prev, short, pause = rr_list[-3], rr_list[-2], rr_list[-1]
        return (short < prev * self.config.premature_ratio
                and pause > prev * self.config.compensatory_ratio)

    def _rule(self, bpm: float, m: HrvMetrics) -> RhythmStatus:
        cfg = self.config
        if bpm < cfg.bradycardia_bpm:
            return RhythmStatus.BRADYCARDIA
        if bpm > cfg.tachycardia_bpm:
            return RhythmStatus.TACHYCARDIA

        premature = m.premature_beat or m.pattern_match
        poincare_irregular = (
            m.sd2 > 0
            and m.sd1 > cfg.sd1_threshold_ms
            and m.sd1 / m.sd2 > cfg.sd1_sd2_ratio_threshold
        )
        if m.rr_variation > cfg.rr_variation_threshold or poincare_irregular:
            return RhythmStatus.PREMATURE_BEAT if premature else RhythmStatus.IRREGULAR
        if premature:
            return RhythmStatus.PREMATURE_BEAT
        return RhythmStatus.NORMAL
