"""
Bounded sample window.

A thin wrapper over ``collections.deque(maxlen=...)`` that keeps conditioned
values and their timestamps side by side and hands them out as numpy arrays.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, Optional

import numpy as np

from .models import Sample


class RollingWindow:
    """
    Fixed-capacity, insertion-ordered window of samples.

    Parameters
    ----------
    capacity:
        Maximum number of samples kept.  The oldest sample is evicted when a
        new one arrives on a full window.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._samples: Deque[Sample] = deque(maxlen=capacity)

    def append(self, sample: Sample) -> None:
        self._samples.append(sample)

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self._samples)

    @property
    def fill_ratio(self) -> float:
        """How full the window is (0 – 1)."""
        return len(self._samples) / self.capacity

    def values(self) -> np.ndarray:
        return np.fromiter((s.value for s in self._samples), dtype=np.float64,
                           count=len(self._samples))

    def timestamps(self) -> np.ndarray:
        return np.fromiter((s.timestamp for s in self._samples), dtype=np.int64,
                           count=len(self._samples))

    def channel(self, name: str) -> Optional[np.ndarray]:
        """
        Return the ``red`` or ``ir`` channel as an array, or *None* when any
        sample in the window lacks it.
        """
        out = [getattr(s, name) for s in self._samples]
        if not out or any(v is None for v in out):
            return None
        return np.asarray(out, dtype=np.float64)

    def sampling_rate(self, default: float) -> float:
        """Sampling rate in Hz from the median timestamp spacing."""
        if len(self._samples) < 3:
            return default
        diffs = np.diff(self.timestamps())
        diffs = diffs[diffs > 0]
        if diffs.size == 0:
            return default
        return 1000.0 / float(np.median(diffs))
