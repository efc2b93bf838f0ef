"""
Fixed-capacity circular buffers used by the analyzer.

SampleRing holds the most recent raw samples; FrameHistory holds the most
recent spectra (or spread spectra) as rows of a 2-D array. Both overwrite
their oldest entries and are never cleared.
"""

from __future__ import annotations

import numpy as np


class SampleRing:
    """
    Circular buffer of the last `capacity` raw samples.

    `position` is the next write index, which is also the oldest sample.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._buf = np.zeros(capacity, dtype=np.float64)
        self._pos = 0

    @property
    def capacity(self) -> int:
        return len(self._buf)

    @property
    def position(self) -> int:
        return self._pos

    def feed(self, samples: np.ndarray) -> None:
        """Append samples, overwriting the oldest."""
        n = len(samples)
        if n == 0:
            return
        if n >= self.capacity:
            samples = samples[-self.capacity:]
            n = self.capacity
        idx = (self._pos + np.arange(n)) % self.capacity
        self._buf[idx] = samples
        self._pos = (self._pos + n) % self.capacity

    def ordered(self) -> np.ndarray:
        """Copy of the buffer read oldest to newest."""
        return np.concatenate((self._buf[self._pos:], self._buf[:self._pos]))


class FrameHistory:
    """
    Circular history of `capacity` frames of `width` float64 values.

    Offsets passed to `at()` are relative to the current write position:
    -1 is the most recently written frame. Positive offsets wrap, so +165
    is the same slot as -91 in a 256-frame history.
    """

    def __init__(self, capacity: int, width: int) -> None:
        if capacity <= 0 or width <= 0:
            raise ValueError("capacity and width must be > 0")
        self._frames = np.zeros((capacity, width), dtype=np.float64)
        self._pos = 0
        self._num_written = 0

    @property
    def capacity(self) -> int:
        return self._frames.shape[0]

    @property
    def position(self) -> int:
        return self._pos

    @property
    def num_written(self) -> int:
        return self._num_written

    def index(self, offset: int) -> int:
        return (self._pos + offset) % self.capacity

    def at(self, offset: int) -> np.ndarray:
        """Row at `offset` from the write position (a view; writes go through)."""
        return self._frames[self.index(offset)]

    def latest(self) -> np.ndarray:
        return self.at(-1)

    def push(self, frame: np.ndarray) -> None:
        """Copy `frame` into the write slot and advance."""
        self._frames[self._pos, :] = frame
        self._pos = (self._pos + 1) % self.capacity
        self._num_written += 1
