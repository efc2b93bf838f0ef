"""
Peak spreading: a running time/frequency maximum of recent spectra.

The spread history is the adaptive threshold peak detection compares
against. A freshly written spread frame holds only the frequency-spread
spectrum; time spreading only ever raises OLDER frames (offsets -1, -3, -6
from the write position). Changing that asymmetry shifts detection timing.
"""

from __future__ import annotations

import numpy as np

from constants import (
    FFT_OUTPUT_SIZE,
    FREQUENCY_SPREAD_WIDTH,
    HISTORY_FRAMES,
    TIME_SPREAD_OFFSETS,
)
from fingerprint.history import FrameHistory


def frequency_spread(spectrum: np.ndarray) -> np.ndarray:
    """
    spread[pos] = max(s[pos], s[pos+1], s[pos+2]) for pos in [0, n-2).

    The last two bins keep their own value. Equivalent to the in-place
    forward pass, which only ever reads bins it has not yet written.
    """
    spread = spectrum.copy()
    n = len(spectrum)
    tail = n - (FREQUENCY_SPREAD_WIDTH - 1)
    for k in range(1, FREQUENCY_SPREAD_WIDTH):
        np.maximum(spread[:tail], spectrum[k:k + tail], out=spread[:tail])
    return spread


class PeakSpreader:
    """Per-call spread history plus the spreading step."""

    def __init__(self) -> None:
        self.spread = FrameHistory(HISTORY_FRAMES, FFT_OUTPUT_SIZE)

    @property
    def num_written(self) -> int:
        return self.spread.num_written

    def process(self, spectrum: np.ndarray) -> None:
        """
        Spread the newest spectrum and store it.

        1. frequency-spread a copy of `spectrum`
        2. propagate its running max into older frames at -1, -3, -6,
           leaving the new frame untouched
        3. push the new frame
        """
        spread = frequency_spread(spectrum)

        running = spread.copy()
        for offset in TIME_SPREAD_OFFSETS:
            older = self.spread.at(offset)
            np.maximum(running, older, out=running)
            older[:] = running

        self.spread.push(spread)
