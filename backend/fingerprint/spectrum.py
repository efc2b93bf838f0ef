"""
Windowed spectral analysis over a sliding sample ring.

Each hop appends HOP_SIZE_SAMPLES new samples to a FFT_SIZE-sample ring,
windows the ring (oldest to newest) and pushes the power spectrum into a
HISTORY_FRAMES-deep circular history.
"""

from __future__ import annotations

import numpy as np

from constants import (
    FFT_OUTPUT_SIZE,
    FFT_SIZE,
    HISTORY_FRAMES,
    HOP_SIZE_SAMPLES,
)
from fingerprint.fft import power_spectrum
from fingerprint.history import FrameHistory, SampleRing


def hanning_window(size: int = FFT_SIZE) -> np.ndarray:
    """
    w[i] = 0.5 * (1 - cos(2*pi*(i+1) / (size+1))), i in [0, size).

    Neither end reaches zero.
    """
    i = np.arange(size, dtype=np.float64)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * (i + 1.0) / (size + 1)))


HANNING_WINDOW = hanning_window()
HANNING_WINDOW.setflags(write=False)


class SpectralAnalyzer:
    """Per-call spectral state: sample ring + spectrum history."""

    def __init__(self) -> None:
        self.samples = SampleRing(FFT_SIZE)
        self.spectra = FrameHistory(HISTORY_FRAMES, FFT_OUTPUT_SIZE)

    def process_hop(self, hop: np.ndarray) -> np.ndarray:
        """
        Feed one hop of samples and compute its spectrum.

        Returns the spectrum row just written to the history.
        """
        if len(hop) != HOP_SIZE_SAMPLES:
            raise ValueError(f"expected {HOP_SIZE_SAMPLES} samples, got {len(hop)}")

        self.samples.feed(hop)
        windowed = self.samples.ordered() * HANNING_WINDOW
        self.spectra.push(power_spectrum(windowed))
        return self.spectra.latest()
