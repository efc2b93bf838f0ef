"""
Signature generation state machine.

One SignatureGenerator per fingerprinting call. It owns every buffer and
counter the algorithm mutates (sample ring, spectrum history, spread
history, peak lists), so concurrent calls on different threads share
nothing.

Per hop of 128 samples:
    analyzer.process_hop -> spreader.process -> detect_peaks (once 47
    spread frames exist)

The loop stops when input runs out, or at a hop boundary where BOTH
elapsed time >= 12 s AND total peaks >= 255 hold.
"""

from __future__ import annotations

from enum import Enum

import numpy as np

from audio.pcm import pcm16le_to_int16
from constants import (
    FINGERPRINT_SAMPLE_RATE_HZ,
    HOP_SIZE_SAMPLES,
    MAX_PEAKS,
    MAX_TIME_SECONDS,
    PEAK_DETECTION_MIN_SPREAD_FRAMES,
    samples_to_seconds,
)
from fingerprint.peaks import detect_peaks
from fingerprint.spectrum import SpectralAnalyzer
from fingerprint.spreading import PeakSpreader
from fingerprint.types import FrequencyBand, FrequencyPeak, Signature


class StopReason(str, Enum):
    """Why the hop loop ended."""
    INPUT_EXHAUSTED = "input_exhausted"
    LIMITS_REACHED = "limits_reached"


class SignatureGenerator:
    """
    Per-call fingerprint state.

    Not thread-safe and not meant to be: create one per call.
    """

    def __init__(self) -> None:
        self.analyzer = SpectralAnalyzer()
        self.spreader = PeakSpreader()

        self._peaks: dict[FrequencyBand, list[FrequencyPeak]] = {
            band: [] for band in FrequencyBand
        }
        self.total_peaks = 0

        # Samples consumed (whole hops only)
        self.num_samples = 0
        self.hops = 0
        self.stop_reason: StopReason | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def elapsed_seconds(self) -> float:
        return samples_to_seconds(self.num_samples, FINGERPRINT_SAMPLE_RATE_HZ)

    def limits_reached(self) -> bool:
        """Stop predicate, evaluated before every hop."""
        return self.elapsed_seconds >= MAX_TIME_SECONDS and self.total_peaks >= MAX_PEAKS

    def feed_hop(self, hop: np.ndarray) -> None:
        """Run one analysis hop over exactly HOP_SIZE_SAMPLES samples."""
        spectrum = self.analyzer.process_hop(hop)
        self.num_samples += HOP_SIZE_SAMPLES
        self.hops += 1

        self.spreader.process(spectrum)

        if self.spreader.num_written >= PEAK_DETECTION_MIN_SPREAD_FRAMES:
            for band, peak in detect_peaks(self.analyzer.spectra, self.spreader.spread):
                self._peaks[band].append(peak)
                self.total_peaks += 1

    def process(self, samples: np.ndarray) -> Signature:
        """
        Consume mono 16 kHz samples hop by hop and return the signature.

        A trailing partial hop is ignored.
        """
        samples = np.asarray(samples, dtype=np.float64)

        self.stop_reason = StopReason.INPUT_EXHAUSTED
        offset = 0
        while offset + HOP_SIZE_SAMPLES <= len(samples):
            if self.limits_reached():
                self.stop_reason = StopReason.LIMITS_REACHED
                break
            self.feed_hop(samples[offset:offset + HOP_SIZE_SAMPLES])
            offset += HOP_SIZE_SAMPLES

        return self.signature()

    def signature(self) -> Signature:
        """Snapshot of the peaks found so far."""
        return Signature(
            number_samples=self.num_samples,
            peaks_by_band={
                band: tuple(peaks)
                for band, peaks in self._peaks.items()
                if peaks
            },
            sample_rate_hz=FINGERPRINT_SAMPLE_RATE_HZ,
        )


def fingerprint_pcm16(data: bytes) -> Signature:
    """
    Fingerprint mono 16 kHz PCM16LE bytes with a fresh generator.

    Raises:
        audio.pcm.InvalidPcmBuffer for empty or odd-length input.
    """
    samples = pcm16le_to_int16(data)
    return SignatureGenerator().process(samples)
