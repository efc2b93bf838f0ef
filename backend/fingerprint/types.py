"""
Frozen data types for fingerprint peaks and signatures.

Invariants are documented but NOT enforced at construction time:
peaks are only created by the peak detector and bands only by its fixed
classification table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Mapping, Optional

from constants import (
    BAND_EDGES_HZ,
    FINGERPRINT_SAMPLE_RATE_HZ,
    HZ_PER_CORRECTED_BIN,
)


class FrequencyBand(IntEnum):
    """
    The four fixed frequency ranges peaks are bucketed into.

    Values are the wire band ids (tag = 0x60030040 + id).
    """
    HZ_250_520 = 0
    HZ_520_1450 = 1
    HZ_1450_3500 = 2
    HZ_3500_5500 = 3

    @property
    def low_hz(self) -> float:
        return BAND_EDGES_HZ[self.value]

    @property
    def high_hz(self) -> float:
        return BAND_EDGES_HZ[self.value + 1]

    @staticmethod
    def classify(frequency_hz: float) -> Optional[FrequencyBand]:
        """
        Band for `frequency_hz`, or None outside [250, 5500].

        Ranges are half-open except the last one, which includes 5500 Hz.
        """
        if frequency_hz < BAND_EDGES_HZ[0]:
            return None
        if frequency_hz < BAND_EDGES_HZ[1]:
            return FrequencyBand.HZ_250_520
        if frequency_hz < BAND_EDGES_HZ[2]:
            return FrequencyBand.HZ_520_1450
        if frequency_hz < BAND_EDGES_HZ[3]:
            return FrequencyBand.HZ_1450_3500
        if frequency_hz <= BAND_EDGES_HZ[4]:
            return FrequencyBand.HZ_3500_5500
        # NaN also lands here
        return None


@dataclass(frozen=True)
class FrequencyPeak:
    """
    One detected spectral peak.

    Invariants:
        frame >= 1
        0 <= magnitude < 2^16, 0 <= corrected_bin < 2^16 (two bytes on the wire)
    """

    frame: int
    """Hop index the peak belongs to."""

    magnitude: int
    """Quantized log magnitude: int(ln(max(1/64, power)) * 1477.3 + 6144)."""

    corrected_bin: int
    """FFT bin in 1/64 bin units, refined by parabolic interpolation."""

    @property
    def frequency_hz(self) -> float:
        return self.corrected_bin * HZ_PER_CORRECTED_BIN


@dataclass(frozen=True)
class Signature:
    """
    Peaks per band plus the sample count they were computed from.

    Only non-empty bands need to be present in `peaks_by_band`; each band's
    peaks are ordered by ascending frame.
    """

    number_samples: int
    """Samples consumed by the analyzer (whole hops only)."""

    peaks_by_band: Mapping[FrequencyBand, tuple[FrequencyPeak, ...]] = field(
        default_factory=dict
    )

    sample_rate_hz: int = FINGERPRINT_SAMPLE_RATE_HZ

    def peaks(self, band: FrequencyBand) -> tuple[FrequencyPeak, ...]:
        return tuple(self.peaks_by_band.get(band, ()))

    @property
    def peak_count(self) -> int:
        return sum(len(p) for p in self.peaks_by_band.values())

    def band_counts(self) -> dict[str, int]:
        """Peak count per band name, every band included."""
        return {band.name: len(self.peaks(band)) for band in FrequencyBand}
