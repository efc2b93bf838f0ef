"""
Peak detection and band classification.

A bin of the spectrum 46 hops back is a peak when it is at least 1/64,
not below the spread frame 49 hops back, and strictly above that spread
frame at eight neighboring bins and above fourteen other spread frames at
the bin below. Survivors get a parabolic sub-bin correction, a quantized
log magnitude and a band.
"""

from __future__ import annotations

import math

import numpy as np

from constants import (
    BIN_INTERPOLATION_GAIN,
    BIN_SUBDIVISIONS,
    HZ_PER_CORRECTED_BIN,
    LOG_MAGNITUDE_OFFSET,
    LOG_MAGNITUDE_SCALE,
    PEAK_BIN_MAX_EXCLUSIVE,
    PEAK_BIN_MIN,
    PEAK_FFT_OFFSET,
    PEAK_FRAME_LAG,
    PEAK_MIN_MAGNITUDE,
    PEAK_NEIGHBOR_BIN_OFFSETS,
    PEAK_NEIGHBOR_FRAME_OFFSETS,
    PEAK_SPREAD_OFFSET,
)
from fingerprint.history import FrameHistory
from fingerprint.types import FrequencyBand, FrequencyPeak

_BINS = np.arange(PEAK_BIN_MIN, PEAK_BIN_MAX_EXCLUSIVE)


def quantized_log_magnitude(power: float) -> float:
    return math.log(max(PEAK_MIN_MAGNITUDE, power)) * LOG_MAGNITUDE_SCALE + LOG_MAGNITUDE_OFFSET


def candidate_bins(fft_frame: np.ndarray, spread_frame: np.ndarray, others: list[np.ndarray]) -> np.ndarray:
    """
    Bins in [10, 1017) passing every neighborhood test, ascending.

    `others` are the extra spread frames compared at bin - 1.
    """
    values = fft_frame[_BINS]

    mask = (values >= PEAK_MIN_MAGNITUDE) & (values >= spread_frame[_BINS])

    neighbor_max = np.zeros(len(_BINS), dtype=np.float64)
    for d in PEAK_NEIGHBOR_BIN_OFFSETS:
        np.maximum(neighbor_max, spread_frame[_BINS + d], out=neighbor_max)
    mask &= values > neighbor_max

    for frame in others:
        np.maximum(neighbor_max, frame[_BINS - 1], out=neighbor_max)
    mask &= values > neighbor_max

    return _BINS[mask]


def refine_peak(fft_frame: np.ndarray, pos: int, frame: int) -> tuple[FrequencyBand, FrequencyPeak] | None:
    """
    Interpolate and classify the peak at bin `pos`.

    Returns None when the corrected frequency falls outside every band or
    the magnitude curvature is flat.
    """
    peak_mag = quantized_log_magnitude(fft_frame[pos])
    peak_mag_before = quantized_log_magnitude(fft_frame[pos - 1])
    peak_mag_after = quantized_log_magnitude(fft_frame[pos + 1])

    variation1 = peak_mag * 2 - peak_mag_before - peak_mag_after
    if variation1 <= 0:
        return None
    variation2 = (peak_mag_after - peak_mag_before) * BIN_INTERPOLATION_GAIN / variation1

    corrected_bin = pos * BIN_SUBDIVISIONS + variation2
    band = FrequencyBand.classify(corrected_bin * HZ_PER_CORRECTED_BIN)
    if band is None:
        return None

    return band, FrequencyPeak(
        frame=frame,
        magnitude=int(peak_mag),
        corrected_bin=int(corrected_bin),
    )


def detect_peaks(
    spectra: FrameHistory,
    spread: FrameHistory,
) -> list[tuple[FrequencyBand, FrequencyPeak]]:
    """
    Peaks for the current hop, in ascending bin order.

    Call once per hop after the spread frame was pushed.
    """
    fft_frame = spectra.at(PEAK_FFT_OFFSET)
    spread_frame = spread.at(PEAK_SPREAD_OFFSET)
    others = [spread.at(offset) for offset in PEAK_NEIGHBOR_FRAME_OFFSETS]

    frame = spread.num_written - PEAK_FRAME_LAG

    found: list[tuple[FrequencyBand, FrequencyPeak]] = []
    for pos in candidate_bins(fft_frame, spread_frame, others):
        refined = refine_peak(fft_frame, int(pos), frame)
        if refined is not None:
            found.append(refined)
    return found
