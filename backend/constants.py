"""
CONSTANTS
---------
Single source of truth for all behavioral invariants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.

Everything under "Signature Wire Format" is an external contract with the
recognition service. Values are reproduced byte-for-byte and must not be
cleaned up or derived differently.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Audio Format (PCM16 mono @ 16kHz)
# =============================================================================

FINGERPRINT_SAMPLE_RATE_HZ: Final[int] = 16_000
FINGERPRINT_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)

# Typical native microphone rate
CAPTURE_SAMPLE_RATE_HZ_DEFAULT: Final[int] = 44_100

# =============================================================================
# Spectral Analysis
# =============================================================================

FFT_SIZE: Final[int] = 2048
FFT_OUTPUT_SIZE: Final[int] = FFT_SIZE // 2 + 1  # 1025 bins
HOP_SIZE_SAMPLES: Final[int] = 128

# mag[k] = max(MAGNITUDE_FLOOR, (re^2 + im^2) / MAGNITUDE_SCALE)
MAGNITUDE_SCALE: Final[float] = float(1 << 17)
MAGNITUDE_FLOOR: Final[float] = 1e-10

# Circular history capacity for spectra and spread spectra
HISTORY_FRAMES: Final[int] = 256

# =============================================================================
# Peak Spreading
# =============================================================================

# Forward running max width (pos, pos+1, pos+2)
FREQUENCY_SPREAD_WIDTH: Final[int] = 3

# Older spread frames that receive the running max, relative to write position
TIME_SPREAD_OFFSETS: Final[Tuple[int, ...]] = (-1, -3, -6)

# =============================================================================
# Peak Detection
# =============================================================================

# Detection starts once this many spread frames exist
PEAK_DETECTION_MIN_SPREAD_FRAMES: Final[int] = 47

# History offsets (relative to write position) of the frames under test
PEAK_FFT_OFFSET: Final[int] = -46
PEAK_SPREAD_OFFSET: Final[int] = -49

# frame index recorded for a peak = spread frames written - PEAK_FRAME_LAG
PEAK_FRAME_LAG: Final[int] = 46

PEAK_BIN_MIN: Final[int] = 10
PEAK_BIN_MAX_EXCLUSIVE: Final[int] = FFT_OUTPUT_SIZE - 8

PEAK_MIN_MAGNITUDE: Final[float] = 1.0 / 64.0

PEAK_NEIGHBOR_BIN_OFFSETS: Final[Tuple[int, ...]] = (-10, -7, -4, -3, 1, 2, 5, 8)
PEAK_NEIGHBOR_FRAME_OFFSETS: Final[Tuple[int, ...]] = (
    -53, -45, 165, 172, 179, 186, 193, 200, 214, 221, 228, 235, 242, 249,
)

# peak_mag = ln(max(PEAK_MIN_MAGNITUDE, x)) * LOG_MAGNITUDE_SCALE + LOG_MAGNITUDE_OFFSET
LOG_MAGNITUDE_SCALE: Final[float] = 1477.3
LOG_MAGNITUDE_OFFSET: Final[float] = 6144.0

# Sub-bin interpolation resolution (corrected bin = pos * 64 + variation)
BIN_SUBDIVISIONS: Final[int] = 64
BIN_INTERPOLATION_GAIN: Final[float] = 32.0

# Hz per corrected-bin unit: 16000 / 2 / 1024 / 64
HZ_PER_CORRECTED_BIN: Final[float] = (
    FINGERPRINT_SAMPLE_RATE_HZ / 2.0 / 1024.0 / BIN_SUBDIVISIONS
)

# Band edges in Hz: [250,520), [520,1450), [1450,3500), [3500,5500]
BAND_EDGES_HZ: Final[Tuple[float, ...]] = (250.0, 520.0, 1450.0, 3500.0, 5500.0)

# =============================================================================
# Stop Rule (both must hold)
# =============================================================================

MAX_TIME_SECONDS: Final[float] = 12.0
MAX_PEAKS: Final[int] = 255

# =============================================================================
# Signature Wire Format
# =============================================================================

SIGNATURE_URI_PREFIX: Final[str] = "data:audio/vnd.shazam.sig;base64,"

SIGNATURE_HEADER_BYTES: Final[int] = 48
SIGNATURE_MAGIC1: Final[int] = 0xCAFE2580
SIGNATURE_MAGIC2: Final[int] = 0x94119C00
SIGNATURE_FIXED_VALUE: Final[int] = (15 << 19) + 0x40000

# Opaque reverse-engineered id; only 16 kHz mono captures are supported
SIGNATURE_SAMPLE_RATE_IDS: Final[dict[int, int]] = {16_000: 3}
SIGNATURE_SAMPLE_RATE_SHIFT: Final[int] = 27

# number_samples field = samples consumed + round(0.24 * sample rate)
SIGNATURE_SAMPLES_OFFSET: Final[int] = round(0.24 * FINGERPRINT_SAMPLE_RATE_HZ)

SIGNATURE_CONTENTS_MARKER: Final[int] = 0x40000000
SIGNATURE_BAND_TAG_BASE: Final[int] = 0x60030040

# CRC32 covers bytes [SIGNATURE_CRC_START, end) and is stored at [4, 8)
SIGNATURE_CRC_OFFSET: Final[int] = 4
SIGNATURE_CRC_START: Final[int] = 8

PEAK_ABSOLUTE_FRAME_MARKER: Final[int] = 0xFF
PEAK_MAX_FRAME_DELTA: Final[int] = 255

BAND_PADDING_ALIGNMENT: Final[int] = 4

# =============================================================================
# Resampling
# =============================================================================

RESAMPLE_CHUNK_BYTES_DEFAULT: Final[int] = 8192

# =============================================================================
# HTTP
# =============================================================================

MAX_UPLOAD_BYTES_DEFAULT: Final[int] = 10 * 1024 * 1024

# =============================================================================
# Helper Functions
# =============================================================================

def samples_to_seconds(num_samples: int, sample_rate_hz: int = FINGERPRINT_SAMPLE_RATE_HZ) -> float:
    """
    Convert a sample count to duration in seconds.

    Non-positive input returns 0.0.
    """
    if num_samples <= 0:
        return 0.0
    return num_samples / sample_rate_hz

