"""
Real-input FFT and power-spectrum bins.

From-scratch radix-2 decimation-in-time FFT: a bit-reversal permutation
followed by log2(n) butterfly stages (11 for n = 2048). Each stage is
vectorized with numpy across all butterflies of that stage.

Plans (permutation + per-stage twiddles) are cached per size and are
read-only, so concurrent callers share no mutable state.
"""

from __future__ import annotations

from functools import lru_cache

import numpy as np

from constants import FFT_SIZE, MAGNITUDE_FLOOR, MAGNITUDE_SCALE


def _bit_reversal_permutation(n: int) -> np.ndarray:
    perm = np.zeros(n, dtype=np.intp)
    j = 0
    for i in range(1, n):
        bit = n >> 1
        while j & bit:
            j ^= bit
            bit >>= 1
        j ^= bit
        perm[i] = j
    return perm


@lru_cache(maxsize=8)
def _plan(n: int) -> tuple[np.ndarray, tuple[np.ndarray, ...]]:
    if n < 2 or n & (n - 1):
        raise ValueError(f"FFT size must be a power of two >= 2, got {n}")

    perm = _bit_reversal_permutation(n)
    perm.setflags(write=False)

    twiddles: list[np.ndarray] = []
    size = 2
    while size <= n:
        half = size // 2
        w = np.exp(-2j * np.pi * np.arange(half) / size)
        w.setflags(write=False)
        twiddles.append(w)
        size <<= 1

    return perm, tuple(twiddles)


def fft(x: np.ndarray) -> np.ndarray:
    """
    Complex FFT of a real or complex 1-D array whose length is a power of two.

    Returns a new complex128 array; `x` is not modified.
    """
    n = len(x)
    perm, twiddles = _plan(n)

    out = np.asarray(x, dtype=np.complex128)[perm]

    size = 2
    for w in twiddles:
        half = size // 2
        blocks = out.reshape(-1, size)
        even = blocks[:, :half]
        odd = blocks[:, half:] * w
        out = np.concatenate((even + odd, even - odd), axis=1).reshape(n)
        size <<= 1

    return out


def rfft(x: np.ndarray) -> np.ndarray:
    """First n/2 + 1 bins of the FFT of real input `x`."""
    return fft(x)[: len(x) // 2 + 1]


def power_spectrum(windowed: np.ndarray) -> np.ndarray:
    """
    Scaled power per bin for one windowed frame.

    mag[k] = max(1e-10, (re[k]^2 + im[k]^2) / 2^17), k in [0, n/2].
    """
    if len(windowed) != FFT_SIZE:
        raise ValueError(f"expected {FFT_SIZE} samples, got {len(windowed)}")

    bins = rfft(windowed)
    mag = (bins.real * bins.real + bins.imag * bins.imag) / MAGNITUDE_SCALE
    return np.maximum(mag, MAGNITUDE_FLOOR)
