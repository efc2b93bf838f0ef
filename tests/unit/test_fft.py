# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np
import pytest

from constants import FFT_OUTPUT_SIZE, FFT_SIZE, MAGNITUDE_FLOOR, MAGNITUDE_SCALE
from fingerprint.fft import fft, power_spectrum, rfft
from fingerprint.spectrum import HANNING_WINDOW, SpectralAnalyzer, hanning_window


# ---------------------------------------------------------------------
# FFT
# ---------------------------------------------------------------------

@pytest.mark.parametrize("n", [2, 8, 64, FFT_SIZE])
def test_fft_matches_numpy(n: int):
    rng = np.random.default_rng(n)
    x = rng.normal(scale=1000.0, size=n)

    np.testing.assert_allclose(fft(x), np.fft.fft(x), rtol=1e-9, atol=1e-6)


def test_fft_accepts_complex_input():
    rng = np.random.default_rng(1)
    x = rng.normal(size=256) + 1j * rng.normal(size=256)

    np.testing.assert_allclose(fft(x), np.fft.fft(x), rtol=1e-9, atol=1e-9)


def test_fft_does_not_modify_input():
    x = np.arange(16, dtype=np.float64)
    before = x.copy()

    fft(x)

    np.testing.assert_array_equal(x, before)


@pytest.mark.parametrize("n", [0, 1, 3, 1000])
def test_fft_rejects_non_power_of_two(n: int):
    with pytest.raises(ValueError):
        fft(np.zeros(n))


def test_rfft_returns_half_spectrum():
    x = np.random.default_rng(7).normal(size=FFT_SIZE)

    out = rfft(x)

    assert len(out) == FFT_OUTPUT_SIZE
    np.testing.assert_allclose(out, np.fft.rfft(x), rtol=1e-9, atol=1e-6)


# ---------------------------------------------------------------------
# Power spectrum
# ---------------------------------------------------------------------

def test_power_spectrum_floors_silence():
    mag = power_spectrum(np.zeros(FFT_SIZE))

    assert mag.shape == (FFT_OUTPUT_SIZE,)
    assert np.all(mag == MAGNITUDE_FLOOR)


def test_power_spectrum_scaling():
    x = np.random.default_rng(3).normal(scale=500.0, size=FFT_SIZE)
    ref = np.fft.rfft(x)
    expected = np.maximum(np.abs(ref) ** 2 / MAGNITUDE_SCALE, MAGNITUDE_FLOOR)

    np.testing.assert_allclose(power_spectrum(x), expected, rtol=1e-8)


def test_power_spectrum_rejects_wrong_length():
    with pytest.raises(ValueError):
        power_spectrum(np.zeros(FFT_SIZE // 2))


# ---------------------------------------------------------------------
# Window + analyzer
# ---------------------------------------------------------------------

def test_hanning_window_never_reaches_zero():
    w = hanning_window(FFT_SIZE)

    assert w.shape == (FFT_SIZE,)
    assert np.all(w > 0.0)
    assert w[0] == pytest.approx(0.5 * (1 - np.cos(2 * np.pi / (FFT_SIZE + 1))))
    # Symmetric: w[i] == w[size - 1 - i]
    np.testing.assert_allclose(w, w[::-1], atol=1e-12)


def test_module_window_is_read_only():
    with pytest.raises(ValueError):
        HANNING_WINDOW[0] = 1.0


def test_analyzer_rejects_partial_hop():
    with pytest.raises(ValueError):
        SpectralAnalyzer().process_hop(np.zeros(100))


def test_analyzer_finds_tone_bin():
    analyzer = SpectralAnalyzer()
    t = np.arange(FFT_SIZE) / 16000.0
    tone = 10000.0 * np.sin(2 * np.pi * 1000.0 * t)

    spectrum = None
    for start in range(0, FFT_SIZE, 128):
        spectrum = analyzer.process_hop(tone[start:start + 128])

    assert spectrum is not None
    # 1000 Hz / (16000 / 2048) = bin 128
    assert int(np.argmax(spectrum)) == 128
    assert analyzer.spectra.num_written == FFT_SIZE // 128
