"""Tests for the window, FFT and short-time spectra."""

import numpy as np
import pytest

from tempokey.core.spectrum import FFT, fft, hann_window, iter_spectra, magnitude_frames


class TestHannWindow:
    def test_endpoints_and_center(self):
        w = hann_window(1025)
        assert w[0] == pytest.approx(0.0, abs=1e-7)
        assert w[-1] == pytest.approx(0.0, abs=1e-7)
        assert w[512] == pytest.approx(1.0)

    def test_symmetric(self):
        w = hann_window(64)
        assert np.allclose(w, w[::-1])

    def test_read_only(self):
        with pytest.raises(ValueError):
            hann_window(16)[0] = 1.0


class TestFFT:
    @pytest.mark.parametrize("size", [1, 2, 8, 256, 4096])
    def test_matches_numpy(self, size):
        x = np.random.RandomState(size).uniform(-1.0, 1.0, size).astype(np.float32)
        ours = FFT(size)(x)
        ref = np.fft.fft(x.astype(np.float64))
        assert ours.dtype == np.complex64
        assert np.allclose(ours, ref, atol=1e-3 * max(1.0, np.abs(ref).max()))

    def test_batch(self):
        frames = np.random.RandomState(0).uniform(-1.0, 1.0, (3, 5, 64)).astype(np.float32)
        out = FFT(64)(frames)
        assert out.shape == (3, 5, 64)
        assert np.allclose(out, np.fft.fft(frames, axis=-1), atol=1e-3)

    def test_one_shot(self):
        x = np.zeros(16, dtype=np.float32)
        x[0] = 1.0
        assert np.allclose(fft(x), np.ones(16))

    def test_non_power_of_two_size(self):
        with pytest.raises(ValueError):
            FFT(1000)

    def test_wrong_frame_length(self):
        with pytest.raises(ValueError):
            FFT(1024)(np.zeros(512, dtype=np.float32))

    def test_one_shot_rejects_2d(self):
        with pytest.raises(ValueError):
            fft(np.zeros((2, 8)))


class TestMagnitudeFrames:
    @pytest.fixture
    def noise(self):
        return np.random.RandomState(3).uniform(-1.0, 1.0, 22050).astype(np.float32)

    def test_shape(self, noise):
        mags = magnitude_frames(noise, 2048, 256)
        assert mags.shape == ((22050 - 2048) // 256 + 1, 1024)
        assert mags.dtype == np.float32
        assert np.all(mags >= 0.0)

    def test_independent_of_worker_count(self, noise):
        serial = magnitude_frames(noise, 1024, 256, workers=1)
        parallel = magnitude_frames(noise, 1024, 256, workers=7)
        assert np.allclose(serial, parallel, rtol=1e-5, atol=1e-6)

    def test_matches_block_iteration(self, noise):
        mags = magnitude_frames(noise, 1024, 512, workers=3)
        blocks = np.vstack([np.abs(s) for _, s in iter_spectra(noise, 1024, 512, block=5)])
        assert np.allclose(mags, blocks, rtol=1e-5, atol=1e-6)

    def test_short_input(self):
        mags = magnitude_frames(np.zeros(100, dtype=np.float32), 2048, 256, workers=4)
        assert mags.shape == (0, 1024)

    def test_sine_peak_bin(self):
        sr, size = 8000, 1024
        t = np.arange(size * 4) / sr
        x = np.sin(2 * np.pi * 1000.0 * t).astype(np.float32)
        mags = magnitude_frames(x, size, size)
        assert int(np.argmax(mags[0])) == round(1000.0 * size / sr)
