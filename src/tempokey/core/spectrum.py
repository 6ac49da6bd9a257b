"""
Spectral transform layer.

Provides a fixed-size radix-2 Cooley-Tukey FFT in single precision, the
Hann analysis window, and short-time spectra computed over frame blocks
so that memory stays bounded on long inputs.
"""

import logging
from functools import lru_cache
from typing import Optional

import numpy as np

from tempokey.core.buffer import frame_count
from tempokey.core.parallel import fork_join

logger = logging.getLogger(__name__)

# Frames transformed per batch; keeps a (block, frame_size) complex64 matrix small.
BLOCK_FRAMES = 256


@lru_cache(maxsize=16)
def hann_window(size: int) -> np.ndarray:
    """
    Symmetric Hann window ``0.5 - 0.5 * cos(2*pi*i / (size - 1))``.

    The returned array is shared and read-only.
    """
    if size <= 1:
        window = np.ones(max(size, 0), dtype=np.float32)
    else:
        i = np.arange(size, dtype=np.float64)
        window = (0.5 - 0.5 * np.cos(2.0 * np.pi * i / (size - 1))).astype(np.float32)
    window.setflags(write=False)
    return window


def _bit_reversal(size: int) -> np.ndarray:
    bits = size.bit_length() - 1
    idx = np.arange(size, dtype=np.intp)
    rev = np.zeros(size, dtype=np.intp)
    for b in range(bits):
        rev |= ((idx >> b) & 1) << (bits - 1 - b)
    return rev


class FFT:
    """
    Complex FFT of a fixed power-of-two length.

    Real input frames are zero-padded in the imaginary channel, permuted
    into bit-reversed order and combined with iterative butterflies. Any
    leading axes are treated as a batch of independent frames.
    """

    def __init__(self, size: int):
        if size < 1 or size & (size - 1):
            raise ValueError(f"FFT size must be a power of two, got {size}")
        self.size = size
        self._order = _bit_reversal(size)
        self._twiddles = []
        length = 2
        while length <= size:
            k = np.arange(length // 2, dtype=np.float64)
            self._twiddles.append(np.exp(-2j * np.pi * k / length).astype(np.complex64))
            length <<= 1

    def __call__(self, frames: np.ndarray) -> np.ndarray:
        """
        Transform one frame (shape ``(N,)``) or a batch (shape ``(..., N)``).

        Raises:
            ValueError: If the last axis is not exactly ``N`` samples long.
        """
        x = np.asarray(frames, dtype=np.float32)
        if x.ndim == 0 or x.shape[-1] != self.size:
            raise ValueError(
                f"frame length must be {self.size}, got shape {x.shape}"
            )
        lead = x.shape[:-1]
        data = x[..., self._order].astype(np.complex64)

        length = 2
        for twiddle in self._twiddles:
            half = length // 2
            blocks = data.reshape(lead + (self.size // length, length))
            even = blocks[..., :half].copy()
            odd = blocks[..., half:] * twiddle
            blocks[..., :half] = even + odd
            blocks[..., half:] = even - odd
            length <<= 1
        return data


def fft(frame: np.ndarray) -> np.ndarray:
    """One-shot FFT of a single power-of-two frame."""
    x = np.asarray(frame)
    if x.ndim != 1:
        raise ValueError(f"fft expects a 1-D frame, got shape {x.shape}")
    return FFT(len(x))(x)


def windowed_spectra(
    samples: np.ndarray,
    transform: FFT,
    hop_size: int,
    frame_indices: np.ndarray,
) -> np.ndarray:
    """
    Hann-windowed half spectra for the given frame indices.

    Args:
        samples: Mono PCM.
        transform: FFT sized to the frame length.
        hop_size: Hop between consecutive frames in samples.
        frame_indices: Frame numbers to transform; every frame must lie
            fully inside ``samples``.

    Returns:
        complex64 array of shape ``(len(frame_indices), frame_size // 2)``.
    """
    size = transform.size
    offsets = frame_indices[:, None] * hop_size + np.arange(size)[None, :]
    frames = samples[offsets] * hann_window(size)
    return transform(frames)[:, : size // 2]


def iter_spectra(
    samples: np.ndarray,
    frame_size: int,
    hop_size: int,
    block: int = BLOCK_FRAMES,
):
    """Yield ``(start_frame, half_spectra)`` blocks over the whole buffer in order."""
    n_frames = frame_count(len(samples), frame_size, hop_size)
    transform = FFT(frame_size)
    for start in range(0, n_frames, block):
        idx = np.arange(start, min(start + block, n_frames), dtype=np.intp)
        yield start, windowed_spectra(samples, transform, hop_size, idx)


def magnitude_frames(
    samples: np.ndarray,
    frame_size: int,
    hop_size: int,
    workers: int = 1,
    n_frames: Optional[int] = None,
) -> np.ndarray:
    """
    Magnitude spectrogram computed by a round-robin worker pool.

    Each worker writes only its own rows. Rows are independent, so the
    worker count changes at most the float rounding of the batched FFT.

    Returns:
        float32 array of shape ``(n_frames, frame_size // 2)``.
    """
    if n_frames is None:
        n_frames = frame_count(len(samples), frame_size, hop_size)
    mags = np.zeros((n_frames, frame_size // 2), dtype=np.float32)
    if n_frames == 0:
        return mags
    transform = FFT(frame_size)

    def task(indices: np.ndarray):
        rows = np.empty((len(indices), frame_size // 2), dtype=np.float32)
        for start in range(0, len(indices), BLOCK_FRAMES):
            chunk = indices[start:start + BLOCK_FRAMES]
            rows[start:start + len(chunk)] = np.abs(
                windowed_spectra(samples, transform, hop_size, chunk)
            )
        return indices, rows

    for indices, rows in fork_join(n_frames, workers, task):
        mags[indices] = rows
    return mags
