"""Spectral peak picking with parabolic (quadratic) interpolation."""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from tempokey.core.spectrum import FFT, hann_window

# Denominators below this are treated as a flat top: no sub-bin offset.
_FLAT_EPS = 1e-12


@dataclass(frozen=True)
class Peak:
    """Interpolated spectral peak."""

    frequency_hz: float
    magnitude: float


def interpolate_peaks(
    mags: np.ndarray,
    sample_rate: int,
    frame_size: int,
    min_freq_hz: float,
    max_freq_hz: float,
    max_peaks: int,
) -> List[Peak]:
    """
    Pick local maxima from one magnitude spectrum.

    A bin is a peak when it is strictly greater than both neighbours.
    The fractional offset ``p = 0.5*(l - r)/(l - 2c + r)`` and the
    magnitude ``c - 0.25*(l - r)*p`` come from the parabola through the
    three bins.

    Returns:
        Peaks inside ``[min_freq_hz, max_freq_hz]``, strongest first,
        at most ``max_peaks`` of them. Ties keep ascending frequency order.
    """
    m = np.asarray(mags, dtype=np.float64)
    if len(m) < 3 or max_peaks <= 0:
        return []

    left = m[:-2]
    center = m[1:-1]
    right = m[2:]
    is_peak = (center > left) & (center > right)
    if not np.any(is_peak):
        return []

    bins = np.nonzero(is_peak)[0] + 1
    l = left[is_peak]
    c = center[is_peak]
    r = right[is_peak]
    denom = l - 2.0 * c + r
    safe = np.abs(denom) > _FLAT_EPS
    p = np.zeros_like(c)
    p[safe] = 0.5 * (l[safe] - r[safe]) / denom[safe]

    freqs = (bins + p) * sample_rate / float(frame_size)
    keep = (freqs >= min_freq_hz) & (freqs <= max_freq_hz)
    freqs = freqs[keep]
    peak_mags = (c - 0.25 * (l - r) * p)[keep]

    order = np.argsort(-peak_mags, kind="stable")[:max_peaks]
    return [Peak(float(freqs[i]), float(peak_mags[i])) for i in order]


def spectral_peaks(
    frame: np.ndarray,
    sample_rate: int,
    min_freq_hz: float = 50.0,
    max_freq_hz: float = 5000.0,
    max_peaks: int = 100,
    transform: Optional[FFT] = None,
) -> List[Peak]:
    """
    Window, transform and peak-pick a single PCM frame.

    Args:
        frame: Power-of-two length PCM frame.
        sample_rate: Sample rate in Hz.
        min_freq_hz: Lowest peak frequency kept.
        max_freq_hz: Highest peak frequency kept.
        max_peaks: Maximum number of peaks returned.
        transform: Optional pre-built FFT of matching size.

    Returns:
        List of :class:`Peak`, strongest first. Empty if none are found.
    """
    frame = np.asarray(frame, dtype=np.float32)
    size = len(frame)
    if transform is None:
        transform = FFT(size)
    spectrum = transform(frame * hann_window(size))[: size // 2]
    return interpolate_peaks(
        np.abs(spectrum), sample_rate, size, min_freq_hz, max_freq_hz, max_peaks
    )
