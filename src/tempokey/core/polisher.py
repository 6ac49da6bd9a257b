"""
Signal smoothing and normalization helpers.

Shared by the onset bank, both tempo pipelines and the beat tracker.
All helpers are pure: they return new arrays and never modify their
input. Edge handling is always "clamp to the nearest valid sample".
"""

import numpy as np
from scipy.ndimage import maximum_filter1d, median_filter

# Floor used when dividing by a maximum so silent input maps to zeros.
NORM_FLOOR = 1e-9


def normalize_max(signal: np.ndarray) -> np.ndarray:
    """
    Scale so the largest value becomes 1.0.

    All-zero (or all-negative) input stays all-zero.
    """
    x = np.asarray(signal, dtype=np.float32)
    if x.size == 0:
        return x.copy()
    max_val = max(float(np.max(x)), NORM_FLOOR)
    return (x / np.float32(max_val)).astype(np.float32)


def normalize_abs_max(signal: np.ndarray) -> np.ndarray:
    """Scale by the largest absolute value (floored at ``NORM_FLOOR``)."""
    x = np.asarray(signal, dtype=np.float32)
    if x.size == 0:
        return x.copy()
    max_val = max(float(np.max(np.abs(x))), NORM_FLOOR)
    return (x / np.float32(max_val)).astype(np.float32)


def median_smooth(signal: np.ndarray, window: int) -> np.ndarray:
    """
    Running median over an odd window with edge clamping.

    Even windows are widened by one sample. A window of 1 or less
    returns a copy.
    """
    x = np.asarray(signal, dtype=np.float32)
    if window <= 1 or x.size == 0:
        return x.copy()
    size = 2 * (window // 2) + 1
    return median_filter(x, size=size, mode="nearest")


def is_local_max(signal: np.ndarray, radius: int) -> np.ndarray:
    """True where no sample within ``radius`` (edge-clamped) is larger."""
    x = np.asarray(signal)
    if radius <= 0:
        return np.ones(x.shape, dtype=bool)
    return x >= maximum_filter1d(x, size=2 * radius + 1, mode="nearest")


def peak_enhance(signal: np.ndarray, radius: int, attenuation: float = 0.5) -> np.ndarray:
    """
    Keep local maxima at full value and attenuate everything else.

    Args:
        signal: Onset curve.
        radius: Neighbourhood radius in frames.
        attenuation: Factor applied to non-maxima.
    """
    x = np.asarray(signal, dtype=np.float32)
    if radius <= 0 or x.size == 0:
        return x.copy()
    return np.where(is_local_max(x, radius), x, x * np.float32(attenuation)).astype(np.float32)


def moving_average(signal: np.ndarray, window: int) -> np.ndarray:
    """
    Trailing moving average.

    Sample ``i`` is the mean of the last ``min(i + 1, window)`` samples,
    so the output has the same length as the input with no start-up lag
    in magnitude.
    """
    x = np.asarray(signal, dtype=np.float32)
    if window <= 1 or x.size == 0:
        return x.copy()
    w = min(window, x.size)
    csum = np.cumsum(x, dtype=np.float64)
    sums = csum.copy()
    sums[w:] = csum[w:] - csum[:-w]
    counts = np.minimum(np.arange(1, x.size + 1), w)
    return (sums / counts).astype(np.float32)


def local_maxima(signal: np.ndarray, radius: int = 2, min_value: float = 0.05) -> np.ndarray:
    """Indices of local maxima whose value is at least ``min_value``."""
    x = np.asarray(signal, dtype=np.float32)
    if x.size == 0:
        return np.zeros(0, dtype=np.intp)
    mask = (x >= np.float32(min_value)) & is_local_max(x, radius)
    return np.nonzero(mask)[0]
