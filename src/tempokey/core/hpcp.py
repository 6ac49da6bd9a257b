"""
Harmonic pitch class profile (HPCP).

Each spectral peak contributes to the pitch classes of its first few
harmonics. A contribution is spread over neighbouring HPCP bins with a
cosine bell, so energy near a bin boundary is split between bins rather
than snapped to one of them.

Tuning is estimated first: the median deviation of early spectral peaks
from the equal-tempered grid (A4 = 440 Hz) shifts the reference pitch
used for the pitch-class mapping.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from tempokey.core.peaks import Peak

logger = logging.getLogger(__name__)

STANDARD_A4_HZ = 440.0
TUNING_PEAK_FLOOR = 0.1


@dataclass
class HpcpConfig:
    """Parameters of the per-frame HPCP computation."""

    bins: int = 36
    reference_a4_hz: float = STANDARD_A4_HZ
    harmonics: int = 8
    harmonic_decay: float = 1.0
    window_semitones: float = 1.0


def frequency_to_pitch_class(freq_hz: np.ndarray, reference_a4_hz: float = STANDARD_A4_HZ) -> np.ndarray:
    """
    Fractional pitch class in [0, 12) with C = 0 and A = 9.

    Non-positive frequencies map to 0.
    """
    f = np.asarray(freq_hz, dtype=np.float64)
    pc = np.zeros_like(f)
    positive = f > 0.0
    semitones = 12.0 * np.log2(f[positive] / reference_a4_hz)
    pc[positive] = np.mod(semitones + 9.0, 12.0)
    return pc


def _angular_distance(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    d = np.fmod(a - b, 12.0)
    d = np.where(d < -6.0, d + 12.0, d)
    d = np.where(d > 6.0, d - 12.0, d)
    return np.abs(d)


def _cosine_bell(distance: np.ndarray, half_width: float) -> np.ndarray:
    weight = 0.5 * (1.0 + np.cos((distance / half_width) * np.pi))
    return np.where(distance >= half_width, 0.0, weight)


def compute_hpcp(peaks: Sequence[Peak], config: HpcpConfig = HpcpConfig()) -> np.ndarray:
    """
    HPCP of one frame.

    Args:
        peaks: Spectral peaks of the frame.
        config: Bin count, reference pitch and harmonic weighting.

    Returns:
        float64 array of ``config.bins`` values, max-normalized to [0, 1];
        all zeros when there are no peaks.
    """
    bins = config.bins
    vec = np.zeros(bins, dtype=np.float64)
    if len(peaks) == 0:
        return vec

    freqs = np.array([p.frequency_hz for p in peaks], dtype=np.float64)
    mags = np.array([p.magnitude for p in peaks], dtype=np.float64)
    h = np.arange(1, config.harmonics + 1, dtype=np.float64)

    harmonic_freqs = freqs[:, None] * h[None, :]
    strength = mags[:, None] / h[None, :] ** config.harmonic_decay
    pc = frequency_to_pitch_class(harmonic_freqs, config.reference_a4_hz)

    semitones_per_bin = 12.0 / bins
    half_width = config.window_semitones / 2.0
    reach = half_width / semitones_per_bin
    base_bin = pc / semitones_per_bin
    left = np.trunc(base_bin - reach).astype(np.intp)
    right = np.trunc(base_bin + reach).astype(np.intp)

    span = int(np.floor(2.0 * reach)) + 2
    candidates = left[..., None] + np.arange(span)
    in_span = candidates <= right[..., None]
    weight = _cosine_bell(
        _angular_distance(pc[..., None], candidates * semitones_per_bin), half_width
    )
    contribution = strength[..., None] * weight * in_span

    mask = contribution > 0.0
    np.add.at(vec, np.mod(candidates[mask], bins), contribution[mask])

    max_val = vec.max()
    if max_val > 0.0:
        vec = np.clip(vec / max_val, 0.0, 1.0)
    return vec


def estimate_reference_pitch(
    peak_lists: Sequence[Sequence[Peak]],
    relative_floor: float = TUNING_PEAK_FLOOR,
) -> float:
    """
    Reference A4 from the median cents deviation of spectral peaks.

    Each peak's offset from the nearest equal-tempered pitch (relative to
    A4 = 440 Hz) lies in [-50, 50] cents; the median offset ``m`` gives
    ``440 * 2**(m / 1200)``. Without peaks the standard 440 Hz is kept.

    Args:
        peak_lists: Spectral peaks, one list per frame.
        relative_floor: Peaks weaker than this fraction of their frame's
            strongest peak are ignored (window side lobes, noise floor).
    """
    freqs = []
    for peaks in peak_lists:
        if not peaks:
            continue
        floor = relative_floor * max(p.magnitude for p in peaks)
        freqs.extend(
            p.frequency_hz for p in peaks if p.frequency_hz > 0.0 and p.magnitude >= floor
        )
    if not freqs:
        return STANDARD_A4_HZ
    freqs = np.asarray(freqs, dtype=np.float64)
    cents = 1200.0 * np.log2(freqs / STANDARD_A4_HZ)
    deviation = cents - 100.0 * np.round(cents / 100.0)
    median = float(np.median(deviation))
    logger.debug("tuning: %d peaks, median deviation %.2f cents", len(freqs), median)
    return STANDARD_A4_HZ * 2.0 ** (median / 1200.0)


def fold_to_12(hpcp: np.ndarray) -> np.ndarray:
    """
    Fold an HPCP of ``12 * k`` bins to 12 pitch classes.

    Bin ``b`` sits at pitch class ``b / k``; bins are summed into their
    nearest semitone and divided by ``k``.
    """
    x = np.asarray(hpcp, dtype=np.float64)
    if len(x) == 12:
        return x.copy()
    factor = len(x) // 12
    if factor < 1 or len(x) % 12:
        raise ValueError(f"HPCP length must be a multiple of 12, got {len(x)}")
    target = np.mod(np.round(np.arange(len(x)) / factor).astype(np.intp), 12)
    out = np.zeros(12, dtype=np.float64)
    np.add.at(out, target, x)
    return out / factor


def contrast_boost(chroma: np.ndarray) -> np.ndarray:
    """Sharpen dominant pitch classes: ``v *= 0.8 + 0.2 * v / max``."""
    x = np.asarray(chroma, dtype=np.float64)
    max_val = x.max() if len(x) else 0.0
    if max_val <= 0.0:
        return x.copy()
    return x * (0.8 + 0.2 * (x / max_val))
