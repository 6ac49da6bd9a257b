"""
Onset feature bank.

Computes four onset detection functions (ODFs) from a Hann-windowed STFT
and combines them into a single onset curve for tempo induction:

* spectral flux: sum of positive magnitude increases
* high-frequency content: magnitude weighted by bin number
* complex-domain deviation: distance from a phase-extrapolated prediction
* energy derivative: positive change in total magnitude

Each series is max-normalized before it leaves this module.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from tempokey.core.buffer import frame_count
from tempokey.core.polisher import median_smooth, normalize_max, peak_enhance
from tempokey.core.spectrum import iter_spectra

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = (0.4, 0.2, 0.3, 0.1)


@dataclass
class OnsetFeatures:
    """Per-frame onset detection functions, each normalized to [0, 1]."""

    spectral_flux: np.ndarray
    high_frequency_content: np.ndarray
    complex_domain: np.ndarray
    energy_derivative: np.ndarray
    hop_size: int
    frame_rate_hz: float

    @property
    def n_frames(self) -> int:
        return len(self.spectral_flux)


def compute_onset_features(
    pcm: np.ndarray,
    sample_rate: int,
    frame_size: int = 2048,
    hop_size: int = 256,
) -> OnsetFeatures:
    """
    Compute the four raw ODFs frame by frame.

    The previous-frame magnitude, phase and energy start at zero, so the
    first frame is compared against silence.

    Args:
        pcm: Mono PCM samples.
        sample_rate: Sample rate in Hz.
        frame_size: STFT frame length (power of two).
        hop_size: Hop between frames in samples.

    Returns:
        OnsetFeatures whose series all have ``frame_count`` entries.
    """
    samples = np.asarray(pcm, dtype=np.float32)
    n_frames = frame_count(len(samples), frame_size, hop_size)
    bins = frame_size // 2

    sf = np.zeros(n_frames, dtype=np.float32)
    hfc = np.zeros(n_frames, dtype=np.float32)
    cd = np.zeros(n_frames, dtype=np.float32)
    ed = np.zeros(n_frames, dtype=np.float32)

    prev_mag = np.zeros(bins, dtype=np.float32)
    prev_phase = np.zeros(bins, dtype=np.float32)
    prev_energy = 0.0
    bin_weight = np.arange(1, bins + 1, dtype=np.float64)

    for start, spectra in iter_spectra(samples, frame_size, hop_size):
        stop = start + len(spectra)
        mag = np.abs(spectra).astype(np.float32)
        phase = np.angle(spectra).astype(np.float32)
        last_mag = np.vstack([prev_mag[None, :], mag[:-1]])
        last_phase = np.vstack([prev_phase[None, :], phase[:-1]])

        sf[start:stop] = np.maximum(0.0, mag - last_mag).sum(axis=1, dtype=np.float64)
        hfc[start:stop] = mag @ bin_weight

        d_phase = phase - last_phase
        pred_re = last_mag * np.cos(d_phase)
        pred_im = last_mag * np.sin(d_phase)
        cd[start:stop] = np.sqrt((mag - pred_re) ** 2 + pred_im ** 2).sum(
            axis=1, dtype=np.float64
        )

        energy = mag.sum(axis=1, dtype=np.float64)
        last_energy = np.concatenate([[prev_energy], energy[:-1]])
        ed[start:stop] = np.maximum(0.0, energy - last_energy)

        prev_mag = mag[-1]
        prev_phase = phase[-1]
        prev_energy = float(energy[-1])

    logger.debug("onset bank: %d frames (frame=%d, hop=%d)", n_frames, frame_size, hop_size)
    return OnsetFeatures(
        spectral_flux=normalize_max(sf),
        high_frequency_content=normalize_max(hfc),
        complex_domain=normalize_max(cd),
        energy_derivative=normalize_max(ed),
        hop_size=hop_size,
        frame_rate_hz=sample_rate / float(hop_size),
    )


def combine_odfs(
    features: OnsetFeatures,
    weights: Sequence[float] = DEFAULT_WEIGHTS,
    median_filter_width: int = 5,
    peak_enhance_radius: int = 2,
) -> np.ndarray:
    """
    Blend the four ODFs into a single onset curve.

    Weighted sum (flux, HFC, complex domain, energy derivative), then a
    median filter, then local-maximum enhancement: samples that are the
    maximum within ``peak_enhance_radius`` keep their value, the rest are
    halved.

    Returns:
        float32 array in [0, 1] with one value per frame.
    """
    if len(weights) != 4:
        raise ValueError(f"expected 4 ODF weights, got {len(weights)}")
    w = np.asarray(weights, dtype=np.float32)
    combined = (
        features.spectral_flux * w[0]
        + features.high_frequency_content * w[1]
        + features.complex_domain * w[2]
        + features.energy_derivative * w[3]
    )
    smoothed = median_smooth(combined, median_filter_width)
    return np.clip(peak_enhance(smoothed, peak_enhance_radius), 0.0, 1.0).astype(np.float32)
