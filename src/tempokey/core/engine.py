"""
Tempo engine (v2).

Pipeline:

1. Box-car decimation of high-rate input to roughly 22.05 kHz.
2. Magnitude STFT, computed by a round-robin worker pool.
3. Tri-band half-wave-rectified spectral flux (low / mid / high bands),
   6-point moving average, max-normalization.
4. Tempogram: normalized autocorrelation sampled every 0.5 BPM.
5. Harmonic product spectrum over the tempo axis (factors 2 and 3) for
   a coarse tempo with fewer octave errors.
6. Beat-grid refinement around half / same / double the coarse tempo.
7. Hypothesis selection between the refined tempo, the tempo implied by
   tracked beats, and their octaves, scored by grid alignment x prior.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from tempokey.core.beats import track_beats
from tempokey.core.buffer import frame_count
from tempokey.core.parallel import timed
from tempokey.core.polisher import moving_average, normalize_abs_max
from tempokey.core.spectrum import magnitude_frames
from tempokey.core.tempo import (
    DEFAULT_BPM,
    autocorrelation,
    beat_grid_alignment,
    clamp_bpm,
    margin_confidence,
    tempo_prior,
)

logger = logging.getLogger(__name__)

TARGET_RATE = 22050
DECIMATION_THRESHOLD = 32000

# (low_hz, high_hz, weight)
FLUX_BANDS: Tuple[Tuple[float, float, float], ...] = (
    (0.0, 200.0, 0.8),
    (200.0, 2000.0, 1.0),
    (2000.0, 8000.0, 0.6),
)

TEMPO_STEP = 0.5
HYPOTHESIS_RANGE = (50.0, 200.0)


@dataclass
class TempoEngineResult:
    """Tempo, beat times and tempogram confidence of one analysis."""

    bpm: float
    beats_seconds: np.ndarray = field(default_factory=lambda: np.zeros(0))
    confidence: float = 0.0


def decimate(pcm: np.ndarray, sample_rate: int, target_rate: int = TARGET_RATE) -> Tuple[np.ndarray, int]:
    """
    Block-average downsampling by the integer ratio ``sample_rate // target_rate``.

    Returns:
        ``(samples, effective_rate)``; the input is returned untouched when
        the ratio is 1.
    """
    factor = max(1, sample_rate // target_rate)
    if factor <= 1:
        return pcm, sample_rate
    x = np.asarray(pcm, dtype=np.float32)
    usable = (len(x) // factor) * factor
    blocks = x[:usable].reshape(-1, factor)
    return blocks.mean(axis=1, dtype=np.float32), sample_rate // factor


def tri_band_flux(
    mags: np.ndarray,
    sample_rate: int,
    frame_size: int,
    bands: Sequence[Tuple[float, float, float]] = FLUX_BANDS,
) -> np.ndarray:
    """
    Weighted sum of per-band positive magnitude increases.

    Frame 0 has no predecessor and scores 0.

    Returns:
        float32 array with one value per frame.
    """
    n_frames = len(mags)
    out = np.zeros(n_frames, dtype=np.float32)
    if n_frames < 2:
        return out
    bin_hz = sample_rate / float(frame_size)
    hz = np.arange(mags.shape[1]) * bin_hz
    rise = np.maximum(0.0, np.diff(mags, axis=0))

    flux = np.zeros(n_frames - 1, dtype=np.float64)
    for low, high, weight in bands:
        in_band = (hz >= low) & (hz < high)
        flux += rise[:, in_band].sum(axis=1, dtype=np.float64) * weight
    out[1:] = flux
    return out


def tempo_series(
    odf: np.ndarray,
    frame_rate_hz: float,
    bpm_min: float,
    bpm_max: float,
    step: float = TEMPO_STEP,
) -> np.ndarray:
    """
    Tempogram: normalized ACF value at the lag of each tempo step.

    Entry ``i`` corresponds to ``bpm_min + i * step``.
    """
    acf = autocorrelation(odf, normalize=True)
    n_steps = int((bpm_max - bpm_min) / step) + 1
    bpms = bpm_min + np.arange(n_steps) * step
    lags = np.maximum(1, (frame_rate_hz * 60.0 / bpms).astype(np.intp))
    series = np.zeros(n_steps, dtype=np.float64)
    valid = lags < len(acf)
    series[valid] = acf[lags[valid]]
    return series


def harmonic_product_spectrum(series: np.ndarray, factors: Iterable[int] = (2, 3)) -> np.ndarray:
    """Multiply ``series[i]`` by ``series[i * f]`` for each factor, where defined."""
    out = np.array(series, dtype=np.float64)
    for f in factors:
        down = series[: (len(series) // f) * f : f]
        n = min(len(out), len(down))
        out[:n] *= down[:n]
    return out


def tempo_at_max(series: np.ndarray, bpm_min: float, step: float = TEMPO_STEP) -> float:
    """Tempo of the first maximum of a tempo-indexed series."""
    return bpm_min + int(np.argmax(series)) * step


def refine_with_beat_grid(odf: np.ndarray, frame_rate_hz: float, initial_bpm: float) -> float:
    """
    Search +/-4 BPM in 0.25 steps around half, same and double the estimate.

    Candidates are clamped to 50-200 BPM; the first best alignment wins.
    """
    best = initial_bpm
    best_score = float("-inf")
    for base in (initial_bpm / 2.0, initial_bpm, initial_bpm * 2.0):
        for step in range(33):
            bpm = float(np.clip(base - 4.0 + 0.25 * step, *HYPOTHESIS_RANGE))
            score = beat_grid_alignment(odf, frame_rate_hz, bpm)
            if score > best_score:
                best_score = score
                best = bpm
    return best


def bpm_from_beats(beats_seconds: np.ndarray) -> float:
    """
    Tempo implied by the median inter-beat interval.

    Fewer than three beats give the default tempo.
    """
    if len(beats_seconds) < 3:
        return DEFAULT_BPM
    intervals = np.sort(np.maximum(np.diff(beats_seconds), 1e-3))
    return 60.0 / float(intervals[len(intervals) // 2])


def choose_best_tempo(
    odf: np.ndarray,
    frame_rate_hz: float,
    candidates: Iterable[Optional[float]],
) -> float:
    """
    Pick the candidate with the best ``alignment * prior`` inside 50-200 BPM.

    ``None`` entries are skipped. Falls back to the default tempo when no
    candidate is in range.
    """
    best_bpm = DEFAULT_BPM
    best_score = float("-inf")
    low, high = HYPOTHESIS_RANGE
    for bpm in candidates:
        if bpm is None or not (low <= bpm <= high):
            continue
        score = beat_grid_alignment(odf, frame_rate_hz, bpm) * tempo_prior(bpm)
        if score > best_score:
            best_score = score
            best_bpm = bpm
    return best_bpm


class TempoEngine:
    """
    Tempogram + HPS tempo estimator with beat tracking.

    The engine keeps no state between calls; one instance can serve
    concurrent analyses.
    """

    def __init__(self, workers: int = 8):
        """
        Initialize the engine.

        Args:
            workers: Size of the STFT worker pool.
        """
        self.workers = max(1, int(workers))

    def onset_curve(
        self,
        pcm: np.ndarray,
        sample_rate: int,
        frame_size: int = 2048,
        hop_size: int = 256,
    ) -> Tuple[np.ndarray, float]:
        """
        Smoothed, normalized tri-band flux of (decimated) PCM.

        Returns:
            ``(odf, frame_rate_hz)``.
        """
        data, sr = pcm, sample_rate
        if sample_rate > DECIMATION_THRESHOLD:
            data, sr = decimate(pcm, sample_rate)
        n_frames = frame_count(len(data), frame_size, hop_size)

        with timed("bpm.stft"):
            mags = magnitude_frames(data, frame_size, hop_size, self.workers, n_frames)
        with timed("bpm.odf"):
            odf = normalize_abs_max(moving_average(tri_band_flux(mags, sr, frame_size), 6))
        return odf, sr / float(hop_size)

    def analyze(
        self,
        pcm: np.ndarray,
        sample_rate: int,
        frame_size: int = 2048,
        hop_size: int = 256,
        bpm_min: float = 60.0,
        bpm_max: float = 180.0,
    ) -> TempoEngineResult:
        """
        Estimate tempo and beats.

        Args:
            pcm: Mono PCM samples.
            sample_rate: Sample rate in Hz.
            frame_size: STFT frame length (power of two).
            hop_size: STFT hop in samples.
            bpm_min: Lower edge of the tempogram.
            bpm_max: Upper edge of the tempogram.

        Returns:
            TempoEngineResult. Input shorter than one frame, or without any
            spectral change, yields 120 BPM, no beats and zero confidence.
        """
        odf, frame_rate = self.onset_curve(pcm, sample_rate, frame_size, hop_size)
        if len(odf) == 0:
            logger.warning("tempo engine: input shorter than one frame, using default tempo")
            return TempoEngineResult(bpm=DEFAULT_BPM)
        if not np.any(odf > 0.0):
            logger.warning("tempo engine: silent onset curve, using default tempo")
            return TempoEngineResult(bpm=DEFAULT_BPM)

        with timed("bpm.tempogram"):
            series = tempo_series(odf, frame_rate, bpm_min, bpm_max)
            hps = harmonic_product_spectrum(series)
            coarse = tempo_at_max(hps, bpm_min)

        with timed("bpm.refine"):
            refined = refine_with_beat_grid(odf, frame_rate, coarse)
            beats = track_beats(odf, refined, frame_rate)
            from_beats = bpm_from_beats(beats)
            if not (HYPOTHESIS_RANGE[0] <= from_beats <= HYPOTHESIS_RANGE[1]):
                from_beats = None
            # alignment and prior scores are mixed across both hypothesis families
            final = choose_best_tempo(odf, frame_rate, [
                refined,
                refined / 2.0,
                min(refined * 2.0, HYPOTHESIS_RANGE[1]),
                from_beats,
                from_beats / 2.0 if from_beats is not None else None,
                min(from_beats * 2.0, HYPOTHESIS_RANGE[1]) if from_beats is not None else None,
            ])
            beats = track_beats(odf, final, frame_rate)

        logger.debug(
            "tempo engine: coarse %.2f, refined %.2f, beats %s, final %.2f BPM",
            coarse, refined, from_beats, final,
        )
        return TempoEngineResult(
            bpm=clamp_bpm(final),
            beats_seconds=beats,
            confidence=margin_confidence(hps),
        )
