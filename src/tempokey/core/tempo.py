"""
Baseline tempo induction.

Scores every integer beat lag in the search range with an 8-harmonic comb
filter over the onset curve, weights the scores with a soft tempo prior,
and refines the winner (and its half / double) against a phase-searched
beat grid.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from scipy import signal as scipy_signal

from tempokey.core.polisher import moving_average

logger = logging.getLogger(__name__)

DEFAULT_BPM = 120.0
SANE_BPM_RANGE = (40.0, 240.0)


@dataclass(frozen=True)
class TempoCandidate:
    """A tempo hypothesis; ``score`` is only comparable within one pass."""

    bpm: float
    score: float


def tempo_prior(bpm: float) -> float:
    """Soft preference for 80-160 BPM, then 60-80 / 160-180, then the rest."""
    if 80.0 <= bpm <= 160.0:
        return 1.0
    if 60.0 <= bpm <= 80.0 or 160.0 <= bpm <= 180.0:
        return 0.9
    return 0.7


def clamp_bpm(bpm: float) -> float:
    return float(min(max(bpm, SANE_BPM_RANGE[0]), SANE_BPM_RANGE[1]))


def frames_per_beat(bpm: float, frame_rate_hz: float) -> int:
    """Whole frames per beat, at least 1."""
    return max(1, int((60.0 / bpm) * frame_rate_hz))


def lag_to_bpm(lag: int, frame_rate_hz: float) -> float:
    bpm = 60.0 / (lag / frame_rate_hz)
    return min(300.0, max(20.0, bpm))


def autocorrelation(signal: np.ndarray, normalize: bool = False) -> np.ndarray:
    """
    Raw autocorrelation ``acf[lag] = sum_i x[i] * x[i + lag]``.

    Args:
        signal: Input series.
        normalize: Divide by ``acf[0]`` when it is positive.

    Returns:
        float64 array with one value per lag ``0 .. len(signal) - 1``.
    """
    x = np.asarray(signal, dtype=np.float64)
    n = len(x)
    if n == 0:
        return np.zeros(0)
    acf = scipy_signal.correlate(x, x, mode="full")[n - 1:]
    if normalize and acf[0] > 0.0:
        acf = acf / acf[0]
    return acf


def comb_score(odf: np.ndarray, lag: int, harmonics: int = 8) -> float:
    """Sum of ODF samples at multiples of ``lag * h``, weighted by ``1/h``."""
    x = np.asarray(odf, dtype=np.float64)
    score = 0.0
    for h in range(1, harmonics + 1):
        step = lag * h
        if step <= 0:
            break
        score += float(x[::step].sum()) / h
    return score


def beat_grid_alignment(
    odf: np.ndarray,
    frame_rate_hz: float,
    bpm: float,
    phases: int = 12,
) -> float:
    """
    Best mean onset strength over a beat grid at ``bpm``.

    The grid is tried at ``phases`` evenly spaced offsets inside one beat
    period; positions are truncated to whole frames and capped at the end
    of the curve.

    Returns:
        The largest per-phase mean, or 0.0 when no phase scores above 0.
    """
    x = np.asarray(odf, dtype=np.float64)
    n = len(x)
    fpb = frame_rate_hz * 60.0 / bpm
    if fpb < 1.0 or n == 0:
        return 0.0
    best = 0.0
    for s in range(phases):
        phase = (fpb * s) / phases
        positions = np.arange(phase, n, fpb)
        if len(positions) == 0:
            continue
        idx = np.minimum(positions.astype(np.intp), n - 1)
        avg = float(x[idx].mean())
        if avg > best:
            best = avg
    return best


def margin_confidence(scores: Sequence[float]) -> float:
    """
    Normalized margin between the two largest scores.

    ``(max - second) / (max + 1e-9)`` clamped to [0, 1]; 0.0 when the
    maximum is not positive or fewer than two scores exist.
    """
    values = np.asarray(scores, dtype=np.float64)
    if len(values) < 2:
        return 0.0
    top = np.sort(values)[::-1]
    first, second = float(top[0]), float(top[1])
    if first <= 0.0 or second < 0.0:
        return 0.0
    return float(np.clip((first - second) / (first + 1e-9), 0.0, 1.0))


def comb_candidates(
    odf: np.ndarray,
    frame_rate_hz: float,
    bpm_min: float = 40.0,
    bpm_max: float = 200.0,
) -> List[TempoCandidate]:
    """
    Prior-weighted comb-filter score for every lag in the BPM range.

    Lags run from the beat length at ``bpm_max`` to the beat length at
    ``bpm_min`` (both in whole frames), in ascending order.
    """
    x = np.asarray(odf, dtype=np.float64)
    acf = autocorrelation(x)
    lag = frames_per_beat(bpm_max, frame_rate_hz)
    lag_max = frames_per_beat(bpm_min, frame_rate_hz)

    candidates = []
    while lag <= lag_max and lag < len(acf):
        bpm = lag_to_bpm(lag, frame_rate_hz)
        candidates.append(TempoCandidate(bpm, comb_score(x, lag) * tempo_prior(bpm)))
        lag += 1
    return candidates


def smooth_odf(odf: np.ndarray) -> np.ndarray:
    """4-point moving average applied before induction."""
    return moving_average(odf, 4)


def estimate_bpm_from_odf(
    odf: np.ndarray,
    frame_rate_hz: float,
    bpm_min: float = 40.0,
    bpm_max: float = 200.0,
) -> TempoCandidate:
    """
    Estimate tempo from an onset curve.

    Args:
        odf: Combined onset curve (see :func:`combine_odfs`).
        frame_rate_hz: Onset curve sample rate (``sample_rate / hop``).
        bpm_min: Lowest tempo considered.
        bpm_max: Highest tempo considered.

    Returns:
        The best refined (bpm, score). ``TempoCandidate(120.0, 0.0)`` when
        the curve is too short to hold a single beat period.
    """
    smoothed = smooth_odf(odf)
    candidates = comb_candidates(smoothed, frame_rate_hz, bpm_min, bpm_max)
    if not candidates:
        return TempoCandidate(DEFAULT_BPM, 0.0)

    # first maximum wins
    coarse = candidates[int(np.argmax([c.score for c in candidates]))]
    logger.debug("baseline coarse tempo %.2f BPM (score %.4f)", coarse.bpm, coarse.score)

    best_bpm = coarse.bpm
    best_score = float("-inf")
    for base in (coarse.bpm, coarse.bpm / 2.0, coarse.bpm * 2.0):
        for step in range(25):
            bpm = float(np.clip(base - 6.0 + 0.5 * step, bpm_min, bpm_max))
            score = beat_grid_alignment(smoothed, frame_rate_hz, bpm, phases=8) * tempo_prior(bpm)
            if score > best_score:
                best_score = score
                best_bpm = bpm

    return TempoCandidate(clamp_bpm(best_bpm), best_score)
