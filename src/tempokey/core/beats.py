"""
Dynamic-programming beat tracker.

Beat candidates are the local maxima of the onset curve. Candidates form
an implicit acyclic graph: an edge ``j -> i`` exists when candidate ``i``
lies within ``search_radius`` frames of one beat period after ``j``. The
tracker keeps the candidates in a flat arena (parallel ``scores`` /
``back`` arrays indexed by candidate number) and backtracks from the
best-scoring node.
"""

import logging

import numpy as np

from tempokey.core.polisher import local_maxima

logger = logging.getLogger(__name__)


def track_beats(
    odf: np.ndarray,
    bpm: float,
    frame_rate_hz: float,
    search_radius_frames: int = 4,
    peak_radius: int = 2,
    min_peak_value: float = 0.05,
) -> np.ndarray:
    """
    Find the best beat path over onset peaks at a target tempo.

    ``score[i]`` starts at the onset strength of candidate ``i``; a
    predecessor ``j`` whose expected next beat lands within the search
    radius offers ``score[j] + odf[i] - deviation / search_radius``.
    The first (earliest) best predecessor wins ties.

    Args:
        odf: Onset curve, one value per frame.
        bpm: Target tempo.
        frame_rate_hz: Onset curve sample rate.
        search_radius_frames: Allowed deviation from the expected beat.
        peak_radius: Local-maximum radius for candidate detection.
        min_peak_value: Minimum onset strength of a candidate.

    Returns:
        Beat times in seconds, ascending. Empty when there are no candidates.
    """
    x = np.asarray(odf, dtype=np.float32)
    peaks = local_maxima(x, radius=peak_radius, min_value=min_peak_value)
    if len(peaks) == 0 or bpm <= 0.0:
        return np.zeros(0, dtype=np.float64)

    fpb = max(1.0, float(np.float32((60.0 / bpm) * frame_rate_hz)))
    radius = max(1, int(search_radius_frames))
    strength = x[peaks].astype(np.float64)

    n = len(peaks)
    scores = strength.copy()
    back = np.full(n, -1, dtype=np.intp)

    # peaks are sorted, so only a narrow slice of predecessors can be reachable
    lo_bounds = np.searchsorted(peaks, peaks - fpb - radius - 1, side="left")
    hi_bounds = np.searchsorted(peaks, peaks - fpb + radius + 1, side="right")

    for i in range(1, n):
        lo = int(lo_bounds[i])
        hi = min(int(hi_bounds[i]), i)
        if lo >= hi:
            continue
        deviation = np.abs(peaks[i] - (peaks[lo:hi] + fpb))
        reachable = deviation <= radius
        if not np.any(reachable):
            continue
        offers = np.where(
            reachable,
            scores[lo:hi] + strength[i] - deviation / radius,
            -np.inf,
        )
        j = lo + int(np.argmax(offers))
        if offers[j - lo] > scores[i]:
            scores[i] = offers[j - lo]
            back[i] = j

    path = []
    k = int(np.argmax(scores))
    while k >= 0:
        path.append(peaks[k])
        k = back[k]
    path.reverse()

    logger.debug("beat tracker: %d candidates, %d beats at %.2f BPM", n, len(path), bpm)
    return np.asarray(path, dtype=np.float64) / frame_rate_hz
