"""
BPM detection entry point.

``BpmAnalyzer`` truncates the input to the configured analysis window and
dispatches to one of two tempo pipelines:

* ``"v2"``: :class:`~tempokey.core.engine.TempoEngine` (tempogram + HPS)
* ``"baseline"``: four-ODF onset bank, comb-filter induction and the DP
  beat tracker
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from tempokey.config import BpmConfig
from tempokey.core.beats import track_beats
from tempokey.core.buffer import PcmBuffer
from tempokey.core.engine import TempoEngine
from tempokey.core.onset import combine_odfs, compute_onset_features
from tempokey.core.parallel import timed
from tempokey.core.tempo import (
    DEFAULT_BPM,
    comb_candidates,
    estimate_bpm_from_odf,
    margin_confidence,
    smooth_odf,
)

logger = logging.getLogger(__name__)


@dataclass
class BpmResult:
    """Tempo, beat times and confidence of one analysis."""

    bpm: float
    beats_seconds: np.ndarray = field(default_factory=lambda: np.zeros(0))
    confidence: float = 0.0
    analyzed_seconds: int = 0

    @property
    def n_beats(self) -> int:
        return len(self.beats_seconds)


class BpmAnalyzer:
    """
    Estimates tempo and beat positions of a PCM buffer.

    Holds only its configuration, so one instance can serve concurrent
    calls.
    """

    def __init__(self, config: Optional[BpmConfig] = None):
        """
        Initialize the analyzer.

        Args:
            config: Pipeline parameters. Defaults to ``BpmConfig()``.
        """
        self.config = config or BpmConfig()

    def analyze(self, pcm: PcmBuffer) -> BpmResult:
        """
        Detect tempo and beats in (at most ``max_analyze_seconds`` of) a buffer.

        Args:
            pcm: Mono PCM buffer.

        Returns:
            BpmResult. Input shorter than one frame or without onsets gives
            120 BPM, no beats and zero confidence.
        """
        cfg = self.config
        data = pcm.prefix(cfg.max_analyze_seconds)
        analyzed_seconds = data.n_samples // data.sample_rate

        if cfg.engine == "baseline":
            result = self._analyze_baseline(data)
        else:
            engine_result = TempoEngine(workers=cfg.workers).analyze(
                data.samples,
                data.sample_rate,
                frame_size=cfg.frame_size,
                hop_size=cfg.hop_size,
                bpm_min=cfg.bpm_min,
                bpm_max=cfg.bpm_max,
            )
            result = BpmResult(
                bpm=engine_result.bpm,
                beats_seconds=engine_result.beats_seconds,
                confidence=engine_result.confidence,
            )

        result.confidence = float(np.clip(result.confidence, 0.0, 1.0))
        result.analyzed_seconds = analyzed_seconds
        logger.info(
            "bpm: %.2f (%s), confidence %.3f, %d beats, %d s",
            result.bpm, cfg.engine, result.confidence, result.n_beats, analyzed_seconds,
        )
        return result

    def _analyze_baseline(self, data: PcmBuffer) -> BpmResult:
        cfg = self.config
        with timed("bpm.odf"):
            features = compute_onset_features(
                data.samples, data.sample_rate, cfg.frame_size, cfg.hop_size
            )
            if features.n_frames == 0:
                logger.warning("baseline tempo: input shorter than one frame, using default tempo")
                return BpmResult(bpm=DEFAULT_BPM)
            odf = combine_odfs(features)
        if not np.any(odf > 0.0):
            logger.warning("baseline tempo: silent onset curve, using default tempo")
            return BpmResult(bpm=DEFAULT_BPM)

        frame_rate = features.frame_rate_hz
        with timed("bpm.tempogram"):
            candidate = estimate_bpm_from_odf(odf, frame_rate, cfg.bpm_min, cfg.bpm_max)
            scores = [
                c.score
                for c in comb_candidates(smooth_odf(odf), frame_rate, cfg.bpm_min, cfg.bpm_max)
            ]
        with timed("bpm.refine"):
            beats = track_beats(odf, candidate.bpm, frame_rate)

        return BpmResult(
            bpm=candidate.bpm,
            beats_seconds=beats,
            confidence=margin_confidence(scores),
        )
