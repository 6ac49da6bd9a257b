"""
Combined track analysis.

Runs the BPM and key pipelines over the same buffer and folds their
results into one ``TrackAnalysis`` record.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import numpy as np

from tempokey.config import BpmConfig, KeyConfig
from tempokey.core.bpm import BpmAnalyzer
from tempokey.core.buffer import PcmBuffer
from tempokey.core.key import KeyAnalyzer
from tempokey.io.loader import load_audio

logger = logging.getLogger(__name__)


@dataclass
class TrackAnalysis:
    """Tempo and key of one track. ``None`` fields mean "not detected"."""

    bpm: Optional[float]
    bpm_confidence: float
    key: Optional[str]
    key_confidence: float
    camelot: Optional[str]
    beats_seconds: np.ndarray = field(default_factory=lambda: np.zeros(0))
    duration: float = 0.0
    sample_rate: int = 0
    bpm_analyzed_seconds: int = 0
    key_analyzed_seconds: int = 0


class AudioPipeline:
    """
    Orchestrates BPM and key detection for a buffer or an audio file.

    Both analyzers are stateless, so one pipeline can be shared between
    threads.
    """

    def __init__(
        self,
        bpm_config: Optional[BpmConfig] = None,
        key_config: Optional[KeyConfig] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            bpm_config: Tempo pipeline parameters.
            key_config: Key pipeline parameters.
        """
        self.bpm_config = bpm_config or BpmConfig()
        self.key_config = key_config or KeyConfig()
        self.bpm_analyzer = BpmAnalyzer(self.bpm_config)
        self.key_analyzer = KeyAnalyzer(self.key_config)

    def analyze_buffer(self, pcm: PcmBuffer) -> TrackAnalysis:
        """
        Detect tempo, beats and key of a decoded buffer.

        The two pipelines run concurrently and are joined before the
        result is assembled.

        Args:
            pcm: Mono PCM buffer.

        Returns:
            TrackAnalysis. An empty buffer yields ``None`` tempo and key
            with zero confidences.
        """
        if pcm.n_samples == 0:
            logger.warning("empty buffer, nothing to analyze")
            return TrackAnalysis(
                bpm=None,
                bpm_confidence=0.0,
                key=None,
                key_confidence=0.0,
                camelot=None,
                sample_rate=pcm.sample_rate,
            )

        with ThreadPoolExecutor(max_workers=2) as pool:
            bpm_future = pool.submit(self.bpm_analyzer.analyze, pcm)
            key_future = pool.submit(self.key_analyzer.analyze, pcm)
            bpm = bpm_future.result()
            key = key_future.result()

        return TrackAnalysis(
            bpm=bpm.bpm,
            bpm_confidence=float(np.clip(bpm.confidence, 0.0, 1.0)),
            key=key.key,
            key_confidence=float(np.clip(key.confidence, 0.0, 1.0)),
            camelot=key.camelot,
            beats_seconds=bpm.beats_seconds,
            duration=pcm.duration,
            sample_rate=pcm.sample_rate,
            bpm_analyzed_seconds=bpm.analyzed_seconds,
            key_analyzed_seconds=key.analyzed_seconds,
        )

    def process(
        self,
        audio_path: Union[str, Path],
        sr: Optional[int] = None,
    ) -> TrackAnalysis:
        """
        Load an audio file and analyze it.

        Only the longest analysis window of the two pipelines is decoded.

        Args:
            audio_path: Path to audio file.
            sr: Decode sample rate. None keeps the file's rate.

        Returns:
            TrackAnalysis of the decoded prefix.
        """
        window = max(self.bpm_config.max_analyze_seconds, self.key_config.max_analyze_seconds)
        pcm = load_audio(audio_path, sr=sr, duration=window)
        logger.info("analyzing %s (%.1f s at %d Hz)", audio_path, pcm.duration, pcm.sample_rate)
        return self.analyze_buffer(pcm)
