"""Offline tempo, beat and musical key analysis for decoded audio."""

from tempokey.config import BpmConfig, KeyConfig
from tempokey.core.bpm import BpmAnalyzer, BpmResult
from tempokey.core.buffer import PcmBuffer
from tempokey.core.key import KeyAnalyzer, KeyResult, match_key
from tempokey.io.exporter import ResultExporter
from tempokey.pipeline import AudioPipeline, TrackAnalysis

__version__ = "0.1.0"
__all__ = [
    "AudioPipeline",
    "BpmAnalyzer",
    "BpmConfig",
    "BpmResult",
    "KeyAnalyzer",
    "KeyConfig",
    "KeyResult",
    "PcmBuffer",
    "ResultExporter",
    "TrackAnalysis",
    "match_key",
]
