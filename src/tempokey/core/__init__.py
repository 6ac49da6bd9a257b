"""Core signal processing modules."""

from tempokey.core.bpm import BpmAnalyzer, BpmResult
from tempokey.core.buffer import PcmBuffer
from tempokey.core.engine import TempoEngine
from tempokey.core.key import KeyAnalyzer, KeyResult, match_key

__all__ = [
    "BpmAnalyzer",
    "BpmResult",
    "KeyAnalyzer",
    "KeyResult",
    "PcmBuffer",
    "TempoEngine",
    "match_key",
]
