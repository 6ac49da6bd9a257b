"""Audio loading and result serialization."""

from tempokey.io.exporter import ResultExporter
from tempokey.io.loader import load_audio

__all__ = ["ResultExporter", "load_audio"]
