"""
Result serialization module.

Exports tempo and key analysis results as plain dictionaries or JSON for
tagging tools, playlists and DJ software.
"""

import json
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from tempokey.core.bpm import BpmResult
from tempokey.core.key import KeyResult

if TYPE_CHECKING:
    from tempokey.pipeline import TrackAnalysis

SCHEMA_VERSION = "1.0"


class ResultExporter:
    """
    Exports analysis results to JSON.

    Floats are rounded to a fixed precision; NaN and infinite values are
    written as ``null``.
    """

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision

    def _round(self, value: Optional[float]) -> Optional[float]:
        """Round to configured precision; None for missing or non-finite values."""
        if value is None:
            return None
        f = float(value)
        if math.isnan(f) or math.isinf(f):
            return None
        return round(f, self.precision)

    def _times(self, seconds: Iterable[float]) -> list:
        return [self._round(t) for t in seconds]

    def bpm_to_dict(self, result: BpmResult, include_beats: bool = True) -> dict[str, Any]:
        """Dictionary form of a :class:`BpmResult`."""
        out: dict[str, Any] = {
            "bpm": self._round(result.bpm),
            "confidence": self._round(result.confidence),
            "analyzed_seconds": int(result.analyzed_seconds),
            "n_beats": result.n_beats,
        }
        if include_beats:
            out["beats_seconds"] = self._times(result.beats_seconds)
        return out

    def key_to_dict(self, result: KeyResult) -> dict[str, Any]:
        """Dictionary form of a :class:`KeyResult`."""
        return {
            "key": result.key,
            "camelot": result.camelot,
            "confidence": self._round(result.confidence),
            "analyzed_seconds": int(result.analyzed_seconds),
            "reference_a4_hz": self._round(result.reference_a4_hz),
        }

    def build_report(
        self,
        analysis: "TrackAnalysis",
        include_beats: bool = True,
    ) -> dict[str, Any]:
        """
        Build the complete report dictionary for a track.

        Args:
            analysis: Combined result from ``AudioPipeline``.
            include_beats: Include the beat time list.

        Returns:
            Report dictionary ready for serialization.
        """
        tempo: dict[str, Any] = {
            "bpm": self._round(analysis.bpm),
            "confidence": self._round(analysis.bpm_confidence),
            "n_beats": len(analysis.beats_seconds),
            "analyzed_seconds": int(analysis.bpm_analyzed_seconds),
        }
        if include_beats:
            tempo["beats_seconds"] = self._times(analysis.beats_seconds)

        return {
            "metadata": {
                "duration": self._round(analysis.duration),
                "sample_rate": int(analysis.sample_rate),
                "schema_version": SCHEMA_VERSION,
            },
            "tempo": tempo,
            "key": {
                "key": analysis.key,
                "camelot": analysis.camelot,
                "confidence": self._round(analysis.key_confidence),
                "analyzed_seconds": int(analysis.key_analyzed_seconds),
            },
        }

    def to_json(
        self,
        analysis: "TrackAnalysis",
        indent: Optional[int] = 2,
        include_beats: bool = True,
    ) -> str:
        """Serialize a report to a JSON string."""
        return json.dumps(self.build_report(analysis, include_beats), indent=indent)

    def export_json(
        self,
        analysis: "TrackAnalysis",
        output_path: Union[str, Path],
        indent: int = 2,
        include_beats: bool = True,
    ) -> Path:
        """
        Export a report to a JSON file.

        Args:
            analysis: Combined analysis result.
            output_path: Path for output JSON file.
            indent: JSON indentation level.
            include_beats: Include the beat time list.

        Returns:
            Path to written file.
        """
        report = self.build_report(analysis, include_beats)
        output_path = Path(output_path)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=indent)

        return output_path
