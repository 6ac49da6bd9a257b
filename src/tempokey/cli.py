"""
Command line entry point.

    tempokey track.mp3
    tempokey track.flac --json --no-beats
    tempokey track.wav --engine baseline --bpm-min 70 --bpm-max 140 -o track.json
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tempokey.config import ENGINES, BpmConfig, KeyConfig
from tempokey.io.exporter import ResultExporter
from tempokey.pipeline import AudioPipeline, TrackAnalysis

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tempokey",
        description="Detect tempo, beats and musical key of an audio file",
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (wav, mp3, flac)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Also write the JSON result to this file",
    )

    parser.add_argument(
        "--max-seconds",
        type=float,
        default=120.0,
        help="Analyze at most this many seconds (default: 120)",
    )

    parser.add_argument(
        "--engine",
        choices=ENGINES,
        default="v2",
        help="Tempo engine (default: v2)",
    )

    parser.add_argument(
        "--bpm-min",
        type=float,
        default=60.0,
        help="Lowest tempo considered (default: 60)",
    )

    parser.add_argument(
        "--bpm-max",
        type=float,
        default=180.0,
        help="Highest tempo considered (default: 180)",
    )

    parser.add_argument(
        "--no-beats",
        action="store_true",
        help="Leave beat times out of the output",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log pipeline stages and timings",
    )

    return parser


def format_text(analysis: TrackAnalysis, include_beats: bool = True) -> str:
    """Human-readable summary of an analysis."""
    if analysis.bpm is None:
        return "No audio to analyze"
    lines = [
        f"BPM:    {analysis.bpm:.2f}  (confidence {analysis.bpm_confidence:.2f}, "
        f"{len(analysis.beats_seconds)} beats)",
        f"Key:    {analysis.key}  {analysis.camelot}  "
        f"(confidence {analysis.key_confidence:.2f})",
    ]
    if include_beats and len(analysis.beats_seconds):
        beats = ", ".join(f"{t:.3f}" for t in analysis.beats_seconds[:8])
        more = " ..." if len(analysis.beats_seconds) > 8 else ""
        lines.append(f"Beats:  {beats}{more}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        return 1

    pipeline = AudioPipeline(
        bpm_config=BpmConfig(
            max_analyze_seconds=args.max_seconds,
            bpm_min=args.bpm_min,
            bpm_max=args.bpm_max,
            engine=args.engine,
        ),
        key_config=KeyConfig(max_analyze_seconds=args.max_seconds),
    )

    try:
        analysis = pipeline.process(args.audio)
    except Exception as exc:
        logger.debug("decoding failed", exc_info=True)
        print(f"Error: could not analyze {args.audio}: {exc}", file=sys.stderr)
        return 1

    include_beats = not args.no_beats
    exporter = ResultExporter()
    if args.output is not None:
        path = exporter.export_json(analysis, args.output, include_beats=include_beats)
        logger.info("wrote %s", path)

    if args.json:
        print(exporter.to_json(analysis, include_beats=include_beats))
    else:
        print(format_text(analysis, include_beats))
    return 0


if __name__ == "__main__":
    sys.exit(main())
