"""
tempokey analysis benchmark + serial/parallel parity validation.

Usage:
    python scripts/benchmark.py [--quick]

Modes:
    default  : 60 s synthetic track at 44.1 kHz, 1 warm-up + 5 timed runs
    --quick  : 15 s synthetic track, 1 warm-up + 2 timed runs (CI-friendly)

Output: timing table + parity report printed to stdout.

Parity check: runs the BPM and key pipelines with a single worker and with
the full worker pool. Tempo, beat times and magnitude frames must match
within float rounding of the batched FFT; the key label must match exactly.
"""

import argparse
import os
import sys
import time
from typing import List

import numpy as np

# Make sure the installed package is on the path when run from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from tempokey.config import BpmConfig, KeyConfig
from tempokey.core.bpm import BpmAnalyzer
from tempokey.core.buffer import PcmBuffer
from tempokey.core.key import KeyAnalyzer
from tempokey.core.spectrum import magnitude_frames
from tempokey.pipeline import AudioPipeline

_SEP = "─" * 72

SAMPLE_RATE = 44100
TRACK_BPM = 124.0


def _hdr(title: str) -> None:
    print(f"\n{_SEP}")
    print(f"  {title}")
    print(_SEP)


def _timeit(fn, *args, warmup: int = 1, runs: int = 5, **kwargs) -> List[float]:
    """Run fn(*args, **kwargs), discard warmup iterations, return timed samples."""
    for _ in range(warmup):
        fn(*args, **kwargs)
    times = []
    for _ in range(runs):
        t0 = time.perf_counter()
        fn(*args, **kwargs)
        times.append(time.perf_counter() - t0)
    return times


def _stats(times: List[float]) -> str:
    arr = np.array(times)
    return f"mean={arr.mean()*1000:.1f} ms  min={arr.min()*1000:.1f} ms  max={arr.max()*1000:.1f} ms"


def synthetic_track(seconds: float, sr: int = SAMPLE_RATE, bpm: float = TRACK_BPM) -> PcmBuffer:
    """Decaying clicks at ``bpm`` over a sustained A-minor triad."""
    n = int(seconds * sr)
    t = np.arange(n) / sr
    y = np.zeros(n, dtype=np.float64)
    for freq in (220.0, 261.63, 329.63):
        y += 0.15 * np.sin(2 * np.pi * freq * t)

    click_len = int(0.01 * sr)
    click = np.exp(-np.linspace(0.0, 8.0, click_len)) * 0.8
    period = 60.0 / bpm
    for onset in np.arange(0.0, seconds, period):
        start = int(onset * sr)
        stop = min(n, start + click_len)
        y[start:stop] += click[: stop - start]
    return PcmBuffer(y.astype(np.float32), sr)


# ---------------------------------------------------------------------------
# Parity helpers
# ---------------------------------------------------------------------------

def _parity_bpm(pcm: PcmBuffer) -> dict:
    serial = BpmAnalyzer(BpmConfig(workers=1)).analyze(pcm)
    parallel = BpmAnalyzer(BpmConfig(workers=8)).analyze(pcm)
    same_beats = (
        len(serial.beats_seconds) == len(parallel.beats_seconds)
        and np.allclose(serial.beats_seconds, parallel.beats_seconds)
    )
    return {
        "ok": abs(serial.bpm - parallel.bpm) < 1e-6 and same_beats,
        "detail": f"bpm {serial.bpm:.2f} vs {parallel.bpm:.2f}, "
                  f"beats {len(serial.beats_seconds)} vs {len(parallel.beats_seconds)}",
    }


def _parity_magnitudes(pcm: PcmBuffer) -> dict:
    serial = magnitude_frames(pcm.samples, 2048, 256, workers=1)
    parallel = magnitude_frames(pcm.samples, 2048, 256, workers=8)
    return {
        "ok": np.allclose(serial, parallel, rtol=1e-5, atol=1e-6),
        "detail": f"{serial.shape[0]} frames x {serial.shape[1]} bins, "
                  f"max diff {float(np.max(np.abs(serial - parallel))):.2e}",
    }


def _parity_key(pcm: PcmBuffer) -> dict:
    serial = KeyAnalyzer(KeyConfig(workers=1)).analyze(pcm)
    parallel = KeyAnalyzer(KeyConfig(workers=6)).analyze(pcm)
    diff = float(np.max(np.abs(serial.chroma - parallel.chroma)))
    return {
        "ok": serial.key == parallel.key and diff < 1e-9,
        "detail": f"{serial.key} vs {parallel.key}, chroma max diff {diff:.2e}",
    }


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(description="tempokey analysis benchmark")
    parser.add_argument(
        "--quick",
        action="store_true",
        help="Use a 15 s track instead of 60 s for fast CI runs",
    )
    args = parser.parse_args()

    if args.quick:
        SECONDS, WARMUP, RUNS = 15.0, 1, 2
        label = "15 s track (quick mode)"
    else:
        SECONDS, WARMUP, RUNS = 60.0, 1, 5
        label = "60 s track (full mode)"

    pcm = synthetic_track(SECONDS)
    print(f"\ntempokey Benchmark  |  {label}")
    print(f"Sample rate: {SAMPLE_RATE} Hz  |  CPU cores: {os.cpu_count()}")
    print(f"Warm-up runs: {WARMUP}  |  Timed runs: {RUNS}")

    results = {}

    _hdr("1. magnitude STFT (8 workers)")
    t = _timeit(magnitude_frames, pcm.samples, 2048, 256, workers=8, warmup=WARMUP, runs=RUNS)
    results["magnitude_frames"] = t
    print(f"  {_stats(t)}")

    _hdr("2. BPM, tempo engine v2")
    analyzer = BpmAnalyzer(BpmConfig(engine="v2"))
    t = _timeit(analyzer.analyze, pcm, warmup=WARMUP, runs=RUNS)
    results["bpm_v2"] = t
    print(f"  {_stats(t)}  ->  {analyzer.analyze(pcm).bpm:.2f} BPM")

    _hdr("3. BPM, baseline engine")
    analyzer = BpmAnalyzer(BpmConfig(engine="baseline"))
    t = _timeit(analyzer.analyze, pcm, warmup=WARMUP, runs=RUNS)
    results["bpm_baseline"] = t
    print(f"  {_stats(t)}  ->  {analyzer.analyze(pcm).bpm:.2f} BPM")

    _hdr("4. key detection")
    key_analyzer = KeyAnalyzer()
    t = _timeit(key_analyzer.analyze, pcm, warmup=WARMUP, runs=RUNS)
    results["key"] = t
    print(f"  {_stats(t)}  ->  {key_analyzer.analyze(pcm).key}")

    _hdr("5. full pipeline (BPM + key concurrently)")
    pipeline = AudioPipeline()
    t = _timeit(pipeline.analyze_buffer, pcm, warmup=WARMUP, runs=RUNS)
    results["pipeline"] = t
    print(f"  {_stats(t)}")

    # ------------------------------------------------------------------
    # Parity validation
    # ------------------------------------------------------------------
    _hdr("Parity validation (serial vs parallel)")
    checks = {
        "magnitude_frames": _parity_magnitudes(pcm),
        "bpm": _parity_bpm(pcm),
        "key": _parity_key(pcm),
    }
    for name, r in checks.items():
        status = "PASS" if r["ok"] else "FAIL"
        print(f"  {name:<20}  {r['detail']}  [{status}]")

    if all(r["ok"] for r in checks.values()):
        print("\n  All parity checks PASSED.")
    else:
        print("\n  !! PARITY FAILURES DETECTED !!")
        sys.exit(1)

    # ------------------------------------------------------------------
    # Summary table
    # ------------------------------------------------------------------
    _hdr("Summary")
    name_w = max(len(name) for name in results) + 2
    print(f"  {'Stage':<{name_w}} Time (ms, mean)")
    print(f"  {'-'*name_w} ---------------")
    for name, times in results.items():
        print(f"  {name:<{name_w}} {np.mean(times)*1000:.1f}")

    print(f"\n{_SEP}\n")


if __name__ == "__main__":
    main()
