"""
Audio file decoding.

Thin adapter over ``librosa.load``: files are decoded, down-mixed to mono
and wrapped in a :class:`~tempokey.core.buffer.PcmBuffer`.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import librosa

from tempokey.core.buffer import PcmBuffer

logger = logging.getLogger(__name__)


def load_audio(
    audio_path: Union[str, Path],
    sr: Optional[int] = None,
    duration: Optional[float] = None,
) -> PcmBuffer:
    """
    Load audio from file.

    Args:
        audio_path: Path to audio file (wav, mp3, flac).
        sr: Target sample rate. None preserves the file's rate.
        duration: Decode at most this many seconds from the start.

    Returns:
        Mono PcmBuffer.

    Raises:
        Whatever the decoder raises for missing or unreadable files.
    """
    y, sr_out = librosa.load(audio_path, sr=sr, mono=True, duration=duration)
    logger.debug("loaded %s: %d samples at %d Hz", audio_path, len(y), sr_out)
    return PcmBuffer(y, int(sr_out))
