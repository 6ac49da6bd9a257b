"""
PCM buffer container.

The engine consumes already-decoded mono float PCM. ``PcmBuffer`` wraps
the samples together with their sample rate and exposes the framing and
prefix-truncation rules every pipeline shares.
"""

from dataclasses import dataclass

import numpy as np


def frame_count(n_samples: int, frame_size: int, hop_size: int) -> int:
    """
    Number of full frames that fit in ``n_samples``.

    ``(n_samples - frame_size) // hop_size + 1``, or 0 when the buffer
    is shorter than one frame.
    """
    if n_samples < frame_size or frame_size <= 0 or hop_size <= 0:
        return 0
    return (n_samples - frame_size) // hop_size + 1


@dataclass(frozen=True)
class PcmBuffer:
    """Immutable mono PCM samples at a known sample rate."""

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float32)
        if samples.ndim != 1:
            raise ValueError(f"PCM must be mono (1-D), got shape {samples.shape}")
        if int(self.sample_rate) <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def n_samples(self) -> int:
        """Total number of samples."""
        return len(self.samples)

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.n_samples / self.sample_rate

    def prefix(self, max_seconds: float) -> "PcmBuffer":
        """
        Return at most the first ``max_seconds`` of audio.

        The result shares memory with this buffer; nothing is copied.
        """
        limit = int(max_seconds * self.sample_rate)
        if limit >= self.n_samples:
            return self
        return PcmBuffer(self.samples[: max(0, limit)], self.sample_rate)

    @classmethod
    def from_int16(
        cls,
        samples: np.ndarray,
        sample_rate: int,
        channels: int = 1,
    ) -> "PcmBuffer":
        """
        Build a mono buffer from interleaved signed 16-bit PCM.

        Args:
            samples: Interleaved int16 samples.
            sample_rate: Sample rate in Hz.
            channels: Interleaved channel count; channels are averaged.

        Returns:
            PcmBuffer with samples scaled to [-1.0, 1.0).
        """
        data = np.asarray(samples, dtype=np.int16).astype(np.float32)
        channels = max(1, int(channels))
        if channels > 1:
            usable = (len(data) // channels) * channels
            data = data[:usable].reshape(-1, channels).mean(axis=1, dtype=np.float32)
        return cls(data / np.float32(32768.0), sample_rate)
