"""Audio-related data models."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RecordingFormat:
    """Capture settings for one recording."""
    sample_rate: int = 16000
    channels: int = 1
    sample_width: int = 2  # 16-bit PCM
    chunk_size: int = 1024
    file_suffix: str = ".wav"
    content_type: str = "audio/wav"

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.channels * self.sample_width


STANDARD_FORMAT = RecordingFormat()
COMPACT_FORMAT = RecordingFormat(sample_rate=12000)

FORMAT_PRESETS = {
    "standard": STANDARD_FORMAT,
    "compact": COMPACT_FORMAT,
}


@dataclass
class AudioStats:
    """Audio recording statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_chunks: int
    peak_level: float = 0.0


@dataclass
class CapturedAudio:
    """A finalized recording, ready to be hashed and uploaded."""
    path: Path
    data: bytes
    content_type: str
    duration_seconds: float

    @property
    def filename(self) -> str:
        return self.path.name
