from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class SourceKind(str, Enum):
    """Which strategy produced a video transcription."""

    CLOUD_MODEL = "cloud-model"
    OCR_FALLBACK = "ocr-fallback"


@dataclass(frozen=True)
class VideoJob:
    """One input video under processing. ``index`` is 1-based within a run."""

    path: Path
    index: int
    base_name: str

    @classmethod
    def from_path(cls, path: Path | str, index: int) -> "VideoJob":
        video = Path(path)
        return cls(path=video, index=index, base_name=video.stem)


@dataclass(frozen=True)
class SegmentWindow:
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class Segment:
    """A fixed-duration slice of a video with its two extracted artifacts."""

    video_index: int
    segment_number: int
    video_path: Path
    audio_path: Path
    window: SegmentWindow


@dataclass(frozen=True)
class SampledFrame:
    path: Path
    ordinal: int


@dataclass(frozen=True)
class TranscriptionResult:
    video_index: int
    segment_number: int
    text: str
    source: SourceKind
