from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import IO, Optional

from .errors import FileIOError
from .models import SourceKind

logger = logging.getLogger(__name__)


class TranscriptStream:
    """Append-only UTF-8 text file shared by concurrent writers.

    Each call writes one complete record under a lock and flushes it, so
    records never interleave and survive later failures.
    """

    def __init__(self, path: Path, handle: IO[str]) -> None:
        self.path = path
        self._handle = handle
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Path | str) -> "TranscriptStream":
        target = Path(path)
        try:
            handle = target.open("w", encoding="utf-8")
        except OSError as exc:
            raise FileIOError(f"Error creating output file {target}") from exc
        return cls(target, handle)

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def write(self, text: str) -> None:
        with self._lock:
            try:
                self._handle.write(text)
                self._handle.flush()
            except (OSError, ValueError) as exc:
                raise FileIOError(f"Error writing to {self.path}") from exc

    def write_line(self, text: str) -> None:
        self.write(f"{text}\n")

    def write_record(
        self,
        video_index: int,
        segment_number: int,
        text: str,
        *,
        source: Optional[SourceKind] = None,
    ) -> None:
        header = f"Video Index: {video_index}, Chunk: {segment_number}"
        if source is not None:
            header += f", Source: {source.value}"
        self.write(f"{header}\n{text}\n")

    def write_completion_marker(self, video_index: int) -> None:
        self.write(f"\n--- VIDEO {video_index} PROCESSING COMPLETE ---\n\n")

    def read_text(self) -> str:
        with self._lock:
            try:
                if not self._handle.closed:
                    self._handle.flush()
                return self.path.read_text(encoding="utf-8")
            except OSError as exc:
                raise FileIOError(f"Error reading {self.path}") from exc

    def close(self) -> None:
        with self._lock:
            if not self._handle.closed:
                self._handle.close()


class OutputStreams:
    """The three per-video outputs: refinement, audio transcript, video transcript."""

    def __init__(self, combined: TranscriptStream, audio: TranscriptStream, video: TranscriptStream) -> None:
        self.combined = combined
        self.audio = audio
        self.video = video

    @staticmethod
    def paths_for(base_name: str, output_dir: Path | str = ".") -> tuple[Path, Path, Path]:
        directory = Path(output_dir)
        return (
            directory / f"{base_name}_output.txt",
            directory / f"{base_name}_audio_output.txt",
            directory / f"{base_name}_video_output.txt",
        )

    @classmethod
    def open(cls, base_name: str, output_dir: Path | str = ".") -> "OutputStreams":
        """Create all three files or none of them stay open."""

        opened: list[TranscriptStream] = []
        try:
            Path(output_dir).mkdir(parents=True, exist_ok=True)
            for path in cls.paths_for(base_name, output_dir):
                opened.append(TranscriptStream.open(path))
        except (FileIOError, OSError) as exc:
            for stream in opened:
                stream.close()
            if isinstance(exc, FileIOError):
                raise
            raise FileIOError(f"Error creating output directory {output_dir}") from exc
        return cls(*opened)

    def __iter__(self):
        return iter((self.combined, self.audio, self.video))

    def write_completion_markers(self, video_index: int) -> None:
        for stream in self:
            try:
                stream.write_completion_marker(video_index)
            except FileIOError as exc:
                logger.error("%s", exc)

    def close(self) -> None:
        for stream in self:
            stream.close()

    def __enter__(self) -> "OutputStreams":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()
