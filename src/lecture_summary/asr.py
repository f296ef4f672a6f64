from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

from .errors import TranscriptionError

logger = logging.getLogger(__name__)


class WhisperCLITranscriber:
    """Runs a whisper.cpp style command line transcriber on audio chunks."""

    def __init__(
        self,
        *,
        cli_path: str | Path,
        model_path: str | Path,
        threads: int = 4,
        language: str | None = None,
    ) -> None:
        self.cli_path = str(cli_path)
        self.model_path = str(model_path)
        self.threads = threads
        self.language = language or None

    def command(self, audio_path: Path | str) -> list[str]:
        args = [
            self.cli_path,
            "--model",
            self.model_path,
            "--threads",
            str(self.threads),
        ]
        if self.language:
            args.extend(["--language", self.language])
        args.append(str(audio_path))
        return args

    def transcribe(
        self,
        audio_path: Path | str,
        *,
        video_index: int = 0,
        segment_number: int = 0,
    ) -> str:
        path = Path(audio_path)
        logger.info("Starting whisper-cli for video %d chunk %d, audio: %s", video_index, segment_number, path)
        started = time.monotonic()

        try:
            completed = subprocess.run(self.command(path), capture_output=True, text=True)
        except OSError as exc:
            raise TranscriptionError(
                f"Could not launch {self.cli_path} for video {video_index} chunk {segment_number}"
            ) from exc

        logger.info(
            "whisper-cli finished for video %d chunk %d in %.1fs",
            video_index,
            segment_number,
            time.monotonic() - started,
        )

        if completed.returncode != 0:
            raise TranscriptionError(
                f"whisper-cli exited with {completed.returncode} for video {video_index} "
                f"chunk {segment_number}, stderr: {completed.stderr}"
            )

        return completed.stdout
