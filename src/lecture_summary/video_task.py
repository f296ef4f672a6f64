from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Callable, ContextManager, Optional, Protocol

from .errors import ActivationError, CloudModelError, ExtractionError, TranscriptionError, UploadError
from .gemini import UploadedFile
from .media import sample_frames
from .models import SampledFrame, Segment, SourceKind, TranscriptionResult
from .ocr import recognize_frames
from .prompting import RetryingPromptSender

logger = logging.getLogger(__name__)

ACTIVATION_WAIT_SECONDS = 30.0
VIDEO_TEXT_INSTRUCTION = (
    "## Task Description\n"
    "Analyze the video and provide a detailed raw transcription of text displayed in the video."
)


class VideoTaskState(str, Enum):
    UPLOADING = "uploading"
    AWAITING_ACTIVATION = "awaiting-activation"
    PROMPTING = "prompting"
    SUCCEEDED = "succeeded"
    FALLBACK_OCR = "fallback-ocr"
    FAILED = "failed"


class FileStore(Protocol):
    def upload_file(self, path: Path | str, *, mime_type: str | None = None, display_name: str | None = None) -> UploadedFile: ...

    def delete_file(self, name: str) -> None: ...


FrameSampler = Callable[..., ContextManager[list[SampledFrame]]]
FrameRecognizer = Callable[[list[SampledFrame]], str]


class VideoTranscriptionTask:
    """Transcribe the on-screen text of a segment, cloud model first, OCR second.

    Uploading -> AwaitingActivation -> Prompting -> Succeeded is the primary
    path. A failed upload or an empty model answer moves to FallbackOCR, whose
    result is final. Only a frame extraction failure ends in Failed, which is
    raised as :class:`TranscriptionError`.
    """

    def __init__(
        self,
        client: FileStore,
        sender: RetryingPromptSender,
        *,
        activation_wait: float = ACTIVATION_WAIT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        frame_sampler: FrameSampler = sample_frames,
        recognizer: Optional[FrameRecognizer] = None,
        frame_rate: float = 1.0,
    ) -> None:
        self.client = client
        self.sender = sender
        self.activation_wait = activation_wait
        self._sleep = sleep
        self._frame_sampler = frame_sampler
        self._recognizer = recognizer or recognize_frames
        self.frame_rate = frame_rate

    def transcribe(self, segment: Segment) -> TranscriptionResult:
        label = f"video {segment.video_index} chunk {segment.segment_number}"

        self._enter(VideoTaskState.UPLOADING, label)
        try:
            uploaded = self.client.upload_file(segment.video_path)
        except UploadError as exc:
            logger.warning("Chunk %d for video %d: LLM upload failed (%s), falling back to OCR...",
                           segment.segment_number, segment.video_index, exc)
            return self._fallback(segment, label)

        try:
            text = self._prompt(uploaded, label)
        except ActivationError as exc:
            logger.warning("Chunk %d for video %d: %s, falling back to OCR...",
                           segment.segment_number, segment.video_index, exc)
            text = None
        finally:
            self._delete(uploaded)

        if text is None:
            return self._fallback(segment, label)

        self._enter(VideoTaskState.SUCCEEDED, label)
        logger.info("Chunk %d for video %d: video transcribed by LLM.", segment.segment_number, segment.video_index)
        return TranscriptionResult(
            video_index=segment.video_index,
            segment_number=segment.segment_number,
            text=text,
            source=SourceKind.CLOUD_MODEL,
        )

    def _prompt(self, uploaded: UploadedFile, label: str) -> str:
        logger.info("%s uploaded as: %s", label.capitalize(), uploaded.uri)

        self._enter(VideoTaskState.AWAITING_ACTIVATION, label)
        logger.info("Waiting %ss after upload for file activation...", self.activation_wait)
        self._sleep(self.activation_wait)

        self._enter(VideoTaskState.PROMPTING, label)
        text = self.sender.send(VIDEO_TEXT_INSTRUCTION, file=uploaded, label=label)
        if not text:
            raise ActivationError("LLM transcription returned no text")
        return text

    def _fallback(self, segment: Segment, label: str) -> TranscriptionResult:
        self._enter(VideoTaskState.FALLBACK_OCR, label)
        try:
            with self._frame_sampler(
                segment.video_path,
                video_index=segment.video_index,
                segment_number=segment.segment_number,
                fps=self.frame_rate,
            ) as frames:
                text = self._recognizer(frames)
        except ExtractionError as exc:
            self._enter(VideoTaskState.FAILED, label)
            raise TranscriptionError(f"Error extracting frames for {label}: {exc}") from exc

        self._enter(VideoTaskState.SUCCEEDED, label)
        return TranscriptionResult(
            video_index=segment.video_index,
            segment_number=segment.segment_number,
            text=text,
            source=SourceKind.OCR_FALLBACK,
        )

    def _delete(self, uploaded: UploadedFile) -> None:
        try:
            self.client.delete_file(uploaded.name)
        except CloudModelError as exc:
            logger.warning("Error deleting uploaded file %s: %s", uploaded.name, exc)
        else:
            logger.debug("Deleted uploaded file %s", uploaded.name)

    @staticmethod
    def _enter(state: VideoTaskState, label: str) -> None:
        logger.debug("%s: %s", label, state.value)
