from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Callable, Iterable, Optional, Protocol

from .errors import ErrorChannel, FileIOError, SegmentationError, TranscriptionError
from .gemini import GeminiClient
from .media import split_video
from .models import Segment, SourceKind, VideoJob
from .prompting import MAX_RETRIES, RETRY_DELAY_SECONDS, RetryingPromptSender
from .streams import OutputStreams, TranscriptStream
from .video_task import ACTIVATION_WAIT_SECONDS, VideoTranscriptionTask

logger = logging.getLogger(__name__)


class AudioTranscriber(Protocol):
    def transcribe(self, audio_path: Path | str, *, video_index: int = 0, segment_number: int = 0) -> str: ...


REFINEMENT_TEMPLATE = """Here is a raw transcription of a video. Your task is to refine it into a well-structured, human-like summary with explanations while keeping all the original details. Analyze the lecture provided in the audio transcription and video text.  Identify the main topic, key arguments, supporting evidence, and any examples used.  Explain the lecture in a structured way, highlighting the connections between different ideas.  Use information from both the audio transcription and video text to create a comprehensive explanation, also use timestamp to help us correlate with the audio transcript:

    --- RAW TRANSCRIPTION of Audio ---
    {audio}

    --- RAW TRANSCRIPTION of Video Text ---
    {video}

    Please rewrite it clearly with explanations where needed, ensuring it's easy to read and understand."""


def build_refinement_prompt(audio_transcript: str, video_transcript: str) -> str:
    return REFINEMENT_TEMPLATE.format(audio=audio_transcript, video=video_transcript)


@dataclass
class JobResult:
    job: VideoJob
    segment_count: int = 0
    summary: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class SegmentProcessor:
    """Transcribe the audio and the video of one segment side by side.

    Exactly one record lands in each of the audio and video streams, whatever
    the engines do, and the segment's artifacts are removed only after both
    tasks are done.
    """

    def __init__(
        self,
        audio_transcriber: AudioTranscriber,
        video_transcriber: VideoTranscriptionTask,
        errors: ErrorChannel,
    ) -> None:
        self.audio_transcriber = audio_transcriber
        self.video_transcriber = video_transcriber
        self.errors = errors

    def process(self, segment: Segment, streams: OutputStreams) -> None:
        logger.info("Processing chunk %d for video %d...", segment.segment_number, segment.video_index)

        try:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"chunk{segment.segment_number}") as executor:
                futures = [
                    executor.submit(self._transcribe_audio, segment, streams.audio),
                    executor.submit(self._transcribe_video, segment, streams.video),
                ]
            for future in futures:
                error = future.exception()
                if error is not None:
                    logger.error(
                        "Unexpected error in chunk %d for video %d: %s",
                        segment.segment_number,
                        segment.video_index,
                        error,
                    )
                    self.errors.report(error)
        finally:
            self._remove_artifacts(segment)
        logger.info("Finished processing chunk %d for video %d.", segment.segment_number, segment.video_index)

    def _transcribe_audio(self, segment: Segment, stream: TranscriptStream) -> None:
        try:
            text = self.audio_transcriber.transcribe(
                segment.audio_path,
                video_index=segment.video_index,
                segment_number=segment.segment_number,
            )
        except Exception as exc:  # noqa: BLE001 - every segment must still yield an audio record
            self._report_failure("audio", segment, exc)
            text = f"Audio transcription failed for video {segment.video_index} chunk {segment.segment_number}."

        self._append(stream, segment, text, source=None, kind="audio")

    def _transcribe_video(self, segment: Segment, stream: TranscriptStream) -> None:
        source: Optional[SourceKind] = None
        try:
            result = self.video_transcriber.transcribe(segment)
        except Exception as exc:  # noqa: BLE001 - every segment must still yield a video record
            self._report_failure("video", segment, exc)
            text = f"Video transcription failed for video {segment.video_index} chunk {segment.segment_number}."
        else:
            text = result.text
            source = result.source

        self._append(stream, segment, text, source=source, kind="video")

    def _append(
        self,
        stream: TranscriptStream,
        segment: Segment,
        text: str,
        *,
        source: Optional[SourceKind],
        kind: str,
    ) -> None:
        try:
            stream.write_record(segment.video_index, segment.segment_number, text, source=source)
        except FileIOError as exc:
            self.errors.report(
                FileIOError(
                    f"error writing to {kind} file for video {segment.video_index} chunk {segment.segment_number}: {exc}"
                )
            )
            return
        logger.info(
            "Chunk %d for video %d: %s transcribed and written to %s output file.",
            segment.segment_number,
            segment.video_index,
            kind.capitalize(),
            kind,
        )

    def _report_failure(self, kind: str, segment: Segment, exc: Exception) -> None:
        error = TranscriptionError(
            f"error transcribing {kind} for video {segment.video_index} chunk {segment.segment_number}: {exc}"
        )
        error.__cause__ = exc
        self.errors.report(error)

    def _remove_artifacts(self, segment: Segment) -> None:
        for artifact in (segment.audio_path, segment.video_path):
            try:
                artifact.unlink(missing_ok=True)
            except OSError as exc:
                self.errors.report(FileIOError(f"could not delete {artifact}: {exc}"))


class VideoPipeline:
    """Turn lecture videos into audio/video transcripts and a refined summary.

    Videos are processed one after another. The cloud client is created by
    the caller and shared by every job.
    """

    def __init__(
        self,
        client: GeminiClient,
        audio_transcriber: AudioTranscriber,
        *,
        chunk_duration: float,
        output_dir: Path | str = ".",
        max_parallel_segments: int = 1,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        activation_wait: float = ACTIVATION_WAIT_SECONDS,
        errors: Optional[ErrorChannel] = None,
        sender: Optional[RetryingPromptSender] = None,
        video_transcriber: Optional[VideoTranscriptionTask] = None,
        segmenter: Callable[..., list[Segment]] = split_video,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if chunk_duration <= 0:
            raise ValueError("chunk_duration must be positive")
        if max_parallel_segments < 1:
            raise ValueError("max_parallel_segments must be at least 1")

        self.client = client
        self.chunk_duration = chunk_duration
        self.output_dir = Path(output_dir)
        self.max_parallel_segments = max_parallel_segments
        self.errors = errors if errors is not None else ErrorChannel()
        self.sender = sender or RetryingPromptSender(
            client,
            max_retries=max_retries,
            retry_delay=retry_delay,
            sleep=sleep,
            errors=self.errors,
        )
        self.video_transcriber = video_transcriber or VideoTranscriptionTask(
            client,
            self.sender,
            activation_wait=activation_wait,
            sleep=sleep,
        )
        self.segment_processor = SegmentProcessor(audio_transcriber, self.video_transcriber, self.errors)
        self._segmenter = segmenter

    def run(self, video_paths: Iterable[Path | str]) -> list[JobResult]:
        results: list[JobResult] = []
        for index, video_path in enumerate(video_paths, start=1):
            results.append(self.process_job(VideoJob.from_path(video_path, index)))

        if not results:
            logger.info("No video files found to process.")
        self.errors.log_all(logger)
        logger.info("All videos processing complete.")
        return results

    def process_job(self, job: VideoJob) -> JobResult:
        logger.info("--- START PROCESSING VIDEO %d: %s ---", job.index, job.path)

        try:
            streams = OutputStreams.open(job.base_name, self.output_dir)
        except FileIOError as exc:
            logger.error("Error creating output files for video %s: %s", job.path, exc)
            self.errors.report(exc)
            return JobResult(job=job, error=str(exc))

        with streams:
            with TemporaryDirectory(prefix="video_chunks") as work_dir:
                try:
                    segments = self._segmenter(
                        job.path,
                        self.chunk_duration,
                        video_index=job.index,
                        base_name=job.base_name,
                        work_dir=Path(work_dir),
                    )
                except SegmentationError as exc:
                    logger.error("Error chunking video %s: %s", job.path, exc)
                    self.errors.report(exc)
                    return JobResult(job=job, error=str(exc))

                logger.info("Video chunking complete: %d chunk(s).", len(segments))
                self._process_segments(segments, streams)

            logger.info("All video chunks processed. Sending combined prompt to LLM...")
            summary = self._refine(job, streams)
            streams.write_completion_markers(job.index)

        logger.info("--- FINISHED PROCESSING VIDEO %d: %s ---", job.index, job.path)
        return JobResult(job=job, segment_count=len(segments), summary=summary)

    def _process_segments(self, segments: list[Segment], streams: OutputStreams) -> None:
        if self.max_parallel_segments == 1 or len(segments) < 2:
            for segment in segments:
                self.segment_processor.process(segment, streams)
            return

        with ThreadPoolExecutor(max_workers=self.max_parallel_segments, thread_name_prefix="segment") as executor:
            list(executor.map(lambda segment: self.segment_processor.process(segment, streams), segments))

    def _refine(self, job: VideoJob, streams: OutputStreams) -> Optional[str]:
        try:
            audio_transcript = streams.audio.read_text()
            video_transcript = streams.video.read_text()
        except FileIOError as exc:
            logger.error("Error reading transcripts back for video %d: %s", job.index, exc)
            self.errors.report(exc)
            return None

        prompt = build_refinement_prompt(audio_transcript, video_transcript)
        return self.sender.send(
            prompt,
            sink=streams.combined.write_line,
            label=f"combined prompt for video {job.index}",
        )
