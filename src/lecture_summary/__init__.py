"""Chunked audio/on-screen-text transcription and summarization of lecture videos."""

from .asr import WhisperCLITranscriber
from .config import Settings
from .errors import (
    ActivationError,
    CloudModelError,
    ConfigurationError,
    ErrorChannel,
    ExtractionError,
    FileIOError,
    LectureSummaryError,
    RetryExhausted,
    SegmentationError,
    TranscriptionError,
    UploadError,
)
from .gemini import GeminiClient, UploadedFile
from .media import extract_video_frames, probe_duration, sample_frames, segment_windows, split_video
from .models import SampledFrame, Segment, SegmentWindow, SourceKind, TranscriptionResult, VideoJob
from .ocr import recognize_frames
from .pipeline import JobResult, SegmentProcessor, VideoPipeline, build_refinement_prompt
from .prompting import RetryingPromptSender
from .streams import OutputStreams, TranscriptStream
from .video_task import VideoTaskState, VideoTranscriptionTask

__all__ = [
    "ActivationError",
    "CloudModelError",
    "ConfigurationError",
    "ErrorChannel",
    "ExtractionError",
    "FileIOError",
    "GeminiClient",
    "JobResult",
    "LectureSummaryError",
    "OutputStreams",
    "RetryExhausted",
    "RetryingPromptSender",
    "SampledFrame",
    "Segment",
    "SegmentProcessor",
    "SegmentWindow",
    "SegmentationError",
    "Settings",
    "SourceKind",
    "TranscriptStream",
    "TranscriptionError",
    "TranscriptionResult",
    "UploadError",
    "UploadedFile",
    "VideoJob",
    "VideoPipeline",
    "VideoTaskState",
    "VideoTranscriptionTask",
    "WhisperCLITranscriber",
    "build_refinement_prompt",
    "extract_video_frames",
    "probe_duration",
    "recognize_frames",
    "sample_frames",
    "segment_windows",
    "split_video",
]
