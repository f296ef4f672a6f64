from __future__ import annotations

import logging
import queue


class LectureSummaryError(RuntimeError):
    """Base class for every failure raised by the lecture pipeline."""


class ConfigurationError(LectureSummaryError):
    """Raised for invalid run settings. Fatal for the whole run."""


class SegmentationError(LectureSummaryError):
    """Raised when probing or splitting a video fails. Aborts that video only."""


class ExtractionError(LectureSummaryError):
    """Raised when still frames cannot be sampled from a segment."""


class TranscriptionError(LectureSummaryError):
    """Raised when a speech or text recognition engine fails on a segment."""


class CloudModelError(LectureSummaryError):
    """Raised when a single request to the cloud model fails."""


class UploadError(CloudModelError):
    """Raised when a media file cannot be uploaded to the cloud model."""


class ActivationError(CloudModelError):
    """Raised when an uploaded file yields no usable model answer."""


class RetryExhausted(CloudModelError):
    """Recorded when every attempt of a prompt failed."""


class FileIOError(LectureSummaryError):
    """Raised for output stream and temporary file I/O failures."""


class ErrorChannel:
    """Buffered, thread-safe sink for errors that must not stop the run.

    Tasks report into it as they fail; the pipeline drains it once the run
    finishes.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[BaseException]" = queue.Queue()

    def report(self, error: BaseException) -> None:
        self._queue.put(error)

    def drain(self) -> list[BaseException]:
        errors: list[BaseException] = []
        while True:
            try:
                errors.append(self._queue.get_nowait())
            except queue.Empty:
                return errors

    def log_all(self, logger: logging.Logger) -> list[BaseException]:
        errors = self.drain()
        for error in errors:
            logger.error("Error from worker: %s", error)
        return errors

    def __len__(self) -> int:
        return self._queue.qsize()
