from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol, Sequence

from .errors import CloudModelError, ErrorChannel, LectureSummaryError, RetryExhausted
from .gemini import PromptPart, UploadedFile

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 15.0


class ContentGenerator(Protocol):
    def generate_content(self, parts: Sequence[PromptPart]) -> list[str]: ...


class RetryingPromptSender:
    """Send prompts to the cloud model with a bounded number of fixed-delay retries.

    A prompt that keeps failing yields an empty string instead of an exception;
    callers treat that as "no answer".
    """

    def __init__(
        self,
        client: ContentGenerator,
        *,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        errors: Optional[ErrorChannel] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self.client = client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._errors = errors

    def send(
        self,
        instruction: str,
        *,
        file: UploadedFile | None = None,
        sink: Callable[[str], None] | None = None,
        label: str = "prompt",
    ) -> str:
        """Send ``instruction`` (plus ``file`` when given) and return the full answer.

        Each text part is handed to ``sink`` as soon as it is assembled.
        """

        parts: list[PromptPart] = [instruction]
        if file is not None:
            parts.append(file)

        last_error: CloudModelError | None = None
        for attempt in range(1, self.max_retries + 2):
            logger.info("Sending %s to LLM, attempt %d...", label, attempt)
            started = time.monotonic()
            try:
                texts = self.client.generate_content(parts)
            except CloudModelError as exc:
                last_error = exc
                logger.warning("Error generating content for %s (attempt %d): %s", label, attempt, exc)
                if attempt <= self.max_retries:
                    logger.info("Retrying in %ss...", self.retry_delay)
                    self._sleep(self.retry_delay)
                continue

            logger.info("LLM response received for %s in %.1fs", label, time.monotonic() - started)
            return self._assemble(texts, sink)

        logger.error("Max retries reached for %s. Aborting LLM call.", label)
        if self._errors is not None:
            exhausted = RetryExhausted(f"{label}: no answer after {self.max_retries + 1} attempt(s)")
            exhausted.__cause__ = last_error
            self._errors.report(exhausted)
        return ""

    @staticmethod
    def _assemble(texts: Sequence[str], sink: Callable[[str], None] | None) -> str:
        answer: list[str] = []
        for text in texts:
            answer.append(text)
            if sink is None:
                continue
            try:
                sink(text)
            except (LectureSummaryError, OSError) as exc:
                logger.error("Error writing LLM output: %s", exc)
        return "".join(answer)
