from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError
from .prompting import MAX_RETRIES, RETRY_DELAY_SECONDS
from .video_task import ACTIVATION_WAIT_SECONDS


@dataclass(frozen=True)
class Settings:
    """Validated settings for one run of the lecture pipeline."""

    model: str
    api_key: str
    chunk_duration: int
    whisper_cli: Path
    whisper_model: Path
    whisper_threads: int
    whisper_language: str | None
    input_path: Path
    output_dir: Path = Path(".")
    max_parallel_segments: int = 1
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY_SECONDS
    activation_wait: float = ACTIVATION_WAIT_SECONDS

    @classmethod
    def from_values(
        cls,
        *,
        model: str,
        api_key: str | None,
        chunk_duration: str | int,
        whisper_cli: str | Path,
        whisper_model: str | Path,
        whisper_threads: str | int,
        whisper_language: str | None,
        input_path: str | Path,
        output_dir: str | Path = ".",
        max_parallel_segments: str | int = 1,
        max_retries: str | int = MAX_RETRIES,
        retry_delay: str | float = RETRY_DELAY_SECONDS,
        activation_wait: str | float = ACTIVATION_WAIT_SECONDS,
    ) -> "Settings":
        """Build settings from raw command line values, raising :class:`ConfigurationError`."""

        if not model or not str(model).strip():
            raise ConfigurationError("A model identifier is required")

        resolved_key = api_key or os.getenv("GEMINI_API_KEY")
        if not resolved_key:
            raise ConfigurationError("An API key is required (argument or GEMINI_API_KEY)")

        language = (whisper_language or "").strip()
        # "auto" is passed through; whisper-cli only auto-detects with -l auto
        if language.lower() == "none":
            language = ""

        return cls(
            model=str(model).strip(),
            api_key=str(resolved_key),
            chunk_duration=_positive_int("chunk duration", chunk_duration),
            whisper_cli=Path(whisper_cli),
            whisper_model=Path(whisper_model),
            whisper_threads=_positive_int("whisper threads", whisper_threads),
            whisper_language=language or None,
            input_path=Path(input_path),
            output_dir=Path(output_dir),
            max_parallel_segments=_positive_int("parallel segments", max_parallel_segments),
            max_retries=_non_negative_int("max retries", max_retries),
            retry_delay=_non_negative_float("retry delay", retry_delay),
            activation_wait=_non_negative_float("activation wait", activation_wait),
        )


def _positive_int(name: str, value: str | int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {name}: {value!r}") from exc
    if number <= 0:
        raise ConfigurationError(f"Invalid {name}: {value!r} (must be positive)")
    return number


def _non_negative_int(name: str, value: str | int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {name}: {value!r}") from exc
    if number < 0:
        raise ConfigurationError(f"Invalid {name}: {value!r} (must not be negative)")
    return number


def _non_negative_float(name: str, value: str | float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {name}: {value!r}") from exc
    if number < 0 or number != number:
        raise ConfigurationError(f"Invalid {name}: {value!r} (must not be negative)")
    return number
