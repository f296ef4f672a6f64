from __future__ import annotations

import logging
from pathlib import Path

import pytest

from lecture_summary.asr import WhisperCLITranscriber
from lecture_summary.config import Settings
from lecture_summary.errors import ConfigurationError, ErrorChannel, RetryExhausted, TranscriptionError


def _values(**overrides) -> dict:
    values = {
        "model": "gemini-1.5-flash",
        "api_key": "secret",
        "chunk_duration": "300",
        "whisper_cli": "/usr/local/bin/whisper-cli",
        "whisper_model": "/models/ggml-base.bin",
        "whisper_threads": "8",
        "whisper_language": "de",
        "input_path": "lectures",
    }
    values.update(overrides)
    return values


def test_from_values_converts_raw_strings() -> None:
    settings = Settings.from_values(**_values(retry_delay="2.5", max_retries="0"))

    assert settings.chunk_duration == 300
    assert settings.whisper_threads == 8
    assert settings.whisper_cli == Path("/usr/local/bin/whisper-cli")
    assert settings.input_path == Path("lectures")
    assert settings.whisper_language == "de"
    assert settings.max_retries == 0
    assert settings.retry_delay == 2.5
    assert settings.activation_wait == 30.0


@pytest.mark.parametrize("language", ["", "  ", "none", "NONE", None])
def test_language_hint_can_be_disabled(language) -> None:
    assert Settings.from_values(**_values(whisper_language=language)).whisper_language is None


def test_auto_language_reaches_whisper_command() -> None:
    settings = Settings.from_values(**_values(whisper_language="auto"))
    transcriber = WhisperCLITranscriber(
        cli_path=settings.whisper_cli,
        model_path=settings.whisper_model,
        threads=settings.whisper_threads,
        language=settings.whisper_language,
    )

    command = transcriber.command("a.wav")

    assert settings.whisper_language == "auto"
    assert command[-3:] == ["--language", "auto", "a.wav"]


def test_api_key_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")

    assert Settings.from_values(**_values(api_key="")).api_key == "from-env"


def test_missing_api_key_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError, match="API key"):
        Settings.from_values(**_values(api_key=None))


@pytest.mark.parametrize(
    "overrides",
    [
        {"model": "  "},
        {"chunk_duration": "0"},
        {"chunk_duration": "1.5"},
        {"whisper_threads": "-2"},
        {"max_parallel_segments": "0"},
        {"max_retries": "-1"},
        {"retry_delay": "soon"},
        {"activation_wait": "nan"},
    ],
)
def test_invalid_values_raise_configuration_error(overrides: dict) -> None:
    with pytest.raises(ConfigurationError):
        Settings.from_values(**_values(**overrides))


def test_error_channel_drains_in_report_order(caplog: pytest.LogCaptureFixture) -> None:
    channel = ErrorChannel()
    first = TranscriptionError("whisper-cli exited with 1")
    second = RetryExhausted("combined prompt for video 1: no answer after 4 attempt(s)")
    channel.report(first)
    channel.report(second)

    assert len(channel) == 2
    with caplog.at_level(logging.ERROR):
        logged = channel.log_all(logging.getLogger("lecture_summary.test"))

    assert logged == [first, second]
    assert len(channel) == 0
    assert "Error from worker: whisper-cli exited with 1" in caplog.text
