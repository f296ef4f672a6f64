from __future__ import annotations

import threading
from pathlib import Path

import pytest

from lecture_summary.errors import FileIOError
from lecture_summary.models import SourceKind
from lecture_summary.streams import OutputStreams


def test_open_creates_three_outputs(tmp_path: Path) -> None:
    with OutputStreams.open("lecture01", tmp_path / "out") as streams:
        assert streams.combined.path == tmp_path / "out" / "lecture01_output.txt"
        assert streams.audio.path == tmp_path / "out" / "lecture01_audio_output.txt"
        assert streams.video.path == tmp_path / "out" / "lecture01_video_output.txt"

    assert all(stream.closed for stream in streams)


def test_records_and_markers(tmp_path: Path) -> None:
    with OutputStreams.open("talk", tmp_path) as streams:
        streams.audio.write_record(1, 0, "hello class")
        streams.video.write_record(1, 0, "Slide: Agenda", source=SourceKind.CLOUD_MODEL)
        assert streams.audio.read_text() == "Video Index: 1, Chunk: 0\nhello class\n"
        streams.write_completion_markers(1)

    video = (tmp_path / "talk_video_output.txt").read_text(encoding="utf-8")
    assert video == (
        "Video Index: 1, Chunk: 0, Source: cloud-model\nSlide: Agenda\n"
        "\n--- VIDEO 1 PROCESSING COMPLETE ---\n\n"
    )
    assert (tmp_path / "talk_output.txt").read_text(encoding="utf-8").endswith("--- VIDEO 1 PROCESSING COMPLETE ---\n\n")


def test_concurrent_records_never_interleave(tmp_path: Path) -> None:
    def writer(stream, worker: int) -> None:
        for number in range(50):
            stream.write_record(worker, number, f"payload-{worker}-{number} " * 20)

    with OutputStreams.open("busy", tmp_path) as streams:
        threads = [threading.Thread(target=writer, args=(streams.audio, worker)) for worker in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        content = streams.audio.read_text()

    lines = content.splitlines()
    assert len(lines) == 8 * 50 * 2
    for header, body in zip(lines[0::2], lines[1::2]):
        worker, number = [part.split(": ")[1] for part in header.split(", ")]
        assert body.startswith(f"payload-{worker}-{number} ")


def test_open_fails_when_directory_is_unusable(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")

    with pytest.raises(FileIOError):
        OutputStreams.open("lecture", blocker)


def test_write_after_close_raises(tmp_path: Path) -> None:
    streams = OutputStreams.open("closed", tmp_path)
    streams.close()

    with pytest.raises(FileIOError):
        streams.audio.write_record(1, 0, "late")
