from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytesseract
import pytest
from PIL import Image

from lecture_summary.models import SampledFrame
from lecture_summary.ocr import default_worker_count, recognize_frames


def _make_frames(directory: Path, count: int) -> list[SampledFrame]:
    frames = []
    for ordinal in range(1, count + 1):
        path = directory / f"frame_{ordinal:04d}.png"
        Image.new("RGB", (32, 24), color=(255, 255, 255)).save(path)
        frames.append(SampledFrame(path=path, ordinal=ordinal))
    return frames


class FakeTesseract:
    def __init__(self, fail_on_calls: set[int] | None = None, delay: float = 0.0) -> None:
        self.fail_on_calls = fail_on_calls or set()
        self.delay = delay
        self.formats: list[str | None] = []
        self.langs: list[str | None] = []
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def __call__(self, image, lang=None, **_kwargs):
        with self._lock:
            self.calls += 1
            call_number = self.calls
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.formats.append(image.format)
            self.langs.append(lang)
        try:
            assert image.mode == "RGB"
            if self.delay:
                time.sleep(self.delay)
            if call_number in self.fail_on_calls:
                raise pytesseract.TesseractError(1, "Error in pixReadStream")
            return "recognized"
        finally:
            with self._lock:
                self.active -= 1


def test_recognize_frames_joins_every_result(tmp_path: Path) -> None:
    frames = _make_frames(tmp_path, 3)
    fake = FakeTesseract()

    with patch("lecture_summary.ocr.pytesseract.image_to_string", side_effect=fake):
        text = recognize_frames(frames)

    assert text == "recognized\n" * 3
    assert fake.calls == 3
    # png frames are handed to tesseract re-encoded as jpeg
    assert fake.formats == ["JPEG"] * 3


def test_recognize_frames_never_shells_out_directly(tmp_path: Path) -> None:
    frames = _make_frames(tmp_path, 1)

    with patch("subprocess.run") as mock_run, patch(
        "lecture_summary.ocr.pytesseract.image_to_string", return_value="slide"
    ) as mock_ocr:
        assert recognize_frames(frames) == "slide\n"

    mock_run.assert_not_called()
    mock_ocr.assert_called_once()


def test_recognize_frames_passes_language(tmp_path: Path) -> None:
    fake = FakeTesseract()

    with patch("lecture_summary.ocr.pytesseract.image_to_string", side_effect=fake):
        recognize_frames(_make_frames(tmp_path, 2), lang="deu")

    assert fake.langs == ["deu", "deu"]


def test_recognize_frames_skips_failed_frames(tmp_path: Path) -> None:
    frames = _make_frames(tmp_path, 4)
    broken = tmp_path / "frame_9999.png"
    broken.write_bytes(b"not an image")
    frames.append(SampledFrame(path=broken, ordinal=5))
    fake = FakeTesseract(fail_on_calls={1})

    with patch("lecture_summary.ocr.pytesseract.image_to_string", side_effect=fake):
        text = recognize_frames(frames, max_workers=2)

    # one unreadable image never reaches tesseract, one tesseract run fails
    assert fake.calls == 4
    assert text.count("recognized") == 3


def test_recognize_frames_tolerates_missing_tesseract(tmp_path: Path) -> None:
    frames = _make_frames(tmp_path, 2)

    with patch(
        "lecture_summary.ocr.pytesseract.image_to_string",
        side_effect=pytesseract.TesseractNotFoundError(),
    ):
        assert recognize_frames(frames) == ""


def test_recognize_frames_never_raises_when_everything_fails(tmp_path: Path) -> None:
    frames = _make_frames(tmp_path, 2)
    fake = FakeTesseract(fail_on_calls={1, 2})

    with patch("lecture_summary.ocr.pytesseract.image_to_string", side_effect=fake):
        assert recognize_frames(frames) == ""


def test_recognize_frames_accepts_plain_paths(tmp_path: Path) -> None:
    frames = _make_frames(tmp_path, 1)

    with patch("lecture_summary.ocr.pytesseract.image_to_string", side_effect=FakeTesseract()):
        assert recognize_frames([str(frames[0].path)]) == "recognized\n"


def test_recognize_frames_handles_no_frames() -> None:
    with patch("lecture_summary.ocr.pytesseract.image_to_string") as mock_ocr:
        assert recognize_frames([]) == ""
    mock_ocr.assert_not_called()


def test_recognize_frames_bounds_concurrency(tmp_path: Path) -> None:
    frames = _make_frames(tmp_path, 6)
    fake = FakeTesseract(delay=0.05)

    with patch("lecture_summary.ocr.pytesseract.image_to_string", side_effect=fake):
        recognize_frames(frames, max_workers=2)

    assert fake.calls == 6
    assert fake.max_active <= 2


@pytest.mark.parametrize("cpus, expected", [(32, 8), (8, 8), (2, 2), (None, 1)])
def test_default_worker_count_is_capped(monkeypatch: pytest.MonkeyPatch, cpus: int | None, expected: int) -> None:
    monkeypatch.setattr("lecture_summary.ocr.os.cpu_count", lambda: cpus)

    assert default_worker_count() == expected
