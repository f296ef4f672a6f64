from __future__ import annotations

import io
import logging
import os
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import pytesseract
from PIL import Image

from .models import SampledFrame

logger = logging.getLogger(__name__)

MAX_OCR_WORKERS = 8


@dataclass(frozen=True)
class _FrameText:
    path: Path
    text: str
    error: Exception | None = None


def default_worker_count() -> int:
    """Number of OCR workers: one per CPU, capped to keep the process count sane."""

    return max(1, min(os.cpu_count() or 1, MAX_OCR_WORKERS))


def recognize_frames(
    frames: Iterable[SampledFrame | Path | str],
    *,
    lang: str | None = None,
    max_workers: int | None = None,
    jpeg_quality: int = 90,
) -> str:
    """Run OCR on every frame in parallel and join the texts that came back.

    Frames that cannot be read, re-encoded or recognized are logged and left
    out; this function does not raise for per-frame failures. The call only
    returns once every worker has finished.
    """

    paths = [frame.path if isinstance(frame, SampledFrame) else Path(frame) for frame in frames]
    if not paths:
        return ""

    workers = min(max_workers or default_worker_count(), len(paths))
    results: "queue.Queue[_FrameText]" = queue.Queue(maxsize=len(paths))

    def work(path: Path) -> None:
        try:
            text = _recognize_one(path, jpeg_quality=jpeg_quality, lang=lang)
        except (pytesseract.TesseractError, OSError) as exc:
            results.put(_FrameText(path=path, text="", error=exc))
        except Exception as exc:  # noqa: BLE001 - one bad frame must not sink the ensemble
            logger.exception("Unexpected OCR error for %s", path)
            results.put(_FrameText(path=path, text="", error=exc))
        else:
            results.put(_FrameText(path=path, text=text))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ocr") as executor:
        for path in paths:
            executor.submit(work, path)

    combined: list[str] = []
    failures = 0
    while not results.empty():
        outcome = results.get_nowait()
        if outcome.error is not None:
            failures += 1
            logger.warning("OCR failed for %s: %s", outcome.path, outcome.error)
            continue
        combined.append(outcome.text)
        combined.append("\n")

    logger.info("OCR finished: %d/%d frame(s) recognized", len(paths) - failures, len(paths))
    return "".join(combined)


def _recognize_one(path: Path, *, jpeg_quality: int, lang: str | None) -> str:
    with Image.open(path) as image:
        rgb = image.convert("RGB")

    # tesseract reads the re-encoded JPEG, not the sampled frame
    buffer = io.BytesIO()
    rgb.save(buffer, format="JPEG", quality=jpeg_quality)
    buffer.seek(0)
    with Image.open(buffer) as encoded:
        if lang:
            return pytesseract.image_to_string(encoded, lang=lang)
        return pytesseract.image_to_string(encoded)
