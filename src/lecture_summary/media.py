from __future__ import annotations

import logging
import math
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pydub.utils import mediainfo

from .errors import ExtractionError, SegmentationError
from .models import SampledFrame, Segment, SegmentWindow

logger = logging.getLogger(__name__)


def probe_duration(input_video: Path | str) -> float:
    """Return the container duration of ``input_video`` in seconds using ffprobe."""

    source = Path(input_video)
    try:
        info = mediainfo(str(source))
        duration = float(info["duration"])
    except (OSError, KeyError, TypeError, ValueError) as exc:
        raise SegmentationError(f"Failed to probe duration of {source}") from exc

    if math.isnan(duration) or duration < 0:
        raise SegmentationError(f"ffprobe reported an invalid duration for {source}: {duration}")
    return duration


def segment_windows(duration: float, chunk_duration: float) -> list[SegmentWindow]:
    """Cut ``[0, duration)`` into consecutive windows of ``chunk_duration`` seconds.

    The last window is shortened so that the windows partition the whole range
    without gaps or overlaps.
    """

    if chunk_duration <= 0:
        raise ValueError("chunk_duration must be positive")
    if duration <= 0:
        return []

    count = math.ceil(duration / chunk_duration)
    return [
        SegmentWindow(start=index * chunk_duration, end=min((index + 1) * chunk_duration, duration))
        for index in range(count)
    ]


def split_video(
    input_video: Path | str,
    chunk_duration: float,
    *,
    video_index: int,
    base_name: str,
    work_dir: Path | str,
    sample_rate: int = 16000,
) -> list[Segment]:
    """Split ``input_video`` into video-only and audio-only artifacts per window.

    Video is stream-copied into ``chunk_<n>_video_<index>.mp4``; audio is decoded
    into a mono 16-bit PCM ``chunk_<n>_video_<index>.wav``. Any probe or ffmpeg
    failure raises :class:`SegmentationError` and no segment list is returned.
    """

    if shutil.which("ffmpeg") is None:
        raise SegmentationError("ffmpeg not found in PATH")

    source = Path(input_video)
    target_dir = Path(work_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    duration = probe_duration(source)
    windows = segment_windows(duration, chunk_duration)
    logger.info(
        "Video %d (%s): %.1fs long, %d segment(s) of %ss",
        video_index,
        base_name,
        duration,
        len(windows),
        chunk_duration,
    )

    segments: list[Segment] = []
    for number, window in enumerate(windows):
        video_out = target_dir / f"chunk_{number}_video_{video_index}.mp4"
        audio_out = target_dir / f"chunk_{number}_video_{video_index}.wav"
        length = _format_seconds(window.duration)

        command = [
            "ffmpeg",
            "-y",
            "-ss",
            _format_seconds(window.start),
            "-i",
            str(source),
            "-t",
            length,
            "-c",
            "copy",
            "-an",
            str(video_out),
            "-t",
            length,
            "-vn",
            "-ac",
            "1",
            "-ar",
            str(sample_rate),
            "-acodec",
            "pcm_s16le",
            str(audio_out),
        ]

        try:
            subprocess.run(command, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as exc:
            raise SegmentationError(
                f"Error creating chunk {number} for video {video_index}: {exc.stderr}"
            ) from exc
        except OSError as exc:
            raise SegmentationError(f"Failed to launch ffmpeg for video {video_index}") from exc

        if not video_out.exists() or not audio_out.exists():
            raise SegmentationError(f"ffmpeg did not produce both artifacts for chunk {number} of video {video_index}")

        segments.append(
            Segment(
                video_index=video_index,
                segment_number=number,
                video_path=video_out,
                audio_path=audio_out,
                window=window,
            )
        )

    return segments


def extract_video_frames(
    input_video: Path | str,
    *,
    output_dir: Path | str,
    fps: float = 1.0,
    image_format: str = "jpg",
    frame_prefix: str = "frame",
) -> list[Path]:
    """Extract JPEG frames at ``fps`` frames per second using ffmpeg.

    Returns a list of extracted frame paths sorted in ascending order.
    """

    if fps <= 0:
        raise ValueError("fps must be positive")

    source = Path(input_video)
    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    pattern = target_dir / f"{frame_prefix}_%04d.{image_format}"
    command = [
        "ffmpeg",
        "-y",
        "-i",
        str(source),
        "-r",
        f"{fps:g}",
        "-q:v",
        "2",
        str(pattern),
    ]

    try:
        subprocess.run(command, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as exc:
        raise ExtractionError(f"Failed to extract video frames with ffmpeg: {exc.stderr}") from exc
    except OSError as exc:
        raise ExtractionError("Failed to launch ffmpeg for frame extraction") from exc

    return sorted(target_dir.glob(f"{frame_prefix}_*.{image_format}"))


@contextmanager
def sample_frames(
    input_video: Path | str,
    *,
    video_index: int,
    segment_number: int,
    fps: float = 1.0,
) -> Iterator[list[SampledFrame]]:
    """Yield frames sampled from ``input_video`` in a private temp directory.

    The directory and every frame in it are removed when the block exits,
    including when extraction itself fails.
    """

    frame_dir = Path(tempfile.mkdtemp(prefix=f"frames_video{video_index}_chunk{segment_number}_"))
    try:
        paths = extract_video_frames(input_video, output_dir=frame_dir, fps=fps)
        logger.debug("Sampled %d frame(s) for video %d chunk %d", len(paths), video_index, segment_number)
        yield [SampledFrame(path=path, ordinal=ordinal) for ordinal, path in enumerate(paths, start=1)]
    finally:
        try:
            shutil.rmtree(frame_dir)
        except OSError as exc:
            logger.warning("Could not remove frame directory %s: %s", frame_dir, exc)


def _format_seconds(value: float) -> str:
    return f"{value:.3f}"
