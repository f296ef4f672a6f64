import argparse
import logging
import sys
from pathlib import Path

from lecture_summary import (
	ConfigurationError,
	GeminiClient,
	Settings,
	VideoPipeline,
	WhisperCLITranscriber,
)

logger = logging.getLogger("summarize_lectures")

VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".wmv", ".mkv", ".flv", ".webm", ".mpeg", ".mpg"}


class UsageErrorParser(argparse.ArgumentParser):
	def error(self, message: str) -> None:
		self.print_usage(sys.stderr)
		self.exit(1, f"{self.prog}: error: {message}\n")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	parser = UsageErrorParser(
		description="Transcribe lecture videos chunk by chunk and write a refined summary per video.",
	)
	parser.add_argument("model", help="Gemini model identifier, e.g. gemini-1.5-flash")
	parser.add_argument("api_key", help="Gemini API key")
	parser.add_argument("chunk_duration", help="Chunk duration in seconds")
	parser.add_argument("whisper_cli", help="Path to the whisper-cli executable")
	parser.add_argument("whisper_model", help="Path to the whisper model file")
	parser.add_argument("whisper_threads", help="Number of threads for whisper-cli")
	parser.add_argument(
		"whisper_language",
		help="Language hint for whisper-cli ('auto' to detect, 'none' or '' to omit the flag)",
	)
	parser.add_argument("input_path", help="Video file or folder scanned recursively for videos")
	parser.add_argument(
		"--output-dir",
		dest="output_dir",
		default=".",
		help="Directory receiving the three output files per video",
	)
	parser.add_argument(
		"--parallel-segments",
		dest="parallel_segments",
		default=1,
		help="Number of chunks of one video processed at the same time",
	)
	parser.add_argument(
		"--max-retries",
		dest="max_retries",
		default=3,
		help="Retries for a failed LLM prompt",
	)
	parser.add_argument(
		"--retry-delay",
		dest="retry_delay",
		default=15.0,
		help="Seconds to wait between LLM prompt attempts",
	)
	parser.add_argument(
		"--activation-wait",
		dest="activation_wait",
		default=30.0,
		help="Seconds to wait after a video upload before prompting",
	)
	parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
	return parser.parse_args(argv)


def is_video_file(path: Path) -> bool:
	return path.suffix.lower() in VIDEO_EXTENSIONS


def find_video_files(input_path: Path) -> list[Path]:
	if not input_path.exists():
		raise ConfigurationError(f"Error accessing input path: {input_path}")

	if input_path.is_dir():
		logger.info("Processing folder: %s", input_path)
		return sorted(path for path in input_path.rglob("*") if path.is_file() and is_video_file(path))

	logger.info("Processing single file: %s", input_path)
	if is_video_file(input_path):
		return [input_path]
	logger.warning("Input path is not a video file: %s", input_path)
	return []


def main(argv: list[str] | None = None) -> int:
	args = parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.INFO,
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)

	try:
		settings = Settings.from_values(
			model=args.model,
			api_key=args.api_key,
			chunk_duration=args.chunk_duration,
			whisper_cli=args.whisper_cli,
			whisper_model=args.whisper_model,
			whisper_threads=args.whisper_threads,
			whisper_language=args.whisper_language,
			input_path=args.input_path,
			output_dir=args.output_dir,
			max_parallel_segments=args.parallel_segments,
			max_retries=args.max_retries,
			retry_delay=args.retry_delay,
			activation_wait=args.activation_wait,
		)
		video_paths = find_video_files(settings.input_path)
		client = GeminiClient(api_key=settings.api_key, model=settings.model)
	except ConfigurationError as exc:
		logger.error("%s", exc)
		return 1
	logger.info("LLM API setup complete.")

	transcriber = WhisperCLITranscriber(
		cli_path=settings.whisper_cli,
		model_path=settings.whisper_model,
		threads=settings.whisper_threads,
		language=settings.whisper_language,
	)
	pipeline = VideoPipeline(
		client,
		transcriber,
		chunk_duration=settings.chunk_duration,
		output_dir=settings.output_dir,
		max_parallel_segments=settings.max_parallel_segments,
		max_retries=settings.max_retries,
		retry_delay=settings.retry_delay,
		activation_wait=settings.activation_wait,
	)
	pipeline.run(video_paths)
	return 0


if __name__ == "__main__":
	sys.exit(main())
