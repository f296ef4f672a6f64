from __future__ import annotations

import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence, Union

import requests

from .errors import CloudModelError, ConfigurationError, UploadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    """Handle of a file stored by the Gemini Files API."""

    name: str
    uri: str
    mime_type: str


PromptPart = Union[str, UploadedFile]


class GeminiClient:
    """Client for the Gemini generative-language REST endpoints.

    One instance is created at program start and shared by every job; it only
    holds configuration, so it is safe to use from several threads.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com",
        api_version: str = "v1beta",
        timeout: int = 300,
    ) -> None:
        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set")
        if not model or not model.strip():
            raise ConfigurationError("A Gemini model name is required")

        model = model.strip()
        self.model = model if model.startswith("models/") else f"models/{model}"
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout

    @property
    def _params(self) -> dict[str, str]:
        return {"key": str(self.api_key)}

    def upload_file(
        self,
        path: Path | str,
        *,
        mime_type: str | None = None,
        display_name: str | None = None,
    ) -> UploadedFile:
        source = Path(path)
        resolved_mime = mime_type or mimetypes.guess_type(source.name)[0] or "application/octet-stream"

        try:
            size = source.stat().st_size
            start = requests.post(
                f"{self.base_url}/upload/{self.api_version}/files",
                params=self._params,
                headers={
                    "X-Goog-Upload-Protocol": "resumable",
                    "X-Goog-Upload-Command": "start",
                    "X-Goog-Upload-Header-Content-Length": str(size),
                    "X-Goog-Upload-Header-Content-Type": resolved_mime,
                    "Content-Type": "application/json",
                },
                json={"file": {"display_name": display_name or source.name}},
                timeout=self.timeout,
            )
            start.raise_for_status()
            upload_url = start.headers.get("X-Goog-Upload-URL")
            if not upload_url:
                raise UploadError(f"Gemini did not return an upload URL for {source.name}")

            with source.open("rb") as handle:
                response = requests.post(
                    upload_url,
                    headers={
                        "Content-Length": str(size),
                        "X-Goog-Upload-Offset": "0",
                        "X-Goog-Upload-Command": "upload, finalize",
                    },
                    data=handle,
                    timeout=self.timeout,
                )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, OSError, ValueError) as exc:
            raise UploadError(f"Upload of {source.name} failed") from exc

        try:
            stored = payload["file"]
            return UploadedFile(
                name=stored["name"],
                uri=stored["uri"],
                mime_type=stored.get("mimeType", resolved_mime),
            )
        except (KeyError, TypeError) as exc:
            raise UploadError("Unexpected upload response payload") from exc

    def generate_content(self, parts: Sequence[PromptPart]) -> list[str]:
        """Run one ``generateContent`` call and return the text parts in order."""

        payload: dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [self._encode_part(part) for part in parts],
                }
            ]
        }

        try:
            response = requests.post(
                f"{self.base_url}/{self.api_version}/{self.model}:generateContent",
                params=self._params,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise CloudModelError("Gemini generateContent request failed") from exc

        if not isinstance(data, dict):
            raise CloudModelError("Unexpected generateContent response payload")

        texts: list[str] = []
        for candidate in data.get("candidates") or []:
            content = candidate.get("content") if isinstance(candidate, dict) else None
            if not isinstance(content, dict):
                continue
            for part in content.get("parts") or []:
                text = part.get("text") if isinstance(part, dict) else None
                if isinstance(text, str):
                    texts.append(text)
        return texts

    def delete_file(self, name: str) -> None:
        try:
            response = requests.delete(
                f"{self.base_url}/{self.api_version}/{name}",
                params=self._params,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise CloudModelError(f"Deleting {name} failed") from exc

    @staticmethod
    def _encode_part(part: PromptPart) -> dict[str, Any]:
        if isinstance(part, UploadedFile):
            return {"file_data": {"mime_type": part.mime_type, "file_uri": part.uri}}
        return {"text": part}
