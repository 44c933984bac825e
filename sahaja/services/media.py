"""Captured media assets and their multipart representation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

_MIME_BY_SUFFIX: dict[str, str] = {
	".jpg": "image/jpeg",
	".jpeg": "image/jpeg",
	".png": "image/png",
	".webp": "image/webp",
	".mp4": "video/mp4",
	".mov": "video/mp4",
	".m4a": "audio/m4a",
	".aac": "audio/aac",
}
_FALLBACK_MIME = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class MediaAsset:
	"""A picked or captured file.

	``content`` set means the bytes are already in memory (a browser Blob);
	otherwise ``uri`` points at a local file written by the camera or picker.
	"""

	uri: str
	content: bytes | None = None
	mime_type: str | None = None


def guess_mime(uri: str) -> str:
	path = uri.split("?", 1)[0].lower()
	for suffix, mime in _MIME_BY_SUFFIX.items():
		if path.endswith(suffix):
			return mime
	return _FALLBACK_MIME


def epoch_millis() -> int:
	return int(time.time() * 1000)


def stage_photo_filename(now_ms: int | None = None) -> str:
	return f"stage_{epoch_millis() if now_ms is None else now_ms}.jpg"


def _local_path(uri: str) -> Path:
	parsed = urlparse(uri)
	if parsed.scheme == "file":
		return Path(unquote(parsed.path))
	return Path(uri)


async def to_upload_file(asset: MediaAsset, filename: str) -> tuple[str, bytes, str]:
	"""Resolve an asset to the ``(filename, bytes, mime)`` tuple httpx sends."""
	if asset.content is not None:
		return (filename, asset.content, asset.mime_type or guess_mime(asset.uri))
	content = await asyncio.to_thread(_local_path(asset.uri).read_bytes)
	return (filename, content, asset.mime_type or guess_mime(asset.uri))
