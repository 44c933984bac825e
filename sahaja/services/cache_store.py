"""In-process TTL cache for decoded GET responses."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

DEFAULT_TTL_SECONDS = 5 * 60

# Characters that may follow a resource path inside a cache key.
_KEY_BOUNDARIES = ("/", "_", "?")


@dataclass(slots=True)
class CacheEntry:
	key: str
	value: Any
	stored_at: float


class TTLCacheStore:
	"""Key → (value, stored_at) map; entries at or past ``ttl`` are never served."""

	def __init__(
		self,
		ttl_seconds: float = DEFAULT_TTL_SECONDS,
		clock: Callable[[], float] = time.monotonic,
	):
		self.ttl_seconds = ttl_seconds
		self._clock = clock
		self._entries: dict[str, CacheEntry] = {}

	def get(self, key: str) -> Any | None:
		entry = self._entries.get(key)
		if entry is None:
			return None
		if not self._is_fresh(entry):
			del self._entries[key]
			return None
		return entry.value

	def set(self, key: str, value: Any) -> CacheEntry:
		entry = CacheEntry(key=key, value=value, stored_at=self._clock())
		self._entries[key] = entry
		return entry

	def invalidate_prefix(self, prefix: str) -> int:
		"""Drop every entry whose key starts with ``prefix`` on a path boundary."""
		doomed = [key for key in self._entries if matches_prefix(key, prefix)]
		for key in doomed:
			del self._entries[key]
		return len(doomed)

	def clear(self) -> None:
		self._entries.clear()

	def _is_fresh(self, entry: CacheEntry) -> bool:
		return self._clock() - entry.stored_at < self.ttl_seconds

	def __contains__(self, key: object) -> bool:
		entry = self._entries.get(key)  # type: ignore[arg-type]
		return entry is not None and self._is_fresh(entry)

	def __len__(self) -> int:
		return sum(1 for entry in self._entries.values() if self._is_fresh(entry))


def matches_prefix(key: str, prefix: str) -> bool:
	if not key.startswith(prefix):
		return False
	if len(key) == len(prefix) or prefix.endswith(_KEY_BOUNDARIES):
		return True
	return key[len(prefix)] in _KEY_BOUNDARIES
