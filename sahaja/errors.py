"""Error taxonomy shared by the access layer and the services built on it."""

from __future__ import annotations

from typing import Any

_RETRYABLE_STATUSES = frozenset({408, 429})


class ApiError(Exception):
	"""Base class for every failure surfaced by the client."""


class ApiTimeoutError(ApiError):
	"""Raised when a request exceeds its deadline."""

	def __init__(self, method: str, path: str, timeout: float):
		self.method = method
		self.path = path
		self.timeout = timeout
		super().__init__(f"{method} {path} timed out after {timeout:g}s")


class NetworkError(ApiError):
	"""Raised when the server could not be reached (connect, DNS, TLS, read)."""

	def __init__(self, method: str, path: str, detail: str):
		self.method = method
		self.path = path
		self.detail = detail
		super().__init__(f"{method} {path} failed: {detail}")


class HttpError(ApiError):
	"""Server reachable but the response was non-2xx or reported ``success: false``."""

	def __init__(self, status: int, body: Any = None, message: str | None = None):
		self.status = status
		self.body = body
		self.message = message or f"HTTP {status}"
		super().__init__(self.message)

	@property
	def retryable(self) -> bool:
		return self.status >= 500 or self.status in _RETRYABLE_STATUSES


class ValidationError(ApiError):
	"""Local pre-flight validation failure; no request was sent."""


class StageLockedError(ValidationError):
	"""Raised when a photo is offered for a stage whose predecessor has none."""


class EscalationNotAllowedError(ValidationError):
	"""Raised when a query is escalated before its window opens."""


class UploadStateError(ApiError):
	"""Raised on an illegal stage photo upload transition."""
