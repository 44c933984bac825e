"""Structured JSON logging with request ID propagation on outgoing calls."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import httpx
import structlog

from sahaja.config import LogFormat, get_settings

_configured = False


def configure_structured_logging() -> None:
	"""Configure stdlib + structlog once per client process."""
	global _configured
	if _configured:
		return

	settings = get_settings()
	log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

	timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
	shared_processors: list[Any] = [
		structlog.contextvars.merge_contextvars,
		structlog.processors.add_log_level,
		timestamper,
	]

	if settings.log_format == LogFormat.json:
		renderer: Any = structlog.processors.JSONRenderer()
		logging.basicConfig(level=log_level, format="%(message)s")
	else:
		renderer = structlog.dev.ConsoleRenderer()
		logging.basicConfig(level=log_level)

	structlog.configure(
		processors=[
			*shared_processors,
			structlog.processors.format_exc_info,
			renderer,
		],
		wrapper_class=structlog.make_filtering_bound_logger(log_level),
		logger_factory=structlog.PrintLoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


async def attach_request_id(request: httpx.Request) -> None:
	"""httpx request hook: tag every outgoing call with an ``x-request-id``."""
	request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
	request.headers["x-request-id"] = request_id
	request.extensions["sahaja_started_at"] = time.perf_counter()
	structlog.contextvars.bind_contextvars(request_id=request_id)


async def log_response(response: httpx.Response) -> None:
	"""httpx response hook: emit per-request timing with the server status."""
	request = response.request
	started_at = request.extensions.get("sahaja_started_at")
	duration_ms = None
	if isinstance(started_at, float):
		duration_ms = round((time.perf_counter() - started_at) * 1000.0, 2)

	structlog.get_logger("sahaja.request").debug(
		"http_request",
		method=request.method,
		path=request.url.path,
		status_code=response.status_code,
		duration_ms=duration_ms,
		request_id=request.headers.get("x-request-id"),
	)
	structlog.contextvars.unbind_contextvars("request_id")


def event_hooks() -> dict[str, list[Any]]:
	return {"request": [attach_request_id], "response": [log_response]}
