"""Caching access layer over the advisory REST API.

GET responses are cached per (path, params) for the store's TTL and
concurrent identical GETs share one in-flight fetch. Mutating calls never
touch the cache on the way in; once they succeed they evict every cached GET
under the same top-level resource collection so the next read refetches.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Mapping
from functools import partial
from typing import Any

import httpx
import structlog

from sahaja.errors import ApiTimeoutError, HttpError, NetworkError
from sahaja.services.cache_store import TTLCacheStore, matches_prefix

DEFAULT_TIMEOUT_SECONDS = 15.0


def normalize_endpoint(endpoint: str) -> str:
	endpoint = endpoint.strip()
	return endpoint if endpoint.startswith("/") else f"/{endpoint}"


def resource_root(endpoint: str) -> str:
	"""``/crop-reports/stages/3/photos`` → ``/crop-reports``."""
	head = normalize_endpoint(endpoint).lstrip("/").split("?", 1)[0]
	return "/" + head.split("/", 1)[0]


def clean_params(params: Mapping[str, Any] | None) -> dict[str, str] | None:
	"""Drop unset query params; httpx would otherwise send them as empty values."""
	if not params:
		return None
	return {str(k): str(v) for (k, v) in params.items() if v is not None} or None


class ApiClient:
	def __init__(
		self,
		http: httpx.AsyncClient,
		cache: TTLCacheStore,
		*,
		timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
	):
		self.http = http
		self.cache = cache
		self.timeout_seconds = timeout_seconds
		self._inflight: dict[str, asyncio.Task[Any]] = {}
		self._logger = structlog.get_logger("sahaja.api")

	@staticmethod
	def cache_key(endpoint: str, params: Mapping[str, Any] | None = None) -> str:
		options: dict[str, Any] = {"method": "GET"}
		params = clean_params(params)
		if params:
			options["params"] = params
		return f"{normalize_endpoint(endpoint)}_{json.dumps(options, sort_keys=True, separators=(',', ':'))}"

	async def get(
		self,
		endpoint: str,
		*,
		params: Mapping[str, Any] | None = None,
		use_cache: bool = True,
		timeout: float | None = None,
	) -> Any:
		path = normalize_endpoint(endpoint)
		params = clean_params(params)
		if not use_cache:
			return await self._send("GET", path, params=params, timeout=timeout)

		key = self.cache_key(path, params)
		cached = self.cache.get(key)
		if cached is not None:
			self._logger.debug("api_cache_hit", path=path)
			return cached

		task = self._inflight.get(key)
		if task is None:
			task = asyncio.ensure_future(self._fetch_into_cache(key, path, params, timeout))
			self._inflight[key] = task
			task.add_done_callback(partial(self._release, key))
		else:
			self._logger.debug("api_request_coalesced", path=path)
		return await asyncio.shield(task)

	async def post(self, endpoint: str, body: Any = None, *, timeout: float | None = None) -> Any:
		return await self._mutate("POST", endpoint, json_body=body, timeout=timeout)

	async def post_multipart(
		self,
		endpoint: str,
		*,
		data: Mapping[str, Any] | None = None,
		files: Mapping[str, tuple[Any, ...]] | None = None,
		timeout: float | None = None,
	) -> Any:
		if not files:
			# httpx only switches to multipart/form-data when a file part is present.
			files = {key: (None, str(value)) for (key, value) in (data or {}).items()}
			data = None
		return await self._mutate("POST", endpoint, data=data, files=files, timeout=timeout)

	async def put(self, endpoint: str, body: Any = None, *, timeout: float | None = None) -> Any:
		return await self._mutate("PUT", endpoint, json_body=body, timeout=timeout)

	async def delete(self, endpoint: str, *, timeout: float | None = None) -> Any:
		return await self._mutate("DELETE", endpoint, timeout=timeout)

	def invalidate(self, endpoint: str) -> int:
		"""Evict cached and in-flight GETs under the endpoint's resource collection."""
		prefix = resource_root(endpoint)
		for key in [key for key in self._inflight if matches_prefix(key, prefix)]:
			self._inflight.pop(key, None)
		removed = self.cache.invalidate_prefix(prefix)
		self._logger.debug("api_cache_invalidated", prefix=prefix, removed=removed)
		return removed

	def clear_cache(self) -> None:
		self._inflight.clear()
		self.cache.clear()

	async def _mutate(self, method: str, endpoint: str, **kwargs: Any) -> Any:
		path = normalize_endpoint(endpoint)
		payload = await self._send(method, path, **kwargs)
		self.invalidate(path)
		return payload

	async def _fetch_into_cache(
		self,
		key: str,
		path: str,
		params: Mapping[str, Any] | None,
		timeout: float | None,
	) -> Any:
		payload = await self._send("GET", path, params=params, timeout=timeout)
		# A write that landed while this fetch was in flight detached it.
		if self._inflight.get(key) is asyncio.current_task():
			self.cache.set(key, payload)
		return payload

	def _release(self, key: str, task: asyncio.Task[Any]) -> None:
		if self._inflight.get(key) is task:
			del self._inflight[key]
		if not task.cancelled():
			task.exception()

	async def _send(
		self,
		method: str,
		path: str,
		*,
		params: Mapping[str, Any] | None = None,
		json_body: Any = None,
		data: Mapping[str, Any] | None = None,
		files: Mapping[str, tuple[Any, ...]] | None = None,
		timeout: float | None = None,
	) -> Any:
		deadline = timeout if timeout is not None else self.timeout_seconds
		start = time.perf_counter()
		try:
			async with asyncio.timeout(deadline):
				response = await self.http.request(
					method,
					path,
					params=params,
					json=json_body,
					data=data,
					files=files,
					headers={"Accept": "application/json"},
				)
		except (TimeoutError, httpx.TimeoutException) as exc:
			self._log_failure(method, path, start, "timeout")
			raise ApiTimeoutError(method, path, deadline) from exc
		except httpx.TransportError as exc:
			self._log_failure(method, path, start, str(exc) or type(exc).__name__)
			raise NetworkError(method, path, str(exc) or type(exc).__name__) from exc

		payload = self._decode(response)
		if not response.is_success:
			self._log_failure(method, path, start, f"status {response.status_code}")
			raise HttpError(
				response.status_code,
				payload if payload is not None else response.text,
				self._message(payload) or f"HTTP {response.status_code}: {response.reason_phrase}",
			)
		if isinstance(payload, dict) and payload.get("success") is False:
			self._log_failure(method, path, start, "success=false")
			raise HttpError(
				response.status_code,
				payload,
				self._message(payload) or "Request was not successful",
			)

		self._logger.info(
			"api_request",
			method=method,
			path=path,
			status_code=response.status_code,
			duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
		)
		return payload

	def _log_failure(self, method: str, path: str, start: float, error: str) -> None:
		self._logger.warning(
			"api_request_failed",
			method=method,
			path=path,
			duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
			error=error,
		)

	@staticmethod
	def _decode(response: httpx.Response) -> Any:
		if not response.content:
			return None
		try:
			return response.json()
		except ValueError:
			return None

	@staticmethod
	def _message(payload: Any) -> str | None:
		if isinstance(payload, dict):
			message = payload.get("message") or payload.get("error")
			if message:
				return str(message)
		return None
