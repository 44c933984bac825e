"""Shared pytest fixtures — fake backend transport, controllable clock, fake Redis."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from sahaja.config import Settings
from sahaja.main import SahajaApp, build_app
from sahaja.middleware.logging import event_hooks
from sahaja.services.api_client import ApiClient
from sahaja.services.cache_store import TTLCacheStore

API_PREFIX = "/api/V1"

Responder = Callable[[httpx.Request], Any]


class FakeClock:
	def __init__(self, start: float = 1_000.0) -> None:
		self.now = start

	def __call__(self) -> float:
		return self.now

	def advance(self, seconds: float) -> None:
		self.now += seconds


class FakeBackend:
	"""Route table behind ``httpx.MockTransport`` with a log of every call."""

	def __init__(self) -> None:
		self.routes: dict[tuple[str, str], Responder | dict[str, Any] | httpx.Response] = {}
		self.gates: dict[tuple[str, str], asyncio.Event] = {}
		self.calls: list[httpx.Request] = []

	def route(self, method: str, path: str, responder: Responder | dict[str, Any] | httpx.Response) -> None:
		self.routes[(method.upper(), path)] = responder

	def gate(self, method: str, path: str) -> asyncio.Event:
		event = asyncio.Event()
		self.gates[(method.upper(), path)] = event
		return event

	def count(self, method: str, path: str) -> int:
		return sum(1 for call in self.calls if self._key(call) == (method.upper(), path))

	def last(self, method: str, path: str) -> httpx.Request:
		matches = [call for call in self.calls if self._key(call) == (method.upper(), path)]
		assert matches, f"no {method} {path} call recorded"
		return matches[-1]

	async def handler(self, request: httpx.Request) -> httpx.Response:
		self.calls.append(request)
		key = self._key(request)
		responder = self.routes.get(key)
		if responder is None:
			result: Any = httpx.Response(404, json={"success": False, "message": f"no route {key}"})
		elif callable(responder):
			result = responder(request)
			if inspect.isawaitable(result):
				result = await result
		else:
			result = responder

		gate = self.gates.get(key)
		if gate is not None:
			await gate.wait()

		if isinstance(result, httpx.Response):
			return result
		return httpx.Response(200, json=result)

	@staticmethod
	def _key(request: httpx.Request) -> tuple[str, str]:
		return (request.method, request.url.path.removeprefix(API_PREFIX))


class FakeRedis:
	def __init__(self) -> None:
		self.store: dict[str, str] = {}
		self.setex = AsyncMock(side_effect=self._setex)
		self.get = AsyncMock(side_effect=self._get)

	async def _setex(self, key: str, ttl: int, value: str) -> bool:
		self.store[key] = value
		return True

	async def _get(self, key: str) -> str | None:
		return self.store.get(key)


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
	return FakeBackend()


@pytest.fixture
def fake_redis() -> FakeRedis:
	return FakeRedis()


@pytest.fixture
def settings() -> Settings:
	return Settings(_env_file=None, api_base_url="http://test", redis_url="", request_timeout_seconds=1.0)


@pytest.fixture
async def http(backend: FakeBackend) -> AsyncGenerator[httpx.AsyncClient, None]:
	"""HTTPX async client whose transport is the fake backend."""
	async with httpx.AsyncClient(
		transport=httpx.MockTransport(backend.handler),
		base_url=f"http://test{API_PREFIX}",
		event_hooks=event_hooks(),
	) as client:
		yield client


@pytest.fixture
def cache(clock: FakeClock) -> TTLCacheStore:
	return TTLCacheStore(ttl_seconds=300, clock=clock)


@pytest.fixture
def api(http: httpx.AsyncClient, cache: TTLCacheStore) -> ApiClient:
	return ApiClient(http, cache, timeout_seconds=1.0)


@pytest.fixture
def app(settings: Settings, http: httpx.AsyncClient, cache: TTLCacheStore, fake_redis: FakeRedis) -> SahajaApp:
	return build_app(settings, http, fake_redis, cache=cache)  # type: ignore[arg-type]
