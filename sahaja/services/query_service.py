"""Farmer queries — history, dashboard summary, submission and escalation."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from urllib.parse import quote

import structlog
from redis.asyncio import Redis

from sahaja.errors import ApiError, EscalationNotAllowedError, ValidationError
from sahaja.schemas.envelope import ApiEnvelope
from sahaja.schemas.queries import Query, QuerySummary
from sahaja.services.api_client import ApiClient
from sahaja.services.escalation import EscalationWindow
from sahaja.services.media import MediaAsset, epoch_millis, to_upload_file

QUERIES = "/queries"
SUMMARY_SNAPSHOT_TTL_SECONDS = 5 * 60

logger = structlog.get_logger("sahaja.queries")


class QueryService:
	def __init__(
		self,
		client: ApiClient,
		window: EscalationWindow,
		redis_client: Redis | None = None,
		*,
		summary_timeout_seconds: float = 10.0,
		snapshot_ttl_seconds: int = SUMMARY_SNAPSHOT_TTL_SECONDS,
	):
		self.client = client
		self.window = window
		self.redis_client = redis_client
		self.summary_timeout_seconds = summary_timeout_seconds
		self.snapshot_ttl_seconds = snapshot_ttl_seconds
		self._notifications: set[asyncio.Task[None]] = set()

	async def list_mine(
		self,
		farmer_id: str,
		*,
		use_cache: bool = True,
		timeout: float | None = None,
	) -> list[Query]:
		if not str(farmer_id or "").strip():
			raise ValidationError("Not logged in: farmer id is missing")
		payload = await self.client.get(
			f"{QUERIES}/mine",
			params={"farmerId": farmer_id},
			use_cache=use_cache,
			timeout=timeout,
		)
		items = payload.get("data") if isinstance(payload, dict) else None
		if not isinstance(items, list):
			return []
		return [Query.model_validate(item) for item in items]

	async def get_query(self, query_id: str) -> Query:
		payload = await self.client.get(f"{QUERIES}/{quote(str(query_id), safe='')}")
		envelope = ApiEnvelope[Query].model_validate(payload or {"success": True})
		if envelope.data is None:
			raise LookupError(f"Query {query_id} not found")
		return envelope.data

	async def summary(self, farmer_id: str) -> QuerySummary:
		"""Dashboard counts; falls back to the last snapshot when offline."""
		try:
			queries = await self.list_mine(farmer_id, timeout=self.summary_timeout_seconds)
		except ApiError as exc:
			snapshot = await self._read_summary_snapshot(farmer_id)
			if snapshot is None:
				raise
			logger.warning("query_summary_from_snapshot", farmer_id=str(farmer_id), error=str(exc))
			return snapshot

		summary = QuerySummary.from_queries(queries)
		await self._persist_summary_snapshot(farmer_id, summary)
		return summary

	async def submit_query(
		self,
		farmer_id: str,
		*,
		description: str | None = None,
		image: MediaAsset | None = None,
		audio: MediaAsset | None = None,
		video: MediaAsset | None = None,
	) -> dict[str, Any] | None:
		if not str(farmer_id or "").strip():
			raise ValidationError("Not logged in: please login again to submit a query")
		if not (description or "").strip() and image is None and audio is None and video is None:
			raise ValidationError("A query needs a description or at least one attachment")

		data: dict[str, Any] = {"farmerId": str(farmer_id)}
		if description:
			data["description"] = description
		now_ms = epoch_millis()
		files: dict[str, tuple[str, bytes, str]] = {}
		if image is not None:
			files["image"] = await to_upload_file(image, f"image_{now_ms}.jpg")
		if audio is not None:
			files["audio"] = await to_upload_file(audio, f"audio_{now_ms}.m4a")
		if video is not None:
			files["video"] = await to_upload_file(video, f"video_{now_ms}.mp4")

		payload = await self.client.post_multipart(QUERIES, data=data, files=files or None)
		self._schedule_admin_notification()
		created = payload.get("data") if isinstance(payload, dict) else None
		return created if isinstance(created, dict) else None

	async def escalate(self, query: Query) -> Any:
		if not self.window.can_escalate(query):
			remaining = self.window.remaining(query)
			raise EscalationNotAllowedError(
				f"Query {query.id} ({query.status.value}) cannot be escalated yet; "
				f"{int(remaining.total_seconds())}s remaining"
			)
		payload = await self.client.post(f"{QUERIES}/{quote(str(query.id), safe='')}/escalate")
		logger.info("query_escalated", query_id=query.id)
		return payload

	async def aclose(self) -> None:
		if self._notifications:
			await asyncio.gather(*self._notifications, return_exceptions=True)

	def _schedule_admin_notification(self) -> None:
		task = asyncio.create_task(self._notify_admins())
		self._notifications.add(task)
		task.add_done_callback(self._notifications.discard)

	async def _notify_admins(self) -> None:
		try:
			await self.client.get(f"{QUERIES}/admin-contacts", use_cache=False)
		except ApiError as exc:
			logger.warning("admin_notification_failed", error=str(exc))

	def _summary_key(self, farmer_id: str) -> str:
		return f"farmer:{farmer_id}:queries:summary"

	async def _persist_summary_snapshot(self, farmer_id: str, summary: QuerySummary) -> None:
		if self.redis_client is None:
			return
		await self.redis_client.setex(
			self._summary_key(farmer_id),
			self.snapshot_ttl_seconds,
			json.dumps(summary.model_dump(mode="json")),
		)

	async def _read_summary_snapshot(self, farmer_id: str) -> QuerySummary | None:
		if self.redis_client is None:
			return None
		value = await self.redis_client.get(self._summary_key(farmer_id))
		if value is None:
			return None
		return QuerySummary(**json.loads(value))
