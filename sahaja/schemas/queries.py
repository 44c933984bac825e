"""Pydantic schemas for farmer queries and the dashboard summary."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from sahaja.models.enums import QueryStatusEnum
from sahaja.schemas.envelope import WireModel


class Query(WireModel):
	id: str
	title: str | None = None
	description: str | None = None
	status: QueryStatusEnum = QueryStatusEnum.open
	created_at: datetime
	image_path: str | None = None
	audio_path: str | None = None
	video_path: str | None = None

	@field_validator("status", mode="before")
	@classmethod
	def _default_status(cls, value: object) -> object:
		if value is None or value == "":
			return QueryStatusEnum.open
		return value


class QuerySummary(BaseModel):
	total: int = 0
	open: int = 0
	answered: int = 0
	closed: int = 0

	@classmethod
	def from_queries(cls, queries: list[Query]) -> QuerySummary:
		return cls(
			total=len(queries),
			open=sum(1 for query in queries if query.status == QueryStatusEnum.open),
			answered=sum(1 for query in queries if query.status == QueryStatusEnum.answered),
			closed=sum(1 for query in queries if query.status == QueryStatusEnum.closed),
		)
