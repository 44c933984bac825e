"""Time gate deciding when an unanswered query may be escalated."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sahaja.models.enums import QueryStatusEnum
from sahaja.schemas.queries import Query

ESCALATABLE_STATUSES = frozenset(
	{QueryStatusEnum.open, QueryStatusEnum.pending, QueryStatusEnum.under_review}
)
DEFAULT_MIN_AGE = timedelta(minutes=2)


def _utc_now() -> datetime:
	return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
	return value.replace(tzinfo=UTC) if value.tzinfo is None else value


class EscalationWindow:
	def __init__(
		self,
		min_age: timedelta = DEFAULT_MIN_AGE,
		clock: Callable[[], datetime] = _utc_now,
	):
		self.min_age = min_age
		self._clock = clock

	def age(self, query: Query, now: datetime | None = None) -> timedelta:
		current = _as_utc(now if now is not None else self._clock())
		return current - _as_utc(query.created_at)

	def can_escalate(self, query: Query, now: datetime | None = None) -> bool:
		if query.status not in ESCALATABLE_STATUSES:
			return False
		return self.age(query, now) >= self.min_age

	def remaining(self, query: Query, now: datetime | None = None) -> timedelta:
		"""Time until the window opens; zero once it has."""
		left = self.min_age - self.age(query, now)
		return max(left, timedelta(0))
