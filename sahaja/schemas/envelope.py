"""Response envelope shared by every endpoint of the advisory API."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class WireModel(BaseModel):
	"""camelCase on the wire, snake_case in Python."""

	model_config = ConfigDict(
		alias_generator=to_camel,
		populate_by_name=True,
		coerce_numbers_to_str=True,
	)


class ApiEnvelope(WireModel, Generic[T]):
	success: bool
	message: str | None = None
	data: T | None = None