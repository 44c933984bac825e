"""Pydantic schema for the farmer record returned by the id lookup."""

from __future__ import annotations

from sahaja.schemas.envelope import WireModel


class Farmer(WireModel):
	id: str
	farmer_id: str | None = None
	name: str | None = None
	phone_number: str | None = None
