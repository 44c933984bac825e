"""Resolve a farmer's login identifier to the database id used by reports."""

from __future__ import annotations

from urllib.parse import quote

from sahaja.errors import ValidationError
from sahaja.schemas.envelope import ApiEnvelope
from sahaja.schemas.farmers import Farmer
from sahaja.services.api_client import ApiClient

FARMERS = "/farmers"


class FarmerService:
	def __init__(self, client: ApiClient, timeout_seconds: float = 12.0):
		self.client = client
		self.timeout_seconds = timeout_seconds

	async def resolve(self, farmer_id: str) -> Farmer:
		if not str(farmer_id or "").strip():
			raise ValidationError("Not logged in: farmer id is missing")
		payload = await self.client.get(
			f"{FARMERS}/farmer-id/{quote(str(farmer_id), safe='')}",
			timeout=self.timeout_seconds,
		)
		envelope = ApiEnvelope[Farmer].model_validate(payload or {"success": True})
		if envelope.data is None:
			raise LookupError(f"Farmer {farmer_id} not found")
		return envelope.data
