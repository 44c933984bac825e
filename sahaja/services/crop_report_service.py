"""Crop report reads, edits and stage photo mutations over the access layer."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import structlog
from pydantic import ValidationError as PydanticValidationError

from sahaja.errors import ApiError, HttpError, ValidationError
from sahaja.schemas.crop_reports import CropReport, CropReportCreate, CropReportEdit
from sahaja.schemas.envelope import ApiEnvelope
from sahaja.services.api_client import ApiClient
from sahaja.services.media import MediaAsset, stage_photo_filename, to_upload_file
from sahaja.services.progression import ProgressionView, StageProgressionEngine

CROP_REPORTS = "/crop-reports"

logger = structlog.get_logger("sahaja.crop_reports")


def _segment(value: object) -> str:
	return quote(str(value), safe="")


@dataclass(slots=True)
class DeleteConfirmation:
	"""Second step of a report delete; ``confirmed`` must be set by the user."""

	report_id: str
	token: str = field(default_factory=lambda: uuid.uuid4().hex)
	confirmed: bool = False

	def confirm(self) -> DeleteConfirmation:
		self.confirmed = True
		return self


def build_edit_payload(values: CropReportEdit) -> dict[str, Any]:
	"""Partial PUT body: blank fields are left out, never sent as null."""
	crop_name = values.crop_name.strip()
	if not crop_name:
		raise ValidationError("Crop name is required")
	payload: dict[str, Any] = {"cropName": crop_name}

	area_raw = (values.area_hectares or "").strip()
	if area_raw:
		try:
			area = float(area_raw)
		except ValueError as exc:
			raise ValidationError(f"Area must be a number, got {area_raw!r}") from exc
		if area <= 0:
			raise ValidationError("Area must be greater than zero")
		payload["areaHectares"] = area

	description = (values.description or "").strip()
	if description:
		payload["description"] = description
	return payload


class CropReportService:
	"""Service for crop report CRUD and stage photo operations.

	Every photo or report mutation is followed by a full refetch of the parent
	report; local state is never patched.
	"""

	def __init__(self, client: ApiClient, engine: StageProgressionEngine):
		self.client = client
		self.engine = engine
		self._pending_deletes: dict[str, str] = {}

	async def get_report(self, report_id: str, *, use_cache: bool = True) -> CropReport:
		payload = await self.client.get(f"{CROP_REPORTS}/{_segment(report_id)}", use_cache=use_cache)
		envelope = ApiEnvelope[CropReport].model_validate(payload or {"success": True})
		if envelope.data is None:
			raise LookupError(f"Crop report {report_id} not found")
		return envelope.data

	async def refresh(self, report_id: str, *, use_cache: bool = True) -> ProgressionView:
		report = await self.get_report(report_id, use_cache=use_cache)
		return self.engine.track(report)

	async def list_for_farmer(self, farmer_id: str) -> list[CropReport]:
		payload = await self.client.get(f"{CROP_REPORTS}/farmer/{_segment(farmer_id)}")
		items = payload.get("data") if isinstance(payload, dict) else None
		if not isinstance(items, list):
			return []
		return [CropReport.model_validate(item) for item in items]

	async def create_report(
		self,
		farmer_id: str,
		*,
		crop_name: str,
		area_hectares: str | float | None = None,
		description: str | None = None,
	) -> CropReport:
		name = (crop_name or "").strip()
		if not name:
			raise ValidationError("Please enter crop name")
		area: float | None = None
		if area_hectares not in (None, ""):
			try:
				area = float(area_hectares)  # type: ignore[arg-type]
			except ValueError as exc:
				raise ValidationError(f"Area must be a number, got {area_hectares!r}") from exc

		try:
			body = CropReportCreate(
				farmer_id=str(farmer_id),
				crop_name=name,
				area_hectares=area,
				description=(description or "").strip() or None,
			)
		except PydanticValidationError as exc:
			raise ValidationError(str(exc)) from exc

		payload = await self.client.post(CROP_REPORTS, body.model_dump(by_alias=True))
		data = payload.get("data") if isinstance(payload, dict) else None
		if not isinstance(data, dict) or data.get("id") in (None, ""):
			raise HttpError(200, payload, "Crop report was created without an id")
		report = await self.get_report(str(data["id"]))
		self.engine.track(report)
		return report

	async def update_report(self, report_id: str, values: CropReportEdit) -> ProgressionView:
		body = build_edit_payload(values)
		await self.client.put(f"{CROP_REPORTS}/{_segment(report_id)}", body)
		return await self.refresh(report_id)

	def request_delete(self, report_id: str) -> DeleteConfirmation:
		confirmation = DeleteConfirmation(report_id=str(report_id))
		self._pending_deletes[confirmation.report_id] = confirmation.token
		return confirmation

	async def delete_report(self, confirmation: DeleteConfirmation) -> None:
		expected = self._pending_deletes.get(confirmation.report_id)
		if not confirmation.confirmed or expected != confirmation.token:
			raise ValidationError(f"Delete of crop report {confirmation.report_id} was not confirmed")

		await self.client.delete(f"{CROP_REPORTS}/{_segment(confirmation.report_id)}")
		self._pending_deletes.pop(confirmation.report_id, None)
		self.engine.forget(confirmation.report_id)
		logger.info("crop_report_deleted", report_id=confirmation.report_id)

	async def upload_stage_photo(self, stage_id: str, asset: MediaAsset) -> Any:
		upload = await to_upload_file(asset, stage_photo_filename())
		return await self.client.post_multipart(
			f"{CROP_REPORTS}/stages/{_segment(stage_id)}/photos",
			files={"photo": upload},
		)

	async def delete_stage_photo(self, report_id: str, stage_id: str, photo_id: str) -> ProgressionView:
		try:
			await self.client.delete(
				f"{CROP_REPORTS}/stages/{_segment(stage_id)}/photos/{_segment(photo_id)}"
			)
		except ApiError as exc:
			logger.warning(
				"stage_photo_delete_failed",
				report_id=str(report_id),
				stage_id=str(stage_id),
				photo_id=str(photo_id),
				error=str(exc),
			)
			try:
				await self.refresh(report_id, use_cache=False)
			except ApiError as refresh_exc:
				logger.warning("crop_report_refresh_failed", report_id=str(report_id), error=str(refresh_exc))
			raise
		return await self.refresh(report_id)
