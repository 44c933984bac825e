"""Pydantic schemas for crop reports, their stages and stage photos."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from sahaja.models.enums import CropReportStatusEnum
from sahaja.schemas.envelope import WireModel


class CropStagePhoto(WireModel):
	id: str
	photo_path: str
	photo_description: str | None = None
	uploaded_at: datetime


class CropStage(WireModel):
	id: str
	stage_order: int = Field(ge=1)
	stage_name: str
	is_completed: bool = False
	stage_date: datetime | None = None
	photos: list[CropStagePhoto] = Field(default_factory=list)

	@field_validator("photos", mode="before")
	@classmethod
	def _none_as_empty(cls, value: object) -> object:
		return [] if value is None else value

	@property
	def has_photos(self) -> bool:
		return len(self.photos) > 0

	@property
	def latest_photo(self) -> CropStagePhoto | None:
		return self.photos[-1] if self.photos else None


class CropReport(WireModel):
	id: str
	crop_name: str
	crop_type: str | None = None
	area_hectares: float | None = None
	description: str | None = None
	planting_date: datetime | None = None
	status: CropReportStatusEnum = CropReportStatusEnum.active
	stages: list[CropStage] = Field(default_factory=list)
	created_at: datetime

	@field_validator("status", mode="before")
	@classmethod
	def _lower_status(cls, value: object) -> object:
		return value.lower() if isinstance(value, str) else value

	@field_validator("stages", mode="before")
	@classmethod
	def _stages_none_as_empty(cls, value: object) -> object:
		return [] if value is None else value

	@field_validator("stages")
	@classmethod
	def _order_stages(cls, value: list[CropStage]) -> list[CropStage]:
		return sorted(value, key=lambda stage: stage.stage_order)


class CropReportCreate(WireModel):
	farmer_id: str
	crop_name: str = Field(min_length=1, max_length=255)
	crop_type: str | None = None
	area_hectares: float | None = Field(default=None, gt=0)
	planting_date: str | None = None
	expected_harvest_date: str | None = None
	description: str | None = None


class CropReportEdit(WireModel):
	"""Raw edit-form values; only usable fields reach the PUT body."""

	crop_name: str
	area_hectares: str | None = None
	description: str | None = None
