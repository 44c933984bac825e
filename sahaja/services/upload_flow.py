"""Two-phase stage photo upload: pick → preview → confirm.

``idle → previewing → uploading → succeeded → idle`` on the happy path;
``uploading → failed → previewing`` keeps the preview so the farmer can
retry or cancel. Picking and cancelling never touch the network.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from sahaja.errors import ApiError, StageLockedError, UploadStateError
from sahaja.models.enums import UploadStateEnum
from sahaja.services.crop_report_service import CropReportService
from sahaja.services.media import MediaAsset
from sahaja.services.progression import ProgressionView

_TRANSITIONS: dict[UploadStateEnum, frozenset[UploadStateEnum]] = {
	UploadStateEnum.idle: frozenset({UploadStateEnum.previewing}),
	UploadStateEnum.previewing: frozenset(
		{UploadStateEnum.previewing, UploadStateEnum.uploading, UploadStateEnum.idle}
	),
	UploadStateEnum.uploading: frozenset({UploadStateEnum.succeeded, UploadStateEnum.failed}),
	UploadStateEnum.succeeded: frozenset({UploadStateEnum.idle}),
	UploadStateEnum.failed: frozenset({UploadStateEnum.previewing}),
}

logger = structlog.get_logger("sahaja.upload")


@dataclass(frozen=True, slots=True)
class PendingPreview:
	stage_id: str
	asset: MediaAsset

	@property
	def uri(self) -> str:
		return self.asset.uri


class StagePhotoUpload:
	"""Upload controller for one crop report's stage photos."""

	def __init__(self, service: CropReportService, report_id: str):
		self.service = service
		self.report_id = str(report_id)
		self.state = UploadStateEnum.idle
		self.pending: PendingPreview | None = None
		self.last_error: Exception | None = None

	@property
	def is_busy(self) -> bool:
		return self.state == UploadStateEnum.uploading

	def begin(self, stage_id: str, asset: MediaAsset) -> PendingPreview:
		"""Hold a picked asset for preview; replaces any earlier preview."""
		view = self.service.engine.view_for(self.report_id)
		if view is None:
			raise LookupError(f"Crop report {self.report_id} is not loaded; refresh it before picking a photo")
		stage_view = view.stage_view(str(stage_id))
		if stage_view is None:
			raise LookupError(f"Stage {stage_id} is not part of crop report {self.report_id}")
		if stage_view.is_locked:
			raise StageLockedError(
				f"Stage {stage_view.stage.stage_order} is locked until the previous stage has a photo"
			)

		self._move(UploadStateEnum.previewing)
		self.pending = PendingPreview(stage_id=str(stage_id), asset=asset)
		self.last_error = None
		return self.pending

	def cancel(self) -> None:
		if self.state == UploadStateEnum.idle:
			return
		self._move(UploadStateEnum.idle)
		self.pending = None

	async def confirm(self) -> ProgressionView:
		if self.state != UploadStateEnum.previewing or self.pending is None:
			raise UploadStateError(f"Cannot confirm an upload while {self.state.value}")

		pending = self.pending
		self._move(UploadStateEnum.uploading)
		try:
			await self.service.upload_stage_photo(pending.stage_id, pending.asset)
		except BaseException as exc:
			# Cancellation included: the preview must stay retryable.
			self._move(UploadStateEnum.failed)
			self.last_error = exc if isinstance(exc, Exception) else None
			logger.warning(
				"stage_photo_upload_failed",
				report_id=self.report_id,
				stage_id=pending.stage_id,
				error=str(exc) or type(exc).__name__,
			)
			self._move(UploadStateEnum.previewing)
			raise

		self._move(UploadStateEnum.succeeded)
		self.pending = None
		self._move(UploadStateEnum.idle)
		logger.info("stage_photo_uploaded", report_id=self.report_id, stage_id=pending.stage_id)
		try:
			return await self.service.refresh(self.report_id)
		except ApiError as exc:
			# The photo is stored; only the reload failed.
			last_view = self.service.engine.view_for(self.report_id)
			if last_view is None:
				raise
			logger.warning("stage_photo_refresh_failed", report_id=self.report_id, error=str(exc))
			self.last_error = exc
			return last_view

	def _move(self, target: UploadStateEnum) -> None:
		if target not in _TRANSITIONS[self.state]:
			raise UploadStateError(f"Illegal upload transition {self.state.value} → {target.value}")
		self.state = target
