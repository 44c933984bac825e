"""Stage progression — lock state, progress and next actionable stage.

Two signals are derived independently and never mixed:

* *unlock* is client-side: stage k (k > 1) is locked iff stage k-1 has no
  photos; the first stage is never locked.
* *completion* is server-authoritative: progress and the next stage only
  read ``is_completed`` as reported by the backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sahaja.schemas.crop_reports import CropReport, CropStage, CropStagePhoto


@dataclass(frozen=True, slots=True)
class StageView:
	stage: CropStage
	is_locked: bool
	has_photos: bool
	latest_photo: CropStagePhoto | None


@dataclass(frozen=True, slots=True)
class ProgressionView:
	report_id: str
	stages: list[StageView] = field(default_factory=list)
	progress_pct: int = 0
	completed_count: int = 0
	next_stage: CropStage | None = None

	@property
	def total_stages(self) -> int:
		return len(self.stages)

	@property
	def lock_states(self) -> list[bool]:
		return [view.is_locked for view in self.stages]

	def stage_view(self, stage_id: str) -> StageView | None:
		for view in self.stages:
			if view.stage.id == str(stage_id):
				return view
		return None

	def latest_photo_for(self, stage_id: str) -> CropStagePhoto | None:
		view = self.stage_view(stage_id)
		return view.latest_photo if view is not None else None


def progress_percentage(completed: int, total: int) -> int:
	"""``round(100 * completed / total)`` with halves rounded up; 0 when empty."""
	if total <= 0:
		return 0
	return (200 * completed + total) // (2 * total)


def derive_view(report: CropReport) -> ProgressionView:
	stages = sorted(report.stages, key=lambda stage: stage.stage_order)
	photos_by_order = {stage.stage_order: stage.has_photos for stage in stages}

	views: list[StageView] = []
	for index, stage in enumerate(stages):
		if index == 0:
			is_locked = False
		else:
			# A missing predecessor order counts as "no photos".
			is_locked = not photos_by_order.get(stage.stage_order - 1, False)
		views.append(
			StageView(
				stage=stage,
				is_locked=is_locked,
				has_photos=stage.has_photos,
				latest_photo=stage.latest_photo,
			)
		)

	completed = sum(1 for stage in stages if stage.is_completed)
	next_stage = next((stage for stage in stages if not stage.is_completed), None)
	if next_stage is None and stages:
		next_stage = stages[-1]

	return ProgressionView(
		report_id=report.id,
		stages=views,
		progress_pct=progress_percentage(completed, len(stages)),
		completed_count=completed,
		next_stage=next_stage,
	)


class StageProgressionEngine:
	"""Holds the latest derived view per report id."""

	def __init__(self) -> None:
		self._views: dict[str, ProgressionView] = {}

	def track(self, report: CropReport) -> ProgressionView:
		view = derive_view(report)
		self._views[report.id] = view
		return view

	def view_for(self, report_id: str) -> ProgressionView | None:
		return self._views.get(str(report_id))

	def forget(self, report_id: str) -> None:
		self._views.pop(str(report_id), None)

	def clear(self) -> None:
		self._views.clear()
