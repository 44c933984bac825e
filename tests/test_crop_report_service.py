from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from conftest import FakeBackend
from factories import envelope, report_payload

from sahaja.errors import HttpError, NetworkError, ValidationError
from sahaja.main import SahajaApp
from sahaja.schemas.crop_reports import CropReportEdit
from sahaja.services.crop_report_service import build_edit_payload


def _serve_report(backend: FakeBackend, state: dict[str, Any]) -> None:
	backend.route("GET", f"/crop-reports/{state['id']}", lambda _request: envelope(json.loads(json.dumps(state))))


def test_edit_payload_skips_blank_fields() -> None:
	payload = build_edit_payload(CropReportEdit(crop_name="  Ragi ", area_hectares="", description="   "))

	assert payload == {"cropName": "Ragi"}


def test_edit_payload_includes_valid_fields() -> None:
	payload = build_edit_payload(
		CropReportEdit(crop_name="Ragi", area_hectares="2.5", description=" Red soil plot ")
	)

	assert payload == {"cropName": "Ragi", "areaHectares": 2.5, "description": "Red soil plot"}


@pytest.mark.parametrize(
	"values",
	[
		CropReportEdit(crop_name="   "),
		CropReportEdit(crop_name="Ragi", area_hectares="two"),
		CropReportEdit(crop_name="Ragi", area_hectares="-1"),
	],
)
def test_edit_payload_rejects_invalid_input(values: CropReportEdit) -> None:
	with pytest.raises(ValidationError):
		build_edit_payload(values)


@pytest.mark.asyncio
async def test_get_report_parses_envelope(app: SahajaApp, backend: FakeBackend) -> None:
	_serve_report(backend, report_payload("7", photos=(2, 0, 0, 0, 0)))

	report = await app.crop_reports.get_report("7")

	assert report.crop_name == "Ragi"
	assert [stage.stage_order for stage in report.stages] == [1, 2, 3, 4, 5]
	assert report.stages[0].latest_photo is not None


@pytest.mark.asyncio
async def test_list_for_farmer_tolerates_non_list_data(app: SahajaApp, backend: FakeBackend) -> None:
	backend.route("GET", "/crop-reports/farmer/42", envelope({"unexpected": True}))

	assert await app.crop_reports.list_for_farmer("42") == []


@pytest.mark.asyncio
async def test_update_report_refetches_past_the_cache(app: SahajaApp, backend: FakeBackend) -> None:
	state = report_payload("7", crop_name="Ragi")
	_serve_report(backend, state)

	def update(request: httpx.Request) -> dict[str, Any]:
		state.update(json.loads(request.content))
		return envelope(None)

	backend.route("PUT", "/crop-reports/7", update)

	await app.crop_reports.refresh("7")
	view = await app.crop_reports.update_report("7", CropReportEdit(crop_name="Jowar", area_hectares=""))

	assert json.loads(backend.last("PUT", "/crop-reports/7").content) == {"cropName": "Jowar"}
	assert (await app.crop_reports.get_report("7")).crop_name == "Jowar"
	assert view.report_id == "7"
	assert backend.count("GET", "/crop-reports/7") == 2


@pytest.mark.asyncio
async def test_invalid_edit_sends_nothing(app: SahajaApp, backend: FakeBackend) -> None:
	with pytest.raises(ValidationError):
		await app.crop_reports.update_report("7", CropReportEdit(crop_name=""))

	assert backend.calls == []


@pytest.mark.asyncio
async def test_create_report_validates_before_network(app: SahajaApp, backend: FakeBackend) -> None:
	with pytest.raises(ValidationError):
		await app.crop_reports.create_report("42", crop_name="   ")
	with pytest.raises(ValidationError):
		await app.crop_reports.create_report("42", crop_name="Ragi", area_hectares="lots")

	assert backend.calls == []


@pytest.mark.asyncio
async def test_create_report_posts_full_body_and_tracks_new_report(app: SahajaApp, backend: FakeBackend) -> None:
	backend.route("POST", "/crop-reports", envelope({"id": 11}))
	_serve_report(backend, report_payload("11", crop_name="Paddy"))

	report = await app.crop_reports.create_report("42", crop_name=" Paddy ", area_hectares="1.25")

	body = json.loads(backend.last("POST", "/crop-reports").content)
	assert body == {
		"farmerId": "42",
		"cropName": "Paddy",
		"cropType": None,
		"areaHectares": 1.25,
		"plantingDate": None,
		"expectedHarvestDate": None,
		"description": None,
	}
	assert report.id == "11"
	assert app.engine.view_for("11") is not None


@pytest.mark.asyncio
async def test_create_report_rejected_by_server(app: SahajaApp, backend: FakeBackend) -> None:
	backend.route("POST", "/crop-reports", envelope(None, success=False, message="Farmer not found"))

	with pytest.raises(HttpError) as caught:
		await app.crop_reports.create_report("42", crop_name="Ragi")

	assert caught.value.message == "Farmer not found"


@pytest.mark.asyncio
async def test_delete_requires_confirmation(app: SahajaApp, backend: FakeBackend) -> None:
	backend.route("DELETE", "/crop-reports/7", envelope(None))

	confirmation = app.crop_reports.request_delete("7")
	with pytest.raises(ValidationError):
		await app.crop_reports.delete_report(confirmation)

	assert backend.count("DELETE", "/crop-reports/7") == 0


@pytest.mark.asyncio
async def test_confirmed_delete_forgets_report(app: SahajaApp, backend: FakeBackend) -> None:
	_serve_report(backend, report_payload("7"))
	backend.route("DELETE", "/crop-reports/7", envelope(None))
	await app.crop_reports.refresh("7")

	confirmation = app.crop_reports.request_delete("7").confirm()
	await app.crop_reports.delete_report(confirmation)

	assert backend.count("DELETE", "/crop-reports/7") == 1
	assert app.engine.view_for("7") is None


@pytest.mark.asyncio
async def test_failed_delete_keeps_report_view(app: SahajaApp, backend: FakeBackend) -> None:
	_serve_report(backend, report_payload("7"))
	backend.route("DELETE", "/crop-reports/7", httpx.Response(403, json={"success": False, "message": "not owner"}))
	await app.crop_reports.refresh("7")

	with pytest.raises(HttpError):
		await app.crop_reports.delete_report(app.crop_reports.request_delete("7").confirm())

	assert app.engine.view_for("7") is not None


@pytest.mark.asyncio
async def test_delete_photo_refetches_report(app: SahajaApp, backend: FakeBackend) -> None:
	state = report_payload("7", photos=(2, 1, 0, 0, 0))
	_serve_report(backend, state)

	def remove(_request: httpx.Request) -> dict[str, Any]:
		state["stages"][1]["photos"].pop()
		return envelope(None)

	backend.route("DELETE", "/crop-reports/stages/s2/photos/s2-p1", remove)
	before = await app.crop_reports.refresh("7")

	after = await app.crop_reports.delete_stage_photo("7", "s2", "s2-p1")

	assert before.lock_states == [False, False, False, True, True]
	assert after.lock_states == [False, False, True, True, True]
	assert app.engine.view_for("7") is after


@pytest.mark.asyncio
async def test_failed_photo_delete_leaves_photo_visible(app: SahajaApp, backend: FakeBackend) -> None:
	_serve_report(backend, report_payload("7", photos=(1, 0, 0, 0, 0)))

	def refuse(request: httpx.Request) -> httpx.Response:
		raise httpx.ConnectError("Network request failed", request=request)

	backend.route("DELETE", "/crop-reports/stages/s1/photos/s1-p1", refuse)
	await app.crop_reports.refresh("7")

	with pytest.raises(NetworkError):
		await app.crop_reports.delete_stage_photo("7", "s1", "s1-p1")

	view = app.engine.view_for("7")
	assert view is not None
	assert view.stages[0].has_photos is True
	assert backend.count("GET", "/crop-reports/7") == 2
