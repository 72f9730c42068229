import pytest
from fastapi.testclient import TestClient

from conftest import FakeVisionClient, RecordingSleep, square
from main import app
from services.dependencies import (
    get_artifact_store,
    get_case_catalog,
    get_cut_file_service,
    get_orchestrator,
    get_template_library,
    get_template_matching_service,
)
from services.foam_geometry import TemplateMatchingService
from services.processing import ProcessingOrchestrator


@pytest.fixture
def orchestrator(settings, upload_store, job_store, cut_file_service, trace_result):
    return ProcessingOrchestrator(
        FakeVisionClient(trace_result),
        upload_store,
        job_store,
        cut_file_service,
        settings,
        sleep=RecordingSleep(),
    )


@pytest.fixture
def client(orchestrator, template_library, case_catalog, artifact_store, cut_file_service):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_template_library] = lambda: template_library
    app.dependency_overrides[get_template_matching_service] = lambda: TemplateMatchingService(template_library)
    app.dependency_overrides[get_case_catalog] = lambda: case_catalog
    app.dependency_overrides[get_artifact_store] = lambda: artifact_store
    app.dependency_overrides[get_cut_file_service] = lambda: cut_file_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _outline(item_id, size, x=0.0, y=0.0):
    return {"id": item_id, "outerPath": square(0, 0, size), "position": {"x": x, "y": y}}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "service": "foam-insert-cut"}


class TestUpload:
    def test_process_status_and_remove(self, client):
        response = client.post("/api/upload/process", json={"uploadId": "up-1", "imageUrl": "https://x/p.jpg"})
        body = response.json()
        assert body["success"] is True
        job_id = body["jobId"]

        status = client.get(f"/api/upload/status/{job_id}").json()
        assert status["state"] == "queued"
        assert status["progressPercent"] == 0.0

        removed = client.delete(f"/api/upload/jobs/{job_id}").json()
        assert removed == {"success": True, "jobId": job_id, "state": "failed"}

    def test_unknown_job_is_404(self, client):
        assert client.get("/api/upload/status/missing").status_code == 404
        assert client.delete("/api/upload/jobs/missing").status_code == 404

    def test_non_positive_scale_is_rejected(self, client):
        response = client.post(
            "/api/upload/process",
            json={"uploadId": "up-1", "imageUrl": "https://x/p.jpg", "calibration": {"pixelsPerInch": 0}},
        )
        assert response.status_code == 400

    def test_calibrate_from_reference(self, client):
        response = client.post(
            "/api/upload/calibrate",
            json={
                "referenceObject": "credit card",
                "boundingBoxWidth": 10,
                "boundingBoxHeight": 6,
                "knownDimension": 2,
                "imageWidth": 1920,
                "imageHeight": 1080,
            },
        )
        assert response.json() == {"success": True, "pixelsPerInch": 96.0, "method": "reference-object", "error": None}

    def test_calibrate_rejects_zero_dimension(self, client):
        response = client.post(
            "/api/upload/calibrate",
            json={"boundingBoxWidth": 10, "boundingBoxHeight": 6, "knownDimension": 0, "imageWidth": 1920, "imageHeight": 1080},
        )
        assert response.status_code == 400


class TestDesigns:
    def test_refine_rectangle(self, client):
        points = [[0, 0], [5, 1], [10, 0], [10, 10], [0, 10]]
        data = client.post("/api/designs/refine", json={"points": points, "refinementType": "rectangle"}).json()["data"]
        assert data["refinedPoints"] == [[0.0, 0.0], [10.0, 0.0], [10.0, 10.0], [0.0, 10.0]]
        assert data["pointsReduced"] == 1
        assert data["originalPoints"] == points

    def test_degenerate_hull_is_400(self, client):
        response = client.post("/api/designs/refine", json={"points": [[0, 0], [1, 1]], "refinementType": "convex_hull"})
        assert response.status_code == 400

    def test_malformed_point_is_422(self, client):
        response = client.post("/api/designs/refine", json={"points": [[0, 0], [1]], "refinementType": "smooth"})
        assert response.status_code == 422


class TestTemplates:
    def test_create_list_and_match(self, client):
        created = client.post(
            "/api/templates", json={"name": "Optic box", "category": "optic", "points": square(0, 0, 10)}
        ).json()
        assert created["success"] is True
        template_id = created["data"]["id"]
        client.post("/api/templates", json={"name": "Mag", "category": "magazine", "points": [[0, 0], [10, 0], [5, 40]]})

        listed = client.get("/api/templates", params={"category": "optic"}).json()
        assert [t["name"] for t in listed["templates"]] == ["Optic box"]
        assert listed["templates"][0]["aspectRatio"] == 1.0
        assert listed["templates"][0]["pointCount"] == 4

        matched = client.post(
            "/api/templates/match", json={"items": [{"id": "item_1", "points": square(5, 5, 20)}], "incrementUsage": True}
        ).json()
        assert matched["templatesChecked"] == 2
        assert matched["results"][0]["bestMatch"]["templateId"] == template_id
        assert client.get("/api/templates").json()["templates"][0]["usageCount"] == 1

    def test_short_template_is_400(self, client):
        response = client.post("/api/templates", json={"name": "Line", "points": [[0, 0], [1, 1]]})
        assert response.status_code == 400


class TestCases:
    def test_fit(self, client):
        response = client.post(
            "/api/cases/fit",
            json={"outlines": [_outline("a", 12)], "case": {"width": 10, "length": 20}, "tolerance": 0},
        )
        data = response.json()["data"]
        assert data["fits"] is False
        assert data["overflow"] == {"width": 2.0, "height": 0.0}

    def test_negative_tolerance_is_400(self, client):
        response = client.post(
            "/api/cases/fit",
            json={"outlines": [_outline("a", 1)], "case": {"width": 10, "length": 20}, "tolerance": -1},
        )
        assert response.status_code == 400

    def test_malformed_point_is_422(self, client):
        outline = {"id": "a", "outerPath": [[1], [2, 0], [2, 2]]}
        response = client.post("/api/cases/fit", json={"outlines": [outline], "case": {"width": 10, "length": 20}})
        assert response.status_code == 422

    def test_compatible_cases(self, client):
        body = client.post("/api/cases/compatible", json={"outlines": [_outline("a", 10)]}).json()
        assert [row["id"] for row in body["cases"]] == ["medium", "large", "small"]
        assert body["fitCount"] == 2


class TestExport:
    def test_inline_cut_file(self, client):
        response = client.post("/api/export/cut-file", json={"outlines": [_outline("a", 4, 1, 1)], "caseWidth": 10, "caseLength": 8})
        data = response.json()["data"]
        assert "CUT_OUTER" in data["cutFileArtifact"]
        assert data["previewArtifact"].startswith("<svg")
        assert data["bounds"] == {"width": 4.0, "height": 4.0}

    def test_stored_cut_file_is_served(self, client):
        response = client.post("/api/export/cut-file", json={"outlines": [_outline("a", 4)], "uploadId": "up-9"})
        data = response.json()["data"]
        served = client.get(data["svgUrl"])
        assert served.status_code == 200
        assert served.text.startswith("<svg")

    def test_zero_area_is_400(self, client):
        flat = {"id": "flat", "outerPath": [[0, 0], [1, 0], [2, 0]]}
        assert client.post("/api/export/cut-file", json={"outlines": [flat]}).status_code == 400

    def test_empty_layout_is_400(self, client):
        assert client.post("/api/export/cut-file", json={"outlines": []}).status_code == 400

    def test_half_specified_case_is_400(self, client):
        response = client.post("/api/export/cut-file", json={"outlines": [_outline("a", 4)], "caseWidth": 10})
        assert response.status_code == 400
