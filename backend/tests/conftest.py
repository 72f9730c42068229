"""Shared fixtures for the foam insert backend tests."""

import json
import logging
from typing import List

import pytest

from services.artifact_storage import LocalArtifactStore
from services.config import PipelineSettings
from services.errors import UpstreamServiceFailure
from services.foam_geometry import CaseCatalog, CutFileService, TemplateLibrary
from services.foam_geometry.models import Outline
from services.processing import JobStore, TraceResult, UploadStore, VisionClient

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


class FakeVisionClient(VisionClient):
    """Fails ``failures`` times, then returns ``result``."""

    def __init__(self, result: TraceResult, failures: int = 0):
        self.result = result
        self.failures = failures
        self.calls: List[str] = []

    async def trace_outlines(self, image_ref: str) -> TraceResult:
        self.calls.append(image_ref)
        if len(self.calls) <= self.failures:
            raise UpstreamServiceFailure(f"vision service unavailable (call {len(self.calls)})")
        return self.result


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def square(x: float, y: float, size: float):
    return [[x, y], [x + size, y], [x + size, y + size], [x, y + size]]


@pytest.fixture
def settings(tmp_path):
    return PipelineSettings(
        data_dir=tmp_path,
        worker_concurrency=1,
        max_attempts=3,
        backoff_base_seconds=1.0,
        status_poll_timeout_seconds=5.0,
    )


@pytest.fixture
def upload_store(tmp_path):
    return UploadStore(tmp_path / "uploads.json")


@pytest.fixture
def job_store(tmp_path):
    return JobStore(tmp_path / "jobs.json")


@pytest.fixture
def artifact_store(tmp_path):
    return LocalArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def cut_file_service(artifact_store):
    return CutFileService(artifact_store)


@pytest.fixture
def template_library(tmp_path):
    return TemplateLibrary(tmp_path / "templates.json")


@pytest.fixture
def case_catalog(tmp_path):
    path = tmp_path / "cases.json"
    cases = [
        {"id": "large", "name": "Large", "brand": "Pelican", "interiorWidth": 20, "interiorLength": 30, "basePrice": 250},
        {"id": "small", "name": "Small", "brand": "Pelican", "interiorWidth": 8, "interiorLength": 8, "basePrice": 90},
        {"id": "medium", "name": "Medium", "brand": "Nanuk", "interiorWidth": 14, "interiorLength": 18, "basePrice": 150},
    ]
    with path.open("w", encoding="utf-8") as f:
        json.dump({"cases": cases}, f)
    return CaseCatalog(path)


@pytest.fixture
def trace_result():
    outline = Outline.from_dict(
        {
            "id": "mag_1",
            "itemName": "Rifle magazine",
            "category": "magazine",
            "outerPath": square(10, 10, 20),
            "innerPaths": [],
            "depth": 1.5,
        }
    )
    return TraceResult(outlines=[outline], image_width=1920, image_height=1080, raw={"outlines": []})
