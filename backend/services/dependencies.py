"""Process-wide service instances, built lazily from settings.

Routers take these through ``Depends`` so tests can swap them with
``app.dependency_overrides``.
"""

from functools import lru_cache

from services.artifact_storage import LocalArtifactStore
from services.config import get_settings
from services.foam_geometry import CaseCatalog, CutFileService, TemplateLibrary, TemplateMatchingService
from services.foam_geometry.utils import ExportOptions
from services.processing import HttpVisionClient, JobStore, ProcessingOrchestrator, UploadStore
from services.progress_manager import get_progress_manager


@lru_cache(maxsize=None)
def get_template_library() -> TemplateLibrary:
    return TemplateLibrary(get_settings().data_dir / "templates.json")


@lru_cache(maxsize=None)
def get_template_matching_service() -> TemplateMatchingService:
    return TemplateMatchingService(get_template_library())


@lru_cache(maxsize=None)
def get_case_catalog() -> CaseCatalog:
    return CaseCatalog(get_settings().data_dir / "cases.json")


@lru_cache(maxsize=None)
def get_artifact_store() -> LocalArtifactStore:
    settings = get_settings()
    return LocalArtifactStore(settings.data_dir / "artifacts", settings.public_base_url)


@lru_cache(maxsize=None)
def get_cut_file_service() -> CutFileService:
    return CutFileService(get_artifact_store(), ExportOptions(clearance=get_settings().export_clearance))


@lru_cache(maxsize=None)
def get_upload_store() -> UploadStore:
    return UploadStore(get_settings().data_dir / "uploads.json")


@lru_cache(maxsize=None)
def get_orchestrator() -> ProcessingOrchestrator:
    settings = get_settings()
    return ProcessingOrchestrator(
        vision_client=HttpVisionClient(
            settings.vision_endpoint,
            api_key=settings.vision_api_key,
            timeout=settings.vision_timeout_seconds,
        ),
        upload_store=get_upload_store(),
        job_store=JobStore(settings.data_dir / "jobs.json"),
        cut_files=get_cut_file_service(),
        settings=settings,
        progress_manager=get_progress_manager(),
    )
