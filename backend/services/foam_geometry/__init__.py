"""Foam insert geometry services."""

from services.foam_geometry.case_catalog import CaseCatalog
from services.foam_geometry.cut_file_service import CutFileService
from services.foam_geometry.template_library import TemplateLibrary
from services.foam_geometry.template_matching_service import TemplateMatchingService

__all__ = [
    "CaseCatalog",
    "CutFileService",
    "TemplateLibrary",
    "TemplateMatchingService",
]
