"""Pure geometry helpers for the foam insert pipeline."""

from services.foam_geometry.utils.calibration import (
    calibration_from_reference,
    inches_to_pixels,
    percent_to_inches,
    percent_to_pixels,
    pixels_to_inches,
)
from services.foam_geometry.utils.case_fit import CaseFitResult, check_case_fit, rank_compatible_cases
from services.foam_geometry.utils.cut_file import CutFileExport, ExportOptions, export_cut_file
from services.foam_geometry.utils.refinement import (
    ItemCategory,
    RefinementKind,
    convex_hull,
    ellipticize,
    rectangularize,
    refine_by_category,
    refine_shape,
    simplify,
    smooth,
)
from services.foam_geometry.utils.template_scoring import compute_shape_metrics, match_shape

__all__ = [
    "calibration_from_reference",
    "inches_to_pixels",
    "percent_to_inches",
    "percent_to_pixels",
    "pixels_to_inches",
    "CaseFitResult",
    "check_case_fit",
    "rank_compatible_cases",
    "CutFileExport",
    "ExportOptions",
    "export_cut_file",
    "ItemCategory",
    "RefinementKind",
    "convex_hull",
    "ellipticize",
    "rectangularize",
    "refine_by_category",
    "refine_shape",
    "simplify",
    "smooth",
    "compute_shape_metrics",
    "match_shape",
]
