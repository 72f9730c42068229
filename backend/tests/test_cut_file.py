import asyncio
import io

import ezdxf
import pytest

from services.errors import ExportFailure
from services.foam_geometry.models import InnerPath, Outline
from services.foam_geometry.utils.cut_file import (
    CASE_LAYER,
    INNER_LAYER,
    OUTER_LAYER,
    ExportOptions,
    build_contours,
    export_cut_file,
    offset_path,
)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _holster():
    return Outline(
        id="holster",
        outer=[(0.0, 0.0), (6.0, 0.0), (6.0, 4.0), (0.0, 4.0)],
        inners=[InnerPath(id="finger", points=[(2.0, 1.0), (4.0, 1.0), (4.0, 3.0), (2.0, 3.0)])],
        position=(1.0, 1.0),
    )


def _polylines(dxf_text):
    doc = ezdxf.read(io.StringIO(dxf_text))
    return doc, list(doc.modelspace().query("LWPOLYLINE"))


def test_outer_contour_precedes_its_voids():
    doc, polylines = _polylines(export_cut_file([_holster()]).cut_file_dxf)
    assert [p.dxf.layer for p in polylines] == [OUTER_LAYER, INNER_LAYER]
    assert all(p.closed for p in polylines)
    assert doc.header["$INSUNITS"] == 1


def test_vertices_are_placed_in_inches():
    _, polylines = _polylines(export_cut_file([_holster()]).cut_file_dxf)
    outer = [tuple(pt) for pt in polylines[0].get_points("xy")]
    assert outer == [pytest.approx(pt) for pt in [(1.0, 1.0), (7.0, 1.0), (7.0, 5.0), (1.0, 5.0)]]


def test_case_boundary_on_its_own_layer():
    export = export_cut_file([_holster()], case_width=10.0, case_length=8.0)
    _, polylines = _polylines(export.cut_file_dxf)
    assert polylines[0].dxf.layer == CASE_LAYER
    assert [p.dxf.layer for p in polylines[1:]] == [OUTER_LAYER, INNER_LAYER]


def test_geometry_is_deterministic():
    first = export_cut_file([_holster()])
    second = export_cut_file([_holster()])
    _, a = _polylines(first.cut_file_dxf)
    _, b = _polylines(second.cut_file_dxf)
    assert [list(p.get_points("xy")) for p in a] == [list(p.get_points("xy")) for p in b]
    assert first.preview_svg == second.preview_svg


def test_bounds_come_from_outer_contours():
    export = export_cut_file([_holster()])
    assert (export.bounds.width, export.bounds.height) == pytest.approx((6.0, 4.0))


def test_previews():
    export = export_cut_file([_holster()], case_width=10.0, case_length=8.0)
    assert export.preview_svg.startswith("<svg")
    assert 'fill-rule="evenodd"' in export.preview_svg
    assert 'id="item-holster"' in export.preview_svg
    assert export.preview_png.startswith(PNG_SIGNATURE)


def test_zero_area_outline_rejected():
    flat = Outline(id="flat", outer=[(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)])
    with pytest.raises(ExportFailure):
        export_cut_file([flat])


def test_empty_layout_rejected():
    with pytest.raises(ExportFailure):
        export_cut_file([])


def test_non_positive_case_rejected():
    with pytest.raises(ExportFailure):
        export_cut_file([_holster()], case_width=0.0, case_length=5.0)


@pytest.mark.parametrize("case_width, case_length", [(10.0, None), (None, 8.0)])
def test_half_specified_case_rejected(case_width, case_length):
    with pytest.raises(ExportFailure, match="together"):
        export_cut_file([_holster()], case_width=case_width, case_length=case_length)


def test_clearance_grows_outer_and_shrinks_voids():
    contours = build_contours([_holster()], ExportOptions(clearance=0.2))
    outer, inner = contours
    assert not outer.is_void and inner.is_void
    outer_xs = [x for x, _ in outer.points]
    inner_xs = [x for x, _ in inner.points]
    assert min(outer_xs) < 1.0 and max(outer_xs) > 7.0
    assert min(inner_xs) > 3.0 and max(inner_xs) < 5.0


def test_offset_path_is_radial():
    result = offset_path([(1.0, 0.0), (-1.0, 0.0), (0.0, 1.0), (0.0, -1.0)], 1.0)
    assert result == [pytest.approx(pt) for pt in [(2.0, 0.0), (-2.0, 0.0), (0.0, 2.0), (0.0, -2.0)]]


def test_service_stores_artifacts(cut_file_service, artifact_store):
    payload = asyncio.run(cut_file_service.export([_holster()], None, None, upload_id="up-1"))
    assert payload["dxfKey"].startswith("cuts/up-1/")
    assert payload["dxfKey"].endswith("-outline.dxf")
    assert payload["svgUrl"] == f"/files/{payload['svgKey']}"
    assert artifact_store.read(payload["pngKey"]).startswith(PNG_SIGNATURE)
    assert b"CUT_OUTER" in artifact_store.read(payload["dxfKey"])


def test_service_inline_payload(cut_file_service):
    payload = asyncio.run(cut_file_service.export([_holster()], 10.0, 8.0))
    assert set(payload) == {"previewArtifact", "cutFileArtifact", "bounds"}
    assert payload["bounds"] == {"width": pytest.approx(6.0), "height": pytest.approx(4.0)}
