"""Cut-file export service: renders placed outlines and stores the artifacts."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Sequence

from services.artifact_storage import LocalArtifactStore
from services.foam_geometry.models import Outline
from services.foam_geometry.utils.cut_file import CutFileExport, ExportOptions, export_cut_file

logger = logging.getLogger(__name__)


class CutFileService:
    def __init__(self, store: LocalArtifactStore, options: ExportOptions = ExportOptions()):
        self.store = store
        self.options = options

    async def export(
        self,
        outlines: Sequence[Outline],
        case_width: Optional[float],
        case_length: Optional[float],
        upload_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        loop = asyncio.get_event_loop()
        rendered = await loop.run_in_executor(
            None,
            export_cut_file,
            list(outlines),
            case_width,
            case_length,
            self.options,
        )
        if upload_id is None:
            return self.inline_payload(rendered)
        return await loop.run_in_executor(None, self._store_sync, rendered, upload_id)

    @staticmethod
    def inline_payload(rendered: CutFileExport) -> Dict[str, Any]:
        return {
            "previewArtifact": rendered.preview_svg,
            "cutFileArtifact": rendered.cut_file_dxf,
            "bounds": {"width": rendered.bounds.width, "height": rendered.bounds.height},
        }

    def _store_sync(self, rendered: CutFileExport, upload_id: str) -> Dict[str, Any]:
        stamp = int(time.time() * 1000)
        logger.info("Storing cut file for upload %s (%.2f x %.2f in)", upload_id, rendered.bounds.width, rendered.bounds.height)
        dxf_key = f"cuts/{upload_id}/{stamp}-outline.dxf"
        svg_key = f"cuts/{upload_id}/{stamp}-outline.svg"
        png_key = f"cuts/{upload_id}/{stamp}-preview.png"
        return {
            "dxfKey": dxf_key,
            "dxfUrl": self.store.put(dxf_key, rendered.cut_file_dxf.encode("utf-8"), "application/dxf"),
            "svgKey": svg_key,
            "svgUrl": self.store.put(svg_key, rendered.preview_svg.encode("utf-8"), "image/svg+xml"),
            "pngKey": png_key,
            "pngUrl": self.store.put(png_key, rendered.preview_png, "image/png"),
            "bounds": {"width": rendered.bounds.width, "height": rendered.bounds.height},
        }
