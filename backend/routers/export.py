"""Export router: DXF cut files and previews for a placed layout."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from routers.schemas import OutlineModel
from services.dependencies import get_cut_file_service
from services.errors import DegeneratePolygon, ExportFailure
from services.foam_geometry import CutFileService

router = APIRouter()


class CutFileRequest(BaseModel):
    outlines: List[OutlineModel]
    caseWidth: Optional[float] = None
    caseLength: Optional[float] = None
    uploadId: Optional[str] = None


class CutFileResponse(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@router.post("/cut-file", response_model=CutFileResponse)
async def export_cut_file(
    request: CutFileRequest,
    service: CutFileService = Depends(get_cut_file_service),
):
    """Generate the cut file. With ``uploadId`` the artifacts are stored and returned as URLs."""
    if not request.outlines:
        raise HTTPException(status_code=400, detail="At least one outline is required")
    try:
        data = await service.export(
            [o.to_outline() for o in request.outlines],
            request.caseWidth,
            request.caseLength,
            upload_id=request.uploadId,
        )
        return CutFileResponse(success=True, data=data)
    except (ExportFailure, DegeneratePolygon) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        return CutFileResponse(success=False, error=str(e))
