"""Case router: fit validation against case interiors."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from routers.schemas import CaseEnvelopeModel, OutlineModel
from services.dependencies import get_case_catalog
from services.errors import DegeneratePolygon
from services.foam_geometry import CaseCatalog
from services.foam_geometry.models import CaseEnvelope
from services.foam_geometry.utils.case_fit import check_case_fit, rank_compatible_cases

router = APIRouter()


class CaseFitRequest(BaseModel):
    outlines: List[OutlineModel]
    case: CaseEnvelopeModel
    tolerance: float = 0.0


class CaseFitResponse(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@router.post("/fit", response_model=CaseFitResponse)
async def fit_case(request: CaseFitRequest):
    """Check whether the placed outlines fit inside one case interior."""
    envelope = CaseEnvelope(
        width=request.case.width,
        length=request.case.length,
        id=request.case.id or "",
        name=request.case.name or "",
    )
    try:
        result = check_case_fit([o.to_outline() for o in request.outlines], envelope, request.tolerance)
    except (DegeneratePolygon, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CaseFitResponse(success=True, data=result.to_dict())


class CompatibleCasesRequest(BaseModel):
    outlines: List[OutlineModel]
    tolerance: float = 0.0
    caseIds: List[str] = Field(default_factory=list)


@router.post("/compatible")
async def compatible_cases(
    request: CompatibleCasesRequest,
    catalog: CaseCatalog = Depends(get_case_catalog),
) -> Dict[str, Any]:
    """Rank catalog cases: fitting ones first, then by price."""
    envelopes = catalog.list_cases()
    if request.caseIds:
        wanted = set(request.caseIds)
        envelopes = [envelope for envelope in envelopes if envelope.id in wanted]
    try:
        ranked = rank_compatible_cases([o.to_outline() for o in request.outlines], envelopes, request.tolerance)
    except (DegeneratePolygon, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "cases": ranked, "fitCount": sum(1 for row in ranked if row["fits"])}
