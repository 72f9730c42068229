"""Template router: approved outline library and shape matching."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from routers.schemas import PointModel
from services.dependencies import get_template_library, get_template_matching_service
from services.foam_geometry import TemplateLibrary, TemplateMatchingService

router = APIRouter()


class CreateTemplateRequest(BaseModel):
    name: str
    category: str = "other"
    points: List[PointModel]
    trainingNotes: str = ""
    sourceDesignId: str = ""


class TemplateResponse(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@router.get("")
async def list_templates(
    category: Optional[str] = Query(None),
    library: TemplateLibrary = Depends(get_template_library),
) -> Dict[str, Any]:
    """List templates, most used first."""
    templates = library.list_templates(category)
    return {"templates": [template.to_dict() for template in templates], "total": len(templates)}


@router.post("", response_model=TemplateResponse)
async def create_template(
    request: CreateTemplateRequest,
    library: TemplateLibrary = Depends(get_template_library),
):
    """Approve an outline into the template library."""
    try:
        template = library.add_template(
            name=request.name,
            category=request.category,
            points=[(p[0], p[1]) for p in request.points],
            training_notes=request.trainingNotes,
            source_design_id=request.sourceDesignId,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TemplateResponse(success=True, data=template.to_dict())


class MatchItem(BaseModel):
    id: str
    points: List[PointModel]


class MatchRequest(BaseModel):
    items: List[MatchItem] = Field(default_factory=list)
    incrementUsage: bool = False


@router.post("/match")
async def match_templates(
    request: MatchRequest,
    service: TemplateMatchingService = Depends(get_template_matching_service),
) -> Dict[str, Any]:
    """Rank library templates against each candidate outline."""
    items = [{"id": item.id, "points": [(p[0], p[1]) for p in item.points]} for item in request.items]
    try:
        data = await service.match_items(items, increment_usage=request.incrementUsage)
        return {"success": True, **data}
    except Exception as e:
        return {"success": False, "error": str(e)}
