"""Design router: outline refinement."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from routers.schemas import PointModel
from services.errors import DegeneratePolygon
from services.foam_geometry.utils.refinement import RefinementKind, refine_shape

router = APIRouter()


class RefineRequest(BaseModel):
    points: List[PointModel]
    refinementType: str = RefinementKind.CATEGORY.value
    category: Optional[str] = None
    hint: str = ""


class RefineResult(BaseModel):
    originalPoints: List[List[float]]
    refinedPoints: List[List[float]]
    pointsReduced: int


class RefineResponse(BaseModel):
    success: bool
    data: Optional[RefineResult] = None
    error: Optional[str] = None


@router.post("/refine", response_model=RefineResponse)
async def refine_design(request: RefineRequest):
    """Refine one traced outline (pixel units)."""
    if len(request.points) < 2:
        raise HTTPException(status_code=400, detail="At least 2 points are required")
    try:
        points = [(p[0], p[1]) for p in request.points]
        refined = refine_shape(points, request.refinementType, request.category, request.hint)
    except (DegeneratePolygon, ValueError, IndexError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return RefineResponse(
        success=True,
        data=RefineResult(
            originalPoints=[[x, y] for x, y in points],
            refinedPoints=[[x, y] for x, y in refined],
            pointsReduced=len(points) - len(refined),
        ),
    )
