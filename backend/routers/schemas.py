"""Request/response models shared by the geometry routers."""

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from services.foam_geometry.models import InnerPath, Outline

# Exactly two coordinates, so malformed points fail request validation.
PointModel = Tuple[float, float]


class InnerPathModel(BaseModel):
    id: str = ""
    points: List[PointModel]


class PositionModel(BaseModel):
    x: float = 0.0
    y: float = 0.0


class OutlineModel(BaseModel):
    id: str
    outerPath: List[PointModel]
    innerPaths: List[InnerPathModel] = Field(default_factory=list)
    depth: float = 0.0
    position: PositionModel = Field(default_factory=PositionModel)
    rotation: float = 0.0  # degrees
    itemName: str = ""
    category: str = "other"

    def to_outline(self) -> Outline:
        return Outline(
            id=self.id,
            outer=[(p[0], p[1]) for p in self.outerPath],
            inners=[
                InnerPath(id=inner.id or f"inner_{index}", points=[(p[0], p[1]) for p in inner.points])
                for index, inner in enumerate(self.innerPaths)
            ],
            depth=self.depth,
            position=(self.position.x, self.position.y),
            rotation=self.rotation,
            item_name=self.itemName,
            category=self.category,
        )


class BoundsModel(BaseModel):
    width: float
    height: float


class OverflowModel(BaseModel):
    width: float
    height: float


class CaseEnvelopeModel(BaseModel):
    width: float
    length: float
    id: Optional[str] = None
    name: Optional[str] = None
