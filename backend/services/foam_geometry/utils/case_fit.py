"""Bounding-box case-fit validation.

This is a conservative envelope check, not a packing solver: outlines that
overlap each other can still be reported as fitting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from services.foam_geometry.models import CaseEnvelope, Outline
from services.foam_geometry.utils.placement import Bounds, outlines_bounds


@dataclass(frozen=True)
class Overflow:
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class ItemFit:
    id: str
    fits: bool
    overflow: Overflow


@dataclass(frozen=True)
class CaseFitResult:
    fits: bool
    bounds: Bounds
    overflow: Optional[Overflow] = None
    items: List[ItemFit] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fits": self.fits,
            "overflow": self.overflow.to_dict() if self.overflow is not None else None,
            "totalBounds": {"width": self.bounds.width, "height": self.bounds.height},
            "itemsFit": [
                {"id": item.id, "fits": item.fits, "overflow": item.overflow.to_dict()} for item in self.items
            ],
        }


def _compare(bounds: Bounds, envelope: CaseEnvelope) -> Overflow:
    return Overflow(
        width=max(0.0, bounds.width - envelope.width),
        height=max(0.0, bounds.height - envelope.length),
    )


def check_case_fit(
    outlines: Sequence[Outline],
    envelope: CaseEnvelope,
    tolerance: float = 0.0,
) -> CaseFitResult:
    """Check the union box of all outlines, grown by ``tolerance`` per side, against the envelope."""
    if tolerance < 0:
        raise ValueError(f"tolerance must be >= 0, got {tolerance}")

    bounds = outlines_bounds(outlines).inflate(tolerance)
    fits = bounds.width <= envelope.width and bounds.height <= envelope.length

    items = []
    for outline in outlines:
        item_bounds = outlines_bounds([outline]).inflate(tolerance)
        item_overflow = _compare(item_bounds, envelope)
        items.append(
            ItemFit(
                id=outline.id,
                fits=item_bounds.width <= envelope.width and item_bounds.height <= envelope.length,
                overflow=item_overflow,
            )
        )

    return CaseFitResult(
        fits=fits,
        bounds=bounds,
        overflow=None if fits else _compare(bounds, envelope),
        items=items,
    )


def rank_compatible_cases(
    outlines: Sequence[Outline],
    envelopes: Sequence[CaseEnvelope],
    tolerance: float = 0.0,
) -> List[Dict[str, Any]]:
    """Fitting cases first, then cheapest first."""
    ranked = []
    for envelope in envelopes:
        result = check_case_fit(outlines, envelope, tolerance)
        ranked.append(
            {
                "id": envelope.id,
                "name": envelope.name,
                "brand": envelope.brand,
                "interiorWidth": envelope.width,
                "interiorLength": envelope.length,
                "interiorDepth": envelope.depth,
                "basePrice": envelope.base_price,
                "fits": result.fits,
                "overflow": result.overflow.to_dict() if result.overflow is not None else None,
            }
        )
    ranked.sort(key=lambda row: (not row["fits"], row["basePrice"]))
    return ranked
