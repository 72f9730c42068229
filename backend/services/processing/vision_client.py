"""Client for the external outline-tracing vision service.

The service returns, per gear item, polygons in percent-of-image
coordinates together with an item name, category and suggested depth.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import requests

from services.errors import UpstreamServiceFailure
from services.foam_geometry.models import Outline, ReferenceMeasurement

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass
class TraceResult:
    outlines: List[Outline]
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    reference: Optional[ReferenceMeasurement] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def _parse_reference(raw: Any) -> Optional[ReferenceMeasurement]:
    if not isinstance(raw, dict):
        return None
    box = raw.get("boundingBox") or {}
    try:
        return ReferenceMeasurement(
            reference_object=str(raw.get("referenceObject", "")),
            box_width_percent=float(box["width"]),
            box_height_percent=float(box["height"]),
            known_dimension=float(raw["knownDimension"]),
            measure_axis=str(raw.get("measureAxis", "width")),
            confidence=float(raw.get("confidence", 0.0) or 0.0),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Ignoring malformed calibration reference from vision service: %r", raw)
        return None


def parse_trace_payload(payload: Union[str, Dict[str, Any]]) -> TraceResult:
    """Validate a vision response given as a JSON object or text wrapping one."""
    if isinstance(payload, str):
        match = _JSON_OBJECT.search(payload)
        if not match:
            raise UpstreamServiceFailure("Could not find a JSON object in the vision response")
        try:
            payload = json.loads(match.group(0))
        except ValueError as exc:
            raise UpstreamServiceFailure(f"Vision response is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise UpstreamServiceFailure("Vision response must be a JSON object")
    rows = payload.get("outlines")
    if not isinstance(rows, list) or not rows:
        raise UpstreamServiceFailure("Vision response contained no outlines")

    outlines: List[Outline] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise UpstreamServiceFailure(f"Outline #{index} is not an object")
        try:
            outline = Outline.from_dict(row)
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            raise UpstreamServiceFailure(f"Outline #{index} is malformed: {exc}") from exc
        if not outline.id:
            outline.id = f"item_{index}"
        if len(outline.outer) < 3:
            raise UpstreamServiceFailure(f"Outline {outline.id} has fewer than 3 points")
        outlines.append(outline)

    width = payload.get("imageWidth")
    height = payload.get("imageHeight")
    return TraceResult(
        outlines=outlines,
        image_width=int(width) if isinstance(width, (int, float)) and width > 0 else None,
        image_height=int(height) if isinstance(height, (int, float)) and height > 0 else None,
        reference=_parse_reference(payload.get("calibration")),
        raw=payload,
    )


class VisionClient:
    """Interface of the outline-tracing collaborator."""

    async def trace_outlines(self, image_ref: str) -> TraceResult:
        raise NotImplementedError


class HttpVisionClient(VisionClient):
    def __init__(self, endpoint: Optional[str], api_key: Optional[str] = None, timeout: float = 120.0):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout

    async def trace_outlines(self, image_ref: str) -> TraceResult:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._trace_outlines_sync, image_ref)

    def _trace_outlines_sync(self, image_ref: str) -> TraceResult:
        if not self.endpoint:
            raise UpstreamServiceFailure("Vision service endpoint is not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = requests.post(
                self.endpoint,
                json={"imageUrl": image_ref},
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise UpstreamServiceFailure(f"Vision service request failed: {exc}") from exc

        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            try:
                return parse_trace_payload(response.json())
            except ValueError as exc:
                raise UpstreamServiceFailure(f"Vision service returned invalid JSON: {exc}") from exc
        return parse_trace_payload(response.text)
