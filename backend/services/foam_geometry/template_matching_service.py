"""Template matching over the approved outline library."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Sequence

from services.foam_geometry.template_library import TemplateLibrary
from services.foam_geometry.utils.template_scoring import HIGH_CONFIDENCE, match_shape

logger = logging.getLogger(__name__)


class TemplateMatchingService:
    """Rank candidate shapes against the template library."""

    def __init__(self, library: TemplateLibrary):
        self.library = library

    async def match_items(self, items: Sequence[Dict[str, Any]], increment_usage: bool = False) -> Dict[str, Any]:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._match_items_sync, list(items), increment_usage)

    def _match_items_sync(self, items: List[Dict[str, Any]], increment_usage: bool) -> Dict[str, Any]:
        templates = self.library.list_templates()
        metrics = TemplateLibrary.metrics_for(templates)

        results = []
        for item in items:
            matches = match_shape(item.get("points") or [], templates, template_metrics=metrics)
            best = matches[0] if matches else None
            if increment_usage and best is not None and best.confidence > HIGH_CONFIDENCE:
                self._increment_usage(best.template_id)
            results.append(
                {
                    "itemId": item.get("id"),
                    "matches": [match.to_dict() for match in matches],
                    "bestMatch": best.to_dict() if best is not None else None,
                }
            )

        return {"results": results, "templatesChecked": len(templates)}

    def _increment_usage(self, template_id: str) -> None:
        try:
            if not self.library.increment_usage(template_id):
                logger.warning("Template %s disappeared before its usage count could be incremented", template_id)
        except Exception as exc:
            logger.warning("Failed to increment usage count for template %s: %s", template_id, exc)
