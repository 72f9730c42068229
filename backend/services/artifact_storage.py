"""Local object storage for exported cut files and previews."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class LocalArtifactStore:
    """Writes artifacts under ``root`` and returns their public URLs."""

    def __init__(self, root: Path, public_base_url: str = "/files"):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Artifact key escapes storage root: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored artifact %s (%d bytes, %s)", key, len(data), content_type or "application/octet-stream")
        return self.url_for(key)

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def read(self, key: str) -> bytes:
        return self.path_for(key).read_bytes()
