"""
Foam Insert Cut - Python Backend
FastAPI server turning traced gear photos into calibrated, refined foam-insert cut files.
"""

import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
import uvicorn

from routers import cases, designs, export, templates, upload
from services.artifact_storage import LocalArtifactStore
from services.config import get_settings
from services.dependencies import get_artifact_store, get_orchestrator
from services.progress_manager import get_progress_manager

# Global progress manager for WebSocket updates
progress_manager = get_progress_manager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup
    print("Starting Foam Insert Cut Backend...")
    print("=" * 50)

    data_dir = settings.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "artifacts").mkdir(exist_ok=True)

    orchestrator = get_orchestrator()
    await orchestrator.start()

    print(f"Data directory: {data_dir.absolute()}")
    print(f"Workers: {settings.worker_concurrency}, max attempts: {settings.max_attempts}")
    print("Backend ready!")
    print("=" * 50)

    yield

    # Shutdown
    print("Shutting down Foam Insert Cut Backend...")
    await orchestrator.stop()


app = FastAPI(
    title="Foam Insert Cut API",
    description="Backend API for calibrating, refining and cutting foam case inserts",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(upload.router, prefix="/api/upload", tags=["Upload"])
app.include_router(designs.router, prefix="/api/designs", tags=["Designs"])
app.include_router(templates.router, prefix="/api/templates", tags=["Templates"])
app.include_router(cases.router, prefix="/api/cases", tags=["Cases"])
app.include_router(export.router, prefix="/api/export", tags=["Export"])


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "service": "foam-insert-cut"}


@app.get("/files/{key:path}")
async def get_artifact(key: str, store: LocalArtifactStore = Depends(get_artifact_store)):
    """Serve a stored cut file or preview."""
    try:
        path = store.path_for(key)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid artifact key")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Artifact not found")
    return FileResponse(path)


@app.websocket("/ws/progress")
async def websocket_progress(websocket: WebSocket):
    """WebSocket endpoint for real-time job updates."""
    await websocket.accept()
    progress_manager.add_client(websocket)

    try:
        while True:
            # Keep connection alive
            await asyncio.sleep(1)
    except WebSocketDisconnect:
        progress_manager.remove_client(websocket)


@app.get("/")
async def root() -> Dict[str, Any]:
    """Root endpoint with API info."""
    return {
        "name": "Foam Insert Cut API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


def main():
    """Main entry point for the backend server."""
    parser = argparse.ArgumentParser(description="Foam Insert Cut Backend")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8765, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
