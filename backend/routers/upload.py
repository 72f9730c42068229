"""Upload router: queue photos for outline processing and report job status."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from services.dependencies import get_orchestrator
from services.errors import InvalidCalibration, JobNotFound, JobTimeout
from services.foam_geometry.models import ReferenceMeasurement
from services.foam_geometry.utils.calibration import calibration_from_reference
from services.processing import CalibrationHint, ProcessingOrchestrator

router = APIRouter()


class CalibrationHintModel(BaseModel):
    pixelsPerInch: Optional[float] = None
    imageWidth: Optional[int] = None
    imageHeight: Optional[int] = None


class ProcessUploadRequest(BaseModel):
    uploadId: str
    imageUrl: str
    calibration: Optional[CalibrationHintModel] = None


class ProcessUploadResponse(BaseModel):
    success: bool
    jobId: Optional[str] = None
    error: Optional[str] = None


@router.post("/process", response_model=ProcessUploadResponse)
async def process_upload(
    request: ProcessUploadRequest,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """Queue an uploaded photo for tracing, calibration and cut-file generation."""
    hint = None
    if request.calibration is not None:
        if request.calibration.pixelsPerInch is not None and request.calibration.pixelsPerInch <= 0:
            raise HTTPException(status_code=400, detail="pixelsPerInch must be positive")
        hint = CalibrationHint(
            pixels_per_inch=request.calibration.pixelsPerInch,
            image_width=request.calibration.imageWidth,
            image_height=request.calibration.imageHeight,
        )
    try:
        job_id = await orchestrator.submit(request.uploadId, request.imageUrl, hint)
        return ProcessUploadResponse(success=True, jobId=job_id)
    except Exception as e:
        return ProcessUploadResponse(success=False, error=str(e))


@router.get("/status/{job_id}")
async def get_job_status(
    job_id: str,
    wait: Optional[float] = Query(None, ge=0, le=600, description="Seconds to wait for a terminal state"),
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Current job state, or the final result once the job is terminal."""
    try:
        if wait:
            return await orchestrator.wait_for(job_id, timeout=wait)
        return orchestrator.get_status(job_id)
    except JobNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except JobTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))


@router.delete("/jobs/{job_id}")
async def remove_job(
    job_id: str,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Remove a job that is still queued."""
    try:
        removed = await orchestrator.remove(job_id)
    except JobNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": removed, "jobId": job_id, "state": orchestrator.get_status(job_id)["state"]}


class CalibrateRequest(BaseModel):
    referenceObject: str = ""
    boundingBoxWidth: float
    boundingBoxHeight: float
    knownDimension: float
    measureAxis: str = "width"
    imageWidth: int
    imageHeight: int


class CalibrateResponse(BaseModel):
    success: bool
    pixelsPerInch: Optional[float] = None
    method: Optional[str] = None
    error: Optional[str] = None


@router.post("/calibrate", response_model=CalibrateResponse)
async def calibrate(request: CalibrateRequest):
    """Derive pixels-per-inch from a reference object of known size."""
    if request.imageWidth <= 0 or request.imageHeight <= 0:
        raise HTTPException(status_code=400, detail="Image width/height must be positive")
    reference = ReferenceMeasurement(
        reference_object=request.referenceObject,
        box_width_percent=request.boundingBoxWidth,
        box_height_percent=request.boundingBoxHeight,
        known_dimension=request.knownDimension,
        measure_axis=request.measureAxis,
    )
    try:
        calibration = calibration_from_reference(reference, request.imageWidth, request.imageHeight)
    except InvalidCalibration as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CalibrateResponse(
        success=True,
        pixelsPerInch=calibration.pixels_per_inch,
        method=calibration.method.value,
    )
