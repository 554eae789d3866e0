"""
REST API Routes

FastAPI routes for pose estimation and joint angle measurement.
Handles HTTP requests for single images and uploaded videos.
"""

import os
import tempfile
import time
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from starlette.concurrency import run_in_threadpool

from .deps import EngineFactory, get_angle_estimator, get_engine_factory
from .schemas import (
    CalibrationSchema,
    HealthResponse,
    MovementEnum,
    MovementSchema,
    PersonSchema,
    PoseEstimationRequest,
    PoseEstimationResponse,
    VideoAnalysisResponse,
    VideoFrameSchema,
)
from core.domain.calibration import Movement
from core.services import InferenceError, JointAngleEstimator, PoseEstimator

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter()

API_VERSION = "1.0.0"

# =============================================================================
# Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Health check endpoint"
)
def health_check(
    engine_factory: EngineFactory = Depends(get_engine_factory),
) -> HealthResponse:
    """
    Check if the API is running and the inference engine can be loaded.
    """
    engine_error = None
    try:
        engine = engine_factory()
        engine.close()
    except (InferenceError, ValueError) as e:
        logger.warning(f"Inference engine not available: {e}")
        engine_error = str(e)

    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        engine_available=engine_error is None,
        engine_error=engine_error,
    )


# =============================================================================
# Calibration
# =============================================================================

@router.get(
    "/calibration",
    response_model=List[CalibrationSchema],
    tags=["Calibration"],
    summary="Joint angle calibration table"
)
def get_calibration(
    angle_estimator: JointAngleEstimator = Depends(get_angle_estimator),
) -> List[CalibrationSchema]:
    """List the cubic calibration model of every movement type."""
    return [
        CalibrationSchema(
            key=key.value,
            intercept=calibration.intercept,
            coefficients=list(calibration.coefficients),
        )
        for key, calibration in angle_estimator.calibrations.items()
    ]


@router.get(
    "/movements",
    response_model=List[MovementSchema],
    tags=["Calibration"],
    summary="Supported movements"
)
def list_movements() -> List[MovementSchema]:
    """List the movements a session can track and the joints they measure."""
    return [
        MovementSchema(
            movement=MovementEnum(movement.value),
            calibration_key=movement.calibration_key.value,
            joints=[joint.value for joint in movement.joints],
        )
        for movement in Movement
    ]


# =============================================================================
# Pose Estimation
# =============================================================================

@router.post(
    "/pose/estimate",
    response_model=PoseEstimationResponse,
    tags=["Pose Estimation"],
    summary="Estimate pose in a single image"
)
def estimate_pose(
    request: PoseEstimationRequest,
    engine_factory: EngineFactory = Depends(get_engine_factory),
    angle_estimator: JointAngleEstimator = Depends(get_angle_estimator),
) -> PoseEstimationResponse:
    """
    Estimate the pose in a base64-encoded image.

    A single image has no previous frame to track from, so the whole image
    (padded to a square) is used. For streams, use the WebSocket endpoint.

    Args:
        request: Image data and optional movement

    Returns:
        17 keypoints with calibrated joint angles, or error if estimation failed
    """
    start_time = time.time()

    try:
        with PoseEstimator(engine_factory(), angle_estimator) as estimator:
            person = estimator.estimate_from_base64(request.image_base64)
            inference_time = estimator.last_inference_time_ns / 1e6
            movement_angles = {}
            if person is not None and request.movement is not None:
                movement_angles = estimator.movement_angles(
                    person, Movement(request.movement.value)
                )
    except (InferenceError, ValueError) as e:
        logger.error(f"Pose estimation failed: {e}")
        return PoseEstimationResponse(
            success=False,
            person=None,
            error=str(e),
            processing_time_ms=(time.time() - start_time) * 1000
        )

    processing_time = (time.time() - start_time) * 1000

    if person is None:
        return PoseEstimationResponse(
            success=False,
            person=None,
            error="Could not decode image",
            processing_time_ms=processing_time
        )

    return PoseEstimationResponse(
        success=True,
        person=PersonSchema.from_domain(person),
        movement_angles=movement_angles,
        inference_time_ms=inference_time,
        processing_time_ms=processing_time
    )


@router.post(
    "/pose/video",
    response_model=VideoAnalysisResponse,
    tags=["Pose Estimation"],
    summary="Track pose through a video"
)
async def analyze_video(
    video: UploadFile = File(..., description="Video file (MP4, MOV)"),
    movement: Optional[MovementEnum] = Form(None, description="Movement to report angles for"),
    frame_skip: int = Form(1, ge=1, le=10, description="Process every Nth frame"),
    max_frames: Optional[int] = Form(None, ge=1, description="Stop after N processed frames"),
    engine_factory: EngineFactory = Depends(get_engine_factory),
    angle_estimator: JointAngleEstimator = Depends(get_angle_estimator),
) -> VideoAnalysisResponse:
    """
    Track the subject through an uploaded video.

    The crop region follows the subject from frame to frame, so later
    frames are estimated on a tighter crop than the first one.
    """
    start_time = time.time()

    # Save uploaded file temporarily
    temp_path = None
    try:
        suffix = os.path.splitext(video.filename or ".mp4")[1]
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as temp_file:
            temp_path = temp_file.name
            temp_file.write(await video.read())

        domain_movement = Movement(movement.value) if movement else None
        frames = await run_in_threadpool(
            _track_video,
            temp_path,
            engine_factory,
            angle_estimator,
            domain_movement,
            frame_skip,
            max_frames,
        )

    except InferenceError as e:
        logger.error(f"Video analysis failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        logger.error(f"Video analysis failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    finally:
        if temp_path and os.path.exists(temp_path):
            os.unlink(temp_path)

    return VideoAnalysisResponse(
        frames_processed=len(frames),
        frames=frames,
        movement=movement,
        processing_time_ms=(time.time() - start_time) * 1000
    )


# =============================================================================
# Helper Functions
# =============================================================================

def _track_video(
    video_path: str,
    engine_factory: EngineFactory,
    angle_estimator: JointAngleEstimator,
    movement: Optional[Movement],
    frame_skip: int,
    max_frames: Optional[int],
) -> List[VideoFrameSchema]:
    """Run the estimator over a video file and convert each frame."""
    frames = []
    with PoseEstimator(engine_factory(), angle_estimator) as estimator:
        for result in estimator.process_video(video_path, max_frames, frame_skip):
            frames.append(VideoFrameSchema(
                frame_number=result.frame_number,
                timestamp_ms=result.timestamp_ms,
                person=PersonSchema.from_domain(result.person),
                movement_angles=(
                    estimator.movement_angles(result.person, movement) if movement else {}
                ),
                inference_time_ms=result.inference_time_ms,
            ))
    return frames
