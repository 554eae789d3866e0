"""
Pose API Schemas

Pydantic models for pose-related API requests and responses.
These define the JSON structure for communication with frontend.
"""

from pydantic import BaseModel, Field
from typing import Dict, Optional, List
from enum import Enum

from core.domain.pose import Person


class MovementEnum(str, Enum):
    """Physiotherapy movements for API."""
    ELBOW_FLEXION = "elbow_flexion"
    SHOULDER_ABDUCTION = "shoulder_abduction"
    SHOULDER_EXTENSION = "shoulder_extension"
    SHOULDER_FLEXION = "shoulder_flexion"


class KeyPointSchema(BaseModel):
    """
    Single body keypoint in API response.

    Coordinates are pixels in the submitted image.
    """
    body_part: str = Field(..., description="Body part name (e.g., 'LEFT_SHOULDER')")
    x: float = Field(..., description="Horizontal pixel position")
    y: float = Field(..., description="Vertical pixel position")
    score: float = Field(..., description="Detection confidence (0-1)")

    class Config:
        json_schema_extra = {
            "example": {
                "body_part": "LEFT_SHOULDER",
                "x": 312.4,
                "y": 188.9,
                "score": 0.87
            }
        }


class PersonSchema(BaseModel):
    """
    Pose estimation result for one frame.

    Contains all 17 keypoints, the mean score and calibrated joint angles.
    Joints that could not be measured are absent from joint_angles.
    """
    keypoints: List[KeyPointSchema] = Field(..., description="17 body keypoints")
    score: float = Field(..., description="Mean keypoint confidence")
    joint_angles: Dict[str, float] = Field(
        default_factory=dict,
        description="Calibrated joint angles in degrees (e.g., 'leftElbow')"
    )

    @classmethod
    def from_domain(cls, person: Person) -> "PersonSchema":
        """Convert a domain Person to its API representation."""
        return cls(
            keypoints=[
                KeyPointSchema(
                    body_part=kp.body_part.name,
                    x=kp.coordinate.x,
                    y=kp.coordinate.y,
                    score=kp.score,
                )
                for kp in person.keypoints
            ],
            score=person.score,
            joint_angles=dict(person.joint_to_angle),
        )


class PoseEstimationRequest(BaseModel):
    """
    Request to estimate the pose in a base64-encoded image.

    Used for single-frame estimation via REST API.
    """
    image_base64: str = Field(..., description="Base64 encoded JPEG/PNG image")
    movement: Optional[MovementEnum] = Field(None, description="Movement to report angles for")

    class Config:
        json_schema_extra = {
            "example": {
                "image_base64": "/9j/4AAQSkZJRg...",
                "movement": "elbow_flexion"
            }
        }


class PoseEstimationResponse(BaseModel):
    """
    Response from pose estimation.
    """
    success: bool = Field(..., description="Whether estimation succeeded")
    person: Optional[PersonSchema] = Field(None, description="Estimated pose")
    movement_angles: Dict[str, float] = Field(
        default_factory=dict,
        description="Angles calibrated for the requested movement"
    )
    error: Optional[str] = Field(None, description="Error message if failed")
    inference_time_ms: Optional[float] = Field(None, description="Model inference time")
    processing_time_ms: float = Field(..., description="Time taken to process in milliseconds")


class VideoFrameSchema(BaseModel):
    """Pose of one processed video frame."""
    frame_number: int = Field(..., ge=0)
    timestamp_ms: int = Field(..., ge=0)
    person: PersonSchema
    movement_angles: Dict[str, float] = Field(default_factory=dict)
    inference_time_ms: float


class VideoAnalysisResponse(BaseModel):
    """Poses tracked through an uploaded video."""
    frames_processed: int = Field(..., ge=0)
    frames: List[VideoFrameSchema] = Field(default_factory=list)
    movement: Optional[MovementEnum] = None
    processing_time_ms: float


class CalibrationSchema(BaseModel):
    """Cubic calibration for one movement model."""
    key: str = Field(..., description="Calibration key (e.g., 'elbflex')")
    intercept: float
    coefficients: List[float] = Field(..., description="Coefficients for degrees 0..3")


class MovementSchema(BaseModel):
    """A supported movement and the joints it measures."""
    movement: MovementEnum
    calibration_key: str
    joints: List[str]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    engine_available: bool
    engine_error: Optional[str] = None


# =============================================================================
# WebSocket Message Schemas
# =============================================================================

class WebSocketMessageType(str, Enum):
    """Types of WebSocket messages."""
    # Client -> Server
    FRAME = "frame"                    # Send video frame for estimation
    RESET = "reset"                    # Forget the tracked crop region
    END_SESSION = "end_session"        # End session

    # Server -> Client
    POSE_RESULT = "pose_result"        # Pose estimation result
    ERROR = "error"                    # Error message
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"


class WebSocketMessage(BaseModel):
    """
    Base WebSocket message structure.

    All WebSocket communication uses this format.
    """
    type: WebSocketMessageType = Field(..., description="Message type")
    data: dict = Field(default_factory=dict, description="Message payload")
    timestamp: int = Field(..., description="Unix timestamp in milliseconds")

    class Config:
        json_schema_extra = {
            "example": {
                "type": "frame",
                "data": {"image_base64": "...", "frame_number": 0},
                "timestamp": 1704067200000
            }
        }


class FrameMessage(BaseModel):
    """
    WebSocket payload containing a video frame.

    Sent from frontend to backend for real-time pose estimation.
    """
    image_base64: str = Field(..., min_length=1, description="Base64 encoded frame")
    frame_number: int = Field(0, description="Frame sequence number")
    movement: Optional[MovementEnum] = Field(None, description="Movement to report angles for")


class PoseResultMessage(BaseModel):
    """
    WebSocket payload containing a pose estimation result.

    Sent from backend to frontend after processing a frame.
    """
    frame_number: int = Field(..., description="Corresponding frame number")
    person: PersonSchema = Field(..., description="Estimated pose")
    movement_angles: Dict[str, float] = Field(default_factory=dict)
    inference_time_ms: float = Field(..., description="Model inference time")
    processing_time_ms: float = Field(..., description="Processing time")
