"""
API Schemas

Pydantic models for request/response validation.
"""

from .pose import (
    MovementEnum,
    KeyPointSchema,
    PersonSchema,
    PoseEstimationRequest,
    PoseEstimationResponse,
    VideoFrameSchema,
    VideoAnalysisResponse,
    CalibrationSchema,
    MovementSchema,
    HealthResponse,
    WebSocketMessageType,
    WebSocketMessage,
    FrameMessage,
    PoseResultMessage,
)

__all__ = [
    "MovementEnum",
    "KeyPointSchema",
    "PersonSchema",
    "PoseEstimationRequest",
    "PoseEstimationResponse",
    "VideoFrameSchema",
    "VideoAnalysisResponse",
    "CalibrationSchema",
    "MovementSchema",
    "HealthResponse",
    "WebSocketMessageType",
    "WebSocketMessage",
    "FrameMessage",
    "PoseResultMessage",
]
