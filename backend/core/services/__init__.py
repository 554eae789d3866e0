"""
Services Layer

Pose estimation services: crop tracking, keypoint decoding, joint angles,
and the per-frame pipeline that ties them to the inference engine.
"""

from .angle_estimator import JointAngleEstimator, UnknownCalibrationKeyError
from .crop_region import CropRegionTracker, TrackerState
from .inference import InferenceEngine, InferenceError, ModelType, create_engine
from .keypoint_decoder import KeypointDecoder
from .pose_pipeline import FrameResult, PoseEstimationPipeline, PoseEstimator

__all__ = [
    "JointAngleEstimator",
    "UnknownCalibrationKeyError",
    "CropRegionTracker",
    "TrackerState",
    "InferenceEngine",
    "InferenceError",
    "ModelType",
    "create_engine",
    "KeypointDecoder",
    "FrameResult",
    "PoseEstimationPipeline",
    "PoseEstimator",
]
