"""
Domain Models

Pure data structures for pose estimation and joint angle calibration.
No external dependencies - just Python dataclasses and enums.
"""

from .pose import BodyPart, CropRegion, KeyPoint, Person, PixelRect, Point, TorsoAndBodyDistance
from .calibration import Calibration, CalibrationKey, Joint, JointDefinition, Movement

__all__ = [
    "BodyPart",
    "CropRegion",
    "KeyPoint",
    "Person",
    "PixelRect",
    "Point",
    "TorsoAndBodyDistance",
    "Calibration",
    "CalibrationKey",
    "Joint",
    "JointDefinition",
    "Movement",
]
