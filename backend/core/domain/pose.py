"""
Pose Domain Models

Data structures for representing human body keypoints detected by the
MoveNet single-pose model.

MoveNet returns 17 keypoints in COCO order:
https://www.tensorflow.org/hub/tutorials/movenet
"""
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping, Optional


class BodyPart(IntEnum):
    """
    MoveNet keypoint indices.

    These map directly to rows of the model's [17, 3] output tensor.
    """
    # Face
    NOSE = 0
    LEFT_EYE = 1
    RIGHT_EYE = 2
    LEFT_EAR = 3
    RIGHT_EAR = 4

    # Upper body
    LEFT_SHOULDER = 5
    RIGHT_SHOULDER = 6
    LEFT_ELBOW = 7
    RIGHT_ELBOW = 8
    LEFT_WRIST = 9
    RIGHT_WRIST = 10

    # Lower body
    LEFT_HIP = 11
    RIGHT_HIP = 12
    LEFT_KNEE = 13
    RIGHT_KNEE = 14
    LEFT_ANKLE = 15
    RIGHT_ANKLE = 16


NUM_KEYPOINTS = len(BodyPart)

TORSO_JOINTS = (
    BodyPart.LEFT_SHOULDER,
    BodyPart.RIGHT_SHOULDER,
    BodyPart.LEFT_HIP,
    BodyPart.RIGHT_HIP,
)


@dataclass(frozen=True)
class Point:
    """
    A 2D coordinate or displacement vector.

    No unit is implied: the caller knows whether this is crop space,
    full-image space, or the difference of two points.
    """
    x: float
    y: float

    def __add__(self, other: "Point") -> "Point":
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Point") -> "Point":
        return Point(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class KeyPoint:
    """
    A single body keypoint for one frame.

    Attributes:
        body_part: Which landmark this is
        coordinate: Pixel position (crop or full-image space)
        score: Model confidence (0.0 to 1.0)
    """
    body_part: BodyPart
    coordinate: Point
    score: float

    def translated(self, dx: float, dy: float) -> "KeyPoint":
        """Return a copy moved by (dx, dy) pixels."""
        return KeyPoint(self.body_part, self.coordinate + Point(dx, dy), self.score)


@dataclass(frozen=True)
class PixelRect:
    """Axis-aligned rectangle in pixel coordinates."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


@dataclass(frozen=True)
class CropRegion:
    """
    Normalized crop rectangle relative to the full image.

    Values are fractions of the image width (left/right) and height
    (top/bottom). The default region may extend past [0, 1] on the short
    image axis, which pads the image to a square.
    """
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def to_pixels(self, image_width: int, image_height: int) -> PixelRect:
        """Scale the normalized rectangle to pixel coordinates."""
        return PixelRect(
            left=self.left * image_width,
            top=self.top * image_height,
            right=self.right * image_width,
            bottom=self.bottom * image_height,
        )


@dataclass(frozen=True)
class TorsoAndBodyDistance:
    """Maximum distances from the torso center, computed fresh each frame."""
    max_torso_x_distance: float
    max_torso_y_distance: float
    max_body_x_distance: float
    max_body_y_distance: float


@dataclass(frozen=True)
class Person:
    """
    A complete pose estimation result for a single video frame.

    Attributes:
        keypoints: 17 keypoints in BodyPart order, full-image space
        score: Mean of the 17 keypoint scores
        joint_to_angle: Calibrated joint angles in degrees, keyed by joint
            name. A missing joint means its keypoints were unavailable.
            Stored as a read-only mapping.
    """
    keypoints: tuple[KeyPoint, ...]
    score: float
    joint_to_angle: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "keypoints", tuple(self.keypoints))
        object.__setattr__(self, "joint_to_angle", MappingProxyType(dict(self.joint_to_angle)))

    def get_keypoint(self, body_part: BodyPart) -> Optional[KeyPoint]:
        """Get a specific keypoint by body part."""
        index = int(body_part)
        if 0 <= index < len(self.keypoints):
            return self.keypoints[index]
        return None

    @property
    def coordinates(self) -> dict[BodyPart, Point]:
        """Keypoint coordinates indexed by body part."""
        return {kp.body_part: kp.coordinate for kp in self.keypoints}
