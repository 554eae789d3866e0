"""
Crop Region Tracker

Keeps inference focused on the subject by deriving each frame's crop region
from the previous frame's keypoints.

The region is a square (in pixels) centered on the hip midpoint and sized to
enclose the torso and all confident keypoints. When the torso cannot be
located, the tracker falls back to the full image padded to a square.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..config import TrackingConfig
from ..domain.pose import (
    BodyPart,
    CropRegion,
    KeyPoint,
    TorsoAndBodyDistance,
    TORSO_JOINTS,
)

logger = logging.getLogger(__name__)


class CropRegionTracker:
    """
    Computes crop regions from keypoints.

    All methods are static - the tracked region itself lives in
    TrackerState, which callers thread through each frame.
    """

    MIN_CROP_KEYPOINT_SCORE = TrackingConfig.MIN_CROP_KEYPOINT_SCORE
    TORSO_EXPANSION_RATIO = TrackingConfig.TORSO_EXPANSION_RATIO
    BODY_EXPANSION_RATIO = TrackingConfig.BODY_EXPANSION_RATIO

    @staticmethod
    def default_region(image_width: int, image_height: int) -> CropRegion:
        """
        Smallest centered square that contains the whole image.

        Used for the first frame and whenever tracking is not reliable.
        For a landscape image the square spans the full width and extends
        above and below the image by the same amount (portrait: mirrored).
        """
        if image_width > image_height:
            width = 1.0
            height = image_width / image_height
            x_min = 0.0
            y_min = (image_height / 2 - image_width / 2) / image_height
        else:
            height = 1.0
            width = image_height / image_width
            y_min = 0.0
            x_min = (image_width / 2 - image_height / 2) / image_width

        return CropRegion(
            left=x_min,
            top=y_min,
            right=x_min + width,
            bottom=y_min + height,
        )

    @classmethod
    def torso_visible(cls, keypoints: Sequence[KeyPoint]) -> bool:
        """
        Check whether one hip and one shoulder are confidently detected.

        A reliable crop region needs both; a score exactly at the
        threshold does not count.
        """
        threshold = cls.MIN_CROP_KEYPOINT_SCORE
        hip_visible = (
            keypoints[BodyPart.LEFT_HIP].score > threshold
            or keypoints[BodyPart.RIGHT_HIP].score > threshold
        )
        shoulder_visible = (
            keypoints[BodyPart.LEFT_SHOULDER].score > threshold
            or keypoints[BodyPart.RIGHT_SHOULDER].score > threshold
        )
        return hip_visible and shoulder_visible

    @classmethod
    def torso_and_body_distances(
        cls,
        keypoints: Sequence[KeyPoint],
        center_x: float,
        center_y: float,
    ) -> TorsoAndBodyDistance:
        """
        Maximum x/y distances from the center to the keypoints.

        Torso distances use the 4 torso joints regardless of score; body
        distances use every keypoint scored above the crop threshold.
        """
        max_torso_x = 0.0
        max_torso_y = 0.0
        for joint in TORSO_JOINTS:
            coordinate = keypoints[joint].coordinate
            max_torso_x = max(max_torso_x, abs(center_x - coordinate.x))
            max_torso_y = max(max_torso_y, abs(center_y - coordinate.y))

        max_body_x = 0.0
        max_body_y = 0.0
        for keypoint in keypoints:
            if keypoint.score <= cls.MIN_CROP_KEYPOINT_SCORE:
                continue
            max_body_x = max(max_body_x, abs(center_x - keypoint.coordinate.x))
            max_body_y = max(max_body_y, abs(center_y - keypoint.coordinate.y))

        return TorsoAndBodyDistance(
            max_torso_x_distance=max_torso_x,
            max_torso_y_distance=max_torso_y,
            max_body_x_distance=max_body_x,
            max_body_y_distance=max_body_y,
        )

    @classmethod
    def next_region(
        cls,
        keypoints: Sequence[KeyPoint],
        image_width: int,
        image_height: int,
    ) -> CropRegion:
        """
        Determine the region to crop for the next frame.

        Args:
            keypoints: This frame's 17 keypoints in full-image pixels
            image_width: Full image width in pixels
            image_height: Full image height in pixels

        Returns:
            Square region centered on the hip midpoint, or the default
            region when the torso is not visible or tracking diverged.
        """
        if not cls.torso_visible(keypoints):
            logger.debug("Torso not visible, using default crop region")
            return cls.default_region(image_width, image_height)

        left_hip = keypoints[BodyPart.LEFT_HIP].coordinate
        right_hip = keypoints[BodyPart.RIGHT_HIP].coordinate
        center_x = (left_hip.x + right_hip.x) / 2
        center_y = (left_hip.y + right_hip.y) / 2

        distances = cls.torso_and_body_distances(keypoints, center_x, center_y)

        crop_length_half = max(
            distances.max_torso_x_distance * cls.TORSO_EXPANSION_RATIO,
            distances.max_torso_y_distance * cls.TORSO_EXPANSION_RATIO,
            distances.max_body_x_distance * cls.BODY_EXPANSION_RATIO,
            distances.max_body_y_distance * cls.BODY_EXPANSION_RATIO,
        )
        # Never extend past the nearest image edge
        crop_length_half = min(
            crop_length_half,
            center_x,
            image_width - center_x,
            center_y,
            image_height - center_y,
        )

        if crop_length_half <= 0 or crop_length_half > max(image_width, image_height) / 2:
            logger.debug(
                "Crop half-size %.1f out of range, using default crop region",
                crop_length_half,
            )
            return cls.default_region(image_width, image_height)

        crop_length = crop_length_half * 2
        left = center_x - crop_length_half
        top = center_y - crop_length_half
        return CropRegion(
            left=left / image_width,
            top=top / image_height,
            right=(left + crop_length) / image_width,
            bottom=(top + crop_length) / image_height,
        )


@dataclass(frozen=True)
class TrackerState:
    """
    Crop region carried from one frame to the next.

    A state belongs to exactly one frame stream. Frames of that stream must
    be processed one at a time; each call returns the state for the next.
    """
    crop_region: Optional[CropRegion] = None

    def region_for(self, image_width: int, image_height: int) -> CropRegion:
        """The tracked region, or the default one if nothing is tracked yet."""
        if self.crop_region is None:
            return CropRegionTracker.default_region(image_width, image_height)
        return self.crop_region

    def reset(self) -> "TrackerState":
        """Forget the tracked region."""
        return TrackerState()
