"""
Keypoint Decoder

Turns the MoveNet output tensor into keypoints in pixel coordinates.

Output tensor layout: [1, 1, 17, 3], one (y, x, score) row per body part,
with y and x normalized to the model input.
"""

from typing import Sequence

import numpy as np

from ..domain.pose import BodyPart, KeyPoint, NUM_KEYPOINTS, PixelRect, Point


class KeypointDecoder:
    """
    Decodes raw model output.

    All methods are static - no state needed.
    """

    @staticmethod
    def decode(
        raw_tensor: np.ndarray,
        width_ratio: float,
        height_ratio: float,
        input_width: int,
        input_height: int,
    ) -> list[KeyPoint]:
        """
        Decode the model output into crop-space keypoints.

        Args:
            raw_tensor: Model output, any shape that flattens to [17, 3]
            width_ratio: Crop width in pixels / model input width
            height_ratio: Crop height in pixels / model input height
            input_width: Model input width
            input_height: Model input height

        Returns:
            17 keypoints in BodyPart order, in crop pixel coordinates

        Raises:
            ValueError: If the tensor does not hold 17 (y, x, score) rows
        """
        output = np.asarray(raw_tensor, dtype=np.float32)
        if output.size != NUM_KEYPOINTS * 3:
            raise ValueError(
                f"Expected {NUM_KEYPOINTS}x3 keypoint tensor, got shape {output.shape}"
            )
        output = output.reshape(NUM_KEYPOINTS, 3)

        keypoints = []
        for body_part in BodyPart:
            norm_y, norm_x, score = output[body_part]
            x = float(norm_x) * input_width * width_ratio
            y = float(norm_y) * input_height * height_ratio
            keypoints.append(KeyPoint(body_part, Point(x, y), float(score)))

        return keypoints

    @staticmethod
    def map_to_image_space(
        keypoints: Sequence[KeyPoint],
        crop_rect: PixelRect,
    ) -> list[KeyPoint]:
        """
        Translate crop-space keypoints into full-image coordinates.

        The crop is axis-aligned and already scaled to crop pixels, so this
        is a pure translation by the crop's top-left corner.
        """
        return [kp.translated(crop_rect.left, crop_rect.top) for kp in keypoints]

    @staticmethod
    def mean_score(keypoints: Sequence[KeyPoint]) -> float:
        """Overall pose confidence (average keypoint score)."""
        if not keypoints:
            return 0.0
        return sum(kp.score for kp in keypoints) / len(keypoints)
