"""
Pytest configuration and fixtures for PhysioTrack tests.
"""

import base64

import cv2
import numpy as np
import pytest

from core.domain.pose import BodyPart, KeyPoint, Point

# Standing subject, arms slightly out: (normalized y, normalized x)
SKELETON = {
    BodyPart.NOSE: (0.15, 0.50),
    BodyPart.LEFT_EYE: (0.13, 0.52),
    BodyPart.RIGHT_EYE: (0.13, 0.48),
    BodyPart.LEFT_EAR: (0.14, 0.54),
    BodyPart.RIGHT_EAR: (0.14, 0.46),
    BodyPart.LEFT_SHOULDER: (0.30, 0.60),
    BodyPart.RIGHT_SHOULDER: (0.30, 0.40),
    BodyPart.LEFT_ELBOW: (0.45, 0.65),
    BodyPart.RIGHT_ELBOW: (0.45, 0.35),
    BodyPart.LEFT_WRIST: (0.60, 0.70),
    BodyPart.RIGHT_WRIST: (0.60, 0.30),
    BodyPart.LEFT_HIP: (0.60, 0.56),
    BodyPart.RIGHT_HIP: (0.60, 0.44),
    BodyPart.LEFT_KNEE: (0.75, 0.56),
    BodyPart.RIGHT_KNEE: (0.75, 0.44),
    BodyPart.LEFT_ANKLE: (0.90, 0.56),
    BodyPart.RIGHT_ANKLE: (0.90, 0.44),
}


def build_output(score=0.9, overrides=None):
    """Model output tensor [1, 1, 17, 3] for SKELETON with the given scores."""
    overrides = overrides or {}
    output = np.zeros((1, 1, 17, 3), dtype=np.float32)
    for body_part, (norm_y, norm_x) in SKELETON.items():
        output[0, 0, body_part] = (norm_y, norm_x, overrides.get(body_part, score))
    return output


def build_keypoints(image_size, score=0.9, overrides=None):
    """SKELETON as full-image keypoints on a square image."""
    overrides = overrides or {}
    return [
        KeyPoint(
            body_part,
            Point(norm_x * image_size, norm_y * image_size),
            overrides.get(body_part, score),
        )
        for body_part, (norm_y, norm_x) in SKELETON.items()
    ]


class FakeEngine:
    """Inference engine stand-in returning a fixed tensor."""

    def __init__(self, output=None, input_size=192, errors=None):
        self.input_width = input_size
        self.input_height = input_size
        self.output = build_output() if output is None else output
        self.errors = list(errors or [])
        self.inputs = []
        self.closed = False

    def run(self, input_tensor):
        self.inputs.append(input_tensor)
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        return self.output

    def close(self):
        self.closed = True


@pytest.fixture
def fake_engine():
    """Engine producing the reference skeleton at score 0.9."""
    return FakeEngine()


@pytest.fixture
def square_image():
    """Blank 256x256 RGB frame."""
    return np.zeros((256, 256, 3), dtype=np.uint8)


@pytest.fixture
def image_base64():
    """Blank 256x256 PNG, base64 encoded."""
    ok, encoded = cv2.imencode(".png", np.zeros((256, 256, 3), dtype=np.uint8))
    assert ok
    return base64.b64encode(encoded.tobytes()).decode("ascii")
