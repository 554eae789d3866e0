"""
Inference Engine

The pose model is an external collaborator: anything that accepts a
fixed-size RGB tensor and returns a [17, 3] keypoint tensor can drive the
pipeline. This module defines that contract, a TensorFlow Lite adapter for
the MoveNet models, and the crop/resize step that prepares its input.

Note: tflite-runtime is an optional dependency (`pip install .[tflite]`), so
it is imported only when a TFLiteEngine is created.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol, Union

import cv2
import numpy as np

from ..config import ModelConfig
from ..domain.pose import CropRegion, PixelRect

logger = logging.getLogger(__name__)


class InferenceError(RuntimeError):
    """The inference engine could not produce keypoints for a frame."""


class ModelType(str, Enum):
    """MoveNet single-pose variants."""
    LIGHTNING = "lightning"   # 192x192, faster
    THUNDER = "thunder"       # 256x256, more accurate

    @property
    def filename(self) -> str:
        return f"movenet_{self.value}.tflite"


class InferenceEngine(Protocol):
    """
    Pose model contract.

    run() receives a [1, input_height, input_width, 3] RGB tensor and
    returns keypoints as (y, x, score) rows in BodyPart order, in any shape
    that flattens to [17, 3].
    """
    input_width: int
    input_height: int

    def run(self, input_tensor: np.ndarray) -> np.ndarray: ...

    def close(self) -> None: ...


class TFLiteEngine:
    """
    MoveNet running on the TensorFlow Lite interpreter (CPU).

    Usage:
        engine = TFLiteEngine("models/movenet_lightning.tflite")
        output = engine.run(input_tensor)  # shape [1, 1, 17, 3]
        engine.close()
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        num_threads: int = ModelConfig.NUM_THREADS,
    ):
        try:
            from tflite_runtime.interpreter import Interpreter
        except ImportError as e:
            raise InferenceError(
                "tflite-runtime is not installed; install the 'tflite' extra"
            ) from e

        self.model_path = Path(model_path)
        self._interpreter: Any = Interpreter(
            model_path=str(self.model_path),
            num_threads=num_threads,
        )
        self._interpreter.allocate_tensors()
        self._input_details = self._interpreter.get_input_details()[0]
        self._output_details = self._interpreter.get_output_details()[0]

        # Input shape is [1, height, width, 3]
        _, height, width, _ = self._input_details["shape"]
        self.input_width = int(width)
        self.input_height = int(height)

        logger.info(
            f"Loaded {self.model_path.name} "
            f"({self.input_width}x{self.input_height}, {num_threads} threads)"
        )

    def run(self, input_tensor: np.ndarray) -> np.ndarray:
        if self._interpreter is None:
            raise InferenceError("Engine is closed")
        tensor = input_tensor.astype(self._input_details["dtype"], copy=False)
        self._interpreter.set_tensor(self._input_details["index"], tensor)
        self._interpreter.invoke()
        return self._interpreter.get_tensor(self._output_details["index"]).copy()

    def close(self) -> None:
        """Release the interpreter."""
        self._interpreter = None


def create_engine(
    model_type: Union[ModelType, str, None] = None,
    model_path: Union[str, Path, None] = None,
) -> InferenceEngine:
    """
    Build the configured inference engine.

    Args:
        model_type: "lightning" or "thunder" (defaults to ModelConfig.MODEL_TYPE)
        model_path: Explicit model file (defaults to ModelConfig.MODEL_PATH,
            then MODEL_DIR / movenet_<type>.tflite)

    Raises:
        ValueError: Unknown model type
        InferenceError: Model file missing or runtime unavailable
    """
    model_type = ModelType(model_type or ModelConfig.MODEL_TYPE)
    path = Path(model_path or ModelConfig.MODEL_PATH or ModelConfig.MODEL_DIR / model_type.filename)
    if not path.is_file():
        raise InferenceError(f"Model file not found: {path}")
    return TFLiteEngine(path)


# =============================================================================
# Input preparation
# =============================================================================

def crop_to_region(image: np.ndarray, region: CropRegion) -> tuple[np.ndarray, PixelRect]:
    """
    Cut the region out of the image.

    Parts of the region outside the image are filled with black, so the
    padded default region yields a square crop.

    Returns:
        (crop, pixel rectangle of the region)
    """
    image_height, image_width = image.shape[:2]
    rect = region.to_pixels(image_width, image_height)

    crop_width = max(1, int(rect.width))
    crop_height = max(1, int(rect.height))
    x0 = int(round(rect.left))
    y0 = int(round(rect.top))

    crop = np.zeros((crop_height, crop_width) + image.shape[2:], dtype=image.dtype)

    src_x1, src_x2 = max(x0, 0), min(x0 + crop_width, image_width)
    src_y1, src_y2 = max(y0, 0), min(y0 + crop_height, image_height)
    if src_x2 > src_x1 and src_y2 > src_y1:
        crop[src_y1 - y0:src_y2 - y0, src_x1 - x0:src_x2 - x0] = image[src_y1:src_y2, src_x1:src_x2]

    return crop, rect


def resize_with_crop_or_pad(image: np.ndarray, size: int) -> np.ndarray:
    """Center-crop or zero-pad an image to size x size."""
    height, width = image.shape[:2]
    out = np.zeros((size, size) + image.shape[2:], dtype=image.dtype)

    copy_h, copy_w = min(height, size), min(width, size)
    src_y, src_x = (height - copy_h) // 2, (width - copy_w) // 2
    dst_y, dst_x = (size - copy_h) // 2, (size - copy_w) // 2
    out[dst_y:dst_y + copy_h, dst_x:dst_x + copy_w] = image[src_y:src_y + copy_h, src_x:src_x + copy_w]
    return out


def prepare_input(
    image: np.ndarray,
    region: CropRegion,
    input_width: int,
    input_height: int,
) -> tuple[np.ndarray, PixelRect, float, float]:
    """
    Crop an RGB frame to the region and resize it for the model.

    Returns:
        (input tensor [1, H, W, 3] uint8, crop pixel rectangle,
         width ratio, height ratio) where the ratios are crop size / input size
    """
    channels = 1 if image.ndim == 2 else image.shape[2]
    if channels == 1:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    elif channels == 4:
        image = cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    elif channels != 3:
        raise ValueError(f"Unsupported image shape: {image.shape}")

    crop, rect = crop_to_region(image, region)
    crop_height, crop_width = crop.shape[:2]

    square = resize_with_crop_or_pad(crop, min(crop_width, crop_height))
    resized = cv2.resize(square, (input_width, input_height), interpolation=cv2.INTER_LINEAR)
    tensor = np.expand_dims(resized.astype(np.uint8, copy=False), axis=0)

    return tensor, rect, crop_width / input_width, crop_height / input_height
