"""
Pose Estimation Pipeline

Runs one frame through crop -> inference -> decode -> joint angles -> next
crop region, and wraps that in a stateful estimator for video streams.

Tracker state is passed in and returned explicitly, so a failed frame never
disturbs the region the next frame will use.
"""

import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Generator, Optional

import cv2
import numpy as np

from ..domain.calibration import Movement
from ..domain.pose import Person
from .angle_estimator import JointAngleEstimator
from .crop_region import CropRegionTracker, TrackerState
from .inference import InferenceEngine, InferenceError, create_engine, prepare_input
from .keypoint_decoder import KeypointDecoder

logger = logging.getLogger(__name__)


class PoseEstimationPipeline:
    """
    Single-frame pose estimation.

    Not reentrant: callers must finish one process_frame() call on a stream
    before starting the next with the returned state.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        angle_estimator: Optional[JointAngleEstimator] = None,
    ):
        self.engine = engine
        self.angle_estimator = angle_estimator or JointAngleEstimator()
        self.last_inference_time_ns: int = -1

    def process_frame(
        self,
        image: np.ndarray,
        state: TrackerState,
    ) -> tuple[Person, TrackerState]:
        """
        Estimate the pose in one RGB frame.

        Args:
            image: RGB image (H, W, 3); grayscale and RGBA are converted
            state: Tracker state returned by the previous frame

        Returns:
            (person, state for the next frame)

        Raises:
            ValueError: Empty image or unsupported channel count
            InferenceError: Engine failed or returned a malformed tensor.
                The input state remains valid for retrying the next frame.
        """
        if image is None or image.size == 0:
            raise ValueError("Empty image")

        image_height, image_width = image.shape[:2]
        region = state.region_for(image_width, image_height)
        input_width, input_height = self.engine.input_width, self.engine.input_height

        input_tensor, crop_rect, width_ratio, height_ratio = prepare_input(
            image, region, input_width, input_height
        )

        start_ns = time.perf_counter_ns()
        try:
            output = self.engine.run(input_tensor)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e
        finally:
            self.last_inference_time_ns = time.perf_counter_ns() - start_ns

        try:
            crop_keypoints = KeypointDecoder.decode(
                output, width_ratio, height_ratio, input_width, input_height
            )
        except ValueError as e:
            raise InferenceError(f"Malformed model output: {e}") from e

        keypoints = KeypointDecoder.map_to_image_space(crop_keypoints, crop_rect)
        joint_to_angle = self.angle_estimator.estimate_all(
            {kp.body_part: kp.coordinate for kp in keypoints}
        )
        next_region = CropRegionTracker.next_region(keypoints, image_width, image_height)

        person = Person(
            keypoints=tuple(keypoints),
            score=KeypointDecoder.mean_score(keypoints),
            joint_to_angle=joint_to_angle,
        )

        logger.debug(
            f"Frame {image_width}x{image_height}: score={person.score:.3f} "
            f"inference={self.last_inference_time_ns / 1e6:.1f}ms "
            f"joints={sorted(joint_to_angle)}"
        )

        return person, TrackerState(next_region)


@dataclass(frozen=True)
class FrameResult:
    """Pose of one video frame."""
    frame_number: int
    timestamp_ms: int
    person: Person
    inference_time_ms: float


class PoseEstimator:
    """
    Tracks one person through a stream of frames.

    Holds the tracker state between frames, so one instance must serve
    exactly one stream (a WebSocket connection, a video file).

    Usage:
        estimator = PoseEstimator()

        # Single image
        person = estimator.estimate(image)

        # Video file
        for result in estimator.process_video("exercise.mp4"):
            print(result.person.joint_to_angle)

        # Cleanup
        estimator.close()

    Or use as context manager:
        with PoseEstimator() as estimator:
            person = estimator.estimate(image)
    """

    def __init__(
        self,
        engine: Optional[InferenceEngine] = None,
        angle_estimator: Optional[JointAngleEstimator] = None,
    ):
        """
        Args:
            engine: Inference engine (defaults to create_engine())
            angle_estimator: Joint angle estimator (defaults to configured one)
        """
        self.engine = engine if engine is not None else create_engine()
        self.pipeline = PoseEstimationPipeline(self.engine, angle_estimator)
        self.state = TrackerState()

    def __enter__(self) -> "PoseEstimator":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any]
    ) -> None:
        """Context manager exit - cleanup resources."""
        self.close()

    def close(self) -> None:
        """Release the engine and forget the tracked region."""
        self.engine.close()
        self.state = self.state.reset()

    def reset(self) -> None:
        """Forget the tracked region (e.g. when the subject changes)."""
        self.state = self.state.reset()

    @property
    def last_inference_time_ns(self) -> int:
        """Wall-clock duration of the last engine call, -1 before the first."""
        return self.pipeline.last_inference_time_ns

    # -------------------------------------------------------------------------
    # Core Estimation Methods
    # -------------------------------------------------------------------------

    def estimate(self, image: np.ndarray, bgr: bool = True) -> Person:
        """
        Estimate the pose in the next frame of the stream.

        Args:
            image: BGR or BGRA image (OpenCV format), or RGB/RGBA with bgr=False

        Raises:
            InferenceError: Frame failed; tracker state is unchanged
        """
        if bgr and image.ndim == 3:
            if image.shape[2] == 3:
                image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
            elif image.shape[2] == 4:
                image = cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)

        person, self.state = self.pipeline.process_frame(image, self.state)
        return person

    def estimate_from_base64(self, base64_image: str) -> Optional[Person]:
        """
        Estimate the pose in a base64-encoded JPEG/PNG frame.

        Returns:
            Person, or None if the image could not be decoded
        """
        image_bytes = base64.b64decode(base64_image)
        if not image_bytes:
            return None

        image = cv2.imdecode(np.frombuffer(image_bytes, np.uint8), cv2.IMREAD_COLOR)

        if image is None:
            return None

        return self.estimate(image)

    def movement_angles(self, person: Person, movement: Movement) -> dict[str, float]:
        """Joint angles of a person calibrated for a specific movement."""
        return self.pipeline.angle_estimator.estimate_movement(person.coordinates, movement)

    def process_video(
        self,
        video_path: str,
        max_frames: Optional[int] = None,
        frame_skip: int = 1,
    ) -> Generator[FrameResult, None, None]:
        """
        Process a video file and yield one result per processed frame.

        Tracking starts fresh for each video. A frame whose inference fails
        is logged and skipped; the next frame reuses the same crop region.

        Args:
            video_path: Path to video file
            max_frames: Maximum frames to process (None = all)
            frame_skip: Process every Nth frame (1 = all, 2 = every other, etc.)
        """
        cap = cv2.VideoCapture(video_path)

        if not cap.isOpened():
            raise ValueError(f"Could not open video: {video_path}")

        self.reset()
        fps = cap.get(cv2.CAP_PROP_FPS)
        frame_count = 0
        processed_count = 0

        try:
            while max_frames is None or processed_count < max_frames:
                ret, frame = cap.read()

                if not ret:
                    break

                if frame_count % frame_skip != 0:
                    frame_count += 1
                    continue

                timestamp_ms = int((frame_count / fps) * 1000) if fps > 0 else 0

                try:
                    person = self.estimate(frame)
                except InferenceError as e:
                    logger.warning(f"Skipping frame {frame_count}: {e}")
                else:
                    yield FrameResult(
                        frame_number=frame_count,
                        timestamp_ms=timestamp_ms,
                        person=person,
                        inference_time_ms=self.last_inference_time_ns / 1e6,
                    )
                    processed_count += 1

                frame_count += 1

        finally:
            cap.release()
