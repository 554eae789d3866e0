"""
Joint Angle Estimator

Calculates raw joint angles from keypoint vectors and corrects them with the
per-movement polynomial calibration. All angles are in degrees.
"""

import logging
import math
from pathlib import Path
from typing import Mapping, Optional, Union

import numpy as np
from pydantic import BaseModel, Field, TypeAdapter

from ..config import AngleConfig
from ..domain.calibration import (
    Calibration,
    CalibrationKey,
    DEFAULT_CALIBRATIONS,
    JOINT_DEFINITIONS,
    JointDefinition,
    Movement,
)
from ..domain.pose import BodyPart, Point

logger = logging.getLogger(__name__)


class UnknownCalibrationKeyError(KeyError):
    """A joint references a calibration key missing from the table."""


class CalibrationEntry(BaseModel):
    """One entry of an external calibration file."""
    intercept: float
    coefficients: list[float] = Field(..., min_length=4, max_length=4)


_CALIBRATION_FILE_ADAPTER = TypeAdapter(dict[CalibrationKey, CalibrationEntry])


def load_calibration_table(path: Union[str, Path]) -> Mapping[CalibrationKey, Calibration]:
    """
    Load a calibration table from JSON.

    Format:
        {"elbflex": {"intercept": 28.9, "coefficients": [0.0, -0.24, 0.0127, -3.9e-05]}}

    Keys missing from the file keep their built-in values.

    Raises:
        pydantic.ValidationError: Unknown key or malformed entry
    """
    entries = _CALIBRATION_FILE_ADAPTER.validate_json(Path(path).read_bytes())
    table = dict(DEFAULT_CALIBRATIONS)
    for key, entry in entries.items():
        table[key] = Calibration(entry.intercept, tuple(entry.coefficients))
    logger.info(f"Loaded {len(entries)} calibration entries from {path}")
    return table


class JointAngleEstimator:
    """
    Estimates calibrated joint angles for a single frame.

    Usage:
        estimator = JointAngleEstimator()
        angles = estimator.estimate_all(person.coordinates)
        # {"leftElbow": 92.4, "rightElbow": 88.1, ...}
    """

    def __init__(
        self,
        calibrations: Optional[Mapping[CalibrationKey, Calibration]] = None,
        legacy_norm: Optional[bool] = None,
    ):
        """
        Args:
            calibrations: Calibration table (defaults to the built-in constants,
                or AngleConfig.CALIBRATION_FILE when set)
            legacy_norm: Use the legacy |BA| formula
                (defaults to AngleConfig.LEGACY_NORM)
        """
        if calibrations is None:
            if AngleConfig.CALIBRATION_FILE is not None:
                calibrations = load_calibration_table(AngleConfig.CALIBRATION_FILE)
            else:
                calibrations = DEFAULT_CALIBRATIONS
        self.calibrations = calibrations
        self.legacy_norm = AngleConfig.LEGACY_NORM if legacy_norm is None else legacy_norm

    # -------------------------------------------------------------------------
    # Core Angle Calculations
    # -------------------------------------------------------------------------

    @staticmethod
    def vector_angle_degrees(
        ba: Point,
        bc: Point,
        legacy_norm: bool = False,
    ) -> Optional[float]:
        """
        Calculate the angle at vertex B between rays BA and BC.

        Args:
            ba: Vector from the vertex to the first point
            bc: Vector from the vertex to the second point
            legacy_norm: Compute |BA| as sqrt(ba.x*ba.y + ba.y*ba.y), the
                formula the calibration data was collected with.
                The cosine is not clipped in this mode.

        Returns:
            Angle in degrees (0-180), or None if undefined
            (zero-length vector, invalid magnitude or cosine)
        """
        v1 = np.array([ba.x, ba.y], dtype=float)
        v2 = np.array([bc.x, bc.y], dtype=float)

        if legacy_norm:
            radicand = ba.x * ba.y + ba.y * ba.y
            if not radicand > 0:
                return None
            norm_ba = math.sqrt(radicand)
        else:
            norm_ba = float(np.linalg.norm(v1))
        norm_bc = float(np.linalg.norm(v2))

        if norm_ba == 0.0 or norm_bc == 0.0:
            return None

        cos_angle = float(np.dot(v1, v2)) / (norm_ba * norm_bc)

        if legacy_norm:
            if not -1.0 <= cos_angle <= 1.0:
                return None
        else:
            # Clamp to valid range (handles floating point errors)
            cos_angle = float(np.clip(cos_angle, -1.0, 1.0))

        angle = math.degrees(math.acos(cos_angle))
        return angle if math.isfinite(angle) else None

    def calibrate(self, key: Union[CalibrationKey, str], raw_degrees: float) -> float:
        """
        Apply the cubic correction for a calibration key.

        Raises:
            UnknownCalibrationKeyError: Key not in the calibration table
        """
        try:
            calibration = self.calibrations[CalibrationKey(key)]
        except (KeyError, ValueError) as exc:
            raise UnknownCalibrationKeyError(key) from exc
        return calibration.apply(raw_degrees)

    # -------------------------------------------------------------------------
    # Frame Analysis
    # -------------------------------------------------------------------------

    def estimate_all(self, keypoints_by_body_part: Mapping[BodyPart, Point]) -> dict[str, float]:
        """
        Calculate every active joint angle for a frame.

        Joints whose keypoints are missing (or whose raw angle is undefined)
        are left out of the result rather than set to 0.
        """
        angles: dict[str, float] = {}
        for definition in JOINT_DEFINITIONS:
            angle = self._estimate_joint(
                definition, keypoints_by_body_part, definition.calibration_key
            )
            if angle is not None:
                angles[definition.joint.value] = angle
        return angles

    def estimate_movement(
        self,
        keypoints_by_body_part: Mapping[BodyPart, Point],
        movement: Movement,
    ) -> dict[str, float]:
        """
        Calculate the joints a movement exercises, calibrated for that movement.

        Example:
            Shoulder abduction reports both shoulders through the "shoabd"
            model instead of the default flexion model.
        """
        angles: dict[str, float] = {}
        for definition in JOINT_DEFINITIONS:
            if definition.joint not in movement.joints:
                continue
            angle = self._estimate_joint(
                definition, keypoints_by_body_part, movement.calibration_key
            )
            if angle is not None:
                angles[definition.joint.value] = angle
        return angles

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def _estimate_joint(
        self,
        definition: JointDefinition,
        points: Mapping[BodyPart, Point],
        key: CalibrationKey,
    ) -> Optional[float]:
        vertex = points.get(definition.vertex)
        first = points.get(definition.first)
        second = points.get(definition.second)
        if vertex is None or first is None or second is None:
            return None

        raw = self.vector_angle_degrees(first - vertex, second - vertex, self.legacy_norm)
        if raw is None:
            logger.debug(f"Undefined raw angle for {definition.joint.value}, skipping")
            return None

        return self.calibrate(key, raw)
