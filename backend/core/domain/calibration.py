"""
Calibration Domain Models

Polynomial regression constants that map a raw geometric joint angle to a
clinical goniometer-style measurement, plus the joint and movement
definitions that use them.

The coefficients come from a degree-3 polynomial fit:
    y = b0 + b1*d + b2*d^2 + b3*d^3
where d is the raw angle in degrees.
"""
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .pose import BodyPart


class CalibrationKey(str, Enum):
    """Calibration model identifiers (one regression per movement type)."""
    SHOULDER_ABDUCTION = "shoabd"
    SHOULDER_FLEXION = "shoflex"
    SHOULDER_EXTENSION = "shoext"
    ELBOW_FLEXION = "elbflex"


@dataclass(frozen=True)
class Calibration:
    """
    Cubic correction for one calibration key.

    Attributes:
        intercept: Constant term
        coefficients: Terms for degrees 0..3. The degree-0 entry is kept for
            layout compatibility with the regression output and is always
            0.0; the intercept carries the constant.
    """
    intercept: float
    coefficients: tuple[float, float, float, float]

    def apply(self, degrees: float) -> float:
        """Evaluate the polynomial at the raw angle."""
        _, c1, c2, c3 = self.coefficients
        return (
            self.intercept
            + c1 * degrees
            + c2 * degrees * degrees
            + c3 * degrees * degrees * degrees
        )


DEFAULT_CALIBRATIONS: Mapping[CalibrationKey, Calibration] = MappingProxyType({
    CalibrationKey.SHOULDER_ABDUCTION: Calibration(
        intercept=11.682313403366742,
        coefficients=(0.0, 5.08856581e-01, 7.38623277e-03, -4.88007171e-05),
    ),
    CalibrationKey.SHOULDER_FLEXION: Calibration(
        intercept=22.76828402868039,
        coefficients=(0.0, 1.22546415e-01, 8.12350362e-03, -3.15136962e-05),
    ),
    CalibrationKey.SHOULDER_EXTENSION: Calibration(
        intercept=21.473304496313325,
        coefficients=(0.0, 3.57593199e-01, 1.75362702e-02, -1.70752374e-04),
    ),
    CalibrationKey.ELBOW_FLEXION: Calibration(
        intercept=28.905730477585266,
        coefficients=(0.0, -2.42472583e-01, 1.27017453e-02, -3.94075183e-05),
    ),
})


class Joint(str, Enum):
    """Joints reported in a Person's angle table. Values are the table keys."""
    LEFT_ELBOW = "leftElbow"
    LEFT_SHOULDER = "leftShoulder"
    RIGHT_ELBOW = "rightElbow"
    RIGHT_SHOULDER = "rightShoulder"


@dataclass(frozen=True)
class JointDefinition:
    """
    Angle at `vertex` between rays vertex->first and vertex->second.

    Example:
        Elbow flexion: vertex=ELBOW, first=SHOULDER, second=WRIST
    """
    joint: Joint
    vertex: BodyPart
    first: BodyPart
    second: BodyPart
    calibration_key: CalibrationKey


JOINT_DEFINITIONS: tuple[JointDefinition, ...] = (
    JointDefinition(
        Joint.LEFT_ELBOW,
        vertex=BodyPart.LEFT_ELBOW,
        first=BodyPart.LEFT_SHOULDER,
        second=BodyPart.LEFT_WRIST,
        calibration_key=CalibrationKey.ELBOW_FLEXION,
    ),
    JointDefinition(
        Joint.LEFT_SHOULDER,
        vertex=BodyPart.LEFT_SHOULDER,
        first=BodyPart.LEFT_ELBOW,
        second=BodyPart.LEFT_HIP,
        calibration_key=CalibrationKey.SHOULDER_FLEXION,
    ),
    JointDefinition(
        Joint.RIGHT_ELBOW,
        vertex=BodyPart.RIGHT_ELBOW,
        first=BodyPart.RIGHT_SHOULDER,
        second=BodyPart.RIGHT_WRIST,
        calibration_key=CalibrationKey.ELBOW_FLEXION,
    ),
    JointDefinition(
        Joint.RIGHT_SHOULDER,
        vertex=BodyPart.RIGHT_SHOULDER,
        first=BodyPart.RIGHT_ELBOW,
        second=BodyPart.RIGHT_HIP,
        calibration_key=CalibrationKey.SHOULDER_FLEXION,
    ),
)


class Movement(str, Enum):
    """
    Physiotherapy movements a session can track.

    Each movement selects the joints it moves and the calibration model
    fitted for that movement.
    """
    ELBOW_FLEXION = "elbow_flexion"
    SHOULDER_ABDUCTION = "shoulder_abduction"
    SHOULDER_EXTENSION = "shoulder_extension"
    SHOULDER_FLEXION = "shoulder_flexion"

    @property
    def calibration_key(self) -> CalibrationKey:
        return _MOVEMENT_CALIBRATION[self]

    @property
    def joints(self) -> tuple[Joint, Joint]:
        if self is Movement.ELBOW_FLEXION:
            return (Joint.LEFT_ELBOW, Joint.RIGHT_ELBOW)
        return (Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER)


_MOVEMENT_CALIBRATION = {
    Movement.ELBOW_FLEXION: CalibrationKey.ELBOW_FLEXION,
    Movement.SHOULDER_ABDUCTION: CalibrationKey.SHOULDER_ABDUCTION,
    Movement.SHOULDER_EXTENSION: CalibrationKey.SHOULDER_EXTENSION,
    Movement.SHOULDER_FLEXION: CalibrationKey.SHOULDER_FLEXION,
}
