"""
Tests for joint angle estimation and calibration.

The default angle uses Euclidean magnitudes. legacy_norm=True reproduces
the |BA| = sqrt(ba.x*ba.y + ba.y*ba.y) formula the calibration was fitted with.
"""

import json
import math

import pytest
from pydantic import ValidationError

from conftest import build_keypoints
from core.domain.calibration import (
    Calibration,
    CalibrationKey,
    DEFAULT_CALIBRATIONS,
    Joint,
    Movement,
)
from core.domain.pose import BodyPart, Point
from core.services.angle_estimator import (
    JointAngleEstimator,
    UnknownCalibrationKeyError,
    load_calibration_table,
)


def _cubic(key, degrees):
    calibration = DEFAULT_CALIBRATIONS[key]
    c = calibration.coefficients
    return calibration.intercept + c[1] * degrees + c[2] * degrees ** 2 + c[3] * degrees ** 3


@pytest.fixture
def estimator():
    return JointAngleEstimator(calibrations=DEFAULT_CALIBRATIONS, legacy_norm=False)


class TestVectorAngle:
    """Test the raw angle at a vertex."""

    def test_identical_vectors(self):
        assert JointAngleEstimator.vector_angle_degrees(Point(3, 4), Point(3, 4)) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert JointAngleEstimator.vector_angle_degrees(Point(3, 4), Point(-3, -4)) == pytest.approx(180.0)

    def test_perpendicular(self):
        assert JointAngleEstimator.vector_angle_degrees(Point(1, 0), Point(0, 1)) == pytest.approx(90.0)

    def test_scale_invariant(self):
        small = JointAngleEstimator.vector_angle_degrees(Point(1, 2), Point(-2, 0.5))
        large = JointAngleEstimator.vector_angle_degrees(Point(10, 20), Point(-200, 50))
        assert small == pytest.approx(large)

    def test_zero_length_is_undefined(self):
        assert JointAngleEstimator.vector_angle_degrees(Point(0, 0), Point(1, 1)) is None
        assert JointAngleEstimator.vector_angle_degrees(Point(1, 1), Point(0, 0)) is None

    def test_nan_is_undefined(self):
        assert JointAngleEstimator.vector_angle_degrees(Point(math.nan, 1), Point(1, 1)) is None


class TestLegacyNorm:
    """Test the legacy magnitude formula."""

    def test_matches_legacy_formula(self):
        # |BA| = sqrt(1*2 + 2*2) = sqrt(6) instead of sqrt(5)
        angle = JointAngleEstimator.vector_angle_degrees(Point(1, 2), Point(1, 2), legacy_norm=True)
        assert angle == pytest.approx(math.degrees(math.acos(5 / math.sqrt(30))))

    def test_agrees_when_components_equal(self):
        assert JointAngleEstimator.vector_angle_degrees(
            Point(1, 1), Point(1, 1), legacy_norm=True
        ) == pytest.approx(0.0, abs=1e-5)
        assert JointAngleEstimator.vector_angle_degrees(
            Point(1, 1), Point(-1, -1), legacy_norm=True
        ) == pytest.approx(180.0, abs=1e-5)

    def test_non_positive_magnitude_is_undefined(self):
        # ba.y == 0 -> sqrt(0)
        assert JointAngleEstimator.vector_angle_degrees(Point(1, 0), Point(0, 1), legacy_norm=True) is None
        # x*y + y*y < 0
        assert JointAngleEstimator.vector_angle_degrees(Point(-3, 1), Point(0, 1), legacy_norm=True) is None

    def test_cosine_out_of_range_is_undefined(self):
        # |BA| = sqrt(3) underestimates sqrt(5), cosine > 1
        assert JointAngleEstimator.vector_angle_degrees(Point(2, 1), Point(2, 1), legacy_norm=True) is None

    def test_estimator_flag(self):
        estimator = JointAngleEstimator(legacy_norm=True)
        points = {
            BodyPart.LEFT_ELBOW: Point(0, 0),
            BodyPart.LEFT_SHOULDER: Point(1, 2),
            BodyPart.LEFT_WRIST: Point(1, 2),
        }
        raw = math.degrees(math.acos(5 / math.sqrt(30)))
        angles = estimator.estimate_all(points)
        assert angles == {"leftElbow": pytest.approx(_cubic(CalibrationKey.ELBOW_FLEXION, raw))}


class TestCalibrate:
    """Test the cubic correction."""

    @pytest.mark.parametrize("key", list(CalibrationKey))
    @pytest.mark.parametrize("degrees", [0.0, 30.0, 90.0, 145.5, 180.0])
    def test_matches_direct_computation(self, estimator, key, degrees):
        assert estimator.calibrate(key, degrees) == pytest.approx(_cubic(key, degrees), abs=1e-5)

    def test_intercept_at_zero(self, estimator):
        assert estimator.calibrate(CalibrationKey.ELBOW_FLEXION, 0.0) == pytest.approx(28.905730477585266)

    def test_is_pure(self, estimator):
        first = estimator.calibrate(CalibrationKey.SHOULDER_FLEXION, 72.0)
        second = estimator.calibrate(CalibrationKey.SHOULDER_FLEXION, 72.0)
        assert first == second

    def test_accepts_string_key(self, estimator):
        assert estimator.calibrate("shoabd", 45.0) == estimator.calibrate(
            CalibrationKey.SHOULDER_ABDUCTION, 45.0
        )

    def test_unknown_key(self, estimator):
        with pytest.raises(UnknownCalibrationKeyError):
            estimator.calibrate("hipabd", 45.0)

    def test_key_missing_from_table(self):
        estimator = JointAngleEstimator(calibrations={
            CalibrationKey.ELBOW_FLEXION: DEFAULT_CALIBRATIONS[CalibrationKey.ELBOW_FLEXION],
        })
        with pytest.raises(KeyError):
            estimator.calibrate(CalibrationKey.SHOULDER_FLEXION, 45.0)


class TestEstimateAll:
    """Test the per-frame joint angle table."""

    def test_all_joints_present(self, estimator):
        points = {kp.body_part: kp.coordinate for kp in build_keypoints(256)}
        angles = estimator.estimate_all(points)
        assert set(angles) == {"leftElbow", "leftShoulder", "rightElbow", "rightShoulder"}

    def test_right_angle_elbow(self, estimator):
        points = {
            BodyPart.RIGHT_SHOULDER: Point(100, 0),
            BodyPart.RIGHT_ELBOW: Point(100, 100),
            BodyPart.RIGHT_WRIST: Point(200, 100),
        }
        angles = estimator.estimate_all(points)
        assert angles == {
            Joint.RIGHT_ELBOW.value: pytest.approx(_cubic(CalibrationKey.ELBOW_FLEXION, 90.0))
        }

    def test_shoulders_use_flexion_model(self, estimator):
        points = {
            BodyPart.LEFT_ELBOW: Point(0, 100),
            BodyPart.LEFT_SHOULDER: Point(0, 0),
            BodyPart.LEFT_HIP: Point(0, 200),
        }
        angles = estimator.estimate_all(points)
        assert angles["leftShoulder"] == pytest.approx(_cubic(CalibrationKey.SHOULDER_FLEXION, 0.0))

    def test_missing_keypoint_omits_joint(self, estimator):
        points = {kp.body_part: kp.coordinate for kp in build_keypoints(256)}
        del points[BodyPart.LEFT_WRIST]

        angles = estimator.estimate_all(points)
        assert "leftElbow" not in angles
        assert set(angles) == {"leftShoulder", "rightElbow", "rightShoulder"}

    def test_degenerate_geometry_omits_joint(self, estimator):
        points = {kp.body_part: kp.coordinate for kp in build_keypoints(256)}
        points[BodyPart.RIGHT_WRIST] = points[BodyPart.RIGHT_ELBOW]

        assert "rightElbow" not in estimator.estimate_all(points)

    def test_empty(self, estimator):
        assert estimator.estimate_all({}) == {}


class TestEstimateMovement:
    """Test movement-specific calibration."""

    def test_shoulder_abduction_uses_its_model(self, estimator):
        points = {kp.body_part: kp.coordinate for kp in build_keypoints(256)}
        angles = estimator.estimate_movement(points, Movement.SHOULDER_ABDUCTION)

        raw = JointAngleEstimator.vector_angle_degrees(
            points[BodyPart.LEFT_ELBOW] - points[BodyPart.LEFT_SHOULDER],
            points[BodyPart.LEFT_HIP] - points[BodyPart.LEFT_SHOULDER],
        )
        assert set(angles) == {"leftShoulder", "rightShoulder"}
        assert angles["leftShoulder"] == pytest.approx(_cubic(CalibrationKey.SHOULDER_ABDUCTION, raw))

    def test_elbow_flexion_matches_default_table(self, estimator):
        points = {kp.body_part: kp.coordinate for kp in build_keypoints(256)}
        movement_angles = estimator.estimate_movement(points, Movement.ELBOW_FLEXION)
        all_angles = estimator.estimate_all(points)

        assert set(movement_angles) == {"leftElbow", "rightElbow"}
        assert movement_angles["leftElbow"] == pytest.approx(all_angles["leftElbow"])


class TestLoadCalibrationTable:
    """Test loading calibration constants from JSON."""

    def test_overrides_one_key(self, tmp_path):
        path = tmp_path / "calibration.json"
        path.write_text(json.dumps({
            "elbflex": {"intercept": 1.0, "coefficients": [0.0, 1.0, 0.0, 0.0]}
        }))

        table = load_calibration_table(path)

        assert table[CalibrationKey.ELBOW_FLEXION] == Calibration(1.0, (0.0, 1.0, 0.0, 0.0))
        assert table[CalibrationKey.SHOULDER_FLEXION] == DEFAULT_CALIBRATIONS[CalibrationKey.SHOULDER_FLEXION]
        assert JointAngleEstimator(calibrations=table).calibrate("elbflex", 90.0) == pytest.approx(91.0)

    def test_wrong_coefficient_count(self, tmp_path):
        path = tmp_path / "calibration.json"
        path.write_text(json.dumps({"shoabd": {"intercept": 1.0, "coefficients": [0.0, 1.0]}}))

        with pytest.raises(ValidationError):
            load_calibration_table(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "calibration.json"
        path.write_text(json.dumps({"hipabd": {"intercept": 1.0, "coefficients": [0.0, 1.0, 0.0, 0.0]}}))

        with pytest.raises(ValidationError):
            load_calibration_table(path)
