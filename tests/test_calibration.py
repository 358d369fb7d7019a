"""Tests for body measurement, calibration and playback rate."""

import pytest

from swingsync.domain import BodyMeasurement, BodyPart, CalibrationState
from swingsync.services import (
    BodyMeasurementEstimator,
    ScaleCalibrator,
    calculate_playback_rate,
)
from swingsync.services.playback_rate import NEUTRAL_RATE

from conftest import build_sample


class TestBodyMeasurement:
    """Test head-to-ankle measurement."""

    def test_pixel_measurement(self):
        sample = build_sample(0.0, nose_y=50.0, ankle_y=450.0)

        measurement = BodyMeasurementEstimator.estimate(sample)

        assert measurement == BodyMeasurement(height=400.0, head_y=50.0, avg_ankle_y=450.0)

    def test_normalized_by_frame_height(self):
        """Samples that know their frame height are measured in 0-1 units."""
        sample = build_sample(0.0, nose_y=100.0, ankle_y=500.0, image_height=1000)

        measurement = BodyMeasurementEstimator.estimate(sample)

        assert measurement.height == pytest.approx(0.4)
        assert measurement.avg_ankle_y == pytest.approx(0.5)

    def test_hidden_ankle_returns_none(self):
        sample = build_sample(0.0, hidden=(BodyPart.RIGHT_ANKLE,))
        assert BodyMeasurementEstimator.estimate(sample) is None

    def test_zero_height_returns_none(self):
        """Nose level with the ankles: retry on a later frame."""
        sample = build_sample(0.0, nose_y=450.0, ankle_y=450.0)
        assert BodyMeasurementEstimator.estimate(sample) is None

    def test_none_sample(self):
        assert BodyMeasurementEstimator.estimate(None) is None


class TestScaleCalibrator:
    """Test overlay calibration."""

    def test_scale_and_offset(self):
        user = BodyMeasurement(height=0.4, head_y=0.5, avg_ankle_y=0.9)
        reference = BodyMeasurement(height=0.2, head_y=0.5, avg_ankle_y=0.7)

        calibration = ScaleCalibrator.calibrate(user, reference)

        assert calibration.scale == pytest.approx(2.0)
        assert calibration.offset_y == pytest.approx(20.0)
        assert calibration.offset_x == 0.0

    def test_defaults_until_both_measured(self):
        user = BodyMeasurement(height=0.4, head_y=0.5, avg_ankle_y=0.9)

        assert ScaleCalibrator.calibrate(user, None) == CalibrationState()
        assert ScaleCalibrator.calibrate(None, None) == CalibrationState()

    def test_from_pose_samples(self):
        user = BodyMeasurementEstimator.estimate(
            build_sample(0.0, nose_y=500.0, ankle_y=900.0, image_height=1000)
        )
        reference = BodyMeasurementEstimator.estimate(
            build_sample(0.0, nose_y=500.0, ankle_y=700.0, image_height=1000)
        )

        calibration = ScaleCalibrator.calibrate(user, reference)

        assert calibration.scale == pytest.approx(2.0)
        assert calibration.offset_y == pytest.approx(20.0)


class TestPlaybackRate:
    """Test reference playback rate."""

    def test_rate_from_durations(self):
        user = {"Back": "1.00", "Follow": "3.00"}
        reference = {"Back": "2.50", "Follow": "3.88"}

        assert calculate_playback_rate(user, reference) == pytest.approx(0.69)

    def test_missing_phase_is_neutral(self):
        user = {"Back": "1.00"}
        reference = {"Back": "2.50", "Follow": "3.88"}

        assert calculate_playback_rate(user, reference) == NEUTRAL_RATE

    def test_non_numeric_is_neutral(self):
        user = {"Back": "abc", "Follow": "3.00"}
        reference = {"Back": "2.50", "Follow": "3.88"}

        assert calculate_playback_rate(user, reference) == 1.0

    def test_non_positive_duration_is_neutral(self):
        user = {"Back": "3.00", "Follow": "1.00"}
        reference = {"Back": "2.50", "Follow": "3.88"}

        assert calculate_playback_rate(user, reference) == 1.0
        assert calculate_playback_rate(reference, {"Back": 1.0, "Follow": 1.0}) == 1.0
