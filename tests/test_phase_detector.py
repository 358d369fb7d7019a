"""Tests for swing phase detection."""

import pytest

from swingsync.domain import BodyPart, PoseSequence
from swingsync.services import AngleCalculator, PhaseDetector

from conftest import build_sample


class TestFallback:
    """Test the fixed-offset fallback."""

    def test_short_sequence_uses_offsets(self):
        """Fewer than five samples give Setup + 0.5/1.0/1.2/1.7."""
        sequence = PoseSequence([build_sample(1.0 + i * 0.1) for i in range(3)])

        phases = PhaseDetector().detect(sequence, setup_time=1.0)

        assert phases == {
            "Back": "1.50",
            "Apex": "2.00",
            "Impact": "2.20",
            "Follow": "2.70",
        }

    def test_no_usable_signal_uses_offsets(self):
        """Samples without visible arms count as missing data."""
        arms = (
            BodyPart.LEFT_SHOULDER, BodyPart.RIGHT_SHOULDER,
            BodyPart.LEFT_ELBOW, BodyPart.RIGHT_ELBOW,
            BodyPart.LEFT_WRIST, BodyPart.RIGHT_WRIST,
        )
        sequence = PoseSequence([
            build_sample(i * 0.1, hidden=arms) for i in range(10)
        ])

        phases = PhaseDetector().detect(sequence, setup_time=0.0)

        assert phases == PhaseDetector.fallback(0.0)


class TestSignal:
    """Test the composite signal."""

    def test_straight_arm_angle(self):
        sample = build_sample(0.0)
        assert AngleCalculator.calculate_lead_arm_angle(sample) == pytest.approx(180.0)

    def test_signal_follows_arm_height(self):
        """With straight arms the signal is 0.9 * arm y."""
        detector = PhaseDetector()
        assert detector.composite_signal(build_sample(0.0, arm_y=200.0)) == pytest.approx(180.0)

    def test_signal_renormalizes_weights(self):
        """Only wrists visible: the signal is the wrist height."""
        hidden = (
            BodyPart.LEFT_SHOULDER, BodyPart.RIGHT_SHOULDER,
            BodyPart.LEFT_ELBOW, BodyPart.RIGHT_ELBOW,
        )
        sample = build_sample(0.0, arm_y=120.0, hidden=hidden)

        assert PhaseDetector().composite_signal(sample) == pytest.approx(120.0)

    def test_smoothing_keeps_gaps(self):
        smoothed = PhaseDetector.smooth([3.0, None, 6.0, 9.0])
        assert smoothed == [3.0, None, 7.5, 7.5]


class TestDetection:
    """Test detection on a synthetic swing."""

    def test_detects_all_phases(self, swing_sequence):
        phases = PhaseDetector().detect(swing_sequence, setup_time=1.0)

        assert phases == {
            "Back": "1.30",
            "Apex": "1.70",
            "Impact": "2.10",
            "Follow": "2.60",
        }

    def test_detection_is_idempotent(self, swing_sequence):
        detector = PhaseDetector()
        assert detector.detect(swing_sequence, 1.0) == detector.detect(swing_sequence, 1.0)

    def test_left_handed_uses_right_arm(self, swing_sequence):
        """Both arms are straight here, so handedness does not change the result."""
        right = PhaseDetector(right_handed=True).detect(swing_sequence, 1.0)
        left = PhaseDetector(right_handed=False).detect(swing_sequence, 1.0)
        assert right == left

    def test_still_sequence_stays_ordered(self):
        """No motion: every phase lands on the last sample."""
        sequence = PoseSequence([build_sample(i * 0.1) for i in range(10)])

        phases = PhaseDetector().detect(sequence, setup_time=0.0)

        assert list(phases.values()) == ["0.90", "0.90", "0.90", "0.90"]

    def test_phase_order_invariant(self, swing_sequence):
        """Back <= Apex <= Impact <= Follow, never before the second sample."""
        phases = PhaseDetector().detect(swing_sequence, 1.0)
        values = [float(phases[name]) for name in ("Back", "Apex", "Impact", "Follow")]

        assert values == sorted(values)
        assert values[0] >= swing_sequence[1].timestamp
        assert values[-1] <= swing_sequence[-1].timestamp

    def test_motion_before_setup_is_ignored(self, swing_sequence):
        """Waving before Setup does not pull phases ahead of it."""
        warmup = [
            build_sample(round(i * 0.1, 2), arm_y=150.0 if i % 2 else 300.0)
            for i in range(10)
        ]
        sequence = PoseSequence(warmup + list(swing_sequence))

        phases = PhaseDetector().detect(sequence, setup_time=1.0)

        assert phases == PhaseDetector().detect(swing_sequence, setup_time=1.0)

    def test_still_after_setup_stays_after_setup(self):
        waving = [build_sample(round(i * 0.1, 2), arm_y=150.0 if i % 2 else 300.0) for i in range(5)]
        still = [build_sample(round(0.5 + i * 0.1, 2)) for i in range(15)]

        phases = PhaseDetector().detect(PoseSequence(waving + still), setup_time=1.0)

        assert all(float(value) >= 1.0 for value in phases.values())
        assert phases["Back"] == "1.90"


# Arms come down through impact and settle at chest height, below the head
SETTLE_ARM_Y = [
    300, 300, 300, 250, 200, 150, 200, 300, 240,
    220, 200, 200, 200, 200, 200, 200, 200,
]


def settle_sequence(arm_ys=SETTLE_ARM_Y):
    return PoseSequence([
        build_sample(1.0 + i * 0.1, arm_y=y)
        for i, y in enumerate(arm_ys)
    ])


class TestStableFollow:
    """Test Follow found by a settled signal."""

    def test_follow_at_start_of_stable_window(self):
        phases = PhaseDetector().detect(settle_sequence(), setup_time=1.0)

        assert phases == {
            "Back": "1.20",
            "Apex": "1.50",
            "Impact": "1.80",
            "Follow": "2.10",
        }

    def test_window_must_fit_before_end(self):
        """One sample short of a full window: Follow falls back to the last sample."""
        phases = PhaseDetector().detect(settle_sequence(SETTLE_ARM_Y[:-1]), setup_time=1.0)

        assert phases["Impact"] == "1.80"
        assert phases["Follow"] == "2.50"

    def test_needs_five_small_changes(self):
        assert PhaseDetector._is_stable_from([180.0] * 6, 0)
        assert not PhaseDetector._is_stable_from([180.0] * 5, 0)

    def test_change_threshold_is_inclusive(self):
        assert PhaseDetector._is_stable_from([180.0, 185.0, 180.0, 185.0, 180.0, 185.0], 0)
        assert not PhaseDetector._is_stable_from([180.0, 180.0, 180.0, 180.0, 180.0, 186.0], 0)
