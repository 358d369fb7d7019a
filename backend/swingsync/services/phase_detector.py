"""
Phase Detector Service

Derives Back, Apex, Impact and Follow timestamps from the pose samples at
or after the user's marked Setup.

The detector is a kinematic heuristic over a composite vertical signal
built from the arms: the signal moves away from its address value during
the takeaway, turns at the top of the backswing, turns again at impact,
and then either rises above the head or settles in the follow-through.
"""

import logging
from typing import Optional, Sequence, Union

from ..config import (
    SIGNAL_WEIGHTS,
    MIN_SEQUENCE_LENGTH,
    BACK_MOTION_THRESHOLD,
    FOLLOW_STABLE_THRESHOLD,
    FOLLOW_STABLE_SAMPLES,
    FALLBACK_PHASE_OFFSETS,
)
from ..domain.pose import BodyPart, Keypoint, PoseSample, PoseSequence
from ..domain.analysis import SwingPhase, format_timestamp
from .angle_calculator import AngleCalculator

logger = logging.getLogger(__name__)

DETECTED_PHASES = (SwingPhase.BACK, SwingPhase.APEX, SwingPhase.IMPACT, SwingPhase.FOLLOW)


def _mean_visible_y(keypoints: Sequence[Optional[Keypoint]]) -> Optional[float]:
    """Mean y of the visible keypoints, or None if none is visible."""
    ys = [kp.y for kp in keypoints if kp is not None and kp.is_visible()]
    if not ys:
        return None
    return sum(ys) / len(ys)


class PhaseDetector:
    """
    Detects swing phases from a PoseSequence.

    Usage:
        detector = PhaseDetector()
        phases = detector.detect(sequence, setup_time=1.25)
        # {"Back": "1.80", "Apex": "2.40", "Impact": "2.65", "Follow": "3.10"}

    Detected values are best-effort defaults; phases the user marked by
    hand always take precedence over them.
    """

    def __init__(self, right_handed: bool = True):
        """
        Args:
            right_handed: Golfer handedness; selects the lead arm used for
                          the arm-angle term (left arm for right-handers)
        """
        self.right_handed = right_handed

    # -------------------------------------------------------------------------
    # Main Detection
    # -------------------------------------------------------------------------

    def detect(
        self,
        sequence: Union[PoseSequence, Sequence[PoseSample]],
        setup_time: float,
    ) -> dict[str, str]:
        """
        Detect phase timestamps.

        Args:
            sequence: Samples ordered by timestamp; those before Setup are ignored
            setup_time: Timestamp the user marked as Setup

        Returns:
            Phase name -> timestamp string for Back, Apex, Impact, Follow
        """
        samples = [sample for sample in sequence if sample.timestamp >= setup_time]

        if len(samples) < MIN_SEQUENCE_LENGTH:
            logger.debug(f"Only {len(samples)} samples, using fallback offsets")
            return self.fallback(setup_time)

        raw = [self.composite_signal(sample) for sample in samples]
        if sum(1 for value in raw if value is not None) < MIN_SEQUENCE_LENGTH:
            logger.debug("Too few samples with a usable signal, using fallback offsets")
            return self.fallback(setup_time)

        smoothed = self.smooth(raw)
        indices = self.find_phase_indices(samples, smoothed)

        return {
            phase.value: format_timestamp(samples[index].timestamp)
            for phase, index in zip(DETECTED_PHASES, indices)
        }

    @staticmethod
    def fallback(setup_time: float) -> dict[str, str]:
        """Fixed offsets from Setup for sequences without enough signal."""
        return {
            phase.value: format_timestamp(setup_time + FALLBACK_PHASE_OFFSETS[phase.value])
            for phase in DETECTED_PHASES
        }

    # -------------------------------------------------------------------------
    # Signal
    # -------------------------------------------------------------------------

    def composite_signal(self, sample: PoseSample) -> Optional[float]:
        """
        Weighted vertical position of the arms for one sample.

        Terms with no visible landmarks are left out and the remaining
        weights are renormalized.
        """
        terms: list[tuple[float, float]] = []

        wrist_y = _mean_visible_y(sample.wrists)
        if wrist_y is not None:
            terms.append((wrist_y, SIGNAL_WEIGHTS["wrist"]))

        elbow_y = _mean_visible_y(sample.elbows)
        if elbow_y is not None:
            terms.append((elbow_y, SIGNAL_WEIGHTS["elbow"]))

        shoulder_y = _mean_visible_y(sample.shoulders)
        if shoulder_y is not None:
            terms.append((shoulder_y, SIGNAL_WEIGHTS["shoulder"]))

        arm_angle = AngleCalculator.calculate_lead_arm_angle(sample, self.right_handed)
        if arm_angle is not None:
            # Straight arm (180 deg) -> 0, fully bent (0 deg) -> 100
            pseudo_y = 100.0 - (arm_angle / 180.0) * 100.0
            terms.append((pseudo_y, SIGNAL_WEIGHTS["arm_angle"]))

        total_weight = sum(weight for _, weight in terms)
        if total_weight == 0:
            return None

        return sum(value * weight for value, weight in terms) / total_weight

    @staticmethod
    def smooth(signal: Sequence[Optional[float]]) -> list[Optional[float]]:
        """
        Centered 3-sample moving average.

        Edges and gaps average over whichever neighbors have a value;
        positions without a value stay None.
        """
        smoothed: list[Optional[float]] = []
        for i, value in enumerate(signal):
            if value is None:
                smoothed.append(None)
                continue
            window = [
                v for v in signal[max(0, i - 1):i + 2]
                if v is not None
            ]
            smoothed.append(sum(window) / len(window))
        return smoothed

    # -------------------------------------------------------------------------
    # Phase Search
    # -------------------------------------------------------------------------

    def find_phase_indices(
        self,
        samples: Sequence[PoseSample],
        smoothed: Sequence[Optional[float]],
    ) -> tuple[int, int, int, int]:
        """
        Resolve Back, Apex, Impact and Follow sample indices.

        Returns indices clamped to 1 <= back <= apex <= impact <= follow <= n-1.
        """
        last = len(smoothed) - 1

        back = self._find_back(smoothed)
        apex = self._find_turning_point(smoothed, back, minimum=True)
        impact = self._find_turning_point(smoothed, apex, minimum=False)
        follow = self._find_follow(samples, smoothed, impact)

        back = min(max(back, 1), last)
        apex = min(max(apex, back), last)
        impact = min(max(impact, apex), last)
        follow = min(max(follow, impact), last)

        return back, apex, impact, follow

    @staticmethod
    def _find_back(smoothed: Sequence[Optional[float]]) -> int:
        """First sample that has moved clearly away from the address value."""
        last = len(smoothed) - 1

        baseline = smoothed[0]
        if baseline is None:
            baseline = next((v for v in smoothed if v is not None), None)
        if baseline is None:
            return last

        for i in range(1, len(smoothed)):
            value = smoothed[i]
            if value is not None and abs(value - baseline) > BACK_MOTION_THRESHOLD:
                return i
        return last

    @staticmethod
    def _find_turning_point(
        smoothed: Sequence[Optional[float]],
        after: int,
        minimum: bool,
    ) -> int:
        """
        First local minimum (or maximum) strictly after an index.

        Returns the start index when there is none.
        """
        for i in range(after + 1, len(smoothed) - 1):
            prev, value, nxt = smoothed[i - 1], smoothed[i], smoothed[i + 1]
            if prev is None or value is None or nxt is None:
                continue
            if minimum and value < prev and value < nxt:
                return i
            if not minimum and value > prev and value > nxt:
                return i
        return after

    def _find_follow(
        self,
        samples: Sequence[PoseSample],
        smoothed: Sequence[Optional[float]],
        impact: int,
    ) -> int:
        """First sample after impact with hands above the head or a settled signal."""
        last = len(smoothed) - 1

        for i in range(impact + 1, len(smoothed)):
            if self._wrist_above_head(samples[i]):
                return i
            if self._is_stable_from(smoothed, i):
                return i
        return last

    @staticmethod
    def _wrist_above_head(sample: PoseSample) -> bool:
        nose = sample.get_visible(BodyPart.NOSE)
        if nose is None:
            return False
        for wrist in sample.wrists:
            # y grows downward, so "above" means smaller
            if wrist is not None and wrist.is_visible() and wrist.y < nose.y:
                return True
        return False

    @staticmethod
    def _is_stable_from(smoothed: Sequence[Optional[float]], start: int) -> bool:
        """True if the next FOLLOW_STABLE_SAMPLES changes are all small."""
        end = start + FOLLOW_STABLE_SAMPLES
        if end >= len(smoothed):
            return False
        for j in range(start, end):
            a, b = smoothed[j], smoothed[j + 1]
            if a is None or b is None or abs(b - a) > FOLLOW_STABLE_THRESHOLD:
                return False
        return True
