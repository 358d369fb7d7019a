"""
Angle Calculator Service

Joint angle math used by the phase detector.
All angles are calculated in degrees (0-180).

This is pure mathematics - no external dependencies except numpy.
"""

from typing import Optional
import numpy as np

from ..domain.pose import Keypoint, PoseSample


class AngleCalculator:
    """
    Calculates joint angles from pose keypoints.

    All methods are static - no state needed.
    """

    @staticmethod
    def calculate_angle(
        p1: Optional[Keypoint],
        p2: Optional[Keypoint],  # Vertex point
        p3: Optional[Keypoint]
    ) -> Optional[float]:
        """
        Calculate angle at p2 formed by p1-p2-p3.

        Args:
            p1: First point
            p2: Vertex point (where angle is measured)
            p3: Third point

        Returns:
            Angle in degrees (0-180), or None if a point is missing,
            not visible, or two points coincide

        Example:
            For elbow angle: shoulder -> elbow -> wrist
            angle = calculate_angle(shoulder, elbow, wrist)
        """
        if p1 is None or p2 is None or p3 is None:
            return None
        if not (p1.is_visible() and p2.is_visible() and p3.is_visible()):
            return None

        v1 = np.array([p1.x - p2.x, p1.y - p2.y])
        v2 = np.array([p3.x - p2.x, p3.y - p2.y])

        norms = np.linalg.norm(v1) * np.linalg.norm(v2)
        if norms == 0:
            return None

        cos_angle = np.dot(v1, v2) / norms

        # Clamp to valid range (handles floating point errors)
        cos_angle = np.clip(cos_angle, -1.0, 1.0)

        return float(np.degrees(np.arccos(cos_angle)))

    @classmethod
    def calculate_elbow_angle(
        cls,
        sample: PoseSample,
        left: bool = True
    ) -> Optional[float]:
        """
        Calculate elbow angle (shoulder -> elbow -> wrist).

        180 degrees is a fully straight arm.
        """
        shoulder, elbow, wrist = sample.arm(left)
        return cls.calculate_angle(shoulder, elbow, wrist)

    @classmethod
    def calculate_lead_arm_angle(
        cls,
        sample: PoseSample,
        right_handed: bool = True
    ) -> Optional[float]:
        """
        Calculate the lead arm's elbow angle.

        The lead arm is the left arm for a right-handed golfer.
        """
        return cls.calculate_elbow_angle(sample, left=right_handed)
