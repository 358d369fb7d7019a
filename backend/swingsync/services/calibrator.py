"""
Scale Calibrator Service

Combines the user's and the reference subject's body measurements into
the scale and offset used to draw the reference over the user.
"""

import logging
from typing import Optional

from ..config import OFFSET_PERCENT_FACTOR
from ..domain.analysis import BodyMeasurement, CalibrationState

logger = logging.getLogger(__name__)


class ScaleCalibrator:
    """
    Computes overlay calibration from two body measurements.

    Only vertical misalignment is corrected automatically; horizontal
    placement is left to the user-driven overlay offset.
    """

    @staticmethod
    def calibrate(
        user: Optional[BodyMeasurement],
        reference: Optional[BodyMeasurement],
    ) -> CalibrationState:
        """
        Calculate scale and offset.

        Args:
            user: Measurement of the user subject
            reference: Measurement of the reference subject

        Returns:
            CalibrationState; defaults (scale 1, no offset) until both
            measurements exist with a positive height
        """
        if user is None or reference is None:
            return CalibrationState()
        if user.height <= 0 or reference.height <= 0:
            return CalibrationState()

        scale = user.height / reference.height
        offset_y = (user.avg_ankle_y - reference.avg_ankle_y) * OFFSET_PERCENT_FACTOR

        logger.info(
            f"Calibrated overlay: user height {user.height:.3f}, "
            f"reference height {reference.height:.3f}, scale {scale:.3f}, "
            f"offset_y {offset_y:.1f}%"
        )

        return CalibrationState(scale=scale, offset_x=0.0, offset_y=offset_y)
