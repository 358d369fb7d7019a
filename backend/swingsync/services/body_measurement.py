"""
Body Measurement Service

Derives a head-to-ankle height and reference point from a single pose
sample. Used to calibrate the reference subject's scale against the user.
"""

import logging
from typing import Optional

from ..domain.pose import BodyPart, PoseSample
from ..domain.analysis import BodyMeasurement

logger = logging.getLogger(__name__)


class BodyMeasurementEstimator:
    """
    Estimates body height from nose and ankle keypoints.

    A missing landmark is not an error: estimate() returns None and the
    caller retries on a later frame.

    Usage:
        measurement = BodyMeasurementEstimator.estimate(sample)
        if measurement:
            print(measurement.height)
    """

    @staticmethod
    def estimate(sample: Optional[PoseSample]) -> Optional[BodyMeasurement]:
        """
        Measure one subject from one pose sample.

        When the sample knows its frame height, y values are normalized to
        0-1 so offsets can be expressed as a percentage of the frame.

        Returns:
            BodyMeasurement, or None if nose or either ankle is unavailable
        """
        if sample is None:
            return None

        nose = sample.get_visible(BodyPart.NOSE)
        left_ankle = sample.get_visible(BodyPart.LEFT_ANKLE)
        right_ankle = sample.get_visible(BodyPart.RIGHT_ANKLE)

        if nose is None or left_ankle is None or right_ankle is None:
            logger.debug(f"Measurement skipped at {sample.timestamp:.2f}s: landmarks missing")
            return None

        norm = float(sample.image_height) if sample.image_height else 1.0

        avg_ankle_y = (left_ankle.y + right_ankle.y) / 2 / norm
        head_y = nose.y / norm
        height = abs(avg_ankle_y - head_y)

        if height <= 0:
            return None

        return BodyMeasurement(
            height=height,
            head_y=head_y,
            avg_ankle_y=avg_ankle_y,
        )
