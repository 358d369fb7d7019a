"""
Domain Models

Pure data structures representing swing comparison concepts.
No external dependencies - just Python dataclasses and enums.
"""

from .pose import BodyPart, Keypoint, PoseSample, PoseSequence, NUM_KEYPOINTS
from .analysis import (
    SwingPhase,
    SwingPhases,
    Handedness,
    BodyMeasurement,
    CalibrationState,
    ReplayState,
    ReplaySession,
    ReferenceSwing,
    reference_for,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    "BodyPart",
    "Keypoint",
    "PoseSample",
    "PoseSequence",
    "NUM_KEYPOINTS",
    "SwingPhase",
    "SwingPhases",
    "Handedness",
    "BodyMeasurement",
    "CalibrationState",
    "ReplayState",
    "ReplaySession",
    "ReferenceSwing",
    "reference_for",
    "format_timestamp",
    "parse_timestamp",
]
