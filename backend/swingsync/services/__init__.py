"""
Services Layer

Swing comparison services: phase detection, calibration, overlay
transforms, media streams and synchronized replay.
These services orchestrate domain models and external dependencies.
"""

from .pose_detector import PoseDetector, PoseSource
from .angle_calculator import AngleCalculator
from .body_measurement import BodyMeasurementEstimator
from .phase_detector import PhaseDetector
from .calibrator import ScaleCalibrator
from .playback_rate import calculate_playback_rate
from .overlay import (
    ContainerTransform,
    OverlaySettings,
    ViewportFit,
    compose_overlay_point,
    fit_to_viewport,
)
from .media import ClockedMediaStream, MediaEvent, MediaStream, Subscription, VideoFileStream
from .synchronizer import ReplayEngine, ReplayOutcome
from .motion_tracker import MotionTracker
from .compare_session import CompareSession

__all__ = [
    "PoseDetector",
    "PoseSource",
    "AngleCalculator",
    "BodyMeasurementEstimator",
    "PhaseDetector",
    "ScaleCalibrator",
    "calculate_playback_rate",
    "ContainerTransform",
    "OverlaySettings",
    "ViewportFit",
    "compose_overlay_point",
    "fit_to_viewport",
    "ClockedMediaStream",
    "MediaEvent",
    "MediaStream",
    "Subscription",
    "VideoFileStream",
    "ReplayEngine",
    "ReplayOutcome",
    "MotionTracker",
    "CompareSession",
]
