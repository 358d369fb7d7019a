"""
Analysis API Schemas

Pydantic models for phase detection, playback rate, calibration and
overlay requests and responses.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Union
from enum import Enum

from swingsync.config import (
    DEFAULT_OVERLAY_SCALE,
    MIN_OVERLAY_SCALE,
    MAX_OVERLAY_SCALE,
)
from .pose import KeypointSchema, PoseSampleSchema


PhaseMap = Dict[str, Union[str, float, None]]


class SwingPhaseEnum(str, Enum):
    """Swing phases for API."""
    SETUP = "Setup"
    BACK = "Back"
    APEX = "Apex"
    IMPACT = "Impact"
    FOLLOW = "Follow"


class HandednessEnum(str, Enum):
    """Golfer handedness; selects the reference swing."""
    RIGHT = "right"
    LEFT = "left"


# =============================================================================
# Phase Detection
# =============================================================================

class PhaseDetectionRequest(BaseModel):
    """
    Pose samples of the user's swing, starting at the marked Setup.
    """
    samples: List[PoseSampleSchema] = Field(..., description="Samples in timestamp order")
    setup_time: float = Field(..., ge=0.0, description="Marked Setup time in seconds")
    handedness: HandednessEnum = Field(HandednessEnum.RIGHT, description="Golfer handedness")

    class Config:
        json_schema_extra = {
            "example": {
                "samples": [],
                "setup_time": 0.4,
                "handedness": "right"
            }
        }


class PhaseDetectionResponse(BaseModel):
    """Detected phase timestamps ("%.2f" seconds)."""
    phases: Dict[str, str] = Field(..., description="Back/Apex/Impact/Follow -> seconds")
    sample_count: int = Field(..., ge=0, description="Samples the detection used")

    class Config:
        json_schema_extra = {
            "example": {
                "phases": {"Back": "0.90", "Apex": "1.40", "Impact": "1.60", "Follow": "2.10"},
                "sample_count": 60
            }
        }


# =============================================================================
# Playback Rate
# =============================================================================

class PlaybackRateRequest(BaseModel):
    """
    Marked phases of both subjects.

    When reference_phases is omitted the built-in reference for the
    handedness is used.
    """
    user_phases: PhaseMap = Field(..., description="Phase name -> seconds")
    reference_phases: Optional[PhaseMap] = Field(None, description="Phase name -> seconds")
    handedness: HandednessEnum = Field(HandednessEnum.RIGHT, description="Golfer handedness")

    class Config:
        json_schema_extra = {
            "example": {
                "user_phases": {"Back": "1.00", "Follow": "3.00"},
                "handedness": "right"
            }
        }


class PlaybackRateResponse(BaseModel):
    rate: float = Field(..., gt=0.0, description="Reference playback-rate multiplier")


# =============================================================================
# Calibration
# =============================================================================

class CalibrationRequest(BaseModel):
    """One pose of each subject, typically taken at Setup."""
    user: PoseSampleSchema = Field(..., description="User pose")
    reference: PoseSampleSchema = Field(..., description="Reference pose")


class BodyMeasurementSchema(BaseModel):
    height: float = Field(..., gt=0.0, description="Nose to mean ankle distance")
    head_y: float = Field(..., description="Nose y")
    avg_ankle_y: float = Field(..., description="Mean ankle y")


class CalibrationResponse(BaseModel):
    """
    Overlay calibration.

    Measurements are null when the landmarks were not visible; the
    calibration then holds its defaults.
    """
    user_measurement: Optional[BodyMeasurementSchema] = None
    reference_measurement: Optional[BodyMeasurementSchema] = None
    scale: float = Field(..., gt=0.0, description="User height / reference height")
    offset_x: float = Field(..., description="Horizontal offset (%)")
    offset_y: float = Field(..., description="Vertical offset (%)")


# =============================================================================
# Overlay
# =============================================================================

class OverlayPointRequest(BaseModel):
    """
    A reference keypoint and the display geometry it is drawn in.
    """
    keypoint: KeypointSchema = Field(..., description="Keypoint in reference video pixels")
    video_width: float = Field(..., gt=0, description="Native reference video width")
    video_height: float = Field(..., gt=0, description="Native reference video height")
    viewport_width: float = Field(..., gt=0, description="Measured viewport width")
    viewport_height: float = Field(..., gt=0, description="Measured viewport height")
    container_scale: float = Field(1.0, gt=0, description="Scale the container is displayed at")
    overlay_scale: float = Field(
        DEFAULT_OVERLAY_SCALE,
        ge=MIN_OVERLAY_SCALE,
        le=MAX_OVERLAY_SCALE,
        description="User overlay scale"
    )
    offset_x: float = Field(0.0, description="User overlay offset (px)")
    offset_y: float = Field(0.0, description="User overlay offset (px)")
    handedness: HandednessEnum = Field(HandednessEnum.RIGHT, description="Golfer handedness")

    class Config:
        json_schema_extra = {
            "example": {
                "keypoint": {"x": 960.0, "y": 540.0, "score": 0.9},
                "video_width": 1920,
                "video_height": 1080,
                "viewport_width": 400,
                "viewport_height": 400,
                "container_scale": 1.0,
                "overlay_scale": 0.475,
                "handedness": "right"
            }
        }


class OverlayPointResponse(BaseModel):
    x: float = Field(..., description="Display x (px)")
    y: float = Field(..., description="Display y (px)")
    transform: str = Field(..., description="CSS transform of the reference container")


# =============================================================================
# Reference & Health
# =============================================================================

class ReferenceSwingResponse(BaseModel):
    """A built-in reference swing."""
    name: str
    video: str
    handedness: HandednessEnum
    phases: Dict[str, str]
    translate_pct: float = Field(..., description="Base horizontal overlay translate (%)")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    mediapipe_available: bool = Field(..., description="Whether MediaPipe is loaded")
