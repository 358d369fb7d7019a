"""
API Schemas

Pydantic models for request/response validation.
"""

from .pose import (
    KeypointSchema,
    PoseSampleSchema,
    PoseDetectionRequest,
    PoseDetectionResponse,
    WebSocketMessageType,
    WebSocketMessage,
    FrameMessage,
    DetectPhasesMessage,
    PoseResultMessage,
)

from .analysis import (
    SwingPhaseEnum,
    HandednessEnum,
    PhaseDetectionRequest,
    PhaseDetectionResponse,
    PlaybackRateRequest,
    PlaybackRateResponse,
    CalibrationRequest,
    BodyMeasurementSchema,
    CalibrationResponse,
    OverlayPointRequest,
    OverlayPointResponse,
    ReferenceSwingResponse,
    HealthResponse,
)

__all__ = [
    # Pose schemas
    "KeypointSchema",
    "PoseSampleSchema",
    "PoseDetectionRequest",
    "PoseDetectionResponse",
    "WebSocketMessageType",
    "WebSocketMessage",
    "FrameMessage",
    "DetectPhasesMessage",
    "PoseResultMessage",
    # Analysis schemas
    "SwingPhaseEnum",
    "HandednessEnum",
    "PhaseDetectionRequest",
    "PhaseDetectionResponse",
    "PlaybackRateRequest",
    "PlaybackRateResponse",
    "CalibrationRequest",
    "BodyMeasurementSchema",
    "CalibrationResponse",
    "OverlayPointRequest",
    "OverlayPointResponse",
    "ReferenceSwingResponse",
    "HealthResponse",
]
