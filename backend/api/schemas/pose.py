"""
Pose API Schemas

Pydantic models for pose-related API requests and responses.
These define the JSON structure for communication with frontend.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum

from swingsync.domain.pose import BodyPart, Keypoint, PoseSample, NUM_KEYPOINTS


class KeypointSchema(BaseModel):
    """
    Single body keypoint in API requests and responses.

    Coordinates are in pixels of the frame the pose was detected in.
    """
    x: float = Field(..., description="Horizontal position (px)")
    y: float = Field(..., description="Vertical position (px, down is positive)")
    score: float = Field(..., ge=0.0, le=1.0, description="Detection confidence")
    body_part: Optional[str] = Field(None, description="Body part name (e.g., 'LEFT_WRIST')")

    class Config:
        json_schema_extra = {
            "example": {
                "x": 412.0,
                "y": 238.5,
                "score": 0.91,
                "body_part": "LEFT_WRIST"
            }
        }

    def to_domain(self) -> Keypoint:
        return Keypoint(x=self.x, y=self.y, score=self.score)


class PoseSampleSchema(BaseModel):
    """
    One timestamped pose.

    Contains the 17 COCO keypoints in BodyPart order.
    """
    keypoints: List[KeypointSchema] = Field(
        ...,
        min_length=NUM_KEYPOINTS,
        max_length=NUM_KEYPOINTS,
        description="17 body keypoints"
    )
    timestamp: float = Field(..., ge=0.0, description="Video time in seconds")
    image_width: Optional[int] = Field(None, gt=0, description="Frame width (px)")
    image_height: Optional[int] = Field(None, gt=0, description="Frame height (px)")

    class Config:
        json_schema_extra = {
            "example": {
                "keypoints": [
                    {"x": 320.0, "y": 90.0, "score": 0.98, "body_part": "NOSE"}
                ],
                "timestamp": 1.25,
                "image_width": 640,
                "image_height": 480
            }
        }

    def to_domain(self) -> PoseSample:
        return PoseSample(
            keypoints=[kp.to_domain() for kp in self.keypoints],
            timestamp=self.timestamp,
            image_width=self.image_width,
            image_height=self.image_height,
        )

    @classmethod
    def from_domain(cls, sample: PoseSample) -> "PoseSampleSchema":
        return cls(
            keypoints=[
                KeypointSchema(
                    x=kp.x,
                    y=kp.y,
                    score=max(0.0, min(1.0, kp.score)),
                    body_part=BodyPart(index).name,
                )
                for index, kp in enumerate(sample.keypoints)
            ],
            timestamp=sample.timestamp,
            image_width=sample.image_width,
            image_height=sample.image_height,
        )


class PoseDetectionRequest(BaseModel):
    """
    Request to detect pose in a base64-encoded image.

    Used for single-frame detection via REST API.
    """
    image_base64: str = Field(..., description="Base64 encoded JPEG/PNG image")
    timestamp: float = Field(0.0, ge=0.0, description="Optional video time in seconds")

    class Config:
        json_schema_extra = {
            "example": {
                "image_base64": "/9j/4AAQSkZJRg...",
                "timestamp": 0.0
            }
        }


class PoseDetectionResponse(BaseModel):
    """
    Response from pose detection.
    """
    success: bool = Field(..., description="Whether detection succeeded")
    pose: Optional[PoseSampleSchema] = Field(None, description="Detected pose (null if no person found)")
    error: Optional[str] = Field(None, description="Error message if failed")
    processing_time_ms: float = Field(..., description="Time taken to process in milliseconds")


# =============================================================================
# WebSocket Message Schemas
# =============================================================================

class WebSocketMessageType(str, Enum):
    """Types of WebSocket messages."""
    # Client -> Server
    FRAME = "frame"                    # Send video frame for pose detection
    DETECT_PHASES = "detect_phases"    # Detect phases on frames received so far
    END_SESSION = "end_session"        # End session

    # Server -> Client
    POSE_RESULT = "pose_result"        # Pose detection result
    PHASES_DETECTED = "phases_detected"
    ERROR = "error"                    # Error message
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"


class WebSocketMessage(BaseModel):
    """
    Base WebSocket message structure.

    All WebSocket communication uses this format.
    """
    type: WebSocketMessageType = Field(..., description="Message type")
    data: dict = Field(default_factory=dict, description="Message payload")
    timestamp: int = Field(..., description="Unix timestamp in milliseconds")

    class Config:
        json_schema_extra = {
            "example": {
                "type": "frame",
                "data": {"image_base64": "...", "frame_number": 12, "video_time": 0.4},
                "timestamp": 1704067200000
            }
        }


class FrameMessage(BaseModel):
    """
    WebSocket message containing a video frame.

    Sent from frontend to backend for pose tracking.
    """
    image_base64: str = Field(..., min_length=1, description="Base64 encoded frame")
    frame_number: int = Field(0, ge=0, description="Frame sequence number")
    video_time: float = Field(0.0, ge=0.0, description="Video time of the frame in seconds")


class DetectPhasesMessage(BaseModel):
    """Request to run phase detection on the frames tracked so far."""
    setup_time: float = Field(..., ge=0.0, description="Marked Setup time in seconds")
    handedness: str = Field("right", description="'right' or 'left'")


class PoseResultMessage(BaseModel):
    """
    WebSocket message containing pose detection result.

    Sent from backend to frontend after processing a frame.
    """
    frame_number: int = Field(..., description="Corresponding frame number")
    pose: Optional[PoseSampleSchema] = Field(None, description="Detected pose")
    tracked_samples: int = Field(..., description="Samples collected in this session")
    processing_time_ms: float = Field(..., description="Processing time")
