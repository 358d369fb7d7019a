"""
WebSocket Handler

Pose tracking via WebSocket connection.
The frontend streams the frames of the user's swing, receives a pose for
each one and finally asks for the swing phases of everything it sent.
"""

import json
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .schemas import (
    WebSocketMessageType,
    FrameMessage,
    DetectPhasesMessage,
    PoseResultMessage,
    PoseSampleSchema,
)
from swingsync.domain import Handedness, PoseSequence
from swingsync.services import PhaseDetector, PoseDetector

logger = logging.getLogger(__name__)


@dataclass
class TrackingState:
    """Detector and collected samples of one connection."""
    detector: PoseDetector
    sequence: PoseSequence = field(default_factory=PoseSequence)


class ConnectionManager:
    """
    Keeps the tracking state of every open socket.

    Each connection owns a detector, created on connect and closed
    on disconnect.
    """

    def __init__(self, detector_factory: Optional[Callable[[], PoseDetector]] = None):
        self.tracking: dict[WebSocket, TrackingState] = {}
        self.detector_factory = detector_factory or self._default_detector

    @staticmethod
    def _default_detector() -> PoseDetector:
        # Video frames arrive in order, so tracking mode is left on
        return PoseDetector(model_complexity=1, static_image_mode=False)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.tracking[websocket] = TrackingState(detector=self.detector_factory())
        logger.info(f"Tracking session opened ({len(self.tracking)} active)")

    def disconnect(self, websocket: WebSocket) -> None:
        state = self.tracking.pop(websocket, None)
        if state is not None:
            state.detector.close()
        logger.info(f"Tracking session closed ({len(self.tracking)} active)")

    def get_state(self, websocket: WebSocket) -> Optional[TrackingState]:
        return self.tracking.get(websocket)

    async def send_json(self, websocket: WebSocket, data: dict) -> None:
        """Send a payload, logging rather than raising if the socket is gone."""
        try:
            await websocket.send_json(data)
        except Exception as e:
            logger.error(f"Could not send to client: {e}")

    async def send_message(self, websocket: WebSocket, msg_type: WebSocketMessageType, data: dict) -> None:
        await self.send_json(websocket, {
            "type": msg_type.value,
            "data": data,
            "timestamp": int(time.time() * 1000)
        })

    async def send_error(self, websocket: WebSocket, error: str) -> None:
        await self.send_message(websocket, WebSocketMessageType.ERROR, {"error": error})


manager = ConnectionManager()


async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint for swing tracking.

    Protocol:
    1. Client connects and receives session_started
    2. Client sends each frame as a base64 image with its video time
    3. Server answers every frame with a 17-keypoint pose
    4. Client sends detect_phases with the marked Setup time
    5. Client sends end_session when done

    Client messages:
    {
        "type": "frame",
        "data": {"image_base64": "<jpeg>", "frame_number": 0, "video_time": 0.40},
        "timestamp": 0
    }
    {
        "type": "detect_phases",
        "data": {"setup_time": 0.40, "handedness": "right"},
        "timestamp": 0
    }

    Server messages:
    {
        "type": "pose_result",
        "data": {"frame_number": 0, "pose": {...}, "tracked_samples": 1, "processing_time_ms": 31.0},
        "timestamp": <ms>
    }
    {
        "type": "phases_detected",
        "data": {"phases": {"Back": "0.90", ...}, "sample_count": 60},
        "timestamp": <ms>
    }
    """
    await manager.connect(websocket)

    try:
        await manager.send_message(
            websocket,
            WebSocketMessageType.SESSION_STARTED,
            {"message": "Connected to SwingSync pose tracking"},
        )

        while True:
            try:
                message = await websocket.receive_json()
                kind = message.get("type")

                if kind == WebSocketMessageType.FRAME.value:
                    await handle_frame(websocket, message)

                elif kind == WebSocketMessageType.DETECT_PHASES.value:
                    await handle_detect_phases(websocket, message)

                elif kind == WebSocketMessageType.END_SESSION.value:
                    await manager.send_message(
                        websocket,
                        WebSocketMessageType.SESSION_ENDED,
                        {"message": "Session ended"},
                    )
                    break

                else:
                    await manager.send_error(websocket, f"Unknown message type: {kind}")

            except json.JSONDecodeError:
                await manager.send_error(websocket, "Invalid JSON")

    except WebSocketDisconnect:
        logger.info("Client went away")
    except Exception as e:
        logger.error(f"Tracking session failed: {e}")
    finally:
        manager.disconnect(websocket)


async def handle_frame(websocket: WebSocket, message: dict) -> None:
    """
    Estimate the pose in one frame and add it to the connection's sequence.
    """
    start_time = time.time()

    try:
        frame = FrameMessage(**message.get("data", {}))
    except ValidationError:
        await manager.send_error(websocket, "No image data provided")
        return

    state = manager.get_state(websocket)
    if not state:
        await manager.send_error(websocket, "Detector not initialized")
        return

    try:
        sample = state.detector.detect_from_base64(frame.image_base64, timestamp=frame.video_time)
    except Exception as e:
        logger.error(f"Frame {frame.frame_number} failed: {e}")
        await manager.send_error(websocket, str(e))
        return

    pose = None
    if sample is not None:
        pose = PoseSampleSchema.from_domain(sample)
        try:
            state.sequence.append(sample)
        except ValueError as e:
            # Frames sent out of order are returned but not tracked
            logger.debug(f"Frame {frame.frame_number} not tracked: {e}")

    processing_time = (time.time() - start_time) * 1000

    result = PoseResultMessage(
        frame_number=frame.frame_number,
        pose=pose,
        tracked_samples=len(state.sequence),
        processing_time_ms=processing_time,
    )
    await manager.send_message(websocket, WebSocketMessageType.POSE_RESULT, result.model_dump())


async def handle_detect_phases(websocket: WebSocket, message: dict) -> None:
    """
    Detect swing phases on the samples tracked by this connection.
    """
    try:
        request = DetectPhasesMessage(**message.get("data", {}))
        handedness = Handedness(request.handedness)
    except (ValidationError, ValueError) as e:
        await manager.send_error(websocket, f"Invalid detect_phases request: {e}")
        return

    state = manager.get_state(websocket)
    if not state:
        await manager.send_error(websocket, "Detector not initialized")
        return

    detector = PhaseDetector(right_handed=handedness == Handedness.RIGHT)
    phases = detector.detect(state.sequence, request.setup_time)

    await manager.send_message(websocket, WebSocketMessageType.PHASES_DETECTED, {
        "phases": phases,
        "sample_count": len(state.sequence),
    })
