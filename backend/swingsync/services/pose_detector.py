"""
Pose Detector Service

Wrapper around MediaPipe Pose for detecting body keypoints in images.
Converts MediaPipe's 33 landmarks to the 17-point COCO layout used
throughout the package, in pixel coordinates of the processed frame.
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np
import mediapipe as mp

from ..config import MEDIAPIPE_CONFIG
from ..domain.pose import BodyPart, Keypoint, PoseSample

logger = logging.getLogger(__name__)


# MediaPipe landmark index for each COCO keypoint
MEDIAPIPE_TO_COCO = {
    BodyPart.NOSE: 0,
    BodyPart.LEFT_EYE: 2,
    BodyPart.RIGHT_EYE: 5,
    BodyPart.LEFT_EAR: 7,
    BodyPart.RIGHT_EAR: 8,
    BodyPart.LEFT_SHOULDER: 11,
    BodyPart.RIGHT_SHOULDER: 12,
    BodyPart.LEFT_ELBOW: 13,
    BodyPart.RIGHT_ELBOW: 14,
    BodyPart.LEFT_WRIST: 15,
    BodyPart.RIGHT_WRIST: 16,
    BodyPart.LEFT_HIP: 23,
    BodyPart.RIGHT_HIP: 24,
    BodyPart.LEFT_KNEE: 25,
    BodyPart.RIGHT_KNEE: 26,
    BodyPart.LEFT_ANKLE: 27,
    BodyPart.RIGHT_ANKLE: 28,
}


class PoseSource(ABC):
    """
    A single-person pose model.

    estimate_poses() returns zero or one sample per frame. Callers treat an
    empty result as "no sample this frame".
    """

    @abstractmethod
    async def estimate_poses(self, frame: Any, timestamp: float) -> list[PoseSample]:
        ...

    def close(self) -> None:
        """Release model resources."""


class PoseDetector(PoseSource):
    """
    MediaPipe Pose behind the PoseSource interface.

    Synchronous callers use detect_pose() or detect_from_base64() directly;
    the tracker awaits estimate_poses(), which runs the model in a worker
    thread. Close the detector when done, or use it in a with block:

        with PoseDetector(static_image_mode=True) as detector:
            sample = detector.detect_pose(frame, timestamp=1.5)
    """

    _mp_pose: Any

    def __init__(
        self,
        model_complexity: int = MEDIAPIPE_CONFIG['model_complexity'],
        min_detection_confidence: float = MEDIAPIPE_CONFIG['min_detection_confidence'],
        min_tracking_confidence: float = MEDIAPIPE_CONFIG['min_tracking_confidence'],
        static_image_mode: bool = False,
    ):
        """
        Args:
            model_complexity: 0 (lite), 1 (full) or 2 (heavy).
            min_detection_confidence: Threshold for finding a person.
            min_tracking_confidence: Threshold for keeping the track between frames.
            static_image_mode: Detect from scratch on every image instead of tracking.
        """
        self._mp_pose = mp.solutions.pose  # type: ignore[attr-defined]

        self.pose = self._mp_pose.Pose(
            static_image_mode=static_image_mode,
            model_complexity=model_complexity,
            smooth_landmarks=MEDIAPIPE_CONFIG['smooth_landmarks'],
            enable_segmentation=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self._closed = False

    def __enter__(self) -> "PoseDetector":
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any]
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the MediaPipe graph. Safe to call twice."""
        if not self._closed:
            self._closed = True
            self.pose.close()

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def detect_pose(
        self,
        image: np.ndarray,
        timestamp: float = 0.0,
    ) -> Optional[PoseSample]:
        """
        Estimate the pose in one frame.

        Args:
            image: Frame as decoded by OpenCV (BGR)
            timestamp: Stream time of the frame in seconds

        Returns:
            PoseSample with 17 keypoints in pixels, or None when nobody is visible
        """
        # MediaPipe wants RGB
        if image.ndim == 3 and image.shape[2] == 3:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        else:
            rgb = image

        results = self.pose.process(rgb)
        if not results.pose_landmarks:
            return None

        height, width = image.shape[:2]
        return PoseSample(
            keypoints=self._convert_landmarks(results.pose_landmarks.landmark, width, height),
            timestamp=timestamp,
            image_width=width,
            image_height=height,
        )

    async def estimate_poses(self, frame: Any, timestamp: float) -> list[PoseSample]:
        """
        Run detection off the event loop.

        Failures are logged and reported as no sample.
        """
        if frame is None:
            return []
        try:
            sample = await asyncio.to_thread(self.detect_pose, frame, timestamp)
        except Exception as e:
            logger.warning(f"Pose estimation failed at {timestamp:.2f}s: {e}")
            return []
        return [sample] if sample is not None else []

    def detect_from_base64(
        self,
        base64_image: str,
        timestamp: float = 0.0,
    ) -> Optional[PoseSample]:
        """Decode a base64 JPEG/PNG sent by the frontend and detect on it."""
        raw = np.frombuffer(base64.b64decode(base64_image), np.uint8)
        image = cv2.imdecode(raw, cv2.IMREAD_COLOR)
        if image is None:
            return None
        return self.detect_pose(image, timestamp)

    @staticmethod
    def _convert_landmarks(
        mp_landmarks: Any,
        width: int,
        height: int,
    ) -> list[Keypoint]:
        """Pick the COCO subset of the 33 landmarks and scale to pixels."""
        return [
            Keypoint(
                x=mp_landmarks[index].x * width,
                y=mp_landmarks[index].y * height,
                score=mp_landmarks[index].visibility,
            )
            for index in (MEDIAPIPE_TO_COCO[part] for part in BodyPart)
        ]
