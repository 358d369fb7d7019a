"""Pytest configuration and fixtures."""

import asyncio
from typing import Optional

import pytest

from swingsync.domain.pose import BodyPart, Keypoint, PoseSample, PoseSequence
from swingsync.errors import MediaOperationError
from swingsync.services.media import MediaEvent, MediaStream
from swingsync.services.pose_detector import PoseSource


def build_keypoints(
    arm_y: float = 300.0,
    nose_y: float = 50.0,
    ankle_y: float = 450.0,
    score: float = 0.9,
    hidden: tuple = (),
) -> list[Keypoint]:
    """17 keypoints of a standing golfer.

    Both arms are straight and horizontal at arm_y, so the elbow angle is
    180 degrees and the composite signal only follows arm_y.
    """
    positions = {
        BodyPart.NOSE: (320.0, nose_y),
        BodyPart.LEFT_EYE: (310.0, nose_y - 5),
        BodyPart.RIGHT_EYE: (330.0, nose_y - 5),
        BodyPart.LEFT_EAR: (300.0, nose_y),
        BodyPart.RIGHT_EAR: (340.0, nose_y),
        BodyPart.LEFT_SHOULDER: (100.0, arm_y),
        BodyPart.RIGHT_SHOULDER: (200.0, arm_y),
        BodyPart.LEFT_ELBOW: (120.0, arm_y),
        BodyPart.RIGHT_ELBOW: (180.0, arm_y),
        BodyPart.LEFT_WRIST: (140.0, arm_y),
        BodyPart.RIGHT_WRIST: (160.0, arm_y),
        BodyPart.LEFT_HIP: (290.0, 300.0),
        BodyPart.RIGHT_HIP: (350.0, 300.0),
        BodyPart.LEFT_KNEE: (285.0, 380.0),
        BodyPart.RIGHT_KNEE: (355.0, 380.0),
        BodyPart.LEFT_ANKLE: (280.0, ankle_y),
        BodyPart.RIGHT_ANKLE: (360.0, ankle_y),
    }
    return [
        Keypoint(
            x=positions[part][0],
            y=positions[part][1],
            score=0.0 if part in hidden else score,
        )
        for part in BodyPart
    ]


def build_sample(timestamp: float, **kwargs) -> PoseSample:
    image_height = kwargs.pop("image_height", None)
    return PoseSample(
        keypoints=build_keypoints(**kwargs),
        timestamp=timestamp,
        image_height=image_height,
    )


# Hands low at address, up to the top, down through impact, above the head
SWING_ARM_Y = [
    300, 300, 300, 280, 250, 210, 170, 150, 170,
    220, 280, 300, 260, 200, 120, 60, 40, 40,
]


class FakeMediaStream(MediaStream):
    """Media stream whose clock only moves when the test says so."""

    def __init__(
        self,
        name: str = "stream",
        duration: float = 10.0,
        fail_play: bool = False,
        fail_seek: bool = False,
        settle_seeks: bool = True,
    ):
        super().__init__(name)
        self._duration = duration
        self._position = 0.0
        self._rate = 1.0
        self._paused = True
        self._ended = False
        self.fail_play = fail_play
        self.fail_seek = fail_seek
        self.settle_seeks = settle_seeks
        self.calls: list = []

    @property
    def current_time(self) -> float:
        return self._position

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        if self.fail_seek:
            raise MediaOperationError(f"{self.name} seek rejected")
        self._position = max(0.0, min(self._duration, seconds))
        self._ended = False
        self.calls.append(("seek", round(self._position, 3)))
        if not self.settle_seeks:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.emit(MediaEvent.SEEKED)
            return
        loop.call_soon(self.emit, MediaEvent.SEEKED)

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def playback_rate(self) -> float:
        return self._rate

    @playback_rate.setter
    def playback_rate(self, rate: float) -> None:
        self._rate = rate

    async def play(self) -> None:
        if self.fail_play:
            raise MediaOperationError(f"{self.name} play rejected")
        self._paused = False
        self.calls.append("play")

    async def pause(self) -> None:
        self._paused = True
        self.calls.append("pause")

    def advance_to(self, seconds: float, ended: bool = False) -> None:
        """Move the playhead as playback would and notify listeners."""
        self._position = seconds
        self._ended = ended
        self.emit(MediaEvent.TIMEUPDATE)
        if ended:
            self.emit(MediaEvent.ENDED)


class FakePoseSource(PoseSource):
    """Pose source returning a standing pose at the requested time."""

    def __init__(self, gate: Optional[asyncio.Event] = None, arm_y: float = 300.0):
        self.gate = gate
        self.arm_y = arm_y
        self.nose_y = 50.0
        self.calls = 0
        self.closed = False

    async def estimate_poses(self, frame, timestamp: float) -> list[PoseSample]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return [build_sample(timestamp, arm_y=self.arm_y, nose_y=self.nose_y)]

    def detect_from_base64(self, base64_image: str, timestamp: float = 0.0) -> Optional[PoseSample]:
        if base64_image == "empty":
            return None
        return build_sample(timestamp)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_sample():
    """Factory for PoseSample objects of a standing golfer."""
    return build_sample


@pytest.fixture
def standing_sample():
    """A fully visible standing pose at t=0."""
    return build_sample(0.0)


@pytest.fixture
def swing_sequence():
    """A synthetic swing sampled every 0.1s from t=1.0."""
    return PoseSequence([
        build_sample(1.0 + i * 0.1, arm_y=y)
        for i, y in enumerate(SWING_ARM_Y)
    ])


@pytest.fixture
def user_stream():
    return FakeMediaStream(name="user", duration=10.0)


@pytest.fixture
def reference_stream():
    return FakeMediaStream(name="reference", duration=6.0)
