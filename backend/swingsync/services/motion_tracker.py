"""
Motion Tracker Service

Runs a pose source against one media stream.

Two modes:
- Live tracking: every frame notification while the stream plays is sent
  to the pose source. Frames arriving while an inference is still running
  are dropped, so inference always finishes before the next frame is taken.
- Single frame: seek to a timestamp, wait for the seek, detect once.

Each tracker owns its detector, its keypoint smoothing state and its
subscriptions. Trackers never share them across streams.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..config import KEYPOINT_SMOOTHING
from ..domain.analysis import BodyMeasurement
from ..domain.pose import Keypoint, PoseSample, PoseSequence
from ..errors import MediaOperationError
from .body_measurement import BodyMeasurementEstimator
from .media import MediaEvent, MediaStream, Subscription
from .pose_detector import PoseDetector, PoseSource

logger = logging.getLogger(__name__)


PoseSourceFactory = Callable[[], PoseSource]
SampleCallback = Callable[[PoseSample], None]


class MotionTracker:
    """
    Collects pose samples from one stream.

    Usage:
        async with MotionTracker(user_stream) as tracker:
            await user_stream.play()
            ...
        sequence = tracker.sequence

    Or for a single frame:
        tracker = MotionTracker(reference_stream)
        sample = await tracker.detect_once(3.88)
        await tracker.stop()
    """

    def __init__(
        self,
        stream: MediaStream,
        pose_source_factory: PoseSourceFactory = PoseDetector,
        smoothing: float = KEYPOINT_SMOOTHING,
        on_sample: Optional[SampleCallback] = None,
    ):
        """
        Args:
            stream: The stream to track
            pose_source_factory: Creates this tracker's pose source on start()
            smoothing: Weight of the previous keypoint position (0 disables)
            on_sample: Called with every accepted sample
        """
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"Smoothing must be in [0, 1), got {smoothing}")

        self.stream = stream
        self.pose_source_factory = pose_source_factory
        self.smoothing = smoothing
        self.on_sample = on_sample

        self.sequence = PoseSequence()
        self.measurement: Optional[BodyMeasurement] = None
        self.latest: Optional[PoseSample] = None

        self._source: Optional[PoseSource] = None
        self._subscriptions: list[Subscription] = []
        self._inflight: Optional[asyncio.Task] = None
        self._previous: Optional[tuple[Keypoint, ...]] = None
        self.dropped_frames = 0

    async def __aenter__(self) -> "MotionTracker":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Create the pose source and follow the stream's frames."""
        if self.running:
            return
        self._ensure_source()
        self._subscriptions.append(
            self.stream.subscribe(MediaEvent.FRAME, self._on_frame)
        )
        logger.info(f"Tracking started on {self.stream.name}")

    async def stop(self) -> None:
        """Remove subscriptions, let any inference finish, close the source."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            # Inference runs in a worker thread that can't be interrupted,
            # so the source may only be closed once it has returned
            await asyncio.wait([inflight])

        if self._source is not None:
            self._source.close()
            self._source = None
            logger.info(f"Tracking stopped on {self.stream.name}")

    def reset(self) -> None:
        """Forget collected samples, the measurement and smoothing state."""
        self.sequence.clear()
        self.measurement = None
        self.latest = None
        self._previous = None
        self.dropped_frames = 0

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    async def detect_once(self, timestamp: float) -> Optional[PoseSample]:
        """
        Seek the stream to a timestamp and detect a single pose there.

        The stream is left paused at that position.
        """
        self._ensure_source()
        await self.stream.pause()
        await self.stream.seek(timestamp)
        # Don't blend with a pose from another part of the video
        self._previous = None
        return await self._process(self.stream.current_time)

    def _ensure_source(self) -> PoseSource:
        if self._source is None:
            self._source = self.pose_source_factory()
        return self._source

    def _on_frame(self, stream: MediaStream) -> None:
        if stream.paused or stream.ended:
            return
        if self._inflight is not None and not self._inflight.done():
            self.dropped_frames += 1
            return
        self._inflight = asyncio.ensure_future(self._track(stream.current_time))

    async def _track(self, timestamp: float) -> None:
        try:
            await self._process(timestamp)
        except MediaOperationError as e:
            logger.error(f"{self.stream.name}: frame at {timestamp:.2f}s unavailable: {e}")

    async def _process(self, timestamp: float) -> Optional[PoseSample]:
        source = self._ensure_source()
        frame = await self.stream.grab_frame()
        poses = await source.estimate_poses(frame, timestamp)
        if not poses:
            return None
        sample = self._smooth(poses[0])
        self._accept(sample)
        return sample

    def _accept(self, sample: PoseSample) -> None:
        self.latest = sample

        if self.sequence.samples and sample.timestamp <= self.sequence[-1].timestamp:
            # Stream was seeked backwards; keep the sequence ordered
            logger.debug(
                f"{self.stream.name}: sample at {sample.timestamp:.2f}s "
                f"not after {self.sequence[-1].timestamp:.2f}s, skipped"
            )
        else:
            self.sequence.append(sample)

        if self.measurement is None:
            self.measurement = BodyMeasurementEstimator.estimate(sample)
            if self.measurement is not None:
                logger.info(f"{self.stream.name}: body height {self.measurement.height:.3f}")

        if self.on_sample is not None:
            self.on_sample(sample)

    def _smooth(self, sample: PoseSample) -> PoseSample:
        """Blend visible keypoints with their previous positions."""
        previous = self._previous
        if previous is None or self.smoothing == 0 or len(previous) != len(sample.keypoints):
            self._previous = sample.keypoints
            return sample

        keypoints = []
        for prev, current in zip(previous, sample.keypoints):
            if prev.is_visible() and current.is_visible():
                weight = self.smoothing
                keypoints.append(Keypoint(
                    x=prev.x * weight + current.x * (1 - weight),
                    y=prev.y * weight + current.y * (1 - weight),
                    score=current.score,
                ))
            else:
                keypoints.append(current)

        self._previous = tuple(keypoints)
        return PoseSample(
            keypoints=keypoints,
            timestamp=sample.timestamp,
            image_width=sample.image_width,
            image_height=sample.image_height,
        )
