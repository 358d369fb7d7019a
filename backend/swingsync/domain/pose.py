"""
Pose Domain Models

Data structures for representing human body keypoints produced by
a single-person pose model.

Keypoints follow the 17-point COCO/MoveNet layout:
https://www.tensorflow.org/hub/tutorials/movenet
"""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Iterator, Optional

from ..config import VISIBILITY_THRESHOLD


class BodyPart(IntEnum):
    """
    COCO keypoint indices.

    Both the user and the reference subject use this layout. Pose models
    with a different landmark set are converted to it at the source.
    """
    # Face
    NOSE = 0
    LEFT_EYE = 1
    RIGHT_EYE = 2
    LEFT_EAR = 3
    RIGHT_EAR = 4

    # Upper body
    LEFT_SHOULDER = 5
    RIGHT_SHOULDER = 6
    LEFT_ELBOW = 7
    RIGHT_ELBOW = 8
    LEFT_WRIST = 9
    RIGHT_WRIST = 10

    # Lower body
    LEFT_HIP = 11
    RIGHT_HIP = 12
    LEFT_KNEE = 13
    RIGHT_KNEE = 14
    LEFT_ANKLE = 15
    RIGHT_ANKLE = 16


NUM_KEYPOINTS = len(BodyPart)


@dataclass(frozen=True)
class Keypoint:
    """
    A single body keypoint with position and confidence.

    Attributes:
        x: Horizontal position in the detection model's frame
        y: Vertical position (grows downward)
        score: Confidence score (0.0 to 1.0)
    """
    x: float
    y: float
    score: float

    def is_visible(self, threshold: float = VISIBILITY_THRESHOLD) -> bool:
        """Check if keypoint confidence is above the visibility threshold."""
        return self.score > threshold


@dataclass(frozen=True)
class PoseSample:
    """
    One timestamped set of keypoints from the pose model.

    Attributes:
        keypoints: 17 keypoints indexed by BodyPart
        timestamp: Stream-relative time in seconds
        image_width: Width of the frame the coordinates refer to (if known)
        image_height: Height of the frame the coordinates refer to (if known)
    """
    keypoints: tuple[Keypoint, ...]
    timestamp: float
    image_width: Optional[int] = None
    image_height: Optional[int] = None

    def __post_init__(self) -> None:
        # Accept any sequence but store an immutable tuple
        object.__setattr__(self, "keypoints", tuple(self.keypoints))

    def get_keypoint(self, body_part: BodyPart) -> Optional[Keypoint]:
        """Get a specific keypoint by body part."""
        index = int(body_part)
        if 0 <= index < len(self.keypoints):
            return self.keypoints[index]
        return None

    def get_visible(self, body_part: BodyPart) -> Optional[Keypoint]:
        """Get a keypoint only if it is visible."""
        keypoint = self.get_keypoint(body_part)
        if keypoint is not None and keypoint.is_visible():
            return keypoint
        return None

    def get_visible_keypoints(self) -> list[Keypoint]:
        """Get all keypoints above the visibility threshold."""
        return [kp for kp in self.keypoints if kp.is_visible()]

    # -------------------------------------------------------------------------
    # Convenience methods for common keypoint groups
    # -------------------------------------------------------------------------

    @property
    def wrists(self) -> tuple[Optional[Keypoint], Optional[Keypoint]]:
        return (
            self.get_keypoint(BodyPart.LEFT_WRIST),
            self.get_keypoint(BodyPart.RIGHT_WRIST),
        )

    @property
    def elbows(self) -> tuple[Optional[Keypoint], Optional[Keypoint]]:
        return (
            self.get_keypoint(BodyPart.LEFT_ELBOW),
            self.get_keypoint(BodyPart.RIGHT_ELBOW),
        )

    @property
    def shoulders(self) -> tuple[Optional[Keypoint], Optional[Keypoint]]:
        return (
            self.get_keypoint(BodyPart.LEFT_SHOULDER),
            self.get_keypoint(BodyPart.RIGHT_SHOULDER),
        )

    @property
    def ankles(self) -> tuple[Optional[Keypoint], Optional[Keypoint]]:
        return (
            self.get_keypoint(BodyPart.LEFT_ANKLE),
            self.get_keypoint(BodyPart.RIGHT_ANKLE),
        )

    def arm(self, left: bool) -> tuple[Optional[Keypoint], ...]:
        """Get shoulder, elbow and wrist of one arm."""
        if left:
            parts = (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_ELBOW, BodyPart.LEFT_WRIST)
        else:
            parts = (BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_ELBOW, BodyPart.RIGHT_WRIST)
        return tuple(self.get_keypoint(part) for part in parts)


@dataclass
class PoseSequence:
    """
    Samples of one stream ordered by timestamp.

    Timestamps must be strictly increasing; a sample sharing a timestamp
    with an earlier one is rejected.
    """
    samples: list[PoseSample] = field(default_factory=list)

    def __post_init__(self) -> None:
        samples = list(self.samples)
        self.samples = []
        self.extend(samples)

    def append(self, sample: PoseSample) -> None:
        """Add a sample after the current last one."""
        if self.samples and sample.timestamp <= self.samples[-1].timestamp:
            raise ValueError(
                f"Sample at {sample.timestamp}s is not after "
                f"{self.samples[-1].timestamp}s"
            )
        self.samples.append(sample)

    def extend(self, samples: Iterable[PoseSample]) -> None:
        for sample in samples:
            self.append(sample)

    def clear(self) -> None:
        self.samples.clear()

    @property
    def timestamps(self) -> list[float]:
        return [s.timestamp for s in self.samples]

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[PoseSample]:
        return iter(self.samples)

    def __getitem__(self, index: int) -> PoseSample:
        return self.samples[index]
