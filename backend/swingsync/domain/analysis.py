"""
Swing Comparison Domain Models

Data structures for swing phases, body measurements, overlay calibration
and replay sessions.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Union

from ..config import REFERENCE_SWINGS
from ..errors import InvalidPhaseOrderError


class SwingPhase(Enum):
    """
    The five marked instants of a golf swing.

    - SETUP: Address position before the takeaway
    - BACK: Takeaway has clearly started
    - APEX: Top of the backswing
    - IMPACT: Club meets ball
    - FOLLOW: Follow-through
    """
    SETUP = "Setup"
    BACK = "Back"
    APEX = "Apex"
    IMPACT = "Impact"
    FOLLOW = "Follow"

    @classmethod
    def parse(cls, value: Union["SwingPhase", str]) -> "SwingPhase":
        """Accept an enum member or its name/value in any case."""
        if isinstance(value, cls):
            return value
        for phase in cls:
            if value.lower() in (phase.value.lower(), phase.name.lower()):
                return phase
        raise ValueError(f"Unknown swing phase: {value}")


class Handedness(Enum):
    RIGHT = "right"
    LEFT = "left"


PhaseValue = Union[str, float, int, None]


def format_timestamp(seconds: float) -> str:
    """Format seconds with the 2-decimal precision used for phase marks."""
    return f"{seconds:.2f}"


def parse_timestamp(value: PhaseValue) -> Optional[float]:
    """Convert a stored phase value to seconds, or None if not numeric."""
    if value is None or value == "":
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(seconds):
        return None
    return seconds


@dataclass
class SwingPhases:
    """
    Timestamps marked for each swing phase.

    Values are strings with 2-decimal precision. Each phase has at most
    one entry; marking it again replaces the previous value.
    """
    marks: dict[SwingPhase, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Mapping[Union[SwingPhase, str], PhaseValue]) -> "SwingPhases":
        """Build from a name -> seconds/string mapping, skipping empty values."""
        phases = cls()
        for key, value in values.items():
            seconds = parse_timestamp(value)
            if seconds is not None:
                phases.set(SwingPhase.parse(key), seconds)
        return phases

    def set(self, phase: SwingPhase, seconds: float) -> str:
        """Store a phase timestamp and return its formatted value."""
        value = format_timestamp(seconds)
        self.marks[phase] = value
        return value

    def get(self, phase: SwingPhase) -> Optional[str]:
        return self.marks.get(phase) or None

    def seconds(self, phase: SwingPhase) -> Optional[float]:
        """Get a phase timestamp in seconds (None if unmarked)."""
        return parse_timestamp(self.marks.get(phase))

    def is_marked(self, phase: SwingPhase) -> bool:
        return bool(self.marks.get(phase))

    def clear(self) -> None:
        self.marks.clear()

    @property
    def all_marked(self) -> bool:
        """True when all five phases have a non-empty value."""
        return all(self.is_marked(phase) for phase in SwingPhase)

    @property
    def missing(self) -> list[SwingPhase]:
        return [phase for phase in SwingPhase if not self.is_marked(phase)]

    def to_dict(self) -> dict[str, str]:
        """Name -> timestamp string, in swing order."""
        return {
            phase.value: self.marks[phase]
            for phase in SwingPhase
            if self.is_marked(phase)
        }


@dataclass(frozen=True)
class BodyMeasurement:
    """
    Head-to-ankle measurement of one subject.

    Attributes:
        height: Vertical distance between nose and mean ankle (> 0)
        head_y: Nose y position
        avg_ankle_y: Mean y of both ankles
    """
    height: float
    head_y: float
    avg_ankle_y: float


@dataclass
class CalibrationState:
    """
    Scale and offset that align the reference subject with the user.

    Holds the defaults until both body measurements exist.
    """
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def reset(self) -> None:
        self.scale = 1.0
        self.offset_x = 0.0
        self.offset_y = 0.0


class ReplayState(Enum):
    """Replay engine states. Completion and errors both return to IDLE."""
    IDLE = "idle"
    PREPARING = "preparing"
    PLAYING = "playing"


@dataclass(frozen=True)
class ReplaySession:
    """
    One synchronized replay from Back to Follow for both subjects.

    Built fresh for every replay request; not persisted.
    """
    user_back: float
    user_follow: float
    ref_back: float
    ref_follow: float
    rate: float

    def __post_init__(self) -> None:
        if not self.user_follow > self.user_back:
            raise InvalidPhaseOrderError("user", self.user_back, self.user_follow)
        if not self.ref_follow > self.ref_back:
            raise InvalidPhaseOrderError("reference", self.ref_back, self.ref_follow)
        if not self.rate > 0:
            raise ValueError(f"Playback rate must be positive, got {self.rate}")

    @classmethod
    def from_phases(
        cls,
        user: SwingPhases,
        reference: SwingPhases,
    ) -> "ReplaySession":
        """
        Build a session from both subjects' marked phases.

        Raises:
            InvalidPhaseOrderError: Back/Follow missing or out of order
        """
        user_back = user.seconds(SwingPhase.BACK)
        user_follow = user.seconds(SwingPhase.FOLLOW)
        ref_back = reference.seconds(SwingPhase.BACK)
        ref_follow = reference.seconds(SwingPhase.FOLLOW)

        if user_back is None or user_follow is None:
            raise InvalidPhaseOrderError("user", user_back, user_follow)
        if ref_back is None or ref_follow is None:
            raise InvalidPhaseOrderError("reference", ref_back, ref_follow)
        if not user_follow > user_back:
            raise InvalidPhaseOrderError("user", user_back, user_follow)
        if not ref_follow > ref_back:
            raise InvalidPhaseOrderError("reference", ref_back, ref_follow)

        rate = (ref_follow - ref_back) / (user_follow - user_back)
        return cls(
            user_back=user_back,
            user_follow=user_follow,
            ref_back=ref_back,
            ref_follow=ref_follow,
            rate=rate,
        )

    @property
    def user_duration(self) -> float:
        return self.user_follow - self.user_back

    @property
    def ref_duration(self) -> float:
        return self.ref_follow - self.ref_back


@dataclass(frozen=True)
class ReferenceSwing:
    """A built-in reference recording with its pre-marked phases."""
    name: str
    video: str
    handedness: Handedness
    phases: SwingPhases

    @property
    def translate_sign(self) -> int:
        """Reference is drawn right of a right-hander and left of a left-hander."""
        return -1 if self.handedness == Handedness.LEFT else 1


def reference_for(handedness: Union[Handedness, str] = Handedness.RIGHT) -> ReferenceSwing:
    """Get the reference swing matching the golfer's handedness."""
    handedness = Handedness(handedness)
    preset = REFERENCE_SWINGS[handedness.value]
    return ReferenceSwing(
        name=preset["name"],
        video=preset["video"],
        handedness=handedness,
        phases=SwingPhases.from_mapping(preset["phases"]),
    )
