"""
Compare Session

Everything one side-by-side comparison needs: the user's marked phases,
the reference swing, body measurements and calibration, overlay
adjustments and the replay engine driving both streams.

UI code talks to this object instead of the individual services.
"""

import logging
from typing import Mapping, Optional, Union

from ..domain.analysis import (
    BodyMeasurement,
    CalibrationState,
    Handedness,
    PhaseValue,
    ReferenceSwing,
    ReplaySession,
    SwingPhase,
    SwingPhases,
    parse_timestamp,
    reference_for,
)
from ..domain.pose import PoseSequence
from ..errors import IncompletePhasesError, PhaseAlreadyMarkedError
from .calibrator import ScaleCalibrator
from .media import MediaStream
from .overlay import ContainerTransform, OverlaySettings
from .phase_detector import PhaseDetector
from .playback_rate import calculate_playback_rate
from .synchronizer import ReplayEngine

logger = logging.getLogger(__name__)


class CompareSession:
    """
    State of one user-vs-reference comparison.

    Usage:
        session = CompareSession(user_stream, reference_stream, handedness="right")
        session.mark_phase("Setup", 0.40)
        session.detect_phases(tracker.sequence)
        await session.replay()
    """

    def __init__(
        self,
        user_stream: MediaStream,
        reference_stream: Optional[MediaStream] = None,
        handedness: Union[Handedness, str] = Handedness.RIGHT,
        speed: float = 1.0,
    ):
        self.user_stream = user_stream
        self.reference_stream = reference_stream
        self.reference: ReferenceSwing = reference_for(handedness)

        self.user_phases = SwingPhases()
        self.user_measurement: Optional[BodyMeasurement] = None
        self.reference_measurement: Optional[BodyMeasurement] = None
        self.calibration = CalibrationState()
        self.overlay = OverlaySettings()

        self.engine = ReplayEngine(user_stream, reference_stream, speed=speed)
        self.engine.set_rate(self.playback_rate)

    @property
    def handedness(self) -> Handedness:
        return self.reference.handedness

    @property
    def right_handed(self) -> bool:
        return self.handedness == Handedness.RIGHT

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def mark_phase(
        self,
        phase: Union[SwingPhase, str],
        seconds: Optional[float] = None,
        overwrite: bool = False,
    ) -> str:
        """
        Mark a phase at a time (default: the user stream's position).

        Raises:
            PhaseAlreadyMarkedError: The phase has a value and overwrite is False

        Returns:
            The stored timestamp string
        """
        phase = SwingPhase.parse(phase)
        if seconds is None:
            seconds = self.user_stream.current_time

        current = self.user_phases.get(phase)
        if current is not None and not overwrite:
            raise PhaseAlreadyMarkedError(phase.value, current)

        value = self.user_phases.set(phase, seconds)
        logger.info(f"Marked {phase.value} at {value}s")
        self._refresh_rate()
        return value

    def apply_detected_phases(self, detected: Mapping[str, PhaseValue]) -> list[SwingPhase]:
        """
        Fill phases the user has not marked.

        Returns:
            The phases that were filled
        """
        filled = []
        for key, value in detected.items():
            phase = SwingPhase.parse(key)
            seconds = parse_timestamp(value)
            if seconds is None or self.user_phases.is_marked(phase):
                continue
            self.user_phases.set(phase, seconds)
            filled.append(phase)

        if filled:
            logger.info(f"Filled detected phases: {', '.join(p.value for p in filled)}")
            self._refresh_rate()
        return filled

    def detect_phases(self, sequence: PoseSequence) -> dict[str, str]:
        """
        Run the phase detector on the user's samples and fill unmarked phases.

        Raises:
            ValueError: Setup has not been marked yet
        """
        setup_time = self.user_phases.seconds(SwingPhase.SETUP)
        if setup_time is None:
            raise ValueError("Setup must be marked before detecting phases")

        detected = PhaseDetector(right_handed=self.right_handed).detect(sequence, setup_time)
        self.apply_detected_phases(detected)
        return detected

    @property
    def comparison_mode(self) -> bool:
        """True once all five phases are marked."""
        return self.user_phases.all_marked

    @property
    def playback_rate(self) -> float:
        return calculate_playback_rate(self.user_phases, self.reference.phases)

    def _refresh_rate(self) -> None:
        if self.engine.is_idle:
            self.engine.set_rate(self.playback_rate)

    # -------------------------------------------------------------------------
    # Calibration
    # -------------------------------------------------------------------------

    def update_user_measurement(self, measurement: Optional[BodyMeasurement]) -> CalibrationState:
        self.user_measurement = measurement
        return self._recalibrate()

    def update_reference_measurement(self, measurement: Optional[BodyMeasurement]) -> CalibrationState:
        self.reference_measurement = measurement
        return self._recalibrate()

    def _recalibrate(self) -> CalibrationState:
        self.calibration = ScaleCalibrator.calibrate(
            self.user_measurement,
            self.reference_measurement,
        )
        return self.calibration

    # -------------------------------------------------------------------------
    # Overlay
    # -------------------------------------------------------------------------

    def move_overlay(self, dx: float, dy: float) -> None:
        """Shift the overlay by a pixel delta."""
        self.overlay.move(self.overlay.offset_x, self.overlay.offset_y, dx, dy)

    def reset_overlay(self) -> None:
        self.overlay.reset()

    def overlay_transform(self) -> ContainerTransform:
        return self.overlay.container_transform(self.reference.translate_sign)

    # -------------------------------------------------------------------------
    # Playback
    # -------------------------------------------------------------------------

    async def replay(self) -> ReplaySession:
        """
        Start a synchronized Back -> Follow replay.

        All five user phases must be marked. The session is validated
        before any stream is touched.

        Raises:
            IncompletePhasesError: A user phase is still unmarked
            InvalidPhaseOrderError: Back is not before Follow
            ReplayInProgressError: A replay is already running
            MediaOperationError: A stream rejected a seek or play
        """
        if not self.user_phases.all_marked:
            raise IncompletePhasesError([phase.value for phase in self.user_phases.missing])
        session = ReplaySession.from_phases(self.user_phases, self.reference.phases)
        await self.engine.start(session)
        return session

    def set_speed(self, speed: float) -> None:
        self.engine.set_speed(speed)

    def scrub(self, seconds: float) -> bool:
        """Move the user stream and keep the reference in step."""
        return self.engine.scrub(
            seconds,
            self.user_phases.seconds(SwingPhase.BACK),
            self.reference.phases.seconds(SwingPhase.BACK),
        )

    def sync_reference(self) -> bool:
        """Align the reference with the user's current position."""
        user_back = self.user_phases.seconds(SwingPhase.BACK)
        ref_back = self.reference.phases.seconds(SwingPhase.BACK)
        if user_back is None or ref_back is None:
            return False
        return self.engine.sync_reference(self.user_stream.current_time, user_back, ref_back)

    async def reset(self) -> None:
        """Stop any replay and clear marks, measurements and calibration."""
        await self.engine.cancel()
        self.user_phases.clear()
        self.user_measurement = None
        self.reference_measurement = None
        self.calibration.reset()
        self.engine.set_rate(self.playback_rate)
        logger.info("Swing phases reset")

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "handedness": self.handedness.value,
            "reference": self.reference.name,
            "phases": self.user_phases.to_dict(),
            "comparison_mode": self.comparison_mode,
            "playback_rate": self.playback_rate,
            "speed": self.engine.speed,
            "replay_state": self.engine.state.value,
            "calibration": {
                "scale": self.calibration.scale,
                "offset_x": self.calibration.offset_x,
                "offset_y": self.calibration.offset_y,
            },
            "overlay_css": self.overlay_transform().to_css(),
        }
