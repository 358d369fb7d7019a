"""Tests for the compare session."""

import asyncio

import pytest

from swingsync.domain import BodyMeasurement, SwingPhase
from swingsync.errors import (
    IncompletePhasesError,
    InvalidPhaseOrderError,
    PhaseAlreadyMarkedError,
)
from swingsync.services import CompareSession, ReplayOutcome


@pytest.fixture
def session(user_stream, reference_stream):
    return CompareSession(user_stream, reference_stream, handedness="right")


def mark_all(session, values=(0.4, 1.0, 1.5, 2.0, 3.0)):
    for phase, seconds in zip(SwingPhase, values):
        session.mark_phase(phase, seconds)


class TestPhaseMarking:
    """Test marking and overwriting phases."""

    def test_mark_uses_stream_position(self, session, user_stream):
        user_stream.current_time = 1.237

        assert session.mark_phase("Setup") == "1.24"

    def test_second_mark_needs_confirmation(self, session):
        session.mark_phase(SwingPhase.BACK, 1.0)

        with pytest.raises(PhaseAlreadyMarkedError) as exc_info:
            session.mark_phase(SwingPhase.BACK, 1.5)

        assert exc_info.value.current_value == "1.00"
        assert session.user_phases.get(SwingPhase.BACK) == "1.00"

    def test_overwrite_round_trip(self, session):
        """Overwriting A -> B -> A leaves a single entry with A."""
        first = session.mark_phase("Apex", 1.4)
        session.mark_phase("Apex", 1.9, overwrite=True)
        session.mark_phase("Apex", 1.4, overwrite=True)

        assert session.user_phases.to_dict() == {"Apex": first}

    def test_detected_phases_do_not_override_marks(self, session):
        session.mark_phase("Back", 1.0)

        filled = session.apply_detected_phases({"Back": "0.50", "Apex": "1.40"})

        assert filled == [SwingPhase.APEX]
        assert session.user_phases.get(SwingPhase.BACK) == "1.00"
        assert session.user_phases.get(SwingPhase.APEX) == "1.40"

    def test_detect_requires_setup(self, session, swing_sequence):
        with pytest.raises(ValueError):
            session.detect_phases(swing_sequence)

    def test_detect_fills_remaining_phases(self, session, swing_sequence):
        session.mark_phase("Setup", 1.0)
        session.mark_phase("Impact", 2.0)

        detected = session.detect_phases(swing_sequence)

        assert detected["Back"] == "1.30"
        assert session.user_phases.get(SwingPhase.IMPACT) == "2.00"
        assert session.comparison_mode

    def test_comparison_mode(self, session):
        assert not session.comparison_mode
        mark_all(session)
        assert session.comparison_mode


class TestRateAndCalibration:
    """Test derived playback rate and calibration."""

    def test_playback_rate(self, session, reference_stream):
        session.mark_phase("Back", 1.0)
        session.mark_phase("Follow", 3.0)

        assert session.playback_rate == pytest.approx(0.69)
        assert reference_stream.playback_rate == pytest.approx(0.69)

    def test_neutral_rate_until_marked(self, session):
        assert session.playback_rate == 1.0

    def test_calibration_after_both_measurements(self, session):
        session.update_user_measurement(BodyMeasurement(height=0.4, head_y=0.5, avg_ankle_y=0.9))
        assert session.calibration.scale == 1.0

        calibration = session.update_reference_measurement(
            BodyMeasurement(height=0.2, head_y=0.5, avg_ankle_y=0.7)
        )

        assert calibration.scale == pytest.approx(2.0)
        assert calibration.offset_y == pytest.approx(20.0)

    def test_left_handed_overlay(self, user_stream, reference_stream):
        session = CompareSession(user_stream, reference_stream, handedness="left")
        session.move_overlay(12.0, -4.0)

        css = session.overlay_transform().to_css()

        assert css == "translate(-15%, 0) translate(12px, -4px) scale(0.475)"
        session.reset_overlay()
        assert session.overlay.offset_x == 0.0


class TestSessionReplay:
    """Test replay and reset through the session."""

    def test_invalid_order_touches_no_media(self, session, user_stream, reference_stream):
        mark_all(session, (0.4, 3.0, 1.5, 2.0, 1.0))

        with pytest.raises(InvalidPhaseOrderError):
            asyncio.run(session.replay())

        assert user_stream.calls == []
        assert reference_stream.calls == []

    def test_replay_needs_every_phase(self, session, user_stream, reference_stream):
        """Back and Follow alone are not enough to start a replay."""
        session.mark_phase("Back", 1.0)
        session.mark_phase("Follow", 3.0)

        with pytest.raises(IncompletePhasesError) as exc_info:
            asyncio.run(session.replay())

        assert exc_info.value.missing == ["Setup", "Apex", "Impact"]
        assert session.engine.is_idle
        assert user_stream.calls == []
        assert reference_stream.calls == []

    def test_replay_runs_to_follow(self, session, user_stream, reference_stream):
        mark_all(session)

        async def scenario():
            replay = await session.replay()
            assert replay.rate == pytest.approx(0.69)
            assert reference_stream.current_time == 2.5
            user_stream.advance_to(3.0)
            return await session.engine.wait()

        assert asyncio.run(scenario()) == ReplayOutcome.COMPLETED

    def test_speed_and_scrub(self, session, user_stream, reference_stream):
        mark_all(session)

        session.set_speed(0.25)
        assert user_stream.playback_rate == 0.25
        assert reference_stream.playback_rate == pytest.approx(0.69 * 0.25)

        assert session.scrub(1.5)
        assert reference_stream.current_time == pytest.approx(3.0)

    def test_reset(self, session, user_stream):
        mark_all(session)
        session.update_user_measurement(BodyMeasurement(height=0.4, head_y=0.5, avg_ankle_y=0.9))
        session.update_reference_measurement(BodyMeasurement(height=0.2, head_y=0.5, avg_ankle_y=0.7))

        async def scenario():
            await session.replay()
            await session.reset()

        asyncio.run(scenario())

        assert session.user_phases.to_dict() == {}
        assert session.calibration.scale == 1.0
        assert session.engine.is_idle
        assert user_stream.paused
