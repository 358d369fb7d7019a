"""
Playback Rate Calculator

Computes how much faster or slower the reference stream must play so
that its Back -> Follow segment takes as long as the user's.
"""

import logging
from typing import Mapping, Union

from ..domain.analysis import SwingPhase, SwingPhases, PhaseValue, parse_timestamp

logger = logging.getLogger(__name__)

PhaseInput = Union[SwingPhases, Mapping[str, PhaseValue]]

NEUTRAL_RATE = 1.0


def _phase_seconds(phases: PhaseInput, phase: SwingPhase):
    if isinstance(phases, SwingPhases):
        return phases.seconds(phase)
    return parse_timestamp(phases.get(phase.value))


def calculate_playback_rate(user_phases: PhaseInput, reference_phases: PhaseInput) -> float:
    """
    Reference playback-rate multiplier.

    Args:
        user_phases: User's marked phases (SwingPhases or name -> value)
        reference_phases: Reference subject's phases

    Returns:
        (ref_follow - ref_back) / (user_follow - user_back), or exactly 1.0
        when a value is missing/non-numeric or a duration is not positive

    Example:
        user Back 1, Follow 3 and reference Back 2.5, Follow 3.88
        -> (3.88 - 2.5) / (3 - 1) = 0.69
    """
    user_back = _phase_seconds(user_phases, SwingPhase.BACK)
    user_follow = _phase_seconds(user_phases, SwingPhase.FOLLOW)
    ref_back = _phase_seconds(reference_phases, SwingPhase.BACK)
    ref_follow = _phase_seconds(reference_phases, SwingPhase.FOLLOW)

    if None in (user_back, user_follow, ref_back, ref_follow):
        return NEUTRAL_RATE

    user_duration = user_follow - user_back
    ref_duration = ref_follow - ref_back

    if user_duration <= 0 or ref_duration <= 0:
        return NEUTRAL_RATE

    rate = ref_duration / user_duration
    logger.debug(
        f"Swing durations: user {user_duration:.3f}s, "
        f"reference {ref_duration:.3f}s, rate {rate:.3f}"
    )
    return rate
