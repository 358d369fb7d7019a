"""
Error Types

Exceptions raised by the swing comparison core. Missing landmarks and
too-short pose sequences are not errors: they produce None values or the
fixed-offset phase fallback instead.
"""

from typing import Optional


class SwingSyncError(Exception):
    """Base class for all swing comparison errors."""


class InvalidPhaseOrderError(SwingSyncError, ValueError):
    """
    Back is not strictly before Follow for one of the subjects.

    A replay built from such phases is refused before any media action.
    """

    def __init__(self, subject: str, back: Optional[float], follow: Optional[float]):
        self.subject = subject
        self.back = back
        self.follow = follow
        super().__init__(
            f"Invalid {subject} phase times: back={back}, follow={follow}"
        )


class IncompletePhasesError(SwingSyncError, ValueError):
    """Replay was requested before all five phases were marked."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Mark all phases before replay, missing: {', '.join(missing)}")


class ReplayInProgressError(SwingSyncError):
    """A replay was requested while another one is still running."""


class PhaseAlreadyMarkedError(SwingSyncError):
    """
    The phase already has a timestamp.

    The caller must confirm and mark again with overwrite=True.
    """

    def __init__(self, phase: str, current_value: str):
        self.phase = phase
        self.current_value = current_value
        super().__init__(f"{phase} is already marked at {current_value}s")


class MediaOperationError(SwingSyncError):
    """A seek or play on one of the media streams was rejected."""


class StreamClosedError(MediaOperationError):
    """The underlying media resource is gone."""
