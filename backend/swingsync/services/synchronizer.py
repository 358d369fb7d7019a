"""
Replay Engine

Drives the user and reference streams so both swings play from Back to
Follow in the same wall-clock time.

States:
    IDLE -> PREPARING -> PLAYING -> IDLE

A replay pauses both streams, seeks each to its own Back time, applies the
playback rates (user = speed, reference = rate * speed), starts both
streams together and stops both once the user stream reaches its Follow
time. Completion, cancellation and media failures all return to IDLE.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from ..config import (
    PLAYBACK_SPEEDS,
    SCRUB_SYNC_THRESHOLD,
    SEEK_SETTLE_TIMEOUT,
    PROGRESS_POLL_INTERVAL,
)
from ..domain.analysis import ReplaySession, ReplayState
from ..errors import MediaOperationError, ReplayInProgressError
from .media import MediaEvent, MediaStream, Subscription

logger = logging.getLogger(__name__)


class ReplayOutcome(str, Enum):
    """How a replay ended."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ReplayEngine:
    """
    Synchronized dual-stream replay.

    Usage:
        engine = ReplayEngine(user_stream, reference_stream)
        session = ReplaySession.from_phases(user_phases, reference_phases)
        outcome = await engine.replay(session)

    Or start, then cancel from elsewhere:
        await engine.start(session)
        ...
        await engine.cancel()

    The engine owns every listener and task it creates and removes them
    when the replay ends.
    """

    def __init__(
        self,
        user_stream: MediaStream,
        reference_stream: Optional[MediaStream] = None,
        speed: float = 1.0,
        seek_settle_timeout: float = SEEK_SETTLE_TIMEOUT,
        poll_interval: float = PROGRESS_POLL_INTERVAL,
        scrub_threshold: float = SCRUB_SYNC_THRESHOLD,
    ):
        """
        Args:
            user_stream: Stream whose position decides when replay ends
            reference_stream: Stream played at the rate-adjusted speed
                              (None replays the user stream alone)
            speed: Global speed multiplier, one of PLAYBACK_SPEEDS
            seek_settle_timeout: Max seconds to wait for a seek to complete
            poll_interval: Seconds between fallback progress checks
            scrub_threshold: Min reference drift (s) that triggers a scrub seek
        """
        self.user = user_stream
        self.reference = reference_stream
        self.seek_settle_timeout = seek_settle_timeout
        self.poll_interval = poll_interval
        self.scrub_threshold = scrub_threshold

        self._speed = self._validate_speed(speed)
        self._rate = 1.0
        self._state = ReplayState.IDLE
        self._session: Optional[ReplaySession] = None
        self._outcome: Optional[ReplayOutcome] = None

        self._subscriptions: list[Subscription] = []
        self._poll_task: Optional[asyncio.Task] = None
        self._stop_task: Optional[asyncio.Task] = None
        self._done: Optional[asyncio.Event] = None
        self._stopping = False
        self._cancel_requested = False

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ReplayState:
        return self._state

    @property
    def is_idle(self) -> bool:
        return self._state is ReplayState.IDLE

    @property
    def session(self) -> Optional[ReplaySession]:
        return self._session

    @property
    def outcome(self) -> Optional[ReplayOutcome]:
        """How the last replay ended."""
        return self._outcome

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def active_subscriptions(self) -> int:
        return sum(1 for s in self._subscriptions if s.active)

    # -------------------------------------------------------------------------
    # Rates
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate_speed(speed: float) -> float:
        if speed not in PLAYBACK_SPEEDS:
            raise ValueError(f"Unsupported playback speed {speed}, expected one of {PLAYBACK_SPEEDS}")
        return float(speed)

    def set_speed(self, speed: float) -> None:
        """Change the global speed and re-apply both stream rates (no seek)."""
        self._speed = self._validate_speed(speed)
        self._apply_rates()
        logger.info(f"Playback speed {self._speed}x (reference rate {self._rate:.3f})")

    def set_rate(self, rate: float) -> None:
        """Set the reference rate multiplier used outside of a replay."""
        if rate <= 0:
            raise ValueError(f"Playback rate must be positive, got {rate}")
        self._rate = rate
        self._apply_rates()

    def _apply_rates(self) -> None:
        self.user.playback_rate = self._speed
        if self.reference is not None:
            self.reference.playback_rate = self._rate * self._speed

    def _streams(self) -> list[MediaStream]:
        streams = [self.user]
        if self.reference is not None:
            streams.append(self.reference)
        return streams

    # -------------------------------------------------------------------------
    # Replay
    # -------------------------------------------------------------------------

    async def replay(self, session: ReplaySession) -> Optional[ReplayOutcome]:
        """Run a replay to its end and return the outcome."""
        await self.start(session)
        return await self.wait()

    async def start(self, session: ReplaySession) -> None:
        """
        Prepare and start a replay.

        Returns once both streams are playing (or the replay ended early).

        Raises:
            ReplayInProgressError: A replay is already preparing or playing
            MediaOperationError: A seek or play failed; both streams are
                                 paused and the engine is IDLE again
        """
        if self._state is not ReplayState.IDLE:
            raise ReplayInProgressError(f"Replay already {self._state.value}")

        self._state = ReplayState.PREPARING
        self._session = session
        self._rate = session.rate
        self._outcome = None
        self._stopping = False
        self._cancel_requested = False
        self._done = asyncio.Event()

        logger.info(
            f"Starting replay: user {session.user_back:.2f}s -> {session.user_follow:.2f}s, "
            f"reference {session.ref_back:.2f}s -> {session.ref_follow:.2f}s, "
            f"rate {session.rate:.3f}, speed {self._speed}x"
        )

        try:
            await self._pause_all()
            if await self._abort_if_cancelled():
                return

            await self._seek_all(session)
            if await self._abort_if_cancelled():
                return

            self._apply_rates()
            await self._play_all()
        except asyncio.CancelledError:
            await self._stop(ReplayOutcome.CANCELLED)
            raise
        except Exception as e:
            logger.error(f"Replay failed: {e}")
            await self._stop(ReplayOutcome.FAILED)
            if isinstance(e, MediaOperationError):
                raise
            raise MediaOperationError(f"Replay failed: {e}") from e

        if await self._abort_if_cancelled():
            return

        self._state = ReplayState.PLAYING
        self._install_monitor()
        self._check_progress()

    async def wait(self) -> Optional[ReplayOutcome]:
        """Wait until the current replay is back to IDLE."""
        if self._done is not None:
            await self._done.wait()
        return self._outcome

    async def cancel(self) -> None:
        """Stop the current replay; no-op when IDLE."""
        if self._state is ReplayState.IDLE:
            return

        if self._state is ReplayState.PREPARING:
            self._cancel_requested = True
            await self.wait()
            return

        if self._stopping:
            await self.wait()
            return

        self._stopping = True
        await self._stop(ReplayOutcome.CANCELLED)

    # -------------------------------------------------------------------------
    # Scrubbing
    # -------------------------------------------------------------------------

    def sync_reference(self, user_time: float, user_back: float, ref_back: float) -> bool:
        """
        Seek the reference to the position matching the user's.

        Suppressed while a replay is preparing or playing, and while the
        user stream is playing.

        Returns:
            True if the reference stream was seeked
        """
        if self.reference is None or self._state is not ReplayState.IDLE:
            return False
        if not self.user.paused:
            return False

        target = ref_back + (user_time - user_back)
        drift = abs(self.reference.current_time - target)
        if drift <= self.scrub_threshold:
            return False

        self.reference.current_time = max(0.0, target)
        logger.debug(f"Scrub sync: user at {user_time:.2f}s, reference seeked to {target:.2f}s")
        return True

    def scrub(
        self,
        target: float,
        user_back: Optional[float] = None,
        ref_back: Optional[float] = None,
    ) -> bool:
        """
        Move the user stream to an absolute time and sync the reference.

        The reference only follows when both Back times are known.

        Returns:
            True if the reference stream was seeked
        """
        target = max(0.0, min(target, self.user.duration))
        self.user.current_time = target
        if user_back is None or ref_back is None:
            return False
        return self.sync_reference(target, user_back, ref_back)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _pause_all(self) -> None:
        results = await asyncio.gather(
            *(stream.pause() for stream in self._streams()),
            return_exceptions=True,
        )
        self._raise_first(results, "pause")

    async def _seek_all(self, session: ReplaySession) -> None:
        seeks = [self._seek(self.user, session.user_back)]
        if self.reference is not None:
            seeks.append(self._seek(self.reference, session.ref_back))
        results = await asyncio.gather(*seeks, return_exceptions=True)
        self._raise_first(results, "seek")

    async def _seek(self, stream: MediaStream, target: float) -> None:
        try:
            await asyncio.wait_for(stream.seek(target), timeout=self.seek_settle_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"{stream.name} seek to {target:.2f}s did not settle "
                f"in {self.seek_settle_timeout}s, re-asserting position"
            )
            stream.current_time = target

    async def _play_all(self) -> None:
        # Both starts are issued back-to-back and both must settle
        results = await asyncio.gather(
            *(stream.play() for stream in self._streams()),
            return_exceptions=True,
        )
        self._raise_first(results, "play")

    @staticmethod
    def _raise_first(results: list, operation: str) -> None:
        for result in results:
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, MediaOperationError):
                raise result
            if isinstance(result, BaseException):
                raise MediaOperationError(f"Media {operation} failed: {result}") from result

    def _install_monitor(self) -> None:
        self._subscriptions.append(
            self.user.subscribe(MediaEvent.TIMEUPDATE, self._on_progress)
        )
        self._subscriptions.append(
            self.user.subscribe(MediaEvent.ENDED, self._on_progress)
        )
        self._poll_task = asyncio.create_task(self._poll_progress())

    def _teardown_monitor(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

        poll_task, self._poll_task = self._poll_task, None
        if poll_task is not None and poll_task is not asyncio.current_task():
            poll_task.cancel()

    def _on_progress(self, _stream: MediaStream) -> None:
        self._check_progress()

    async def _poll_progress(self) -> None:
        # Fallback for streams that deliver timeupdate late or not at all
        while self._state is ReplayState.PLAYING and not self._stopping:
            await asyncio.sleep(self.poll_interval)
            self._check_progress()

    def _check_progress(self) -> None:
        """Stop both streams once the user reaches Follow. Fires at most once."""
        if self._state is not ReplayState.PLAYING or self._stopping:
            return
        if self._session is None:
            return

        if self.user.current_time >= self._session.user_follow or self.user.ended:
            self._stopping = True
            self._stop_task = asyncio.ensure_future(self._stop(ReplayOutcome.COMPLETED))

    async def _stop(self, outcome: ReplayOutcome) -> None:
        self._teardown_monitor()
        try:
            await self._pause_all()
        except MediaOperationError as e:
            logger.error(f"Failed to pause streams while stopping replay: {e}")
        finally:
            self._finish(outcome)

    async def _abort_if_cancelled(self) -> bool:
        if not self._cancel_requested:
            return False
        await self._stop(ReplayOutcome.CANCELLED)
        return True

    def _finish(self, outcome: ReplayOutcome) -> None:
        self._state = ReplayState.IDLE
        self._session = None
        self._outcome = outcome
        self._stopping = False
        self._cancel_requested = False
        if self._done is not None:
            self._done.set()
        logger.info(f"Replay {outcome.value}")
