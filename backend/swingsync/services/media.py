"""
Media Stream Service

The media stream contract the replay engine and motion trackers drive,
plus two implementations:

- ClockedMediaStream: a stream whose position advances on a monotonic
  clock at its playback rate. Emits timeupdate/frame notifications while
  playing, like a browser media element.
- VideoFileStream: a ClockedMediaStream that decodes the frame at the
  current position from a video file with OpenCV.

Notifications are delivered to plain callbacks registered with
subscribe(); each registration returns a Subscription handle that the
owner cancels when done.
"""

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

import cv2
import numpy as np

from ..config import TIMEUPDATE_INTERVAL
from ..errors import StreamClosedError

logger = logging.getLogger(__name__)


class MediaEvent(str, Enum):
    """Notifications a media stream emits."""
    TIMEUPDATE = "timeupdate"
    SEEKED = "seeked"
    FRAME = "frame"
    PLAY = "play"
    PAUSE = "pause"
    ENDED = "ended"


Listener = Callable[["MediaStream"], Any]


class Subscription:
    """
    Handle for one registered listener.

    cancel() is idempotent.
    """

    def __init__(self, stream: "MediaStream", event: MediaEvent, callback: Listener):
        self.stream = stream
        self.event = event
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._active = False
            self.stream._remove_listener(self.event, self.callback)


class MediaStream(ABC):
    """
    An independently clocked media object.

    Implementations provide position, rate and play/pause; seeking and
    notification dispatch are shared.
    """

    def __init__(self, name: str = "stream"):
        self.name = name
        self._listeners: dict[MediaEvent, list[Listener]] = defaultdict(list)

    # -------------------------------------------------------------------------
    # Playback state
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def current_time(self) -> float:
        ...

    @current_time.setter
    @abstractmethod
    def current_time(self, seconds: float) -> None:
        ...

    @property
    @abstractmethod
    def duration(self) -> float:
        ...

    @property
    @abstractmethod
    def paused(self) -> bool:
        ...

    @property
    @abstractmethod
    def ended(self) -> bool:
        ...

    @property
    @abstractmethod
    def playback_rate(self) -> float:
        ...

    @playback_rate.setter
    @abstractmethod
    def playback_rate(self, rate: float) -> None:
        ...

    @abstractmethod
    async def play(self) -> None:
        ...

    @abstractmethod
    async def pause(self) -> None:
        ...

    async def grab_frame(self) -> Optional[np.ndarray]:
        """Image at the current position, if the stream has pixels."""
        return None

    async def seek(self, seconds: float) -> None:
        """Set the position and wait for the seeked notification."""
        loop = asyncio.get_running_loop()
        seeked: asyncio.Future = loop.create_future()

        def on_seeked(_stream: "MediaStream") -> None:
            if not seeked.done():
                seeked.set_result(None)

        subscription = self.subscribe(MediaEvent.SEEKED, on_seeked)
        try:
            self.current_time = seconds
            await seeked
        finally:
            subscription.cancel()

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def subscribe(self, event: Union[MediaEvent, str], callback: Listener) -> Subscription:
        """Register a listener and return its cancellation handle."""
        event = MediaEvent(event)
        self._listeners[event].append(callback)
        return Subscription(self, event, callback)

    def listener_count(self, event: Union[MediaEvent, str]) -> int:
        return len(self._listeners[MediaEvent(event)])

    def emit(self, event: MediaEvent) -> None:
        """Call every listener of an event."""
        for callback in list(self._listeners[event]):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"{self.name} {event.value} listener failed: {e}")

    def _remove_listener(self, event: MediaEvent, callback: Listener) -> None:
        listeners = self._listeners[event]
        if callback in listeners:
            listeners.remove(callback)


class ClockedMediaStream(MediaStream):
    """
    Media stream driven by a monotonic clock.

    Usage:
        stream = ClockedMediaStream(duration=5.0, name="user")
        stream.playback_rate = 0.5
        await stream.play()
        ...
        await stream.pause()
        stream.close()
    """

    def __init__(
        self,
        duration: float,
        name: str = "stream",
        fps: float = 30.0,
        timeupdate_interval: float = TIMEUPDATE_INTERVAL,
        seek_latency: float = 0.0,
    ):
        """
        Args:
            duration: Length of the media in seconds
            name: Label used in logs
            fps: Frame notifications per second of wall time while playing
            timeupdate_interval: Seconds between timeupdate notifications
            seek_latency: Delay before a seek reports completion
        """
        super().__init__(name)
        if duration <= 0:
            raise ValueError(f"Duration must be positive, got {duration}")
        self._duration = float(duration)
        self.fps = fps
        self.timeupdate_interval = timeupdate_interval
        self.seek_latency = seek_latency

        self._position = 0.0
        self._anchor: Optional[float] = None
        self._rate = 1.0
        self._paused = True
        self._ended = False
        self._closed = False
        self._ticker: Optional[asyncio.Task] = None

    def _check_open(self) -> None:
        if self._closed:
            raise StreamClosedError(f"{self.name} stream is closed")

    # -------------------------------------------------------------------------
    # Playback state
    # -------------------------------------------------------------------------

    @property
    def current_time(self) -> float:
        if self._paused or self._anchor is None:
            return self._position
        elapsed = (time.monotonic() - self._anchor) * self._rate
        return min(self._duration, self._position + elapsed)

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        self._check_open()
        self._position = max(0.0, min(self._duration, float(seconds)))
        self._ended = False
        if not self._paused:
            self._anchor = time.monotonic()
        self._schedule_seeked()

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
    def closed(self) -> bool:
        return self._closed

    @property
    def playback_rate(self) -> float:
        return self._rate

    @playback_rate.setter
    def playback_rate(self, rate: float) -> None:
        self._check_open()
        if rate <= 0:
            raise ValueError(f"Playback rate must be positive, got {rate}")
        # Rebase so the position so far is kept at the old rate
        if not self._paused:
            self._position = self.current_time
            self._anchor = time.monotonic()
        self._rate = float(rate)

    async def play(self) -> None:
        self._check_open()
        if not self._paused:
            return
        if self._ended or self._position >= self._duration:
            self._position = 0.0
            self._ended = False
        self._paused = False
        self._anchor = time.monotonic()
        self.emit(MediaEvent.PLAY)
        self._ticker = asyncio.create_task(self._tick())

    async def pause(self) -> None:
        self._check_open()
        self._halt()

    def close(self) -> None:
        """Release the stream; later operations raise StreamClosedError."""
        if self._closed:
            return
        self._halt(notify=False)
        self._closed = True
        self._listeners.clear()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _halt(self, notify: bool = True) -> None:
        if self._paused:
            return
        self._position = self.current_time
        self._paused = True
        self._anchor = None
        ticker, self._ticker = self._ticker, None
        if ticker is not None and ticker is not asyncio.current_task():
            ticker.cancel()
        if notify:
            self.emit(MediaEvent.PAUSE)

    def _schedule_seeked(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.emit(MediaEvent.SEEKED)
            return
        if self.seek_latency > 0:
            loop.call_later(self.seek_latency, self._emit_if_open, MediaEvent.SEEKED)
        else:
            loop.call_soon(self._emit_if_open, MediaEvent.SEEKED)

    def _emit_if_open(self, event: MediaEvent) -> None:
        if not self._closed:
            self.emit(event)

    async def _tick(self) -> None:
        frame_interval = 1.0 / self.fps if self.fps > 0 else self.timeupdate_interval
        last_update = time.monotonic()

        while not self._paused:
            await asyncio.sleep(min(frame_interval, self.timeupdate_interval))
            if self._paused:
                break

            if self.current_time >= self._duration:
                self._position = self._duration
                self._ended = True
                self._ticker = None
                self._halt(notify=False)
                self.emit(MediaEvent.TIMEUPDATE)
                self.emit(MediaEvent.PAUSE)
                self.emit(MediaEvent.ENDED)
                break

            self.emit(MediaEvent.FRAME)
            now = time.monotonic()
            if now - last_update >= self.timeupdate_interval:
                last_update = now
                self.emit(MediaEvent.TIMEUPDATE)


class VideoFileStream(ClockedMediaStream):
    """
    Clocked stream over a video file, decoding frames with OpenCV.

    Usage:
        with VideoFileStream("swing.mp4", name="user") as stream:
            frame = await stream.grab_frame()
    """

    def __init__(self, video_path: Union[str, Path], name: Optional[str] = None, **kwargs):
        self.video_path = str(video_path)
        self._cap = cv2.VideoCapture(self.video_path)

        if not self._cap.isOpened():
            raise ValueError(f"Could not open video: {self.video_path}")

        fps = self._cap.get(cv2.CAP_PROP_FPS) or 30.0
        frame_count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        # Held by the decoding thread and by close(), so the capture is never
        # released in the middle of a read
        self._read_lock = threading.Lock()

        duration = frame_count / fps if frame_count > 0 else 0.0
        if duration <= 0:
            self._cap.release()
            raise ValueError(f"Video has no frames: {self.video_path}")

        kwargs.setdefault("fps", fps)
        super().__init__(duration, name=name or Path(self.video_path).stem, **kwargs)

    def __enter__(self) -> "VideoFileStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def grab_frame(self) -> Optional[np.ndarray]:
        """Decode the BGR frame at the current position."""
        self._check_open()
        position = self.current_time
        return await asyncio.to_thread(self._read_frame_at, position)

    def _read_frame_at(self, seconds: float) -> Optional[np.ndarray]:
        with self._read_lock:
            if not self._cap.isOpened():
                return None
            return self._decode(seconds)

    def _decode(self, seconds: float) -> Optional[np.ndarray]:
        self._cap.set(cv2.CAP_PROP_POS_MSEC, seconds * 1000)
        ret, frame = self._cap.read()
        if not ret:
            return None
        return frame

    def close(self) -> None:
        super().close()
        with self._read_lock:
            self._cap.release()
