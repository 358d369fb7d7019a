"""Tests for file-backed media streams."""

import asyncio
import threading
import time

import cv2
import numpy as np
import pytest

from swingsync.errors import StreamClosedError
from swingsync.services import VideoFileStream


@pytest.fixture
def video_path(tmp_path):
    """A one-second 10 fps MJPG clip."""
    path = tmp_path / "swing.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48))
    for i in range(10):
        writer.write(np.full((48, 64, 3), i * 20, dtype=np.uint8))
    writer.release()
    return path


class SlowCapture:
    """Stands in for cv2.VideoCapture with a read that takes a while."""

    def __init__(self, delay: float = 0.2):
        self.delay = delay
        self.events = []
        self.reading = threading.Event()
        self.released = False

    def isOpened(self) -> bool:
        return not self.released

    def set(self, prop, value) -> bool:
        return True

    def read(self):
        self.events.append("read-start")
        self.reading.set()
        time.sleep(self.delay)
        self.events.append("read-end")
        return True, np.zeros((48, 64, 3), dtype=np.uint8)

    def release(self) -> None:
        self.events.append("release")
        self.released = True


class TestVideoFileStream:
    """Test decoding and closing."""

    def test_reads_video_properties(self, video_path):
        with VideoFileStream(video_path) as stream:
            assert stream.name == "swing"
            assert stream.duration == pytest.approx(1.0)
            assert (stream.width, stream.height) == (64, 48)

    def test_grab_frame(self, video_path):
        async def scenario():
            with VideoFileStream(video_path) as stream:
                return await stream.grab_frame()

        frame = asyncio.run(scenario())

        assert frame is not None
        assert frame.shape == (48, 64, 3)

    def test_close_waits_for_running_read(self, video_path):
        stream = VideoFileStream(video_path)
        stream._cap.release()
        capture = SlowCapture()
        stream._cap = capture

        async def scenario():
            grab = asyncio.ensure_future(stream.grab_frame())
            await asyncio.to_thread(capture.reading.wait)
            stream.close()
            return await grab

        frame = asyncio.run(scenario())

        assert frame is not None
        assert capture.events == ["read-start", "read-end", "release"]

    def test_grab_after_close(self, video_path):
        stream = VideoFileStream(video_path)
        stream.close()

        with pytest.raises(StreamClosedError):
            asyncio.run(stream.grab_frame())
