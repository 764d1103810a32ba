"""
Frame hand-off between the capture thread and the stabilizer loop.
"""
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .types import LandmarkFrame


@dataclass(frozen=True)
class TrackedFrame:
    """One tracker result tagged with a monotonically increasing sequence id."""
    seq: int
    timestamp: float
    landmarks: Optional[LandmarkFrame]  # None when no hand was found


class LatestFrameSlot:
    """
    Single-slot holder with latest-wins semantics.

    The producer overwrites whatever is there; the consumer always reads the
    newest frame. Nothing is queued.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[TrackedFrame] = None
        self._seq = 0
        self._unread = False
        self.dropped = 0

    def publish(self, landmarks: Optional[LandmarkFrame], timestamp: Optional[float] = None) -> TrackedFrame:
        """Store a new tracker result, replacing any unread one."""
        if timestamp is None:
            timestamp = time.monotonic()
        with self._lock:
            self._seq += 1
            if self._unread:
                self.dropped += 1
            self._frame = TrackedFrame(seq=self._seq, timestamp=timestamp, landmarks=landmarks)
            self._unread = True
            return self._frame

    def latest(self) -> Optional[TrackedFrame]:
        """Newest published frame, or None if nothing was published yet."""
        with self._lock:
            self._unread = False
            return self._frame


class FrameRateLimiter:
    """
    Drop-if-too-soon gate for tracker frames.

    A frame is admitted only when at least min_interval_ms has passed since
    the previously admitted frame.
    """

    def __init__(self, min_interval_ms: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.min_interval_s = min_interval_ms / 1000.0
        self.clock = clock
        self.last_admitted: Optional[float] = None

    def admit(self, now: Optional[float] = None) -> bool:
        if now is None:
            now = self.clock()
        if self.last_admitted is not None and now - self.last_admitted < self.min_interval_s:
            return False
        self.last_admitted = now
        return True
