"""
Formation pipeline: tracker frames in, one synchronized snapshot per render tick out.
"""
import logging
from typing import Callable, List, Optional, Tuple

from .capture import FrameRateLimiter, LatestFrameSlot, TrackedFrame
from .config import Cfg
from .gestures import GestureStabilizer, MacroStateController, classify_gesture, palm_anchor
from .progress import ProgressSynchronizer, ease_in_out_cubic
from .types import (
    CaptureUnavailableError,
    FrameSnapshot,
    GestureType,
    HandState,
    LandmarkFrame,
    MacroState,
    SubsystemProto,
)

logger = logging.getLogger(__name__)

# Gestures that hide the formation while they are held
MACRO_HIDING_GESTURES = (GestureType.PINCH_HEART, GestureType.VICTORY)

Classifier = Callable[[LandmarkFrame, float], GestureType]


def is_macro_visible(hand: HandState) -> bool:
    return hand.gesture not in MACRO_HIDING_GESTURES


class FormationPipeline:
    """
    Owns the stabilizer, macro-state controller and progress synchronizer.

    Two entry points run on one event loop:
    - process_frame / pull: tracker path, at most one processed frame per
      min_frame_interval_ms
    - tick: render path, advances progress and broadcasts a FrameSnapshot
    """

    def __init__(self, cfg: Optional[Cfg] = None, classifier: Classifier = classify_gesture):
        """Initialize pipeline state from configuration."""
        self.cfg = cfg or Cfg.defaults()
        self.classifier = classifier
        self.stabilizer = GestureStabilizer(
            alpha=self.cfg.stabilizer.smoothing_alpha,
            debounce_frames=self.cfg.stabilizer.debounce_frames
        )
        self.macro = MacroStateController(MacroState(self.cfg.progress.initial_state))
        self.progress = ProgressSynchronizer(
            rate=self.cfg.progress.rate,
            initial=self.cfg.progress.initial_progress,
            snap_epsilon=self.cfg.progress.snap_epsilon
        )
        self.limiter = FrameRateLimiter(self.cfg.stabilizer.min_frame_interval_ms)

        self.subsystems: List[SubsystemProto] = []
        self.hand = HandState.absent()
        self.snapshot: Optional[FrameSnapshot] = None
        self.capture_available = True
        self.frames_processed = 0
        self.frames_failed = 0
        self.elapsed = 0.0
        self._last_seq = 0

    def add_subsystem(self, subsystem: SubsystemProto) -> None:
        if not isinstance(subsystem, SubsystemProto):
            raise TypeError(f"{type(subsystem).__name__} does not implement update(snapshot, dt)")
        self.subsystems.append(subsystem)

    def capture_failed(self, error: CaptureUnavailableError) -> None:
        """Record a non-fatal acquisition failure; the pipeline stays in the absent state."""
        if self.capture_available:
            logger.warning("Hand tracking unavailable, continuing without gestures: %s", error)
        self.capture_available = False
        self.hand = HandState.absent()

    def pull(self, slot: LatestFrameSlot) -> Optional[HandState]:
        """Process the newest frame in the slot if it has not been seen yet."""
        frame = slot.latest()
        if frame is None:
            return None
        return self.process_frame(frame)

    def process_frame(self, frame: TrackedFrame) -> Optional[HandState]:
        """
        Fold one tracker frame into the stabilized hand state.

        Args:
            frame: Tracker result tagged with its sequence id and capture time

        Returns:
            The new HandState, or None if the frame was stale or arrived too soon
        """
        if frame.seq <= self._last_seq:
            return None
        # Too-soon frames are consumed and dropped, never revisited
        self._last_seq = frame.seq
        if not self.limiter.admit(frame.timestamp):
            return None

        if frame.landmarks is None:
            hand = self.stabilizer.update(None)
        else:
            candidate, raw_x, raw_y = self._classify(frame)
            hand = self.stabilizer.update(candidate, raw_x, raw_y)

        self.hand = hand
        self.macro.update(hand)
        self.frames_processed += 1
        return hand

    def _classify(self, frame: TrackedFrame) -> Tuple[GestureType, float, float]:
        try:
            candidate = self.classifier(frame.landmarks, self.cfg.classifier.pinch_threshold)
            raw_x, raw_y = palm_anchor(frame.landmarks)
        except Exception:
            logger.exception("Gesture classification failed for frame %d", frame.seq)
            self.frames_failed += 1
            mem = self.stabilizer.memory
            return GestureType.NONE, mem.smoothed_x, mem.smoothed_y
        return candidate, raw_x, raw_y

    def tick(self, dt: float) -> FrameSnapshot:
        """
        Advance one render tick and broadcast the snapshot to every subsystem.

        Args:
            dt: Seconds since the previous render tick

        Returns:
            The snapshot all subsystems observed this tick
        """
        dt = max(dt, 0.0)
        self.elapsed += dt
        progress = self.progress.tick(self.macro.state, dt)
        hand = self.hand
        snapshot = FrameSnapshot(
            progress=progress,
            eased_progress=ease_in_out_cubic(progress),
            hand=hand,
            macro_state=self.macro.state,
            macro_visible=is_macro_visible(hand),
            elapsed=self.elapsed
        )
        self.snapshot = snapshot
        for subsystem in self.subsystems:
            subsystem.update(snapshot, dt)
        return snapshot
