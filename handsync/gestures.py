"""
Gesture classification and temporal stabilization.

Turns one frame of hand landmarks into a discrete gesture candidate, then
debounces the candidate stream and low-pass filters the cursor so that
downstream consumers see a stable HandState.
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .types import GestureType, HandState, LandmarkFrame, MacroState

logger = logging.getLogger(__name__)

WRIST = 0
THUMB_TIP = 4
INDEX_TIP = 8
MIDDLE_MCP = 9

# (tip, pip) per finger; thumb is excluded from curl tests
INDEX = (8, 6)
MIDDLE = (12, 10)
RING = (16, 14)
PINKY = (20, 18)

DEFAULT_PINCH_THRESHOLD = 0.05


def _dist(frame: LandmarkFrame, a: int, b: int) -> float:
    pa, pb = frame[a], frame[b]
    return math.hypot(pa.x - pb.x, pa.y - pb.y)


def is_curled(frame: LandmarkFrame, finger: Tuple[int, int]) -> bool:
    """
    Check whether a finger is bent towards the palm.

    A finger counts as curled when its tip is closer to the wrist than its
    middle (PIP) joint. Comparing radial distances keeps the test independent
    of in-plane camera roll.
    """
    tip, pip = finger
    return _dist(frame, tip, WRIST) < _dist(frame, pip, WRIST)


def is_pinch(frame: LandmarkFrame, threshold: float = DEFAULT_PINCH_THRESHOLD) -> bool:
    """True if thumb tip and index tip are touching."""
    return _dist(frame, THUMB_TIP, INDEX_TIP) < threshold


def classify_gesture(frame: LandmarkFrame,
                     pinch_threshold: float = DEFAULT_PINCH_THRESHOLD) -> GestureType:
    """
    Map one frame of landmarks to a gesture candidate.

    Priority: pinch > pointing up > closed fist > victory > open palm > none.
    Unknown poses resolve to GestureType.NONE.

    Args:
        frame: 21 normalized hand landmarks
        pinch_threshold: thumb/index tip distance below which the pose is a pinch

    Returns:
        The matching GestureType
    """
    if is_pinch(frame, pinch_threshold):
        return GestureType.PINCH_HEART

    index = is_curled(frame, INDEX)
    middle = is_curled(frame, MIDDLE)
    ring = is_curled(frame, RING)
    pinky = is_curled(frame, PINKY)

    if not index and middle and ring and pinky:
        return GestureType.POINTING_UP
    # Thumb ignored so a loose fist still counts
    if index and middle and ring and pinky:
        return GestureType.CLOSED_FIST
    if not index and not middle and ring and pinky:
        return GestureType.VICTORY
    if not (index or middle or ring or pinky):
        return GestureType.OPEN_PALM
    return GestureType.NONE


def palm_anchor(frame: LandmarkFrame) -> Tuple[float, float]:
    """
    Raw cursor position for a frame.

    Returns:
        Midpoint of the wrist and the middle finger base, in [0..1] range
    """
    wrist, mcp = frame[WRIST], frame[MIDDLE_MCP]
    return ((wrist.x + mcp.x) / 2, (wrist.y + mcp.y) / 2)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


@dataclass
class StabilizerMemory:
    """Mutable per-pipeline memory of the stabilizer. Never shared."""
    last_candidate: GestureType = GestureType.NONE
    run_length: int = 0
    reported: GestureType = GestureType.NONE
    smoothed_x: float = 0.5
    smoothed_y: float = 0.5


class GestureStabilizer:
    """
    Debounces gesture candidates and smooths the cursor.

    Features:
    - Exponential position filter at a fixed tracker rate
    - Run-length debounce: a candidate is reported only after N identical frames
    - Instant loss of tracking, no debounce on disappearance
    - Horizontal mirroring of the reported cursor
    """

    def __init__(self, alpha: float = 0.3, debounce_frames: int = 2):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if debounce_frames < 1:
            raise ValueError(f"debounce_frames must be >= 1, got {debounce_frames}")
        self.alpha = alpha
        self.debounce_frames = debounce_frames
        self.memory = StabilizerMemory()

    @property
    def reported_gesture(self) -> GestureType:
        return self.memory.reported

    def update(self, candidate: Optional[GestureType], raw_x: float = 0.5,
               raw_y: float = 0.5) -> HandState:
        """
        Fold one processed tracker frame into the stabilized state.

        Args:
            candidate: Classified gesture, or None when no hand is tracked
            raw_x: Raw cursor x in [0..1] (ignored when absent)
            raw_y: Raw cursor y in [0..1] (ignored when absent)

        Returns:
            A new immutable HandState snapshot
        """
        mem = self.memory

        if candidate is None:
            mem.run_length = 0
            return HandState.absent()

        mem.smoothed_x = lerp(mem.smoothed_x, raw_x, self.alpha)
        mem.smoothed_y = lerp(mem.smoothed_y, raw_y, self.alpha)

        if candidate == mem.last_candidate:
            mem.run_length += 1
        else:
            mem.last_candidate = candidate
            mem.run_length = 1

        if mem.run_length >= self.debounce_frames and mem.reported != candidate:
            logger.debug("Gesture %s -> %s", mem.reported.value, candidate.value)
            mem.reported = candidate

        return HandState(
            present=True,
            x=1.0 - mem.smoothed_x,
            y=mem.smoothed_y,
            gesture=mem.reported
        )

    def reset(self) -> None:
        self.memory = StabilizerMemory()


class MacroStateController:
    """
    Two-state assembled/dispersed machine.

    OPEN_PALM disperses, CLOSED_FIST assembles, every other gesture holds
    the current state.
    """

    TRANSITIONS = {
        GestureType.OPEN_PALM: MacroState.DISPERSED,
        GestureType.CLOSED_FIST: MacroState.ASSEMBLED,
    }

    def __init__(self, initial: MacroState = MacroState.ASSEMBLED):
        self.state = initial

    def update(self, hand: HandState) -> MacroState:
        """Apply one stabilized HandState and return the resulting state."""
        target = self.TRANSITIONS.get(hand.gesture)
        if target is not None and target != self.state:
            logger.info("Macro state %s -> %s", self.state.value, target.value)
            self.state = target
        return self.state

    @property
    def target_progress(self) -> float:
        return 1.0 if self.state == MacroState.ASSEMBLED else 0.0
