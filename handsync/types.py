"""
Type definitions for the hand gesture formation system.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Sequence, Tuple, runtime_checkable


NUM_LANDMARKS = 21


class HandSyncError(Exception):
    """Base class for errors raised by the formation system."""


class CaptureUnavailableError(HandSyncError):
    """Raised when the camera or landmark tracker cannot be acquired."""


class GestureType(str, Enum):
    """Discrete gesture candidates produced by the classifier."""
    NONE = "NONE"
    OPEN_PALM = "OPEN_PALM"
    CLOSED_FIST = "CLOSED_FIST"
    PINCH_HEART = "PINCH_HEART"
    VICTORY = "VICTORY"
    POINTING_UP = "POINTING_UP"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class MacroState(str, Enum):
    """Coarse formation mode driving the shared progress value."""
    DISPERSED = "DISPERSED"
    ASSEMBLED = "ASSEMBLED"


@dataclass(frozen=True)
class Landmark:
    """A single tracked joint, normalized to the capture frame."""
    x: float
    y: float
    z: Optional[float] = None


@dataclass(frozen=True)
class LandmarkFrame:
    """The 21 joints of one tracked hand for one tracker callback."""
    points: Tuple[Landmark, ...]

    def __post_init__(self):
        if len(self.points) != NUM_LANDMARKS:
            raise ValueError(f"Expected {NUM_LANDMARKS} landmarks, got {len(self.points)}")

    @classmethod
    def from_xy(cls, coords: Sequence[Sequence[float]]) -> "LandmarkFrame":
        """Build a frame from (x, y) or (x, y, z) tuples."""
        return cls(points=tuple(Landmark(*c) for c in coords))

    def __getitem__(self, index: int) -> Landmark:
        return self.points[index]

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class HandState:
    """Stabilized hand output: published as an immutable snapshot each frame."""
    present: bool
    x: float  # normalized 0-1, mirrored horizontally
    y: float  # normalized 0-1
    gesture: GestureType

    @classmethod
    def absent(cls) -> "HandState":
        return cls(present=False, x=0.5, y=0.5, gesture=GestureType.NONE)


@dataclass(frozen=True)
class FrameSnapshot:
    """Everything an animation subsystem may read during one render tick."""
    progress: float
    eased_progress: float
    hand: HandState
    macro_state: MacroState
    macro_visible: bool
    elapsed: float = 0.0


@runtime_checkable
class SubsystemProto(Protocol):
    """Abstract protocol for animation subsystems consuming the per-tick snapshot."""

    def update(self, snapshot: FrameSnapshot, dt: float) -> None:
        """Advance local animation state from a read-only snapshot."""
        ...
