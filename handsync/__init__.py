"""
Hand Gesture Formation System

Reads hand landmarks from a webcam, stabilizes them into a discrete gesture
and cursor, and drives one shared formation progress value that keeps
independent animation subsystems in step.
"""

__version__ = "0.1.0"

from .types import (
    CaptureUnavailableError,
    FrameSnapshot,
    GestureType,
    HandState,
    HandSyncError,
    LandmarkFrame,
    MacroState,
    SubsystemProto,
)
from .config import load_config, Cfg
from .gestures import GestureStabilizer, MacroStateController, classify_gesture
from .progress import ProgressSynchronizer, ease_in_out_cubic
from .pipeline import FormationPipeline

__all__ = [
    "CaptureUnavailableError",
    "FrameSnapshot",
    "GestureType",
    "HandState",
    "HandSyncError",
    "LandmarkFrame",
    "MacroState",
    "SubsystemProto",
    "load_config",
    "Cfg",
    "GestureStabilizer",
    "MacroStateController",
    "classify_gesture",
    "ProgressSynchronizer",
    "ease_in_out_cubic",
    "FormationPipeline",
]
