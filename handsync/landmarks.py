"""
Hand landmark detection using MediaPipe and camera capture using OpenCV.
"""
import logging
import threading
import time
from pathlib import Path
from typing import Optional, List, Tuple

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python as mp_python
from mediapipe.tasks.python import vision

from .config import Cfg, CameraConfig, TrackerConfig
from .types import CaptureUnavailableError, HandState, Landmark, LandmarkFrame

logger = logging.getLogger(__name__)

HAND_CONNECTIONS: List[Tuple[int, int]] = [
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (5, 9), (9, 10), (10, 11), (11, 12),
    (9, 13), (13, 14), (14, 15), (15, 16),
    (13, 17), (0, 17), (17, 18), (18, 19), (19, 20),
]


class HandsTracker:
    """Hand landmark tracker using the MediaPipe Tasks hand landmarker."""

    def __init__(self, cfg: TrackerConfig):
        """
        Initialize the hands tracker.

        Args:
            cfg: Tracker settings (model path, hand count, confidences)

        Raises:
            CaptureUnavailableError: if the model is missing or cannot be loaded
        """
        model_path = Path(cfg.model_path)
        if not model_path.exists():
            raise CaptureUnavailableError(f"Missing hand landmarker model: {model_path}")

        options = vision.HandLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.VIDEO,
            num_hands=cfg.num_hands,
            min_hand_detection_confidence=cfg.min_detection_confidence,
            min_hand_presence_confidence=cfg.min_presence_confidence,
            min_tracking_confidence=cfg.min_tracking_confidence
        )
        try:
            self.landmarker = vision.HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise CaptureUnavailableError(f"Failed to create hand landmarker: {e}") from e
        self.last_timestamp_ms = 0

    def process(self, frame_bgr: np.ndarray, timestamp_ms: int) -> Optional[LandmarkFrame]:
        """
        Process a frame and return hand landmarks.

        Args:
            frame_bgr: Input frame in BGR format
            timestamp_ms: Capture time; VIDEO mode needs it strictly increasing

        Returns:
            LandmarkFrame for the first detected hand, or None if no hand detected
        """
        timestamp_ms = max(timestamp_ms, self.last_timestamp_ms + 1)
        self.last_timestamp_ms = timestamp_ms

        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        result = self.landmarker.detect_for_video(image, timestamp_ms)

        if not result.hand_landmarks:
            return None
        return LandmarkFrame(points=tuple(
            Landmark(lm.x, lm.y, lm.z) for lm in result.hand_landmarks[0]
        ))

    def close(self) -> None:
        self.landmarker.close()


class CameraSource:
    """OpenCV camera opened with the configured resolution and frame rate."""

    def __init__(self, cfg: CameraConfig):
        self.cap = cv2.VideoCapture(cfg.index)
        if not self.cap.isOpened():
            self.cap.release()
            raise CaptureUnavailableError(f"Failed to open camera {cfg.index}")
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, cfg.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg.height)
        self.cap.set(cv2.CAP_PROP_FPS, cfg.fps)

    def read(self) -> Optional[np.ndarray]:
        ret, frame = self.cap.read()
        return frame if ret else None

    def release(self) -> None:
        if self.cap.isOpened():
            self.cap.release()


class HandCapture:
    """
    Camera plus landmarker, acquired together and released together.

    Use as a context manager; if the landmarker fails to load after the
    camera opened, the camera is released before the error propagates.
    close() waits for an in-flight read on another thread to finish.
    """

    def __init__(self, cfg: Cfg):
        self.cfg = cfg
        self.camera: Optional[CameraSource] = None
        self.tracker: Optional[HandsTracker] = None
        self._lock = threading.Lock()
        self._t0 = time.monotonic()

    def __enter__(self) -> "HandCapture":
        self.camera = CameraSource(self.cfg.camera)
        try:
            self.tracker = HandsTracker(self.cfg.tracker)
        except BaseException:
            self.camera.release()
            self.camera = None
            raise
        logger.info("Hand capture started on camera %d", self.cfg.camera.index)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def read(self) -> Tuple[Optional[np.ndarray], Optional[LandmarkFrame]]:
        """
        Grab one camera frame and run the landmarker on it.

        Returns:
            (frame_bgr, landmarks); frame_bgr is None when the camera stream ended

        Raises:
            CaptureUnavailableError: if the capture was already closed
        """
        with self._lock:
            if self.camera is None or self.tracker is None:
                raise CaptureUnavailableError("Hand capture is closed")
            frame = self.camera.read()
            if frame is None:
                return None, None
            timestamp_ms = int((time.monotonic() - self._t0) * 1000)
            return frame, self.tracker.process(frame, timestamp_ms)

    def close(self) -> None:
        with self._lock:
            if self.tracker is not None:
                self.tracker.close()
                self.tracker = None
            if self.camera is not None:
                self.camera.release()
                self.camera = None
                logger.info("Hand capture released")


def draw_landmarks(frame: np.ndarray, landmarks: LandmarkFrame, mirrored: bool = True) -> np.ndarray:
    """
    Draw the hand skeleton on the frame.

    Args:
        frame: Input frame (already flipped horizontally when mirrored is True)
        landmarks: 21 hand landmarks in [0..1] range, in camera coordinates
        mirrored: Flip x so the skeleton lines up with a mirrored preview

    Returns:
        Frame with landmarks drawn
    """
    height, width = frame.shape[:2]

    def to_px(lm: Landmark) -> Tuple[int, int]:
        x = 1.0 - lm.x if mirrored else lm.x
        return int(x * width), int(lm.y * height)

    for start, end in HAND_CONNECTIONS:
        cv2.line(frame, to_px(landmarks[start]), to_px(landmarks[end]), (255, 255, 255), 1, cv2.LINE_AA)
    for lm in landmarks.points:
        cv2.circle(frame, to_px(lm), 3, (128, 222, 74), -1)

    return frame


def draw_cursor(frame: np.ndarray, hand: HandState) -> np.ndarray:
    """Draw the stabilized cursor; HandState x is already mirrored."""
    if not hand.present:
        return frame
    height, width = frame.shape[:2]
    center = (int(hand.x * width), int(hand.y * height))
    cv2.circle(frame, center, 8, (0, 0, 255), -1)
    cv2.putText(frame, hand.gesture.label, (center[0] + 10, center[1] - 10),
                cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 0, 255), 2)
    return frame
