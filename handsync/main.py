"""
Main application: camera-driven gesture formation with a live preview.
"""
import argparse
import asyncio
import logging
import time
from contextlib import ExitStack
from typing import List, Optional

import cv2
import numpy as np

from .capture import LatestFrameSlot
from .config import load_config
from .landmarks import HandCapture, draw_cursor, draw_landmarks
from .pipeline import FormationPipeline
from .subsystems import Foliage, build_default_subsystems
from .types import CaptureUnavailableError, FrameSnapshot, LandmarkFrame

logger = logging.getLogger(__name__)

# Consecutive capture errors tolerated before tracking is marked unavailable
MAX_READ_FAILURES = 10
READ_RETRY_DELAY_S = 0.1


class HandFormationApp:
    """Main application class wiring capture, pipeline and subsystems."""

    def __init__(self, config_path: Optional[str] = None, show_preview: Optional[bool] = None):
        """Initialize the application with configuration."""
        self.config = load_config(config_path)
        if show_preview is not None:
            self.config.display.show_preview = show_preview

        self.slot = LatestFrameSlot()
        self.pipeline = FormationPipeline(self.config)
        self.subsystems = build_default_subsystems(self.config.subsystems)
        for subsystem in self.subsystems:
            self.pipeline.add_subsystem(subsystem)

        self.latest_image: Optional[np.ndarray] = None
        self.latest_landmarks: Optional[LandmarkFrame] = None
        self._stop = asyncio.Event()

    async def run(self):
        """Run capture and render loops until quit."""
        logger.info("Starting %s", self.config.display.window_name)
        logger.info("Open palm = disperse | Closed fist = assemble | Point up = rotate | Pinch = love | Victory = wish")

        with ExitStack() as stack:
            capture: Optional[HandCapture] = None
            try:
                capture = stack.enter_context(HandCapture(self.config))
            except CaptureUnavailableError as e:
                self.pipeline.capture_failed(e)

            render_task = asyncio.create_task(self._render_loop())
            tasks: List[asyncio.Task] = [render_task]
            if capture is not None:
                tasks.append(asyncio.create_task(self._capture_loop(capture)))

            try:
                await self._stop.wait()
            finally:
                # Not cancelled: the capture loop exits on the stop flag once
                # its in-flight read returns.
                self._stop.set()
                render_task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                if self.config.display.show_preview:
                    cv2.destroyAllWindows()

    def stop(self) -> None:
        self._stop.set()

    async def _capture_loop(self, capture: HandCapture):
        """Push the newest tracker result into the slot; never queue."""
        failures = 0
        while not self._stop.is_set():
            try:
                image, landmarks = await asyncio.to_thread(capture.read)
            except Exception as e:
                failures += 1
                if failures >= MAX_READ_FAILURES:
                    self.slot.publish(None)
                    self.pipeline.capture_failed(
                        CaptureUnavailableError(f"{failures} consecutive capture failures, last: {e}")
                    )
                    return
                if failures == 1:
                    logger.exception("Hand tracking failed for one frame")
                else:
                    logger.warning("Hand tracking failed again (%d in a row): %s", failures, e)
                await asyncio.sleep(READ_RETRY_DELAY_S)
                continue
            failures = 0

            if image is None:
                self.slot.publish(None)
                self.pipeline.capture_failed(CaptureUnavailableError("Camera stream ended"))
                return

            self.latest_image = image
            self.latest_landmarks = landmarks
            self.slot.publish(landmarks)

    async def _render_loop(self):
        """Advance the shared progress and every subsystem at the display rate."""
        period = 1.0 / max(self.config.display.render_fps, 1)
        last = time.monotonic()
        while True:
            now = time.monotonic()
            dt = now - last
            last = now

            self.pipeline.pull(self.slot)
            snapshot = self.pipeline.tick(dt)

            if self.config.display.show_preview:
                self._draw_preview(snapshot)
                if cv2.waitKey(1) & 0xFF == ord('q'):
                    self.stop()
                    return

            await asyncio.sleep(max(0.0, period - (time.monotonic() - now)))

    def _draw_preview(self, snapshot: FrameSnapshot):
        cam = self.config.camera
        if self.latest_image is not None:
            frame = cv2.flip(self.latest_image, 1)
        else:
            frame = np.zeros((cam.height, cam.width, 3), dtype=np.uint8)

        if self.config.display.show_landmarks and self.latest_landmarks is not None and snapshot.hand.present:
            frame = draw_landmarks(frame, self.latest_landmarks)
        frame = draw_cursor(frame, snapshot.hand)

        scene = self._draw_scene(frame.shape[0])
        canvas = np.hstack([frame, scene])

        if not self.pipeline.capture_available:
            status_text = "Camera unavailable"
        elif snapshot.hand.present:
            status_text = f"Hand: {snapshot.hand.gesture.label}"
        else:
            status_text = "No hand detected"
        cv2.putText(canvas, status_text, (10, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1)
        cv2.putText(canvas, f"{snapshot.macro_state.value} {snapshot.progress:.2f}", (10, 40),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1)

        bar_w = int(snapshot.eased_progress * (canvas.shape[1] - 20))
        cv2.rectangle(canvas, (10, canvas.shape[0] - 12), (10 + bar_w, canvas.shape[0] - 6), (74, 222, 128), -1)
        cv2.putText(canvas, "Press 'q' to quit", (10, canvas.shape[0] - 20), cv2.FONT_HERSHEY_SIMPLEX, 0.4, (255, 255, 255), 1)

        cv2.imshow(self.config.display.window_name, canvas)

    def _draw_scene(self, size: int) -> np.ndarray:
        """Front projection of the foliage cloud."""
        scene = np.zeros((size, size, 3), dtype=np.uint8)
        foliage = next((s for s in self.subsystems if isinstance(s, Foliage)), None)
        if foliage is None:
            return scene
        pts = foliage.positions[:, :2]
        scale = size / 32.0
        px = (pts[:, 0] * scale + size / 2).astype(int)
        py = (size / 2 - (pts[:, 1] - 2.0) * scale).astype(int)
        inside = (px >= 0) & (px < size) & (py >= 0) & (py < size)
        scene[py[inside], px[inside]] = (128, 222, 74)
        return scene


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gesture-driven formation animation")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--no-preview", action="store_true", help="Run without the OpenCV window")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    return parser.parse_args(argv)


async def main(argv=None):
    """Entry point for the application."""
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    app = HandFormationApp(config_path=args.config, show_preview=False if args.no_preview else None)
    await app.run()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")


if __name__ == "__main__":
    run()
