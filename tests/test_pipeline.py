"""
Test cases for the formation pipeline: tracker path and render path together.
"""
import dataclasses
import unittest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from handsync.capture import LatestFrameSlot, TrackedFrame
from handsync.config import Cfg
from handsync.pipeline import FormationPipeline
from handsync.progress import ease_in_out_cubic
from handsync.types import CaptureUnavailableError, GestureType, MacroState
from synthetic_hands import CLOSED_FIST, OPEN_PALM, PINCH, flat_hand_at

FRAME_S = 0.033


class ScriptedClassifier:
    """Returns pre-set candidates in order, raising where the script says so."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0

    def __call__(self, frame, pinch_threshold):
        item = self.script[self.calls]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item


class RecordingSubsystem:
    """Keeps every snapshot it is handed."""

    def __init__(self):
        self.snapshots = []

    def update(self, snapshot, dt):
        self.snapshots.append(snapshot)


class FrameFeeder:
    """Builds tracked frames with increasing ids spaced one tracker period apart."""

    def __init__(self):
        self.seq = 0
        self.t = 0.0

    def __call__(self, landmarks, gap=FRAME_S):
        self.seq += 1
        self.t += gap
        return TrackedFrame(seq=self.seq, timestamp=self.t, landmarks=landmarks)


class TestEndToEnd(unittest.TestCase):
    """Test the candidate sequence scenario from gestures to macro-state."""

    def test_palm_then_fist(self):
        """Gestures only take effect after their own two-frame run."""
        classifier = ScriptedClassifier([
            GestureType.OPEN_PALM, GestureType.OPEN_PALM,
            GestureType.CLOSED_FIST, GestureType.CLOSED_FIST,
        ])
        pipeline = FormationPipeline(Cfg.defaults(), classifier=classifier)
        feed = FrameFeeder()

        hand = pipeline.process_frame(feed(flat_hand_at(0.2, 0.4)))
        self.assertEqual(hand.gesture, GestureType.NONE)
        self.assertEqual(pipeline.macro.state, MacroState.ASSEMBLED)

        hand = pipeline.process_frame(feed(flat_hand_at(0.8, 0.6)))
        self.assertEqual(hand.gesture, GestureType.OPEN_PALM)
        self.assertEqual(pipeline.macro.state, MacroState.DISPERSED)

        hand = pipeline.process_frame(feed(flat_hand_at(0.8, 0.6)))
        self.assertEqual(hand.gesture, GestureType.OPEN_PALM)
        self.assertEqual(pipeline.macro.state, MacroState.DISPERSED)

        hand = pipeline.process_frame(feed(flat_hand_at(0.8, 0.6)))
        self.assertEqual(hand.gesture, GestureType.CLOSED_FIST)
        self.assertEqual(pipeline.macro.state, MacroState.ASSEMBLED)

    def test_real_classifier_drives_progress(self):
        """Open palm frames disperse and progress falls; a fist brings it back."""
        cfg = Cfg.defaults()
        cfg.progress.initial_progress = 1.0
        pipeline = FormationPipeline(cfg)
        feed = FrameFeeder()

        for _ in range(2):
            pipeline.process_frame(feed(OPEN_PALM))
        self.assertEqual(pipeline.macro.state, MacroState.DISPERSED)
        for _ in range(30):
            snapshot = pipeline.tick(1 / 60)
        self.assertLess(snapshot.progress, 1.0)
        low = snapshot.progress

        for _ in range(2):
            pipeline.process_frame(feed(CLOSED_FIST))
        snapshot = pipeline.tick(1 / 60)
        self.assertEqual(snapshot.macro_state, MacroState.ASSEMBLED)
        self.assertGreater(snapshot.progress, low)


class TestTrackerPath(unittest.TestCase):
    """Test frame admission and per-frame isolation."""

    def setUp(self):
        self.pipeline = FormationPipeline(Cfg.defaults())
        self.feed = FrameFeeder()

    def test_stale_frame_skipped(self):
        """The same frame is never processed twice."""
        frame = self.feed(OPEN_PALM)
        self.assertIsNotNone(self.pipeline.process_frame(frame))
        self.assertIsNone(self.pipeline.process_frame(frame))
        self.assertEqual(self.pipeline.frames_processed, 1)

    def test_too_soon_frame_dropped(self):
        """Frames closer than the minimum interval are dropped, not queued."""
        self.assertIsNotNone(self.pipeline.process_frame(self.feed(OPEN_PALM)))
        self.assertIsNone(self.pipeline.process_frame(self.feed(OPEN_PALM, gap=0.010)))
        self.assertIsNotNone(self.pipeline.process_frame(self.feed(OPEN_PALM, gap=0.025)))
        self.assertEqual(self.pipeline.frames_processed, 2)

    def test_absent_frame(self):
        """A frame without a hand reports absent at once."""
        for _ in range(2):
            self.pipeline.process_frame(self.feed(OPEN_PALM))
        hand = self.pipeline.process_frame(self.feed(None))
        self.assertFalse(hand.present)
        self.assertEqual(hand.gesture, GestureType.NONE)
        self.assertEqual((hand.x, hand.y), (0.5, 0.5))

    def test_classifier_error_isolated(self):
        """A failing frame becomes NONE and later frames still run."""
        classifier = ScriptedClassifier([
            GestureType.OPEN_PALM, RuntimeError("bad frame"), GestureType.OPEN_PALM, GestureType.OPEN_PALM,
        ])
        pipeline = FormationPipeline(Cfg.defaults(), classifier=classifier)
        pipeline.process_frame(self.feed(OPEN_PALM))
        with self.assertLogs("handsync.pipeline", level="ERROR"):
            hand = pipeline.process_frame(self.feed(OPEN_PALM))
        self.assertTrue(hand.present)
        self.assertEqual(pipeline.frames_failed, 1)

        pipeline.process_frame(self.feed(OPEN_PALM))
        hand = pipeline.process_frame(self.feed(OPEN_PALM))
        self.assertEqual(hand.gesture, GestureType.OPEN_PALM)

    def test_pull_latest_wins(self):
        """Only the newest published frame is consumed."""
        slot = LatestFrameSlot()
        slot.publish(OPEN_PALM, timestamp=0.1)
        slot.publish(PINCH, timestamp=0.12)
        self.pipeline.pull(slot)
        self.assertEqual(self.pipeline.frames_processed, 1)
        self.assertEqual(slot.dropped, 1)
        self.assertEqual(self.pipeline.stabilizer.memory.last_candidate, GestureType.PINCH_HEART)
        self.assertIsNone(self.pipeline.pull(slot))

    def test_pull_empty_slot(self):
        self.assertIsNone(self.pipeline.pull(LatestFrameSlot()))

    def test_capture_failure_non_fatal(self):
        """Acquisition failure is logged once and the pipeline keeps ticking."""
        with self.assertLogs("handsync.pipeline", level="WARNING") as logs:
            self.pipeline.capture_failed(CaptureUnavailableError("no camera"))
            self.pipeline.capture_failed(CaptureUnavailableError("no camera"))
        self.assertEqual(len(logs.output), 1)
        self.assertFalse(self.pipeline.capture_available)
        snapshot = self.pipeline.tick(1 / 60)
        self.assertFalse(snapshot.hand.present)


class TestRenderPath(unittest.TestCase):
    """Test the per-tick snapshot broadcast."""

    def setUp(self):
        self.pipeline = FormationPipeline(Cfg.defaults())
        self.first = RecordingSubsystem()
        self.second = RecordingSubsystem()
        self.pipeline.add_subsystem(self.first)
        self.pipeline.add_subsystem(self.second)

    def test_all_subsystems_see_one_snapshot(self):
        for _ in range(5):
            snapshot = self.pipeline.tick(1 / 60)
        for a, b in zip(self.first.snapshots, self.second.snapshots):
            self.assertIs(a, b)
        self.assertIs(self.first.snapshots[-1], snapshot)
        self.assertEqual(snapshot.eased_progress, ease_in_out_cubic(snapshot.progress))

    def test_snapshot_is_read_only(self):
        snapshot = self.pipeline.tick(1 / 60)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            snapshot.progress = 0.0
        with self.assertRaises(dataclasses.FrozenInstanceError):
            snapshot.hand.gesture = GestureType.VICTORY

    def test_starts_assembling(self):
        """Default start: assembled state with progress rising from zero."""
        first = self.pipeline.tick(1 / 60)
        second = self.pipeline.tick(1 / 60)
        self.assertEqual(first.macro_state, MacroState.ASSEMBLED)
        self.assertGreater(second.progress, first.progress)

    def test_pinch_hides_macro(self):
        """Pinch and victory hide the formation without changing macro-state."""
        feed = FrameFeeder()
        for _ in range(2):
            self.pipeline.process_frame(feed(PINCH))
        snapshot = self.pipeline.tick(1 / 60)
        self.assertFalse(snapshot.macro_visible)
        self.assertEqual(snapshot.hand.gesture, GestureType.PINCH_HEART)
        self.assertEqual(snapshot.macro_state, MacroState.ASSEMBLED)

    def test_rejects_non_subsystem(self):
        with self.assertRaises(TypeError):
            self.pipeline.add_subsystem(object())

    def test_elapsed_accumulates(self):
        self.pipeline.tick(0.5)
        snapshot = self.pipeline.tick(0.25)
        self.assertAlmostEqual(snapshot.elapsed, 0.75)


if __name__ == '__main__':
    unittest.main()
