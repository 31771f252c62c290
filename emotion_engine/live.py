# emotion_engine/live.py
"""
Live (real-time) analysis.

- EmotionEngine: frame-driven flow detector -> correlator -> buffer, one tick
  per frame, with a re-entrancy guard and a degraded mode when the detector
  model cannot be loaded
- LiveAnalyzer: background camera thread feeding an engine (used by the API)
- run_live_overlay: debug window drawing tracked faces and the presence flag
"""

from __future__ import annotations

import logging
import os
import time
import uuid
import threading
from typing import Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np

# Prevent OpenMP oversubscription on CPU
os.environ.setdefault("OMP_NUM_THREADS", "1")
os.environ.setdefault("MKL_NUM_THREADS", "1")

from emotion_engine.aggregator import aggregate
from emotion_engine.buffer import EmotionSampleBuffer
from emotion_engine.config import Settings
from emotion_engine.correlator import SubjectCorrelator
from emotion_engine.detector import DeepFaceDetector, DetectorInitError, FrameDetector
from emotion_engine.events import SESSION_CLOSED, TICK, EventBus
from emotion_engine.models import (
    AnalysisReport,
    EmotionSample,
    LiveStatus,
    SessionRecord,
    StableState,
    TickEvent,
    TrackedFace,
)
from emotion_engine.narrative import NarrativeGenerator
from emotion_engine.presence import PresenceStabilizer
from emotion_engine.visual import draw_overlays

logger = logging.getLogger(__name__)

# Buffer key for ticks on which no face is present
SESSION_KEY = "session"


def track_key(track_id: int) -> str:
    return f"track-{track_id}"


def _dominant(scores: Dict[str, float]) -> Optional[str]:
    best, label = -1.0, None
    for k, v in scores.items():
        if v > best:
            best, label = v, k
    return label


class EmotionEngine:
    """
    Owns one session's state. A tick arriving while another is still being
    processed is dropped and counted, never queued.
    """
    def __init__(self,
                 settings: Settings,
                 detector: Optional[FrameDetector] = None,
                 bus: Optional[EventBus] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.s = settings
        self.detector = detector if detector is not None else DeepFaceDetector(settings)
        self.bus = bus if bus is not None else EventBus()
        self._clock = clock
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)

        self.correlator = SubjectCorrelator(
            found_threshold=settings.FOUND_THRESHOLD,
            lost_threshold=settings.LOST_THRESHOLD,
            eviction_threshold=settings.EVICTION_THRESHOLD,
            strategy=settings.MATCH_STRATEGY,
            distance_ratio=settings.MATCH_DISTANCE_RATIO,
            min_iou=settings.MIN_IOU,
        )
        self.presence = PresenceStabilizer(settings.FOUND_THRESHOLD, settings.LOST_THRESHOLD)
        self.buffer = EmotionSampleBuffer()

        self.session_id: Optional[str] = None
        self.started_at: Optional[float] = None
        self.error: Optional[str] = None
        self.degraded = False
        self.dropped_ticks = 0
        self.max_face_count = 0
        self.last_event: Optional[TickEvent] = None
        self.last_record: Optional[SessionRecord] = None
        self._t0 = 0.0
        self._running = False
        self._processing = False
        self._worker: Optional[int] = None
        self._frame: Optional[np.ndarray] = None

    # ---- lifecycle ----
    @property
    def running(self) -> bool:
        return self._running

    def start_session(self) -> str:
        """Start a fresh session; a running one is returned unchanged."""
        if self._running:
            return self.session_id
        self.correlator.reset()
        self.presence.reset()
        self.buffer = EmotionSampleBuffer()
        self.dropped_ticks = 0
        self.max_face_count = 0
        self.last_event = None
        self.error = None
        self.degraded = False

        try:
            self.detector.load()
        except DetectorInitError as e:
            self.degraded = True
            self.error = str(e)
            logger.warning(f"[engine] detector unavailable, running degraded: {e}")

        self.session_id = uuid.uuid4().hex
        self.started_at = time.time()
        self._t0 = self._clock()
        self._running = True
        logger.debug(f"[engine] session {self.session_id} started degraded={self.degraded}")
        return self.session_id

    def stop_session(self) -> Optional[SessionRecord]:
        """
        Halt ticks, close every sequence and hand the session off to subscribers.

        Blocks until a tick in flight on another thread has finished, so no
        tick is published after session_closed.
        """
        with self._lock:
            if not self._running:
                return None
            self._running = False
            while self._processing and self._worker != threading.get_ident():
                self._idle.wait()
            self.buffer.close()
            sequences = {key: list(seq) for key, seq in self.buffer.snapshot().items()}
            rejected = self.buffer.rejected_count

        self.correlator.reset()
        self.presence.reset()
        self._frame = None

        record = SessionRecord(
            session_id=self.session_id,
            started_at=self.started_at,
            duration_ms=(self._clock() - self._t0) * 1000.0,
            max_face_count=self.max_face_count,
            sequences=sequences,
            rejected_samples=rejected,
            dropped_ticks=self.dropped_ticks,
        )
        self.last_record = record
        logger.debug(
            f"[engine] session {record.session_id} closed; sequences={len(sequences)} "
            f"samples={sum(len(s) for s in sequences.values())} dropped_ticks={record.dropped_ticks}"
        )
        self.bus.publish(SESSION_CLOSED, record)
        return record

    # ---- per-frame ----
    def tick(self, frame: np.ndarray, timestamp_ms: Optional[float] = None) -> Optional[TickEvent]:
        """
        Process one frame.

        Returns:
            The published TickEvent, or None when the tick was dropped (no
            session running, or a previous tick still in flight).
        """
        with self._lock:
            if not self._running:
                return None
            if self._processing:
                self.dropped_ticks += 1
                logger.debug(f"[engine] tick dropped; in flight (dropped={self.dropped_ticks})")
                return None
            self._processing = True
            self._worker = threading.get_ident()
        try:
            return self._process(frame, timestamp_ms)
        finally:
            with self._lock:
                self._processing = False
                self._worker = None
                self._idle.notify_all()

    def _process(self, frame: np.ndarray, timestamp_ms: Optional[float]) -> Optional[TickEvent]:
        ts = float(timestamp_ms) if timestamp_ms is not None else (self._clock() - self._t0) * 1000.0
        if ts < 0:
            logger.debug(f"[engine] tick ignored; negative timestamp {ts}")
            return None
        self._frame = frame

        detections = []
        if not self.degraded:
            try:
                detections = self.detector.detect(frame, ts)
            except Exception:
                logger.exception(f"[engine] detection failed at t={ts:.0f}ms; treating as no face")
                detections = []

        result = self.correlator.update(detections, ts)
        present = {t.track_id for t in self.correlator.faces()}

        current: Optional[EmotionSample] = None
        sampled = False
        with self._lock:
            for track_id, det in sorted(result.assignments.items()):
                if track_id not in present or not det.emotions:
                    continue
                sample = EmotionSample.from_scores(ts, det.emotions)
                sampled = True
                if self.buffer.append(track_key(track_id), sample) and current is None:
                    current = sample
            # every tick leaves at least one sample so face-less moments are counted
            if not sampled:
                self.buffer.append(SESSION_KEY, EmotionSample(timestamp=ts, face_detected=False))

        self.presence.update(len(detections) > 0)
        self.max_face_count = max(self.max_face_count, result.face_count)

        event = TickEvent(
            timestamp_ms=ts,
            face_count=result.face_count,
            stable_face_detected=self.presence.state is StableState.PRESENT,
            boxes=result.boxes,
            faces=self.faces(),
            current_sample=current,
            degraded=self.degraded,
            error=self.error,
        )
        self.last_event = event
        self.bus.publish(TICK, event)
        return event

    # ---- read side ----
    def faces(self) -> List[TrackedFace]:
        return [
            TrackedFace(track_id=t.track_id, box=t.box, dominant_emotion=_dominant(t.emotions))
            for t in self.correlator.faces()
        ]

    def snapshot(self) -> Dict[str, Tuple[EmotionSample, ...]]:
        """Immutable copy of the session's sequences."""
        with self._lock:
            return self.buffer.snapshot()

    def report(self, bucket_width_ms: Optional[int] = None) -> AnalysisReport:
        snap = self.snapshot()
        buckets = aggregate(list(snap.values()), bucket_width_ms or self.s.BUCKET_WIDTH_MS)
        return NarrativeGenerator.from_settings(self.s).build_report(buckets)


# -----------------------------------------------------------------------------
# LiveAnalyzer: background capture thread feeding an EmotionEngine (no UI)
# -----------------------------------------------------------------------------
class LiveAnalyzer:
    """Drives an EmotionEngine from a camera at DETECTION_INTERVAL_MS."""
    def __init__(self, settings: Settings,
                 detector: Optional[FrameDetector] = None,
                 bus: Optional[EventBus] = None):
        self.s = settings
        self.engine = EmotionEngine(settings, detector=detector, bus=bus)
        self._run = False
        self._video_thread: Optional[threading.Thread] = None
        self._error: Optional[str] = None

    # ---- lifecycle ----
    def start(self) -> str:
        if self._run:
            return self.engine.session_id
        self._error = None
        session_id = self.engine.start_session()
        self._run = True
        self._video_thread = threading.Thread(target=self._video_loop, daemon=True)
        self._video_thread.start()
        return session_id

    def stop(self) -> Optional[SessionRecord]:
        """Join the capture thread before closing the session."""
        self._run = False
        if self._video_thread is not None:
            self._video_thread.join(timeout=5.0)
            self._video_thread = None
        return self.engine.stop_session()

    def status(self) -> LiveStatus:
        return LiveStatus(
            running=self.engine.running,
            started_at=self.engine.started_at,
            session_id=self.engine.session_id,
            last_event=self.engine.last_event,
            error=self._error or self.engine.error,
        )

    # ---- loop ----
    def _video_loop(self):
        cap = cv2.VideoCapture(self.s.CAMERA_INDEX)
        if not cap.isOpened():
            self._error = f"Could not open camera index {self.s.CAMERA_INDEX}"
            logger.error(f"[live] {self._error}")
            self._run = False
            self.engine.stop_session()
            return

        interval = self.s.DETECTION_INTERVAL_MS / 1000.0
        next_t = 0.0
        try:
            while self._run:
                ok, frame = cap.read()
                if not ok:
                    time.sleep(0.1)
                    continue
                tnow = time.monotonic()
                if tnow >= next_t:
                    self.engine.tick(frame)
                    next_t = tnow + interval
                time.sleep(0.01)
        finally:
            cap.release()


# -----------------------------------------------------------------------------
# Live camera overlay (debug window)
# -----------------------------------------------------------------------------
def run_live_overlay(settings: Settings,
                     camera_index: Optional[int] = None,
                     detector: Optional[FrameDetector] = None) -> Optional[SessionRecord]:
    """
    Open webcam, run the engine on every frame, draw tracked faces + flags.

    Flags:
      - NO_FACE while the stable presence signal is absent
      - DETECTOR_UNAVAILABLE in degraded mode
    Press 'q' to quit.
    """
    cam_idx = settings.CAMERA_INDEX if camera_index is None else camera_index
    cap = cv2.VideoCapture(cam_idx)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open camera index {cam_idx}")

    engine = EmotionEngine(settings, detector=detector)
    engine.start_session()
    event: Optional[TickEvent] = None
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break

            event = engine.tick(frame) or event
            flag = None
            if event is not None:
                if event.degraded:
                    flag = "DETECTOR_UNAVAILABLE"
                elif not event.stable_face_detected:
                    flag = "NO_FACE"
            faces = event.faces if event is not None else []
            annotated = draw_overlays(frame, faces, flag)
            cv2.imshow("Emotion Engine Live (q to quit)", annotated)

            if (cv2.waitKey(1) & 0xFF) == ord("q"):
                break
    finally:
        record = engine.stop_session()
        cap.release()
        cv2.destroyAllWindows()
    return record
