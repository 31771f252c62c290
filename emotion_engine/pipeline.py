# emotion_engine/pipeline.py
from __future__ import annotations
from typing import Dict, Optional, Sequence
import logging
import os

import cv2

from emotion_engine.aggregator import aggregate
from emotion_engine.config import Settings
from emotion_engine.detector import FrameDetector
from emotion_engine.live import EmotionEngine
from emotion_engine.models import EmotionSample, SessionRecord
from emotion_engine.narrative import NarrativeGenerator

logger = logging.getLogger(__name__)


def _report_payload(sequences: Sequence[Sequence[EmotionSample]],
                    settings: Settings,
                    bucket_width_ms: Optional[int] = None) -> Dict:
    width = bucket_width_ms or settings.BUCKET_WIDTH_MS
    buckets = aggregate(sequences, width)
    report = NarrativeGenerator.from_settings(settings).build_report(buckets)
    return report.model_dump(mode="json")


def analyze_samples_pipeline(sequences: Sequence[Sequence[EmotionSample]],
                             settings: Settings,
                             bucket_width_ms: Optional[int] = None) -> Dict:
    """
    Aggregate stored sample sequences (one per viewer) and build the narrative report.
    """
    logger.debug(f"[pipeline] analyze_samples_pipeline sequences={len(sequences)} width={bucket_width_ms}")
    payload = _report_payload(sequences, settings, bucket_width_ms)
    logger.debug("[pipeline] analyze_samples_pipeline finished successfully")
    return payload


def report_from_record(record: SessionRecord, settings: Settings) -> Dict:
    """Report for a closed live session."""
    payload = _report_payload(list(record.sequences.values()), settings)
    payload["session"] = record.model_dump(mode="json", exclude={"sequences"})
    return payload


def analyze_video_pipeline(video_path: str,
                           settings: Settings,
                           detector: Optional[FrameDetector] = None) -> Dict:
    """
    Run the engine over a recorded video: one tick every DETECTION_INTERVAL_MS of
    video time, then aggregate every viewer's sequence into a report.
    """
    if not os.path.exists(video_path):
        raise FileNotFoundError(f"Video not found: {video_path}")

    logger.debug(f"[pipeline] analyze_video_pipeline start video_path={video_path}")
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open video: {video_path}")

    fps = cap.get(cv2.CAP_PROP_FPS) or 25.0
    interval_frames = max(1, int(round(fps * settings.DETECTION_INTERVAL_MS / 1000.0)))
    logger.debug(f"[pipeline] fps={fps} interval_frames={interval_frames}")

    engine = EmotionEngine(settings, detector=detector)
    engine.start_session()
    if engine.degraded:
        cap.release()
        engine.stop_session()
        raise RuntimeError(f"Detector unavailable: {engine.error}")

    frame_index = 0
    ticks = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            if frame_index % interval_frames == 0:
                # offline timestamps come from the file's frame clock
                engine.tick(frame, timestamp_ms=frame_index * 1000.0 / fps)
                ticks += 1
            frame_index += 1
    finally:
        cap.release()
        record = engine.stop_session()

    payload = report_from_record(record, settings)
    payload["video"] = {"fps": float(fps), "frames": frame_index, "ticks": ticks}
    logger.debug(f"[pipeline] analyze_video_pipeline finished; ticks={ticks} sequences={len(record.sequences)}")
    return payload
