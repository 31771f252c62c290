"""Visualization & video annotation helpers.

- draw_overlays: draw rectangles & labels for tracked faces, plus an optional flag
- annotate_video: run the engine over a video file and write an annotated copy
"""
from __future__ import annotations
import os
import cv2
import numpy as np
from typing import List, Optional, Sequence, Tuple

from emotion_engine.config import Settings
from emotion_engine.models import TrackedFace


def draw_overlays(frame: np.ndarray,
                  faces: Sequence[TrackedFace] | None = None,
                  flag: Optional[str] = None,
                  color: Tuple[int, int, int] = (0, 255, 0)) -> np.ndarray:
    """Draw bounding boxes and labels on a copy of the frame.

    Args:
        frame: BGR image
        faces: tracked faces; each gets a rectangle and "#<id> <emotion>"
        flag: optional flag string (e.g. "NO_FACE"), drawn top-left in red
        color: BGR color for rectangles

    Returns:
        Annotated copy of the frame
    """
    out = frame.copy()
    h, w = out.shape[:2]

    if flag:
        cv2.putText(out, flag, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 0, 255), 2, cv2.LINE_AA)

    for face in faces or []:
        box = face.box
        x, y, fw, fh = int(box.x), int(box.y), int(box.w), int(box.h)
        # clamp to image bounds
        x = max(0, min(x, w-1)); y = max(0, min(y, h-1))
        fw = max(0, min(fw, w-x)); fh = max(0, min(fh, h-y))

        cv2.rectangle(out, (x, y), (x+fw, y+fh), color, 2)
        label = f"#{face.track_id}"
        if face.dominant_emotion:
            label = f"{label} {face.dominant_emotion}"
        cv2.putText(out, label, (x, max(0, y-10)), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2, cv2.LINE_AA)

    if faces:
        cv2.putText(out, f"faces: {len(faces)}", (10, h - 10), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2, cv2.LINE_AA)
    return out


def annotate_video(input_path: str,
                   output_path: str,
                   settings: Settings,
                   detector=None) -> str:
    """Annotate a video with tracked faces and presence flags.

    Every frame goes through the engine with a timestamp derived from the
    file's fps; the tracked faces of the latest tick are drawn on each frame.
    Returns the path to the annotated video.
    """
    if not os.path.exists(input_path):
        raise FileNotFoundError(f"Video not found: {input_path}")

    cap = cv2.VideoCapture(input_path)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open video: {input_path}")

    fourcc = cv2.VideoWriter_fourcc(*"MJPG")  # robust across platforms for tests
    fps = cap.get(cv2.CAP_PROP_FPS) or 25.0
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    writer = cv2.VideoWriter(output_path, fourcc, fps, (width, height))

    # live imports this module for draw_overlays
    from emotion_engine.live import EmotionEngine

    engine = EmotionEngine(settings, detector=detector)
    engine.start_session()
    faces: List[TrackedFace] = []
    flag: Optional[str] = None
    idx = 0
    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            event = engine.tick(frame, timestamp_ms=idx * 1000.0 / fps)
            if event is not None:
                faces = event.faces
                flag = None if event.stable_face_detected else "NO_FACE"
            writer.write(draw_overlays(frame, faces, flag))
            idx += 1
    finally:
        engine.stop_session()
        cap.release()
        writer.release()
    return output_path
