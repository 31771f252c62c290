"""
Raw detector adapter: one video frame -> list of RawDetection.

DeepFaceDetector wraps DeepFace (OpenCV backend). DeepFace is imported lazily
in load() so tests can inject a fake module through sys.modules.
"""
from __future__ import annotations
from typing import Dict, List, Optional
import logging

import numpy as np

from emotion_engine.config import Settings
from emotion_engine.models import BoundingBox, RawDetection

logger = logging.getLogger(__name__)

# DeepFace label -> engine label
LABEL_MAP = {
    "happy": "happiness",
    "sad": "sadness",
    "angry": "anger",
}

# Per-label scaling applied to raw probabilities before renormalisation
CALIBRATION_FACTORS: Dict[str, float] = {
    "neutral": 0.35,
    "happiness": 0.55,
    "surprise": 1.4,
    "sadness": 1.8,
    "anger": 2.0,
    "disgust": 5.0,
    "fear": 4.0,
    "contempt": 6.0,
}

# Renormalised probability at or below which a label is zeroed
CALIBRATION_FLOORS: Dict[str, float] = {
    "neutral": 0.22,
    "happiness": 0.18,
    "surprise": 0.16,
    "sadness": 0.15,
    "anger": 0.13,
    "disgust": 0.09,
    "fear": 0.11,
    "contempt": 0.08,
}


class DetectorInitError(RuntimeError):
    """The detector model could not be loaded."""


def map_labels(scores: Dict[str, float]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for label, value in (scores or {}).items():
        key = LABEL_MAP.get(str(label).lower(), str(label).lower())
        out[key] = out.get(key, 0.0) + float(value)
    return out


def calibrate(scores: Dict[str, float]) -> Dict[str, float]:
    """
    Rebalance a 0..100 score map.

    Each probability is multiplied by its label factor, the result is
    renormalised to sum 1, values at or below the label floor are zeroed and
    the rest scaled back to 0..100.
    """
    if not scores:
        return {}
    labels = list(scores.keys())
    probs = np.array([max(0.0, float(scores[k])) / 100.0 for k in labels])
    factors = np.array([CALIBRATION_FACTORS.get(k, 1.0) for k in labels])
    weighted = probs * factors
    total = float(weighted.sum())
    if total <= 0:
        return {k: 0.0 for k in labels}
    normalised = weighted / total
    out: Dict[str, float] = {}
    for label, p in zip(labels, normalised):
        p = float(p)
        if p <= CALIBRATION_FLOORS.get(label, 0.0):
            p = 0.0
        out[label] = max(0.0, min(100.0, p * 100.0))
    return out


class FrameDetector:
    """
    Boundary for any face + emotion model.

    load() may raise DetectorInitError; detect() returns detections for one
    frame and may raise on a per-frame failure (the engine treats that as
    "no detections").
    """
    def load(self) -> None:
        return None

    def detect(self, frame: np.ndarray, timestamp_ms: float = 0.0) -> List[RawDetection]:
        raise NotImplementedError


class DeepFaceDetector(FrameDetector):
    def __init__(self, settings: Settings):
        self.s = settings
        self._deepface = None

    @property
    def loaded(self) -> bool:
        return self._deepface is not None

    def load(self) -> None:
        if self._deepface is not None:
            return
        try:
            from deepface import DeepFace
        except Exception as e:
            raise DetectorInitError(
                "DeepFace import failed. Ensure deepface/tensorflow stack is installed."
            ) from e
        # DeepFace builds models on first analyze(); build the emotion model
        # here so missing weights fail the session start instead of every frame
        try:
            DeepFace.build_model(model_name="Emotion", task="facial_attribute")
        except Exception as e:
            raise DetectorInitError(f"DeepFace emotion model could not be built: {e}") from e
        self._deepface = DeepFace
        logger.debug(f"[detector] DeepFace loaded backend={self.s.DETECTOR_BACKEND}")

    def _valid_region(self, r: Dict) -> bool:
        reg = (r or {}).get("region") or {}
        w = int(reg.get("w", 0)); h = int(reg.get("h", 0))
        ok_size = (w >= self.s.MIN_FACE_SIZE and h >= self.s.MIN_FACE_SIZE)
        conf = r.get("face_confidence")
        if conf is None:
            conf = 1.0
        return ok_size and float(conf) >= self.s.MIN_FACE_CONFIDENCE

    def _to_detection(self, r: Dict, timestamp_ms: float) -> RawDetection:
        reg = r.get("region") or {}
        emotions = map_labels(r.get("emotion") or {})
        if self.s.EMOTION_CALIBRATION:
            emotions = calibrate(emotions)
        else:
            emotions = {k: max(0.0, min(100.0, v)) for k, v in emotions.items()}
        landmarks: Optional[List] = None
        eyes = [reg.get("left_eye"), reg.get("right_eye")]
        if all(isinstance(e, (list, tuple)) and len(e) == 2 for e in eyes):
            landmarks = [(float(e[0]), float(e[1])) for e in eyes]
        conf = r.get("face_confidence")
        return RawDetection(
            box=BoundingBox(x=int(reg.get("x", 0)), y=int(reg.get("y", 0)),
                            w=int(reg.get("w", 0)), h=int(reg.get("h", 0))),
            landmarks=landmarks,
            emotions=emotions,
            confidence=1.0 if conf is None else float(conf),
            timestamp_ms=timestamp_ms,
        )

    def detect(self, frame: np.ndarray, timestamp_ms: float = 0.0) -> List[RawDetection]:
        if self._deepface is None:
            self.load()
        result = self._deepface.analyze(
            frame,
            actions=["emotion"],
            enforce_detection=False,
            detector_backend=self.s.DETECTOR_BACKEND,
        )
        # DeepFace returns list[dict] or dict depending on version; normalize to list
        if isinstance(result, dict):
            result = [result]
        detections = [self._to_detection(r, timestamp_ms) for r in result or [] if self._valid_region(r)]
        logger.debug(f"[detector] t={timestamp_ms:.0f}ms faces={len(detections)} raw={len(result or [])}")
        return detections
