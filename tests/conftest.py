import pytest
import numpy as np

from emotion_engine.config import Settings
from emotion_engine.detector import FrameDetector
from emotion_engine.models import BoundingBox, EmotionSample, RawDetection


class ScriptedDetector(FrameDetector):
    """Returns one scripted list of detections per call, then nothing."""
    def __init__(self, script=None):
        self.script = list(script or [])
        self.calls = 0
        self.loads = 0

    def load(self):
        self.loads += 1

    def detect(self, frame, timestamp_ms=0.0):
        out = self.script[self.calls] if self.calls < len(self.script) else []
        self.calls += 1
        return [d.model_copy(update={"timestamp_ms": timestamp_ms}) for d in out]


@pytest.fixture
def settings():
    return Settings(
        FOUND_THRESHOLD=1,
        LOST_THRESHOLD=15,
        EVICTION_THRESHOLD=30,
        MATCH_STRATEGY="center",
        BUCKET_WIDTH_MS=1000,
        TIMELINE_INTERVAL_MS=5000,
        RULE_PROFILE="audience",
        EMOTION_CALIBRATION=False,
    )


@pytest.fixture
def frame():
    return np.zeros((120, 160, 3), dtype=np.uint8)


@pytest.fixture
def make_detection():
    def _make(x, y, w=50, h=50, **emotions):
        return RawDetection(box=BoundingBox(x=x, y=y, w=w, h=h), emotions=emotions)
    return _make


@pytest.fixture
def make_sample():
    def _make(t, face_detected=True, **scores):
        return EmotionSample.from_scores(t, scores, face_detected=face_detected)
    return _make


@pytest.fixture
def scripted_detector():
    return ScriptedDetector
