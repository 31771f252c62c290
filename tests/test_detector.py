import sys, types

import numpy as np
import pytest

from emotion_engine.config import Settings
from emotion_engine.live import EmotionEngine
from emotion_engine.detector import (
    DeepFaceDetector,
    DetectorInitError,
    calibrate,
    map_labels,
)


class DummyDeepFace:
    calls = []
    result = None
    build_error = None
    built = []

    @staticmethod
    def build_model(model_name, task):
        if DummyDeepFace.build_error is not None:
            raise DummyDeepFace.build_error
        DummyDeepFace.built.append((model_name, task))
        return object()

    @staticmethod
    def analyze(frame, actions, enforce_detection, detector_backend):
        DummyDeepFace.calls.append({"actions": actions, "enforce_detection": enforce_detection,
                                    "detector_backend": detector_backend})
        return DummyDeepFace.result


@pytest.fixture
def fake_deepface(monkeypatch):
    DummyDeepFace.calls = []
    DummyDeepFace.result = []
    DummyDeepFace.build_error = None
    DummyDeepFace.built = []
    monkeypatch.setitem(sys.modules, "deepface", types.SimpleNamespace(DeepFace=DummyDeepFace))
    return DummyDeepFace


def _face(x, y, w, h, conf=0.9, **emotion):
    return {"region": {"x": x, "y": y, "w": w, "h": h}, "face_confidence": conf, "emotion": emotion}


def test_detect_maps_labels_and_filters(fake_deepface):
    fake_deepface.result = [
        _face(10, 10, 60, 60, happy=70.0, sad=10.0, angry=5.0, neutral=15.0),
        _face(0, 0, 20, 20, happy=99.0),            # too small
        _face(0, 0, 160, 120, conf=0.0, happy=1.0),  # whole-frame fallback region
    ]
    det = DeepFaceDetector(Settings(MIN_FACE_SIZE=40, MIN_FACE_CONFIDENCE=0.5, EMOTION_CALIBRATION=False))
    out = det.detect(np.zeros((120, 160, 3), dtype=np.uint8), timestamp_ms=250)

    assert len(out) == 1
    assert out[0].box.x == 10 and out[0].box.w == 60
    assert out[0].emotions == {"happiness": 70.0, "sadness": 10.0, "anger": 5.0, "neutral": 15.0}
    assert out[0].timestamp_ms == 250
    assert out[0].confidence == pytest.approx(0.9)
    assert fake_deepface.calls[0]["actions"] == ["emotion"]
    assert fake_deepface.calls[0]["enforce_detection"] is False


def test_detect_accepts_single_dict(fake_deepface):
    fake_deepface.result = _face(10, 10, 60, 60, neutral=100.0)
    det = DeepFaceDetector(Settings(MIN_FACE_SIZE=40, MIN_FACE_CONFIDENCE=0.5))
    out = det.detect(np.zeros((120, 160, 3), dtype=np.uint8))
    assert len(out) == 1


def test_load_failure_raises_detector_init_error(monkeypatch):
    # a None entry in sys.modules makes the import fail
    monkeypatch.setitem(sys.modules, "deepface", None)
    det = DeepFaceDetector(Settings())
    with pytest.raises(DetectorInitError):
        det.load()
    assert not det.loaded


def test_map_labels():
    assert map_labels({"Happy": 1.0, "fear": 2.0, "surprise": 3.0}) == {"happiness": 1.0, "fear": 2.0, "surprise": 3.0}


def test_calibrate_rebalances_and_floors():
    out = calibrate({"neutral": 60.0, "happiness": 30.0, "sadness": 10.0})
    # 0.21 / 0.165 / 0.18 -> renormalised 0.378 / 0.297 / 0.324
    assert out["neutral"] == pytest.approx(37.84, abs=0.01)
    assert out["happiness"] == pytest.approx(29.73, abs=0.01)
    assert out["sadness"] == pytest.approx(32.43, abs=0.01)

    weak = calibrate({"neutral": 95.0, "fear": 5.0})
    # fear: 0.2 / (0.3325 + 0.2) = 0.376 -> kept; neutral 0.624 -> kept
    assert weak["fear"] > 0
    floored = calibrate({"neutral": 99.9, "contempt": 0.1})
    assert floored["contempt"] == 0.0
    assert calibrate({}) == {}
    assert calibrate({"neutral": 0.0}) == {"neutral": 0.0}


def test_detect_applies_calibration_when_enabled(fake_deepface):
    fake_deepface.result = [_face(10, 10, 60, 60, neutral=60.0, happy=30.0, sad=10.0)]
    det = DeepFaceDetector(Settings(MIN_FACE_SIZE=40, MIN_FACE_CONFIDENCE=0.5, EMOTION_CALIBRATION=True))
    out = det.detect(np.zeros((120, 160, 3), dtype=np.uint8))
    assert out[0].emotions["sadness"] == pytest.approx(32.43, abs=0.01)


def test_load_builds_emotion_model(fake_deepface):
    det = DeepFaceDetector(Settings())
    det.load()
    assert det.loaded
    assert fake_deepface.built == [("Emotion", "facial_attribute")]


def test_model_build_failure_puts_engine_in_degraded_mode(fake_deepface):
    fake_deepface.build_error = OSError("weights download failed")
    det = DeepFaceDetector(Settings())
    with pytest.raises(DetectorInitError, match="weights download failed"):
        det.load()
    assert not det.loaded

    engine = EmotionEngine(Settings(), detector=det)
    engine.start_session()
    event = engine.tick(np.zeros((120, 160, 3), dtype=np.uint8), 0)
    assert engine.degraded
    assert event.degraded is True
    assert "weights download failed" in event.error
    assert fake_deepface.calls == []
