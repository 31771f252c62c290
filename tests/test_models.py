import pytest
from pydantic import ValidationError

from emotion_engine.models import BoundingBox, EmotionSample, IntensityLevel, TimeBucket


def test_bounding_box_geometry():
    a = BoundingBox(x=0, y=0, w=50, h=50)
    b = BoundingBox(x=10, y=0, w=50, h=50)
    assert a.center == (25.0, 25.0)
    assert a.area == 2500
    assert a.distance_to(b) == pytest.approx(10.0)
    assert a.iou(b) == pytest.approx(2000 / 3000, rel=1e-4)
    assert a.iou(BoundingBox(x=100, y=100, w=10, h=10)) == 0.0


def test_sample_from_scores_clamps_and_picks_dominant():
    s = EmotionSample.from_scores(10, {"neutral": 30.0, "happiness": 130.0, "sadness": -5.0})
    assert [r.intensity for r in s.emotions] == [30.0, 100.0, 0.0]
    assert s.dominant_emotion == "happiness"
    assert s.face_detected

    empty = EmotionSample.from_scores(0, {}, face_detected=False)
    assert empty.dominant_emotion is None
    assert empty.emotions == ()


def test_samples_and_buckets_are_immutable():
    s = EmotionSample.from_scores(0, {"neutral": 1.0})
    with pytest.raises(ValidationError):
        s.timestamp = 5
    b = TimeBucket(start_timestamp=0, bucket_width_ms=1000)
    with pytest.raises(ValidationError):
        b.sample_count = 3


def test_negative_timestamp_is_invalid():
    with pytest.raises(ValidationError):
        EmotionSample(timestamp=-1)


def test_intensity_level_order():
    ranks = [lvl.rank for lvl in (IntensityLevel.VERY_LOW, IntensityLevel.LOW, IntensityLevel.MODERATE,
                                  IntensityLevel.HIGH, IntensityLevel.VERY_HIGH)]
    assert ranks == sorted(ranks) == [0, 1, 2, 3, 4]
