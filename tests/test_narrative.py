import pytest

from emotion_engine.aggregator import aggregate
from emotion_engine.classifier import IntensityClassifier
from emotion_engine.config import Settings
from emotion_engine.models import IntensityLevel, TimeBucket
from emotion_engine.narrative import NarrativeGenerator, format_timestamp
from emotion_engine.rules import DEFAULT_STATE, NO_AUDIENCE_STATE, state_rules


def bucket(start, width=1000, subjects=1, faces=None, samples=1, **averages):
    return TimeBucket(
        start_timestamp=start,
        bucket_width_ms=width,
        per_emotion_average_intensity=averages,
        label_counts={k: samples for k in averages},
        sample_count=samples,
        face_detected_count=samples if faces is None else faces,
        subject_count=subjects,
        tick_count=samples,
        face_tick_count=samples if faces is None else faces,
    )


@pytest.fixture
def gen():
    return NarrativeGenerator(IntensityClassifier.for_profile("audience"), state_rules("audience"),
                              interval_ms=None)


def test_format_timestamp():
    assert format_timestamp(0) == "0:00"
    assert format_timestamp(65000) == "1:05"
    assert format_timestamp(600999) == "10:00"


def test_overall_on_empty_input_is_no_data(gen):
    overall = gen.build_overall([])
    assert overall.available is False
    assert overall.primary_response == "No audience data available"
    assert overall.dominant_emotions == []
    assert aggregate([]) == []


def test_overall_on_all_zero_input(gen):
    overall = gen.build_overall([bucket(0, happiness=0.0, neutral=0.0)])
    assert overall.available is False
    assert overall.primary_response == "No significant emotional response detected"


def test_overall_uses_top_label_narrative(gen):
    buckets = [bucket(0, happiness=80, neutral=10), bucket(1000, happiness=60, neutral=30)]
    overall = gen.build_overall(buckets)
    expected = IntensityClassifier.for_profile("audience").classify("happiness", 70)

    assert overall.available
    assert overall.primary_response == expected.summary
    assert overall.emotional_pattern == expected.description
    assert [e.label for e in overall.dominant_emotions] == ["happiness", "neutral"]
    assert overall.dominant_emotions[0].level is IntensityLevel.HIGH
    assert "happiness (70.0%)" in overall.notable_observation


def test_overall_without_any_narrative(gen):
    overall = gen.build_overall([bucket(0, boredom=50)])
    assert overall.available is False
    assert overall.primary_response == "No narrative available"
    assert overall.dominant_emotions[0].label == "boredom"
    assert overall.dominant_emotions[0].level is None


def test_average_emotions_skips_missing_labels():
    avg = NarrativeGenerator.average_emotions([bucket(0, happiness=80), bucket(1000, happiness=40, sadness=10)])
    assert avg == {"happiness": pytest.approx(60.0), "sadness": pytest.approx(10.0)}


def test_timeline_states_and_run_merging(gen):
    buckets = [
        bucket(0, neutral=80),
        bucket(1000, neutral=85, subjects=3),
        bucket(2000, neutral=75),
        bucket(3000, happiness=50),
        bucket(4000, faces=0, samples=2),
        bucket(5000, happiness=85),
    ]
    timeline = gen.build_timeline(buckets)

    assert [e.state for e in timeline] == [
        "Deep Attention", "Positive Response", NO_AUDIENCE_STATE, DEFAULT_STATE,
    ]
    assert timeline[0].timestamp == "0:00"
    assert timeline[0].face_count == 3
    assert timeline[1].timestamp == "0:03"
    assert timeline[1].notable_emotions is False
    assert timeline[1].dominant_emotions[0].level is IntensityLevel.MODERATE
    assert timeline[2].dominant_emotions == []
    assert timeline[3].notable_emotions is True
    assert timeline[3].emotions_text == "happiness (85.0%)"


def test_timeline_respects_audience_size(gen):
    single = gen.build_timeline([bucket(0, happiness=70, subjects=1)])
    crowd = gen.build_timeline([bucket(0, happiness=70, subjects=2)])
    assert single[0].state == DEFAULT_STATE
    assert crowd[0].state == "Collective Joy"


def test_timeline_drops_weak_and_extra_emotions():
    gen = NarrativeGenerator(IntensityClassifier.for_profile("audience"), top_n=2, min_intensity=5.0,
                             interval_ms=None)
    entry = gen.build_timeline([bucket(0, neutral=50, happiness=30, surprise=20, sadness=4)])[0]
    assert [e.label for e in entry.dominant_emotions] == ["neutral", "happiness"]


def test_timeline_groups_buckets_into_intervals(make_sample):
    gen = NarrativeGenerator.from_settings(Settings(TIMELINE_INTERVAL_MS=5000, RULE_PROFILE="audience"))
    seq = [make_sample(t, neutral=80) for t in range(0, 5000, 500)]
    seq += [make_sample(t, happiness=50) for t in range(5000, 10000, 500)]
    timeline = gen.build_timeline(aggregate([seq], 1000))
    assert [(e.timestamp, e.state) for e in timeline] == [("0:00", "Deep Attention"), ("0:05", "Positive Response")]


def test_metrics(gen):
    assert gen.build_metrics([]).overall_score == 0
    m = gen.build_metrics([bucket(0, happiness=80)])
    assert m.attention_score == 100
    assert m.engagement_score == 58
    assert m.emotional_impact_score == 50
    assert m.overall_score == 70


def test_report_bundles_everything(gen):
    buckets = [bucket(0, happiness=80)]
    report = gen.build_report(buckets)
    assert report.buckets == buckets
    assert len(report.timeline) == 1
    assert report.overall.available
    assert report.metrics.attention_score == 100


def test_attention_counts_moments_not_viewers(gen, make_sample):
    viewer_a = [make_sample(t, happiness=60) for t in range(0, 5000, 1000)]
    viewer_b = [make_sample(t, neutral=70) for t in range(0, 5000, 1000)]
    empty = [make_sample(t, face_detected=False) for t in range(5000, 10000, 1000)]
    m = gen.build_metrics(aggregate([viewer_a, viewer_b, empty], 1000))
    assert m.attention_score == 50
