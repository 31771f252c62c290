import random

import pytest

from emotion_engine.aggregator import aggregate, bucket_start, coarsen, merge_buckets
from emotion_engine.models import EmotionSample


def test_two_viewers_average_per_bucket(make_sample):
    a = [make_sample(0, happiness=80), make_sample(1000, happiness=40)]
    b = [make_sample(0, happiness=60), make_sample(1000, happiness=20)]

    buckets = aggregate([a, b], bucket_width_ms=1000)

    assert [bk.start_timestamp for bk in buckets] == [0, 1000]
    assert buckets[0].per_emotion_average_intensity == {"happiness": pytest.approx(70.0)}
    assert buckets[1].per_emotion_average_intensity == {"happiness": pytest.approx(30.0)}
    assert buckets[0].dominant_emotion == "happiness"
    assert buckets[0].sample_count == 2
    assert buckets[0].subject_count == 2


def test_empty_input():
    assert aggregate([]) == []
    assert aggregate([[], []]) == []


def test_sparse_and_sorted(make_sample):
    seq = [make_sample(5200, neutral=10), make_sample(100, neutral=30), make_sample(999.9, neutral=50)]
    buckets = aggregate([seq], 1000)
    assert [b.start_timestamp for b in buckets] == [0, 5000]
    assert buckets[0].per_emotion_average_intensity["neutral"] == pytest.approx(40.0)


def test_missing_label_is_not_a_zero(make_sample):
    seq = [make_sample(0, happiness=60, sadness=10), make_sample(500, happiness=40)]
    bucket = aggregate([seq], 1000)[0]
    assert bucket.per_emotion_average_intensity["sadness"] == pytest.approx(10.0)
    assert bucket.label_counts == {"happiness": 2, "sadness": 1}


def test_dominant_tie_goes_to_first_seen_label(make_sample):
    seq = [make_sample(0, surprise=50, happiness=50)]
    assert aggregate([seq])[0].dominant_emotion == "surprise"


def test_face_detected_counts(make_sample):
    viewer = [make_sample(0, happiness=10)]
    session = [EmotionSample(timestamp=100, face_detected=False), EmotionSample(timestamp=200, face_detected=False)]
    bucket = aggregate([viewer, session])[0]
    assert bucket.sample_count == 3
    assert bucket.face_detected_count == 1
    assert bucket.subject_count == 1


def test_invalid_width(make_sample):
    with pytest.raises(ValueError):
        aggregate([[make_sample(0, happiness=1)]], 0)


def test_bucket_start():
    assert bucket_start(0, 1000) == 0
    assert bucket_start(999.99, 1000) == 0
    assert bucket_start(1000, 1000) == 1000
    assert bucket_start(2500, 500) == 2500


def _random_sequence(rng, n=40):
    t = 0
    out = []
    for _ in range(n):
        t += rng.randint(1, 400)
        scores = {label: rng.uniform(0, 100) for label in rng.sample(["neutral", "happiness", "surprise", "sadness"], 2)}
        out.append(EmotionSample.from_scores(t, scores))
    return out


def test_aggregation_is_idempotent():
    rng = random.Random(3)
    seqs = [_random_sequence(rng) for _ in range(3)]
    assert aggregate(seqs, 1000) == aggregate(seqs, 1000)


def test_merge_matches_single_pass():
    rng = random.Random(11)
    a, b = _random_sequence(rng), _random_sequence(rng)

    merged = merge_buckets(aggregate([a], 1000), aggregate([b], 1000))
    direct = aggregate([a, b], 1000)

    assert [m.start_timestamp for m in merged] == [d.start_timestamp for d in direct]
    for m, d in zip(merged, direct):
        assert m.sample_count == d.sample_count
        assert m.label_counts == d.label_counts
        assert m.subject_count == d.subject_count
        for label, value in d.per_emotion_average_intensity.items():
            assert m.per_emotion_average_intensity[label] == pytest.approx(value)


def test_merge_rejects_mixed_widths(make_sample):
    a = aggregate([[make_sample(0, happiness=1)]], 1000)
    b = aggregate([[make_sample(0, happiness=1)]], 500)
    with pytest.raises(ValueError):
        merge_buckets(a, b)
    assert merge_buckets() == []


def test_coarsen_onto_wider_grid(make_sample):
    a = [make_sample(0, happiness=80), make_sample(1500, happiness=40), make_sample(6000, happiness=10)]
    b = [make_sample(200, happiness=20)]
    fine = aggregate([a, b], 1000)
    wide = coarsen(fine, 5000)

    assert [w.start_timestamp for w in wide] == [0, 5000]
    assert wide[0].bucket_width_ms == 5000
    assert wide[0].per_emotion_average_intensity["happiness"] == pytest.approx((80 + 40 + 20) / 3)
    assert wide[0].sample_count == 3
    assert wide[0].subject_count == 2
    assert wide[1].subject_count == 1

    with pytest.raises(ValueError):
        coarsen(fine, 1500)


def test_tick_counts_survive_merge_and_coarsen(make_sample):
    a = [make_sample(t, happiness=50) for t in (0, 500, 1000)]
    b = [make_sample(t, neutral=50) for t in (0, 500)]
    none = [make_sample(1500, face_detected=False)]

    buckets = aggregate([a, b, none], 1000)
    assert [(bk.tick_count, bk.face_tick_count) for bk in buckets] == [(2, 2), (2, 1)]

    merged = merge_buckets(aggregate([a], 1000), aggregate([b], 1000))
    assert merged[0].tick_count == 2
    assert merged[0].face_tick_count == 2

    wide = coarsen(buckets, 2000)
    assert wide[0].tick_count == 4
    assert wide[0].face_tick_count == 3
