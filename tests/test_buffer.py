from emotion_engine.buffer import EmotionSampleBuffer


def test_append_keeps_per_key_order(make_sample):
    buf = EmotionSampleBuffer()
    assert buf.append("track-0", make_sample(0, happiness=10))
    assert buf.append("track-0", make_sample(100, happiness=20))
    assert buf.append("track-1", make_sample(50, sadness=5))
    assert buf.keys == ["track-0", "track-1"]
    assert len(buf) == 3
    assert buf.last_timestamp("track-0") == 100
    assert buf.last_timestamp("missing") is None


def test_non_increasing_timestamps_are_rejected_and_counted(make_sample):
    buf = EmotionSampleBuffer()
    buf.append("a", make_sample(100, happiness=10))
    assert buf.append("a", make_sample(100, happiness=50)) is False
    assert buf.append("a", make_sample(50, happiness=50)) is False
    # other keys are independent
    assert buf.append("b", make_sample(50, happiness=50)) is True

    assert buf.rejected_for("a") == 2
    assert buf.rejected_count == 2
    assert [s.timestamp for s in buf.snapshot()["a"]] == [100]


def test_closed_key_rejects_appends(make_sample):
    buf = EmotionSampleBuffer()
    buf.append("a", make_sample(0, neutral=1))
    buf.close("a")
    assert buf.is_closed("a")
    assert not buf.is_closed("b")
    assert buf.append("a", make_sample(10, neutral=1)) is False
    assert buf.append("b", make_sample(10, neutral=1)) is True


def test_close_all_covers_new_keys(make_sample):
    buf = EmotionSampleBuffer()
    buf.close()
    assert buf.is_closed()
    assert buf.append("new", make_sample(0, neutral=1)) is False
    assert buf.rejected_for("new") == 1
    assert buf.keys == []


def test_snapshot_is_detached(make_sample):
    buf = EmotionSampleBuffer()
    buf.append("a", make_sample(0, happiness=10))
    snap = buf.snapshot()
    buf.append("a", make_sample(10, happiness=20))
    buf.append("b", make_sample(10, happiness=20))
    assert isinstance(snap["a"], tuple)
    assert len(snap["a"]) == 1
    assert "b" not in snap
    assert [len(s) for s in buf.sequences()] == [2, 1]
