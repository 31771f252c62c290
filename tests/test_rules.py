from emotion_engine.rules import Range, StateRule, state_rules


def test_required_ranges_are_inclusive():
    rule = StateRule(name="x", description="", required={"happiness": Range(min=40, max=60)})
    assert rule.matches({"happiness": 40}, 1)
    assert rule.matches({"happiness": 60}, 1)
    assert not rule.matches({"happiness": 60.1}, 1)
    # a missing label scores 0
    assert not rule.matches({}, 1)


def test_forbidden_ranges():
    rule = StateRule(name="x", description="", forbidden={"anger": Range(max=20), "happiness": Range(min=30)})
    assert rule.matches({"anger": 20, "happiness": 29.9}, 1)
    assert not rule.matches({"anger": 21}, 1)
    assert not rule.matches({"happiness": 30}, 1)


def test_audience_size_gate():
    rule = StateRule(name="x", description="", audience_size=Range(min=2, max=4))
    assert not rule.matches({}, 1)
    assert rule.matches({}, 2)
    assert not rule.matches({}, 5)


def test_complex_states_come_first():
    for profile in ("audience", "viewer"):
        flags = [r.complex for r in state_rules(profile)]
        first_simple = flags.index(False)
        assert not any(flags[first_simple:])
        names = [r.name for r in state_rules(profile)]
        assert len(names) == len(set(names))
