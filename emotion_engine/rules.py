"""
Static narrative rule tables.

- intensity patterns: per-label thresholds with canned summary/description text
- timeline states: ordered emotion-range conditions that tag an interval

Two profiles ship: "audience" (live multi-viewer sessions) and "viewer"
(single-viewer feedback sessions, lower thresholds).
"""
from __future__ import annotations
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, model_validator


class LevelRule(BaseModel):
    threshold: float
    summary: str
    description: str


class EmotionPattern(BaseModel):
    very_high: LevelRule
    high: LevelRule
    moderate: LevelRule
    low: LevelRule
    very_low: LevelRule

    @model_validator(mode="after")
    def check_descending(self):
        t = (self.very_high.threshold, self.high.threshold, self.moderate.threshold, self.low.threshold)
        if not (t[0] > t[1] > t[2] > t[3]):
            raise ValueError(f"thresholds must be strictly descending, got {t}")
        return self


class Range(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class StateRule(BaseModel):
    name: str
    description: str
    required: Dict[str, Range] = Field(default_factory=dict)
    forbidden: Dict[str, Range] = Field(default_factory=dict)
    audience_size: Optional[Range] = None
    complex: bool = False

    def matches(self, scores: Dict[str, float], subject_count: int) -> bool:
        if self.audience_size is not None:
            if self.audience_size.min is not None and subject_count < self.audience_size.min:
                return False
            if self.audience_size.max is not None and subject_count > self.audience_size.max:
                return False
        for label, r in self.required.items():
            score = scores.get(label, 0.0)
            if r.min is not None and score < r.min:
                return False
            if r.max is not None and score > r.max:
                return False
        for label, r in self.forbidden.items():
            score = scores.get(label, 0.0)
            if r.min is not None and score >= r.min:
                return False
            if r.max is not None and score > r.max:
                return False
        return True


DEFAULT_STATE = "Basic Attention"
DEFAULT_STATE_DESCRIPTION = "Audience displayed basic attention to content"
NO_AUDIENCE_STATE = "No Audience Detected"
NO_AUDIENCE_DESCRIPTION = "No audience members detected during this interval"


def _pattern(thresholds: Tuple[float, float, float, float], texts: List[Tuple[str, str]]) -> EmotionPattern:
    vh, h, m, lo = thresholds
    levels = dict(zip(("very_high", "high", "moderate", "low", "very_low"), texts))
    return EmotionPattern(
        very_high=LevelRule(threshold=vh, summary=levels["very_high"][0], description=levels["very_high"][1]),
        high=LevelRule(threshold=h, summary=levels["high"][0], description=levels["high"][1]),
        moderate=LevelRule(threshold=m, summary=levels["moderate"][0], description=levels["moderate"][1]),
        low=LevelRule(threshold=lo, summary=levels["low"][0], description=levels["low"][1]),
        very_low=LevelRule(threshold=0, summary=levels["very_low"][0], description=levels["very_low"][1]),
    )


# label -> [(summary, description)] from very_high down to very_low
_NARRATIVES: Dict[str, List[Tuple[str, str]]] = {
    "happiness": [
        ("Exceptional positive audience response",
         "Audience demonstrated exceptionally strong positive reactions throughout the presentation, "
         "indicating highly engaging and resonant material."),
        ("Strong collective positive response",
         "Audience showed consistent positive emotional responses, reflecting strong content engagement."),
        ("Notable positive audience reaction",
         "Audience displayed clear positive responses to specific content elements, suggesting good "
         "engagement with key moments."),
        ("Mild positive audience engagement",
         "Audience expressed occasional positive reactions to certain content elements."),
        ("Minimal positive audience response",
         "Audience showed subtle positive reactions to specific moments."),
    ],
    "surprise": [
        ("Highly impactful presentation moments",
         "Audience showed very strong surprise responses, indicating exceptionally engaging or unexpected "
         "content elements."),
        ("Strong audience engagement peaks",
         "Audience demonstrated significant surprise reactions, suggesting effectively unexpected or novel "
         "content elements."),
        ("Notable moments of audience interest",
         "Audience displayed clear surprise responses to specific content elements."),
        ("Mild audience intrigue",
         "Audience showed occasional surprise reactions, highlighting content moments that caught attention."),
        ("Subtle attention shifts",
         "Audience exhibited minimal surprise responses to specific content elements."),
    ],
    "neutral": [
        ("Sustained audience focus",
         "Audience maintained highly consistent neutral attention throughout the presentation, indicating "
         "strong sustained focus and information processing."),
        ("Strong attentive viewing",
         "Audience showed steady neutral engagement, reflecting consistent attention and content following."),
        ("Balanced viewer attention",
         "Audience displayed regular periods of neutral focus, indicating steady content processing."),
        ("Basic viewer attention",
         "Audience exhibited periodic neutral attention, suggesting basic content following."),
        ("Minimal focused attention",
         "Audience showed brief periods of neutral focus."),
    ],
    "sadness": [
        ("Deeply moving presentation",
         "Audience demonstrated very strong emotional responses, indicating highly impactful or moving content."),
        ("Strong emotional impact",
         "Audience showed significant empathetic responses, reflecting powerful emotional content moments."),
        ("Notable emotional resonance",
         "Audience displayed clear emotional responses to specific content elements."),
        ("Mild emotional connection",
         "Audience exhibited occasional emotional reactions to content elements."),
        ("Subtle emotional response",
         "Audience showed minimal emotional reactions to specific content elements."),
    ],
    "anger": [
        ("Highly provocative content",
         "Audience showed very strong negative reactions, indicating highly challenging or controversial content."),
        ("Strong negative audience response",
         "Audience demonstrated significant negative reactions, reflecting challenging content elements."),
        ("Notable audience disagreement",
         "Audience displayed clear negative responses to specific content elements."),
        ("Mild audience resistance",
         "Audience showed occasional negative reactions to potentially challenging content elements."),
        ("Minimal negative reaction",
         "Audience exhibited subtle negative responses to specific content elements."),
    ],
    "disgust": [
        ("Highly aversive content",
         "Audience demonstrated very strong aversive reactions, indicating significantly challenging content."),
        ("Strong audience aversion",
         "Audience showed significant aversive responses, reflecting notably challenging material."),
        ("Notable audience discomfort",
         "Audience displayed clear aversive reactions to specific content elements."),
        ("Mild audience unease",
         "Audience exhibited occasional aversive responses to potentially uncomfortable content elements."),
        ("Subtle audience discomfort",
         "Audience showed minimal aversive reactions to specific content elements."),
    ],
    "fear": [
        ("Highly intense presentation",
         "Audience demonstrated very strong anxiety responses, indicating highly intense or unsettling content."),
        ("Strong audience tension",
         "Audience showed significant anxiety responses, reflecting intense content elements."),
        ("Notable audience anxiety",
         "Audience displayed clear anxiety reactions to specific content elements."),
        ("Mild audience concern",
         "Audience exhibited occasional anxiety responses to potentially unsettling elements."),
        ("Subtle tension response",
         "Audience showed minimal anxiety reactions to specific content elements."),
    ],
    "contempt": [
        ("Highly contentious presentation",
         "Audience demonstrated very strong skeptical reactions, indicating highly disputed or controversial content."),
        ("Strong audience skepticism",
         "Audience showed significant skeptical responses, reflecting questionable content elements."),
        ("Notable audience doubt",
         "Audience displayed clear skeptical reactions to specific content elements."),
        ("Mild audience reservation",
         "Audience exhibited occasional skeptical responses to potentially questionable elements."),
        ("Subtle skeptical reaction",
         "Audience showed minimal skeptical reactions to specific content elements."),
    ],
}

_PROFILE_THRESHOLDS: Dict[str, Tuple[float, float, float, float]] = {
    "audience": (80, 60, 40, 20),
    "viewer": (80, 50, 20, 5),
}


def intensity_patterns(profile: str = "audience") -> Dict[str, EmotionPattern]:
    if profile not in _PROFILE_THRESHOLDS:
        raise ValueError(f"unknown rule profile: {profile}")
    thresholds = _PROFILE_THRESHOLDS[profile]
    return {label: _pattern(thresholds, texts) for label, texts in _NARRATIVES.items()}


def _state(name, description, required, forbidden=None, audience_size=None, complex=False) -> StateRule:
    return StateRule(
        name=name,
        description=description,
        required={k: Range(**v) for k, v in required.items()},
        forbidden={k: Range(**v) for k, v in (forbidden or {}).items()},
        audience_size=Range(**audience_size) if audience_size else None,
        complex=complex,
    )


# Ordered by priority: complex multi-emotion states first, then single-emotion states.
AUDIENCE_STATES: List[StateRule] = [
    _state("High Engagement", "Audience showed exceptionally positive engagement with strong interest",
           {"happiness": {"min": 60}, "surprise": {"min": 40}},
           {"sadness": {"max": 20}, "anger": {"max": 20}}, {"min": 2}, complex=True),
    _state("Collective Interest", "Audience demonstrated high collective engagement with notable emotional resonance",
           {"happiness": {"min": 40}, "surprise": {"min": 50}, "neutral": {"max": 30}},
           audience_size={"min": 1}, complex=True),
    _state("Active Learning", "Audience exhibited strong focus with clear interest in content",
           {"surprise": {"min": 40}, "neutral": {"min": 40}},
           {"sadness": {"max": 20}, "anger": {"max": 20}}, complex=True),
    _state("Deep Concentration", "Audience maintained high attention with periodic interest peaks",
           {"neutral": {"min": 60}, "surprise": {"min": 20}},
           {"anger": {"max": 20}}, complex=True),
    _state("Emotional Connection", "Audience showed complex emotional responses indicating strong content resonance",
           {"happiness": {"min": 40}, "sadness": {"min": 20}}, complex=True),
    _state("Critical Analysis", "Audience demonstrated analytical attention with evaluative responses",
           {"neutral": {"min": 50}, "contempt": {"min": 20}}, complex=True),
    _state("Mixed Response", "Audience displayed varied emotional responses to content elements",
           {"happiness": {"min": 30}, "sadness": {"min": 20}, "surprise": {"min": 20}}, complex=True),
    _state("Audience Confusion", "Audience appears confused or uncertain about the presented content",
           {"surprise": {"min": 40}, "contempt": {"min": 20}, "happiness": {"max": 30}}, complex=True),
    _state("Audience Disagreement", "Audience showing signs of disagreement or skepticism",
           {"contempt": {"min": 30}, "anger": {"min": 20}},
           {"happiness": {"min": 30}}, complex=True),

    _state("Collective Joy", "Multiple audience members expressed strong positive reactions",
           {"happiness": {"min": 60}}, audience_size={"min": 2}),
    _state("Positive Response", "Audience showed clear positive responses to content",
           {"happiness": {"min": 40, "max": 60}}),
    _state("Mild Appreciation", "Audience displayed subtle positive reactions to content",
           {"happiness": {"min": 20, "max": 40}}),
    _state("Shared Interest", "Multiple audience members demonstrated strong interest in content",
           {"surprise": {"min": 60}}, audience_size={"min": 2}),
    _state("Moderate Interest", "Audience showed clear interest in content elements",
           {"surprise": {"min": 30, "max": 60}}),
    _state("Mild Curiosity", "Audience exhibited subtle interest in content",
           {"surprise": {"min": 15, "max": 30}}),
    _state("Deep Attention", "Audience maintained strong focused attention to content",
           {"neutral": {"min": 70}}),
    _state("Steady Attention", "Audience showed consistent attention to content",
           {"neutral": {"min": 40, "max": 70}}),
    _state(DEFAULT_STATE, DEFAULT_STATE_DESCRIPTION,
           {"neutral": {"min": 20, "max": 40}}),
    _state("Negative Response", "Audience displayed significant emotional concern or sadness",
           {"sadness": {"min": 40}}),
    _state("Audience Pushback", "Audience showed strong negative response to content",
           {"anger": {"min": 30}}),
    _state("Audience Skepticism", "Audience exhibited clear skeptical reaction to content",
           {"contempt": {"min": 30}}),
    _state("Audience Discomfort", "Audience displayed signs of discomfort with the content",
           {"fear": {"min": 20}, "disgust": {"min": 20}}),
]

VIEWER_STATES: List[StateRule] = [
    _state("Peak Engagement", "Viewers showed exceptionally positive engagement with strong interest in content",
           {"happiness": {"min": 60}, "surprise": {"min": 40}},
           {"sadness": {"max": 20}, "anger": {"max": 20}}, complex=True),
    _state("Strong Impact", "Viewers demonstrated high engagement with notable emotional resonance",
           {"happiness": {"min": 50}, "surprise": {"min": 30}, "neutral": {"max": 30}}, complex=True),
    _state("Active Learning", "Viewers exhibited strong focus with clear interest in content",
           {"surprise": {"min": 40}, "neutral": {"min": 40}},
           {"sadness": {"max": 20}, "anger": {"max": 20}}, complex=True),
    _state("Deep Focus", "Viewers maintained high attention with periodic interest peaks",
           {"neutral": {"min": 60}, "surprise": {"min": 20}},
           {"anger": {"max": 20}}, complex=True),
    _state("Emotional Connection", "Viewers showed complex emotional responses indicating strong content resonance",
           {"happiness": {"min": 40}, "sadness": {"min": 20}}, complex=True),
    _state("Critical Engagement", "Viewers demonstrated analytical attention with evaluative responses",
           {"neutral": {"min": 50}, "contempt": {"min": 20}}, complex=True),
    _state("Mixed Response", "Viewers displayed varied emotional responses to content elements",
           {"happiness": {"min": 30}, "sadness": {"min": 20}, "surprise": {"min": 20}}, complex=True),

    _state("High Joy", "Viewers expressed strong positive reactions to content", {"happiness": {"min": 60}}),
    _state("Moderate Joy", "Viewers showed clear positive responses to content", {"happiness": {"min": 20, "max": 60}}),
    _state("Mild Joy", "Viewers displayed subtle positive reactions to content", {"happiness": {"min": 5, "max": 20}}),
    _state("High Interest", "Viewers demonstrated strong interest in content", {"surprise": {"min": 60}}),
    _state("Moderate Interest", "Viewers showed clear interest in content elements", {"surprise": {"min": 20, "max": 60}}),
    _state("Mild Interest", "Viewers exhibited subtle interest in content", {"surprise": {"min": 5, "max": 20}}),
    _state("Deep Attention", "Viewers maintained strong focused attention to content", {"neutral": {"min": 60}}),
    _state("Steady Attention", "Viewers showed consistent attention to content", {"neutral": {"min": 20, "max": 60}}),
    _state(DEFAULT_STATE, "Viewers displayed basic attention to content", {"neutral": {"min": 5, "max": 20}}),
    _state("Strong Empathy", "Viewers showed strong emotional resonance with content", {"sadness": {"min": 60}}),
    _state("Strong Reaction", "Viewers showed strong negative response to content", {"anger": {"min": 60}}),
    _state("Strong Aversion", "Viewers showed strong aversive response to content", {"disgust": {"min": 60}}),
    _state("High Tension", "Viewers showed strong anxious response to content", {"fear": {"min": 60}}),
    _state("Strong Criticism", "Viewers showed strong skeptical response to content", {"contempt": {"min": 60}}),
    _state("Moderate Empathy", "Viewers exhibited clear emotional connection to content", {"sadness": {"min": 20, "max": 60}}),
    _state("Moderate Reaction", "Viewers exhibited clear negative reaction to content", {"anger": {"min": 20, "max": 60}}),
    _state("Moderate Aversion", "Viewers exhibited clear aversive reaction to content", {"disgust": {"min": 20, "max": 60}}),
    _state("Moderate Tension", "Viewers exhibited clear anxious reaction to content", {"fear": {"min": 20, "max": 60}}),
    _state("Moderate Criticism", "Viewers exhibited clear skeptical reaction to content", {"contempt": {"min": 20, "max": 60}}),
]


def state_rules(profile: str = "audience") -> List[StateRule]:
    if profile == "audience":
        return list(AUDIENCE_STATES)
    if profile == "viewer":
        return list(VIEWER_STATES)
    raise ValueError(f"unknown rule profile: {profile}")
