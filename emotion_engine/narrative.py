"""
Narrative generation over aggregated time buckets.

- build_timeline: chronological emotional "moments" tagged with a state
- build_overall: one qualitative analysis of the whole bucket set
- build_metrics: presentation scores (attention / engagement / impact)
"""
from __future__ import annotations
from typing import Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np

from emotion_engine.aggregator import coarsen
from emotion_engine.classifier import IntensityClassifier
from emotion_engine.config import Settings
from emotion_engine.models import (
    AnalysisReport,
    ClassifiedEmotion,
    IntensityLevel,
    OverallAnalysis,
    PresentationMetrics,
    TimeBucket,
    TimelineEntry,
)
from emotion_engine.rules import (
    DEFAULT_STATE,
    DEFAULT_STATE_DESCRIPTION,
    NO_AUDIENCE_DESCRIPTION,
    NO_AUDIENCE_STATE,
    StateRule,
    state_rules,
)

logger = logging.getLogger(__name__)

NOTABLE_LEVELS = (IntensityLevel.HIGH, IntensityLevel.VERY_HIGH)


def format_timestamp(ms: float) -> str:
    """ms since session start -> M:SS"""
    total_seconds = int(ms // 1000)
    return f"{total_seconds // 60}:{total_seconds % 60:02d}"


def no_data_analysis() -> OverallAnalysis:
    return OverallAnalysis(
        primary_response="No audience data available",
        emotional_pattern="No emotional patterns could be detected due to lack of audience data.",
        notable_observation="No audience members were detected during this session.",
        dominant_emotions=[],
        available=False,
    )


def no_response_analysis() -> OverallAnalysis:
    return OverallAnalysis(
        primary_response="No significant emotional response detected",
        emotional_pattern="The audience did not exhibit significant emotional responses during the session.",
        notable_observation="Consider more engaging content to evoke audience emotions.",
        dominant_emotions=[],
        available=False,
    )


def _ranked(averages: Dict[str, float], floor: float = 0.0) -> List[Tuple[str, float]]:
    # sorted() is stable: equal intensities keep first-seen order
    items = [(label, value) for label, value in averages.items() if value > floor]
    return sorted(items, key=lambda kv: kv[1], reverse=True)


def _emotions_text(emotions: Sequence[ClassifiedEmotion]) -> str:
    return ", ".join(f"{e.label} ({e.intensity:.1f}%)" for e in emotions)


class NarrativeGenerator:
    def __init__(self,
                 classifier: IntensityClassifier,
                 rules: Optional[List[StateRule]] = None,
                 top_n: int = 4,
                 min_intensity: float = 5.0,
                 interval_ms: Optional[int] = 5000):
        self.classifier = classifier
        self.rules = list(rules) if rules is not None else state_rules("audience")
        self.top_n = int(top_n)
        self.min_intensity = float(min_intensity)
        self.interval_ms = interval_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> NarrativeGenerator:
        return cls(
            classifier=IntensityClassifier.for_profile(settings.RULE_PROFILE),
            rules=state_rules(settings.RULE_PROFILE),
            top_n=settings.TOP_N_EMOTIONS,
            min_intensity=settings.MIN_EMOTION_INTENSITY,
            interval_ms=settings.TIMELINE_INTERVAL_MS,
        )

    def _classified(self, ranked: Sequence[Tuple[str, float]]) -> List[ClassifiedEmotion]:
        return [
            ClassifiedEmotion(label=label, intensity=value, level=self.classifier.level_for(label, value))
            for label, value in ranked[: self.top_n]
        ]

    def _intervals(self, buckets: Sequence[TimeBucket]) -> List[TimeBucket]:
        if not self.interval_ms:
            return list(buckets)
        if all(self.interval_ms > b.bucket_width_ms and self.interval_ms % b.bucket_width_ms == 0
               for b in buckets):
            return coarsen(buckets, self.interval_ms)
        return list(buckets)

    def determine_state(self, bucket: TimeBucket) -> Tuple[str, str]:
        if bucket.face_detected_count == 0:
            return NO_AUDIENCE_STATE, NO_AUDIENCE_DESCRIPTION
        for rule in self.rules:
            if rule.matches(bucket.per_emotion_average_intensity, bucket.subject_count):
                return rule.name, rule.description
        return DEFAULT_STATE, DEFAULT_STATE_DESCRIPTION

    def build_timeline(self, buckets: Sequence[TimeBucket]) -> List[TimelineEntry]:
        """One entry per interval; consecutive intervals in the same state collapse into the first."""
        timeline: List[TimelineEntry] = []
        last_state: Optional[str] = None
        for bucket in self._intervals(buckets):
            state, description = self.determine_state(bucket)
            if state == last_state:
                timeline[-1].face_count = max(timeline[-1].face_count, bucket.subject_count)
                continue
            dominant = self._classified(_ranked(bucket.per_emotion_average_intensity, self.min_intensity))
            timeline.append(TimelineEntry(
                timestamp=format_timestamp(bucket.start_timestamp),
                start_ms=bucket.start_timestamp,
                state=state,
                description=description,
                dominant_emotions=dominant,
                notable_emotions=any(e.level in NOTABLE_LEVELS for e in dominant),
                emotions_text=_emotions_text(dominant),
                face_count=bucket.subject_count,
            ))
            last_state = state
        logger.debug(f"[narrative] timeline entries={len(timeline)} from buckets={len(buckets)}")
        return timeline

    @staticmethod
    def average_emotions(buckets: Sequence[TimeBucket]) -> Dict[str, float]:
        """Per-label mean of bucket averages, over the buckets that report the label."""
        sums: Dict[str, float] = {}
        counts: Dict[str, int] = {}
        for bucket in buckets:
            for label, value in bucket.per_emotion_average_intensity.items():
                sums[label] = sums.get(label, 0.0) + value
                counts[label] = counts.get(label, 0) + 1
        return {label: sums[label] / counts[label] for label in sums}

    def build_overall(self, buckets: Sequence[TimeBucket]) -> OverallAnalysis:
        if not buckets:
            return no_data_analysis()

        ranked = _ranked(self.average_emotions(buckets))
        if not ranked:
            return no_response_analysis()

        primary = None
        for label, value in ranked:
            classification = self.classifier.classify(label, value)
            if classification.available:
                primary = classification
                break

        dominant = self._classified(ranked)
        observation = f"Audience showed emotional responses including: {_emotions_text(dominant)}"
        if primary is None:
            logger.debug(f"[narrative] no narrative for labels={[label for label, _ in ranked]}")
            return OverallAnalysis(
                primary_response="No narrative available",
                emotional_pattern="",
                notable_observation=observation,
                dominant_emotions=dominant,
                available=False,
            )
        return OverallAnalysis(
            primary_response=primary.summary,
            emotional_pattern=primary.description,
            notable_observation=observation,
            dominant_emotions=dominant,
        )

    def build_metrics(self, buckets: Sequence[TimeBucket]) -> PresentationMetrics:
        ticks = sum(b.tick_count for b in buckets)
        if ticks == 0:
            return PresentationMetrics()

        # share of moments with a face, independent of audience size
        attention = min(100, round(sum(b.face_tick_count for b in buckets) / ticks * 100))

        activity = [
            sum(v for label, v in b.per_emotion_average_intensity.items() if label != "neutral")
            for b in buckets
        ]
        avg_subjects = float(np.mean([b.subject_count for b in buckets]))
        engagement = min(100, round(float(np.mean(activity)) / 100 * 60 + avg_subjects * 10))

        peaks = [max(b.per_emotion_average_intensity.values(), default=0.0) for b in buckets]
        variance = float(np.var(peaks)) if len(peaks) > 1 else 0.0
        peak_ratio = sum(1 for p in peaks if p > 50) / len(peaks)
        impact = min(100, round(min(1.0, variance / 2500.0) * 50 + peak_ratio * 50))

        overall = round(attention * 0.35 + engagement * 0.35 + impact * 0.3)
        return PresentationMetrics(
            attention_score=attention,
            engagement_score=engagement,
            emotional_impact_score=impact,
            overall_score=overall,
        )

    def build_report(self, buckets: Sequence[TimeBucket]) -> AnalysisReport:
        return AnalysisReport(
            buckets=list(buckets),
            timeline=self.build_timeline(buckets),
            overall=self.build_overall(buckets),
            metrics=self.build_metrics(buckets),
        )
