"""
Intensity classification: numeric intensity (0..100) -> qualitative level + canned text.
"""
from __future__ import annotations
from typing import Dict, Optional
import logging

from emotion_engine.models import Classification, IntensityLevel
from emotion_engine.rules import EmotionPattern, intensity_patterns

logger = logging.getLogger(__name__)


class IntensityClassifier:
    """First-match-wins scan from very_high down; equal to a threshold meets it."""
    def __init__(self, patterns: Dict[str, EmotionPattern]):
        self.patterns = dict(patterns)

    @classmethod
    def for_profile(cls, profile: str = "audience") -> IntensityClassifier:
        return cls(intensity_patterns(profile))

    def level_for(self, label: str, intensity: float) -> Optional[IntensityLevel]:
        pattern = self.patterns.get(label)
        if pattern is None:
            return None
        if intensity >= pattern.very_high.threshold:
            return IntensityLevel.VERY_HIGH
        if intensity >= pattern.high.threshold:
            return IntensityLevel.HIGH
        if intensity >= pattern.moderate.threshold:
            return IntensityLevel.MODERATE
        if intensity >= pattern.low.threshold:
            return IntensityLevel.LOW
        return IntensityLevel.VERY_LOW

    def classify(self, label: str, intensity: float) -> Classification:
        """
        Classify one label/intensity pair.

        Returns:
            Classification; for a label without a table the level is None and
            summary/description are empty ("no narrative available").
        """
        level = self.level_for(label, intensity)
        if level is None:
            logger.debug(f"[classifier] no threshold table for label={label!r}")
            return Classification(label=label, intensity=intensity)
        rule = getattr(self.patterns[label], level.value)
        return Classification(
            label=label,
            intensity=intensity,
            level=level,
            summary=rule.summary,
            description=rule.description,
        )
