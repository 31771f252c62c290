"""
Presence debouncing: turn raw per-frame face/no-face outcomes into a stable signal.
"""
from __future__ import annotations
from typing import Optional
import logging

from emotion_engine.models import StableState

logger = logging.getLogger(__name__)

DEFAULT_FOUND_THRESHOLD = 1    # react within one frame
DEFAULT_LOST_THRESHOLD = 15    # ~250ms at 60Hz


class PresenceStabilizer:
    """Asymmetric hysteresis over consecutive detections / non-detections."""
    def __init__(self, found_threshold: int = DEFAULT_FOUND_THRESHOLD,
                 lost_threshold: int = DEFAULT_LOST_THRESHOLD):
        if found_threshold < 1 or lost_threshold < 1:
            raise ValueError("hysteresis thresholds must be >= 1")
        self.found_threshold = int(found_threshold)
        self.lost_threshold = int(lost_threshold)
        self.consecutive_detections = 0
        self.consecutive_non_detections = 0
        self._last_stable: Optional[StableState] = None

    @property
    def state(self) -> StableState:
        return self._last_stable or StableState.PENDING

    def update(self, raw_detected: bool) -> Optional[StableState]:
        """
        Feed one raw outcome.
        - a contradicting outcome fully resets the opposing counter
        - returns the new stable state on a transition, None otherwise
        """
        if raw_detected:
            self.consecutive_detections += 1
            self.consecutive_non_detections = 0
            if (self.consecutive_detections >= self.found_threshold
                    and self._last_stable is not StableState.PRESENT):
                self._last_stable = StableState.PRESENT
                logger.debug(f"[presence] -> present after {self.consecutive_detections} detections")
                return StableState.PRESENT
        else:
            self.consecutive_non_detections += 1
            self.consecutive_detections = 0
            if (self.consecutive_non_detections >= self.lost_threshold
                    and self._last_stable is not StableState.ABSENT):
                self._last_stable = StableState.ABSENT
                logger.debug(f"[presence] -> absent after {self.consecutive_non_detections} misses")
                return StableState.ABSENT
        return None

    def reset(self) -> None:
        self.consecutive_detections = 0
        self.consecutive_non_detections = 0
        self._last_stable = None
