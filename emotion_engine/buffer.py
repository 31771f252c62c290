"""
Per-key (track or session) ordered store of emotion samples.
"""
from __future__ import annotations
from typing import Dict, List, Optional, Tuple
import logging

from emotion_engine.models import EmotionSample

logger = logging.getLogger(__name__)


class EmotionSampleBuffer:
    """
    Append-only, per-key monotonic sequences.

    A sample is rejected (counted, never raised) when its timestamp is not
    strictly after the last accepted one for the same key, or when the key
    has been closed.
    """
    def __init__(self):
        self._sequences: Dict[str, List[EmotionSample]] = {}
        self._closed: set[str] = set()
        self._all_closed = False
        self._rejected: Dict[str, int] = {}

    @property
    def keys(self) -> List[str]:
        return list(self._sequences.keys())

    @property
    def rejected_count(self) -> int:
        return sum(self._rejected.values())

    def rejected_for(self, key: str) -> int:
        return self._rejected.get(key, 0)

    def is_closed(self, key: Optional[str] = None) -> bool:
        if self._all_closed:
            return True
        return key is not None and key in self._closed

    def _reject(self, key: str, reason: str) -> bool:
        self._rejected[key] = self._rejected.get(key, 0) + 1
        logger.debug(f"[buffer] rejected sample for key={key}: {reason}")
        return False

    def append(self, key: str, sample: EmotionSample) -> bool:
        if self.is_closed(key):
            return self._reject(key, "sequence closed")
        seq = self._sequences.setdefault(key, [])
        if seq and sample.timestamp <= seq[-1].timestamp:
            return self._reject(key, f"t={sample.timestamp} <= last t={seq[-1].timestamp}")
        seq.append(sample)
        return True

    def close(self, key: Optional[str] = None) -> None:
        """Close one key, or every key (present and future) when key is None."""
        if key is None:
            self._all_closed = True
        else:
            self._closed.add(key)

    def last_timestamp(self, key: str) -> Optional[float]:
        seq = self._sequences.get(key)
        return seq[-1].timestamp if seq else None

    def snapshot(self) -> Dict[str, Tuple[EmotionSample, ...]]:
        """Immutable copy; later appends never show up in it."""
        return {key: tuple(seq) for key, seq in self._sequences.items()}

    def sequences(self) -> List[List[EmotionSample]]:
        return [list(seq) for seq in self._sequences.values()]

    def __len__(self) -> int:
        return sum(len(seq) for seq in self._sequences.values())
