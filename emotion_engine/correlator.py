"""
Frame-to-frame subject correlation.

Assigns each frame's raw detections to persistent tracks by spatial continuity
only (box-center distance or box overlap). There is no appearance model and no
re-identification: a subject lost for longer than the eviction threshold comes
back as a new track.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging

from emotion_engine.models import BoundingBox, RawDetection, StableState
from emotion_engine.presence import PresenceStabilizer

logger = logging.getLogger(__name__)


@dataclass
class Track:
    track_id: int
    box: BoundingBox
    stabilizer: PresenceStabilizer
    consecutive_detected: int = 0
    consecutive_missed: int = 0
    last_seen_ms: float = 0.0
    emotions: Dict[str, float] = field(default_factory=dict)

    @property
    def state(self) -> StableState:
        return self.stabilizer.state


@dataclass
class CorrelationResult:
    assignments: Dict[int, RawDetection] = field(default_factory=dict)
    spawned: List[int] = field(default_factory=list)
    missed: List[int] = field(default_factory=list)
    evicted: List[int] = field(default_factory=list)
    transitions: Dict[int, StableState] = field(default_factory=dict)
    face_count: int = 0
    boxes: List[BoundingBox] = field(default_factory=list)


class SubjectCorrelator:
    """Greedy nearest-neighbour matcher over a map of live tracks."""
    def __init__(self,
                 found_threshold: int = 1,
                 lost_threshold: int = 15,
                 eviction_threshold: int = 30,
                 strategy: str = "center",
                 distance_ratio: float = 0.5,
                 min_iou: float = 0.3):
        if eviction_threshold < lost_threshold:
            raise ValueError(
                f"eviction_threshold ({eviction_threshold}) must be >= lost_threshold ({lost_threshold})"
            )
        if strategy not in ("center", "iou"):
            raise ValueError(f"unknown match strategy: {strategy}")
        self.found_threshold = int(found_threshold)
        self.lost_threshold = int(lost_threshold)
        self.eviction_threshold = int(eviction_threshold)
        self.strategy = strategy
        self.distance_ratio = float(distance_ratio)
        self.min_iou = float(min_iou)
        self._tracks: Dict[int, Track] = {}
        self._next_id = 0

    @property
    def tracks(self) -> List[Track]:
        return list(self._tracks.values())

    def get(self, track_id: int) -> Optional[Track]:
        return self._tracks.get(track_id)

    def faces(self) -> List[Track]:
        """Tracks currently confirmed present."""
        return [t for t in self._tracks.values() if t.state is StableState.PRESENT]

    @property
    def face_count(self) -> int:
        return len(self.faces())

    def reset(self) -> None:
        logger.debug(f"[correlator] reset; dropping {len(self._tracks)} tracks")
        self._tracks.clear()
        self._next_id = 0

    # ---- matching ----
    def _candidate_pairs(self, detections: List[RawDetection]) -> List[Tuple[float, int, int, int]]:
        """(cost, track order, detection index, track id) for every gated pair."""
        pairs: List[Tuple[float, int, int, int]] = []
        for order, track in enumerate(self._tracks.values()):
            for d_idx, det in enumerate(detections):
                if self.strategy == "iou":
                    overlap = track.box.iou(det.box)
                    if overlap >= self.min_iou:
                        pairs.append((-overlap, order, d_idx, track.track_id))
                else:
                    dist = track.box.distance_to(det.box)
                    gate = self.distance_ratio * max(det.box.w, det.box.h, track.box.w, track.box.h)
                    if dist < gate:
                        pairs.append((dist, order, d_idx, track.track_id))
        pairs.sort()
        return pairs

    def update(self, detections: List[RawDetection], timestamp_ms: float = 0.0) -> CorrelationResult:
        """Match one frame of detections; tracks are only mutated after matching."""
        result = CorrelationResult()

        matched_tracks: Dict[int, int] = {}
        used_detections: set[int] = set()
        for _cost, _order, d_idx, track_id in self._candidate_pairs(detections):
            if track_id in matched_tracks or d_idx in used_detections:
                continue
            matched_tracks[track_id] = d_idx
            used_detections.add(d_idx)

        # apply matches and misses
        for track_id, track in self._tracks.items():
            if track_id in matched_tracks:
                det = detections[matched_tracks[track_id]]
                track.box = det.box
                track.consecutive_detected += 1
                track.consecutive_missed = 0
                track.last_seen_ms = timestamp_ms
                track.emotions = dict(det.emotions)
                change = track.stabilizer.update(True)
                result.assignments[track_id] = det
            else:
                track.consecutive_missed += 1
                track.consecutive_detected = 0
                change = track.stabilizer.update(False)
                result.missed.append(track_id)
            if change is not None:
                result.transitions[track_id] = change

        # spawn tracks for unmatched detections
        for d_idx, det in enumerate(detections):
            if d_idx in used_detections:
                continue
            track = Track(
                track_id=self._next_id,
                box=det.box,
                stabilizer=PresenceStabilizer(self.found_threshold, self.lost_threshold),
                consecutive_detected=1,
                last_seen_ms=timestamp_ms,
                emotions=dict(det.emotions),
            )
            self._next_id += 1
            change = track.stabilizer.update(True)
            if change is not None:
                result.transitions[track.track_id] = change
            self._tracks[track.track_id] = track
            result.assignments[track.track_id] = det
            result.spawned.append(track.track_id)

        # evict stale tracks
        stale = [tid for tid, t in self._tracks.items() if t.consecutive_missed > self.eviction_threshold]
        for tid in stale:
            del self._tracks[tid]
            result.evicted.append(tid)

        faces = self.faces()
        result.face_count = len(faces)
        result.boxes = [t.box for t in faces]
        if result.spawned or result.evicted or result.transitions:
            changes = {k: v.value for k, v in result.transitions.items()}
            logger.debug(
                f"[correlator] t={timestamp_ms:.0f}ms dets={len(detections)} spawned={result.spawned} "
                f"evicted={result.evicted} transitions={changes}"
            )
        return result
