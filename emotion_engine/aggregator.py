"""
Fixed-grid temporal aggregation of emotion samples.

Bucket boundaries are multiples of bucket_width_ms from session start, so
repeated runs over the same samples give identical buckets. One viewer is the
single-sequence case; many viewers are averaged bucket by bucket.
"""
from __future__ import annotations
from typing import Dict, Iterable, List, Sequence
import logging
import math

from emotion_engine.models import EmotionSample, TimeBucket

logger = logging.getLogger(__name__)

DEFAULT_BUCKET_WIDTH_MS = 1000


def bucket_start(timestamp: float, bucket_width_ms: int) -> int:
    return int(math.floor(timestamp / bucket_width_ms) * bucket_width_ms)


def _dominant(averages: Dict[str, float]):
    # first-seen label wins ties
    dominant = None
    best = -1.0
    for label, value in averages.items():
        if value > best:
            best = value
            dominant = label
    return dominant


class _Accumulator:
    def __init__(self):
        self.sums: Dict[str, float] = {}
        self.counts: Dict[str, int] = {}
        self.sample_count = 0
        self.face_detected_count = 0
        self.subjects: set = set()
        self.subject_total = 0
        self.ticks: set = set()
        self.face_ticks: set = set()
        self.tick_total = 0
        self.face_tick_total = 0

    def add_sample(self, sample: EmotionSample, subject: int) -> None:
        self.sample_count += 1
        self.ticks.add(sample.timestamp)
        if sample.face_detected:
            self.face_detected_count += 1
            self.subjects.add(subject)
            self.face_ticks.add(sample.timestamp)
        for reading in sample.emotions:
            self.sums[reading.label] = self.sums.get(reading.label, 0.0) + reading.intensity
            self.counts[reading.label] = self.counts.get(reading.label, 0) + 1

    def add_bucket(self, bucket: TimeBucket, sum_subjects: bool) -> None:
        self.sample_count += bucket.sample_count
        self.face_detected_count += bucket.face_detected_count
        if sum_subjects:
            # disjoint sample sets share the same tick grid
            self.subject_total += bucket.subject_count
            self.tick_total = max(self.tick_total, bucket.tick_count)
            self.face_tick_total = max(self.face_tick_total, bucket.face_tick_count)
        else:
            self.subject_total = max(self.subject_total, bucket.subject_count)
            self.tick_total += bucket.tick_count
            self.face_tick_total += bucket.face_tick_count
        for label, avg in bucket.per_emotion_average_intensity.items():
            n = bucket.label_counts.get(label, 0)
            self.sums[label] = self.sums.get(label, 0.0) + avg * n
            self.counts[label] = self.counts.get(label, 0) + n

    def build(self, start: int, width: int, subject_count: int) -> TimeBucket:
        averages = {
            label: min(100.0, max(0.0, self.sums[label] / self.counts[label]))
            for label in self.sums
            if self.counts.get(label, 0) > 0
        }
        return TimeBucket(
            start_timestamp=start,
            bucket_width_ms=width,
            per_emotion_average_intensity=averages,
            label_counts={label: self.counts[label] for label in averages},
            dominant_emotion=_dominant(averages),
            sample_count=self.sample_count,
            face_detected_count=self.face_detected_count,
            subject_count=subject_count,
            tick_count=len(self.ticks) + self.tick_total,
            face_tick_count=len(self.face_ticks) + self.face_tick_total,
        )


def aggregate(
    sequences: Sequence[Sequence[EmotionSample]],
    bucket_width_ms: int = DEFAULT_BUCKET_WIDTH_MS,
) -> List[TimeBucket]:
    """
    Group samples of every sequence into fixed-width buckets.

    Per bucket and label, the average is taken over the samples that report
    the label (a missing label is not a zero). Empty buckets are omitted.

    Returns:
        Buckets sorted by start_timestamp.
    """
    if bucket_width_ms <= 0:
        raise ValueError(f"bucket_width_ms must be > 0, got {bucket_width_ms}")

    groups: Dict[int, _Accumulator] = {}
    for subject, seq in enumerate(sequences):
        for sample in seq:
            start = bucket_start(sample.timestamp, bucket_width_ms)
            acc = groups.get(start)
            if acc is None:
                acc = groups[start] = _Accumulator()
            acc.add_sample(sample, subject)

    buckets = [
        groups[start].build(start, bucket_width_ms, len(groups[start].subjects))
        for start in sorted(groups)
    ]
    logger.debug(f"[aggregator] sequences={len(sequences)} buckets={len(buckets)} width={bucket_width_ms}ms")
    return buckets


def _combine(buckets: Iterable[TimeBucket], width: int, sum_subjects: bool) -> List[TimeBucket]:
    groups: Dict[int, _Accumulator] = {}
    for bucket in buckets:
        start = bucket_start(bucket.start_timestamp, width)
        acc = groups.get(start)
        if acc is None:
            acc = groups[start] = _Accumulator()
        acc.add_bucket(bucket, sum_subjects)
    return [groups[start].build(start, width, groups[start].subject_total) for start in sorted(groups)]


def merge_buckets(*bucket_lists: Sequence[TimeBucket]) -> List[TimeBucket]:
    """
    Combine bucket lists aggregated separately from disjoint sample sets.

    Label averages are weighted by the number of samples reporting the label,
    which reproduces aggregating the union in one pass.
    """
    flat = [b for buckets in bucket_lists for b in buckets]
    if not flat:
        return []
    widths = {b.bucket_width_ms for b in flat}
    if len(widths) != 1:
        raise ValueError(f"cannot merge buckets of different widths: {sorted(widths)}")
    return _combine(flat, widths.pop(), sum_subjects=True)


def coarsen(buckets: Sequence[TimeBucket], width_ms: int) -> List[TimeBucket]:
    """Regroup buckets onto a wider grid whose width is a multiple of theirs."""
    if not buckets:
        return []
    if width_ms <= 0:
        raise ValueError(f"width_ms must be > 0, got {width_ms}")
    for b in buckets:
        if width_ms % b.bucket_width_ms != 0:
            raise ValueError(f"width {width_ms}ms is not a multiple of bucket width {b.bucket_width_ms}ms")
    # subject count of a wider window is the peak of its parts
    return _combine(buckets, width_ms, sum_subjects=False)
