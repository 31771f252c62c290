"""
Pydantic data models shared by the engine, the API and persistence hand-off.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


EMOTION_LABELS: Tuple[str, ...] = (
    "neutral",
    "happiness",
    "surprise",
    "sadness",
    "anger",
    "disgust",
    "fear",
    "contempt",
)


class StableState(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    PENDING = "pending"


class IntensityLevel(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = [
    IntensityLevel.VERY_LOW,
    IntensityLevel.LOW,
    IntensityLevel.MODERATE,
    IntensityLevel.HIGH,
    IntensityLevel.VERY_HIGH,
]


# detector / tracking

class BoundingBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    w: float
    h: float

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.w / 2.0, self.y + self.h / 2.0

    @property
    def area(self) -> float:
        return max(0.0, self.w) * max(0.0, self.h)

    def distance_to(self, other: BoundingBox) -> float:
        ax, ay = self.center
        bx, by = other.center
        return ((ax - bx) ** 2 + (ay - by) ** 2) ** 0.5

    def iou(self, other: BoundingBox) -> float:
        ix0, iy0 = max(self.x, other.x), max(self.y, other.y)
        ix1 = min(self.x + self.w, other.x + other.w)
        iy1 = min(self.y + self.h, other.y + other.h)
        inter = max(0.0, ix1 - ix0) * max(0.0, iy1 - iy0)
        if inter <= 0:
            return 0.0
        return inter / float(self.area + other.area - inter + 1e-6)


class RawDetection(BaseModel):
    box: BoundingBox
    landmarks: Optional[List[Tuple[float, float]]] = None
    emotions: Dict[str, float] = Field(default_factory=dict)
    confidence: float = 1.0
    timestamp_ms: float = 0.0


# samples / aggregation

class EmotionReading(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    intensity: float = Field(ge=0.0, le=100.0)


class EmotionSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(ge=0.0)
    emotions: Tuple[EmotionReading, ...] = ()
    dominant_emotion: Optional[str] = None
    face_detected: bool = True

    @classmethod
    def from_scores(cls, timestamp: float, scores: Dict[str, float],
                    face_detected: bool = True) -> EmotionSample:
        """Build a sample from a label->intensity map; dominant is the first max."""
        readings = tuple(
            EmotionReading(label=label, intensity=max(0.0, min(100.0, float(value))))
            for label, value in scores.items()
        )
        dominant = None
        best = -1.0
        for r in readings:
            if r.intensity > best:
                best = r.intensity
                dominant = r.label
        return cls(
            timestamp=timestamp,
            emotions=readings,
            dominant_emotion=dominant,
            face_detected=face_detected,
        )


class TimeBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_timestamp: int
    bucket_width_ms: int
    per_emotion_average_intensity: Dict[str, float] = Field(default_factory=dict)
    label_counts: Dict[str, int] = Field(default_factory=dict)
    dominant_emotion: Optional[str] = None
    sample_count: int = 0
    face_detected_count: int = 0
    subject_count: int = 0
    # distinct sample timestamps (ticks) in the bucket, and those with a face
    tick_count: int = 0
    face_tick_count: int = 0


# narrative

class Classification(BaseModel):
    label: str
    intensity: float
    level: Optional[IntensityLevel] = None
    summary: str = ""
    description: str = ""

    @property
    def available(self) -> bool:
        return self.level is not None


class ClassifiedEmotion(BaseModel):
    label: str
    intensity: float
    level: Optional[IntensityLevel] = None


class TimelineEntry(BaseModel):
    timestamp: str
    start_ms: int
    state: str
    description: str
    dominant_emotions: List[ClassifiedEmotion] = Field(default_factory=list)
    notable_emotions: bool = False
    emotions_text: str = ""
    face_count: int = 0


class OverallAnalysis(BaseModel):
    primary_response: str
    emotional_pattern: str
    notable_observation: str
    dominant_emotions: List[ClassifiedEmotion] = Field(default_factory=list)
    available: bool = True


class PresentationMetrics(BaseModel):
    attention_score: int = 0
    engagement_score: int = 0
    emotional_impact_score: int = 0
    overall_score: int = 0


class AnalysisReport(BaseModel):
    buckets: List[TimeBucket] = Field(default_factory=list)
    timeline: List[TimelineEntry] = Field(default_factory=list)
    overall: OverallAnalysis
    metrics: PresentationMetrics = Field(default_factory=PresentationMetrics)


# engine -> presentation / persistence

class TrackedFace(BaseModel):
    track_id: int
    box: BoundingBox
    dominant_emotion: Optional[str] = None


class TickEvent(BaseModel):
    timestamp_ms: float
    face_count: int
    stable_face_detected: bool
    boxes: List[BoundingBox] = Field(default_factory=list)
    faces: List[TrackedFace] = Field(default_factory=list)
    current_sample: Optional[EmotionSample] = None
    degraded: bool = False
    error: Optional[str] = None


class SessionRecord(BaseModel):
    session_id: str
    started_at: float
    duration_ms: float
    max_face_count: int = 0
    sequences: Dict[str, List[EmotionSample]] = Field(default_factory=dict)
    rejected_samples: int = 0
    dropped_ticks: int = 0


class LiveStatus(BaseModel):
    running: bool
    started_at: float | None = None
    session_id: str | None = None
    last_event: TickEvent | None = None
    error: str | None = None


# API IO

class SamplesRequest(BaseModel):
    sequences: List[List[EmotionSample]] = Field(default_factory=list)
    bucket_width_ms: Optional[int] = None
