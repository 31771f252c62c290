"""
Configuration for the emotion signal engine.
"""
from pydantic import BaseModel
import os


def _env_bool(name: str, default: str) -> bool:
    return (os.getenv(name, default) or default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    # Presence hysteresis (frames)
    FOUND_THRESHOLD: int = int(os.getenv("FOUND_THRESHOLD", "1"))
    LOST_THRESHOLD: int = int(os.getenv("LOST_THRESHOLD", "15"))
    EVICTION_THRESHOLD: int = int(os.getenv("EVICTION_THRESHOLD", "30"))

    # Subject correlation
    MATCH_STRATEGY: str = (os.getenv("MATCH_STRATEGY", "center") or "center")
    MATCH_DISTANCE_RATIO: float = float(os.getenv("MATCH_DISTANCE_RATIO", "0.5"))
    MIN_IOU: float = float(os.getenv("MIN_IOU", "0.3"))

    # Aggregation / narrative
    BUCKET_WIDTH_MS: int = int(os.getenv("BUCKET_WIDTH_MS", "1000"))
    TIMELINE_INTERVAL_MS: int = int(os.getenv("TIMELINE_INTERVAL_MS", "5000"))
    TOP_N_EMOTIONS: int = int(os.getenv("TOP_N_EMOTIONS", "4"))
    MIN_EMOTION_INTENSITY: float = float(os.getenv("MIN_EMOTION_INTENSITY", "5"))
    RULE_PROFILE: str = (os.getenv("RULE_PROFILE", "audience") or "audience")

    # Capture / detector
    DETECTION_INTERVAL_MS: int = int(os.getenv("DETECTION_INTERVAL_MS", "100"))
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    DETECTOR_BACKEND: str = os.getenv("DETECTOR_BACKEND", "opencv")
    MIN_FACE_SIZE: int = int(os.getenv("MIN_FACE_SIZE", "40"))
    MIN_FACE_CONFIDENCE: float = float(os.getenv("MIN_FACE_CONFIDENCE", "0.5"))
    EMOTION_CALIBRATION: bool = _env_bool("EMOTION_CALIBRATION", "false")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize MATCH_STRATEGY / RULE_PROFILE: strip extra words, lower-case, validate
        strategy = (self.MATCH_STRATEGY or "center").strip().split()[0].lower()
        if strategy not in ("center", "iou"):
            strategy = "center"
        object.__setattr__(self, "MATCH_STRATEGY", strategy)

        profile = (self.RULE_PROFILE or "audience").strip().split()[0].lower()
        if profile not in ("audience", "viewer"):
            profile = "audience"
        object.__setattr__(self, "RULE_PROFILE", profile)

        # A track must outlive the absent band of its stabilizer
        if self.EVICTION_THRESHOLD < self.LOST_THRESHOLD:
            object.__setattr__(self, "EVICTION_THRESHOLD", self.LOST_THRESHOLD)
