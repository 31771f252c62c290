"""Run the live camera overlay.

Usage:
    uvicorn api.main:app --reload        # (separate, for API)
    python scripts/live_overlay.py [--camera N]

Press 'q' to quit the window; the session summary is printed on exit.
"""
import argparse
import json
import logging

from emotion_engine.config import Settings
from emotion_engine.live import run_live_overlay
from emotion_engine.pipeline import report_from_record

if __name__ == '__main__':
    p = argparse.ArgumentParser()
    p.add_argument("--camera", type=int, default=None, help="Camera index (default: CAMERA_INDEX)")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO)
    s = Settings()
    record = run_live_overlay(s, camera_index=args.camera)
    if record is not None:
        print(json.dumps(report_from_record(record, s)["overall"], indent=2, ensure_ascii=False))
