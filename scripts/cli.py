"""
CLI to analyze an audience video (or stored samples) -> JSON report.
"""
from __future__ import annotations
import argparse, json, os
import logging

from emotion_engine.config import Settings
from emotion_engine.models import SamplesRequest
from emotion_engine.pipeline import analyze_samples_pipeline, analyze_video_pipeline
from emotion_engine.visual import annotate_video


def main(argv=None):
    p = argparse.ArgumentParser()
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--video", help="Path to input video")
    src.add_argument("--samples", help="Path to a JSON file of sample sequences")
    p.add_argument("--out", default="output/analysis.json", help="Path to output JSON")
    p.add_argument("--annotate", default=None, help="Also write an annotated copy of the video here")
    p.add_argument("--bucket-ms", type=int, default=None, help="Bucket width override (ms)")
    p.add_argument("--debug", action="store_true", help="Verbose logging")
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    settings = Settings()
    if args.bucket_ms is not None:
        settings = settings.model_copy(update={"BUCKET_WIDTH_MS": args.bucket_ms})

    if args.video:
        result = analyze_video_pipeline(args.video, settings)
        if args.annotate:
            annotate_video(args.video, args.annotate, settings)
    else:
        with open(args.samples, "r", encoding="utf-8") as f:
            body = SamplesRequest.model_validate(json.load(f))
        result = analyze_samples_pipeline(body.sequences, settings, body.bucket_width_ms)

    print(json.dumps(result, indent=2, ensure_ascii=False))

    # Also write to file
    out_dir = os.path.dirname(args.out)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2, ensure_ascii=False)
    print(f"Analysis written to {args.out}")
    return result


if __name__ == "__main__":
    main()
