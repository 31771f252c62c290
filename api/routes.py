"""
REST endpoints for analysis.
"""
from fastapi import APIRouter, UploadFile, File, HTTPException, Form, Query
from fastapi.responses import JSONResponse
import logging

from emotion_engine.classifier import IntensityClassifier
from emotion_engine.config import Settings
from emotion_engine.live import LiveAnalyzer
from emotion_engine.models import SamplesRequest
from emotion_engine.pipeline import analyze_samples_pipeline, analyze_video_pipeline, report_from_record

import tempfile
import shutil
import os


router = APIRouter()
settings = Settings()
logger = logging.getLogger(__name__)

# one camera session per process, created on first /live/start
live_session: dict = {"analyzer": None}


def _analyzer() -> LiveAnalyzer:
    if live_session["analyzer"] is None:
        live_session["analyzer"] = LiveAnalyzer(settings)
    return live_session["analyzer"]


@router.post("/analyze/video")
async def analyze_video(
    file: UploadFile = File(...),
    detection_interval_ms: int | None = Form(None),
):
    """
    Analyze a recorded audience video: detect and track faces on sampled frames,
    aggregate emotions into buckets and build the narrative report.

    Args:
        file: Uploaded video file.
        detection_interval_ms: Optional override for milliseconds between analyzed frames.

    Returns:
        JSONResponse: Report payload (buckets, timeline, overall, metrics).
    """
    logger.debug(f"[api] /analyze/video filename={file.filename} detection_interval_ms={detection_interval_ms}")
    run_settings = settings
    if detection_interval_ms is not None:
        if detection_interval_ms <= 0:
            raise HTTPException(status_code=422, detail="detection_interval_ms must be > 0")
        run_settings = settings.model_copy(update={"DETECTION_INTERVAL_MS": int(detection_interval_ms)})

    # Save to temp file
    try:
        suffix = os.path.splitext(file.filename or "")[1] or ".mp4"
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
            shutil.copyfileobj(file.file, tmp)
            tmp_path = tmp.name
    except Exception as e:
        logger.exception("[api] upload save failed")
        raise HTTPException(status_code=400, detail=f"Upload failed: {e}")

    try:
        logger.debug(f"[api] starting analyze_video_pipeline tmp_path={tmp_path}")
        payload = analyze_video_pipeline(tmp_path, run_settings)
        logger.debug("[api] analyze_video_pipeline completed")
        return JSONResponse(payload)
    except FileNotFoundError as e:
        logger.exception("[api] analyze_video_pipeline file not found")
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        logger.exception("[api] analyze_video_pipeline rejected input")
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.exception("[api] analyze_video_pipeline failed")
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        try:
            os.unlink(tmp_path)
        except OSError:
            logger.warning(f"[api] failed to cleanup tmp file: {tmp_path}")


@router.post("/analyze/samples")
async def analyze_samples(body: SamplesRequest):
    """
    Aggregate stored emotion sample sequences (one per viewer) into a report.
    """
    logger.debug(f"[api] /analyze/samples sequences={len(body.sequences)} width={body.bucket_width_ms}")
    try:
        payload = analyze_samples_pipeline(body.sequences, settings, body.bucket_width_ms)
        return JSONResponse(payload)
    except ValueError as e:
        logger.exception("[api] analyze_samples_pipeline rejected input")
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.exception("[api] analyze_samples_pipeline failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/classify/{label}")
async def classify(label: str, intensity: float = Query(..., ge=0.0, le=100.0)):
    """Qualitative level and canned text for one label/intensity pair."""
    classifier = IntensityClassifier.for_profile(settings.RULE_PROFILE)
    result = classifier.classify(label, intensity)
    payload = result.model_dump(mode="json")
    payload["available"] = result.available
    return payload


@router.post("/live/start")
async def live_start():
    analyzer = _analyzer()
    if analyzer.engine.running:
        return {"status": "already_running", "session_id": analyzer.engine.session_id}
    session_id = analyzer.start()
    status = analyzer.status()
    return {"status": "started", "session_id": session_id, "degraded": analyzer.engine.degraded,
            "error": status.error}


@router.get("/live/status")
async def live_status():
    analyzer = live_session["analyzer"]
    if analyzer is None:
        return {"running": False}
    return analyzer.status().model_dump(mode="json")


@router.post("/live/stop")
async def live_stop():
    analyzer = live_session["analyzer"]
    if analyzer is None or not analyzer.engine.running:
        return {"status": "not_running"}
    record = analyzer.stop()
    return {"status": "stopped", "report": report_from_record(record, settings)}
