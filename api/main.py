"""
FastAPI application entrypoint.
"""
import logging
from fastapi import FastAPI
from api.routes import router, live_session, settings

logging.basicConfig(level=logging.DEBUG)
app = FastAPI(title="Audience Emotion Engine API", version="1.0.0")
app.include_router(router)


@app.get("/health")
def health() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Status, active rule profile and whether a live session is running.
    """
    analyzer = live_session["analyzer"]
    return {
        "status": "ok",
        "rule_profile": settings.RULE_PROFILE,
        "live_running": bool(analyzer is not None and analyzer.engine.running),
    }


@app.on_event("shutdown")
def _stop_live_session() -> None:
    analyzer = live_session["analyzer"]
    if analyzer is not None and analyzer.engine.running:
        logging.getLogger(__name__).debug("[api] shutdown; stopping live session")
        analyzer.stop()
