"""
SwingSync Backend

Serves the swing comparison API: pose tracking over a WebSocket plus
REST endpoints for phase detection, replay rate and overlay calibration.

Development server:
    uvicorn main:app --reload --port 8000

Interactive docs are served at /docs and /redoc.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import router, websocket_endpoint
from swingsync import __version__

# =============================================================================
# Logging
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Startup / shutdown
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Probe MediaPipe once at startup.

    The analysis endpoints do not need a detector, so a failed probe is only
    logged and the app still starts.
    """
    logger.info("Starting SwingSync API %s", __version__)

    try:
        from swingsync.services import PoseDetector
        with PoseDetector():
            logger.info("Pose detector ready")
    except Exception as e:
        logger.warning(f"Pose detector unavailable: {e}")

    yield

    logger.info("SwingSync API stopped")


# =============================================================================
# Application
# =============================================================================

app = FastAPI(
    title="SwingSync API",
    description="""
    **Golf Swing Comparison**

    Line up a recorded swing with a reference swing, phase by phase.

    ## Features

    - **Pose Tracking** over WebSocket (17 COCO keypoints)
    - **Swing Phase Detection** (Back, Apex, Impact, Follow after a marked Setup)
    - **Synchronized Replay Rate** from both subjects' Back -> Follow durations
    - **Overlay Calibration** from head-to-ankle body measurements

    ## Endpoints

    - `GET /api/health` - Service status
    - `POST /api/pose/detect` - Pose for one base64 image
    - `POST /api/phases/detect` - Phase detection from pose samples
    - `POST /api/playback/rate` - Reference playback rate
    - `POST /api/calibration` - Overlay scale and offset
    - `POST /api/overlay/point` - Reference keypoint in display coordinates
    - `GET /api/reference/{handedness}` - Built-in reference swing
    - `WS /ws/pose` - Pose tracking stream

    ## WebSocket Protocol

    Send one message per video frame:
```json
    {
        "type": "frame",
        "data": {"image_base64": "...", "frame_number": 0, "video_time": 0.4},
        "timestamp": 0
    }
```
    then `{"type": "detect_phases", "data": {"setup_time": 0.4}}`
    and finally `{"type": "end_session"}`.
    """,
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# =============================================================================
# CORS
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",      # frontend dev server
        "http://127.0.0.1:3000",
        "*",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Routing
# =============================================================================

app.include_router(router, prefix="/api")
app.websocket("/ws/pose")(websocket_endpoint)


@app.get("/", tags=["Root"])
async def root():
    """Service information."""
    return {
        "name": "SwingSync API",
        "version": __version__,
        "description": "Golf swing comparison",
        "docs": "/docs",
        "health": "/api/health",
        "websocket": "/ws/pose",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
