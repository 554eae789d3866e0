"""
PhysioTrack Backend API

FastAPI application for physiotherapy movement tracking with real-time
pose estimation and calibrated joint angles.

Run with:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000

API docs available at:
    http://localhost:8000/docs (Swagger UI)
    http://localhost:8000/redoc (ReDoc)
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.deps import get_angle_estimator
from api.routes import API_VERSION, router as api_router
from api.websocket import websocket_endpoint
from core.config import LogConfig, ModelConfig, ServerConfig

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=getattr(logging, LogConfig.LEVEL.upper(), logging.INFO),
    format=LogConfig.FORMAT
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan (startup/shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Loads the calibration table once before the app starts accepting
    requests, so a broken calibration file fails at startup.
    """
    # Startup
    logger.info("PhysioTrack API starting up...")
    logger.info(f"Model: movenet {ModelConfig.MODEL_TYPE} ({ModelConfig.MODEL_DIR})")

    estimator = get_angle_estimator()
    logger.info(
        f"Calibration loaded: {', '.join(key.value for key in estimator.calibrations)}"
        f"{' (legacy angle norm)' if estimator.legacy_norm else ''}"
    )

    yield  # App runs here

    # Shutdown
    logger.info("PhysioTrack API shutting down...")


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="PhysioTrack API",
    description="""
    **Pose-Based Physiotherapy Movement Tracking**

    Single-person pose estimation with calibrated joint angles.

    ## Endpoints

    - `GET /api/health` - Health check
    - `GET /api/calibration` - Calibration table
    - `GET /api/movements` - Supported movements
    - `POST /api/pose/estimate` - Single image pose estimation
    - `POST /api/pose/video` - Track pose through a video
    - `WS /ws/pose` - Real-time pose estimation stream

    ## WebSocket Protocol

    Connect to `/ws/pose` and send frames as JSON:
```json
    {
        "type": "frame",
        "data": {"image_base64": "...", "frame_number": 0, "movement": "elbow_flexion"},
        "timestamp": 1704067200000
    }
```
    """,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# =============================================================================
# CORS Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=ServerConfig.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Routes
# =============================================================================

# Include REST API routes
app.include_router(api_router, prefix="/api")

# WebSocket endpoint
app.websocket("/ws/pose")(websocket_endpoint)


# =============================================================================
# Root endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "name": "PhysioTrack API",
        "version": API_VERSION,
        "description": "Pose-Based Physiotherapy Movement Tracking",
        "docs": "/docs",
        "health": "/api/health",
        "websocket": "/ws/pose"
    }


# =============================================================================
# Run directly (for development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=ServerConfig.HOST,
        port=ServerConfig.PORT,
        reload=True,
        log_level=LogConfig.LEVEL.lower()
    )
