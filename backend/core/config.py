"""
Configuration

Centralizes constants and environment-based settings for the PhysioTrack
backend. Values can be overridden through environment variables or a .env
file next to the process working directory.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


class ModelConfig:
    """MoveNet inference engine settings."""
    MODEL_TYPE = os.getenv("MODEL_TYPE", "lightning")
    MODEL_DIR = Path(os.getenv("MODEL_DIR", str(BASE_DIR / "models")))
    MODEL_PATH = _env_path("MODEL_PATH")  # None = MODEL_DIR / <type file name>
    NUM_THREADS = int(os.getenv("MODEL_NUM_THREADS", 4))


class TrackingConfig:
    """
    Crop region tracking parameters.

    The expansion ratios control how far the crop region grows beyond the
    previous frame's torso and body keypoints.
    """
    MIN_CROP_KEYPOINT_SCORE = 0.2
    TORSO_EXPANSION_RATIO = 1.9
    BODY_EXPANSION_RATIO = 1.2


class AngleConfig:
    """Joint angle estimation settings."""
    # Reproduce the legacy |BA| = sqrt(x*y + y*y) magnitude
    LEGACY_NORM = _env_bool("LEGACY_ANGLE_NORM", False)
    CALIBRATION_FILE = _env_path("CALIBRATION_FILE")  # None = built-in table


class ServerConfig:
    """API server settings."""
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", 8000))
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://localhost:5173,"
            "http://127.0.0.1:3000,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]


class LogConfig:
    """Logging settings."""
    LEVEL = os.getenv("LOG_LEVEL", "INFO")
    FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
