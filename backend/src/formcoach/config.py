# backend/src/formcoach/config.py
"""
Runtime configuration.

Values come from environment variables, with a `.env` file at the project root
loaded first. Keys are documented in `.env.example`.
"""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[3]
load_dotenv(PROJECT_ROOT / ".env")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


# Gemini (hosted coach)
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or ""
GEMINI_MODEL = os.getenv("GEMINI_MODEL") or "gemini-2.5-flash"

# Pose landmark model
MODEL_DIR = Path(os.getenv("FORMCOACH_MODEL_DIR") or Path.home() / ".cache" / "formcoach" / "models")
MODEL_VARIANT = os.getenv("FORMCOACH_MODEL_VARIANT") or "full"
INIT_TIMEOUT_S = _env_float("FORMCOACH_INIT_TIMEOUT_S", 15.0)
VISIBILITY_THRESHOLD = 0.5

# Frame extraction
SEEK_TIMEOUT_S = _env_float("FORMCOACH_SEEK_TIMEOUT_S", 5.0)
FRAME_COUNT = _env_int("FORMCOACH_FRAME_COUNT", 8)
FRAME_WIDTH = _env_int("FORMCOACH_FRAME_WIDTH", 640)
FRAME_HEIGHT = _env_int("FORMCOACH_FRAME_HEIGHT", 480)
JPEG_QUALITY = _env_int("FORMCOACH_JPEG_QUALITY", 70)

# Artifact storage (optional)
S3_BUCKET = os.getenv("FORMCOACH_S3_BUCKET", "").strip()
S3_PREFIX = (os.getenv("FORMCOACH_S3_PREFIX") or "formcoach").strip().strip("/")
S3_USER_ID = (os.getenv("FORMCOACH_USER_ID") or "anonymous").strip()
AWS_REGION = os.getenv("AWS_DEFAULT_REGION") or os.getenv("AWS_REGION") or "us-east-1"
