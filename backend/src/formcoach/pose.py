# backend/src/formcoach/pose.py
from __future__ import annotations

import asyncio
import logging
import threading
import urllib.request
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from . import config
from .errors import InitializationError

logger = logging.getLogger(__name__)

NUM_LANDMARKS = 33

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_{variant}/float16/latest/pose_landmarker_{variant}.task"
)


class PoseLandmark(IntEnum):
    """BlazePose landmark indices. The order is global; never reorder."""

    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


POSE_CONNECTIONS: Tuple[Tuple[int, int], ...] = (
    # face
    (0, 1), (1, 2), (2, 3), (3, 7),
    (0, 4), (4, 5), (5, 6), (6, 8),
    (9, 10),
    # shoulders, arms, hands
    (11, 12),
    (11, 13), (13, 15),
    (15, 17), (15, 19), (15, 21),
    (12, 14), (14, 16),
    (16, 18), (16, 20), (16, 22),
    # torso
    (11, 23), (12, 24),
    (23, 24),
    # legs
    (23, 25), (25, 27), (27, 29), (27, 31),
    (24, 26), (26, 28), (28, 30), (28, 32),
)


@dataclass(frozen=True)
class Landmark:
    x: float  # normalized [0, 1]
    y: float  # normalized [0, 1]
    z: float = 0.0  # relative depth
    visibility: float = 0.0


Pose = Sequence[Landmark]


def mean_visibility(landmarks: Pose) -> float:
    if not landmarks:
        return 0.0
    return float(sum(lm.visibility for lm in landmarks) / len(landmarks))


# ----------------------------- model loading -----------------------------

def model_path_for(variant: str = config.MODEL_VARIANT, model_dir: Path = config.MODEL_DIR) -> Path:
    return Path(model_dir) / f"pose_landmarker_{variant}.task"


def ensure_model(variant: str = config.MODEL_VARIANT, model_dir: Path = config.MODEL_DIR) -> Path:
    """Return the local .task model path, downloading it on first use."""
    path = model_path_for(variant, model_dir)
    if path.exists():
        return path

    path.parent.mkdir(parents=True, exist_ok=True)
    url = MODEL_URL.format(variant=variant)
    tmp = path.with_suffix(".part")
    logger.info("Downloading pose landmarker model %s -> %s", url, path)
    urllib.request.urlretrieve(url, tmp)
    tmp.replace(path)
    return path


def _build_landmarker(model_path: Path) -> Any:
    from mediapipe.tasks import python as mp_python
    from mediapipe.tasks.python import vision

    options = vision.PoseLandmarkerOptions(
        base_options=mp_python.BaseOptions(model_asset_path=str(model_path)),
        # still images: no temporal smoothing across the sampled frames
        running_mode=vision.RunningMode.IMAGE,
        num_poses=1,
        min_pose_detection_confidence=0.5,
        min_pose_presence_confidence=0.5,
        min_tracking_confidence=0.5,
    )
    return vision.PoseLandmarker.create_from_options(options)


def _to_mp_image(image: np.ndarray) -> Any:
    import mediapipe as mp

    rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(rgb))


def _landmarks_from_result(result: Any) -> Optional[List[Landmark]]:
    poses = getattr(result, "pose_landmarks", None)
    if not poses or not poses[0]:
        return None
    return [
        Landmark(
            x=float(lm.x),
            y=float(lm.y),
            z=float(lm.z or 0.0),
            visibility=float(lm.visibility or 0.0),
        )
        for lm in poses[0]
    ]


# ----------------------------- detector -----------------------------

class PoseDetector:
    """
    Owned handle on a loaded landmark model.

    Create with `await PoseDetector.acquire()` (slow, once per session), call
    `await detect(frame)` as often as needed, then `await aclose()`.
    Calls must be awaited one at a time: the model keeps per-call state.
    """

    def __init__(self, landmarker: Any):
        self._landmarker = landmarker
        self._pending: Optional[asyncio.Future] = None

    @classmethod
    async def acquire(
        cls,
        model_path: Optional[Path] = None,
        timeout: float = config.INIT_TIMEOUT_S,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> "PoseDetector":
        path = Path(model_path) if model_path else model_path_for()
        if on_status:
            on_status("Loading pose model..." if path.exists() else "Downloading pose model (one-time)...")

        # The worker thread outlives a timeout. Whichever side sees the other
        # finish first closes the late landmarker.
        lock = threading.Lock()
        slot: Dict[str, Any] = {"abandoned": False, "landmarker": None}

        def _load() -> Any:
            local = path if model_path else ensure_model(model_dir=path.parent)
            landmarker = _build_landmarker(local)
            with lock:
                if slot["abandoned"]:
                    landmarker.close()
                    logger.info("Closed pose model that finished loading after the timeout")
                    return None
                slot["landmarker"] = landmarker
            return landmarker

        try:
            landmarker = await asyncio.wait_for(asyncio.to_thread(_load), timeout)
        except asyncio.TimeoutError as e:
            with lock:
                slot["abandoned"] = True
                late, slot["landmarker"] = slot["landmarker"], None
            if late is not None:
                late.close()
            logger.error("Pose model initialization timed out after %.0fs", timeout)
            raise InitializationError(f"Pose model initialization timed out after {timeout:.0f} seconds") from e
        except Exception as e:
            logger.error("Pose model initialization failed: %s", e)
            raise InitializationError(f"Failed to initialize pose detection: {e}") from e

        if on_status:
            on_status("Pose model ready")
        logger.info("Pose landmarker ready (%s)", path.name)
        return cls(landmarker)

    @property
    def closed(self) -> bool:
        return self._landmarker is None

    def _detect_sync(self, image: np.ndarray) -> Optional[List[Landmark]]:
        result = self._landmarker.detect(_to_mp_image(image))
        return _landmarks_from_result(result)

    async def _settle(self) -> None:
        # A call abandoned by a cancelled caller is still running on the model.
        pending, self._pending = self._pending, None
        if pending is None or pending.done() and pending.cancelled():
            return
        try:
            await pending
        except Exception:
            logger.debug("Discarded failure from abandoned detect() call", exc_info=True)

    async def detect(self, image: np.ndarray) -> Optional[List[Landmark]]:
        """Landmarks for the single most prominent body, or None."""
        if self.closed:
            raise RuntimeError("PoseDetector is closed")
        await self._settle()

        fut = asyncio.ensure_future(asyncio.to_thread(self._detect_sync, image))
        self._pending = fut
        out = await asyncio.shield(fut)
        self._pending = None
        return out

    async def aclose(self) -> None:
        await self._settle()
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None

    async def __aenter__(self) -> "PoseDetector":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()


@asynccontextmanager
async def open_pose_detector(**kwargs) -> AsyncIterator[PoseDetector]:
    """Acquire a detector for one analysis session; always released."""
    detector = await PoseDetector.acquire(**kwargs)
    try:
        yield detector
    finally:
        await detector.aclose()
