# backend/src/formcoach/frames.py
from __future__ import annotations

import asyncio
import base64
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Union

import cv2
import numpy as np

from . import config
from .errors import ExtractionError

logger = logging.getLogger(__name__)

# skip the first/last 5% of a clip: black frames and transitions live there
EDGE_MARGIN = 0.05

ProgressFn = Callable[[int, int], None]


@dataclass
class ExtractedFrame:
    image: np.ndarray  # BGR, fixed size
    timestamp: float  # seconds
    frame_number: int  # 0-based ordinal within the extraction


@dataclass(frozen=True)
class VideoMetadata:
    duration: float
    width: int
    height: int
    fps: float
    size: int  # bytes on disk


class VideoSource(Protocol):
    """A player shared with the user: seeking moves what they see."""

    duration: float
    current_time: float
    paused: bool

    async def seek(self, t: float) -> None: ...

    def read_frame(self) -> Optional[np.ndarray]: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...


class OpenCVVideoSource:
    """`cv2.VideoCapture` behind the `VideoSource` interface."""

    def __init__(self, path: Union[str, Path]):
        self.path = str(path)
        self._cap = cv2.VideoCapture(self.path)
        if not self._cap.isOpened():
            raise ExtractionError(f"Could not open video: {self.path}")

        self.fps = float(self._cap.get(cv2.CAP_PROP_FPS) or 0.0)
        n_frames = float(self._cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
        self.duration = n_frames / self.fps if self.fps > 0 and n_frames > 0 else 0.0
        self.width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        self.height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)

        self.current_time = 0.0
        self.paused = True
        self._frame: Optional[np.ndarray] = None

    def _seek_sync(self, t: float) -> np.ndarray:
        self._cap.set(cv2.CAP_PROP_POS_MSEC, t * 1000.0)
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise ExtractionError(f"Could not decode frame at {t:.2f}s")
        return frame

    async def seek(self, t: float) -> None:
        self._frame = await asyncio.to_thread(self._seek_sync, t)
        self.current_time = t

    def read_frame(self) -> Optional[np.ndarray]:
        return self._frame

    def play(self) -> None:
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def release(self) -> None:
        self._cap.release()

    def __enter__(self) -> "OpenCVVideoSource":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


def frame_timestamps(duration: float, count: int) -> List[float]:
    """
    `count` instants spread evenly over the inner 90% of the clip.

    Each timestamp sits at the centre of one of `count` equal slots, so the
    first and last stay strictly inside (0.05*d, 0.95*d) and a single frame
    lands in the middle.
    """
    if count < 1:
        raise ValueError("count must be >= 1")
    start = duration * EDGE_MARGIN
    span = duration * (1.0 - 2 * EDGE_MARGIN)
    return [start + span * (i + 0.5) / count for i in range(count)]


def _fit(image: np.ndarray, width: int, height: int) -> np.ndarray:
    if image.shape[1] == width and image.shape[0] == height:
        return image.copy()
    return cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)


async def _seek(source: VideoSource, t: float, timeout: float) -> None:
    try:
        await asyncio.wait_for(source.seek(t), timeout)
    except asyncio.TimeoutError as e:
        raise ExtractionError(f"Seek to {t:.2f}s did not settle within {timeout:.1f}s") from e


async def _restore(source: VideoSource, t: float, was_playing: bool, timeout: float) -> None:
    try:
        await _seek(source, t, timeout)
    except ExtractionError as e:
        logger.warning("Could not restore playback position to %.2fs: %s", t, e)
    if was_playing:
        source.play()


async def extract_frames(
    source: VideoSource,
    count: int = config.FRAME_COUNT,
    width: int = config.FRAME_WIDTH,
    height: int = config.FRAME_HEIGHT,
    seek_timeout: float = config.SEEK_TIMEOUT_S,
    on_progress: Optional[ProgressFn] = None,
) -> List[ExtractedFrame]:
    """
    Sample `count` frames from `source` in time order.

    Seeks are awaited one at a time; a media element cannot honour two at
    once. The source's position and play/pause state are restored afterwards,
    including when extraction fails.
    """
    duration = source.duration
    if not duration or not math.isfinite(duration) or duration <= 0:
        raise ExtractionError("Video duration is unavailable")

    timestamps = frame_timestamps(duration, count)
    original_time = source.current_time
    was_playing = not source.paused
    if was_playing:
        source.pause()

    frames: List[ExtractedFrame] = []
    try:
        for i, t in enumerate(timestamps):
            await _seek(source, t, seek_timeout)
            image = source.read_frame()
            if image is None:
                raise ExtractionError(f"No frame available at {t:.2f}s")
            frames.append(ExtractedFrame(image=_fit(image, width, height), timestamp=t, frame_number=i))
            logger.debug("Extracted frame %d/%d at %.2fs", i + 1, count, t)
            if on_progress:
                on_progress(i + 1, count)
    finally:
        await _restore(source, original_time, was_playing, seek_timeout)

    logger.info("Extracted %d frames over %.1fs of video", len(frames), duration)
    return frames


# ----------------------------- helpers -----------------------------

def get_video_metadata(path: Union[str, Path]) -> VideoMetadata:
    with OpenCVVideoSource(path) as src:
        return VideoMetadata(
            duration=src.duration,
            width=src.width,
            height=src.height,
            fps=src.fps,
            size=Path(path).stat().st_size,
        )


def encode_jpeg(image: np.ndarray, quality: int = config.JPEG_QUALITY) -> bytes:
    ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return buf.tobytes()


def to_data_url(jpeg: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("utf-8")


def get_video_thumbnail(path: Union[str, Path], t: float = 0.1) -> bytes:
    with OpenCVVideoSource(path) as src:
        frame = src._seek_sync(min(t, src.duration) if src.duration else t)
    return encode_jpeg(frame, quality=80)
