"""Shared synthetic poses, frames and fakes. No model download or codec needed."""

import asyncio
from typing import Dict, List, Optional

import numpy as np
import pytest

from formcoach.angles import JointAngles
from formcoach.frames import ExtractedFrame
from formcoach.pose import NUM_LANDMARKS, Landmark, PoseLandmark as L
from formcoach.processor import PoseDataPoint


def make_pose(visibility: float = 0.9, overrides: Optional[Dict[int, Landmark]] = None) -> List[Landmark]:
    """A standing figure: arms and legs straight down."""
    lms = [Landmark(0.5, 0.15, 0.0, visibility) for _ in range(NUM_LANDMARKS)]
    layout = {
        L.LEFT_SHOULDER: (0.45, 0.30), L.RIGHT_SHOULDER: (0.55, 0.30),
        L.LEFT_ELBOW: (0.45, 0.45), L.RIGHT_ELBOW: (0.55, 0.45),
        L.LEFT_WRIST: (0.45, 0.60), L.RIGHT_WRIST: (0.55, 0.60),
        L.LEFT_HIP: (0.46, 0.55), L.RIGHT_HIP: (0.54, 0.55),
        L.LEFT_KNEE: (0.46, 0.75), L.RIGHT_KNEE: (0.54, 0.75),
        L.LEFT_ANKLE: (0.46, 0.95), L.RIGHT_ANKLE: (0.54, 0.95),
    }
    for idx, (x, y) in layout.items():
        lms[idx] = Landmark(x, y, 0.0, visibility)
    for idx, lm in (overrides or {}).items():
        lms[idx] = lm
    return lms


def make_point(frame_number: int, knee: float = 130.0, hip: float = 120.0, elbow: float = 100.0,
               timestamp: Optional[float] = None, confidence: float = 0.9) -> PoseDataPoint:
    angles = JointAngles(
        left_elbow=elbow, right_elbow=elbow,
        left_knee=knee, right_knee=knee,
        left_shoulder=30.0, right_shoulder=30.0,
        left_hip=hip, right_hip=hip,
    )
    return PoseDataPoint(
        timestamp=timestamp if timestamp is not None else 0.5 + frame_number * 0.5,
        frame_number=frame_number,
        landmarks=tuple(make_pose()),
        angles=angles,
        confidence=confidence,
    )


def make_frames(n: int, width: int = 64, height: int = 48) -> List[ExtractedFrame]:
    return [
        ExtractedFrame(image=np.full((height, width, 3), i, dtype=np.uint8), timestamp=0.5 + i * 0.5, frame_number=i)
        for i in range(n)
    ]


class FakeVideoSource:
    """In-memory player. Frames encode the seek time in their pixel values."""

    def __init__(self, duration: float = 10.0, current_time: float = 3.0, paused: bool = True,
                 size=(120, 160), stall_after: Optional[int] = None):
        self.duration = duration
        self.current_time = current_time
        self.paused = paused
        self.size = size
        self.stall_after = stall_after
        self.seeks: List[float] = []
        self.play_calls = 0
        self.pause_calls = 0
        self._inflight = 0
        self.max_inflight = 0

    async def seek(self, t: float) -> None:
        self._inflight += 1
        self.max_inflight = max(self.max_inflight, self._inflight)
        try:
            stalled = self.stall_after is not None and len(self.seeks) >= self.stall_after
            self.seeks.append(t)
            if stalled:
                await asyncio.Event().wait()
            await asyncio.sleep(0)
            self.current_time = t
        finally:
            self._inflight -= 1

    def read_frame(self):
        h, w = self.size
        return np.full((h, w, 3), int(self.current_time * 10) % 256, dtype=np.uint8)

    def play(self) -> None:
        self.play_calls += 1
        self.paused = False

    def pause(self) -> None:
        self.pause_calls += 1
        self.paused = True


class FakeDetector:
    """Returns scripted results per call: a landmark list, None, or an exception to raise."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0
        self._inflight = 0
        self.max_inflight = 0

    async def detect(self, image):
        self._inflight += 1
        self.max_inflight = max(self.max_inflight, self._inflight)
        try:
            await asyncio.sleep(0)
            result = self.script[self.calls % len(self.script)]
            self.calls += 1
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self._inflight -= 1


@pytest.fixture
def standing_pose():
    return make_pose()
