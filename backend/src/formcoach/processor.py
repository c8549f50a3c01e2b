# backend/src/formcoach/processor.py
from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Callable, List, Optional, Protocol, Sequence

import numpy as np
import pandas as pd

from .angles import JointAngles, compute_joint_angles
from .frames import ExtractedFrame
from .pose import Landmark, mean_visibility

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int], None]

ANGLE_COLS = [f.name for f in fields(JointAngles)]


class Detector(Protocol):
    async def detect(self, image: np.ndarray) -> Optional[List[Landmark]]: ...


@dataclass(frozen=True)
class PoseDataPoint:
    timestamp: float
    frame_number: int
    landmarks: Sequence[Landmark]
    angles: JointAngles
    confidence: float  # mean visibility over all landmarks


@dataclass(frozen=True)
class PoseStatistics:
    # symmetric left/right means; None when no frame had that joint visible
    avg_knee_angle: Optional[float]
    avg_hip_angle: Optional[float]
    avg_elbow_angle: Optional[float]
    confidence: float


async def process_pose_data(
    frames: Sequence[ExtractedFrame],
    detector: Detector,
    on_progress: Optional[ProgressFn] = None,
) -> List[PoseDataPoint]:
    """
    Run `detector` over `frames` one at a time, in order.

    Frames without a detected body are dropped. A frame whose detection raises
    is logged and dropped too; the rest of the batch still runs. Progress is
    reported after every frame.
    """
    total = len(frames)
    logger.info("Starting pose detection for %d frames", total)
    points: List[PoseDataPoint] = []

    for i, frame in enumerate(frames):
        try:
            landmarks = await detector.detect(frame.image)
        except Exception:
            logger.warning("Pose detection failed on frame %d; skipping", frame.frame_number, exc_info=True)
            landmarks = None

        angles = compute_joint_angles(landmarks) if landmarks else None
        if landmarks and angles is not None:
            confidence = mean_visibility(landmarks)
            points.append(
                PoseDataPoint(
                    timestamp=frame.timestamp,
                    frame_number=frame.frame_number,
                    landmarks=tuple(landmarks),
                    angles=angles,
                    confidence=confidence,
                )
            )
            logger.debug("Frame %d/%d: pose detected (confidence %.1f%%)", i + 1, total, confidence * 100)
        else:
            logger.debug("Frame %d/%d: no pose detected", i + 1, total)

        if on_progress:
            on_progress(i + 1, total)

    logger.info("Pose detection complete: %d/%d frames with a pose", len(points), total)
    return points


def points_to_frame(points: Sequence[PoseDataPoint]) -> pd.DataFrame:
    """One row per point. Unavailable (sentinel 0) angles become NaN."""
    rows = []
    for p in points:
        row = {"t": p.timestamp, "frame": p.frame_number, "conf": p.confidence}
        row.update(p.angles.as_dict())
        rows.append(row)

    df = pd.DataFrame(rows, columns=["t", "frame", "conf", *ANGLE_COLS])
    df[ANGLE_COLS] = df[ANGLE_COLS].astype(float).replace(0.0, np.nan)
    df["knee"] = df[["left_knee", "right_knee"]].mean(axis=1, skipna=True)
    df["hip"] = df[["left_hip", "right_hip"]].mean(axis=1, skipna=True)
    df["elbow"] = df[["left_elbow", "right_elbow"]].mean(axis=1, skipna=True)
    return df


def _mean_or_none(s: pd.Series) -> Optional[float]:
    v = s.mean(skipna=True)
    return None if pd.isna(v) else float(v)


def pose_statistics(points: Sequence[PoseDataPoint]) -> PoseStatistics:
    if not points:
        return PoseStatistics(None, None, None, 0.0)
    df = points_to_frame(points)
    return PoseStatistics(
        avg_knee_angle=_mean_or_none(df["knee"]),
        avg_hip_angle=_mean_or_none(df["hip"]),
        avg_elbow_angle=_mean_or_none(df["elbow"]),
        confidence=float(df["conf"].mean()),
    )


def pose_quality_score(points: Sequence[PoseDataPoint]) -> int:
    """Mean detection confidence on a 0-100 scale."""
    if not points:
        return 0
    return int(round(100 * sum(p.confidence for p in points) / len(points)))
