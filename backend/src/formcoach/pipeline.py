# backend/src/formcoach/pipeline.py
"""
End-to-end clip analysis: frames -> poses -> summary + annotated frames.

Setup failures behave differently depending on the stage:
  - the video cannot be read  -> ExtractionError propagates, nothing is returned
  - the pose model won't load -> analysis continues without poses/overlays
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import numpy as np

from . import config
from .errors import InitializationError
from .frames import ExtractedFrame, OpenCVVideoSource, VideoSource, encode_jpeg, extract_frames
from .pose import open_pose_detector
from .processor import PoseDataPoint, PoseStatistics, pose_quality_score, pose_statistics, process_pose_data
from .skeleton import annotate_frame
from .summary import summarize_technique

logger = logging.getLogger(__name__)

StatusFn = Callable[[str], None]
ProgressFn = Callable[[int, int], None]


class AnalysisStage(str, Enum):
    EXTRACTING = "Extracting frames from video..."
    DETECTING = "Running pose detection on frames..."
    SUMMARIZING = "Summarizing technique..."
    DONE = "Analysis complete"


@dataclass
class VideoAnalysis:
    discipline: str
    frames: List[ExtractedFrame]
    points: List[PoseDataPoint]
    annotated: List[np.ndarray]  # one per frame; skeleton baked in where a pose was found
    summary: Optional[str]
    statistics: PoseStatistics
    quality_score: int
    pose_available: bool
    warnings: List[str] = field(default_factory=list)

    def jpeg_frames(self, quality: int = config.JPEG_QUALITY) -> List[bytes]:
        return [encode_jpeg(img, quality) for img in self.annotated]


async def analyze_video(
    source: VideoSource,
    discipline: str = "football",
    frame_count: int = config.FRAME_COUNT,
    on_status: Optional[StatusFn] = None,
    on_progress: Optional[ProgressFn] = None,
    detector_factory=open_pose_detector,
) -> VideoAnalysis:
    def status(msg: str) -> None:
        logger.info(msg)
        if on_status:
            on_status(msg)

    status(AnalysisStage.EXTRACTING.value)
    frames = await extract_frames(source, count=frame_count)

    points: List[PoseDataPoint] = []
    pose_available = True
    warnings: List[str] = []
    try:
        async with detector_factory(on_status=on_status) as detector:
            status(AnalysisStage.DETECTING.value)
            points = await process_pose_data(frames, detector, on_progress=on_progress)
    except InitializationError as e:
        logger.warning("Continuing without pose detection: %s", e)
        pose_available = False
        warnings.append(e.user_message)

    status(AnalysisStage.SUMMARIZING.value)
    by_frame: Dict[int, PoseDataPoint] = {p.frame_number: p for p in points}
    annotated = [
        annotate_frame(f.image, by_frame[f.frame_number].landmarks, discipline)
        if f.frame_number in by_frame else f.image.copy()
        for f in frames
    ]
    if pose_available and not points:
        warnings.append("No body was detected in the sampled frames.")

    analysis = VideoAnalysis(
        discipline=discipline,
        frames=frames,
        points=points,
        annotated=annotated,
        summary=summarize_technique(points, discipline) if points else None,
        statistics=pose_statistics(points),
        quality_score=pose_quality_score(points),
        pose_available=pose_available,
        warnings=warnings,
    )
    status(AnalysisStage.DONE.value)
    return analysis


def analyze_video_file(path: Union[str, Path], discipline: str = "football", **kwargs) -> VideoAnalysis:
    """Blocking convenience wrapper for scripts and the Streamlit page."""
    with OpenCVVideoSource(path) as source:
        return asyncio.run(analyze_video(source, discipline, **kwargs))
