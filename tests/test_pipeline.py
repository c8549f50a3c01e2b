import asyncio
from contextlib import asynccontextmanager

import numpy as np
import pytest

from conftest import FakeDetector, FakeVideoSource, make_pose
from formcoach.errors import ExtractionError, InitializationError
from formcoach.pipeline import AnalysisStage, analyze_video


def factory_for(detector):
    @asynccontextmanager
    async def factory(**kwargs):
        yield detector
    return factory


@asynccontextmanager
async def failing_factory(**kwargs):
    raise InitializationError("model timed out")
    yield  # pragma: no cover


class TestAnalyzeVideo:

    def test_full_run(self):
        statuses = []
        detector = FakeDetector([make_pose(), None])
        analysis = asyncio.run(analyze_video(
            FakeVideoSource(), "football", frame_count=6,
            on_status=statuses.append, detector_factory=factory_for(detector),
        ))

        assert len(analysis.frames) == 6
        assert len(analysis.annotated) == 6
        assert [p.frame_number for p in analysis.points] == [0, 2, 4]
        assert analysis.pose_available is True
        assert analysis.warnings == []
        assert analysis.summary.startswith("TECHNIQUE ANALYSIS (3 frames analyzed):")
        assert analysis.quality_score == 90
        assert statuses[0] == AnalysisStage.EXTRACTING.value
        assert statuses[-1] == AnalysisStage.DONE.value

        # overlay drawn only where a pose was found
        assert not np.array_equal(analysis.annotated[0], analysis.frames[0].image)
        assert np.array_equal(analysis.annotated[1], analysis.frames[1].image)

    def test_model_failure_degrades(self):
        analysis = asyncio.run(analyze_video(FakeVideoSource(), frame_count=4, detector_factory=failing_factory))
        assert analysis.pose_available is False
        assert analysis.points == []
        assert analysis.summary is None
        assert len(analysis.annotated) == 4
        assert analysis.warnings == [InitializationError.user_message]

    def test_no_body_found(self):
        analysis = asyncio.run(analyze_video(
            FakeVideoSource(), frame_count=3, detector_factory=factory_for(FakeDetector([None])),
        ))
        assert analysis.pose_available is True
        assert analysis.summary is None
        assert analysis.warnings == ["No body was detected in the sampled frames."]

    def test_unreadable_video_propagates(self):
        with pytest.raises(ExtractionError):
            asyncio.run(analyze_video(
                FakeVideoSource(duration=0.0), detector_factory=factory_for(FakeDetector([None])),
            ))

    def test_jpeg_frames(self):
        analysis = asyncio.run(analyze_video(
            FakeVideoSource(), frame_count=2, detector_factory=factory_for(FakeDetector([make_pose()])),
        ))
        jpegs = analysis.jpeg_frames()
        assert len(jpegs) == 2
        assert all(j[:2] == b"\xff\xd8" for j in jpegs)
