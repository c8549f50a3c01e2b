import asyncio
import math

import pytest

from conftest import FakeDetector, make_frames, make_point, make_pose
from formcoach.processor import (
    PoseStatistics,
    points_to_frame,
    pose_quality_score,
    pose_statistics,
    process_pose_data,
)


def _run(frames, detector, **kw):
    return asyncio.run(process_pose_data(frames, detector, **kw))


class TestProcessPoseData:

    def test_every_frame_detected(self):
        frames = make_frames(5)
        seen = []
        points = _run(frames, FakeDetector([make_pose()]), on_progress=lambda c, t: seen.append((c, t)))

        assert [p.frame_number for p in points] == [0, 1, 2, 3, 4]
        assert [p.timestamp for p in points] == [f.timestamp for f in frames]
        assert seen == [(i, 5) for i in range(1, 6)]

    def test_frames_without_body_are_skipped(self):
        frames = make_frames(6)
        points = _run(frames, FakeDetector([make_pose(), None, []]))
        assert [p.frame_number for p in points] == [0, 3]

    def test_detection_error_skips_frame_only(self):
        frames = make_frames(4)
        seen = []
        detector = FakeDetector([make_pose(), RuntimeError("boom")])
        points = _run(frames, detector, on_progress=lambda c, t: seen.append(c))

        assert [p.frame_number for p in points] == [0, 2]
        assert detector.calls == 4
        assert seen == [1, 2, 3, 4]

    def test_malformed_pose_is_dropped(self):
        points = _run(make_frames(2), FakeDetector([make_pose()[:10]]))
        assert points == []

    def test_one_detection_at_a_time(self):
        detector = FakeDetector([make_pose()])
        _run(make_frames(8), detector)
        assert detector.max_inflight == 1

    def test_confidence_is_mean_visibility(self):
        points = _run(make_frames(1), FakeDetector([make_pose(visibility=0.8)]))
        assert points[0].confidence == pytest.approx(0.8)

    def test_empty_input(self):
        seen = []
        assert _run([], FakeDetector([None]), on_progress=lambda c, t: seen.append(c)) == []
        assert seen == []

    def test_cancellation_propagates(self):
        class Hanging:
            async def detect(self, image):
                await asyncio.Event().wait()

        async def main():
            task = asyncio.ensure_future(process_pose_data(make_frames(3), Hanging()))
            await asyncio.sleep(0.01)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                return True
            return False

        assert asyncio.run(main()) is True


class TestStatistics:

    def test_quality_score(self):
        points = [make_point(0, confidence=0.8), make_point(1, confidence=0.9)]
        assert pose_quality_score(points) == 85
        assert pose_quality_score([]) == 0

    def test_means(self):
        points = [make_point(0, knee=100, hip=60, elbow=90), make_point(1, knee=140, hip=80, elbow=110)]
        stats = pose_statistics(points)
        assert stats.avg_knee_angle == pytest.approx(120.0)
        assert stats.avg_hip_angle == pytest.approx(70.0)
        assert stats.avg_elbow_angle == pytest.approx(100.0)
        assert stats.confidence == pytest.approx(0.9)

    def test_sentinels_are_ignored(self):
        points = [make_point(0, knee=0.0), make_point(1, knee=120.0)]
        assert pose_statistics(points).avg_knee_angle == pytest.approx(120.0)

    def test_joint_never_visible(self):
        stats = pose_statistics([make_point(0, elbow=0.0), make_point(1, elbow=0.0)])
        assert stats.avg_elbow_angle is None
        assert stats.avg_knee_angle is not None

    def test_empty(self):
        assert pose_statistics([]) == PoseStatistics(None, None, None, 0.0)


class TestPointsToFrame:

    def test_columns_and_nan(self):
        df = points_to_frame([make_point(0, knee=0.0), make_point(1, knee=120.0)])
        assert list(df["frame"]) == [0, 1]
        assert math.isnan(df.loc[0, "left_knee"])
        assert math.isnan(df.loc[0, "knee"])
        assert df.loc[1, "knee"] == pytest.approx(120.0)

    def test_empty_frame_has_columns(self):
        df = points_to_frame([])
        assert df.empty
        assert {"t", "conf", "knee", "hip", "elbow"} <= set(df.columns)
