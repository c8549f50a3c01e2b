"""Tests for the skeleton overlay renderer."""

import numpy as np
import pytest

from conftest import make_pose
from formcoach.disciplines import KEY_JOINTS, key_joints
from formcoach.pose import Landmark, PoseLandmark as L
from formcoach.skeleton import ImageSurface, SkeletonStyle, annotate_frame, draw_skeleton, hex_to_bgr


class RecordingSurface:

    def __init__(self, width=200, height=100):
        self.width = width
        self.height = height
        self.cleared = 0
        self.lines = []
        self.circles = []

    def clear(self):
        self.cleared += 1

    def line(self, p0, p1, color, width):
        self.lines.append((p0, p1, color, width))

    def circle(self, center, radius, color):
        self.circles.append((center, radius, color))


FOOTBALL_JOINTS = [L.LEFT_KNEE, L.RIGHT_KNEE, L.LEFT_HIP, L.RIGHT_HIP, L.LEFT_ANKLE, L.RIGHT_ANKLE]


def _only_visible(indices):
    pose = make_pose(visibility=0.1)
    return [Landmark(lm.x, lm.y, lm.z, 0.9) if i in indices else lm for i, lm in enumerate(pose)]


class TestDrawSkeleton:

    def test_football_key_joints_only(self):
        surface = RecordingSurface()
        style = SkeletonStyle(discipline="football")
        draw_skeleton(surface, _only_visible(FOOTBALL_JOINTS), style)

        assert len(surface.circles) == 6
        assert all(r == style.highlight_radius and c == style.highlight_color for _, r, c in surface.circles)

        # hips bar, both thighs, both shins
        assert len(surface.lines) == 5
        visible_px = {(lm.x * 200, lm.y * 100) for i, lm in enumerate(_only_visible(FOOTBALL_JOINTS)) if i in FOOTBALL_JOINTS}
        for p0, p1, _, _ in surface.lines:
            assert p0 in visible_px and p1 in visible_px

    def test_non_key_joints_use_default_style(self, standing_pose):
        surface = RecordingSurface()
        style = SkeletonStyle(discipline="football")
        draw_skeleton(surface, standing_pose, style)

        assert len(surface.circles) == 33
        highlighted = [c for c in surface.circles if c[1] == style.highlight_radius]
        assert len(highlighted) == 6
        normal = [c for c in surface.circles if c[1] == style.point_radius]
        assert all(c[2] == style.point_color for c in normal)

    def test_unknown_discipline_highlights_nothing(self, standing_pose):
        surface = RecordingSurface()
        draw_skeleton(surface, standing_pose, SkeletonStyle(discipline="curling"))
        assert all(r == 5 for _, r, _ in surface.circles)

    def test_all_connections_drawn_when_visible(self, standing_pose):
        surface = RecordingSurface()
        draw_skeleton(surface, standing_pose)
        assert len(surface.lines) == 31

    def test_scales_with_current_surface_size(self):
        pose = _only_visible([L.NOSE])
        pose[L.NOSE] = Landmark(0.5, 0.25, 0.0, 0.9)

        surface = RecordingSurface(200, 100)
        draw_skeleton(surface, pose)
        assert surface.circles[0][0] == pytest.approx((100.0, 25.0))

        surface.width, surface.height = 640, 480
        surface.circles.clear()
        draw_skeleton(surface, pose)
        assert surface.circles[0][0] == pytest.approx((320.0, 120.0))

    def test_clear_flag(self, standing_pose):
        surface = RecordingSurface()
        draw_skeleton(surface, standing_pose, SkeletonStyle(clear=True))
        draw_skeleton(surface, standing_pose, SkeletonStyle(clear=False))
        assert surface.cleared == 1

    def test_empty_landmarks_draw_nothing(self):
        surface = RecordingSurface()
        draw_skeleton(surface, [])
        assert surface.cleared == 0
        assert surface.lines == [] and surface.circles == []


class TestImageSurface:

    def test_hex_to_bgr(self):
        assert hex_to_bgr("#ffff00") == (0, 255, 255)
        assert hex_to_bgr("#0f0") == (0, 255, 0)
        with pytest.raises(ValueError):
            hex_to_bgr("#12")

    def test_draws_on_image(self, standing_pose):
        img = np.zeros((100, 200, 3), dtype=np.uint8)
        draw_skeleton(ImageSurface(img), standing_pose, SkeletonStyle(discipline="football"))
        knee = standing_pose[L.LEFT_KNEE]
        px = img[int(knee.y * 100), int(knee.x * 200)]
        assert tuple(px) == (0, 255, 255)

    def test_clear_zeroes_image(self):
        img = np.full((10, 10, 3), 200, dtype=np.uint8)
        ImageSurface(img).clear()
        assert img.max() == 0

    def test_annotate_frame_leaves_source_untouched(self, standing_pose):
        img = np.full((48, 64, 3), 7, dtype=np.uint8)
        out = annotate_frame(img, standing_pose, "football")
        assert np.all(img == 7)
        assert out.shape == img.shape
        assert np.any(out != 7)


class TestKeyJoints:

    def test_known_disciplines_have_six_joints(self):
        for joints in KEY_JOINTS.values():
            assert len(joints) == 6

    def test_lookup_is_case_insensitive_and_safe(self):
        assert key_joints("Football") == KEY_JOINTS["football"]
        assert key_joints("unknown") == frozenset()
        assert key_joints(None) == frozenset()
