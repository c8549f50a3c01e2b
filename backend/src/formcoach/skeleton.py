# backend/src/formcoach/skeleton.py
"""
Skeleton overlay drawing.

Landmarks come in normalized [0, 1] image coordinates and are scaled by the
surface's *current* width/height on every call. Nothing is cached between
draws, so a resized surface is always drawn correctly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from .config import VISIBILITY_THRESHOLD
from .disciplines import key_joints
from .pose import POSE_CONNECTIONS, Pose

Point = Tuple[float, float]
BGR = Tuple[int, int, int]


class Surface(Protocol):
    width: int
    height: int

    def clear(self) -> None: ...

    def line(self, p0: Point, p1: Point, color: str, width: int) -> None: ...

    def circle(self, center: Point, radius: int, color: str) -> None: ...


def hex_to_bgr(color: str) -> BGR:
    c = color.strip().lstrip("#")
    if len(c) == 3:
        c = "".join(ch * 2 for ch in c)
    if len(c) != 6:
        raise ValueError(f"Unsupported color: {color!r}")
    r, g, b = int(c[0:2], 16), int(c[2:4], 16), int(c[4:6], 16)
    return (b, g, r)


class ImageSurface:
    """Draws onto a BGR numpy image in place."""

    def __init__(self, image: np.ndarray):
        self.image = image

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    def clear(self) -> None:
        self.image[...] = 0

    def line(self, p0: Point, p1: Point, color: str, width: int) -> None:
        cv2.line(
            self.image,
            (int(round(p0[0])), int(round(p0[1]))),
            (int(round(p1[0])), int(round(p1[1]))),
            hex_to_bgr(color),
            int(width),
            cv2.LINE_AA,
        )

    def circle(self, center: Point, radius: int, color: str) -> None:
        cv2.circle(
            self.image,
            (int(round(center[0])), int(round(center[1]))),
            int(radius),
            hex_to_bgr(color),
            -1,
            cv2.LINE_AA,
        )


@dataclass(frozen=True)
class SkeletonStyle:
    line_color: str = "#00ff00"
    line_width: int = 3
    point_color: str = "#00ff00"
    point_radius: int = 5
    min_visibility: float = VISIBILITY_THRESHOLD
    # live overlay replaces the previous frame; baking into a frame is additive
    clear: bool = True
    discipline: Optional[str] = None
    highlight_color: str = "#ffff00"
    highlight_radius: int = 12


def draw_skeleton(surface: Surface, landmarks: Optional[Pose], style: Optional[SkeletonStyle] = None) -> None:
    style = style or SkeletonStyle()
    if not landmarks:
        return

    highlight = key_joints(style.discipline)
    w, h = surface.width, surface.height
    n = len(landmarks)

    if style.clear:
        surface.clear()

    for a, b in POSE_CONNECTIONS:
        if a >= n or b >= n:
            continue
        start, end = landmarks[a], landmarks[b]
        if start.visibility > style.min_visibility and end.visibility > style.min_visibility:
            surface.line((start.x * w, start.y * h), (end.x * w, end.y * h), style.line_color, style.line_width)

    for idx, lm in enumerate(landmarks):
        if lm.visibility <= style.min_visibility:
            continue
        if idx in highlight:
            surface.circle((lm.x * w, lm.y * h), style.highlight_radius, style.highlight_color)
        else:
            surface.circle((lm.x * w, lm.y * h), style.point_radius, style.point_color)


def annotate_frame(image: np.ndarray, landmarks: Pose, discipline: Optional[str] = None) -> np.ndarray:
    """Copy of `image` with the skeleton drawn on top (for upload to the coach)."""
    out = image.copy()
    draw_skeleton(ImageSurface(out), landmarks, SkeletonStyle(clear=False, discipline=discipline))
    return out
