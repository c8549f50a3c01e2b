# backend/src/formcoach/angles.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .config import VISIBILITY_THRESHOLD
from .pose import NUM_LANDMARKS, Landmark, Pose, PoseLandmark as L


@dataclass(frozen=True)
class JointAngles:
    """Degrees in [0, 180]. 0 means the angle could not be computed."""

    left_elbow: float = 0.0
    right_elbow: float = 0.0
    left_knee: float = 0.0
    right_knee: float = 0.0
    left_shoulder: float = 0.0
    right_shoulder: float = 0.0
    left_hip: float = 0.0
    right_hip: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


# (a, vertex, c) per named angle
ANGLE_TRIPLES: Dict[str, Tuple[int, int, int]] = {
    "left_elbow": (L.LEFT_SHOULDER, L.LEFT_ELBOW, L.LEFT_WRIST),
    "right_elbow": (L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST),
    "left_knee": (L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE),
    "right_knee": (L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE),
    "left_shoulder": (L.LEFT_ELBOW, L.LEFT_SHOULDER, L.LEFT_HIP),
    "right_shoulder": (L.RIGHT_ELBOW, L.RIGHT_SHOULDER, L.RIGHT_HIP),
    "left_hip": (L.LEFT_SHOULDER, L.LEFT_HIP, L.LEFT_KNEE),
    "right_hip": (L.RIGHT_SHOULDER, L.RIGHT_HIP, L.RIGHT_KNEE),
}


def _xyz(lm: Landmark) -> np.ndarray:
    return np.array([lm.x, lm.y, lm.z], dtype=float)


def angle_deg(a: Landmark, b: Landmark, c: Landmark) -> float:
    """Angle at vertex b between b->a and b->c, in 3D. Degenerate input gives 0."""
    v1 = _xyz(a) - _xyz(b)
    v2 = _xyz(c) - _xyz(b)
    n1 = float(np.linalg.norm(v1))
    n2 = float(np.linalg.norm(v2))
    if n1 == 0.0 or n2 == 0.0:
        return 0.0
    cos = float(np.dot(v1, v2) / (n1 * n2))
    cos = max(-1.0, min(1.0, cos))
    return float(np.degrees(np.arccos(cos)))


def compute_joint_angles(landmarks: Optional[Pose], min_vis: float = VISIBILITY_THRESHOLD) -> Optional[JointAngles]:
    if not landmarks or len(landmarks) < NUM_LANDMARKS:
        return None

    def visible(idx: int) -> bool:
        return landmarks[idx].visibility > min_vis

    values: Dict[str, float] = {}
    for name, (ia, ib, ic) in ANGLE_TRIPLES.items():
        if visible(ia) and visible(ib) and visible(ic):
            values[name] = angle_deg(landmarks[ia], landmarks[ib], landmarks[ic])
        else:
            values[name] = 0.0

    return JointAngles(**values)
