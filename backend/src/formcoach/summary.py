# backend/src/formcoach/summary.py
"""
Rule-based technique summary handed to the hosted coach alongside the frames.

Each discipline is a `Vocabulary`: ordered bands over the mean knee/hip/elbow
angle plus single-frame notes. New sports are added as data here, not as new
branches.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .disciplines import discipline_label, normalize_discipline
from .processor import PoseDataPoint, points_to_frame, pose_statistics

NO_POSE_DATA = "No pose data available."


@dataclass(frozen=True)
class Band:
    """Matches a value when every given bound holds. No bounds: always matches."""

    message: str
    lt: Optional[float] = None
    le: Optional[float] = None
    gt: Optional[float] = None
    ge: Optional[float] = None

    def matches(self, value: float) -> bool:
        if self.lt is not None and not value < self.lt:
            return False
        if self.le is not None and not value <= self.le:
            return False
        if self.gt is not None and not value > self.gt:
            return False
        if self.ge is not None and not value >= self.ge:
            return False
        return True


@dataclass(frozen=True)
class Vocabulary:
    knee: Tuple[Band, ...]
    hip: Tuple[Band, ...]
    elbow: Tuple[Band, ...]
    # (joint column, band) checked in order against each single frame; first match wins
    frame_notes: Tuple[Tuple[str, Band], ...]


FOOTBALL = Vocabulary(
    knee=(
        Band("Plant leg too bent - limits power transfer", lt=100),
        Band("Plant leg locked straight - good stability", gt=150),
        Band("Plant leg has optimal bend"),
    ),
    hip=(
        Band("Minimal hip rotation - 'pushing' the ball instead of 'striking'", lt=50),
        Band("Strong hip rotation - generating good power", ge=60, le=90),
        Band("Moderate hip rotation"),
    ),
    elbow=(
        Band("Arms too straight - check your balance", gt=140),
        Band("Good arm positioning for balance", ge=80, le=110),
    ),
    frame_notes=(
        ("knee", Band("plant leg too bent", lt=100)),
        ("knee", Band("plant leg locked straight", gt=150)),
        ("hip", Band("not enough hip drive", lt=50)),
        ("hip", Band("excellent follow-through", gt=80)),
    ),
)

BASKETBALL = Vocabulary(
    knee=(
        Band("Deep leg load - make sure you rise through the shot", lt=100),
        Band("Legs too straight - load your knees for shot power", gt=160),
        Band("Good knee bend for a balanced shooting base"),
    ),
    hip=(
        Band("Bending at the waist - stay tall through the release", lt=130),
        Band("Upright torso through the shot"),
    ),
    elbow=(
        Band("Shooting elbow near 90 degrees - clean set point", ge=80, le=100),
        Band("Arms extending fully - strong follow-through", gt=150),
        Band("Elbow off the 90 degree set point - tuck it under the ball"),
    ),
    frame_notes=(
        ("knee", Band("loading the legs", lt=110)),
        ("elbow", Band("set point", ge=80, le=100)),
        ("elbow", Band("release and follow-through", gt=150)),
    ),
)

BOXING = Vocabulary(
    knee=(
        Band("Very low stance - may slow your footwork", lt=110),
        Band("Legs locked - bend your knees to stay mobile", gt=165),
        Band("Athletic knee bend in your stance"),
    ),
    hip=(
        Band("Leaning forward from the hips - stay balanced over your feet", lt=140),
        Band("Hips stacked under the shoulders"),
    ),
    elbow=(
        Band("Tight guard - elbows tucked", lt=60),
        Band("Punches reaching full extension", gt=150),
        Band("Hands between guard and extension - return to guard faster"),
    ),
    frame_notes=(
        ("elbow", Band("guard up", lt=60)),
        ("elbow", Band("punch extended", gt=150)),
        ("knee", Band("legs locked", gt=165)),
    ),
)

MMA = Vocabulary(
    knee=(
        Band("Low level-change stance - ready to shoot", lt=120),
        Band("Standing tall - easy target for takedowns", gt=165),
        Band("Balanced fighting stance"),
    ),
    hip=(
        Band("Hips loaded - solid base", lt=140),
        Band("Hips high - lower your base"),
    ),
    elbow=(
        Band("Hands tight in guard", lt=70),
        Band("Strikes at full extension", gt=150),
        Band("Hands between guard and strike"),
    ),
    frame_notes=(
        ("knee", Band("level change", lt=120)),
        ("knee", Band("standing tall", gt=165)),
        ("elbow", Band("strike extended", gt=150)),
    ),
)

TAEKWONDO = Vocabulary(
    knee=(
        Band("Full leg extension on kicks", gt=160),
        Band("Tight chamber - snap the kick out fully", lt=90),
        Band("Partial extension - finish the kick"),
    ),
    hip=(
        Band("High chamber - excellent kick height", lt=90),
        Band("Low kick height - work on hip flexibility", gt=150),
        Band("Mid-level kicks"),
    ),
    elbow=(
        Band("Hands dropping away from guard", gt=150),
        Band("Guard kept during kicks"),
    ),
    frame_notes=(
        ("hip", Band("high kick", lt=90)),
        ("knee", Band("full extension", gt=160)),
        ("elbow", Band("guard down", gt=150)),
    ),
)

AMERICAN_FOOTBALL = Vocabulary(
    knee=(
        Band("Low athletic stance - good leverage", lt=100),
        Band("Standing too tall - sink your hips", gt=160),
        Band("Solid athletic stance"),
    ),
    hip=(
        Band("Good hip hinge - flat back position", lt=90),
        Band("Hips too high - you lose leverage", gt=150),
        Band("Moderate hip hinge"),
    ),
    elbow=(
        Band("Arms extended - strong hand punch", gt=150),
    ),
    frame_notes=(
        ("knee", Band("low and loaded", lt=100)),
        ("knee", Band("too tall", gt=160)),
        ("hip", Band("good hinge", lt=90)),
    ),
)

GENERIC = Vocabulary(
    knee=(
        Band("Deep knee bend", lt=90),
        Band("Legs nearly straight - little knee flexion", gt=160),
        Band("Moderate knee flexion"),
    ),
    hip=(
        Band("Strong hip flexion", lt=70),
        Band("Upright hips - little hip hinge", gt=160),
        Band("Moderate hip hinge"),
    ),
    elbow=(
        Band("Arms tightly bent", lt=60),
        Band("Arms mostly extended", gt=150),
        Band("Arms moderately bent"),
    ),
    frame_notes=(
        ("knee", Band("deep knee bend", lt=90)),
        ("knee", Band("legs straight", gt=160)),
        ("hip", Band("deep hip hinge", lt=70)),
    ),
)

VOCABULARIES: Dict[str, Vocabulary] = {
    "football": FOOTBALL,
    "basketball": BASKETBALL,
    "boxing": BOXING,
    "mma": MMA,
    "taekwondo": TAEKWONDO,
    "american-football": AMERICAN_FOOTBALL,
}


def vocabulary_for(discipline: Optional[str]) -> Vocabulary:
    return VOCABULARIES.get(normalize_discipline(discipline), GENERIC)


def _first_match(bands: Sequence[Band], value: float) -> Optional[str]:
    for band in bands:
        if band.matches(value):
            return band.message
    return None


def key_observations(points: Sequence[PoseDataPoint], discipline: Optional[str]) -> List[str]:
    vocab = vocabulary_for(discipline)
    stats = pose_statistics(points)
    out: List[str] = []
    for joint, mean, bands in (
        ("knee", stats.avg_knee_angle, vocab.knee),
        ("hip", stats.avg_hip_angle, vocab.hip),
        ("elbow", stats.avg_elbow_angle, vocab.elbow),
    ):
        if mean is None:
            out.append(f"{joint.capitalize()} not visible in enough frames")
            continue
        msg = _first_match(bands, mean)
        if msg:
            out.append(msg)
    return out


def _whole_deg(v: float) -> Optional[int]:
    # half-up, so 99.5 prints and compares as 100
    return None if math.isnan(v) else int(math.floor(v + 0.5))


def _fmt_deg(v: Optional[int]) -> str:
    return "n/a" if v is None else f"{v}°"


def frame_notes(points: Sequence[PoseDataPoint], discipline: Optional[str]) -> List[str]:
    vocab = vocabulary_for(discipline)
    df = points_to_frame(points)
    lines: List[str] = []
    for row in df.itertuples(index=False):
        # one note per frame: the first matching band, checked on the printed value
        values = {joint: _whole_deg(float(getattr(row, joint))) for joint in ("knee", "hip", "elbow")}
        note = next(
            (band.message for joint, band in vocab.frame_notes
             if values[joint] is not None and band.matches(values[joint])),
            "technique check",
        )
        lines.append(f"{row.t:.1f}s (knee {_fmt_deg(values['knee'])}, hip {_fmt_deg(values['hip'])}): {note}")
    return lines


def summarize_technique(points: Sequence[PoseDataPoint], discipline: Optional[str] = "football") -> str:
    if not points:
        return NO_POSE_DATA

    parts = [f"TECHNIQUE ANALYSIS ({len(points)} frames analyzed):", "", "KEY OBSERVATIONS:"]
    parts += [f"- {s}" for s in key_observations(points, discipline)]
    parts += ["", "FRAME-BY-FRAME BREAKDOWN:"]
    parts += frame_notes(points, discipline)
    parts += [
        "",
        "USE THIS DATA: Reference specific timestamps and techniques in your feedback. "
        f"Speak like a coach using {discipline_label(discipline)} terminology, not medical/technical terms.",
    ]
    return "\n".join(parts)
