# backend/src/formcoach/form_rules.py
# Single-frame feedback for the live overlay (one frame's JointAngles in, short cues out).
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .angles import JointAngles
from .disciplines import normalize_discipline
from .processor import PoseDataPoint
from .summary import Band

ERROR = "error"
WARNING = "warning"
SUCCESS = "success"
INFO = "info"

FEEDBACK_ICONS = {ERROR: "🚫", WARNING: "⚠️", SUCCESS: "✅", INFO: "ℹ️"}

ValueFn = Callable[[JointAngles], Optional[float]]


@dataclass(frozen=True)
class FormFeedback:
    kind: str
    message: str
    metric: Optional[str] = None

    @property
    def icon(self) -> str:
        return FEEDBACK_ICONS.get(self.kind, "•")


@dataclass(frozen=True)
class Rule:
    kind: str
    band: Band
    metric_fmt: str = "{:.0f}°"


def _side(name: str) -> ValueFn:
    def value(a: JointAngles) -> Optional[float]:
        v = getattr(a, name)
        return v if v > 0 else None
    return value


def _avg(left: str, right: str) -> ValueFn:
    def value(a: JointAngles) -> Optional[float]:
        return (getattr(a, left) + getattr(a, right)) / 2
    return value


def _diff(left: str, right: str) -> ValueFn:
    def value(a: JointAngles) -> Optional[float]:
        l, r = getattr(a, left), getattr(a, right)
        if l <= 0 or r <= 0:
            return None
        return abs(l - r)
    return value


# Each group is (value, rules); the first matching rule in a group wins.
RuleGroup = Tuple[ValueFn, Tuple[Rule, ...]]

FOOTBALL_RULES: Tuple[RuleGroup, ...] = (
    # shooting stance: plant knee wants 120-150
    (_side("left_knee"), (
        Rule(WARNING, Band("Plant leg too bent - straighten for more power", lt=110)),
        Rule(SUCCESS, Band("Good plant leg form!", gt=150, lt=180)),
    )),
    # kicking hip: 60-90 for power shots
    (_side("right_hip"), (
        Rule(ERROR, Band("Not enough hip rotation - swing through!", lt=50)),
        Rule(SUCCESS, Band("Perfect hip rotation for power!", ge=60, le=100)),
    )),
    # dribbling: both knees bent for a low centre of gravity
    (_avg("left_knee", "right_knee"), (
        Rule(WARNING, Band("Lower your center of gravity - bend knees more", gt=150)),
        Rule(SUCCESS, Band("Good dribbling stance!", ge=110, le=140)),
    )),
    # sprint: high knee drive
    (_side("left_hip"), (
        Rule(SUCCESS, Band("Great knee drive!", lt=80)),
    )),
    # sprint: arms bent ~90
    (_avg("left_elbow", "right_elbow"), (
        Rule(SUCCESS, Band("Perfect arm swing form!", ge=80, le=100)),
        Rule(WARNING, Band("Bend arms more for efficient running", gt=120)),
    )),
    (_diff("left_knee", "right_knee"), (
        Rule(INFO, Band("Uneven stance - check your balance", gt=30), metric_fmt="Δ {:.0f}°"),
    )),
)

RULES: Dict[str, Tuple[RuleGroup, ...]] = {
    "football": FOOTBALL_RULES,
}


def analyze_form(angles: Optional[JointAngles], discipline: Optional[str] = "football") -> List[FormFeedback]:
    if angles is None:
        return []

    feedback: List[FormFeedback] = []
    for value_fn, rules in RULES.get(normalize_discipline(discipline), ()):
        value = value_fn(angles)
        if value is None:
            continue
        for rule in rules:
            if rule.band.matches(value):
                feedback.append(FormFeedback(rule.kind, rule.band.message, rule.metric_fmt.format(value)))
                break
    return feedback


def cues_by_frame(points: Sequence[PoseDataPoint], discipline: Optional[str] = "football") -> Dict[int, List[FormFeedback]]:
    """Live cues for every analyzed frame, keyed by frame number."""
    return {p.frame_number: analyze_form(p.angles, discipline) for p in points}
