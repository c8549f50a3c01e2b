# backend/src/formcoach/disciplines.py
"""
Sport vocabulary shared by the renderer, the summarizer and the coach prompt.

Unknown discipline strings are never an error: they map to an empty key-joint
set and to the generic wording.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Optional

from .pose import PoseLandmark as L

DISCIPLINES = (
    "football",
    "basketball",
    "boxing",
    "mma",
    "taekwondo",
    "american-football",
)

KEY_JOINTS: Dict[str, FrozenSet[int]] = {
    # plant knee, hip rotation, foot positioning
    "football": frozenset({L.LEFT_KNEE, L.RIGHT_KNEE, L.LEFT_HIP, L.RIGHT_HIP, L.LEFT_ANKLE, L.RIGHT_ANKLE}),
    # shooting form, release point, shot power
    "basketball": frozenset({L.LEFT_ELBOW, L.RIGHT_ELBOW, L.LEFT_WRIST, L.RIGHT_WRIST, L.LEFT_SHOULDER, L.RIGHT_SHOULDER}),
    # guard, punch angles, power generation
    "boxing": frozenset({L.LEFT_SHOULDER, L.RIGHT_SHOULDER, L.LEFT_ELBOW, L.RIGHT_ELBOW, L.LEFT_HIP, L.RIGHT_HIP}),
    "mma": frozenset({L.LEFT_SHOULDER, L.RIGHT_SHOULDER, L.LEFT_HIP, L.RIGHT_HIP, L.LEFT_KNEE, L.RIGHT_KNEE}),
    # flexibility, kick height, kick extension
    "taekwondo": frozenset({L.LEFT_HIP, L.RIGHT_HIP, L.LEFT_KNEE, L.RIGHT_KNEE, L.LEFT_ANKLE, L.RIGHT_ANKLE}),
    # stance, athletic position
    "american-football": frozenset({L.LEFT_SHOULDER, L.RIGHT_SHOULDER, L.LEFT_KNEE, L.RIGHT_KNEE, L.LEFT_HIP, L.RIGHT_HIP}),
}

_LABELS = {
    "football": "football (soccer)",
    "basketball": "basketball",
    "boxing": "boxing",
    "mma": "MMA",
    "taekwondo": "Taekwondo",
    "american-football": "American football",
}

COACH_PROMPTS: Dict[str, str] = {
    "football": (
        "You are an elite football (soccer) coach giving direct feedback after watching training footage.\n"
        "Analyze the frames and give conversational coaching feedback covering body positioning, ball control, "
        "and movement quality. End with 2-3 specific tips to improve."
    ),
    "basketball": (
        "You are an elite basketball coach giving direct feedback after watching training footage.\n"
        "Analyze the frames and give conversational coaching feedback covering shooting form, footwork, "
        "and ball handling. End with 2-3 specific tips to improve."
    ),
    "boxing": (
        "You are an elite boxing coach giving direct feedback after watching training footage.\n"
        "Analyze the frames and give conversational coaching feedback covering stance & guard, punching technique, "
        "and head movement. End with 2-3 specific tips to improve."
    ),
    "mma": (
        "You are an elite MMA coach giving direct feedback after watching training footage.\n"
        "Analyze the frames and give conversational coaching feedback covering fighting stance, striking technique, "
        "and grappling readiness. End with 2-3 specific tips to improve."
    ),
    "taekwondo": (
        "You are an elite Taekwondo master giving direct feedback after watching training footage.\n"
        "Analyze the frames and give conversational coaching feedback covering kicking form, stance & balance, "
        "and flexibility. End with 2-3 specific tips to improve."
    ),
    "american-football": (
        "You are an elite American football coach giving direct feedback after watching training footage.\n"
        "Analyze the frames and give conversational coaching feedback covering athletic stance, footwork, "
        "and technique. End with 2-3 specific tips to improve."
    ),
}

DEFAULT_PROMPT = """You are an elite sports coach analyzing training footage. This could be solo training, training with equipment, or team training.

Analyze the technique, movement quality, form, and effort. Look for:
- Proper technique execution
- Body positioning and balance
- Movement patterns and quality
- Work rate and intensity
- Areas for improvement

Give conversational coaching feedback using proper sport terminology. End with 2-3 specific actionable tips to improve performance."""


def normalize_discipline(discipline: Optional[str]) -> str:
    return (discipline or "").strip().lower()


def key_joints(discipline: Optional[str]) -> FrozenSet[int]:
    return KEY_JOINTS.get(normalize_discipline(discipline), frozenset())


def discipline_label(discipline: Optional[str]) -> str:
    d = normalize_discipline(discipline)
    return _LABELS.get(d, d or "sport")


def coach_prompt(discipline: Optional[str]) -> str:
    return COACH_PROMPTS.get(normalize_discipline(discipline), DEFAULT_PROMPT)
