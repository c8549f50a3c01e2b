# backend/src/formcoach/llm_coach.py
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from . import config
from .disciplines import coach_prompt, discipline_label
from .errors import CoachError
from .summary import NO_POSE_DATA

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Public API:
#   from formcoach.llm_coach import request_form_feedback
#
# The hosted model is opaque: N frame images + 1 text prompt in, 1 text block out.
# Without a key (or on any failure) we answer from the rule-based summary so the
# caller always gets coaching text.
# -----------------------------------------------------------------------------

MAX_FRAMES = 12
FALLBACK_TEXT = "Unable to generate analysis."

FORMATTING_RULES = """IMPORTANT FORMATTING RULES:
- Write in a natural, conversational tone like you're talking directly to the athlete
- Do NOT use markdown headers (###), bullet points, or numbered lists
- Use short paragraphs separated by line breaks
- Include 1-2 emojis naturally in the text
- Keep it concise: 100-150 words max
- End with "Quick tips:" followed by 2-3 actionable suggestions in plain text
- Address the athlete as "you" throughout"""


def _gemini_available() -> bool:
    if not config.GEMINI_API_KEY:
        return False
    try:
        import google.genai  # type: ignore  # noqa: F401
        return True
    except ImportError:
        return False


def build_analysis_prompt(discipline: Optional[str], pose_summary: Optional[str] = None) -> str:
    prompt = f"{coach_prompt(discipline)}\n\n{FORMATTING_RULES}"
    if pose_summary and pose_summary != NO_POSE_DATA:
        prompt += (
            f"\n\nPOSE DETECTION DATA:\n{pose_summary}\n\n"
            "Use this numerical data to provide specific, measurable feedback. "
            "Reference exact timestamps and angle measurements in your analysis."
        )
    return prompt


def _clean_feedback(text: str) -> str:
    """Strip the markdown the prompt asked the model not to use."""
    lines = []
    for line in (text or "").splitlines():
        line = re.sub(r"^\s{0,3}#{1,6}\s*", "", line)
        line = re.sub(r"^\s*(?:[-*•]|\d+[.)])\s+", "", line)
        line = line.replace("**", "")
        lines.append(line.rstrip())
    out = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", out).strip()


def _fallback_feedback(discipline: Optional[str], pose_summary: Optional[str]) -> str:
    observations: List[str] = []
    if pose_summary:
        in_block = False
        for line in pose_summary.splitlines():
            if line.startswith("KEY OBSERVATIONS"):
                in_block = True
                continue
            if in_block:
                if not line.startswith("- "):
                    break
                observations.append(line[2:].strip())

    if not observations:
        return FALLBACK_TEXT

    body = ". ".join(o.rstrip(".") for o in observations)
    return f"Here's what stood out in your {discipline_label(discipline)} clip: {body}."


def _call_gemini(frames_jpeg: Sequence[bytes], prompt: str) -> str:
    import google.genai  # type: ignore
    from google.genai import types  # type: ignore

    client = google.genai.Client(api_key=config.GEMINI_API_KEY)
    contents: List[Any] = [prompt]
    contents += [types.Part.from_bytes(data=b, mime_type="image/jpeg") for b in frames_jpeg]

    resp = client.models.generate_content(model=config.GEMINI_MODEL, contents=contents)
    text = getattr(resp, "text", None) or ""
    if not text.strip():
        raise CoachError("Gemini returned an empty response")
    return _clean_feedback(text)


def request_form_feedback(
    frames_jpeg: Sequence[bytes],
    discipline: Optional[str] = "football",
    pose_summary: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Ask the hosted coach to review annotated frames.

    Returns {"analysis": str, "model_used": str, "frame_count": int}.
    """
    if not frames_jpeg:
        raise ValueError("No frames provided for analysis")
    frames = list(frames_jpeg)[:MAX_FRAMES]

    if not _gemini_available():
        return {
            "analysis": _fallback_feedback(discipline, pose_summary),
            "model_used": "fallback",
            "frame_count": len(frames),
        }

    prompt = build_analysis_prompt(discipline, pose_summary)
    try:
        text = _call_gemini(frames, prompt)
        model_used = config.GEMINI_MODEL
    except Exception:
        logger.warning("Gemini form feedback failed; using rule-based fallback", exc_info=True)
        text = _fallback_feedback(discipline, pose_summary)
        model_used = "fallback"

    return {"analysis": text, "model_used": model_used, "frame_count": len(frames)}
