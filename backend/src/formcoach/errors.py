# backend/src/formcoach/errors.py
from __future__ import annotations


class FormCoachError(Exception):
    """Base error. `user_message` is safe to show as-is."""

    user_message = "Something went wrong during analysis."

    def __init__(self, message: str = "", user_message: str | None = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class InitializationError(FormCoachError):
    """Pose landmark model failed to load or timed out."""

    user_message = "Pose detection unavailable. Playback and AI analysis still work without the skeleton overlay."


class ExtractionError(FormCoachError):
    """Video could not be read: no usable duration, or a seek stalled."""

    user_message = "Could not read video. Try again, or upload a shorter clip in another format."


class CoachError(FormCoachError):
    user_message = "The coach could not review this clip. Please retry."
