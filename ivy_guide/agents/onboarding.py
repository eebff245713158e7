"""
Voice Onboarding Steps

Sequential profile collection by voice: one field per committed utterance in
the order name -> grade -> curriculum -> stream -> country, each step asking
the next question from a fixed template.
"""

from typing import Optional

from ivy_guide.models.profile import PROFILE_FIELDS, ProfileField, StudentProfile

QUESTION_TEMPLATES: dict[ProfileField, str] = {
    "name": "Hi, I'm Ivy, your career discovery guide. Before we begin, what's your name?",
    "grade": "Nice to meet you, {name}! Which grade are you in, or how old are you?",
    "curriculum": "Which curriculum are you following? For example CBSE, IB or IGCSE.",
    "stream": (
        "Have you picked a stream or subject focus yet, like Science, Commerce "
        "or Humanities? It's fine to say not yet."
    ),
    "country": "Last one: which country are you studying in?",
}

# Answers that leave the optional stream field empty
SKIP_ANSWERS = {"no", "none", "not yet", "skip", "n/a", "nope"}


def first_field() -> ProfileField:
    """Field asked first when voice onboarding starts."""
    return PROFILE_FIELDS[0]


def next_field(field: ProfileField) -> Optional[ProfileField]:
    """Field after ``field``, or None when onboarding is done."""
    index = PROFILE_FIELDS.index(field)
    if index + 1 >= len(PROFILE_FIELDS):
        return None
    return PROFILE_FIELDS[index + 1]


def question_for(field: ProfileField, profile: StudentProfile) -> str:
    """Render the onboarding question for ``field``."""
    return QUESTION_TEMPLATES[field].format(name=profile.name or "there")


def apply_answer(
    profile: StudentProfile, field: ProfileField, utterance: str
) -> StudentProfile:
    """
    Commit one onboarding answer to the profile.

    Args:
        profile: Profile collected so far
        field: Field being answered
        utterance: Committed user utterance

    Returns:
        New profile with ``field`` set
    """
    value: Optional[str] = utterance.strip().rstrip(".!")
    if field == "stream" and value is not None and value.lower() in SKIP_ANSWERS:
        value = None
    return profile.model_copy(update={field: value})
