"""
Student Profile Data Models
"""

from typing import Literal, Optional
from pydantic import BaseModel

ProfileField = Literal["name", "grade", "curriculum", "stream", "country"]

# Order in which voice onboarding collects fields
PROFILE_FIELDS: tuple[ProfileField, ...] = (
    "name",
    "grade",
    "curriculum",
    "stream",
    "country",
)


class StudentProfile(BaseModel):
    """Basic context about the student, collected before the dialogue starts."""

    name: str = ""
    grade: str = ""
    curriculum: str = ""
    stream: Optional[str] = None
    country: str = ""

    def is_empty(self) -> bool:
        """True when no field has been filled in yet."""
        return not any(
            [self.name, self.grade, self.curriculum, self.stream, self.country]
        )
