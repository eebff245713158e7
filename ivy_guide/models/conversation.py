"""
Conversation Data Models

Messages, insights and the request/response contract of the dialogue turn
service. Field aliases follow the camelCase wire names the service exchanges
(conversationHistory, nextPrompt, updatedInsights, careerClusters, isConcluding).
"""

from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

from ivy_guide.models.profile import StudentProfile

Role = Literal["user", "assistant"]


class Message(BaseModel):
    """One transcript entry. Assistant content may be a live partial reveal."""

    role: Role
    content: str


class Insights(BaseModel):
    """Four insight sets accumulated over the conversation.

    Every field is always present. Lists keep first-seen order for display;
    uniqueness is maintained by ivy_guide.utils.insight_store.merge_insights.
    """

    model_config = ConfigDict(populate_by_name=True)

    interests: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)
    career_clusters: list[str] = Field(default_factory=list, alias="careerClusters")

    def total(self) -> int:
        """Number of insight entries across all four sets."""
        return (
            len(self.interests)
            + len(self.strengths)
            + len(self.constraints)
            + len(self.career_clusters)
        )


class TurnRequest(BaseModel):
    """Input for one dialogue turn."""

    model_config = ConfigDict(populate_by_name=True)

    profile: StudentProfile
    conversation_history: list[Message] = Field(
        default_factory=list, alias="conversationHistory"
    )
    insights: Insights = Field(default_factory=Insights)


class TurnResponse(BaseModel):
    """Output of one dialogue turn.

    Conclusion is signalled only by ``is_concluding``.
    """

    model_config = ConfigDict(populate_by_name=True)

    next_prompt: str = Field(alias="nextPrompt")
    updated_insights: Insights = Field(
        default_factory=Insights, alias="updatedInsights"
    )
    is_concluding: bool = Field(default=False, alias="isConcluding")
