"""
AI Data Contracts

Request and response shapes exchanged with the AI agents.
The agents never see the store itself, only copies of its collections.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChatMessage(BaseModel):
    """One turn of the assistant conversation."""

    model_config = ConfigDict(frozen=True)

    sender: Literal["user", "ai"]
    text: str


class DreamStep(BaseModel):
    """A single practical step towards a dream."""

    title: str
    description: str


class DreamPlan(BaseModel):
    """
    High-level financial plan for a user's dream.

    Parsed from the model's structured JSON output, which uses camelCase.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    summary: str
    estimated_cost: str = Field(
        ...,
        description="Estimated cost range in INR, as free text"
    )
    timeline: str
    steps: list[DreamStep] = Field(default_factory=list)


class FinancialTip(BaseModel):
    """A short, personalised spending tip."""

    tip: str


class DreamPlanResult(BaseModel):
    """A dream plan plus its inspirational image."""

    plan: DreamPlan
    image_url: str = Field(
        ...,
        description="data:image/jpeg;base64 URL of the generated image"
    )


class VideoStory(BaseModel):
    """Result of a video generation request."""

    video_uri: str


class ChatReply(BaseModel):
    """The assistant's reply to a chat turn."""

    text: str
