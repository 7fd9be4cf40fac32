from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.schemas.quiz import utc_now


class TraitRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    emoji: str
    trait: str
    description: str = ""


class CareerRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    emoji: str
    career: str
    match_percentage: int = Field(
        default=75,
        ge=0,
        le=100,
        validation_alias=AliasChoices("match_percentage", "matchPercentage"),
    )


class CareerRecommendations(BaseModel):
    traits: list[TraitRecord]
    careers: list[CareerRecord]
    quiz_id: str
    completed_at: datetime = Field(default_factory=utc_now)
    message: str | None = None
    fallback: bool = False


class RecommendationsRequest(BaseModel):
    user_id: str = Field(min_length=1)
    child_id: str | None = None
    quiz_id: str | None = None


class GuestRecommendationsRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)
    quiz_id: str = Field(min_length=1)
