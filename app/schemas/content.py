from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.schemas.quiz import Analysis, utc_now


class VideoRecord(BaseModel):
    title: str
    url: str
    description: str = ""
    duration: str = ""
    tag: str = ""


class BookRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = Field(min_length=1)
    author: str = ""
    description: str = ""
    isbn: str = ""
    url: str = ""
    type: str = "educational_book"


class GameRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "title"))
    description: str = ""
    category: str = ""
    duration: str = ""
    difficulty: str = ""
    type: str = "educational_game"


class ResourceRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = Field(min_length=1, validation_alias=AliasChoices("title", "name"))
    resource_type: str = Field(default="website", validation_alias=AliasChoices("resource_type", "resourceType"))
    description: str = ""
    skill_level: str = Field(default="", validation_alias=AliasChoices("skill_level", "skillLevel"))
    estimated_time_to_complete: str = Field(
        default="",
        validation_alias=AliasChoices("estimated_time_to_complete", "estimatedTimeToComplete"),
    )
    url: str = ""
    type: str = "learning_resource"


class VideoQuery(BaseModel):
    query: str
    age_range: str | None = None
    subject: str = "general education"
    max_results: int = Field(default=5, ge=1, le=25)


class ContentRecommendations(BaseModel):
    videos: list[VideoRecord] = Field(default_factory=list)
    books: list[BookRecord] = Field(default_factory=list)
    games: list[GameRecord] = Field(default_factory=list)
    resources: list[ResourceRecord] = Field(default_factory=list)


class EducationalContentBundle(ContentRecommendations):
    id: str
    user_id: str | None = None
    session_id: str | None = None
    analysis: Analysis | None = None
    created_at: datetime = Field(default_factory=utc_now)


class LearningResources(ContentRecommendations):
    user_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    analysis: Analysis | None = None


class GuestRecommendations(BaseModel):
    session_id: str
    quiz_id: str
    analysis: Analysis
    recommendations: ContentRecommendations
    generated_at: datetime = Field(default_factory=utc_now)


class SubmissionResult(BaseModel):
    analysis: Analysis
    educational_content: ContentRecommendations
    user_details: dict[str, Any]
    quiz_details: dict[str, Any]
    message: str = "Quiz submitted and analyzed successfully"
