from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


AgeRange = Literal["6-8", "9-12", "13-15", "16-18"]


class Question(BaseModel):
    text: str
    answers: list[str] = Field(default_factory=list)
    # career area -> points per answer option
    scoring: dict[str, list[float]] | None = None


class AiNarrative(BaseModel):
    explanation: str = ""
    skills: list[str] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)
    encouragement: str = ""


class Analysis(BaseModel):
    model_config = ConfigDict(extra="allow")

    top_career_areas: list[str | dict[str, Any]] = Field(default_factory=list)
    scores: dict[str, float] = Field(default_factory=dict)
    ai_analysis: AiNarrative = Field(default_factory=AiNarrative)
    age_range: str | None = None
    analysis_date: datetime = Field(default_factory=utc_now)
    fallback: bool = False
    fallback_message: str | None = None
    personality_traits: list[str | dict[str, Any]] = Field(default_factory=list)

    def career_area_names(self, limit: int | None = None) -> list[str]:
        names: list[str] = []
        for entry in self.top_career_areas:
            if isinstance(entry, dict):
                name = str(entry.get("career") or "").strip()
            else:
                name = str(entry).strip()
            if name:
                names.append(name)
        return names[:limit] if limit is not None else names


class Quiz(BaseModel):
    id: str
    user_id: str | None = None
    session_id: str | None = None
    age_range: str
    questions: list[Question] = Field(default_factory=list)
    answers: list[int] = Field(default_factory=list)
    career_areas: list[str] = Field(default_factory=list)
    submitted: bool = False
    completed: bool = False
    submitted_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    # Structured analysis, or free text written by older releases.
    analysis: Analysis | str | None = None

    @property
    def has_answers(self) -> bool:
        return len(self.answers) > 0

    @property
    def is_finished(self) -> bool:
        return self.submitted or self.completed


class AnswerItem(BaseModel):
    question_index: int
    phase_index: int | None = None
    answer: int | str


class CreateQuizRequest(BaseModel):
    age_range: AgeRange
    user_id: str | None = None


class GuestQuizRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)
    age_range: AgeRange


class SubmitAnswersRequest(BaseModel):
    quiz_id: str = Field(min_length=1)
    # Plain answer indices or AnswerItem objects.
    answers: list[Any] = Field(default_factory=list)
    user_id: str | None = None
    session_id: str | None = None


class GuestSubmitRequest(BaseModel):
    quiz_id: str = Field(min_length=1)
    session_id: str = Field(min_length=1, max_length=200)
    answers: list[Any] = Field(default_factory=list)


class QuizQuestionOut(BaseModel):
    id: str
    text: str
    answers: list[str]


class QuizBody(BaseModel):
    questions: list[QuizQuestionOut]


class CreateQuizResponse(BaseModel):
    quiz_id: str
    session_id: str | None = None
    quiz: QuizBody


class QuizDetails(BaseModel):
    id: str
    questions: int
    submitted_at: datetime | None = None
    age_range: str
    created_at: datetime


class QuizAnalysisView(BaseModel):
    analysis: Analysis | str
    quiz_id: str
    completed: bool
    updated_at: datetime | None = None
