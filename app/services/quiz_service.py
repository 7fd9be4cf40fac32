from __future__ import annotations

import logging
import re
import secrets
from functools import lru_cache
from typing import Any, Sequence

from pydantic import ValidationError

from app.ai.factory import get_text_generator
from app.core.config import settings
from app.core.document_store import ContentStore, QuizStore, SqliteDatabase
from app.core.errors import MainServiceError, QuizInputError, QuizNotFoundError
from app.integrations.main_service import MainServiceClient
from app.integrations.youtube import YouTubeVideoSearch
from app.quiz import QuestionBank, get_default_question_bank
from app.schemas.content import (
    EducationalContentBundle,
    GuestRecommendations,
    LearningResources,
    SubmissionResult,
)
from app.schemas.quiz import AiNarrative, Analysis, AnswerItem, QuizAnalysisView, QuizDetails, Quiz, utc_now
from app.schemas.recommendations import CareerRecommendations, CareerRecord, TraitRecord
from app.services.analysis_service import AnalysisService, age_range_for_age, fallback_analysis
from app.services.content_service import ContentRecommendationService
from app.services.quiz_resolver import QuizResolver
from app.services.recommendation_extractor import RecommendationExtractor, analysis_source

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*([-+]?\d+)")

FALLBACK_RECOMMENDATIONS_MESSAGE = "These are general recommendations. Complete a career quiz for personalized results."

NO_QUIZ_TRAITS: tuple[dict[str, str], ...] = (
    {"emoji": "🔍", "trait": "curious", "description": "Enjoys exploring and learning new things"},
    {"emoji": "🎨", "trait": "creative", "description": "Has a good imagination"},
    {"emoji": "👥", "trait": "social", "description": "Likes working with others"},
)
NO_QUIZ_CAREERS: tuple[dict[str, Any], ...] = (
    {"emoji": "🎨", "career": "Artist", "match_percentage": 85},
    {"emoji": "🔬", "career": "Scientist", "match_percentage": 82},
    {"emoji": "👩‍🏫", "career": "Teacher", "match_percentage": 80},
    {"emoji": "💻", "career": "Programmer", "match_percentage": 78},
    {"emoji": "✍️", "career": "Writer", "match_percentage": 75},
)
DEFAULT_TRAITS: tuple[dict[str, str], ...] = (
    {"emoji": "✨", "trait": "adaptable", "description": "Can adjust to new situations"},
    {"emoji": "🔍", "trait": "curious", "description": "Enjoys exploring and learning new things"},
    {"emoji": "🧠", "trait": "analytical", "description": "Good at solving problems"},
)
DEFAULT_CAREERS: tuple[dict[str, Any], ...] = (
    {"emoji": "🎨", "career": "Designer", "match_percentage": 85},
    {"emoji": "💻", "career": "Programmer", "match_percentage": 82},
    {"emoji": "👩‍🏫", "career": "Teacher", "match_percentage": 80},
)


def new_quiz_id() -> str:
    return secrets.token_hex(12)


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else 0
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        return int(match.group(1)) if match else 0
    return 0


def normalize_answers(raw: Sequence[Any]) -> list[int]:
    """Turn submitted answers into option indices; unreadable entries become 0."""
    answers: list[int] = []
    for entry in raw or []:
        if isinstance(entry, dict):
            try:
                item = AnswerItem.model_validate(entry)
            except ValidationError:
                answers.append(0)
                continue
            answers.append(_parse_int(item.answer))
        elif isinstance(entry, AnswerItem):
            answers.append(_parse_int(entry.answer))
        elif isinstance(entry, str):
            answers.append(0)
        else:
            answers.append(_parse_int(entry))
    return answers


def _records(model: type, entries: Sequence[dict[str, Any]]) -> list[Any]:
    return [model.model_validate(entry) for entry in entries]


def _safe_user_details(user: dict[str, Any] | None, user_id: str | None, session_id: str | None) -> dict[str, Any]:
    if user:
        return {
            "id": user.get("_id") or user.get("id") or user_id,
            "first_name": user.get("firstName"),
            "last_name": user.get("lastName"),
            "age": user.get("age"),
            "role": user.get("role"),
        }
    return {"id": user_id or session_id, "type": "guest" if session_id else "authenticated"}


class QuizService:
    def __init__(
        self,
        *,
        quiz_store: QuizStore,
        content_store: ContentStore,
        question_bank: QuestionBank,
        analysis: AnalysisService,
        content: ContentRecommendationService,
        extractor: RecommendationExtractor,
        main_service: MainServiceClient,
        resolver: QuizResolver | None = None,
    ) -> None:
        self._quizzes = quiz_store
        self._contents = content_store
        self._bank = question_bank
        self._analysis = analysis
        self._content = content
        self._extractor = extractor
        self._main = main_service
        self._resolver = resolver or QuizResolver(quiz_store)

    @property
    def main_service(self) -> MainServiceClient:
        return self._main

    @property
    def content(self) -> ContentRecommendationService:
        return self._content

    async def create_quiz(
        self,
        age_range: str,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
        token: str | None = None,
    ) -> Quiz:
        if not user_id and not session_id:
            raise QuizInputError("User ID or session ID is required for quiz generation")
        profile = self._bank.tables.profile(age_range)

        if user_id and token:
            user = await self._main.get_user(user_id, token)
            logger.info("quiz_owner_verified user_id=%s role=%s", user_id, user.get("role") or "student")

        quiz = Quiz(
            id=new_quiz_id(),
            user_id=user_id,
            session_id=session_id,
            age_range=profile.age_range,
            questions=self._bank.questions(profile.age_range),
            career_areas=list(profile.career_areas),
        )
        self._quizzes.save(quiz)
        logger.info(
            "quiz_created quiz_id=%s age_range=%s owner=%s",
            quiz.id,
            quiz.age_range,
            "user" if user_id else "guest",
        )
        return quiz

    async def submit_answers(
        self,
        quiz_id: str,
        answers: Sequence[Any],
        *,
        user_id: str | None = None,
        session_id: str | None = None,
        token: str | None = None,
    ) -> SubmissionResult:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(f"Quiz with ID {quiz_id} not found")
        if session_id and quiz.session_id and quiz.session_id != session_id:
            logger.warning("guest_quiz_session_mismatch quiz_id=%s", quiz_id)
            raise QuizNotFoundError(f"Quiz with ID {quiz_id} not found")
        if quiz.user_id and not user_id:
            logger.warning("guest_submit_on_user_quiz quiz_id=%s", quiz_id)
            raise QuizNotFoundError(f"Quiz with ID {quiz_id} not found")

        user: dict[str, Any] | None = None
        if token and user_id:
            try:
                user = await self._main.get_user(user_id, token)
            except MainServiceError as exc:
                logger.warning("submit_user_lookup_failed user_id=%s: %s", user_id, exc)

        processed = normalize_answers(answers)
        submitted = quiz.model_copy(
            update={
                "answers": processed,
                "submitted": True,
                "completed": True,
                "submitted_at": utc_now(),
            }
        )
        analysis = await self._analysis.analyze(submitted)
        submitted = submitted.model_copy(update={"analysis": analysis})
        self._quizzes.save(submitted)
        logger.info("quiz_submitted quiz_id=%s answers=%s", submitted.id, len(processed))

        if token and user_id:
            await self._main.post_quiz_completion_award(user_id, submitted.id, token)

        content = await self._content.build_bundle(analysis)
        details = QuizDetails(
            id=submitted.id,
            questions=len(submitted.questions),
            submitted_at=submitted.submitted_at,
            age_range=submitted.age_range,
            created_at=submitted.created_at,
        )
        return SubmissionResult(
            analysis=analysis,
            educational_content=content,
            user_details=_safe_user_details(user, user_id, session_id),
            quiz_details=details.model_dump(mode="json"),
        )

    async def _ensure_analysis(self, quiz: Quiz | None) -> Quiz | None:
        """Analyse a finished quiz that has answers but no stored analysis."""
        if quiz is None or quiz.analysis is not None or not quiz.has_answers or not quiz.is_finished:
            return quiz
        try:
            analysis = await self._analysis.analyze(quiz)
        except QuizInputError as exc:
            logger.error("quiz_late_analysis_failed quiz_id=%s: %s", quiz.id, exc)
            return quiz
        analysed = quiz.model_copy(update={"analysis": analysis})
        self._quizzes.save(analysed)
        logger.info("quiz_late_analysis_saved quiz_id=%s", quiz.id)
        return analysed

    @staticmethod
    def _usable(quiz: Quiz | None) -> bool:
        return quiz is not None and quiz.is_finished and quiz.analysis is not None

    def _structured(self, quiz: Quiz) -> Analysis:
        """Content generation needs a structured analysis; adapt legacy text."""
        if isinstance(quiz.analysis, Analysis):
            return quiz.analysis
        text = str(quiz.analysis or "")
        careers = [record.career for record in self._extractor.careers(text)]
        return Analysis(
            top_career_areas=careers[:3] or list(quiz.career_areas[:3]),
            age_range=quiz.age_range,
            ai_analysis=AiNarrative(explanation=text[:1000]),
        )

    async def generate_educational_content(
        self,
        user_id: str,
        quiz_id: str | None = None,
        token: str | None = None,
    ) -> EducationalContentBundle:
        user: dict[str, Any] | None = None
        if token:
            try:
                user = await self._main.get_user(user_id, token)
            except MainServiceError as exc:
                logger.warning("content_user_lookup_failed user_id=%s: %s", user_id, exc)
        quiz = await self._ensure_analysis(self._resolver.resolve(user_id, quiz_id))

        if self._usable(quiz):
            analysis = self._structured(quiz)
        else:
            logger.warning("content_without_quiz user_id=%s quiz_id=%s", user_id, quiz_id)
            age_range = age_range_for_age(user.get("age")) if user and user.get("age") else None
            analysis = fallback_analysis(age_range, (user or {}).get("firstName"))

        content = await self._content.build_bundle(analysis)
        bundle = EducationalContentBundle(
            id=new_quiz_id(),
            user_id=user_id,
            analysis=analysis,
            videos=content.videos,
            books=content.books,
            games=content.games,
            resources=content.resources,
        )
        self._contents.save(bundle)
        return bundle

    async def career_recommendations(
        self,
        user_id: str,
        quiz_id: str | None = None,
        token: str | None = None,
    ) -> CareerRecommendations:
        quiz = await self._ensure_analysis(self._resolver.resolve(user_id, quiz_id))

        if not self._usable(quiz):
            logger.warning("career_recommendations_without_quiz user_id=%s quiz_id=%s", user_id, quiz_id)
            return CareerRecommendations(
                traits=_records(TraitRecord, NO_QUIZ_TRAITS),
                careers=_records(CareerRecord, NO_QUIZ_CAREERS),
                quiz_id="fallback",
                message=FALLBACK_RECOMMENDATIONS_MESSAGE,
                fallback=True,
            )

        source = analysis_source(quiz.analysis)
        traits = self._extractor.traits(source)
        careers = self._extractor.careers(source)
        logger.info("career_recommendations_extracted quiz_id=%s traits=%s careers=%s", quiz.id, len(traits), len(careers))
        return CareerRecommendations(
            traits=traits or _records(TraitRecord, DEFAULT_TRAITS),
            careers=careers or _records(CareerRecord, DEFAULT_CAREERS),
            quiz_id=quiz.id,
            completed_at=quiz.submitted_at or utc_now(),
        )

    def quiz_analysis(self, user_id: str, quiz_id: str | None = None) -> QuizAnalysisView:
        quiz = self._resolver.resolve(user_id, quiz_id)
        if quiz is None:
            raise QuizNotFoundError("No quiz found")
        return QuizAnalysisView(
            analysis=quiz.analysis if quiz.analysis is not None else "No analysis available",
            quiz_id=quiz.id,
            completed=quiz.submitted,
            updated_at=self._quizzes.updated_at(quiz.id) or quiz.submitted_at or quiz.created_at,
        )

    def latest_content(self, user_id: str) -> EducationalContentBundle | None:
        return self._contents.latest_for_user(user_id)

    async def learning_resources(self, user_id: str, token: str | None = None) -> LearningResources:
        latest = self._contents.latest_for_user(user_id)
        if latest is None:
            if not token:
                raise QuizNotFoundError("No educational content found for this user")
            logger.info("learning_resources_generating user_id=%s", user_id)
            latest = await self.generate_educational_content(user_id, None, token)
        return LearningResources(
            user_id=user_id,
            videos=latest.videos,
            books=latest.books,
            games=latest.games,
            resources=latest.resources,
            analysis=latest.analysis,
        )

    async def guest_recommendations(self, session_id: str, quiz_id: str) -> GuestRecommendations:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None or quiz.session_id != session_id:
            raise QuizNotFoundError("Quiz not found")
        if not quiz.submitted or quiz.analysis is None:
            raise QuizInputError("Quiz not completed or analyzed yet")

        analysis = self._structured(quiz)
        recommendations = await self._content.build_bundle(analysis)
        return GuestRecommendations(
            session_id=session_id,
            quiz_id=quiz.id,
            analysis=analysis,
            recommendations=recommendations,
        )


@lru_cache(maxsize=1)
def get_database() -> SqliteDatabase:
    return SqliteDatabase(settings.quiz_db_path)


@lru_cache(maxsize=1)
def get_quiz_service() -> QuizService:
    db = get_database()
    generator = get_text_generator()
    bank = get_default_question_bank()
    quiz_store = QuizStore(db)
    youtube = YouTubeVideoSearch()
    return QuizService(
        quiz_store=quiz_store,
        content_store=ContentStore(db),
        question_bank=bank,
        analysis=AnalysisService(generator, tables=bank.tables),
        content=ContentRecommendationService(
            generator,
            video_provider=youtube if youtube.enabled else None,
            tables=bank.tables,
        ),
        extractor=RecommendationExtractor(),
        main_service=MainServiceClient(),
        resolver=QuizResolver(quiz_store),
    )
