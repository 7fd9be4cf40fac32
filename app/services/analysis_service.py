from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from app.ai.json_extract import extract_json
from app.ai.types import ChatMessage, TextGenerationError, TextGenerator
from app.core.config import settings
from app.core.config.tables import QuizTables, get_quiz_tables
from app.quiz.scoring import score_answers
from app.schemas.quiz import AiNarrative, Analysis, Quiz

logger = logging.getLogger(__name__)

NARRATIVE_MAX_TOKENS = 500
NARRATIVE_TEMPERATURE = 0.7

FALLBACK_MESSAGE = "These are general recommendations. Complete a career assessment quiz for personalized results."


def canned_narrative(top_career_areas: Sequence[str]) -> AiNarrative:
    areas = [area for area in top_career_areas if area]
    focus = " and ".join(areas) if areas else "many different subjects"
    return AiNarrative(
        explanation=f"Based on your answers, you show strong interest in {focus}!",
        skills=["Critical thinking", "Problem solving", "Communication"],
        activities=["Join relevant clubs", "Try hands-on projects", "Explore online courses"],
        encouragement="Keep exploring your interests and trying new things!",
    )


def _as_text_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return []


def repair_narrative(payload: Any, top_career_areas: Sequence[str]) -> AiNarrative | None:
    """Coerce a parsed model payload into a narrative, filling gaps from the canned one.

    Returns None when the payload carries nothing usable.
    """
    if isinstance(payload, list) and len(payload) == 1:
        payload = payload[0]
    if not isinstance(payload, dict):
        return None

    canned = canned_narrative(top_career_areas)
    explanation = payload.get("explanation")
    explanation = explanation.strip() if isinstance(explanation, str) else ""
    encouragement = payload.get("encouragement")
    encouragement = encouragement.strip() if isinstance(encouragement, str) else ""
    skills = _as_text_list(payload.get("skills"))
    activities = _as_text_list(payload.get("activities"))

    if not (explanation or encouragement or skills or activities):
        return None

    return AiNarrative(
        explanation=explanation or canned.explanation,
        skills=skills or canned.skills,
        activities=activities or canned.activities,
        encouragement=encouragement or canned.encouragement,
    )


def build_narrative_prompt(age_range: str, top_career_areas: Sequence[str], career_areas: Sequence[str]) -> str:
    return (
        f"Analyze this career quiz for a {age_range} year old student.\n\n"
        f"Top career areas identified: {', '.join(top_career_areas)}\n\n"
        f"Available career areas for this age: {', '.join(career_areas)}\n\n"
        "Please provide:\n"
        "1. A brief explanation of their top career matches\n"
        "2. Skills they should develop\n"
        "3. Activities they can try\n"
        "4. Encouragement for their interests\n\n"
        "Keep the language appropriate for their age group and encouraging.\n"
        "Format as JSON with keys: explanation, skills, activities, encouragement"
    )


class AnalysisService:
    """Scores a quiz and attaches a generated narrative.

    Only an unsupported age range is raised; generator failures of any kind
    end in the canned narrative so the scores always reach the caller.
    """

    def __init__(
        self,
        generator: TextGenerator,
        tables: QuizTables | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self._generator = generator
        self._tables = tables or get_quiz_tables()
        self._timeout_s = timeout_s if timeout_s is not None else settings.llm_timeout_s

    @property
    def tables(self) -> QuizTables:
        return self._tables

    async def analyze(self, quiz: Quiz) -> Analysis:
        profile = self._tables.profile(quiz.age_range)
        result = score_answers(quiz.questions, quiz.answers, profile.career_areas)
        logger.info(
            "quiz_scored quiz_id=%s age_range=%s top=%s",
            quiz.id,
            profile.age_range,
            ",".join(result.top_career_areas),
        )

        narrative = await self._narrative(profile.age_range, result.top_career_areas, profile.career_areas)
        return Analysis(
            top_career_areas=list(result.top_career_areas),
            scores=result.scores,
            ai_analysis=narrative,
            age_range=profile.age_range,
        )

    async def _narrative(
        self,
        age_range: str,
        top_career_areas: Sequence[str],
        career_areas: Sequence[str],
    ) -> AiNarrative:
        prompt = build_narrative_prompt(age_range, top_career_areas, career_areas)
        try:
            text = await asyncio.wait_for(
                self._generator.complete(
                    [ChatMessage(role="user", content=prompt)],
                    max_tokens=NARRATIVE_MAX_TOKENS,
                    temperature=NARRATIVE_TEMPERATURE,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("analysis_narrative_timeout timeout_s=%s", self._timeout_s)
            return canned_narrative(top_career_areas)
        except TextGenerationError as exc:
            logger.warning("analysis_narrative_unavailable code=%s: %s", exc.code, exc)
            return canned_narrative(top_career_areas)
        except Exception as exc:  # noqa: BLE001 - narrative failure must not block scores
            logger.error("analysis_narrative_failed: %s", exc, exc_info=True)
            return canned_narrative(top_career_areas)

        extraction = extract_json(text)
        if not extraction.ok:
            logger.warning("analysis_narrative_unparseable error=%s", extraction.error)
            return canned_narrative(top_career_areas)

        narrative = repair_narrative(extraction.value, top_career_areas)
        if narrative is None:
            logger.warning("analysis_narrative_unusable stage=%s", extraction.stage)
            return canned_narrative(top_career_areas)
        return narrative


def age_range_for_age(age: Any, default: str | None = None) -> str:
    """Map a user's age in years onto the quiz age bands."""
    try:
        years = int(age)
    except (TypeError, ValueError):
        return default or settings.default_age_range
    if years <= 0:
        return default or settings.default_age_range
    if years <= 8:
        return "6-8"
    if years <= 12:
        return "9-12"
    if years <= 15:
        return "13-15"
    return "16-18"


def fallback_analysis(age_range: str | None = None, first_name: str | None = None) -> Analysis:
    """Generic analysis used when no usable quiz exists; marked with ``fallback``."""
    name = (first_name or "").strip() or "Student"
    return Analysis(
        top_career_areas=["Education", "Art", "Technology"],
        age_range=age_range or settings.default_age_range,
        ai_analysis=AiNarrative(
            explanation=f"These are general educational resources for {name} to explore different subjects.",
            skills=["Reading", "Creative thinking", "Basic technology skills"],
            activities=["Drawing and coloring", "Reading stories", "Simple science experiments"],
            encouragement="Learning is fun! Try different activities to discover what you enjoy the most.",
        ),
        fallback=True,
        fallback_message=FALLBACK_MESSAGE,
    )
