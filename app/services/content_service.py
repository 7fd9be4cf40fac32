from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from app.ai.json_extract import extract_json
from app.ai.types import ChatMessage, TextGenerationError, TextGenerator
from app.core.config import settings
from app.core.config.tables import QuizTables, get_quiz_tables
from app.integrations.youtube import VideoSearchProvider
from app.schemas.content import (
    BookRecord,
    ContentRecommendations,
    GameRecord,
    ResourceRecord,
    VideoQuery,
    VideoRecord,
)
from app.schemas.quiz import Analysis

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

DEFAULT_PROMPT_AREAS: tuple[str, ...] = ("Education", "Creative Arts", "Science")
MAX_PROMPT_AREAS = 3
MAX_VIDEO_TOPICS = 3
MAX_VIDEO_RESULTS = 5
CONTENT_TEMPERATURE = 0.7

GAME_TAG = "educational_game"
BOOK_TAG = "educational_book"
RESOURCE_TAG = "learning_resource"

_FALLBACK_BOOKS: dict[str, tuple[dict[str, str], ...]] = {
    "6-8": (
        {
            "title": "Oh, the Places You'll Go!",
            "author": "Dr. Seuss",
            "description": "A colorful book about life's journey and possibilities",
            "isbn": "9780679805274",
            "url": "https://www.google.com/search?q=Oh+the+Places+You'll+Go+Dr+Seuss+book",
        },
    ),
    "9-12": (
        {
            "title": "What Do You Want to Be When You Grow Up?",
            "author": "DK Publishing",
            "description": "Explores different career paths for young readers",
            "isbn": "9781465479945",
            "url": "https://www.google.com/search?q=What+Do+You+Want+to+Be+When+You+Grow+Up+DK+Publishing+book",
        },
    ),
    "13-15": (
        {
            "title": "You Can Be Anything!",
            "author": "Gary Bolles",
            "description": "Guide to discovering interests and potential career paths for teens",
            "isbn": "9781523516193",
            "url": "https://www.google.com/search?q=You+Can+Be+Anything+career+book+teens",
        },
    ),
    "16-18": (
        {
            "title": "What Color Is Your Parachute? for Teens",
            "author": "Carol Christen",
            "description": "Career guidance book specifically written for teenagers",
            "isbn": "9781580081412",
            "url": "https://www.google.com/search?q=What+Color+Is+Your+Parachute+for+Teens+Carol+Christen+book",
        },
    ),
}

_GENERIC_BOOKS: tuple[dict[str, str], ...] = (
    {
        "title": "Career Exploration Guide",
        "author": "Various Authors",
        "description": "Explores different career paths for young readers",
        "isbn": "",
        "url": "https://www.google.com/search?q=career+books+children",
    },
)


@dataclass(frozen=True)
class CategorySpec:
    name: str
    tag: str
    count: int
    max_tokens: int
    system_prompt: str
    # keys a model may wrap the list under
    list_keys: tuple[str, ...]


GAMES = CategorySpec(
    name="games",
    tag=GAME_TAG,
    count=3,
    max_tokens=800,
    system_prompt="You are a helper that generates educational game suggestions. Always respond with valid JSON.",
    list_keys=("games", "educational_games", "educationalGames", "items", "results", "data"),
)
BOOKS = CategorySpec(
    name="books",
    tag=BOOK_TAG,
    count=3,
    max_tokens=800,
    system_prompt="You are a helper that recommends age-appropriate educational books. Always respond with valid JSON.",
    list_keys=("books", "book_recommendations", "bookRecommendations", "recommendations", "items", "results", "data"),
)
RESOURCES = CategorySpec(
    name="resources",
    tag=RESOURCE_TAG,
    count=5,
    max_tokens=1000,
    system_prompt="You are a helper that generates learning resource recommendations. Always respond with valid JSON.",
    list_keys=("resources", "learning_resources", "learningResources", "recommendations", "items", "results", "data"),
)


def prompt_career_areas(analysis: Analysis) -> list[str]:
    areas = analysis.career_area_names(limit=MAX_PROMPT_AREAS)
    return areas or list(DEFAULT_PROMPT_AREAS)


def video_topics(analysis: Analysis) -> list[str]:
    topics = analysis.career_area_names() + [skill for skill in analysis.ai_analysis.skills if skill]
    return topics[:MAX_VIDEO_TOPICS]


def unwrap_items(value: Any, list_keys: Sequence[str]) -> list[Any]:
    """Normalize a parsed payload into a list of candidate items.

    A list passes through, an object holding the list under a known key is
    unwrapped, and any other object becomes a one-element list.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in list_keys:
            inner = value.get(key)
            if isinstance(inner, list):
                return inner
        return [value]
    return []


def _validated(items: Sequence[Any], model: type[RecordT], prepare: Callable[[dict[str, Any]], dict[str, Any]]) -> list[RecordT]:
    records: list[RecordT] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            records.append(model.model_validate(prepare(dict(item))))
        except ValidationError:
            continue
    return records


def _stamp(tag: str) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def prepare(item: dict[str, Any]) -> dict[str, Any]:
        item["type"] = tag
        return item

    return prepare


def _stamp_resource(item: dict[str, Any]) -> dict[str, Any]:
    kind = item.get("type") or item.get("resourceType") or item.get("resource_type")
    if not isinstance(kind, str) or not kind.strip() or kind == RESOURCE_TAG:
        kind = "website"
    item.pop("resourceType", None)
    item["resource_type"] = kind
    item["type"] = RESOURCE_TAG
    return item


class ContentRecommendationService:
    """Builds the videos/books/games/resources bundle for an analysis.

    Each category fails on its own: AI categories drop to static fallbacks,
    videos drop to an empty list. ``build_bundle`` does not raise.
    """

    def __init__(
        self,
        generator: TextGenerator,
        video_provider: VideoSearchProvider | None = None,
        tables: QuizTables | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self._generator = generator
        self._video_provider = video_provider
        self._tables = tables or get_quiz_tables()
        self._timeout_s = timeout_s if timeout_s is not None else settings.llm_timeout_s

    @property
    def video_provider(self) -> VideoSearchProvider | None:
        return self._video_provider

    async def build_bundle(self, analysis: Analysis) -> ContentRecommendations:
        age_range = analysis.age_range or settings.default_age_range
        areas = prompt_career_areas(analysis)

        videos, games, books, resources = await asyncio.gather(
            self._guard("videos", self.videos(analysis), list),
            self._guard("games", self.games(areas, age_range), lambda: self.fallback_games(age_range)),
            self._guard("books", self.books(areas, age_range), lambda: self.fallback_books(age_range)),
            self._guard("resources", self.resources(areas, age_range), lambda: self.fallback_resources(age_range)),
        )
        logger.info(
            "content_bundle_built age_range=%s videos=%s games=%s books=%s resources=%s",
            age_range,
            len(videos),
            len(games),
            len(books),
            len(resources),
        )
        return ContentRecommendations(videos=videos, books=books, games=games, resources=resources)

    async def _guard(self, category: str, work: Any, fallback: Callable[[], list[Any]]) -> list[Any]:
        try:
            return await work
        except Exception as exc:  # noqa: BLE001 - one category must not blank the bundle
            logger.error("content_category_failed category=%s: %s", category, exc, exc_info=True)
            return fallback()

    async def videos(self, analysis: Analysis) -> list[VideoRecord]:
        if self._video_provider is None:
            return []
        topics = video_topics(analysis)
        areas = analysis.career_area_names()
        query = VideoQuery(
            query=" ".join(topics) or "career exploration",
            age_range=analysis.age_range,
            subject=areas[0] if areas else "general education",
            max_results=MAX_VIDEO_RESULTS,
        )
        try:
            return await asyncio.wait_for(self._video_provider.search(query), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            logger.warning("video_search_timeout query=%r", query.query)
            return []
        except Exception as exc:  # noqa: BLE001 - video search is optional
            logger.warning("video_search_failed query=%r: %s", query.query, exc)
            return []

    async def games(self, areas: Sequence[str], age_range: str) -> list[GameRecord]:
        prompt = (
            f"Generate {GAMES.count} educational games for {age_range} year olds interested in: {', '.join(areas)}.\n\n"
            "Each game should be:\n"
            "- Age-appropriate and engaging\n"
            "- Educational and skill-building\n"
            "- Can be physical, digital, or creative activities\n"
            "- Include a brief description of how to play\n\n"
            'Respond with a JSON object {"games": [...]} whose items contain only these fields: '
            "name, description, category, duration, difficulty."
        )
        items = await self._generate_items(GAMES, prompt)
        records = _validated(items, GameRecord, _stamp(GAME_TAG))
        if not records:
            logger.info("content_fallback_used category=games age_range=%s", age_range)
            return self.fallback_games(age_range)
        return records

    async def books(self, areas: Sequence[str], age_range: str) -> list[BookRecord]:
        prompt = (
            f"Recommend {BOOKS.count} real, published books for {age_range} year olds interested in: "
            f"{', '.join(areas)}.\n\n"
            "Books should be:\n"
            "- Age-appropriate and engaging\n"
            "- Educational and inspiring\n"
            "- Actually published (no fictional titles)\n"
            "- Available in libraries or bookstores\n\n"
            'Respond with a JSON object {"books": [...]} whose items contain only these fields: '
            "title, author, description, isbn, url.\n"
            "For url, use a generic search format like: https://www.google.com/search?q=TITLE+AUTHOR+book"
        )
        items = await self._generate_items(BOOKS, prompt)
        records = _validated(items, BookRecord, _stamp(BOOK_TAG))
        if not records:
            logger.info("content_fallback_used category=books age_range=%s", age_range)
            return self.fallback_books(age_range)
        return records

    async def resources(self, areas: Sequence[str], age_range: str) -> list[ResourceRecord]:
        prompt = (
            f"Generate {RESOURCES.count} learning resource recommendations for {age_range} year olds "
            f"interested in: {', '.join(areas)}.\n\n"
            "Each resource should be:\n"
            "- Age-appropriate and engaging\n"
            "- Educational and skill-building\n"
            "- Mix of apps, websites, books, courses, videos\n"
            "- Include a brief description of the resource\n\n"
            'Respond with a JSON object {"resources": [...]} whose items contain only these fields: '
            "title, type, description, skillLevel, estimatedTimeToComplete."
        )
        items = await self._generate_items(RESOURCES, prompt)
        records = _validated(items, ResourceRecord, _stamp_resource)
        if not records:
            logger.info("content_fallback_used category=resources age_range=%s", age_range)
            return self.fallback_resources(age_range)
        return records

    async def _generate_items(self, spec: CategorySpec, prompt: str) -> list[Any]:
        messages = [
            ChatMessage(role="system", content=spec.system_prompt),
            ChatMessage(role="user", content=prompt),
        ]
        try:
            text = await asyncio.wait_for(
                self._generator.complete(
                    messages,
                    max_tokens=spec.max_tokens,
                    temperature=CONTENT_TEMPERATURE,
                    json_mode=True,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("content_generation_timeout category=%s timeout_s=%s", spec.name, self._timeout_s)
            return []
        except TextGenerationError as exc:
            logger.warning("content_generation_unavailable category=%s code=%s: %s", spec.name, exc.code, exc)
            return []

        extraction = extract_json(text)
        if not extraction.ok:
            logger.warning("content_generation_unparseable category=%s error=%s", spec.name, extraction.error)
            return []
        return unwrap_items(extraction.value, spec.list_keys)

    def _skill_level(self, age_range: str, default: str) -> str:
        if self._tables.is_supported(age_range):
            return self._tables.profile(age_range).skill_level
        return default

    def fallback_games(self, age_range: str) -> list[GameRecord]:
        difficulty = "Easy"
        if self._tables.is_supported(age_range):
            difficulty = self._tables.profile(age_range).game_difficulty
        return [
            GameRecord(
                name="Career Explorer Game",
                description="Create a simple board game about different careers and interests",
                category="Creative",
                duration="30-45 minutes",
                difficulty=difficulty,
            ),
            GameRecord(
                name="Skills Challenge",
                description="A fun activity to practice different skills related to various career fields",
                category="Activity",
                duration="20-30 minutes",
                difficulty=difficulty,
            ),
        ]

    def fallback_books(self, age_range: str) -> list[BookRecord]:
        entries = _FALLBACK_BOOKS.get(age_range, _GENERIC_BOOKS)
        return [BookRecord(**entry) for entry in entries]

    def fallback_resources(self, age_range: str) -> list[ResourceRecord]:
        return [
            ResourceRecord(
                title="Khan Academy",
                resource_type="website",
                description="Free educational platform with courses in various subjects",
                skill_level=self._skill_level(age_range, "Beginner to Advanced"),
                estimated_time_to_complete="Self-paced",
            ),
            ResourceRecord(
                title="Career Exploration Guide",
                resource_type="ebook",
                description="Interactive guide to various career paths and required skills",
                skill_level=self._skill_level(age_range, "Beginner"),
                estimated_time_to_complete="2-3 hours",
            ),
        ]
