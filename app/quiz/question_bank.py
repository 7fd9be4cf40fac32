from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from app.core.config.tables import QuizTables, get_quiz_tables
from app.core.errors import QuizInputError
from app.schemas.quiz import Question

logger = logging.getLogger(__name__)

# Points per answer option for question files that ship plain strings.
DEFAULT_OPTION_POINTS: tuple[int, ...] = (0, 1, 2, 3)


class QuestionBank:
    """Per-age-range question sets read from ``questions-<range>.json`` files."""

    def __init__(self, data_dir: str | Path | None = None, tables: QuizTables | None = None) -> None:
        self._data_dir = Path(data_dir) if data_dir else Path(__file__).with_name("data")
        self._tables = tables or get_quiz_tables()
        self._cache: dict[str, tuple[Question, ...]] = {}

    @property
    def tables(self) -> QuizTables:
        return self._tables

    def questions(self, age_range: str) -> list[Question]:
        profile = self._tables.profile(age_range)
        cached = self._cache.get(profile.age_range)
        if cached is None:
            cached = tuple(self._load(profile.age_range))
            self._cache[profile.age_range] = cached
        return [question.model_copy(deep=True) for question in cached]

    def _load(self, age_range: str) -> list[Question]:
        path = self._data_dir / f"questions-{age_range}.json"
        try:
            with path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except FileNotFoundError as exc:
            raise QuizInputError(f"No questions found for age range {age_range}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("question_bank_load_failed age_range=%s path=%s error=%s", age_range, path, exc)
            raise QuizInputError(f"Question set for age range {age_range} is unreadable") from exc

        if not isinstance(raw, list) or not raw:
            raise QuizInputError(f"No questions found for age range {age_range}")

        questions: list[Question] = []
        for index, entry in enumerate(raw):
            try:
                questions.append(self._coerce(entry, age_range))
            except (ValidationError, TypeError, ValueError) as exc:
                logger.error(
                    "question_bank_entry_invalid age_range=%s index=%s error=%s",
                    age_range,
                    index,
                    exc,
                )
                raise QuizInputError(f"Question set for age range {age_range} is invalid") from exc
        return questions

    def _coerce(self, entry: Any, age_range: str) -> Question:
        if isinstance(entry, str):
            profile = self._tables.profile(age_range)
            options = list(profile.answer_scale) or ["Not at all", "A little", "Quite a bit", "Very much"]
            points = [float(DEFAULT_OPTION_POINTS[min(i, len(DEFAULT_OPTION_POINTS) - 1)]) for i in range(len(options))]
            return Question(
                text=entry.strip(),
                answers=options,
                scoring={area: list(points) for area in profile.career_areas},
            )
        if isinstance(entry, dict):
            return Question.model_validate(entry)
        raise TypeError(f"unsupported question entry type {type(entry).__name__}")
