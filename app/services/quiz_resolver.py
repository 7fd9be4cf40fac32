from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from app.core.config import settings
from app.core.document_store import QuizStore
from app.core.errors import QuizInputError
from app.schemas.quiz import Quiz, utc_now

logger = logging.getLogger(__name__)

MatchKind = Literal[
    "exact",
    "id_only",
    "id_substring",
    "latest_submitted",
    "latest_completed",
    "latest_any",
]


@dataclass(frozen=True)
class ResolvedQuiz:
    quiz: Quiz
    match: MatchKind


def reconcile(quiz: Quiz) -> tuple[Quiz, bool]:
    """Return ``quiz`` with completion flags consistent with its answers.

    A quiz that holds answers is finished regardless of what its flags say.
    The input is never mutated; ``repaired`` tells the caller whether to persist.
    """
    if not quiz.answers or (quiz.submitted and quiz.completed):
        return quiz, False
    repaired = quiz.model_copy(
        update={
            "submitted": True,
            "completed": True,
            "submitted_at": quiz.submitted_at or utc_now(),
        }
    )
    return repaired, True


class QuizResolver:
    def __init__(
        self,
        store: QuizStore,
        *,
        scan_limit: int | None = None,
        allow_owner_mismatch: bool | None = None,
    ) -> None:
        self._store = store
        self._scan_limit = scan_limit if scan_limit is not None else settings.quiz_recent_scan_limit
        self._allow_owner_mismatch = (
            allow_owner_mismatch if allow_owner_mismatch is not None else settings.quiz_allow_owner_mismatch
        )

    def find(self, user_id: str | None, quiz_id: str | None = None) -> ResolvedQuiz | None:
        if not user_id or not str(user_id).strip():
            raise QuizInputError("User ID is required to look up a quiz.")
        user_id = str(user_id).strip()
        quiz_id = (quiz_id or "").strip() or None

        if quiz_id:
            found = self._find_by_id(user_id, quiz_id)
            if found is not None:
                return found
            logger.info("quiz_lookup_fallthrough user_id=%s quiz_id=%s", user_id, quiz_id)

        return self._find_latest(user_id)

    def resolve(self, user_id: str | None, quiz_id: str | None = None) -> Quiz | None:
        found = self.find(user_id, quiz_id)
        if found is None:
            logger.warning("quiz_not_found user_id=%s quiz_id=%s", user_id, quiz_id)
            return None

        quiz, repaired = reconcile(found.quiz)
        if repaired:
            self._store.save(quiz)
            logger.info("quiz_flags_repaired quiz_id=%s match=%s", quiz.id, found.match)
        return quiz

    def _find_by_id(self, user_id: str, quiz_id: str) -> ResolvedQuiz | None:
        quiz = self._store.find_one(quiz_id, user_id)
        if quiz is not None:
            return ResolvedQuiz(quiz, "exact")

        quiz = self._store.get(quiz_id)
        if quiz is not None and self._accept_foreign(quiz, user_id, "id_only"):
            return ResolvedQuiz(quiz, "id_only")

        for candidate in self._store.recent(self._scan_limit):
            if quiz_id not in candidate.id:
                continue
            if candidate.user_id == user_id:
                logger.info("quiz_id_substring_match quiz_id=%s partial=%s", candidate.id, quiz_id)
                return ResolvedQuiz(candidate, "id_substring")
            if self._accept_foreign(candidate, user_id, "id_substring"):
                return ResolvedQuiz(candidate, "id_substring")
        return None

    def _accept_foreign(self, quiz: Quiz, user_id: str, match: MatchKind) -> bool:
        if quiz.user_id == user_id:
            return True
        if not self._allow_owner_mismatch:
            logger.warning(
                "quiz_owner_mismatch_rejected quiz_id=%s requested_user=%s owner=%s match=%s",
                quiz.id,
                user_id,
                quiz.user_id,
                match,
            )
            return False
        logger.warning(
            "quiz_owner_mismatch_allowed quiz_id=%s requested_user=%s owner=%s match=%s",
            quiz.id,
            user_id,
            quiz.user_id,
            match,
        )
        return True

    def _find_latest(self, user_id: str) -> ResolvedQuiz | None:
        quiz = self._store.latest_for_user(user_id, submitted=True)
        if quiz is not None:
            return ResolvedQuiz(quiz, "latest_submitted")

        quiz = self._store.latest_for_user(user_id, completed=True)
        if quiz is not None:
            return ResolvedQuiz(quiz, "latest_completed")

        quiz = self._store.latest_for_user(user_id)
        if quiz is not None:
            return ResolvedQuiz(quiz, "latest_any")
        return None
