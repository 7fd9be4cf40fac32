from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from app.core.errors import StoreError
from app.schemas.content import EducationalContentBundle
from app.schemas.quiz import Quiz

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS quizzes (
        quiz_id TEXT PRIMARY KEY,
        user_id TEXT,
        session_id TEXT,
        submitted INTEGER NOT NULL DEFAULT 0,
        completed INTEGER NOT NULL DEFAULT 0,
        document_json TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_quizzes_user_created
    ON quizzes (user_id, created_at);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_quizzes_user_flags
    ON quizzes (user_id, submitted, completed);
    """,
    """
    CREATE TABLE IF NOT EXISTS educational_content (
        content_id TEXT PRIMARY KEY,
        user_id TEXT,
        session_id TEXT,
        document_json TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_content_user_created
    ON educational_content (user_id, created_at);
    """,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SqliteDatabase:
    """One shared connection per database file, guarded by a lock."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        if self._db_path != ":memory:":
            directory = os.path.dirname(self._db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
            timeout=5,
            isolation_level=None,
        )
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=5000;")
        for statement in _SCHEMA:
            conn.execute(statement)
        self._conn = conn
        return conn

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        with self._lock:
            try:
                conn = self._connect()
                cur = conn.execute(sql, params)
                return cur.fetchall()
            except sqlite3.Error as exc:
                logger.error("document_store_query_failed db=%s error=%s", self._db_path, exc)
                raise StoreError(f"Document store failure: {exc}") from exc

    def init(self) -> None:
        with self._lock:
            try:
                self._connect()
            except sqlite3.Error as exc:
                raise StoreError(f"Document store failure: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def _decode_quiz(row: tuple[Any, ...]) -> Quiz | None:
    try:
        return Quiz.model_validate(json.loads(row[0]))
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        logger.warning("quiz_document_unreadable error=%s", exc)
        return None


def _as_flag(value: bool | None) -> int | None:
    if value is None:
        return None
    return 1 if value else 0


class QuizStore:
    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def get(self, quiz_id: str) -> Quiz | None:
        rows = self._db.execute("SELECT document_json FROM quizzes WHERE quiz_id = ?", (quiz_id,))
        return _decode_quiz(rows[0]) if rows else None

    def find_one(self, quiz_id: str, user_id: str | None = None) -> Quiz | None:
        if user_id is None:
            return self.get(quiz_id)
        rows = self._db.execute(
            "SELECT document_json FROM quizzes WHERE quiz_id = ? AND user_id = ?",
            (quiz_id, user_id),
        )
        return _decode_quiz(rows[0]) if rows else None

    def recent(self, limit: int) -> list[Quiz]:
        """Most recently created quizzes across all owners, newest first."""
        rows = self._db.execute(
            "SELECT document_json FROM quizzes ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (max(0, int(limit)),),
        )
        quizzes = [_decode_quiz(row) for row in rows]
        return [quiz for quiz in quizzes if quiz is not None]

    def latest_for_user(
        self,
        user_id: str,
        *,
        submitted: bool | None = None,
        completed: bool | None = None,
    ) -> Quiz | None:
        clauses = ["user_id = ?"]
        params: list[Any] = [user_id]
        if submitted is not None:
            clauses.append("submitted = ?")
            params.append(_as_flag(submitted))
        if completed is not None:
            clauses.append("completed = ?")
            params.append(_as_flag(completed))
        rows = self._db.execute(
            f"SELECT document_json FROM quizzes WHERE {' AND '.join(clauses)} "
            "ORDER BY created_at DESC, rowid DESC",
            tuple(params),
        )
        # unreadable rows are logged by _decode_quiz and skipped
        for row in rows:
            quiz = _decode_quiz(row)
            if quiz is not None:
                return quiz
        return None

    def save(self, quiz: Quiz) -> Quiz:
        document = quiz.model_dump_json()
        self._db.execute(
            """
            INSERT INTO quizzes (
                quiz_id, user_id, session_id, submitted, completed, document_json, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(quiz_id) DO UPDATE SET
                user_id = excluded.user_id,
                session_id = excluded.session_id,
                submitted = excluded.submitted,
                completed = excluded.completed,
                document_json = excluded.document_json,
                updated_at = excluded.updated_at
            """,
            (
                quiz.id,
                quiz.user_id,
                quiz.session_id,
                _as_flag(quiz.submitted),
                _as_flag(quiz.completed),
                document,
                quiz.created_at.isoformat(),
                _utc_now().isoformat(),
            ),
        )
        return quiz

    def updated_at(self, quiz_id: str) -> datetime | None:
        rows = self._db.execute("SELECT updated_at FROM quizzes WHERE quiz_id = ?", (quiz_id,))
        if not rows or not rows[0][0]:
            return None
        return datetime.fromisoformat(rows[0][0])


class ContentStore:
    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def save(self, bundle: EducationalContentBundle) -> EducationalContentBundle:
        self._db.execute(
            """
            INSERT OR REPLACE INTO educational_content (
                content_id, user_id, session_id, document_json, created_at
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                bundle.id,
                bundle.user_id,
                bundle.session_id,
                bundle.model_dump_json(),
                bundle.created_at.isoformat(),
            ),
        )
        return bundle

    def latest_for_user(self, user_id: str) -> EducationalContentBundle | None:
        rows = self._db.execute(
            "SELECT document_json FROM educational_content WHERE user_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (user_id,),
        )
        if not rows:
            return None
        try:
            return EducationalContentBundle.model_validate(json.loads(rows[0][0]))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("content_document_unreadable user_id=%s error=%s", user_id, exc)
            return None
