import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping

from starlette.concurrency import run_in_threadpool

from .database import get_db_connection
from .models import CompletionSummary, LevelProgress, Question

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _answer_list(value: Any) -> List[str]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return [str(answer) for answer in value if answer is not None]


def normalize_question(record: Mapping[str, Any]) -> Question:
    """Builds a Question from a raw storage record, filling gaps instead of failing.

    A missing correct answer becomes an empty string, an ``incorrect_answers``
    field that is not a list (or not valid JSON) becomes an empty list, and a
    record without an id gets a generated one.
    """
    record_id = record.get("id")
    image_url = record.get("image_url")
    return Question(
        id=str(record_id) if record_id not in (None, "") else uuid.uuid4().hex,
        level=_text(record.get("level")),
        question_text=_text(record.get("question_text")),
        image_url=str(image_url) if image_url else None,
        correct_answer=_text(record.get("correct_answer")),
        incorrect_answers=_answer_list(record.get("incorrect_answers")),
        explanation=_text(record.get("explanation")),
    )


# --- Service Layer: external collaborators of the session controller ---
class QuestionPoolLoader(ABC):
    """Supplies every question tagged with a level."""

    @abstractmethod
    async def fetch_questions_for_level(self, level_id: str) -> List[Question]:
        pass


class ProgressRecorder(ABC):
    """Persists per-question outcomes and per-level completion summaries."""

    @abstractmethod
    async def record_attempt(
        self, user_id: str, question_id: str, correct: bool, attempt_number: int
    ) -> None:
        pass

    @abstractmethod
    async def record_level_completion(
        self, user_id: str, level_id: str, summary: CompletionSummary
    ) -> None:
        pass


# --- SQLite implementations ---
class SQLiteQuestionPool(QuestionPoolLoader):
    def _fetch(self, level_id: str) -> List[Question]:
        conn = get_db_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM assignments WHERE level = ? ORDER BY id",
                (level_id,),
            ).fetchall()
        finally:
            conn.close()
        return [normalize_question(dict(row)) for row in rows]

    async def fetch_questions_for_level(self, level_id: str) -> List[Question]:
        return await run_in_threadpool(self._fetch, level_id)

    def count_questions(self) -> int:
        conn = get_db_connection()
        try:
            return conn.execute("SELECT COUNT(*) FROM assignments").fetchone()[0]
        finally:
            conn.close()

    def add_questions(self, records: List[Dict[str, Any]]) -> int:
        conn = get_db_connection()
        with conn:
            conn.executemany(
                """
                INSERT INTO assignments
                    (level, question_text, image_url, correct_answer,
                     incorrect_answers, explanation)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        record["level"],
                        record.get("question_text", ""),
                        record.get("image_url"),
                        record.get("correct_answer", ""),
                        json.dumps(record.get("incorrect_answers", [])),
                        record.get("explanation", ""),
                    )
                    for record in records
                ],
            )
        conn.close()
        return len(records)


class SQLiteProgressRecorder(ProgressRecorder):
    def _record_attempt(
        self, user_id: str, question_id: str, correct: bool, attempt_number: int
    ) -> None:
        completed_correctly = int(correct and attempt_number == 1)
        conn = get_db_connection()
        with conn:
            conn.execute(
                """
                INSERT INTO user_progress
                    (user_id, assignment_id, completed, completed_correctly, attempts)
                VALUES (?, ?, 1, ?, ?)
                ON CONFLICT (user_id, assignment_id) DO UPDATE SET
                    completed = 1,
                    completed_correctly = MAX(
                        user_progress.completed_correctly,
                        excluded.completed_correctly
                    ),
                    attempts = excluded.attempts,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (user_id, question_id, completed_correctly, attempt_number),
            )
        conn.close()

    async def record_attempt(
        self, user_id: str, question_id: str, correct: bool, attempt_number: int
    ) -> None:
        await run_in_threadpool(
            self._record_attempt, user_id, question_id, correct, attempt_number
        )

    def _record_level_completion(
        self, user_id: str, level_id: str, summary: CompletionSummary
    ) -> None:
        conn = get_db_connection()
        with conn:
            conn.execute(
                """
                INSERT INTO level_completions
                    (user_id, level, completed, score, mistakes, stars,
                     percentage, total_questions, total_available)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    level_id,
                    int(summary.passed),
                    summary.score,
                    summary.mistakes,
                    summary.stars,
                    summary.percentage,
                    summary.total_questions,
                    summary.total_available_in_level,
                ),
            )
        conn.close()
        logger.info(
            f"Level {level_id} completion saved for {user_id}: "
            f"passed={summary.passed} stars={summary.stars}"
        )

    async def record_level_completion(
        self, user_id: str, level_id: str, summary: CompletionSummary
    ) -> None:
        await run_in_threadpool(
            self._record_level_completion, user_id, level_id, summary
        )

    def get_user_progress(self, user_id: str, level_id: str) -> LevelProgress:
        conn = get_db_connection()
        try:
            row = conn.execute(
                """
                SELECT
                    COALESCE(SUM(p.completed), 0) AS completed,
                    COALESCE(SUM(p.completed_correctly), 0) AS correct
                FROM user_progress AS p
                JOIN assignments AS a ON CAST(a.id AS TEXT) = p.assignment_id
                WHERE p.user_id = ? AND a.level = ?
                """,
                (user_id, level_id),
            ).fetchone()
        finally:
            conn.close()

        completed, correct = row["completed"], row["correct"]
        success_rate = round(correct / completed * 100) if completed > 0 else 0
        return LevelProgress(
            level=level_id,
            completed_assignments=completed,
            correct_answers=correct,
            success_rate=success_rate,
        )

    def get_level_completions(self, user_id: str) -> List[Dict[str, Any]]:
        conn = get_db_connection()
        try:
            rows = conn.execute(
                """
                SELECT level, completed, score, mistakes, stars, percentage, created_at
                FROM level_completions
                WHERE user_id = ?
                ORDER BY id
                """,
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]
