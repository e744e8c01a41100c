"""Quiz session state machine for a single level attempt.

A controller samples up to ``ASSIGNMENTS_PER_LEVEL`` questions from the level's
pool, shuffles the answer options of each, and then walks the user through
select/submit/continue. Scores are derived purely from local state; progress
persistence happens in background tasks whose failures are only logged.
"""

import asyncio
import logging
import random
from typing import Callable, Coroutine, List, Optional, Set

from .auth import AuthContext
from .config import settings
from .levels import display_name, is_valid_level, next_level
from .models import (
    AnswerFeedback,
    CompletionSummary,
    OutcomeRecord,
    Phase,
    Question,
    QuestionView,
    SessionItem,
    SessionView,
)
from .scoring import evaluate_completion
from .services import ProgressRecorder, QuestionPoolLoader

logger = logging.getLogger(__name__)

LevelChangeCallback = Callable[[str], None]
CompletionCallback = Callable[[CompletionSummary], None]


class SessionController:
    def __init__(
        self,
        auth: AuthContext,
        loader: QuestionPoolLoader,
        recorder: ProgressRecorder,
        rng: Optional[random.Random] = None,
        on_level_change: Optional[LevelChangeCallback] = None,
        on_assignment_complete: Optional[CompletionCallback] = None,
    ):
        self.auth = auth
        self.loader = loader
        self.recorder = recorder
        self.rng = rng or random.Random()
        self.on_level_change = on_level_change
        self.on_assignment_complete = on_assignment_complete
        self.per_level = settings.ASSIGNMENTS_PER_LEVEL

        self.level = settings.DEFAULT_LEVEL
        self.phase = Phase.LOADING
        self.items: List[SessionItem] = []
        self.total_available = 0
        self.summary: Optional[CompletionSummary] = None
        self._pending: Set[asyncio.Task] = set()
        self._reset_counters()

    def _reset_counters(self):
        self.index = 0
        self.selected_option: Optional[int] = None
        self.show_result = False
        self.attempts = 0
        self.score = 0
        self.mistakes = 0
        self.completed_assignments = 0
        self.history: List[OutcomeRecord] = []
        self.feedback: Optional[AnswerFeedback] = None

    # --- Properties ---
    @property
    def current_item(self) -> Optional[SessionItem]:
        if self.phase != Phase.ACTIVE or not (0 <= self.index < len(self.items)):
            return None
        return self.items[self.index]

    @property
    def is_last_question(self) -> bool:
        return self.index >= len(self.items) - 1

    @property
    def progress(self) -> int:
        if not self.items:
            return 0
        return round(self.completed_assignments / len(self.items) * 100)

    # --- Sampling ---
    def _build_item(self, question: Question) -> SessionItem:
        options = list(question.incorrect_answers) + [question.correct_answer]
        self.rng.shuffle(options)
        return SessionItem(question=question, options=options)

    def _sample(self, pool: List[Question]) -> List[SessionItem]:
        if len(pool) >= self.per_level:
            selected = self.rng.sample(pool, self.per_level)
        else:
            selected = list(pool)
            logger.warning(
                f"Only {len(pool)} questions available for level {self.level}, "
                f"need {self.per_level}"
            )
        items = [self._build_item(question) for question in selected]
        self.rng.shuffle(items)
        return items

    # --- Operations ---
    async def initialize(self, level: str):
        """Loads the pool for ``level`` and starts a fresh attempt."""
        if not is_valid_level(level):
            logger.warning(f"Unknown level {level!r}, using {settings.DEFAULT_LEVEL}")
            level = settings.DEFAULT_LEVEL

        self.level = level
        self.phase = Phase.LOADING
        self.items = []
        self.summary = None
        self._reset_counters()

        try:
            pool = await self.loader.fetch_questions_for_level(level)
        except Exception as e:
            logger.error(f"Error loading assignments for level {level}: {e}")
            pool = []

        self.total_available = len(pool)
        if not pool:
            logger.warning(f"No assignments found for level {level}")
            self.phase = Phase.NO_DATA
            return

        self.items = self._sample(pool)
        self.phase = Phase.ACTIVE
        logger.info(
            f"Started level {level} with {len(self.items)} of "
            f"{self.total_available} questions"
        )

    def select_option(self, index: int) -> bool:
        item = self.current_item
        if self.show_result or item is None:
            return False
        if not (0 <= index < len(item.options)):
            return False
        self.selected_option = index
        return True

    def submit(self) -> Optional[AnswerFeedback]:
        item = self.current_item
        if self.selected_option is None or item is None or self.show_result:
            return None

        question = item.question
        user_answer = item.options[self.selected_option]
        is_correct = user_answer == question.correct_answer
        first_attempt = self.attempts == 0

        if not item.completed:
            item.completed = True
            item.completed_correctly = is_correct and first_attempt

        if is_correct and first_attempt:
            self.score += 1
            self.completed_assignments += 1
            self.history.append(
                OutcomeRecord(question_id=question.id, completed=True, attempts=1)
            )
        elif not is_correct:
            self.mistakes += 1

        self.attempts += 1
        self.show_result = True
        self.feedback = AnswerFeedback(
            question_id=question.id,
            user_answer=user_answer,
            correct_answer=question.correct_answer,
            is_correct=is_correct,
            attempt=self.attempts,
            explanation=question.explanation,
        )

        if self.auth.user_id:
            self._spawn(
                self.recorder.record_attempt(
                    self.auth.user_id, question.id, is_correct, self.attempts
                ),
                "Error saving progress",
            )
        return self.feedback

    def retry(self) -> bool:
        """Hides the last result so the current question can be answered again."""
        if not self.show_result or self.current_item is None:
            return False
        self.show_result = False
        self.selected_option = None
        self.feedback = None
        return True

    def continue_(self) -> Optional[CompletionSummary]:
        item = self.current_item
        if item is None:
            return None

        self.show_result = False
        self.selected_option = None
        self.feedback = None
        self.attempts = 0

        if not self.is_last_question:
            self.index += 1
            return None

        if not item.completed:
            item.completed = True
        if not all(entry.completed for entry in self.items):
            logger.warning("Not all assignments marked as completed, but reached end")
        return self._complete()

    def _complete(self) -> CompletionSummary:
        summary = evaluate_completion(
            self.level,
            self.score,
            self.mistakes,
            assignments_completed=self.completed_assignments,
            total_available_in_level=self.total_available,
        )
        self.summary = summary
        self.phase = Phase.COMPLETED
        logger.info(
            f"Level {self.level} finished: score={summary.score} "
            f"mistakes={summary.mistakes} stars={summary.stars}"
        )

        if self.auth.user_id:
            self._spawn(
                self.recorder.record_level_completion(
                    self.auth.user_id, self.level, summary
                ),
                "Error saving level completion",
            )
        if self.on_assignment_complete:
            self.on_assignment_complete(summary)
        return summary

    async def advance_to_next_level(self) -> Optional[str]:
        """Moves a passed attempt on to the following level.

        Returns the new level, or None when the attempt is not a pass or the
        curriculum is finished.
        """
        if self.summary is None or not self.summary.passed:
            return None
        upcoming = next_level(self.level)
        if upcoming is None:
            logger.info("All available levels completed")
            return None
        if self.on_level_change:
            self.on_level_change(upcoming)
        await self.initialize(upcoming)
        return upcoming

    async def restart(self):
        await self.initialize(self.level)

    # --- Background persistence ---
    def _spawn(self, coro: Coroutine, failure_message: str):
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._finish(t, failure_message))

    def _finish(self, task: asyncio.Task, failure_message: str):
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"{failure_message}: {exc}")

    async def drain(self):
        """Waits for outstanding progress writes; failures stay logged only."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # --- Observable state ---
    def snapshot(self) -> SessionView:
        item = self.current_item
        question = None
        if item is not None:
            question = QuestionView(
                id=item.question.id,
                question_text=item.question.question_text,
                image_url=item.question.image_url,
                options=item.options,
            )
        return SessionView(
            phase=self.phase,
            level=self.level,
            level_name=display_name(self.level),
            current_index=self.index,
            total_questions=len(self.items),
            total_available_in_level=self.total_available,
            question=question,
            selected_option=self.selected_option,
            show_result=self.show_result,
            feedback=self.feedback,
            attempts=self.attempts,
            score=self.score,
            mistakes=self.mistakes,
            progress=self.progress,
            is_last_question=self.is_last_question,
            summary=self.summary,
        )
