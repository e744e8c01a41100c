from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


# --- Models ---
class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    level: str = ""
    question_text: str = ""
    image_url: Optional[str] = None
    correct_answer: str = ""
    incorrect_answers: List[str] = []
    explanation: str = ""


class SessionItem(BaseModel):
    question: Question
    options: List[str]
    completed: bool = False
    completed_correctly: bool = False


class OutcomeRecord(BaseModel):
    question_id: str
    completed: bool
    attempts: int


class Phase(str, Enum):
    LOADING = "loading"
    NO_DATA = "no_data"
    ACTIVE = "active"
    COMPLETED = "completed"


class AnswerFeedback(BaseModel):
    question_id: str
    user_answer: str
    correct_answer: str
    is_correct: bool
    attempt: int
    explanation: str


class CompletionSummary(BaseModel):
    level: str
    passed: bool
    score: int
    mistakes: int
    stars: int
    percentage: int
    next_level: Optional[str] = None
    total_questions: int
    assignments_completed: int = 0
    passing_stars: int = 3
    total_available_in_level: int = 0
    message: str = ""


class QuestionView(BaseModel):
    id: str
    question_text: str
    image_url: Optional[str] = None
    options: List[str]


class SessionView(BaseModel):
    phase: Phase
    level: str
    level_name: str
    current_index: int
    total_questions: int
    total_available_in_level: int
    question: Optional[QuestionView] = None
    selected_option: Optional[int] = None
    show_result: bool
    feedback: Optional[AnswerFeedback] = None
    attempts: int
    score: int
    mistakes: int
    progress: int
    is_last_question: bool
    summary: Optional[CompletionSummary] = None


class User(BaseModel):
    id: str
    email: str
    username: str
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.username or self.email.split("@")[0] or "Student"


class LevelProgress(BaseModel):
    level: str
    completed_assignments: int
    correct_answers: int
    success_rate: int
