from typing import Optional

from .config import settings
from .levels import next_level
from .models import CompletionSummary

PASSING_STARS = 3


def calculate_stars(mistakes: int) -> int:
    """Star rating for a finished level: 5, 4 or 3 stars, or 0 when failed."""
    if mistakes <= 0:
        return 5
    if mistakes == 1:
        return 4
    if mistakes == 2:
        return 3
    return 0


def score_percentage(mistakes: int) -> int:
    # Each mistake costs 20 points; this is a display heuristic, not accuracy.
    return max(0, 100 - mistakes * 20)


def has_passed(stars: int) -> bool:
    return stars >= PASSING_STARS


def evaluate_completion(
    level: str,
    score: int,
    mistakes: int,
    assignments_completed: Optional[int] = None,
    total_available_in_level: int = 0,
) -> CompletionSummary:
    stars = calculate_stars(mistakes)
    passed = has_passed(stars)
    return CompletionSummary(
        level=level,
        passed=passed,
        score=score,
        mistakes=mistakes,
        stars=stars,
        percentage=score_percentage(mistakes),
        next_level=next_level(level) if passed else None,
        total_questions=settings.ASSIGNMENTS_PER_LEVEL,
        assignments_completed=(
            score if assignments_completed is None else assignments_completed
        ),
        passing_stars=PASSING_STARS,
        total_available_in_level=total_available_in_level,
        message=performance_message(stars),
    )


def performance_message(stars: int) -> str:
    if stars == 5:
        return "Perfect! Flawless victory!"
    if stars == 4:
        return "Excellent! Almost perfect!"
    if stars == 3:
        return "Good job! You passed!"
    return "Needs improvement. Try again!"
