"""Late-submission penalty for graded assignments."""
import math
from datetime import datetime
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def days_late(submitted_at: datetime, due_date: Optional[datetime]) -> int:
    """Whole days past the due date, rounded up; 0 when on time or undated."""
    if due_date is None or submitted_at <= due_date:
        return 0
    return math.ceil((submitted_at - due_date).total_seconds() / SECONDS_PER_DAY)


def apply_late_penalty(score: float, late_penalty_pct: float, days: int) -> float:
    # Only the final score is floored; the penalty factor may go negative.
    penalty = late_penalty_pct * days / 100
    return max(0.0, score * (1 - penalty))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def final_grade(
    score: float,
    submitted_at: datetime,
    due_date: Optional[datetime],
    late_penalty_pct: float = 0,
) -> int:
    days = days_late(submitted_at, due_date)
    if days == 0 or not late_penalty_pct:
        return round_half_up(score)
    return round_half_up(apply_late_penalty(score, late_penalty_pct, days))
