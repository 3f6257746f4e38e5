"""Models for answer evaluation."""
from dataclasses import dataclass
from enum import Enum


class AnswerOutcome(Enum):
    """How an answer attempt ended."""
    PENDING = "pending"  # still waiting for input
    SUCCESS = "success"  # correct with few hints
    ASSISTED = "assisted"  # correct, but too many hints
    GAVE_UP = "gave_up"  # answer revealed


@dataclass(frozen=True)
class ResultCommand:
    """Arguments for VocabStore.apply_result produced by an answer attempt."""
    success: bool
    reset_streak: bool
    reset_word_progress: bool = True
    points: int = 0
