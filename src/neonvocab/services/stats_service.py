"""Statistics derived from answers: streaks, velocity and estimates."""
import logging
import math
from collections import deque
from datetime import date, datetime, timedelta
from typing import Deque, Dict, List, Mapping, Optional, Sequence, Tuple

from neonvocab.config import MASTERY_THRESHOLD
from neonvocab.models.state_models import DailyStats, GoalType, SessionGoal, SessionStats, WordItem

logger = logging.getLogger(__name__)

VELOCITY_WINDOW_SECONDS = 60
MIN_WINDOW_MINUTES = 0.1


def _has_activity(daily_stats: Mapping[str, DailyStats], day: date) -> bool:
    tally = daily_stats.get(day.isoformat())
    return tally is not None and tally.tried > 0


def day_streak(daily_stats: Mapping[str, DailyStats], today: date) -> int:
    """Count consecutive active days ending today, or yesterday if today is idle."""
    current = today
    if not _has_activity(daily_stats, current):
        current -= timedelta(days=1)
        if not _has_activity(daily_stats, current):
            return 0

    streak = 0
    while _has_activity(daily_stats, current):
        streak += 1
        current -= timedelta(days=1)
    return streak


class VelocityMeter:
    """Correct answers per minute over a rolling window.

    Feed it the session's correct count at regular intervals; the rate is
    the growth between the oldest and newest sample inside the window.
    """

    def __init__(self, window_seconds: float = VELOCITY_WINDOW_SECONDS):
        self.window_seconds = window_seconds
        self.samples: Deque[Tuple[float, int]] = deque()

    def reset(self) -> None:
        self.samples.clear()

    def sample(self, now: float, correct: int) -> int:
        """Record a sample taken at `now` (seconds) and return words per minute."""
        self.samples.append((now, correct))
        cutoff = now - self.window_seconds
        while self.samples and self.samples[0][0] < cutoff:
            self.samples.popleft()

        if len(self.samples) < 2:
            return 0

        oldest_time, oldest_correct = self.samples[0]
        window_minutes = (now - oldest_time) / 60
        delta = max(0, correct - oldest_correct)
        return math.floor(delta / max(window_minutes, MIN_WINDOW_MINUTES) + 0.5)


def estimate_completion_days(
    words: Sequence[WordItem],
    daily_stats: Mapping[str, DailyStats],
) -> Optional[int]:
    """Days needed to master the remaining words at the historical pace.

    The pace is the average number of words mastered per active day,
    taking MASTERY_THRESHOLD successes per word. Returns None without
    any history to go on.
    """
    remaining = sum(1 for word in words if not word.is_mastered)
    if remaining == 0:
        return 0

    active_days = [tally for tally in daily_stats.values() if tally.tried > 0]
    if not active_days:
        return None
    total_success = sum(tally.success for tally in daily_stats.values())
    avg_daily_mastery = total_success / len(active_days) / MASTERY_THRESHOLD
    if avg_daily_mastery <= 0:
        return None
    return math.ceil(remaining / avg_daily_mastery)


def weekly_chart(
    daily_stats: Mapping[str, DailyStats],
    today: date,
    days: int = 7,
) -> List[Tuple[str, DailyStats]]:
    """Daily tallies for the last `days` days, oldest first."""
    chart = []
    for offset in range(days - 1, -1, -1):
        key = (today - timedelta(days=offset)).isoformat()
        chart.append((key, daily_stats.get(key) or DailyStats()))
    return chart


def challenge_chart(scores: Mapping[str, int], today: date, days: int = 7) -> List[Tuple[str, int]]:
    """Daily challenge scores for the last `days` days, oldest first."""
    return [
        (key, scores.get(key, 0))
        for key in ((today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1))
    ]


def today_challenge_score(scores: Dict[str, int], today: date) -> Optional[int]:
    return scores.get(today.isoformat())


def current_goal_value(goal: Optional[SessionGoal], stats: SessionStats, now: datetime) -> int:
    """Progress towards a goal in the goal's own unit."""
    if goal is None:
        return 0
    if goal.type == GoalType.TIME:
        return int((now - stats.start_time).total_seconds() // 60)
    if goal.type == GoalType.TOTAL_WORDS:
        return stats.words_tried
    if goal.type == GoalType.CORRECT_WORDS:
        return stats.words_correct
    return 0
