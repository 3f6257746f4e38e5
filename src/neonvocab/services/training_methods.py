"""Answer evaluation for the type-the-word training method."""
import logging
from typing import Optional

from neonvocab.models.state_models import WordItem
from neonvocab.models.training_models import AnswerOutcome, ResultCommand

logger = logging.getLogger(__name__)

# Hint levels: 0 none, 1 word length, n >= 2 reveals the first n - 1 letters
LENGTH_HINT_LEVEL = 1
MAX_SUCCESS_HINT_LEVEL = 2
POINTS_BY_HINT_LEVEL = {0: 10, 1: 7, 2: 5}
ALWAYS_SHOWN = (" ", "-")


class AnswerAttempt:
    """One attempt at recalling a word from its definition.

    Produces the ResultCommand to pass to VocabStore.apply_result once the
    attempt ends:

    - correct with at most one letter revealed: success, points by hint level
    - correct with more letters revealed: neither success nor failure; streak
      and word progress are kept
    - given up, or hints reaching half the word: failure with full resets
    """

    def __init__(self, word: WordItem):
        self.word = word
        self.hint_level = 0
        self.mistakes = 0
        self.outcome = AnswerOutcome.PENDING

    @property
    def is_finished(self) -> bool:
        return self.outcome != AnswerOutcome.PENDING

    def exceeds_hint_limit(self, level: int) -> bool:
        """Whether a hint level would reveal half of the word or more."""
        chars_revealed = level - 1 if level > LENGTH_HINT_LEVEL else 0
        return chars_revealed >= len(self.word.word) / 2

    def submit(self, text: str) -> Optional[ResultCommand]:
        """Check an answer. Returns a command when the attempt ends."""
        if self.is_finished:
            return None

        if text.strip().lower() == self.word.word.strip().lower():
            if self.hint_level <= MAX_SUCCESS_HINT_LEVEL:
                self.outcome = AnswerOutcome.SUCCESS
                return ResultCommand(
                    success=True,
                    reset_streak=False,
                    points=POINTS_BY_HINT_LEVEL[self.hint_level],
                )
            self.outcome = AnswerOutcome.ASSISTED
            return ResultCommand(success=False, reset_streak=False, reset_word_progress=False)

        self.mistakes += 1
        logger.debug(f"Wrong answer for {self.word.word!r}, mistakes: {self.mistakes}")
        return self._escalate_hint()

    def request_hint(self) -> Optional[ResultCommand]:
        """Show more of the word. Gives up once the hint limit is reached."""
        if self.is_finished:
            return None
        return self._escalate_hint()

    def give_up(self) -> Optional[ResultCommand]:
        """Reveal the answer."""
        if self.is_finished:
            return None
        self.outcome = AnswerOutcome.GAVE_UP
        return ResultCommand(success=False, reset_streak=True, reset_word_progress=True)

    def _escalate_hint(self) -> Optional[ResultCommand]:
        next_level = self.hint_level + 1
        if self.exceeds_hint_limit(next_level):
            return self.give_up()
        self.hint_level = next_level
        return None

    def hint_text(self) -> Optional[str]:
        """Text of the current hint, if any."""
        if self.hint_level == 0:
            return None

        word = self.word.word
        if self.hint_level == LENGTH_HINT_LEVEL:
            return f"{' '.join('_' * len(word))} ({len(word)} letters)"

        shown = min(self.hint_level - 1, len(word))
        return " ".join(
            char if i < shown or char in ALWAYS_SHOWN else "_"
            for i, char in enumerate(word)
        )
