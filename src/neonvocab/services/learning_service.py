"""Learning session scheduler: word selection, mastery and goals."""
import logging
import random
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence

from neonvocab.config import LearningSettings, settings
from neonvocab.models.state_models import (
    DailyStats,
    Definition,
    GoalType,
    PersistedState,
    SessionGoal,
    SessionMode,
    SessionState,
    SessionStats,
    SessionStatus,
    WordItem,
    WordList,
    WordSort,
    normalize_word,
)
from neonvocab.monitoring import answers, goals_met, learning_sessions, words_mastered
from neonvocab.services.challenge_service import select_daily_challenge_words
from neonvocab.services.word_service import WordService

logger = logging.getLogger(__name__)


class VocabStore:
    """In-memory application state and the commands that change it.

    Holds the persisted state (word lists, stats, caches) and the session
    state (current word, pre-fetch queue, goal). All methods are synchronous;
    callers that fetch definitions do so outside and report back through
    cache_definition.
    """

    def __init__(
        self,
        persisted: Optional[PersistedState] = None,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None,
        learning_settings: Optional[LearningSettings] = None,
    ):
        self.persisted = persisted or PersistedState()
        self.clock = clock
        self.rng = rng or random.Random()
        self.config = learning_settings or settings.learning
        self.session = self._new_session()

    def _new_session(self, **kwargs) -> SessionState:
        return SessionState(stats=SessionStats(start_time=self.clock()), **kwargs)

    def _today(self) -> str:
        return self.clock().date().isoformat()

    # --- Queries ---

    @property
    def words(self) -> WordService:
        return WordService(self.persisted)

    @property
    def active_words(self) -> List[WordItem]:
        """Words the session draws from: the challenge words or the active list."""
        if self.session.is_daily_challenge and self.session.challenge_words is not None:
            return self.session.challenge_words.words
        return self.persisted.active_wordlist.words

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def current_word(self) -> Optional[WordItem]:
        index = self.session.current_word_index
        words = self.active_words
        if index is None or not 0 <= index < len(words):
            return None
        return words[index]

    @property
    def queued_words(self) -> List[WordItem]:
        words = self.active_words
        return [words[idx] for idx in self.session.word_queue if 0 <= idx < len(words)]

    @property
    def challenge_attempt_cap(self) -> int:
        return min(len(self.active_words), self.config.daily_challenge_max_attempts)

    @property
    def is_challenge_retry(self) -> bool:
        """Whether the running challenge already has a score for its day."""
        return (
            self.session.is_daily_challenge
            and self.session.challenge_date in self.persisted.daily_challenge_scores
        )

    def definition_for(self, word: str) -> Optional[Definition]:
        return self.persisted.definition_cache.get(normalize_word(word))

    def words_needing_definitions(self) -> List[str]:
        """Current and queued words whose definitions are not cached yet."""
        pending = []
        seen = set()
        candidates = ([self.current_word] if self.current_word else []) + self.queued_words
        for word in candidates:
            key = normalize_word(word.word)
            if key in seen or key in self.persisted.definition_cache:
                continue
            seen.add(key)
            pending.append(word.word)
        return pending

    # --- Session lifecycle ---

    def start_session(self, goal: Optional[SessionGoal] = None) -> SessionStatus:
        """Start a normal learning session on the active list."""
        previous_queue = self.session.word_queue if not self.session.is_daily_challenge else []
        self.session = self._new_session(
            status=SessionStatus.LEARNING,
            mode=SessionMode.NORMAL,
            goal=goal,
            word_queue=list(previous_queue),
        )
        self.persisted.last_session_goal = goal
        learning_sessions.labels(mode=SessionMode.NORMAL.value).inc()
        logger.info(f"Learning session started, goal: {goal}")
        return self.pick_next_word(is_initial=True)

    def start_daily_challenge(
        self,
        pool_words: Sequence[str],
        today: Optional[date] = None,
        pool_name: Optional[str] = None,
    ) -> SessionStatus:
        """Start the day's challenge on words drawn deterministically from a pool."""
        day = today or self.clock().date()
        words = select_daily_challenge_words(pool_words, day, pool_name, self.config.daily_challenge_size)
        challenge_list = WordList(
            id=f"daily-{day.isoformat()}",
            name="Daily Challenge",
            words=[WordItem.create(word) for word in words],
        )
        self.session = self._new_session(
            status=SessionStatus.LEARNING,
            mode=SessionMode.DAILY_CHALLENGE,
            goal=SessionGoal(GoalType.TIME, self.config.daily_challenge_minutes),
            challenge_words=challenge_list,
            challenge_date=day.isoformat(),
        )
        learning_sessions.labels(mode=SessionMode.DAILY_CHALLENGE.value).inc()
        if self.is_challenge_retry:
            logger.info(f"Daily challenge for {day.isoformat()} restarted as a retry, score is kept")
        return self.pick_next_word(is_initial=True)

    def end_session(self) -> None:
        """Leave the session. Session counters are discarded."""
        queue = [] if self.session.is_daily_challenge else list(self.session.word_queue)
        self.session = self._new_session(word_queue=queue)
        logger.info("Learning session ended")

    def continue_session(self) -> SessionStatus:
        """Keep learning after a goal was met. Daily challenges cannot continue."""
        if self.session.status != SessionStatus.GOAL_MET:
            return self.session.status
        if self.session.is_daily_challenge:
            logger.debug("Daily challenge is finished and cannot be continued")
            return self.session.status
        self.session.goal = None
        self.session.status = SessionStatus.LEARNING
        return self.pick_next_word()

    # --- Word selection ---

    def _goal_reached(self) -> bool:
        goal = self.session.goal
        stats = self.session.stats
        reached = False
        if goal is not None:
            if goal.type == GoalType.TOTAL_WORDS:
                reached = stats.words_tried >= goal.target
            elif goal.type == GoalType.CORRECT_WORDS:
                reached = stats.words_correct >= goal.target
            elif goal.type == GoalType.TIME:
                elapsed_minutes = (self.clock() - stats.start_time).total_seconds() / 60
                reached = elapsed_minutes >= goal.target
        if self.session.is_daily_challenge and not reached:
            reached = stats.words_tried >= self.challenge_attempt_cap
        return reached

    def _mark_goal_met(self) -> None:
        self.session.status = SessionStatus.GOAL_MET
        goal_type = self.session.goal.type.value if self.session.goal else "attempt_cap"
        goals_met.labels(goal_type=goal_type).inc()
        logger.info(f"Session goal met: {goal_type}")

        if not self.session.is_daily_challenge:
            return
        day = self.session.challenge_date or self._today()
        scores = self.persisted.daily_challenge_scores
        if day in scores:
            logger.info(f"Daily challenge score for {day} already recorded ({scores[day]}), keeping it")
            return
        scores[day] = self.session.stats.points
        logger.info(f"Daily challenge score for {day}: {scores[day]}")

    def pick_next_word(self, is_initial: bool = False) -> SessionStatus:
        """Select the next word, or finish the session.

        Unless this is the first pick of a session, the goal is checked first
        (so it sees the result of the last answer) and the word just shown is
        avoided when another unmastered word exists.
        """
        session = self.session
        if session.status != SessionStatus.LEARNING:
            return session.status

        if not is_initial and session.goal is not None and self._goal_reached():
            self._mark_goal_met()
            return session.status

        if session.is_daily_challenge:
            return self._pick_sequential()

        words = self.active_words
        avoid_index = session.current_word_index if not is_initial else None
        if avoid_index is not None and not 0 <= avoid_index < len(words):
            avoid_index = None
        has_alternative = avoid_index is not None and any(
            idx != avoid_index and not word.is_mastered for idx, word in enumerate(words)
        )

        next_index = None
        while session.word_queue:
            candidate = session.word_queue.pop(0)
            if not 0 <= candidate < len(words) or words[candidate].is_mastered:
                continue
            if has_alternative and candidate == avoid_index:
                continue
            next_index = candidate
            break

        if next_index is None:
            candidates = [idx for idx, word in enumerate(words) if not word.is_mastered]
            if not candidates:
                logger.info("No unmastered words left, session complete")
                session.status = SessionStatus.SESSION_COMPLETE
                session.current_word_index = None
                session.word_queue = []
                return session.status
            if avoid_index is not None and len(candidates) > 1:
                current_id = words[avoid_index].id
                candidates = [idx for idx in candidates if words[idx].id != current_id]
            next_index = self.rng.choice(candidates)

        session.current_word_index = next_index
        session.word_nonce += 1
        logger.debug(f"Next word index: {next_index}, queue: {session.word_queue}")
        return session.status

    def _pick_sequential(self) -> SessionStatus:
        session = self.session
        position = session.stats.words_tried
        if position >= self.challenge_attempt_cap:
            # Only reachable with an empty challenge
            session.status = SessionStatus.SESSION_COMPLETE
            session.current_word_index = None
            return session.status
        session.current_word_index = position
        session.word_nonce += 1
        return session.status

    def fill_queue_if_needed(self) -> List[int]:
        """Top up the pre-fetch queue with random unmastered words.

        Duplicates are avoided while the candidate pool is larger than the
        buffer; after a bounded number of retries a duplicate is accepted.
        Returns the indices that were added.
        """
        session = self.session
        if session.status != SessionStatus.LEARNING or session.is_daily_challenge:
            return []

        words = self.active_words
        buffer_size = self.config.preload_buffer_size
        if not words or len(session.word_queue) >= buffer_size:
            return []

        current = self.current_word
        candidates = [idx for idx, word in enumerate(words) if not word.is_mastered]
        if current is not None and len(candidates) > 1:
            candidates = [idx for idx in candidates if words[idx].id != current.id]
        if not candidates:
            return []

        added: List[int] = []
        for _ in range(buffer_size - len(session.word_queue)):
            idx = self.rng.choice(candidates)
            retries = 0
            while (
                (idx in session.word_queue or idx in added)
                and len(candidates) > buffer_size
                and retries < self.config.queue_retry_limit
            ):
                idx = self.rng.choice(candidates)
                retries += 1
            added.append(idx)

        session.word_queue.extend(added)
        return added

    # --- Answers ---

    def apply_result(
        self,
        success: bool,
        reset_streak_on_fail: bool,
        reset_word_progress_on_fail: bool = True,
        points: int = 0,
    ) -> Optional[WordItem]:
        """Record an answer for the current word.

        The goal is not checked here; the next pick_next_word call does that.
        """
        word = self.current_word
        if word is None:
            logger.warning("apply_result called without a selected word")
            return None

        daily = self.persisted.daily_stats.setdefault(self._today(), DailyStats())
        daily.tried += 1
        session_stats = self.session.stats
        session_stats.words_tried += 1
        word.total_attempts += 1

        if success:
            threshold = self.config.mastery_threshold
            was_mastered = word.is_mastered
            word.success_count = min(word.success_count + 1, threshold)
            word.is_mastered = word.success_count >= threshold
            daily.success += 1
            session_stats.words_correct += 1
            session_stats.points += points
            self.persisted.stats.streak += 1
            if word.is_mastered and not was_mastered:
                self.persisted.stats.total_words_learned += 1
                words_mastered.inc()
                logger.info(f"Word mastered: {word.word}")
        else:
            if reset_streak_on_fail:
                self.persisted.stats.streak = 0
            if reset_word_progress_on_fail:
                word.success_count = 0
                word.is_mastered = False

        answers.labels(result="success" if success else "failure").inc()
        return word

    # --- Definitions ---

    def cache_definition(self, word: str, definition: Definition) -> bool:
        """Store a definition unless one is cached already. Fallbacks are skipped."""
        if definition.is_fallback:
            return False
        key = normalize_word(word)
        if not key or key in self.persisted.definition_cache:
            return False
        self.persisted.definition_cache[key] = definition
        return True

    # --- Word lists ---

    def _stop_session(self) -> None:
        self.session = self._new_session()

    def import_words(self, text: str) -> List[WordItem]:
        return self.words.import_words(text)

    def remove_word(self, word_id: str) -> Optional[WordItem]:
        removed = self.words.remove_word(word_id)
        if removed:
            self._stop_session()
        return removed

    def create_wordlist(self, name: Optional[str] = None) -> WordList:
        wordlist = self.words.create_wordlist(name)
        self._stop_session()
        return wordlist

    def select_wordlist(self, wordlist_id: str) -> bool:
        selected = self.words.select_wordlist(wordlist_id)
        if selected:
            self._stop_session()
        return selected

    def rename_active_wordlist(self, name: str) -> bool:
        return self.words.rename_active_wordlist(name)

    def clear_active_wordlist(self) -> List[WordItem]:
        removed = self.words.clear_active_wordlist()
        self._stop_session()
        return removed

    def delete_active_wordlist(self) -> Optional[WordList]:
        deleted = self.words.delete_active_wordlist()
        self._stop_session()
        return deleted

    def set_word_sort(self, sort: WordSort) -> None:
        self.words.set_word_sort(sort)

    def reset_all_data(self) -> None:
        """Forget everything: lists, stats, caches and the session."""
        self.persisted = PersistedState()
        self._stop_session()
        logger.info("All data reset")
