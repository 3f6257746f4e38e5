"""Models for the learning state kept by the store."""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from neonvocab.config import MASTERY_THRESHOLD

logger = logging.getLogger(__name__)

DEFAULT_WORDLIST_ID = "default"
DEFAULT_WORDLIST_NAME = "Default"

# Record keys used for persistence
RECORD_WORDLISTS = "wordlists"
RECORD_ACTIVE_WORDLIST = "active_wordlist"
RECORD_WORD_SORT = "word_sort"
RECORD_STATS = "stats"
RECORD_DAILY_STATS = "daily_stats"
RECORD_DEFINITIONS = "definition_cache"
RECORD_LAST_GOAL = "last_session_goal"
RECORD_CHALLENGE_SCORES = "daily_challenge_scores"
RECORD_LEGACY_WORDS = "words"

RECORD_KEYS = (
    RECORD_WORDLISTS,
    RECORD_ACTIVE_WORDLIST,
    RECORD_WORD_SORT,
    RECORD_STATS,
    RECORD_DAILY_STATS,
    RECORD_DEFINITIONS,
    RECORD_LAST_GOAL,
    RECORD_CHALLENGE_SCORES,
)


def make_id() -> str:
    """Generate an identifier for words and lists."""
    return uuid.uuid4().hex


def normalize_word(word: str) -> str:
    """Normalize word text for use as a cache key."""
    return word.strip().lower()


class GoalType(Enum):
    """Session stopping conditions."""
    TIME = "time"  # minutes since session start
    TOTAL_WORDS = "total_words"  # words attempted
    CORRECT_WORDS = "correct_words"  # words answered correctly


class SessionStatus(Enum):
    """States of the learning session."""
    NOT_LEARNING = "not_learning"
    LEARNING = "learning"
    GOAL_MET = "goal_met"
    SESSION_COMPLETE = "session_complete"


class SessionMode(Enum):
    """Kinds of learning session."""
    NORMAL = "normal"
    DAILY_CHALLENGE = "daily_challenge"


class WordSort(Enum):
    """Orderings for displaying a word list."""
    ALPHA = "alpha"
    CORRECT = "correct"


@dataclass
class WordItem:
    """A word being learned and its mastery progress."""
    id: str
    word: str
    success_count: int = 0
    is_mastered: bool = False
    total_attempts: int = 0

    @classmethod
    def create(cls, word: str) -> "WordItem":
        return cls(id=make_id(), word=word)

    def to_data(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "word": self.word,
            "success_count": self.success_count,
            "is_mastered": self.is_mastered,
            "total_attempts": self.total_attempts,
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "WordItem":
        success_count = min(max(int(data.get("success_count", 0)), 0), MASTERY_THRESHOLD)
        return cls(
            id=str(data.get("id") or make_id()),
            word=str(data["word"]),
            success_count=success_count,
            is_mastered=success_count >= MASTERY_THRESHOLD,
            total_attempts=int(data.get("total_attempts", 0)),
        )


@dataclass
class WordList:
    """A named, ordered collection of words."""
    id: str
    name: str
    words: List[WordItem] = field(default_factory=list)

    @property
    def unmastered(self) -> List[WordItem]:
        return [word for word in self.words if not word.is_mastered]

    def to_data(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "words": [word.to_data() for word in self.words],
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "WordList":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or DEFAULT_WORDLIST_NAME),
            words=[WordItem.from_data(item) for item in data.get("words", [])],
        )


def default_wordlist() -> WordList:
    return WordList(id=DEFAULT_WORDLIST_ID, name=DEFAULT_WORDLIST_NAME)


def ensure_non_empty_wordlists(wordlists: Optional[List[WordList]]) -> List[WordList]:
    """Return the given lists, or a single default list when there are none."""
    if wordlists:
        return wordlists
    return [default_wordlist()]


@dataclass(frozen=True)
class Definition:
    """Dictionary-style definition of a word."""
    definition: str
    part_of_speech: str
    example_sentence: str

    @property
    def is_fallback(self) -> bool:
        return self == FALLBACK_DEFINITION

    def to_data(self) -> Dict[str, str]:
        return {
            "definition": self.definition,
            "part_of_speech": self.part_of_speech,
            "example_sentence": self.example_sentence,
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "Definition":
        """Build a definition from stored or provider data.

        Provider payloads use camelCase keys, stored records use snake_case.
        Raises KeyError when a field is missing.
        """
        def pick(*keys: str) -> str:
            for key in keys:
                if data.get(key) is not None:
                    return str(data[key])
            raise KeyError(keys[0])

        return cls(
            definition=pick("definition"),
            part_of_speech=pick("part_of_speech", "partOfSpeech"),
            example_sentence=pick("example_sentence", "exampleSentence"),
        )


FALLBACK_DEFINITION = Definition(
    definition="Definition unavailable. Check network or API config.",
    part_of_speech="unknown",
    example_sentence="...",
)


@dataclass
class SessionGoal:
    """Stopping condition for a learning session."""
    type: GoalType
    target: float

    def to_data(self) -> Dict[str, Any]:
        return {"type": self.type.value, "target": self.target}

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "SessionGoal":
        return cls(type=GoalType(data["type"]), target=float(data["target"]))


@dataclass
class AppStats:
    """Cumulative statistics that survive restarts."""
    streak: int = 0
    total_words_learned: int = 0

    def to_data(self) -> Dict[str, int]:
        return {"streak": self.streak, "total_words_learned": self.total_words_learned}

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "AppStats":
        return cls(
            streak=int(data.get("streak") or 0),
            total_words_learned=int(data.get("total_words_learned") or 0),
        )


@dataclass
class SessionStats:
    """Per-session counters. Never persisted."""
    start_time: datetime
    words_tried: int = 0
    words_correct: int = 0
    points: int = 0


@dataclass
class DailyStats:
    """Tally of answers for one calendar day."""
    tried: int = 0
    success: int = 0

    def to_data(self) -> Dict[str, int]:
        return {"tried": self.tried, "success": self.success}

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "DailyStats":
        return cls(tried=int(data.get("tried") or 0), success=int(data.get("success") or 0))


@dataclass
class PersistedState:
    """Everything that is written to storage."""
    wordlists: List[WordList] = field(default_factory=lambda: [default_wordlist()])
    active_wordlist_id: str = DEFAULT_WORDLIST_ID
    word_sort: WordSort = WordSort.ALPHA
    stats: AppStats = field(default_factory=AppStats)
    daily_stats: Dict[str, DailyStats] = field(default_factory=dict)
    definition_cache: Dict[str, Definition] = field(default_factory=dict)
    last_session_goal: Optional[SessionGoal] = None
    daily_challenge_scores: Dict[str, int] = field(default_factory=dict)

    @property
    def active_wordlist(self) -> WordList:
        """The selected list, falling back to the first one."""
        for wordlist in self.wordlists:
            if wordlist.id == self.active_wordlist_id:
                return wordlist
        return self.wordlists[0]

    def to_records(self) -> Dict[str, Any]:
        """Serialize into JSON-compatible records keyed by record name."""
        return {
            RECORD_WORDLISTS: [wordlist.to_data() for wordlist in self.wordlists],
            RECORD_ACTIVE_WORDLIST: self.active_wordlist_id,
            RECORD_WORD_SORT: self.word_sort.value,
            RECORD_STATS: self.stats.to_data(),
            RECORD_DAILY_STATS: {day: tally.to_data() for day, tally in self.daily_stats.items()},
            RECORD_DEFINITIONS: {word: entry.to_data() for word, entry in self.definition_cache.items()},
            RECORD_LAST_GOAL: self.last_session_goal.to_data() if self.last_session_goal else None,
            RECORD_CHALLENGE_SCORES: dict(self.daily_challenge_scores),
        }

    @classmethod
    def from_records(cls, records: Dict[str, Any]) -> "PersistedState":
        """Rebuild state from stored records.

        A record that cannot be parsed is logged and replaced by its default.
        """
        state = cls()

        def load(key: str, parse) -> None:
            if records.get(key) is None:
                return
            try:
                parse(records[key])
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.error(f"Ignoring corrupt record {key!r}: {e}")

        def parse_wordlists(data):
            state.wordlists = ensure_non_empty_wordlists([WordList.from_data(item) for item in data])

        def parse_legacy_words(data):
            state.wordlists = [
                WordList(
                    id=DEFAULT_WORDLIST_ID,
                    name=DEFAULT_WORDLIST_NAME,
                    words=[WordItem.from_data(item) for item in data],
                )
            ]
            logger.info(f"Migrated {len(data)} legacy words into the default list")

        def parse_active(data):
            state.active_wordlist_id = str(data)

        def parse_sort(data):
            state.word_sort = WordSort(data)

        def parse_stats(data):
            state.stats = AppStats.from_data(data)

        def parse_daily(data):
            state.daily_stats = {day: DailyStats.from_data(tally) for day, tally in data.items()}

        def parse_definitions(data):
            state.definition_cache = {
                normalize_word(word): Definition.from_data(entry) for word, entry in data.items()
            }

        def parse_goal(data):
            state.last_session_goal = SessionGoal.from_data(data)

        def parse_scores(data):
            state.daily_challenge_scores = {day: int(score) for day, score in data.items()}

        if records.get(RECORD_WORDLISTS) is not None:
            load(RECORD_WORDLISTS, parse_wordlists)
        else:
            load(RECORD_LEGACY_WORDS, parse_legacy_words)
        load(RECORD_ACTIVE_WORDLIST, parse_active)
        load(RECORD_WORD_SORT, parse_sort)
        load(RECORD_STATS, parse_stats)
        load(RECORD_DAILY_STATS, parse_daily)
        load(RECORD_DEFINITIONS, parse_definitions)
        load(RECORD_LAST_GOAL, parse_goal)
        load(RECORD_CHALLENGE_SCORES, parse_scores)

        if not any(wordlist.id == state.active_wordlist_id for wordlist in state.wordlists):
            state.active_wordlist_id = state.wordlists[0].id
        return state


@dataclass
class SessionState:
    """Transient state of the current learning session."""
    stats: SessionStats
    status: SessionStatus = SessionStatus.NOT_LEARNING
    mode: SessionMode = SessionMode.NORMAL
    current_word_index: Optional[int] = None
    word_queue: List[int] = field(default_factory=list)
    goal: Optional[SessionGoal] = None
    word_nonce: int = 0  # bumped on every new pick
    challenge_words: Optional[WordList] = None
    challenge_date: Optional[str] = None

    @property
    def is_learning(self) -> bool:
        return self.status != SessionStatus.NOT_LEARNING

    @property
    def is_daily_challenge(self) -> bool:
        return self.mode == SessionMode.DAILY_CHALLENGE
