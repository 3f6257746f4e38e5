"""Tests for the learning session scheduler."""
import random
from datetime import date

import pytest

from neonvocab.models.state_models import (
    FALLBACK_DEFINITION,
    Definition,
    GoalType,
    SessionGoal,
    SessionStatus,
)
from neonvocab.services.challenge_service import load_wordlist_preset, parse_words
from neonvocab.services.learning_service import VocabStore

CHALLENGE_DAY = date(2024, 3, 14)


def load(store: VocabStore, words) -> None:
    store.import_words("\n".join(words))


def current_index(store: VocabStore) -> int:
    return store.session.current_word_index


@pytest.fixture
def pool():
    return parse_words(load_wordlist_preset("sum"))


@pytest.fixture
def challenge_store(store, pool) -> VocabStore:
    store.start_daily_challenge(pool, today=CHALLENGE_DAY)
    return store


def test_start_session_picks_a_word(store, make_words):
    load(store, make_words(5))

    assert store.start_session() == SessionStatus.LEARNING
    assert store.current_word is not None
    assert store.session.word_nonce == 1
    assert store.persisted.last_session_goal is None


def test_start_session_on_empty_list_completes(store):
    assert store.start_session() == SessionStatus.SESSION_COMPLETE
    assert store.current_word is None


def test_start_session_remembers_goal(store, make_words):
    load(store, make_words(3))
    goal = SessionGoal(GoalType.TOTAL_WORDS, 5)

    store.start_session(goal)

    assert store.session.goal == goal
    assert store.persisted.last_session_goal == goal


def test_third_success_masters_word(store):
    load(store, ["cat"])
    word = store.active_words[0]
    word.success_count = 2
    store.start_session()

    assert store.apply_result(True, False) is word
    assert word.success_count == 3
    assert word.is_mastered
    assert store.persisted.stats.total_words_learned == 1
    assert store.persisted.stats.streak == 1


def test_success_count_is_capped(store):
    load(store, ["cat"])
    store.start_session()
    word = store.current_word

    for _ in range(5):
        store.apply_result(True, False)

    assert word.success_count == 3
    assert word.is_mastered
    assert word.total_attempts == 5
    assert store.persisted.stats.total_words_learned == 1
    assert store.persisted.stats.streak == 5


def test_failure_resets_word_and_streak(store):
    load(store, ["cat"])
    word = store.active_words[0]
    word.success_count = 2
    store.persisted.stats.streak = 4
    store.start_session()

    store.apply_result(False, True)

    assert word.success_count == 0
    assert not word.is_mastered
    assert store.persisted.stats.streak == 0
    assert store.session.stats.words_tried == 1
    assert store.session.stats.words_correct == 0


def test_suppressed_failure_keeps_progress(store):
    load(store, ["cat"])
    word = store.active_words[0]
    word.success_count = 2
    store.persisted.stats.streak = 4
    store.start_session()

    store.apply_result(False, False, False)

    assert word.success_count == 2
    assert store.persisted.stats.streak == 4
    assert word.total_attempts == 1


def test_points_only_added_on_success(store, make_words):
    load(store, make_words(3))
    store.start_session()

    store.apply_result(True, False, points=7)
    store.apply_result(False, True, points=10)

    assert store.session.stats.points == 7


def test_apply_result_without_word(store):
    assert store.apply_result(True, False) is None
    assert store.persisted.daily_stats == {}


def test_daily_stats_use_clock_date(store, clock, make_words):
    load(store, make_words(3))
    store.start_session()

    store.apply_result(True, False)
    store.apply_result(False, True)
    clock.advance(days=1)
    store.apply_result(True, False)

    assert store.persisted.daily_stats["2024-03-14"].tried == 2
    assert store.persisted.daily_stats["2024-03-14"].success == 1
    assert store.persisted.daily_stats["2024-03-15"].success == 1


def test_total_words_goal_checked_on_next_pick(store, make_words):
    load(store, make_words(3))
    store.start_session(SessionGoal(GoalType.TOTAL_WORDS, 5))

    for i in range(5):
        store.apply_result(False, False, False)
        if i < 4:
            assert store.pick_next_word() == SessionStatus.LEARNING

    # apply_result leaves the goal check to the next pick
    assert store.status == SessionStatus.LEARNING
    assert store.pick_next_word() == SessionStatus.GOAL_MET


def test_correct_words_goal(store, make_words):
    load(store, make_words(3))
    store.start_session(SessionGoal(GoalType.CORRECT_WORDS, 2))

    store.apply_result(True, False)
    assert store.pick_next_word() == SessionStatus.LEARNING
    store.apply_result(False, True)
    assert store.pick_next_word() == SessionStatus.LEARNING
    store.apply_result(True, False)
    assert store.pick_next_word() == SessionStatus.GOAL_MET


def test_time_goal(store, clock, make_words):
    load(store, make_words(3))
    store.start_session(SessionGoal(GoalType.TIME, 1))

    clock.advance(seconds=59)
    assert store.pick_next_word() == SessionStatus.LEARNING
    clock.advance(seconds=1)
    assert store.pick_next_word() == SessionStatus.GOAL_MET


def test_continue_session_clears_goal(store, make_words):
    load(store, make_words(3))
    store.start_session(SessionGoal(GoalType.TOTAL_WORDS, 1))
    store.apply_result(True, False)
    assert store.pick_next_word() == SessionStatus.GOAL_MET

    assert store.continue_session() == SessionStatus.LEARNING
    assert store.session.goal is None
    store.apply_result(True, False)
    assert store.pick_next_word() == SessionStatus.LEARNING


def test_continue_session_only_after_goal(store, make_words):
    load(store, make_words(3))
    store.start_session(SessionGoal(GoalType.TOTAL_WORDS, 10))

    assert store.continue_session() == SessionStatus.LEARNING
    assert store.session.goal == SessionGoal(GoalType.TOTAL_WORDS, 10)


def test_never_completes_while_unmastered_words_remain(store, make_words):
    load(store, make_words(4))
    answers = random.Random(7)
    status = store.start_session()

    for _ in range(200):
        if status == SessionStatus.SESSION_COMPLETE:
            break
        store.apply_result(answers.random() < 0.8, False, False)
        status = store.pick_next_word()
        if any(not word.is_mastered for word in store.active_words):
            assert status == SessionStatus.LEARNING
            assert not store.current_word.is_mastered

    assert status == SessionStatus.SESSION_COMPLETE
    assert all(word.is_mastered for word in store.active_words)
    assert store.session.word_queue == []
    assert store.persisted.stats.total_words_learned == 4


def test_next_word_differs_from_current(store):
    load(store, ["cat", "dog"])
    store.start_session()

    for _ in range(20):
        previous = store.current_word.id
        store.fill_queue_if_needed()
        store.pick_next_word()
        assert store.current_word.id != previous


def test_single_word_may_repeat(store):
    load(store, ["cat"])
    store.start_session()

    store.apply_result(False, True)

    assert store.pick_next_word() == SessionStatus.LEARNING
    assert store.current_word.word == "cat"


def test_queue_skips_mastered_words(store, make_words):
    load(store, make_words(4))
    store.start_session()
    current = current_index(store)
    mastered, other = [idx for idx in range(4) if idx != current][:2]
    store.active_words[mastered].success_count = 3
    store.active_words[mastered].is_mastered = True
    store.session.word_queue = [mastered, other]

    store.pick_next_word()

    assert current_index(store) == other
    assert store.session.word_queue == []


def test_queue_skips_current_word_when_alternative_exists(store, make_words):
    load(store, make_words(3))
    store.start_session()
    current = current_index(store)
    other = next(idx for idx in range(3) if idx != current)
    store.session.word_queue = [current, other]

    store.pick_next_word()

    assert current_index(store) == other


def test_fill_queue_tops_up_to_buffer(store, make_words):
    load(store, make_words(10))
    store.start_session()

    added = store.fill_queue_if_needed()

    assert len(added) == 3
    assert store.session.word_queue == added
    assert len(set(added)) == 3
    assert current_index(store) not in added
    assert store.fill_queue_if_needed() == []


def test_fill_queue_accepts_duplicates_for_small_lists(store):
    load(store, ["cat", "dog"])
    store.start_session()
    other = 1 - current_index(store)

    store.fill_queue_if_needed()

    assert store.session.word_queue == [other, other, other]


def test_fill_queue_only_while_learning(store, make_words):
    load(store, make_words(5))

    assert store.fill_queue_if_needed() == []


def test_fill_queue_ignores_mastered_words(store):
    load(store, ["cat", "dog", "owl"])
    for word in store.active_words[1:]:
        word.success_count = 3
        word.is_mastered = True
    store.start_session()

    store.fill_queue_if_needed()

    assert current_index(store) == 0
    assert store.session.word_queue == [0, 0, 0]


def test_restart_keeps_queue(store, make_words):
    load(store, make_words(10))
    store.start_session()
    store.fill_queue_if_needed()
    queue = list(store.session.word_queue)

    store.end_session()
    assert store.status == SessionStatus.NOT_LEARNING
    assert store.session.word_queue == queue

    store.start_session()
    assert current_index(store) == queue[0]
    assert store.session.word_queue == queue[1:]


def test_end_session_discards_counters(store, make_words):
    load(store, make_words(3))
    store.start_session()
    store.apply_result(True, False, points=10)

    store.end_session()

    assert store.session.stats.words_tried == 0
    assert store.session.stats.points == 0
    assert store.current_word is None
    assert store.persisted.stats.streak == 1


def test_removing_a_word_stops_session(store, make_words):
    load(store, make_words(3))
    store.start_session()
    word = store.current_word

    assert store.remove_word(word.id) is word

    assert store.status == SessionStatus.NOT_LEARNING
    assert word not in store.active_words


def test_switching_lists_stops_session(store, make_words):
    load(store, make_words(3))
    first_id = store.persisted.active_wordlist_id
    store.create_wordlist("Verbs")
    store.start_session()
    assert store.status == SessionStatus.SESSION_COMPLETE

    assert store.select_wordlist(first_id)
    assert store.status == SessionStatus.NOT_LEARNING
    assert len(store.active_words) == 3


def test_renaming_list_keeps_session(store, make_words):
    load(store, make_words(3))
    store.start_session()

    assert store.rename_active_wordlist("Renamed")

    assert store.status == SessionStatus.LEARNING
    assert store.persisted.active_wordlist.name == "Renamed"


def test_cache_definition_first_writer_wins(store):
    first = Definition("a small domesticated feline", "noun", "The _____ purred.")
    second = Definition("something else", "noun", "...")

    assert store.cache_definition(" Cat ", first)
    assert not store.cache_definition("cat", second)

    assert store.definition_for("CAT") == first


def test_cache_definition_skips_fallback(store):
    assert not store.cache_definition("cat", FALLBACK_DEFINITION)
    assert store.definition_for("cat") is None


def test_words_needing_definitions(store, make_words):
    load(store, make_words(10))
    store.start_session()
    store.fill_queue_if_needed()
    current = store.current_word.word
    store.cache_definition(current, Definition("d", "noun", "e"))

    pending = store.words_needing_definitions()

    assert current not in pending
    assert pending == list(dict.fromkeys(word.word for word in store.queued_words))


def test_reset_all_data(store, make_words):
    load(store, make_words(3))
    store.start_session()
    store.apply_result(True, False)
    store.cache_definition("cat", Definition("d", "noun", "e"))

    store.reset_all_data()

    assert store.status == SessionStatus.NOT_LEARNING
    assert store.active_words == []
    assert store.persisted.definition_cache == {}
    assert store.persisted.daily_stats == {}
    assert store.persisted.stats.streak == 0


class TestDailyChallenge:
    """Tests for the daily challenge mode."""

    def test_words_are_deterministic(self, challenge_store, pool, clock, learning_settings):
        other = VocabStore(clock=clock, rng=random.Random(99), learning_settings=learning_settings)
        other.start_daily_challenge(pool, today=CHALLENGE_DAY)

        words = [word.word for word in challenge_store.active_words]
        assert len(words) == 10
        assert len({word.lower() for word in words}) == 10
        assert words == [word.word for word in other.active_words]

    def test_words_change_with_the_day(self, challenge_store, pool, clock, learning_settings):
        other = VocabStore(clock=clock, learning_settings=learning_settings)
        other.start_daily_challenge(pool, today=date(2024, 3, 15))

        assert [w.word for w in challenge_store.active_words] != [w.word for w in other.active_words]

    def test_does_not_touch_wordlists(self, challenge_store):
        assert challenge_store.persisted.active_wordlist.words == []
        assert challenge_store.session.is_daily_challenge
        assert challenge_store.session.goal == SessionGoal(GoalType.TIME, 5)

    def test_words_are_shown_in_order(self, challenge_store):
        assert current_index(challenge_store) == 0

        for expected in range(1, 4):
            challenge_store.apply_result(False, True)
            challenge_store.pick_next_word()
            assert current_index(challenge_store) == expected

    def test_queue_is_not_filled(self, challenge_store):
        assert challenge_store.fill_queue_if_needed() == []
        assert challenge_store.queued_words == []

    def test_time_goal_records_score(self, challenge_store, clock):
        challenge_store.apply_result(True, False, points=10)
        assert challenge_store.pick_next_word() == SessionStatus.LEARNING
        clock.advance(minutes=5, seconds=1)

        assert challenge_store.pick_next_word() == SessionStatus.GOAL_MET
        assert challenge_store.persisted.daily_challenge_scores == {"2024-03-14": 10}
        assert challenge_store.continue_session() == SessionStatus.GOAL_MET

    def test_retry_keeps_first_score(self, challenge_store, pool, clock):
        challenge_store.apply_result(True, False, points=10)
        clock.advance(minutes=5, seconds=1)
        challenge_store.pick_next_word()

        challenge_store.start_daily_challenge(pool, today=CHALLENGE_DAY)
        assert challenge_store.is_challenge_retry
        for _ in range(3):
            challenge_store.apply_result(True, False, points=10)
            challenge_store.pick_next_word()
        clock.advance(minutes=6)

        assert challenge_store.pick_next_word() == SessionStatus.GOAL_MET
        assert challenge_store.persisted.daily_challenge_scores["2024-03-14"] == 10

    def test_attempt_cap_ends_challenge(self, challenge_store):
        for _ in range(9):
            challenge_store.apply_result(False, False, False)
            assert challenge_store.pick_next_word() == SessionStatus.LEARNING

        challenge_store.apply_result(False, False, False)

        assert challenge_store.pick_next_word() == SessionStatus.GOAL_MET
        assert challenge_store.persisted.daily_challenge_scores["2024-03-14"] == 0

    def test_ending_drops_challenge(self, challenge_store):
        challenge_store.end_session()

        assert not challenge_store.session.is_daily_challenge
        assert challenge_store.session.word_queue == []
        assert challenge_store.active_words == []
