"""Service for managing word lists and their words."""
import logging
from typing import List, Optional

from neonvocab.models.state_models import (
    PersistedState,
    WordItem,
    WordList,
    WordSort,
    default_wordlist,
    make_id,
    normalize_word,
)
from neonvocab.services.challenge_service import parse_words

logger = logging.getLogger(__name__)

DEFAULT_NEW_LIST_NAME = "My List"


class WordService:
    """Service for managing word lists in the persisted state."""

    def __init__(self, state: PersistedState):
        """Initialize the service with the state it operates on."""
        self.state = state

    @property
    def active(self) -> WordList:
        return self.state.active_wordlist

    def get_wordlist(self, wordlist_id: str) -> Optional[WordList]:
        """Get a word list by its ID."""
        return next((wl for wl in self.state.wordlists if wl.id == wordlist_id), None)

    def get_word(self, word_id: str) -> Optional[WordItem]:
        """Get a word of the active list by its ID."""
        return next((word for word in self.active.words if word.id == word_id), None)

    def import_words(self, text: str) -> List[WordItem]:
        """Add words from comma or newline separated text to the active list.

        Words already in the list, or repeated in the text, are skipped
        case-insensitively.
        """
        existing = {word.word.lower() for word in self.active.words}
        added = []
        for text_word in parse_words(text):
            key = text_word.lower()
            if key in existing:
                continue
            existing.add(key)
            added.append(WordItem.create(text_word))

        self.active.words.extend(added)
        logger.info(f"Imported {len(added)} words into list {self.active.name!r}")
        return added

    def remove_word(self, word_id: str) -> Optional[WordItem]:
        """Remove a word from the active list."""
        word = self.get_word(word_id)
        if not word:
            return None
        self.active.words.remove(word)
        self._forget_definitions([word])
        return word

    def create_wordlist(self, name: Optional[str] = None) -> WordList:
        """Create a new empty list and make it active."""
        list_name = (name or DEFAULT_NEW_LIST_NAME).strip() or DEFAULT_NEW_LIST_NAME
        wordlist = WordList(id=make_id(), name=list_name)
        self.state.wordlists.append(wordlist)
        self.state.active_wordlist_id = wordlist.id
        return wordlist

    def select_wordlist(self, wordlist_id: str) -> bool:
        """Make another list active."""
        if not self.get_wordlist(wordlist_id):
            logger.warning(f"Word list {wordlist_id} not found")
            return False
        self.state.active_wordlist_id = wordlist_id
        return True

    def rename_active_wordlist(self, name: str) -> bool:
        """Rename the active list. Blank names are ignored."""
        new_name = name.strip()
        if not new_name:
            return False
        self.active.name = new_name
        return True

    def clear_active_wordlist(self) -> List[WordItem]:
        """Remove every word from the active list."""
        removed = list(self.active.words)
        self.active.words.clear()
        self._forget_definitions(removed)
        return removed

    def delete_active_wordlist(self) -> Optional[WordList]:
        """Delete the active list. The last remaining list is cleared instead."""
        if len(self.state.wordlists) <= 1:
            self.clear_active_wordlist()
            return None

        deleted = self.active
        self.state.wordlists = [wl for wl in self.state.wordlists if wl.id != deleted.id]
        if not self.state.wordlists:
            self.state.wordlists = [default_wordlist()]
        self.state.active_wordlist_id = self.state.wordlists[0].id
        self._forget_definitions(deleted.words)
        return deleted

    def set_word_sort(self, sort: WordSort) -> None:
        self.state.word_sort = sort

    def sorted_words(self) -> List[WordItem]:
        """Words of the active list in the selected display order."""
        words = list(self.active.words)
        if self.state.word_sort == WordSort.CORRECT:
            return sorted(words, key=lambda w: (-w.success_count, w.word.lower()))
        return sorted(words, key=lambda w: w.word.lower())

    def _forget_definitions(self, removed: List[WordItem]) -> None:
        """Drop cached definitions no remaining list still needs."""
        remaining = {
            normalize_word(word.word)
            for wordlist in self.state.wordlists
            for word in wordlist.words
        }
        for word in removed:
            key = normalize_word(word.word)
            if key not in remaining:
                self.state.definition_cache.pop(key, None)
