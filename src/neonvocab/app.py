"""Main application: wires storage, the store and definition lookups."""
import asyncio
import logging
from typing import Dict, List, Optional

from neonvocab.config import settings
from neonvocab.models.base import init_db
from neonvocab.models.state_models import Definition, SessionGoal, SessionStatus, normalize_word
from neonvocab.models.training_models import ResultCommand
from neonvocab.services.challenge_service import load_wordlist_preset, parse_words
from neonvocab.services.definition_service import DefinitionService, get_definition_provider
from neonvocab.services.learning_service import VocabStore
from neonvocab.services.storage_service import StateRepository


class VocabApp:
    """Main application class.

    Loads the saved state on start, keeps definitions for the current and
    queued words loading in the background, and saves after every change
    and on stop.
    """

    def __init__(
        self,
        repository: Optional[StateRepository] = None,
        definition_service: Optional[DefinitionService] = None,
        store: Optional[VocabStore] = None,
    ):
        """Initialize the application."""
        self.repository = repository
        self.definition_service = definition_service
        self.store = store
        self.running = False
        self.prefetch_tasks: Dict[str, asyncio.Task] = {}
        self.logger = logging.getLogger(__name__)

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        try:
            if self.repository is None:
                init_db()
                self.repository = StateRepository()
                self.logger.info("Database initialized")

            if self.store is None:
                self.store = VocabStore(self.repository.load())

            if self.definition_service is None:
                self.definition_service = DefinitionService(get_definition_provider())
            self.definition_service.prime(self.store.persisted.definition_cache)
            self.logger.info("Definition service ready")

            self.running = True

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the application, saving the state."""
        try:
            await self.wait_for_prefetch()
            if self.store is not None and self.repository is not None:
                self.save()
            if self.definition_service is not None:
                await self.definition_service.aclose()
                self.logger.info("Definition service closed")
        finally:
            self.running = False

    def save(self) -> None:
        """Write the persisted state to the repository."""
        self.repository.save(self.store.persisted)

    # --- Definitions ---

    async def fetch_definition(self, word: str) -> Definition:
        """Get a word's definition, caching it in the store."""
        cached = self.store.definition_for(word)
        if cached is not None:
            return cached
        definition = await self.definition_service.get(word)
        self.store.cache_definition(word, definition)
        return definition

    def schedule_prefetch(self) -> List[asyncio.Task]:
        """Top up the queue and start loading definitions that are missing."""
        self.store.fill_queue_if_needed()
        started = []
        for word in self.store.words_needing_definitions():
            key = normalize_word(word)
            if key in self.prefetch_tasks:
                continue
            task = asyncio.create_task(self.fetch_definition(word))
            self.prefetch_tasks[key] = task
            task.add_done_callback(lambda _, key=key: self.prefetch_tasks.pop(key, None))
            started.append(task)
        if started:
            self.logger.debug(f"Prefetching {len(started)} definitions")
        return started

    async def wait_for_prefetch(self) -> None:
        """Wait until all running definition prefetches finish."""
        if self.prefetch_tasks:
            await asyncio.gather(*list(self.prefetch_tasks.values()), return_exceptions=True)

    async def current_definition(self) -> Optional[Definition]:
        """Definition of the word being asked, or None outside a session."""
        word = self.store.current_word
        if word is None:
            return None
        return await self.fetch_definition(word.word)

    # --- Session ---

    def import_preset(self, name: str) -> int:
        """Import a bundled word list into the active list."""
        added = self.store.import_words(load_wordlist_preset(name))
        self.save()
        return len(added)

    def start_session(self, goal: Optional[SessionGoal] = None) -> SessionStatus:
        status = self.store.start_session(goal)
        self.schedule_prefetch()
        return status

    def start_daily_challenge(self) -> SessionStatus:
        pool_name = settings.learning.daily_challenge_pool
        pool = parse_words(load_wordlist_preset(pool_name))
        status = self.store.start_daily_challenge(pool, pool_name=pool_name)
        self.schedule_prefetch()
        return status

    def submit_result(self, command: ResultCommand) -> None:
        """Apply the outcome of an answer attempt and save."""
        self.store.apply_result(
            command.success,
            command.reset_streak,
            command.reset_word_progress,
            command.points,
        )
        self.save()

    def next_word(self) -> SessionStatus:
        status = self.store.pick_next_word()
        if status == SessionStatus.GOAL_MET:
            # The daily challenge score may just have been recorded
            self.save()
        self.schedule_prefetch()
        return status

    def continue_session(self) -> SessionStatus:
        status = self.store.continue_session()
        self.schedule_prefetch()
        return status
