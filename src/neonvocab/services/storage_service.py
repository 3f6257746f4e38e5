"""Service for loading and saving the persisted state."""
import logging
from typing import Callable

from sqlalchemy.orm import Session

from neonvocab.models.base import SessionLocal
from neonvocab.models.models import StoredRecord
from neonvocab.models.state_models import RECORD_LEGACY_WORDS, PersistedState
from neonvocab.monitoring import state_saves

logger = logging.getLogger(__name__)


class StateRepository:
    """Stores the persisted state as JSON records, one per state slice.

    Session counters never reach this layer: only PersistedState is saved,
    and loading always yields a state without a running session.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        """Initialize the repository with a database session factory."""
        self.session_factory = session_factory

    def load(self) -> PersistedState:
        """Load the saved state, or defaults when nothing was saved."""
        with self.session_factory() as db:
            records = {record.key: record.payload for record in db.query(StoredRecord).all()}
        if not records:
            logger.info("No saved state found, starting fresh")
        state = PersistedState.from_records(records)
        logger.info(
            f"Loaded state: {len(state.wordlists)} lists, "
            f"{len(state.definition_cache)} cached definitions"
        )
        return state

    def save(self, state: PersistedState) -> None:
        """Write every slice of the state. Last writer wins."""
        with self.session_factory() as db:
            for key, payload in state.to_records().items():
                record = db.get(StoredRecord, key)
                if payload is None:
                    if record is not None:
                        db.delete(record)
                    continue
                if record is None:
                    db.add(StoredRecord(key=key, payload=payload))
                else:
                    record.payload = payload

            # Migrated into the list records on load
            legacy = db.get(StoredRecord, RECORD_LEGACY_WORDS)
            if legacy is not None:
                db.delete(legacy)
            db.commit()
        state_saves.inc()
        logger.debug("State saved")

    def clear(self) -> None:
        """Delete all saved records."""
        with self.session_factory() as db:
            db.query(StoredRecord).delete()
            db.commit()
        logger.info("Saved state cleared")
