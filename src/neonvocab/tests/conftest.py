"""Test configuration."""
import os
import random
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEFINITION_PROVIDER"] = "proxy"

# Load test environment variables
test_env_path = Path(__file__).parents[3] / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from sqlalchemy.orm import sessionmaker

from neonvocab.config import LearningSettings
from neonvocab.models.base import create_db_engine, init_db
from neonvocab.services.learning_service import VocabStore

fake = Faker()

START_TIME = datetime(2024, 3, 14, 9, 30)


class FakeClock:
    """Clock returning a settable time."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def unique_words(count: int):
    """Distinct lowercase words from Faker."""
    words = set()
    while len(words) < count:
        words.add(fake.word().lower())
    return sorted(words)


@pytest.fixture
def make_words():
    return unique_words


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def learning_settings() -> LearningSettings:
    return LearningSettings(
        preload_buffer_size=3,
        queue_retry_limit=10,
        mastery_threshold=3,
        daily_challenge_size=10,
        daily_challenge_max_attempts=15,
        daily_challenge_minutes=5,
        daily_challenge_pool="sum",
    )


@pytest.fixture
def store(clock, rng, learning_settings) -> VocabStore:
    """Create a store with a fixed clock and seeded randomness."""
    return VocabStore(clock=clock, rng=rng, learning_settings=learning_settings)


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()
