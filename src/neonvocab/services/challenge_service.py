"""Word list presets and deterministic daily challenge sampling."""
import logging
import random
import re
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence, TypeVar

from neonvocab.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

UINT32_MASK = 0xFFFFFFFF
FNV_OFFSET_BASIS = 2166136261
WORD_SEPARATORS = re.compile(r"[\n,]+")


def parse_words(raw: str) -> List[str]:
    """Split raw text on newlines and commas, dropping blank entries."""
    return [part.strip() for part in WORD_SEPARATORS.split(raw) if part.strip()]


def available_presets(wordlists_dir: Optional[Path] = None) -> List[str]:
    """Names of the bundled word list presets."""
    wordlists_dir = wordlists_dir or settings.paths.wordlists_dir
    return sorted(path.stem for path in wordlists_dir.glob("*.txt"))


def load_wordlist_preset(name: str, wordlists_dir: Optional[Path] = None) -> str:
    """Return the raw text of a bundled word list preset."""
    wordlists_dir = wordlists_dir or settings.paths.wordlists_dir
    if name not in available_presets(wordlists_dir):
        raise ValueError(f"Unknown word list preset: {name}")
    return (wordlists_dir / f"{name}.txt").read_text(encoding="utf-8")


def string_to_seed(text: str) -> int:
    """Hash a string into a 32-bit seed (FNV-1a style with shift mixing).

    Characters are consumed as UTF-16 code units so the seed matches
    implementations that hash JavaScript strings.
    """
    h = FNV_OFFSET_BASIS
    encoded = text.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        h ^= encoded[i] | (encoded[i + 1] << 8)
        h = (h + (h << 1) + (h << 4) + (h << 7) + (h << 8) + (h << 24)) & UINT32_MASK
    return h


class Mulberry32:
    """Small deterministic PRNG producing floats in [0, 1)."""

    def __init__(self, seed: int):
        self.state = seed & UINT32_MASK

    def random(self) -> float:
        self.state = (self.state + 0x6D2B79F5) & UINT32_MASK
        t = self.state
        r = ((t ^ (t >> 15)) * (1 | t)) & UINT32_MASK
        r ^= (r + (((r ^ (r >> 7)) * (61 | r)) & UINT32_MASK)) & UINT32_MASK
        return ((r ^ (r >> 14)) & UINT32_MASK) / 4294967296


def pick_random_unique(items: Sequence[T], count: int, rng: Optional[random.Random] = None) -> List[T]:
    """Pick up to count distinct positions from items at random."""
    rng = rng or random.Random()
    return _pick_unique(items, count, rng.random)


def pick_seeded_random_unique(items: Sequence[T], count: int, seed: str) -> List[T]:
    """Pick up to count distinct positions from items, reproducibly for a seed string."""
    return _pick_unique(items, count, Mulberry32(string_to_seed(seed)).random)


def _pick_unique(items: Sequence[T], count: int, next_float) -> List[T]:
    result: List[T] = []
    if count <= 0 or not items:
        return result
    pool = list(items)
    while len(result) < count and pool:
        idx = int(next_float() * len(pool))
        result.append(pool.pop(idx))
    return result


def daily_seed(pool_name: str, day: date) -> str:
    """Seed string shared by every session on the same day."""
    return f"{pool_name}-{day.isoformat()}"


def select_daily_challenge_words(
    pool_words: Sequence[str],
    day: date,
    pool_name: Optional[str] = None,
    count: Optional[int] = None,
) -> List[str]:
    """Select the day's challenge words from a pool.

    The pool is de-duplicated case-insensitively first so the challenge
    never repeats a word.
    """
    pool_name = pool_name or settings.learning.daily_challenge_pool
    count = count or settings.learning.daily_challenge_size

    seen = set()
    unique_words = []
    for word in pool_words:
        key = word.strip().lower()
        if key and key not in seen:
            seen.add(key)
            unique_words.append(word.strip())

    words = pick_seeded_random_unique(unique_words, count, daily_seed(pool_name, day))
    logger.info(f"Daily challenge for {day.isoformat()} drew {len(words)} words from {pool_name!r}")
    return words
