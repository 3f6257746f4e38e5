"""Definition lookup service backed by a language-model provider."""
import asyncio
import json
import logging
import random
import re
import time
from typing import Awaitable, Callable, Dict, Optional, Protocol, TypeVar

import httpx
from google import genai
from google.genai import types
from openai import AsyncOpenAI

from neonvocab.config import DefinitionSettings, settings
from neonvocab.exceptions import DefinitionError
from neonvocab.models.state_models import FALLBACK_DEFINITION, Definition, normalize_word
from neonvocab.monitoring import definition_failures, definition_fetch_duration, definition_requests

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYSTEM_PROMPT = "You are a helpful dictionary assistant. Output JSON."

DEFINITION_PROMPT = """
Provide a JSON object with a dictionary definition for the word "{word}".
The definition should be clear and concise, suitable for a vocabulary learner.

Fields:
- "definition": the concise definition
- "partOfSpeech": the part of speech
- "exampleSentence": a short example sentence using the word, with the word replaced by '_____'
"""

DEFINITION_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "definition": types.Schema(type=types.Type.STRING),
        "partOfSpeech": types.Schema(type=types.Type.STRING),
        "exampleSentence": types.Schema(type=types.Type.STRING),
    },
    required=["definition", "partOfSpeech", "exampleSentence"],
)

CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_definition_payload(word: str, text: str) -> Definition:
    """Parse a provider's JSON text into a Definition."""
    cleaned = CODE_FENCE_RE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Fallback: extract the JSON object from surrounding prose
        match = re.search(r"\{.*\}", cleaned, re.DOTALL)
        if not match:
            raise DefinitionError(word, "response is not JSON")
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError as e:
            raise DefinitionError(word, f"response is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise DefinitionError(word, "response is not a JSON object")
    try:
        return Definition.from_data(data)
    except KeyError as e:
        raise DefinitionError(word, f"missing field {e}") from e


class DefinitionProvider(Protocol):
    """Anything that can fetch a definition for one word. Raises on failure."""

    async def fetch_definition(self, word: str) -> Definition:
        ...

    async def aclose(self) -> None:
        ...


class OpenAIDefinitionProvider:
    """Fetches definitions from an OpenAI-compatible chat completion API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: float = 20.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def fetch_definition(self, word: str) -> Definition:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": DEFINITION_PROMPT.format(word=word)},
            ],
            response_format={"type": "json_object"},
            temperature=0.2,
        )
        content = response.choices[0].message.content
        if content is None:
            raise DefinitionError(word, "empty response")
        return parse_definition_payload(word, content)

    async def aclose(self) -> None:
        await self.client.close()


class GeminiDefinitionProvider:
    """Fetches definitions from Gemini with a JSON response schema."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 20.0,
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        # HttpOptions.timeout is in milliseconds
        self.client = client or genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    async def fetch_definition(self, word: str) -> Definition:
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=DEFINITION_PROMPT.format(word=word),
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=DEFINITION_SCHEMA,
            ),
        )
        if not response.text:
            raise DefinitionError(word, "empty response")
        return parse_definition_payload(word, response.text)

    async def aclose(self) -> None:
        await self.client.aio.aclose()


class ProxyDefinitionProvider:
    """Fetches definitions from the proxy backend's /definition endpoint."""

    def __init__(self, base_url: str, timeout: float = 20.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_definition(self, word: str) -> Definition:
        response = await self.client.get(f"{self.base_url}/definition", params={"word": word})
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as e:
            raise DefinitionError(word, f"backend returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DefinitionError(word, "backend returned a non-object payload")
        try:
            return Definition.from_data(data)
        except KeyError as e:
            raise DefinitionError(word, f"missing field {e}") from e

    async def aclose(self) -> None:
        await self.client.aclose()


def get_definition_provider(definition_settings: Optional[DefinitionSettings] = None) -> DefinitionProvider:
    """Create the provider selected by DEFINITION_PROVIDER."""
    definition_settings = definition_settings or settings.definitions
    if definition_settings.provider == "proxy":
        logger.info(f"Using proxy backend for definitions: {definition_settings.api_base_url}")
        return ProxyDefinitionProvider(
            definition_settings.api_base_url,
            timeout=definition_settings.request_timeout,
        )
    if definition_settings.provider == "gemini":
        logger.info(f"Using Gemini for definitions, model: {definition_settings.gemini_model}")
        return GeminiDefinitionProvider(
            api_key=definition_settings.gemini_api_key,
            model=definition_settings.gemini_model,
            timeout=definition_settings.request_timeout,
        )
    if definition_settings.provider == "openai":
        logger.info(f"Using OpenAI for definitions, model: {definition_settings.openai_model}")
        return OpenAIDefinitionProvider(
            api_key=definition_settings.openai_api_key,
            model=definition_settings.openai_model,
            base_url=definition_settings.openai_base_url,
            timeout=definition_settings.request_timeout,
        )
    raise ValueError(f"Unknown definition provider: {definition_settings.provider}")


async def with_retries(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 0.25,
    max_jitter: float = 0.1,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> T:
    """Await fn, retrying with exponential backoff and jitter.

    The last error is re-raised once all attempts are used up.
    """
    rng = rng or random.Random()
    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as e:
            last_error = e
            if attempt == attempts:
                break
            delay = base_delay * 2 ** (attempt - 1) + rng.uniform(0, max_jitter)
            logger.warning(f"Attempt {attempt}/{attempts} failed: {e}; retrying in {delay:.2f}s")
            await sleep(delay)
    raise last_error


class DefinitionService:
    """Memoizing, de-duplicating definition lookup.

    Lookups are keyed by normalized word text. Concurrent lookups of the same
    word share one provider request. Failures degrade to FALLBACK_DEFINITION
    and are not cached, so a later lookup tries again.
    """

    def __init__(
        self,
        provider: DefinitionProvider,
        attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_jitter: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.attempts = attempts if attempts is not None else settings.definitions.retry_attempts
        self.base_delay = base_delay if base_delay is not None else settings.definitions.retry_base_delay
        self.max_jitter = max_jitter if max_jitter is not None else settings.definitions.retry_max_jitter
        self.sleep = sleep
        self._cache: Dict[str, Definition] = {}
        self._in_flight: Dict[str, "asyncio.Task[Definition]"] = {}

    def prime(self, entries: Dict[str, Definition]) -> None:
        """Seed the memory cache, e.g. from persisted definitions."""
        for word, entry in entries.items():
            if not entry.is_fallback:
                self._cache.setdefault(normalize_word(word), entry)

    def cached(self, word: str) -> Optional[Definition]:
        return self._cache.get(normalize_word(word))

    def is_in_flight(self, word: str) -> bool:
        return normalize_word(word) in self._in_flight

    async def get(self, word: str) -> Definition:
        """Get the definition for a word, fetching it at most once at a time."""
        key = normalize_word(word)
        if not key:
            return FALLBACK_DEFINITION

        cached = self._cache.get(key)
        if cached is not None:
            definition_requests.labels(source="memory").inc()
            return cached

        task = self._in_flight.get(key)
        if task is None:
            definition_requests.labels(source="provider").inc()
            task = asyncio.ensure_future(self._fetch(key, word.strip()))
            self._in_flight[key] = task
        else:
            definition_requests.labels(source="inflight").inc()
            logger.debug(f"Joining in-flight definition request for {key!r}")

        # A cancelled caller must not cancel the shared request
        return await asyncio.shield(task)

    async def _fetch(self, key: str, raw_word: str) -> Definition:
        started = time.monotonic()
        try:
            result = await with_retries(
                lambda: self.provider.fetch_definition(raw_word),
                attempts=self.attempts,
                base_delay=self.base_delay,
                max_jitter=self.max_jitter,
                sleep=self.sleep,
            )
        except Exception as e:
            logger.error(f"Error fetching definition for word: {raw_word}, error: {e}")
            definition_failures.inc()
            return FALLBACK_DEFINITION
        else:
            self._cache[key] = result
            logger.info(f"Definition fetched for word: {raw_word}")
            return result
        finally:
            definition_fetch_duration.observe(time.monotonic() - started)
            self._in_flight.pop(key, None)

    async def aclose(self) -> None:
        """Wait for in-flight requests, then close the provider."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)
        await self.provider.aclose()
