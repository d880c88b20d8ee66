"""Topic providers and the bounded-time request used to start a round."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog
from pydantic import ValidationError

from .config import SyncSettings
from .errors import TopicProviderError
from .models import TopicResponse

logger = structlog.get_logger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

TOPIC_PROMPT = (
    "Generate a creative, common-knowledge topic for a social deduction game. "
    "It MUST be a single, simple noun (e.g., 'Toaster', 'Eiffel Tower', 'Penguin'). "
    "Avoid activities, phrases, or verbs."
)

_BANK_SOURCE: dict[str, tuple[str, ...]] = {
    "Location": (
        "Submarine", "Zoo", "Library", "Casino", "Space Station", "Theater", "Airport", "Circus",
        "Police Station", "Hospital", "Amusement Park", "Art Gallery", "Bowling Alley", "Campground",
        "Cruise Ship", "Desert", "Embassy", "Fire Station", "Gas Station", "School", "Ice Rink",
        "Jungle", "Kitchen", "Lighthouse", "Military Base", "Nightclub", "Opera House", "Pharmacy",
        "Restaurant", "Ski Resort", "Treehouse", "Bunker", "Volcano", "Water Park", "Castle",
        "Prison", "Subway", "Graveyard",
    ),
    "Job": (
        "Astronaut", "Chef", "Plumber", "Surgeon", "Spy", "Architect", "Baker", "Captain",
        "Detective", "Electrician", "Farmer", "Gardener", "Hairdresser", "Janitor", "Knight",
        "Librarian", "Mechanic", "Nurse", "Pilot", "Reporter", "Soldier", "Teacher", "Veterinarian",
        "Waiter", "Zookeeper", "Artist", "Bodyguard", "Clown", "Dentist", "Fisherman", "Gladiator",
        "Judge", "Lifeguard", "Magician", "Ninja", "Pirate",
    ),
    "Object": (
        "Telescope", "Guitar", "Anchor", "Backpack", "Camera", "Diamond", "Flashlight", "Goggles",
        "Helmet", "Joystick", "Keyboard", "Lantern", "Microscope", "Piano", "Umbrella", "Violin",
        "Watch", "Yo-yo", "Globe", "Hammer", "Jukebox", "Kettle", "Balloon", "Compass", "Drone",
        "Fridge",
    ),
    "Animal": (
        "Platypus", "Kangaroo", "Flamingo", "Dolphin", "Elephant", "Giraffe", "Hippo", "Jellyfish",
        "Koala", "Lion", "Monkey", "Penguin", "Shark", "Tiger", "Whale", "Zebra", "Alligator", "Bear",
    ),
}

TOPIC_BANK: tuple[TopicResponse, ...] = tuple(
    TopicResponse(category=category, topic=topic) for category, topics in _BANK_SOURCE.items() for topic in topics
)


class TopicProvider(Protocol):
    async def request_topic(self) -> TopicResponse:
        """Return a category/topic pair or raise :class:`TopicProviderError`."""


@dataclass(frozen=True)
class TopicOk:
    topic: TopicResponse


@dataclass(frozen=True)
class TopicTimedOut:
    timeout: float


@dataclass(frozen=True)
class TopicFailed:
    error: str


TopicResult = TopicOk | TopicTimedOut | TopicFailed


async def fetch_topic(provider: TopicProvider, timeout: float) -> TopicResult:
    """Run one provider request bounded by ``timeout`` seconds."""
    try:
        topic = await asyncio.wait_for(provider.request_topic(), timeout=timeout)
    except asyncio.TimeoutError:
        return TopicTimedOut(timeout=timeout)
    except TopicProviderError as exc:
        return TopicFailed(error=str(exc))
    return TopicOk(topic=topic)


class StaticTopicProvider:
    """Draws from a fixed table; also serves as the local fallback."""

    def __init__(self, bank: tuple[TopicResponse, ...] = TOPIC_BANK, rng: random.Random | None = None) -> None:
        self._bank = bank
        self._rng = rng if rng is not None else random.Random()

    def pick(self) -> TopicResponse:
        if not self._bank:
            raise TopicProviderError("topic bank is empty")
        return self._rng.choice(self._bank)

    async def request_topic(self) -> TopicResponse:
        return self.pick()


class GeminiTopicProvider:
    """Asks the Gemini ``generateContent`` endpoint for a JSON topic."""

    def __init__(self, api_key: str, model: str, client: httpx.AsyncClient | None = None) -> None:
        self._api_key = api_key
        self._model = model
        self._client = client

    def _request_body(self) -> dict:
        return {
            "contents": [{"parts": [{"text": TOPIC_PROMPT}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": {
                    "type": "OBJECT",
                    "properties": {
                        "category": {
                            "type": "STRING",
                            "description": "A simple category like 'Location', 'Job', 'Animal', 'Object', or 'Food'",
                        },
                        "topic": {"type": "STRING", "description": "A single noun representing the secret word"},
                    },
                    "required": ["category", "topic"],
                },
            },
        }

    async def request_topic(self) -> TopicResponse:
        url = GEMINI_ENDPOINT.format(model=self._model)
        client = self._client if self._client is not None else httpx.AsyncClient()
        try:
            response = await client.post(url, params={"key": self._api_key}, json=self._request_body())
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TopicProviderError(f"topic request failed: {exc}") from exc
        finally:
            if self._client is None:
                await client.aclose()

        text = _candidate_text(payload)
        if text is None:
            raise TopicProviderError("topic response carried no text")
        try:
            return TopicResponse.model_validate_json(text.strip())
        except ValidationError as exc:
            raise TopicProviderError("topic response was not a category/topic object") from exc


def _candidate_text(payload: object) -> str | None:
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]  # type: ignore[index]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text.strip() else None


def create_topic_provider(settings: SyncSettings) -> TopicProvider:
    if settings.gemini_api_key:
        return GeminiTopicProvider(api_key=settings.gemini_api_key, model=settings.gemini_model)
    logger.info("no api key configured, using local topics")
    return StaticTopicProvider()
