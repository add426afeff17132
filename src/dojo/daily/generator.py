"""
Daily quiz content generation with provider abstraction.

Supports any OpenAI-compatible chat-completions API and a built-in static
quiz bank. Provider is selected via configuration.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import date

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from dojo.config import get_settings
from dojo.day_utils import utc_today
from dojo.errors import UpstreamUnavailable

logger = structlog.get_logger()

GENERATED_XP_REWARD = 25


class GeneratedQuiz(BaseModel):
    """A validated quiz payload, whatever produced it."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=4, max_length=4)
    correct_index: int = Field(..., alias="correctIndex", ge=0, le=3)
    explanation: str = ""

    def quiz_data(self) -> dict:
        return {
            "question": self.question,
            "options": self.options,
            "correctIndex": self.correct_index,
            "explanation": self.explanation,
        }


class BaseContentGenerator(ABC):
    """Abstract base class for daily quiz providers."""

    @abstractmethod
    async def generate(self, belt: str, art_type: str) -> GeneratedQuiz:
        """Produce one quiz. Raises UpstreamUnavailable on any failure."""
        ...


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_quiz_payload(text: str) -> GeneratedQuiz:
    """Parse a model reply into a GeneratedQuiz (markdown fences allowed)."""
    try:
        return GeneratedQuiz.model_validate(json.loads(_strip_fences(text)))
    except (json.JSONDecodeError, PydanticValidationError, TypeError) as e:
        raise UpstreamUnavailable("Generator returned a malformed quiz") from e


class OpenAIChatGenerator(BaseContentGenerator):
    """Generate quizzes via an OpenAI-compatible /chat/completions API."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def _prompt(self, belt: str, art_type: str) -> str:
        return (
            f"Create a fun, kid-friendly {art_type} trivia question for a {belt} belt student. "
            "Respond with JSON only, no markdown, with keys: "
            '"title" (short, catchy), "description" (one sentence), "question", '
            '"options" (exactly 4 strings), "correctIndex" (0-3), '
            '"explanation" (one encouraging sentence).'
        )

    async def generate(self, belt: str, art_type: str) -> GeneratedQuiz:
        """Call the chat-completions endpoint and validate the reply."""
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self.model,
                        "messages": [
                            {
                                "role": "system",
                                "content": "You are a martial arts master who writes quizzes for children.",
                            },
                            {"role": "user", "content": self._prompt(belt, art_type)},
                        ],
                        "temperature": 0.8,
                    },
                )
                response.raise_for_status()
                content = response.json()["choices"][0]["message"]["content"]
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("content_generation_failed", provider="openai", belt=belt, error=str(e))
            raise UpstreamUnavailable("Content generator unavailable") from e

        if not isinstance(content, str):
            # Refusals come back as content=null
            logger.warning("content_generation_failed", provider="openai", belt=belt, error="non-text reply")
            raise UpstreamUnavailable("Generator returned no quiz text")

        quiz = parse_quiz_payload(content)
        logger.info("content_generated", provider="openai", belt=belt, title=quiz.title)
        return quiz


_STATIC_BANK: list[dict] = [
    {
        "title": "Bow Before You Begin",
        "description": "Why do martial artists bow?",
        "question": "What does bowing when entering the dojo show?",
        "options": ["That you are tired", "Respect", "That you are ready to leave", "Nothing"],
        "correctIndex": 1,
        "explanation": "Bowing shows respect for the dojo, your instructor and your training partners.",
    },
    {
        "title": "Yellow Belt Sunshine",
        "description": "Belt colors have meaning!",
        "question": "What does the Yellow Belt often represent?",
        "options": ["The night sky", "The earth where a seed first sees sunlight", "Blood", "The ocean"],
        "correctIndex": 1,
        "explanation": "Yellow is the first sunlight on a seed as it begins to grow, just like your skills!",
    },
    {
        "title": "Indomitable Spirit",
        "description": "A tenet every student knows.",
        "question": "What does 'indomitable spirit' mean?",
        "options": ["Never giving up", "Winning every match", "Kicking the highest", "Being the loudest"],
        "correctIndex": 0,
        "explanation": "Indomitable spirit means you keep trying, even when things are hard.",
    },
    {
        "title": "Kiai Power",
        "description": "That shout has a purpose!",
        "question": "What is a kiai?",
        "options": ["A type of belt", "A focused shout that adds power", "A kind of uniform", "A warm-up stretch"],
        "correctIndex": 1,
        "explanation": "A kiai focuses your breath and energy into your technique.",
    },
    {
        "title": "Black Belt Wisdom",
        "description": "The belt everyone dreams of.",
        "question": "What does a Black Belt traditionally mean?",
        "options": [
            "You know everything",
            "Training is finished",
            "A new beginning of deeper learning",
            "You never practice again",
        ],
        "correctIndex": 2,
        "explanation": "A Black Belt is the start of a deeper journey, not the end!",
    },
    {
        "title": "Self-Control Check",
        "description": "Martial arts starts in the mind.",
        "question": "When should you use your martial arts skills outside class?",
        "options": ["To show off", "Only to protect yourself or others", "Whenever you are angry", "On your siblings"],
        "correctIndex": 1,
        "explanation": "Self-control means using your skills only for protection.",
    },
    {
        "title": "Dobok Details",
        "description": "Know your uniform!",
        "question": "What is the Taekwondo uniform called?",
        "options": ["Dobok", "Kimono", "Hakama", "Tunic"],
        "correctIndex": 0,
        "explanation": "A Taekwondo uniform is called a dobok.",
    },
]


class StaticContentGenerator(BaseContentGenerator):
    """Rotate through a built-in quiz bank. Deterministic per (day, belt)."""

    def __init__(self, bank: list[dict] | None = None, today: date | None = None) -> None:
        self.bank = bank or _STATIC_BANK
        self._today = today

    async def generate(self, belt: str, art_type: str) -> GeneratedQuiz:
        day = self._today or utc_today()
        offset = sum(ord(c) for c in belt.lower())
        entry = self.bank[(day.toordinal() + offset) % len(self.bank)]
        return GeneratedQuiz.model_validate(entry)


def get_content_generator() -> BaseContentGenerator:
    """Create the content generator based on configuration."""
    settings = get_settings()
    provider_name = settings.content_provider.lower()

    if provider_name == "openai":
        if not settings.content_api_key:
            logger.warning("content_api_key_missing", fallback="static")
            return StaticContentGenerator()
        return OpenAIChatGenerator(
            api_key=settings.content_api_key,
            base_url=settings.content_api_base_url,
            model=settings.content_model,
            timeout=settings.content_timeout_seconds,
        )
    if provider_name == "static":
        return StaticContentGenerator()
    msg = f"Unsupported content provider: {provider_name}"
    raise ValueError(msg)
