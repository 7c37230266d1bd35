"""
Question generation entry point: input checks, provider selection and the
count guarantee on top of the individual question sources.
"""
import logging
from functools import lru_cache
from typing import Dict, List, Optional

from tinyquiz.core.config import settings
from tinyquiz.core.exceptions import ConfigurationError, SchemaViolation, ValidationError
from tinyquiz.models.question import Question
from tinyquiz.services.providers import GeminiSource, NvidiaSource, ProviderConfig, QuestionSource

logger = logging.getLogger(__name__)

class QuestionGenerator:
    """Registry of question sources keyed by provider id."""

    def __init__(
        self,
        config: ProviderConfig,
        sources: Optional[List[QuestionSource]] = None,
        default_provider: str = "gemini",
        min_questions: int = 1,
        max_questions: int = 20,
    ):
        self.config = config
        if sources is None:
            sources = [GeminiSource(config), NvidiaSource(config)]
        self.sources: Dict[str, QuestionSource] = {s.id: s for s in sources}
        self.default_provider = default_provider
        self.min_questions = min_questions
        self.max_questions = max_questions

    def get_source(self, provider: str) -> QuestionSource:
        """Look up a provider, raising if unknown or not configured."""
        source = self.sources.get((provider or "").lower())
        if source is None:
            raise ValidationError(
                f"Invalid AI provider. Available providers: {', '.join(self.sources)}"
            )
        if not source.available:
            raise ConfigurationError(
                f"{source.display_name} is not available. "
                f"Please check {source.api_key_env} environment variable."
            )
        return source

    async def aclose(self) -> None:
        for source in self.sources.values():
            await source.aclose()

    def available_providers(self) -> dict:
        return {
            "providers": [source.info() for source in self.sources.values()],
            "default": self.default_provider,
        }

    async def generate(self, topic: str, count: int, provider: str, difficulty: str) -> List[Question]:
        """
        Generate exactly ``count`` questions about ``topic``.

        Raises:
            ValidationError: Empty topic or count out of range
            ConfigurationError: Provider has no API key
            UpstreamError: Provider unreachable or answered non-2xx
            MalformedResponse / SchemaViolation: Unusable provider output
        """
        if not isinstance(topic, str) or not topic.strip():
            raise ValidationError("Topic is required and must be a non-empty string")
        if not self.min_questions <= count <= self.max_questions:
            raise ValidationError(
                f"Question count must be between {self.min_questions} and {self.max_questions}"
            )

        source = self.get_source(provider)
        questions = await source.generate(topic.strip(), count, difficulty)

        if len(questions) < count:
            raise SchemaViolation(f"Expected {count} questions, received {len(questions)}")
        if len(questions) > count:
            logger.info("%s returned %d questions, keeping %d", source.id, len(questions), count)
            questions = questions[:count]

        logger.info("Generated %d %s questions about %r with %s", count, difficulty, topic, source.id)
        return questions

@lru_cache()
def get_generator() -> QuestionGenerator:
    """FastAPI dependency, built once per process so provider clients are reused."""
    return QuestionGenerator(
        ProviderConfig.from_settings(settings),
        default_provider=settings.DEFAULT_PROVIDER,
        min_questions=settings.MIN_QUESTIONS,
        max_questions=settings.MAX_QUESTIONS,
    )
