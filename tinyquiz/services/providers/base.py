"""
Base protocol for AI question sources

Defines the interface every provider implements and the configuration
struct the providers are built from.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from tinyquiz.core.config import Settings
from tinyquiz.models.question import Question


DIFFICULTY_DESCRIPTIONS = {
    "easy": "basic concepts, simple definitions, and fundamental principles that beginners should know",
    "medium": "intermediate concepts requiring some understanding and application of knowledge",
    "hard": "advanced concepts, complex applications, and detailed analysis requiring deep understanding",
}


def describe_difficulty(difficulty: str) -> str:
    return DIFFICULTY_DESCRIPTIONS.get(difficulty, DIFFICULTY_DESCRIPTIONS["easy"])


@dataclass(frozen=True)
class ProviderConfig:
    """Everything the providers need, resolved once from settings."""
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-pro-latest"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout: float = 30.0
    nvidia_api_key: Optional[str] = None
    nvidia_model: str = "meta/llama-3.1-70b-instruct"
    nvidia_base_url: str = "https://integrate.api.nvidia.com/v1"
    nvidia_timeout: float = 30.0
    temperature: float = 0.7
    max_tokens: int = 2048

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderConfig":
        return cls(
            gemini_api_key=settings.GEMINI_API_KEY.get_secret_value() if settings.GEMINI_API_KEY else None,
            gemini_model=settings.GEMINI_MODEL,
            gemini_base_url=settings.GEMINI_BASE_URL,
            gemini_timeout=settings.GEMINI_TIMEOUT,
            nvidia_api_key=settings.NVIDIA_API_KEY.get_secret_value() if settings.NVIDIA_API_KEY else None,
            nvidia_model=settings.NVIDIA_MODEL,
            nvidia_base_url=settings.NVIDIA_BASE_URL,
            nvidia_timeout=settings.NVIDIA_TIMEOUT,
            temperature=settings.AI_TEMPERATURE,
            max_tokens=settings.AI_MAX_TOKENS,
        )


class QuestionSource(ABC):
    """
    Abstract base class for AI question sources.

    Subclasses fetch raw text from their upstream service and turn it into
    canonical questions. Transport failures surface as UpstreamError,
    content problems as MalformedResponse or SchemaViolation.
    """

    #: Provider id used in requests and stored on the quiz
    id: str = ""
    #: Human readable name
    display_name: str = ""
    description: str = ""
    #: Environment variable that enables the provider
    api_key_env: str = ""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether the provider is configured with an API key."""
        pass

    @abstractmethod
    def build_prompt(self, topic: str, count: int, difficulty: str) -> str:
        pass

    @abstractmethod
    async def fetch(self, prompt: str) -> str:
        """
        Send the prompt upstream and return the raw reply text.

        Raises:
            UpstreamError: On timeouts, connection failures and non-2xx replies
            MalformedResponse: When the reply envelope carries no text
        """
        pass

    @abstractmethod
    def parse(self, raw_text: str) -> List[Question]:
        """Turn raw reply text into validated questions."""
        pass

    async def generate(self, topic: str, count: int, difficulty: str) -> List[Question]:
        """Generate questions for a topic."""
        raw_text = await self.fetch(self.build_prompt(topic, count, difficulty))
        return self.parse(raw_text)

    async def aclose(self) -> None:
        """Release any client held by the source."""
        pass

    def info(self) -> dict:
        return {
            "id": self.id,
            "name": self.display_name,
            "description": self.description,
            "requiresApiKey": self.api_key_env,
            "available": self.available,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(available={self.available!r})"
