"""
AI question sources for TinyQuiz

Supports multiple AI providers behind one QuestionSource interface.
Currently: Gemini (Google), NVIDIA (OpenAI-compatible LLaMA endpoint)
"""

from .base import QuestionSource, ProviderConfig, describe_difficulty
from .gemini import GeminiSource
from .nvidia import NvidiaSource

__all__ = [
    "QuestionSource",
    "ProviderConfig",
    "describe_difficulty",
    "GeminiSource",
    "NvidiaSource",
]
