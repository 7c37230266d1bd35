"""
Google Gemini provider

Calls the generateContent REST endpoint and expects a
``{"questions": [...]}`` object back.
"""

import logging
from typing import List, Optional

import httpx

from tinyquiz.core.exceptions import MalformedResponse, UpstreamError
from tinyquiz.models.question import Question
from tinyquiz.services.normalizer import parse_questions_object
from .base import QuestionSource, ProviderConfig, describe_difficulty

logger = logging.getLogger(__name__)


PROMPT_TEMPLATE = """Generate exactly {count} multiple choice quiz questions about "{topic}" at {level} difficulty level.

DIFFICULTY LEVEL: {level} - Focus on {description}

IMPORTANT: Respond ONLY with valid JSON in this exact format (no markdown, no explanations):

{{
  "questions": [
    {{
      "question": "What is the main purpose of JavaScript?",
      "options": [
        "To style web pages",
        "To add interactivity to web pages",
        "To structure web content",
        "To manage databases"
      ],
      "correctAnswer": 1,
      "explanation": "JavaScript is primarily used to add interactivity and dynamic behavior to web pages."
    }}
  ]
}}

Requirements:
- Each question must have exactly 4 options
- correctAnswer must be the index (0-3) of the correct option
- Questions should be appropriate for {level} difficulty level
- Include brief explanations for learning
- Focus specifically on: {topic}
- Ensure JSON is valid and parseable

Generate {count} questions following this format exactly."""


def _error_message(response: httpx.Response) -> str:
    """Pull the message out of a Google error body, which may be list-wrapped."""
    try:
        payload = response.json()
    except ValueError:
        return "Unknown API error"
    if isinstance(payload, list) and payload:
        payload = payload[0]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        error = error.get("message")
    return error if isinstance(error, str) and error else "Unknown API error"

class GeminiSource(QuestionSource):
    """
    Google Gemini question source.

    The transport argument exists so tests can plug in httpx.MockTransport.
    """

    id = "gemini"
    display_name = "Google Gemini"
    description = "Google's advanced language model, great for educational content"
    api_key_env = "GEMINI_API_KEY"

    def __init__(self, config: ProviderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        self._transport = transport

    @property
    def available(self) -> bool:
        return bool(self.config.gemini_api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.config.gemini_base_url.rstrip('/')}/models/{self.config.gemini_model}:generateContent"

    def build_prompt(self, topic: str, count: int, difficulty: str) -> str:
        return PROMPT_TEMPLATE.format(
            count=count,
            topic=topic,
            level=difficulty.upper(),
            description=describe_difficulty(difficulty),
        )

    async def fetch(self, prompt: str) -> str:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
            },
        }

        logger.info("Requesting questions from Gemini model %s", self.config.gemini_model)
        try:
            async with httpx.AsyncClient(timeout=self.config.gemini_timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.endpoint,
                    params={"key": self.config.gemini_api_key},
                    json=payload,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            raise UpstreamError("Request to Gemini API timed out", provider=self.id, timeout=True) from e
        except httpx.HTTPStatusError as e:
            body = e.response.text
            message = _error_message(e.response)
            raise UpstreamError(
                f"Gemini API error ({e.response.status_code}): {message}",
                provider=self.id,
                upstream_status=e.response.status_code,
                body=body,
            ) from e
        except httpx.RequestError as e:
            raise UpstreamError(
                f"Unable to connect to Gemini API: {e}", provider=self.id
            ) from e
        except ValueError as e:
            raise MalformedResponse("Gemini returned a non-JSON envelope") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponse("Invalid response structure from Gemini API") from e
        if not isinstance(text, str) or not text.strip():
            raise MalformedResponse("Invalid response structure from Gemini API")
        return text.strip()

    def parse(self, raw_text: str) -> List[Question]:
        return parse_questions_object(raw_text, provider_name="Gemini")
