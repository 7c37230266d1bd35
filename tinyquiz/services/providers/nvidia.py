"""
NVIDIA provider implementation

NVIDIA's hosted LLaMA models use an OpenAI-compatible API. The model is asked
for a bare JSON array with option1..option4 and an "answer" token.
"""

import logging
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from tinyquiz.core.exceptions import MalformedResponse, UpstreamError
from tinyquiz.models.question import Question
from tinyquiz.services.normalizer import parse_flat_array
from .base import QuestionSource, ProviderConfig, describe_difficulty

logger = logging.getLogger(__name__)


PROMPT_TEMPLATE = """Return strictly a JSON array of {count} MCQs for "{topic}" at {level} difficulty level.
DIFFICULTY LEVEL: {level} - Focus on {description}

Each object must have:
- "question"
- "option1", "option2", "option3", "option4"
- "answer" (e.g., "option2")
- "explanation" (brief learning explanation)

Questions should be appropriate for {level} difficulty level.
Only return the array. No explanation, no extra text."""


class NvidiaSource(QuestionSource):
    """
    NVIDIA Nemotron/LLaMA question source.

    API key comes from the injected ProviderConfig. A prebuilt client can be
    passed in, which tests use to stub the SDK.
    """

    id = "nvidia"
    display_name = "NVIDIA Nemotron/LLaMA"
    description = "NVIDIA's LLaMA-based model, excellent for quiz generation"
    api_key_env = "NVIDIA_API_KEY"

    def __init__(self, config: ProviderConfig, client: Optional[AsyncOpenAI] = None):
        super().__init__(config)
        self._client = client

    @property
    def available(self) -> bool:
        return bool(self.config.nvidia_api_key)

    def _get_client(self) -> AsyncOpenAI:
        """Lazy initialization of the OpenAI client for NVIDIA."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.nvidia_api_key,
                base_url=self.config.nvidia_base_url,
                timeout=self.config.nvidia_timeout,
                max_retries=0,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    def build_prompt(self, topic: str, count: int, difficulty: str) -> str:
        return PROMPT_TEMPLATE.format(
            count=count,
            topic=topic,
            level=difficulty.upper(),
            description=describe_difficulty(difficulty),
        )

    async def fetch(self, prompt: str) -> str:
        client = self._get_client()
        logger.info("Requesting questions from NVIDIA model %s", self.config.nvidia_model)

        try:
            completion = await client.chat.completions.create(
                model=self.config.nvidia_model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except openai.APITimeoutError as e:
            raise UpstreamError("Request to NVIDIA API timed out", provider=self.id, timeout=True) from e
        except openai.APIStatusError as e:
            raise UpstreamError(
                f"NVIDIA API error ({e.status_code}): model={self.config.nvidia_model}",
                provider=self.id,
                upstream_status=e.status_code,
                body=e.body,
            ) from e
        except openai.APIConnectionError as e:
            raise UpstreamError(
                f"Unable to connect to NVIDIA API: {e}", provider=self.id
            ) from e

        content = ""
        if completion.choices and completion.choices[0].message:
            content = completion.choices[0].message.content or ""
        if not content.strip():
            raise MalformedResponse("NVIDIA returned an empty reply")
        return content

    def parse(self, raw_text: str) -> List[Question]:
        return parse_flat_array(raw_text)
