import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from tinyquiz.core.exceptions import (
    ConfigurationError,
    MalformedResponse,
    SchemaViolation,
    UpstreamError,
    ValidationError,
)
from tinyquiz.services.generator import QuestionGenerator
from tinyquiz.services.providers import GeminiSource, NvidiaSource, ProviderConfig
from tinyquiz.services.providers.base import describe_difficulty

CONFIG = ProviderConfig(gemini_api_key="g-key", nvidia_api_key="n-key")


def gemini_envelope(questions):
    text = "```json\n" + json.dumps({"questions": questions}) + "\n```"
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def sample_questions(n):
    return [
        {"question": f"Q{i}?", "options": ["a", "b", "c", "d"], "correctAnswer": i % 4, "explanation": f"E{i}"}
        for i in range(n)
    ]


def gemini_with(handler):
    return GeminiSource(CONFIG, transport=httpx.MockTransport(handler))


# ---- Gemini ----

@pytest.mark.asyncio
async def test_gemini_generates_questions():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=gemini_envelope(sample_questions(3)))

    questions = await gemini_with(handler).generate("Photosynthesis", 3, "medium")

    assert [q.correct_answer for q in questions] == [0, 1, 2]
    assert ":generateContent" in seen["url"] and "key=g-key" in seen["url"]
    prompt = seen["body"]["contents"][0]["parts"][0]["text"]
    assert "Photosynthesis" in prompt and "MEDIUM" in prompt


@pytest.mark.asyncio
async def test_gemini_non_2xx_is_upstream_error():
    def handler(request):
        return httpx.Response(429, json={"error": {"message": "quota exceeded"}})

    with pytest.raises(UpstreamError) as exc:
        await gemini_with(handler).generate("Photosynthesis", 3, "easy")
    assert exc.value.status_code == 502
    assert exc.value.upstream_status == 429
    assert "quota exceeded" in exc.value.body


@pytest.mark.asyncio
async def test_gemini_timeout_is_504():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamError) as exc:
        await gemini_with(handler).generate("Photosynthesis", 3, "easy")
    assert exc.value.timeout is True
    assert exc.value.status_code == 504


@pytest.mark.asyncio
async def test_gemini_connection_failure_is_upstream_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamError) as exc:
        await gemini_with(handler).generate("Photosynthesis", 3, "easy")
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_gemini_envelope_without_text_is_malformed():
    def handler(request):
        return httpx.Response(200, json={"candidates": []})

    with pytest.raises(MalformedResponse):
        await gemini_with(handler).generate("Photosynthesis", 3, "easy")


@pytest.mark.asyncio
async def test_gemini_bad_question_is_schema_violation():
    questions = sample_questions(2)
    questions[1]["options"] = ["only", "three", "options"]

    def handler(request):
        return httpx.Response(200, json=gemini_envelope(questions))

    with pytest.raises(SchemaViolation) as exc:
        await gemini_with(handler).generate("Photosynthesis", 2, "easy")
    assert exc.value.index == 2


# ---- NVIDIA ----

class StubCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def nvidia_with(completions):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return NvidiaSource(CONFIG, client=client)


FLAT_REPLY = """Sure, here are the questions:
[
  {"question": "Q1?", "option1": "a", "option2": "b", "option3": "c", "option4": "d", "answer": "option3"},
  {"question": "Q2?", "option1": "a", "option2": "b", "option3": "c", "option4": "d", "answer": "Option1", "explanation": "E2"}
]"""


@pytest.mark.asyncio
async def test_nvidia_generates_questions():
    completions = StubCompletions(content=FLAT_REPLY)
    questions = await nvidia_with(completions).generate("Photosynthesis", 2, "hard")

    assert [q.correct_answer for q in questions] == [2, 0]
    assert questions[0].explanation == "The correct answer is option3."
    assert completions.kwargs["model"] == CONFIG.nvidia_model
    assert "HARD" in completions.kwargs["messages"][0]["content"]


@pytest.mark.asyncio
async def test_nvidia_status_error_is_upstream_error():
    request = httpx.Request("POST", "https://integrate.api.nvidia.com/v1/chat/completions")
    response = httpx.Response(500, request=request)
    error = openai.InternalServerError("boom", response=response, body={"detail": "boom"})

    with pytest.raises(UpstreamError) as exc:
        await nvidia_with(StubCompletions(error=error)).generate("Photosynthesis", 2, "easy")
    assert exc.value.upstream_status == 500
    assert exc.value.body == {"detail": "boom"}
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_nvidia_timeout_is_504():
    request = httpx.Request("POST", "https://integrate.api.nvidia.com/v1/chat/completions")
    error = openai.APITimeoutError(request=request)

    with pytest.raises(UpstreamError) as exc:
        await nvidia_with(StubCompletions(error=error)).generate("Photosynthesis", 2, "easy")
    assert exc.value.status_code == 504


@pytest.mark.asyncio
async def test_nvidia_empty_reply_is_malformed():
    with pytest.raises(MalformedResponse):
        await nvidia_with(StubCompletions(content="")).generate("Photosynthesis", 2, "easy")


# ---- registry ----

def test_availability_follows_api_keys():
    gen = QuestionGenerator(ProviderConfig(gemini_api_key="g-key"))
    info = {p["id"]: p for p in gen.available_providers()["providers"]}
    assert info["gemini"]["available"] is True
    assert info["nvidia"]["available"] is False
    assert info["nvidia"]["requiresApiKey"] == "NVIDIA_API_KEY"


def test_unknown_provider_is_validation_error():
    with pytest.raises(ValidationError):
        QuestionGenerator(CONFIG).get_source("claude")


def test_unconfigured_provider_is_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        QuestionGenerator(ProviderConfig()).get_source("nvidia")
    assert "NVIDIA_API_KEY" in exc.value.message


@pytest.mark.asyncio
async def test_generator_truncates_extra_questions():
    def handler(request):
        return httpx.Response(200, json=gemini_envelope(sample_questions(5)))

    gen = QuestionGenerator(CONFIG, sources=[gemini_with(handler)])
    questions = await gen.generate("Photosynthesis", 3, "gemini", "easy")
    assert len(questions) == 3


@pytest.mark.asyncio
async def test_generator_rejects_short_reply():
    def handler(request):
        return httpx.Response(200, json=gemini_envelope(sample_questions(2)))

    gen = QuestionGenerator(CONFIG, sources=[gemini_with(handler)])
    with pytest.raises(SchemaViolation):
        await gen.generate("Photosynthesis", 3, "gemini", "easy")


@pytest.mark.asyncio
@pytest.mark.parametrize("topic,count", [("", 3), ("   ", 3), ("Photosynthesis", 0), ("Photosynthesis", 21)])
async def test_generator_validates_input(topic, count):
    with pytest.raises(ValidationError):
        await QuestionGenerator(CONFIG).generate(topic, count, "gemini", "easy")


def test_unknown_difficulty_describes_as_easy():
    assert describe_difficulty("impossible") == describe_difficulty("easy")


@pytest.mark.asyncio
@pytest.mark.parametrize("body,message", [
    ([{"error": {"code": 400, "message": "API key not valid"}}], "API key not valid"),
    ({"error": "quota"}, "quota"),
    ({"error": None}, "Unknown API error"),
    (["unexpected"], "Unknown API error"),
])
async def test_gemini_odd_error_bodies_are_upstream_errors(body, message):
    def handler(request):
        return httpx.Response(400, json=body)

    with pytest.raises(UpstreamError) as exc:
        await gemini_with(handler).generate("Photosynthesis", 3, "easy")
    assert exc.value.status_code == 502
    assert exc.value.upstream_status == 400
    assert message in exc.value.message


class ClosableClient(SimpleNamespace):
    closed = False

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_nvidia_client_is_reused_and_closed():
    source = NvidiaSource(CONFIG)
    client = source._get_client()
    assert source._get_client() is client
    await source.aclose()
    assert source._client is None

    stub = ClosableClient(chat=SimpleNamespace(completions=StubCompletions(content=FLAT_REPLY)))
    gen = QuestionGenerator(CONFIG, sources=[NvidiaSource(CONFIG, client=stub)])
    await gen.aclose()
    assert stub.closed is True


def test_generator_dependency_is_built_once():
    from tinyquiz.services.generator import get_generator

    get_generator.cache_clear()
    try:
        assert get_generator() is get_generator()
    finally:
        get_generator.cache_clear()
