import json
import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")
os.environ.setdefault("ENABLE_API_LOGGING", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tinyquiz.core.database import Base, get_db
from tinyquiz.main import app
from tinyquiz.models import orm  # noqa: F401
from tinyquiz.services.generator import QuestionGenerator, get_generator
from tinyquiz.services.providers import ProviderConfig, QuestionSource

ANSWER_KEY = [0, 1, 3, 2, 0, 1, 2, 3, 0, 1, 2, 3, 0, 1, 2, 3, 0, 1, 2, 3]


def canned_questions(topic, count):
    return [
        {
            "question": f"{topic} question {i + 1}?",
            "options": [f"Option {c}" for c in "ABCD"],
            "correctAnswer": ANSWER_KEY[i % len(ANSWER_KEY)],
            "explanation": f"Because of reason {i + 1}.",
        }
        for i in range(count)
    ]


class CannedSource(QuestionSource):
    """Question source answering with a fenced Gemini-style payload."""

    id = "gemini"
    display_name = "Google Gemini"
    description = "Canned questions"
    api_key_env = "GEMINI_API_KEY"

    def __init__(self, config):
        super().__init__(config)
        self.calls = []

    @property
    def available(self):
        return True

    def build_prompt(self, topic, count, difficulty):
        self.calls.append((topic, count, difficulty))
        return json.dumps({"topic": topic, "count": count})

    async def fetch(self, prompt):
        request = json.loads(prompt)
        body = json.dumps({"questions": canned_questions(request["topic"], request["count"])})
        return f"```json\n{body}\n```"

    def parse(self, raw_text):
        from tinyquiz.services.normalizer import parse_questions_object
        return parse_questions_object(raw_text)


class OfflineSource(CannedSource):
    id = "nvidia"
    display_name = "NVIDIA Nemotron/LLaMA"
    api_key_env = "NVIDIA_API_KEY"

    @property
    def available(self):
        return False


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def generator():
    config = ProviderConfig(gemini_api_key="test-key")
    return QuestionGenerator(config, sources=[CannedSource(config), OfflineSource(config)])


@pytest.fixture()
def client(session_factory, generator):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generator] = lambda: generator
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email, password="secret123"):
    r = client.post("/api/auth/register", json={"email": email, "password": password})
    assert r.status_code == 201, r.text
    return r.json()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def creator(client):
    data = register(client, "creator@tinyquiz.io")
    return {"id": data["user"]["id"], "headers": auth_headers(data["token"])}


@pytest.fixture()
def other_user(client):
    data = register(client, "colleague@tinyquiz.io")
    return {"id": data["user"]["id"], "headers": auth_headers(data["token"])}
