"""
Pytest configuration and fixtures for the Learnza tutor tests
"""

import pytest
from fastapi.testclient import TestClient

from fakes import InMemoryDocumentStore, ScriptedCompletionClient, words
from services.bootstrap import build_services


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Keep the chat cache out of tests."""
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setattr("clients.redis_client._redis_available", False)


@pytest.fixture
def no_backoff(monkeypatch):
    """Retry without waiting."""
    monkeypatch.setattr("utils.retry.BASE_DELAY_MS", 0)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def completion():
    return ScriptedCompletionClient()


@pytest.fixture
def services(store, completion, no_backoff):
    return build_services(store, completion, max_retries=3, enforce_monotonic=True)


@pytest.fixture
def learner(store):
    return store.seed("users", {
        "id": "u1",
        "name": "Ada",
        "language": "English",
        "accessibilityNeeds": ["captions"],
    })


@pytest.fixture
def seeded_lesson(store, learner):
    """A generated lesson with three sections and no chat yet."""
    lesson = store.seed("lessons", {
        "title": "Understanding React Hooks",
        "description": "How hooks manage state and effects.",
        "difficulty": "beginner",
        "estimatedTime": 270,
        "userId": learner["id"],
        "userRequest": "teach me react hooks",
        "generatingStatus": "completed",
        "status": "not_started",
        "languageCode": "en",
        "topic": "React Hooks",
        "outline": [
            {"sequenceNumber": 1, "title": "Intro"},
            {"sequenceNumber": 2, "title": "useState"},
            {"sequenceNumber": 3, "title": "useEffect"},
        ],
        "createdAt": "2026-01-01T00:00:00",
    })
    sections = [
        store.seed("lesson_contents", {
            "lessonId": lesson["id"],
            "userId": learner["id"],
            "title": title,
            "description": f"Section {n}",
            "sequenceNumber": n,
            "content": f"{title} {words(150)}",
            "completionStatus": "not_started",
            "currentProgress": 0,
            "lastAccessedAt": None,
            "estimatedTime": 90,
        })
        for n, title in enumerate(["Intro", "useState", "useEffect"], start=1)
    ]
    return {"lesson": lesson, "sections": sections}


@pytest.fixture
def client(services):
    from main import create_app

    with TestClient(create_app(services)) as test_client:
        yield test_client
