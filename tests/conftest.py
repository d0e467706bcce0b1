from __future__ import annotations

from datetime import UTC, datetime

import pytest

from cyberpulse.config import AIConfig
from cyberpulse.models import EnrichedArticle, RawArticle


class FakeAIClient:
    """Returns canned completions in order and records every prompt."""

    def __init__(self, *responses: object, config=None) -> None:
        self._responses = list(responses)
        self.prompts: list[str] = []
        self.config = config or AIConfig(api_key="test-key")

    def complete(self, prompt: str, *, model=None, max_tokens: int = 1024) -> str:
        self.prompts.append(prompt)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def make_raw():
    def factory(**overrides) -> RawArticle:
        data = {
            "url": "https://thehackernews.com/2024/05/story.html",
            "title": "Story",
            "author": "",
            "published_date": None,
            "content": "Body text",
            "tags": [],
        }
        data.update(overrides)
        return RawArticle(**data)

    return factory


@pytest.fixture
def make_article():
    def factory(**overrides) -> EnrichedArticle:
        data = {
            "url": "https://thehackernews.com/2024/05/story.html",
            "title": "Story",
            "content": "Body text",
            "published_date": datetime(2024, 5, 1, tzinfo=UTC),
        }
        data.update(overrides)
        return EnrichedArticle(**data)

    return factory


@pytest.fixture
def fake_ai_client():
    return FakeAIClient
