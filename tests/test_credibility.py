from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from cyberpulse.services.ai_client import AICallError
from cyberpulse.services.credibility import CredibilityScorer, author_score, is_recent, source_score

NOW = datetime(2024, 6, 1, tzinfo=UTC)


def _scorer(client=None) -> CredibilityScorer:
    return CredibilityScorer(client, clock=lambda: NOW)


def _rubric(**scores) -> str:
    payload = {
        "factualAccuracy": 50,
        "sensationalism": 50,
        "bias": 40,
        "citationQuality": 20,
        "overallAssessment": "mixed",
    }
    payload.update(scores)
    return json.dumps(payload)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://thehackernews.com/2024/05/x.html", 20),
        ("https://www.krebsonsecurity.com/post", 20),
        ("https://news.therecord.media/item", 20),
        ("https://evilwired.com/post", 10),
        ("https://unknown-blog.example/post", 10),
        ("not a url", 10),
        ("", 10),
    ],
)
def test_source_score(url, expected) -> None:
    assert source_score(url) == expected


@pytest.mark.parametrize(
    "author, expected",
    [
        ("", 0),
        ("   ", 0),
        ("Jane Doe", 2),
        ("Dr. Jane Doe, Ph.D.", 5),
        ("Security Researcher at Example", 5),
    ],
)
def test_author_score(author, expected) -> None:
    assert author_score(author) == expected


def test_recency_window() -> None:
    assert is_recent(NOW - timedelta(days=3), NOW)
    assert not is_recent(NOW - timedelta(days=45), NOW)
    assert not is_recent(None, NOW)


def test_unconfigured_ai_reliable_source_scores_100(make_raw) -> None:
    assessment = _scorer().assess(make_raw(url="https://thehackernews.com/2024/05/a.html"))

    assert assessment.score == 100
    assert assessment.degraded
    assert assessment.ai_score is None


def test_unconfigured_ai_unknown_source_scores_50(make_raw) -> None:
    assert _scorer().score(make_raw(url="https://unknown.example/a")) == 50


def test_structured_rubric_is_combined(make_raw, fake_ai_client) -> None:
    client = fake_ai_client(_rubric())
    article = make_raw(url="https://unknown.example/a", author="")

    assessment = _scorer(client).assess(article)

    # 15 + 10 + 6 + 3 from the rubric, 10 source, 2 temporal, 0 author
    assert assessment.ai_score == 34
    assert assessment.score == 46
    assert not assessment.degraded
    assert "Article URL: https://unknown.example/a" in client.prompts[0]


def test_zero_rubric_values_are_respected(make_raw, fake_ai_client) -> None:
    client = fake_ai_client(_rubric(factualAccuracy=0, sensationalism=100, bias=0, citationQuality=0))

    assessment = _scorer(client).assess(make_raw(url="https://unknown.example/a"))

    assert assessment.ai_score == 0
    assert assessment.score == 12


def test_final_score_is_capped(make_raw, fake_ai_client) -> None:
    client = fake_ai_client(_rubric(factualAccuracy=100, sensationalism=0, bias=100, citationQuality=100))
    article = make_raw(author="Jane Doe, PhD", published_date=NOW - timedelta(days=1))

    assessment = _scorer(client).assess(article)

    assert assessment.ai_score == 80
    assert assessment.score == 100


def test_heuristic_rubric_extracts_numbers(make_raw, fake_ai_client) -> None:
    client = fake_ai_client(
        "Factual accuracy: 80\nSensationalism: 20\nBias: 60\nCitation quality: 60\nOverall fine."
    )

    assessment = _scorer(client).assess(make_raw())

    assert assessment.rubric["factualAccuracy"] == 80
    assert assessment.ai_score == 58
    assert assessment.score == 80


def test_heuristic_defaults_follow_recency_and_author(make_raw, fake_ai_client) -> None:
    client = fake_ai_client("I cannot assess this article.")
    article = make_raw(author="Jane Doe", published_date=NOW - timedelta(days=2))

    assessment = _scorer(client).assess(article)

    assert assessment.rubric["temporalRelevance"] == 80
    assert assessment.rubric["authorCredibility"] == 60
    assert assessment.rubric["factualAccuracy"] == 65
    assert 0 <= assessment.score <= 100


def test_ai_failure_falls_back_to_source_only(make_raw, fake_ai_client) -> None:
    client = fake_ai_client(AICallError("timeout"))

    assessment = _scorer(client).assess(make_raw(url="https://unknown.example/a"))

    assert assessment.score == 50
    assert assessment.degraded
