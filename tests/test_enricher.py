from __future__ import annotations

import json
from unittest.mock import MagicMock

from cyberpulse.models import Sentiment
from cyberpulse.services.ai_client import AICallError
from cyberpulse.services.credibility import CredibilityScorer
from cyberpulse.services.enricher import ContentEnricher, build_enrichment_prompt, heuristic_enrichment

GOOD_RESPONSE = json.dumps(
    {
        "summary": "Attackers abused a zero-day.",
        "keyPoints": ["Zero-day exploited", "Patch available", "Update now"],
        "tags": ["Zero-Day", "malware"],
        "sentiment": "Negative",
    }
)


def _enricher(client, *, embeddings=None, credibility=None, sleeps=None) -> ContentEnricher:
    if credibility is None:
        credibility = MagicMock(spec=CredibilityScorer)
        credibility.score.return_value = 77
    return ContentEnricher(
        client,
        credibility,
        embeddings,
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
    )


def test_prompt_truncates_content(make_raw) -> None:
    prompt = build_enrichment_prompt(make_raw(title="T", content="x" * 5000))

    assert "Article Title: T" in prompt
    assert "x" * 4000 in prompt
    assert "x" * 4001 not in prompt


def test_structured_response_is_applied(make_raw, fake_ai_client) -> None:
    enricher = _enricher(fake_ai_client(GOOD_RESPONSE))

    patch = enricher.enrich(make_raw(tags=["Malware"]))

    assert patch.summary == "Attackers abused a zero-day."
    assert patch.key_points == ["Zero-day exploited", "Patch available", "Update now"]
    assert patch.tags == ["Malware", "Zero-Day"]
    assert patch.sentiment is Sentiment.NEGATIVE
    assert patch.credibility_score == 77
    assert not patch.degraded


def test_comma_separated_tags_are_split(make_raw, fake_ai_client) -> None:
    response = json.dumps({"summary": "s", "keyPoints": [], "tags": "phishing, botnet ,", "sentiment": "neutral"})

    patch = _enricher(fake_ai_client(response)).enrich(make_raw())

    assert patch.tags == ["phishing", "botnet"]


def test_unknown_sentiment_is_neutral(make_raw, fake_ai_client) -> None:
    response = json.dumps({"summary": "s", "sentiment": "furious"})

    patch = _enricher(fake_ai_client(response)).enrich(make_raw())

    assert patch.sentiment is Sentiment.NEUTRAL


def test_heuristic_fallback() -> None:
    text = (
        "Summary: A botnet was dismantled.\n"
        "- Servers seized\n"
        "• Operators arrested\n"
        "Tags: botnet, law enforcement\n"
        "Sentiment: positive"
    )

    fields = heuristic_enrichment(text)

    assert fields["summary"] == "Summary: A botnet was dismantled."
    assert fields["keyPoints"] == ["Servers seized", "Operators arrested"]
    assert fields["tags"] == ["botnet", "law enforcement"]
    assert fields["sentiment"] == "positive"


def test_heuristic_without_summary_line_uses_prefix() -> None:
    text = "a" * 300

    assert heuristic_enrichment(text)["summary"] == "a" * 200


def test_no_ai_client_degrades_but_scores(make_raw) -> None:
    embeddings = MagicMock()
    embeddings.embed_article.return_value = [0.5, 0.5]

    patch = _enricher(None, embeddings=embeddings).enrich(make_raw(tags=["Malware"]))

    assert patch.degraded
    assert patch.summary == ""
    assert patch.key_points == []
    assert patch.tags == ["Malware"]
    assert patch.sentiment is Sentiment.NEUTRAL
    assert patch.credibility_score == 77
    assert patch.embedding == [0.5, 0.5]


def test_ai_failure_still_attempts_credibility(make_raw, fake_ai_client) -> None:
    credibility = MagicMock(spec=CredibilityScorer)
    credibility.score.return_value = 42

    patch = _enricher(fake_ai_client(AICallError("down")), credibility=credibility).enrich(make_raw())

    assert patch.degraded
    assert patch.credibility_score == 42
    credibility.score.assert_called_once()


def test_credibility_error_leaves_score_absent(make_raw, fake_ai_client) -> None:
    credibility = MagicMock(spec=CredibilityScorer)
    credibility.score.side_effect = RuntimeError("boom")

    patch = _enricher(fake_ai_client(GOOD_RESPONSE), credibility=credibility).enrich(make_raw())

    assert patch.credibility_score is None
    assert patch.summary


def test_batch_keeps_length_when_one_response_is_malformed(make_raw, fake_ai_client) -> None:
    client = fake_ai_client(GOOD_RESPONSE, "", GOOD_RESPONSE)
    sleeps: list[float] = []
    articles = [make_raw(url=f"https://thehackernews.com/2024/05/{index}.html") for index in range(3)]

    enriched = _enricher(client, sleeps=sleeps).enrich_batch(articles)

    assert [article.url for article in enriched] == [article.url for article in articles]
    assert enriched[0].summary and enriched[2].summary
    assert enriched[1].summary == ""
    assert all(article.credibility_score == 77 for article in enriched)
    assert sleeps == [1.0, 1.0]


def test_batch_survives_an_exception_from_enrich(make_raw, fake_ai_client, monkeypatch) -> None:
    enricher = _enricher(fake_ai_client(GOOD_RESPONSE))
    articles = [make_raw(url="https://example.com/a"), make_raw(url="https://example.com/b")]
    original = enricher.enrich

    def flaky(article):
        if article.url.endswith("/a"):
            raise RuntimeError("unexpected")
        return original(article)

    monkeypatch.setattr(enricher, "enrich", flaky)

    enriched = enricher.enrich_batch(articles)

    assert len(enriched) == 2
    assert enriched[0].summary == ""
    assert enriched[0].credibility_score == 77
    assert enriched[1].summary == "Attackers abused a zero-day."


def test_default_scorer_uses_shared_client(make_raw, fake_ai_client) -> None:
    client = fake_ai_client(GOOD_RESPONSE)
    enricher = ContentEnricher(client, sleep=lambda seconds: None)

    patch = enricher.enrich(make_raw())

    # enrichment prompt, then the credibility rubric through the same client
    assert len(client.prompts) == 2
    assert patch.credibility_score is not None
