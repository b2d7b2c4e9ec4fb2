import asyncio
from datetime import datetime, timezone

from matchcast.services import evidence

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _article(title, description=None, source="BBC Sport", published_at="2026-10-17T09:30:00Z"):
    return {"source": source, "published_at": published_at, "title": title, "description": description}


def test_two_articles_per_team_then_analytical_notes(match, fake_provider):
    news = {
        "Home FC": [_article("h1", "home one"), _article("h2"), _article("h3")],
        "Away FC": [_article("a1", source=None), _article("a2", published_at="yesterday")],
    }
    provider = fake_provider(get_team_news=lambda name: news[name])
    items = asyncio.run(evidence.collect(match, provider, now=NOW))

    assert [e.text for e in items[:4]] == ["home one", "h2", "a1", "a2"]
    assert all(e.confidence == 0.75 for e in items[:4])
    assert items[0].source == "BBC Sport"
    assert items[2].source == "Sports News"
    assert items[0].timestamp == datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)
    assert items[3].timestamp == NOW

    assert [(e.source, e.confidence) for e in items[4:]] == [
        ("AI Analysis Engine", 0.88),
        ("Tactical Analysis", 0.82),
    ]
    assert all(e.timestamp == NOW for e in items[4:])


def test_news_failure_for_one_team_is_tolerated(match, fake_provider):
    def news(name):
        if name == "Home FC":
            raise RuntimeError("quota exceeded")
        return [_article("away story")]

    items = asyncio.run(evidence.collect(match, fake_provider(get_team_news=news), now=NOW))
    assert [e.text for e in items] == [
        "away story",
        evidence.ANALYTICAL_NOTES[0][1],
        evidence.ANALYTICAL_NOTES[1][1],
    ]


def test_total_news_outage_leaves_analytical_notes(match, fake_provider):
    items = asyncio.run(evidence.collect(match, fake_provider(fail={"*"}), now=NOW))
    assert [e.source for e in items] == ["AI Analysis Engine", "Tactical Analysis"]


def test_empty_articles_are_skipped(match, fake_provider):
    articles = [_article(None, None), _article("", "  "), _article("kept")]
    items = asyncio.run(evidence.collect(match, fake_provider(get_team_news=lambda _n: articles), now=NOW))
    assert [e.text for e in items[:2]] == ["kept", "kept"]


def test_blank_team_name_skips_news_read(match, fake_provider):
    from matchcast.domain.models import Team

    nameless = match.model_copy(update={"home_team": Team(id="h", name="  ")})
    provider = fake_provider(get_team_news=lambda _n: [])
    asyncio.run(evidence.collect(nameless, provider, now=NOW))
    assert provider.calls == [("get_team_news", ("Away FC",))]


def test_malformed_articles_do_not_abort_collection(match, fake_provider):
    articles = [
        {"source": {"id": "bbc-sport", "name": "BBC"}, "title": "t"},
        {"source": 42, "title": ["not", "text"], "description": {"html": "<p>x</p>"}},
        {"source": {"id": None, "name": None}, "title": "untitled source", "published_at": 1760000000},
        "headline only",
    ]
    items = asyncio.run(evidence.collect(match, fake_provider(get_team_news=lambda _n: articles), now=NOW))
    assert [(e.source, e.text) for e in items[:2]] == [("BBC", "t"), ("Sports News", "untitled source")]
    assert items[1].timestamp == NOW
    assert len(items) == 6


def test_non_list_news_payload_is_ignored(match, fake_provider):
    items = asyncio.run(evidence.collect(match, fake_provider(get_team_news=lambda _n: {"status": "ok"}), now=NOW))
    assert [e.source for e in items] == ["AI Analysis Engine", "Tactical Analysis"]
