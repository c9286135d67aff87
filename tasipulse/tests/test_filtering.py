"""
Selection tests: dedupe, relevance, ranking, posted-history exclusion.
"""

from tasipulse.scripts.filtering import (
    deduplicate_articles,
    is_previously_posted,
    rank_articles,
    select_articles,
)
from tasipulse.scripts.rss_scraper import fetch_all

PUB_DATE = "Wed, 15 Jan 2025 11:00:00 +0000"

FEEDS = {
    "https://feeds.test/argaam": [
        ("Aramco raises dividend to record", "https://example.com/a1"),
        ("SABIC quarterly profit jumps 20%", "https://example.com/a2"),
        ("Football league schedule announced", "https://example.com/a3"),
        ("Weather warning for Jeddah", "https://example.com/a4"),
    ],
    "https://feeds.test/disclosures": [
        ("Board member appointment at Company X", "https://example.com/d1"),
        ("Company Y clarification on news", "https://example.com/d2"),
    ],
    "https://feeds.test/alarabiya": [
        ("Oil price climbs as crude supply tightens", "https://example.com/r1"),
        ("Saudi stock market gains on bank shares", "https://example.com/r2"),
        ("Film festival opens in Riyadh", "https://example.com/r3"),
        ("Desert camping season begins", "https://example.com/r4"),
    ],
}

SOURCES = [
    {"key": "argaam", "name": "Argaam", "url": "https://feeds.test/argaam"},
    {"key": "argaam-disc", "name": "Disclosures", "url": "https://feeds.test/disclosures"},
    {"key": "alarabiya", "name": "Al Arabiya", "url": "https://feeds.test/alarabiya"},
]


def _rss(items):
    entries = "".join(
        f"<item><title>{title}</title><link>{link}</link>"
        f"<description>Details inside.</description><pubDate>{PUB_DATE}</pubDate></item>"
        for title, link in items
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>{entries}</channel></rss>'


def test_selects_top_three_fresh_relevant_articles(make_session, make_response, now):
    """Ten fetched, six relevant, two already posted: the best three of the other four win."""
    session = make_session(handler=lambda method, url, kwargs: make_response(text=_rss(FEEDS[url])))
    articles = fetch_all(SOURCES, session=session, now=now)
    assert len(articles) == 10

    history = [
        {"title": "Aramco raises dividend to record", "url": "https://example.com/a1", "postedAt": "x"},
        {"title": "Oil price climbs", "url": "https://example.com/r1", "postedAt": "x"},
    ]

    selected = select_articles(articles, history, limit=3, now=now)

    assert [a["url"] for a in selected] == [
        "https://example.com/a2",
        "https://example.com/r2",
        "https://example.com/d2",
    ]
    scores = [a["score"] for a in selected]
    assert scores == sorted(scores, reverse=True)


def test_selection_respects_limit_and_history(make_article, now):
    articles = [make_article(f"Saudi market update {i}") for i in range(8)]
    history = [{"title": "", "url": articles[0]["url"], "postedAt": "x"}]

    selected = select_articles(articles, history, limit=5, now=now)

    assert len(selected) == 5
    assert articles[0]["url"] not in {a["url"] for a in selected}


def test_selection_empty_when_everything_posted(make_article, now):
    article = make_article("Tadawul suspends trading")
    history = [{"title": article["title"], "url": article["url"], "postedAt": "x"}]
    assert select_articles([article], history, limit=3, now=now) == []


def test_selection_does_not_mutate_input(make_article, now):
    article = make_article("Tadawul suspends trading")
    select_articles([article], [], limit=3, now=now)
    assert "score" not in article


def test_deduplicate_keeps_first_occurrence(make_article):
    first = make_article("First", url="https://example.com/same")
    second = make_article("Second", url="https://example.com/same")
    other = make_article("Other")
    assert deduplicate_articles([first, second, other]) == [first, other]


def test_rank_is_stable_for_equal_scores(make_article, now):
    a = make_article("Saudi bank news A", source="Al Arabiya")
    b = make_article("Saudi bank news B", source="Al Arabiya")
    ranked = rank_articles([a, b], now)
    assert [r["title"] for r in ranked] == ["Saudi bank news A", "Saudi bank news B"]


def test_previously_posted_by_url(make_article):
    article = make_article("Fresh headline", url="https://example.com/x")
    assert is_previously_posted(article, [{"title": "Other", "url": "https://example.com/x"}])
    assert not is_previously_posted(article, [{"title": "Other", "url": "https://example.com/y"}])


def test_previously_posted_by_normalized_title_when_url_missing(make_article):
    article = make_article("  Tadawul Suspends Trading ", url="")
    history = [{"title": "tadawul suspends trading", "url": "https://example.com/z"}]
    assert is_previously_posted(article, history)

    with_url = make_article("Rates unchanged", url="https://example.com/new")
    assert is_previously_posted(with_url, [{"title": "RATES UNCHANGED", "url": None}])


def _linkless_rss(titles):
    entries = "".join(
        f"<item><title>{title}</title><description>Details inside.</description>"
        f"<pubDate>{PUB_DATE}</pubDate></item>"
        for title in titles
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>{entries}</channel></rss>'


def _fetch_linkless(make_session, make_response, now, titles):
    session = make_session(handler=lambda method, url, kwargs: make_response(text=_linkless_rss(titles)))
    return fetch_all([SOURCES[0]], session=session, now=now)


def test_linkless_article_matches_history_by_title(make_session, make_response, now):
    """An item without a link is still recognized when the same title was posted with a URL."""
    articles = _fetch_linkless(make_session, make_response, now, ["SABIC dividend raised"])
    assert articles[0]["url"] == "#"

    history = [{"title": "SABIC dividend raised", "url": "https://example.com/s", "postedAt": "x"}]

    assert is_previously_posted(articles[0], history)
    assert select_articles(articles, history, limit=3, now=now) == []


def test_linkless_articles_are_not_collapsed(make_session, make_response, now):
    articles = _fetch_linkless(
        make_session, make_response, now, ["Aramco profit jumps", "SABIC dividend raised", "aramco profit jumps "]
    )

    selected = select_articles(articles, [], limit=3, now=now)

    assert sorted(a["title"] for a in selected) == ["Aramco profit jumps", "SABIC dividend raised"]


def test_deduplicate_uses_title_only_without_a_real_url(make_article):
    linked = make_article("Rates unchanged", url="https://example.com/1")
    same_title_other_url = make_article("Rates unchanged", url="https://example.com/2")
    placeholder = make_article("Rates unchanged", url="#")
    placeholder_again = make_article("RATES UNCHANGED", url="#")

    unique = deduplicate_articles([linked, same_title_other_url, placeholder, placeholder_again])

    assert unique == [linked, same_title_other_url, placeholder]
