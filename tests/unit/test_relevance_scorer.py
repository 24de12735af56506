"""Unit tests for knowledge-entry relevance scoring."""

import pytest

from surviveai.core.relevance_scorer import RelevanceScorer
from surviveai.core.tokenizer import tokenize
from surviveai.models.knowledge import KnowledgeEntry, Priority


def make_entry(priority=Priority.MEDIUM, **overrides):
    data = {
        "id": "test-entry",
        "title": "Building a Debris Hut",
        "content": "Pile leaves and branches over a ridgepole for insulation.",
        "keywords": ("debris", "hut", "insulation"),
        "priority": priority,
    }
    data.update(overrides)
    return KnowledgeEntry(**data)


def score(scorer, entry, query):
    return scorer.score(entry, query.lower(), tokenize(query))


@pytest.fixture
def scorer():
    return RelevanceScorer()


def test_no_overlap_scores_zero(scorer):
    assert score(scorer, make_entry(), "compass bearing") == 0


def test_keyword_in_query_and_partial_match(scorer):
    # "debris": +5 substring, +2 partial; "debris" also appears in the title only
    assert score(scorer, make_entry(), "debris") == 5 + 2 + 10


def test_content_match_counts_once_per_word(scorer):
    entry = make_entry(keywords=())
    assert score(scorer, entry, "leaves branches") == 2


def test_partial_keyword_match(scorer):
    entry = make_entry(title="Shelter", content="", keywords=("insulation",))
    # "insulate" is not a substring of "insulation" or vice versa
    assert score(scorer, entry, "insulate") == 0
    # "insul" is contained in the keyword; the keyword is not in the query
    assert score(scorer, entry, "insul") == 2


@pytest.mark.parametrize(
    "priority,multiplier",
    [
        (Priority.CRITICAL, 1.5),
        (Priority.HIGH, 1.2),
        (Priority.MEDIUM, 1.0),
        (Priority.LOW, 1.0),
    ],
)
def test_priority_multiplier(scorer, priority, multiplier):
    base = score(scorer, make_entry(), "leaves")
    assert score(scorer, make_entry(priority=priority), "leaves") == pytest.approx(base * multiplier)


def test_adding_keyword_never_decreases_score(scorer):
    entry = make_entry()
    without = score(scorer, entry, "leaves for warmth")
    with_keyword = score(scorer, entry, "leaves for warmth insulation")
    assert with_keyword >= without
    assert with_keyword > 0


def test_rank_orders_by_score_and_filters_zero(scorer):
    strong = make_entry(id="strong")
    weak = make_entry(id="weak", keywords=(), title="Other")
    unrelated = make_entry(id="none", keywords=("fire",), title="Fire", content="Tinder")

    ranked = scorer.rank([weak, unrelated, strong], "debris insulation leaves")

    assert [s.entry.id for s in ranked] == ["strong", "weak"]
    assert ranked[0].score >= ranked[1].score


def test_rank_keeps_input_order_on_ties(scorer):
    first = make_entry(id="first")
    second = make_entry(id="second")
    ranked = scorer.rank([first, second], "leaves")
    assert [s.entry.id for s in ranked] == ["first", "second"]


def test_rank_with_no_tokens_matches_nothing(scorer):
    assert scorer.rank([make_entry()], "!!! ?? 42") == []
