"""Unit tests for cached answer matching."""

import pytest

from surviveai.core.cache_matcher import (
    HIGH_CONFIDENCE_THRESHOLD,
    MIN_SCORE_THRESHOLD,
    QUESTION_MATCH_MARKER,
    CacheMatcher,
    word_similarity,
)
from surviveai.models.knowledge import CachedQA
from surviveai.storage.knowledge_store import KnowledgeCorpus

FIRE_QA = CachedQA(
    id="fire-1",
    question="How do I start a fire without matches?",
    category="fire",
    keywords=("fire", "matches", "start", "tinder"),
    answer="Use a ferro rod or friction.",
)


@pytest.fixture
def matcher():
    return CacheMatcher(KnowledgeCorpus([], [FIRE_QA]))


@pytest.fixture
def corpus_matcher(corpus):
    return CacheMatcher(corpus)


def test_word_similarity():
    assert word_similarity("fire", "fire") == 1.0
    assert word_similarity("match", "matches") == 0.7
    assert word_similarity("matches", "match") == 0.7
    assert word_similarity("rain", "snow") == 0.0


def test_question_prefix_gives_high_confidence(matcher):
    result = matcher.find_cached_answer_with_details("How do I start a fire without matches today")
    assert result.qa.id == "fire-1"
    assert QUESTION_MATCH_MARKER in result.matched_keywords
    # 50 question + 3 keywords + bonus for four matches
    assert result.score == 50 + 30 + 10
    assert matcher.is_high_confidence_match("How do I start a fire without matches today")


def test_partial_similarity_and_multi_match_bonus(matcher):
    result = matcher.find_cached_answer_with_details("match tinder fire")
    # fire +10, matches ~ match +4, tinder +10, three matches +10
    assert result.score == 34
    assert result.matched_keywords == ["fire", "matches", "tinder"]
    assert not matcher.is_high_confidence_match("match tinder fire")


def test_medium_score_is_returned_but_not_high_confidence(matcher):
    result = matcher.find_cached_answer_with_details("fire starting tips")
    assert MIN_SCORE_THRESHOLD <= result.score < HIGH_CONFIDENCE_THRESHOLD
    assert matcher.find_cached_answer("fire starting tips") == FIRE_QA


def test_below_threshold_is_no_match(matcher):
    assert matcher.find_cached_answer_with_details("tinderbox advice") is None
    assert matcher.find_cached_answer("tinderbox advice") is None


@pytest.mark.parametrize("query", ["", None, "fire", "   fire  ", "!!!!!!", "xyz123!!!"])
def test_degenerate_queries(matcher, query):
    assert matcher.find_cached_answer(query) is None
    assert matcher.find_top_matches(query) == []
    assert not matcher.is_high_confidence_match(query)


def test_earliest_candidate_wins_ties():
    twin = FIRE_QA.model_copy(update={"id": "fire-2"})
    matcher = CacheMatcher(KnowledgeCorpus([], [FIRE_QA, twin]))
    assert matcher.find_cached_answer("fire starting tips").id == "fire-1"


def test_purify_water_matches_cached_answer(corpus_matcher):
    query = "How do I purify water in the wilderness?"
    result = corpus_matcher.find_cached_answer_with_details(query)
    assert result.qa.id == "water-purify-1"
    assert result.score >= MIN_SCORE_THRESHOLD
    assert "purify" in result.matched_keywords
    assert "water" in result.matched_keywords


@pytest.mark.parametrize(
    "query",
    [
        "How do I purify water in the wilderness?",
        "snake bit my leg",
        "I'm lost and scared",
        "how to build a shelter from branches",
        "what to pack in a kit",
        "xyz123!!!",
    ],
)
def test_threshold_properties(corpus_matcher, query):
    details = corpus_matcher.find_cached_answer_with_details(query)
    answer = corpus_matcher.find_cached_answer(query)
    if details is None:
        assert answer is None
    else:
        assert details.score >= MIN_SCORE_THRESHOLD
        assert answer == details.qa
    if corpus_matcher.is_high_confidence_match(query):
        assert answer is not None
        assert details.score >= HIGH_CONFIDENCE_THRESHOLD
    assert answer == corpus_matcher.find_cached_answer(query)


def test_top_matches_sorted(corpus_matcher):
    matches = corpus_matcher.find_top_matches("how do I find and purify water to drink", limit=3)
    assert 0 < len(matches) <= 3
    scores = [m.score for m in matches]
    assert scores == sorted(scores, reverse=True)


def test_lookup_helpers(corpus_matcher):
    assert corpus_matcher.get_cached_qa_by_id("firstaid-cpr-1").category == "first-aid"
    assert corpus_matcher.get_cached_qa_by_id("missing") is None
    assert all(qa.category == "water" for qa in corpus_matcher.get_cached_qa_by_category("water"))
    assert len(corpus_matcher.get_all_cached_qa()) == 15
