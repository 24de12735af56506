"""Unit tests for knowledge retrieval over the bundled corpus."""

from surviveai.core.prompt_composer import KNOWLEDGE_HEADER
from surviveai.models.knowledge import Priority, TopicId


def test_purify_water_query_finds_purification_entry(retriever):
    results = retriever.search_knowledge("How do I purify water in the wilderness?", 3)
    assert "water-purification" in [entry.id for entry in results]


def test_results_are_sorted_and_bounded(retriever):
    for query in ["snake bite", "build a fire in rain", "lost at night", "water"]:
        scored = retriever.search_with_scores(query, 3)
        assert len(scored) <= 3
        scores = [s.score for s in scored]
        assert scores == sorted(scores, reverse=True)
        assert all(score > 0 for score in scores)


def test_search_is_deterministic(retriever):
    query = "how to treat a burn"
    first = [e.id for e in retriever.search_knowledge(query)]
    assert first == [e.id for e in retriever.search_knowledge(query)]


def test_nonsense_query_returns_nothing(retriever):
    assert retriever.search_knowledge("xyz123!!!") == []
    assert retriever.search_knowledge("") == []
    assert retriever.get_relevant_knowledge("!!!") == ""


def test_non_positive_limit_returns_nothing(retriever):
    assert retriever.search_knowledge("water", 0) == []


def test_detect_topics_bear_and_splint(retriever):
    topics = retriever.detect_topics("I see a bear and need a splint")
    assert topics == [TopicId.FIRST_AID, TopicId.FOOD]


def test_detect_topics_caps_at_two(retriever):
    topics = retriever.detect_topics("cold rain, need shelter, water, fire and a signal mirror")
    assert len(topics) <= 2


def test_detect_topics_never_returns_aliases(retriever):
    topics = retriever.detect_topics("animals near the camp in bad weather, wildlife everywhere")
    assert TopicId.ANIMALS not in topics
    assert TopicId.WEATHER not in topics


def test_lookup_topic_with_query_stays_in_topic(retriever, corpus):
    entries = retriever.lookup_topic("water", "boil")
    topic = corpus.get_topic("water")
    assert entries
    assert len(entries) <= 2
    assert all(topic.has_entry(entry.id) for entry in entries)


def test_lookup_topic_without_query_uses_priority_entries(retriever):
    entries = retriever.lookup_topic("first-aid")
    assert 0 < len(entries) <= 2
    assert all(entry.priority in (Priority.CRITICAL, Priority.HIGH) for entry in entries)


def test_lookup_topic_accepts_alias(retriever):
    assert retriever.lookup_topic("weather") == retriever.lookup_topic("shelter")


def test_lookup_unknown_topic(retriever):
    assert retriever.lookup_topic("astronomy") is None
    assert retriever.execute_knowledge_tool("astronomy") == 'Topic "astronomy" not found.'


def test_execute_knowledge_tool_formats_block(retriever):
    output = retriever.execute_knowledge_tool("water", "purify")
    assert output.startswith(f"\n---\n{KNOWLEDGE_HEADER}:\n### ")
    assert output.endswith("\n---\n")
