"""Unit tests for loading the knowledge corpus."""

import pytest
import yaml

from surviveai.lib.errors import CorpusLoadError
from surviveai.models.knowledge import CANONICAL_TOPICS, TopicId
from surviveai.storage.knowledge_store import KnowledgeCorpus


def write_topic(directory, topic_id, entries, name="Topic"):
    data = {
        "id": topic_id,
        "name": name,
        "description": "Test topic",
        "keywords": [topic_id],
        "entries": entries,
    }
    (directory / f"{topic_id}.yaml").write_text(yaml.safe_dump(data), encoding="utf-8")


@pytest.fixture
def data_dir(tmp_path):
    topics = tmp_path / "topics"
    topics.mkdir()
    return tmp_path


def test_bundled_corpus_has_all_topics(corpus):
    assert corpus.topic_ids() == CANONICAL_TOPICS
    assert len(corpus.cached_qa) == 15


def test_entries_are_deduplicated_across_aliases(corpus):
    ids = [entry.id for entry in corpus.get_all_entries()]
    assert len(ids) == len(set(ids))
    total = sum(len(topic.entries) for topic in corpus.topics)
    assert len(ids) == total


def test_alias_resolution(corpus):
    assert corpus.get_topic("weather").id == TopicId.SHELTER
    assert corpus.get_topic("animals").id == TopicId.FOOD
    assert corpus.get_topic("astronomy") is None
    assert TopicId.WEATHER in corpus.topic_ids(include_aliases=True)


def test_entry_lookup(corpus):
    entry = corpus.get_entry("water-purification")
    assert entry.title == "Water Purification Methods"
    assert corpus.topic_for_entry("water-purification").id == TopicId.WATER
    assert corpus.get_entry("nope") is None


def test_load_custom_directory(data_dir):
    write_topic(
        data_dir / "topics",
        "fire",
        [{"id": "fire-1", "title": "Tinder", "content": "Dry grass.", "priority": "high", "keywords": ["tinder"]}],
    )
    (data_dir / "cached_qa.yaml").write_text(
        yaml.safe_dump(
            {"cached_qa": [{"id": "q1", "question": "How?", "keywords": ["fire"], "answer": "Like this."}]}
        ),
        encoding="utf-8",
    )

    corpus = KnowledgeCorpus.load(data_dir)

    assert corpus.topic_ids() == [TopicId.FIRE]
    assert corpus.get_entry("fire-1").keywords == ("tinder",)
    assert corpus.get_cached_qa_by_id("q1").category == "general"


def test_missing_topics_directory(tmp_path):
    with pytest.raises(CorpusLoadError):
        KnowledgeCorpus.load(tmp_path)


def test_duplicate_entry_ids_rejected(data_dir):
    entry = {"id": "dup", "title": "T", "content": "C"}
    write_topic(data_dir / "topics", "fire", [entry])
    write_topic(data_dir / "topics", "water", [entry])

    with pytest.raises(CorpusLoadError, match="duplicate entry id 'dup'"):
        KnowledgeCorpus.load(data_dir)


def test_invalid_priority_rejected(data_dir):
    write_topic(data_dir / "topics", "fire", [{"id": "x", "title": "T", "content": "C", "priority": "urgent"}])

    with pytest.raises(CorpusLoadError):
        KnowledgeCorpus.load(data_dir)


def test_alias_cannot_be_a_topic(data_dir):
    write_topic(data_dir / "topics", "weather", [])

    with pytest.raises(CorpusLoadError):
        KnowledgeCorpus.load(data_dir)


def test_malformed_yaml(data_dir):
    (data_dir / "topics" / "fire.yaml").write_text("id: [unclosed", encoding="utf-8")

    with pytest.raises(CorpusLoadError):
        KnowledgeCorpus.load(data_dir)
