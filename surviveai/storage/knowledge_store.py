# surviveai/storage/knowledge_store.py
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from surviveai.lib.errors import CorpusLoadError
from surviveai.models.knowledge import (
    CANONICAL_TOPICS,
    TOPIC_ALIASES,
    CachedQA,
    KnowledgeEntry,
    KnowledgeTopic,
    TopicId,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "knowledge" / "data"


class KnowledgeCorpus:
    """Immutable collection of knowledge topics and cached Q&A pairs.

    Shared process-wide and read-only: nothing here mutates after construction.
    """

    def __init__(self, topics: List[KnowledgeTopic], cached_qa: List[CachedQA]):
        self._topics: Dict[TopicId, KnowledgeTopic] = {}
        for topic in topics:
            if topic.id in TOPIC_ALIASES:
                raise CorpusLoadError(f"alias '{topic.id.value}' cannot be defined as a topic")
            self._topics[topic.id] = topic

        self._entries = self._flatten()
        self._entries_by_id = {entry.id: entry for entry in self._entries}
        self._cached_qa = tuple(cached_qa)

    def _flatten(self) -> List[KnowledgeEntry]:
        # Canonical topics first, then aliases, first occurrence of an ID wins
        entries: List[KnowledgeEntry] = []
        seen = set()
        for topic_id in self.topic_ids(include_aliases=True):
            topic = self.get_topic(topic_id)
            if topic is None:
                continue
            for entry in topic.entries:
                if entry.id not in seen:
                    seen.add(entry.id)
                    entries.append(entry)
        return entries

    @property
    def topics(self) -> List[KnowledgeTopic]:
        """Canonical topics in enumeration order."""
        return [self._topics[t] for t in CANONICAL_TOPICS if t in self._topics]

    @property
    def cached_qa(self) -> tuple[CachedQA, ...]:
        return self._cached_qa

    def topic_ids(self, include_aliases: bool = False) -> List[TopicId]:
        ids = [t for t in CANONICAL_TOPICS if t in self._topics]
        if include_aliases:
            ids.extend(alias for alias, target in TOPIC_ALIASES.items() if target in self._topics)
        return ids

    @staticmethod
    def resolve_topic_id(topic_id: str) -> Optional[TopicId]:
        """Map a raw topic string (canonical or alias) to its canonical TopicId."""
        try:
            parsed = TopicId(topic_id)
        except ValueError:
            return None
        return TOPIC_ALIASES.get(parsed, parsed)

    def get_topic(self, topic_id: str) -> Optional[KnowledgeTopic]:
        canonical = self.resolve_topic_id(topic_id)
        if canonical is None:
            return None
        return self._topics.get(canonical)

    def get_all_entries(self) -> List[KnowledgeEntry]:
        """All entries across topics, deduplicated by ID."""
        return list(self._entries)

    def get_entry(self, entry_id: str) -> Optional[KnowledgeEntry]:
        return self._entries_by_id.get(entry_id)

    def topic_for_entry(self, entry_id: str) -> Optional[KnowledgeTopic]:
        for topic in self.topics:
            if topic.has_entry(entry_id):
                return topic
        return None

    def get_cached_qa_by_id(self, qa_id: str) -> Optional[CachedQA]:
        return next((qa for qa in self._cached_qa if qa.id == qa_id), None)

    def get_cached_qa_by_category(self, category: str) -> List[CachedQA]:
        return [qa for qa in self._cached_qa if qa.category == category]

    @classmethod
    def load(cls, data_dir: str | Path | None = None) -> "KnowledgeCorpus":
        """Load the corpus from YAML files.

        Layout: ``<data_dir>/topics/<topic>.yaml`` and ``<data_dir>/cached_qa.yaml``.

        Args:
            data_dir: Data directory (default: packaged data)

        Returns:
            Loaded KnowledgeCorpus

        Raises:
            CorpusLoadError: If files are missing, malformed, or violate the schema
        """
        data_path = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        topics_dir = data_path / "topics"
        if not topics_dir.is_dir():
            raise CorpusLoadError(f"topics directory not found: {topics_dir}")

        topics = []
        for topic_file in sorted(topics_dir.glob("*.yaml")):
            raw = _read_yaml(topic_file)
            try:
                topics.append(KnowledgeTopic.model_validate(raw))
            except ValidationError as e:
                raise CorpusLoadError(f"{topic_file.name}: {e}") from e

        if not topics:
            raise CorpusLoadError(f"no topic files in {topics_dir}")

        cached_qa: List[CachedQA] = []
        qa_file = data_path / "cached_qa.yaml"
        if qa_file.exists():
            raw = _read_yaml(qa_file)
            try:
                cached_qa = [CachedQA.model_validate(item) for item in raw.get("cached_qa") or []]
            except ValidationError as e:
                raise CorpusLoadError(f"{qa_file.name}: {e}") from e
        else:
            logger.warning(f"Cached Q&A file not found: {qa_file}")

        _check_unique_ids(topics)

        corpus = cls(topics, cached_qa)
        logger.info(
            f"Loaded knowledge corpus: {len(corpus.topics)} topics, "
            f"{len(corpus.get_all_entries())} entries, {len(cached_qa)} cached answers"
        )
        return corpus


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CorpusLoadError(f"{path.name}: {e}") from e
    if not isinstance(data, dict):
        raise CorpusLoadError(f"{path.name}: expected a mapping at top level")
    return data


def _check_unique_ids(topics: List[KnowledgeTopic]) -> None:
    seen: Dict[str, str] = {}
    for topic in topics:
        for entry in topic.entries:
            if entry.id in seen:
                raise CorpusLoadError(
                    f"duplicate entry id '{entry.id}' in topics "
                    f"'{seen[entry.id]}' and '{topic.id.value}'"
                )
            seen[entry.id] = topic.id.value


@lru_cache(maxsize=None)
def load_default_corpus(data_dir: str | None = None) -> KnowledgeCorpus:
    """Load and cache the process-wide corpus."""
    return KnowledgeCorpus.load(data_dir)
