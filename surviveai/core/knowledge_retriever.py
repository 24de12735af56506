"""Knowledge retrieval over the survival corpus."""

import logging
from typing import List, Optional

from surviveai.core.prompt_composer import format_knowledge_for_prompt
from surviveai.core.relevance_scorer import RelevanceScorer, ScoredEntry
from surviveai.models.knowledge import KnowledgeEntry, Priority, TopicId
from surviveai.storage.knowledge_store import KnowledgeCorpus

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 3
TOPIC_SEARCH_MAX_RESULTS = 2
MAX_DETECTED_TOPICS = 2


class KnowledgeRetriever:
    """Ranks corpus entries against queries and serves topic-scoped lookups."""

    def __init__(self, corpus: KnowledgeCorpus, scorer: RelevanceScorer | None = None):
        """Initialize retriever.

        Args:
            corpus: Knowledge corpus to search
            scorer: Entry scorer (default: RelevanceScorer)
        """
        self.corpus = corpus
        self.scorer = scorer or RelevanceScorer()

    def search_with_scores(
        self, query: str, max_results: int = DEFAULT_MAX_RESULTS
    ) -> List[ScoredEntry]:
        """Rank all entries against a query, keeping the scores."""
        if max_results <= 0:
            return []
        return self.scorer.rank(self.corpus.get_all_entries(), query)[:max_results]

    def search_knowledge(
        self, query: str, max_results: int = DEFAULT_MAX_RESULTS
    ) -> List[KnowledgeEntry]:
        """Top entries for a query across every topic.

        Args:
            query: Free-text query
            max_results: Maximum entries to return

        Returns:
            Entries in non-increasing score order (empty when nothing matches)
        """
        return [scored.entry for scored in self.search_with_scores(query, max_results)]

    def detect_topics(self, message: str) -> List[TopicId]:
        """Guess up to two topics from topic-level keywords in a message.

        Each topic keyword found as a substring of the lowercased message adds
        one point. Ties keep enumeration order.

        Args:
            message: User message

        Returns:
            Up to two canonical topic IDs, best first
        """
        message_lower = message.lower()
        detected = []
        for topic in self.corpus.topics:
            score = sum(1 for keyword in topic.keywords if keyword in message_lower)
            if score > 0:
                detected.append((topic.id, score))

        detected.sort(key=lambda d: d[1], reverse=True)
        return [topic_id for topic_id, _ in detected[:MAX_DETECTED_TOPICS]]

    def lookup_topic(self, topic: str, query: Optional[str] = None) -> Optional[List[KnowledgeEntry]]:
        """Entries a knowledge-tool call should return.

        With a query, scores only the topic's own entries. Without one, or when
        nothing in the topic matches, falls back to the topic's first two
        critical/high priority entries.

        Args:
            topic: Topic ID (aliases accepted)
            query: Optional search text within the topic

        Returns:
            Entry list, or None if the topic is unknown
        """
        knowledge_topic = self.corpus.get_topic(topic)
        if knowledge_topic is None:
            return None

        if query:
            ranked = self.scorer.rank(knowledge_topic.entries, query)
            if ranked:
                return [s.entry for s in ranked[:TOPIC_SEARCH_MAX_RESULTS]]
            logger.debug(f"No in-topic hits for '{query}' in {topic}, using priority entries")

        priority_entries = [
            entry
            for entry in knowledge_topic.entries
            if entry.priority in (Priority.CRITICAL, Priority.HIGH)
        ]
        return priority_entries[:TOPIC_SEARCH_MAX_RESULTS]

    def execute_knowledge_tool(self, topic: str, query: Optional[str] = None) -> str:
        """Run a topic-scoped lookup and format it as tool output.

        An unknown topic yields a descriptive message rather than an error,
        since the result is sent back to the generation engine.
        """
        entries = self.lookup_topic(topic, query)
        if entries is None:
            return f'Topic "{topic}" not found.'
        return format_knowledge_for_prompt(entries)

    def get_relevant_knowledge(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> str:
        """Prompt-ready knowledge block for a query, or "" when nothing matched."""
        return format_knowledge_for_prompt(self.search_knowledge(query, max_results))
