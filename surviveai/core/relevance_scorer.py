"""Keyword-overlap relevance scoring for knowledge entries."""

import logging
from dataclasses import dataclass
from typing import Iterable

from surviveai.core.tokenizer import tokenize
from surviveai.models.knowledge import KnowledgeEntry, Priority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredEntry:
    entry: KnowledgeEntry
    score: float


class RelevanceScorer:
    """Additive scorer for knowledge entries.

    Tuned separately from the cached Q&A scorer; the two use different
    scales and must not be merged.
    """

    TITLE_MATCH = 10
    KEYWORD_IN_QUERY = 5
    PARTIAL_KEYWORD = 2
    CONTENT_MATCH = 1

    PRIORITY_MULTIPLIERS = {
        Priority.CRITICAL: 1.5,
        Priority.HIGH: 1.2,
        Priority.MEDIUM: 1.0,
        Priority.LOW: 1.0,
    }

    def score(self, entry: KnowledgeEntry, query_lower: str, query_words: set[str]) -> float:
        """Score one entry against a query.

        Args:
            entry: Candidate knowledge entry
            query_lower: Full query, lowercased
            query_words: Tokenized query

        Returns:
            Relevance score (0 means no match)
        """
        score = 0.0

        if query_lower and query_lower in entry.title.lower():
            score += self.TITLE_MATCH

        for keyword in entry.keywords:
            if keyword in query_lower:
                score += self.KEYWORD_IN_QUERY
            for word in query_words:
                if keyword in word or word in keyword:
                    score += self.PARTIAL_KEYWORD

        content_lower = entry.content.lower()
        for word in query_words:
            if word in content_lower:
                score += self.CONTENT_MATCH

        return score * self.PRIORITY_MULTIPLIERS.get(entry.priority, 1.0)

    def rank(self, entries: Iterable[KnowledgeEntry], query: str) -> list[ScoredEntry]:
        """Score and rank entries against a free-text query.

        Only entries with a positive score are returned, sorted by descending
        score. Ties keep input order. A query with no usable tokens matches nothing.

        Args:
            entries: Candidate entries
            query: Free-text query

        Returns:
            Ranked list of ScoredEntry
        """
        query_words = tokenize(query)
        if not query_words:
            return []

        query_lower = query.lower().strip()
        scored = []
        for entry in entries:
            score = self.score(entry, query_lower, query_words)
            if score > 0:
                scored.append(ScoredEntry(entry=entry, score=score))

        # sorted() is stable, so equal scores keep corpus order
        scored.sort(key=lambda s: s.score, reverse=True)
        logger.debug(f"Scored {len(scored)} candidate entries for query: {query[:50]}")
        return scored
