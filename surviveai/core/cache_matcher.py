"""Cache matching for pre-written answers.

Finds the best cached Q&A for a query with a stricter scorer than the
knowledge-entry scorer. A match must reach MIN_SCORE_THRESHOLD to count at
all; HIGH_CONFIDENCE_THRESHOLD marks answers safe to return without generation.
"""

import logging
from typing import List, Optional

from surviveai.core.tokenizer import tokenize
from surviveai.models.knowledge import CachedQA, MatchResult
from surviveai.storage.knowledge_store import KnowledgeCorpus

logger = logging.getLogger(__name__)

MIN_SCORE_THRESHOLD = 15
HIGH_CONFIDENCE_THRESHOLD = 40

MIN_QUERY_LENGTH = 5
QUESTION_PREFIX_LENGTH = 20
QUESTION_MATCH_MARKER = "question-match"


def word_similarity(word1: str, word2: str) -> float:
    """Exact match is 1.0, substring containment either way is 0.7, else 0."""
    if word1 == word2:
        return 1.0
    if word1 in word2 or word2 in word1:
        return 0.7
    return 0.0


class CacheMatcher:
    """Scores cached Q&A pairs against free-text queries."""

    QUESTION_MATCH = 50
    KEYWORD_IN_QUERY = 10
    SIMILARITY_WEIGHT = 5
    MULTI_MATCH_BONUS = 10

    def __init__(
        self,
        corpus: KnowledgeCorpus,
        min_score: int = MIN_SCORE_THRESHOLD,
        high_confidence: int = HIGH_CONFIDENCE_THRESHOLD,
    ):
        """Initialize matcher.

        Args:
            corpus: Knowledge corpus holding the cached Q&A set
            min_score: Minimum score for a candidate
            high_confidence: Score at which a match can bypass generation
        """
        self.corpus = corpus
        self.min_score = min_score
        self.high_confidence = high_confidence

    def score_match(self, qa: CachedQA, query: str, query_words: set[str]) -> MatchResult:
        """Score a single cached Q&A against a query.

        Args:
            qa: Cached Q&A candidate
            query: Raw query
            query_words: Tokenized query

        Returns:
            MatchResult with score and matched keywords
        """
        score = 0
        matched: List[str] = []
        query_lower = query.lower()

        if qa.question.lower()[:QUESTION_PREFIX_LENGTH] in query_lower:
            score += self.QUESTION_MATCH
            matched.append(QUESTION_MATCH_MARKER)

        for keyword in qa.keywords:
            if keyword in query_lower:
                score += self.KEYWORD_IN_QUERY
                matched.append(keyword)
                continue

            for word in query_words:
                similarity = word_similarity(word, keyword)
                if similarity > 0:
                    score += round(similarity * self.SIMILARITY_WEIGHT)
                    if similarity >= 0.7 and keyword not in matched:
                        matched.append(keyword)

        if len(matched) >= 3:
            score += self.MULTI_MATCH_BONUS
        if len(matched) >= 5:
            score += self.MULTI_MATCH_BONUS

        return MatchResult(qa=qa, score=score, matched_keywords=matched)

    def _candidates(self, query: str | None) -> List[MatchResult]:
        if not query or len(query.strip()) < MIN_QUERY_LENGTH:
            return []

        query_words = tokenize(query)
        if not query_words:
            return []

        results = []
        for qa in self.corpus.cached_qa:
            result = self.score_match(qa, query, query_words)
            if result.score >= self.min_score:
                results.append(result)
        return results

    def find_cached_answer_with_details(self, query: str | None) -> Optional[MatchResult]:
        """Best candidate at or above the minimum threshold, with match details."""
        best: Optional[MatchResult] = None
        for result in self._candidates(query):
            # Strictly greater: the earliest of equal-scoring candidates wins
            if best is None or result.score > best.score:
                best = result

        if best is not None:
            logger.debug(
                f"Cache match {best.qa.id} score={best.score} keywords={best.matched_keywords}"
            )
        return best

    def find_cached_answer(self, query: str | None) -> Optional[CachedQA]:
        result = self.find_cached_answer_with_details(query)
        return result.qa if result else None

    def is_high_confidence_match(self, query: str | None) -> bool:
        """Whether the best match is strong enough to skip generation."""
        result = self.find_cached_answer_with_details(query)
        return result is not None and result.score >= self.high_confidence

    def find_top_matches(self, query: str | None, limit: int = 3) -> List[MatchResult]:
        """Top candidates by descending score (for suggestions and debugging)."""
        results = self._candidates(query)
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def get_all_cached_qa(self) -> List[CachedQA]:
        return list(self.corpus.cached_qa)

    def get_cached_qa_by_id(self, qa_id: str) -> Optional[CachedQA]:
        return self.corpus.get_cached_qa_by_id(qa_id)

    def get_cached_qa_by_category(self, category: str) -> List[CachedQA]:
        return self.corpus.get_cached_qa_by_category(category)
