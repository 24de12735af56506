"""Query tokenization shared by the retrieval scorers and the quality analyzer."""

import re
from typing import Iterable

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "to", "of", "in",
        "for", "on", "with", "at", "by", "from", "or", "and", "not", "if",
        "but", "as", "it", "this", "that", "which", "who", "whom", "what",
        "your", "you", "i", "me", "my", "we", "our", "they", "their", "them",
        "how", "when", "where", "why",
    }
)

# General retrieval keeps tokens longer than 2 characters
MIN_TOKEN_LENGTH = 3
# Term-overlap quality checks keep tokens longer than 3 characters
MIN_KEY_TERM_LENGTH = 4

_NON_ALPHA = re.compile(r"[^a-z\s]")


def tokenize(text: str | None, min_length: int = MIN_TOKEN_LENGTH) -> set[str]:
    """Normalize free text into a filtered token set.

    Lowercases, replaces non-alphabetic characters with whitespace, splits,
    and drops short tokens and stop words. Empty or punctuation-only input
    yields an empty set.

    Args:
        text: Free-text input
        min_length: Minimum token length to keep

    Returns:
        Set of tokens
    """
    if not text:
        return set()

    normalized = _NON_ALPHA.sub(" ", text.lower())
    return {
        word
        for word in normalized.split()
        if len(word) >= min_length and word not in STOP_WORDS
    }


def extract_key_terms(text: str | None) -> set[str]:
    """Stricter tokenization used to compare a response with source knowledge."""
    return tokenize(text, min_length=MIN_KEY_TERM_LENGTH)


def tokens_as_string(tokens: Iterable[str]) -> str:
    """Join tokens into a stable, re-tokenizable string."""
    return " ".join(sorted(tokens))
