"""Response quality analysis.

Flags low-confidence model output: hedging, refusals, length anomalies,
repetition, and answers that ignore the knowledge they were given.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

from surviveai.core.tokenizer import extract_key_terms

logger = logging.getLogger(__name__)

UNCERTAINTY_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"i('m| am) not (sure|certain)",
        r"i don't know",
        r"i cannot (determine|say|tell)",
        r"i'm unsure",
        r"it's (hard|difficult) to (say|tell|know)",
        r"i'm not able to",
        r"unclear",
        r"i have no (information|knowledge)",
        r"cannot provide",
        r"beyond my (knowledge|ability)",
    )
]

CONFUSION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"as an ai",
        r"as a language model",
        r"i apologize",
        r"i'm sorry,? but",
        r"i cannot assist with",
        r"please consult a (doctor|professional|expert)",
    )
]

REFUSAL_PREFIX = re.compile(r"^(i'm sorry|i apologize|i cannot|i'm not able)", re.IGNORECASE)
SENTENCE_SPLIT = re.compile(r"[.!?]+")

LOW_CONFIDENCE_SCORE = 60
MIN_LENGTH = 50
MAX_LENGTH = 2500
MIN_SENTENCE_LENGTH = 20
PHRASE_REPEAT_LIMIT = 3
MIN_KNOWLEDGE_OVERLAP = 0.2

DEFINITELY_LOW_MIN_CHARS = 20
DEFINITELY_LOW_MIN_WORDS = 10

PENALTIES = {
    "uncertainty": 25,
    "confusion": 20,
    "too_short": 30,
    "too_long": 10,
    "repetition": 25,
    "ignores_knowledge": 15,
}


@dataclass
class QualityAnalysis:
    """Quality verdict for one response."""

    score: int
    is_low_confidence: bool
    has_uncertainty: bool = False
    is_confused: bool = False
    is_too_short: bool = False
    is_too_long: bool = False
    has_repetition: bool = False
    knowledge_overlap: float | None = None
    issues: list[str] = field(default_factory=list)


def detect_repetition(text: str) -> bool:
    """Repeated long sentence, or a 3-word phrase occurring 3+ times."""
    seen = set()
    for sentence in SENTENCE_SPLIT.split(text):
        normalized = sentence.strip().lower()
        if len(normalized) <= MIN_SENTENCE_LENGTH:
            continue
        if normalized in seen:
            return True
        seen.add(normalized)

    words = text.lower().split()
    phrases = Counter(" ".join(words[i : i + 3]) for i in range(len(words) - 2))
    return any(count >= PHRASE_REPEAT_LIMIT for count in phrases.values())


def knowledge_overlap(response: str, knowledge: str) -> float | None:
    """Share of the knowledge's key terms that also appear in the response.

    Returns:
        Overlap ratio, or None if the knowledge has no key terms
    """
    knowledge_terms = extract_key_terms(knowledge)
    if not knowledge_terms:
        return None
    response_terms = extract_key_terms(response)
    return len(knowledge_terms & response_terms) / len(knowledge_terms)


class QualityAnalyzer:
    """Scores responses from 100 down, one deduction per failed check."""

    def analyze(self, response: str | None, injected_knowledge: str | None = None) -> QualityAnalysis:
        """Analyze a generated response.

        Never raises: degenerate input (empty or None) still gets a score.

        Args:
            response: Generated text
            injected_knowledge: Knowledge block that was given to the model

        Returns:
            QualityAnalysis with score in [0, 100]
        """
        response = response or ""
        issues = []
        score = 100

        has_uncertainty = any(p.search(response) for p in UNCERTAINTY_PATTERNS)
        if has_uncertainty:
            score -= PENALTIES["uncertainty"]
            issues.append("Response expresses uncertainty")

        is_confused = any(p.search(response) for p in CONFUSION_PATTERNS)
        if is_confused:
            score -= PENALTIES["confusion"]
            issues.append("Response seems off-topic or confused")

        is_too_short = len(response) < MIN_LENGTH
        if is_too_short:
            score -= PENALTIES["too_short"]
            issues.append("Response is too short to be helpful")

        is_too_long = len(response) > MAX_LENGTH
        if is_too_long:
            score -= PENALTIES["too_long"]
            issues.append("Response is excessively long")

        has_repetition = detect_repetition(response)
        if has_repetition:
            score -= PENALTIES["repetition"]
            issues.append("Response contains repetitive content")

        overlap = None
        if injected_knowledge:
            overlap = knowledge_overlap(response, injected_knowledge)
            if overlap is not None and overlap < MIN_KNOWLEDGE_OVERLAP:
                score -= PENALTIES["ignores_knowledge"]
                issues.append("Response may not be using provided knowledge")

        score = max(0, score)
        if issues:
            logger.debug(f"Quality score {score}: {issues}")

        return QualityAnalysis(
            score=score,
            is_low_confidence=score < LOW_CONFIDENCE_SCORE,
            has_uncertainty=has_uncertainty,
            is_confused=is_confused,
            is_too_short=is_too_short,
            is_too_long=is_too_long,
            has_repetition=has_repetition,
            knowledge_overlap=overlap,
            issues=issues,
        )

    def is_definitely_low_quality(self, response: str | None) -> bool:
        """Cheap pre-filter run before the full analysis.

        True for near-empty text, an opening apology or refusal, or fewer
        than ten words.
        """
        if not response or len(response.strip()) < DEFINITELY_LOW_MIN_CHARS:
            return True

        if REFUSAL_PREFIX.match(response.strip()):
            return True

        return len(response.split()) < DEFINITELY_LOW_MIN_WORDS
