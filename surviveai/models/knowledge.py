# surviveai/models/knowledge.py
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TopicId(str, Enum):
    """Closed set of topic identifiers, including the two aliases."""

    FIRST_AID = "first-aid"
    WATER = "water"
    SHELTER = "shelter"
    NAVIGATION = "navigation"
    FIRE = "fire"
    SIGNALING = "signaling"
    FOOD = "food"
    PSYCHOLOGY = "psychology"
    WEATHER = "weather"
    ANIMALS = "animals"


CANONICAL_TOPICS: List[TopicId] = [
    TopicId.FIRST_AID,
    TopicId.WATER,
    TopicId.SHELTER,
    TopicId.NAVIGATION,
    TopicId.FIRE,
    TopicId.SIGNALING,
    TopicId.FOOD,
    TopicId.PSYCHOLOGY,
]

TOPIC_ALIASES = {
    TopicId.WEATHER: TopicId.SHELTER,  # weather relates to shelter
    TopicId.ANIMALS: TopicId.FOOD,  # animals relate to food
}

QACategory = Literal[
    "water", "shelter", "fire", "first-aid", "navigation", "signaling", "food", "general"
]


class KnowledgeEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    keywords: tuple[str, ...] = ()
    priority: Priority = Priority.MEDIUM


class KnowledgeTopic(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: TopicId
    name: str
    description: str
    keywords: tuple[str, ...] = ()
    entries: tuple[KnowledgeEntry, ...] = ()

    def has_entry(self, entry_id: str) -> bool:
        return any(entry.id == entry_id for entry in self.entries)


class CachedQA(BaseModel):
    """A pre-vetted, fully formatted answer to a common question."""

    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    keywords: tuple[str, ...] = ()
    answer: str
    category: QACategory = "general"
    related_entry_id: Optional[str] = None


class MatchResult(BaseModel):
    qa: CachedQA
    score: int
    matched_keywords: List[str] = Field(default_factory=list)
