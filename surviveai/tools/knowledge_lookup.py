"""lookup_survival_knowledge: topic-scoped knowledge retrieval for the model."""

import logging
from typing import Any

from surviveai.core.knowledge_retriever import KnowledgeRetriever
from surviveai.core.prompt_composer import format_knowledge_for_prompt
from surviveai.models.knowledge import CANONICAL_TOPICS
from surviveai.tools.base_tool import BaseTool, ToolResult, ToolStatus

logger = logging.getLogger(__name__)

KNOWLEDGE_TOOL_NAME = "lookup_survival_knowledge"
VALID_TOPICS = [topic.value for topic in CANONICAL_TOPICS]


class KnowledgeLookupTool(BaseTool):
    """Look up survival knowledge by topic, optionally narrowed by a query."""

    name = KNOWLEDGE_TOOL_NAME
    description = (
        "Look up specific survival knowledge from the database. Use this when you need "
        "accurate information about first aid, water purification, shelter building, "
        "navigation, fire starting, signaling for rescue, food foraging, or survival psychology."
    )
    parameters = {
        "type": "object",
        "properties": {
            "topic": {
                "type": "string",
                "enum": VALID_TOPICS,
                "description": "The survival topic to look up",
            },
            "query": {
                "type": "string",
                "description": "Specific question or keyword to search for within the topic",
            },
        },
        "required": ["topic"],
    }

    def __init__(self, retriever: KnowledgeRetriever, config: dict[str, Any] | None = None):
        super().__init__(config)
        self.retriever = retriever

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """Run the lookup.

        Unknown or missing topics produce a descriptive SUCCESS result: the text
        goes back to the model, which can retry with a valid topic.
        """
        topic = str(arguments.get("topic") or "").strip().lower()
        query = arguments.get("query") or None

        entries = self.retriever.lookup_topic(topic, query) if topic else None
        if entries is None:
            logger.info(f"Knowledge tool called with unknown topic: {topic}")
            return ToolResult(
                tool_name=self.name,
                status=ToolStatus.SUCCESS,
                output=f'Invalid topic "{topic}". Valid topics: {", ".join(VALID_TOPICS)}',
                data={"topic": topic, "entry_ids": []},
            )

        logger.debug(f"Knowledge tool returned {len(entries)} entries for {topic}")
        return ToolResult(
            tool_name=self.name,
            status=ToolStatus.SUCCESS,
            output=format_knowledge_for_prompt(entries),
            data={"topic": topic, "entry_ids": [entry.id for entry in entries]},
        )

    async def fallback(self, arguments: dict[str, Any], error: Exception) -> ToolResult:
        return ToolResult(
            tool_name=self.name,
            status=ToolStatus.FAILED,
            output=f"Knowledge lookup failed: {error}",
            error=str(error),
            fallback_used=True,
        )
