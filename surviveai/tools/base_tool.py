"""Base tool interface for model function calling."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ToolStatus(Enum):
    """Tool execution status."""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ToolResult:
    """Result from tool execution."""

    tool_name: str
    status: ToolStatus
    output: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    execution_time_ms: int = 0
    fallback_used: bool = False


class BaseTool(ABC):
    """Abstract base class for tools exposed to the generation engine."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {}

    def __init__(self, config: dict[str, Any] | None = None):
        """Initialize tool with configuration.

        Args:
            config: Tool-specific configuration
        """
        self.config = config or {}
        self.enabled = self.config.get("enabled", True)

    def schema(self) -> dict[str, Any]:
        """Function schema sent to the engine."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """Execute the tool with model-supplied arguments.

        Args:
            arguments: Parsed function-call arguments

        Returns:
            ToolResult with execution outcome
        """
        pass

    @abstractmethod
    async def fallback(self, arguments: dict[str, Any], error: Exception) -> ToolResult:
        """Fallback strategy when primary execution fails.

        Args:
            arguments: Original arguments
            error: Exception that caused failure

        Returns:
            ToolResult from fallback attempt
        """
        pass

    async def execute_with_fallback(self, arguments: dict[str, Any]) -> ToolResult:
        """Execute tool with automatic fallback on failure.

        Args:
            arguments: Tool input arguments

        Returns:
            ToolResult from primary execution or fallback
        """
        if not self.enabled:
            logger.info(f"{self.name} is disabled")
            return ToolResult(
                tool_name=self.name,
                status=ToolStatus.FAILED,
                error="Tool is disabled in configuration",
            )

        start = time.perf_counter()
        try:
            result = await self.execute(arguments)
        except Exception as e:
            logger.warning(f"{self.name} primary execution failed: {e}, trying fallback")
            result = await self.fallback(arguments, e)

        result.execution_time_ms = int((time.perf_counter() - start) * 1000)
        return result
