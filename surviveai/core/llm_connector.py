"""Generation engine abstraction for on-device text models."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from surviveai.models.conversation import PerformanceMetrics
from surviveai.models.model_config import ModelConfig

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], None]
ProgressCallback = Callable[[float], None]


@dataclass
class FunctionCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CompletionResult:
    """Standardized completion output."""

    response: str
    function_calls: List[FunctionCall] = field(default_factory=list)
    tokens_per_second: float = 0.0
    time_to_first_token_ms: float = 0.0
    total_time_ms: float = 0.0
    total_tokens: int = 0

    @property
    def metrics(self) -> PerformanceMetrics:
        return PerformanceMetrics(
            tokens_per_second=self.tokens_per_second,
            time_to_first_token_ms=self.time_to_first_token_ms,
            total_time_ms=self.total_time_ms,
            total_tokens=self.total_tokens,
        )


class GenerationEngine(ABC):
    """Abstract base class for local text-generation backends."""

    def __init__(self, model_config: ModelConfig):
        """Initialize engine with model configuration.

        Args:
            model_config: Catalog entry for the model to serve
        """
        self.model_config = model_config
        self.model_id = model_config.model_id
        self._initialized = False
        logger.info(f"Created {self.__class__.__name__} for {model_config.model_name}")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @abstractmethod
    async def download(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Fetch model weights so the model can be initialized.

        Args:
            on_progress: Called with progress in [0.0, 1.0]
        """
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Load the model and mark the engine ready for completions."""
        pass

    @abstractmethod
    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: int = 1024,
        on_token: Optional[TokenCallback] = None,
    ) -> CompletionResult:
        """Generate a completion.

        Args:
            messages: [{role, content, images?}] with the system prompt first
            tools: Optional tool schemas the model may call
            max_tokens: Generation limit
            on_token: Called with each streamed token

        Returns:
            CompletionResult with text, function calls, and metrics
        """
        pass

    async def close(self) -> None:
        """Release engine resources."""
        self._initialized = False
