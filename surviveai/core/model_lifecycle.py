"""Explicit ownership of the loaded model.

A ModelHandle is the single owner of a generation engine. Orchestrators
receive the handle instead of reaching for a global; the handle refuses to
release the engine while a generation call is in flight.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from surviveai.core.llm_connector import GenerationEngine, ProgressCallback
from surviveai.lib.errors import ModelInUseError, ModelNotInitializedError
from surviveai.models.model_config import ModelConfig

logger = logging.getLogger(__name__)


class ModelHandle:
    """Lifecycle wrapper: acquire -> initialize -> generation()* -> release."""

    def __init__(self, engine: GenerationEngine):
        self.engine = engine
        self._in_flight = 0
        self._released = False

    @property
    def model_config(self) -> ModelConfig:
        return self.engine.model_config

    @property
    def model_id(self) -> str:
        return self.engine.model_id

    @property
    def is_ready(self) -> bool:
        return not self._released and self.engine.is_initialized

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def acquire(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Download model weights."""
        await self.engine.download(on_progress)

    async def initialize(self) -> None:
        if self._released:
            raise ModelNotInitializedError(self.model_id)
        await self.engine.initialize()

    @asynccontextmanager
    async def generation(self) -> AsyncIterator[GenerationEngine]:
        """Reserve the engine for one generation call.

        Raises:
            ModelNotInitializedError: If the model is not ready
        """
        if not self.is_ready:
            raise ModelNotInitializedError(self.model_id)

        self._in_flight += 1
        try:
            yield self.engine
        finally:
            self._in_flight -= 1

    async def release(self) -> None:
        """Tear down the engine.

        Raises:
            ModelInUseError: If a generation call is still in flight
        """
        if self._in_flight > 0:
            raise ModelInUseError(self.model_id, self._in_flight)
        if self._released:
            return

        await self.engine.close()
        self._released = True
        logger.info(f"Released model {self.model_id}")
