"""Ollama provider for on-device model inference."""

import base64
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from surviveai.core.llm_connector import (
    CompletionResult,
    FunctionCall,
    GenerationEngine,
    ProgressCallback,
    TokenCallback,
)
from surviveai.lib.errors import GenerationError, ModelNotInitializedError
from surviveai.models.model_config import ModelConfig

logger = logging.getLogger(__name__)


class OllamaProvider(GenerationEngine):
    """Streams chat completions from a local Ollama server."""

    def __init__(
        self,
        model_config: ModelConfig,
        base_url: str = "http://localhost:11434",
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Ollama provider.

        Args:
            model_config: Model catalog entry
            base_url: Ollama server URL
            client: Optional preconfigured HTTP client
        """
        super().__init__(model_config)
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=5.0))

    async def download(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Pull the model through Ollama, reporting byte progress."""
        logger.info(f"Downloading model: {self.model_id}")
        try:
            async with self.client.stream(
                "POST",
                f"{self.base_url}/api/pull",
                json={"model": self.model_id, "stream": True},
                timeout=None,
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    chunk = json.loads(line)
                    if "error" in chunk:
                        raise GenerationError(f"Model download failed: {chunk['error']}")
                    total = chunk.get("total")
                    if on_progress and total:
                        on_progress(min(1.0, chunk.get("completed", 0) / total))
        except httpx.HTTPError as e:
            logger.error(f"Model download failed: {e}")
            raise GenerationError(f"Model download failed: {e}") from e

        if on_progress:
            on_progress(1.0)
        logger.info(f"Download completed for: {self.model_id}")

    async def initialize(self) -> None:
        """Verify the model is available and warm it up."""
        try:
            response = await self.client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
            names = [m.get("name") for m in response.json().get("models", [])]
            if self.model_id not in names and f"{self.model_id}:latest" not in names:
                raise ModelNotInitializedError(self.model_id)

            # Empty request loads the model into memory
            warmup = await self.client.post(
                f"{self.base_url}/api/generate", json={"model": self.model_id}
            )
            warmup.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Ollama initialization failed: {e}")
            raise GenerationError(f"Ollama unavailable: {e}") from e

        self._initialized = True
        logger.info(f"Model initialized: {self.model_id}")

    def _to_ollama_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        formatted = {"role": message.get("role", "user"), "content": message.get("content", "")}
        images = message.get("images")
        if images and self.model_config.supports_vision:
            formatted["images"] = [self._encode_image(uri) for uri in images]
        return formatted

    @staticmethod
    def _encode_image(uri: str) -> str:
        path = Path(uri.removeprefix("file://"))
        return base64.b64encode(path.read_bytes()).decode("ascii")

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: int = 1024,
        on_token: Optional[TokenCallback] = None,
    ) -> CompletionResult:
        """Stream a chat completion from Ollama.

        Args:
            messages: Conversation messages with the system prompt first
            tools: Optional tool schemas (function-calling models only)
            max_tokens: Maximum tokens (Ollama num_predict)
            on_token: Called with each content token

        Returns:
            CompletionResult with content, function calls, and timing
        """
        if not self.is_initialized:
            raise ModelNotInitializedError(self.model_id)

        payload: Dict[str, Any] = {
            "model": self.model_id,
            "messages": [self._to_ollama_message(m) for m in messages],
            "stream": True,
            "options": {
                "num_predict": max_tokens,
                "num_ctx": self.model_config.context_size,
            },
        }
        if tools:
            payload["tools"] = [{"type": "function", "function": tool} for tool in tools]

        content_parts: List[str] = []
        function_calls: List[FunctionCall] = []
        eval_count = 0
        start = time.perf_counter()
        first_token_at: float | None = None

        try:
            async with self.client.stream(
                "POST", f"{self.base_url}/api/chat", json=payload
            ) as response:
                response.raise_for_status()

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    chunk = json.loads(line)
                    if "error" in chunk:
                        raise GenerationError(chunk["error"])

                    message = chunk.get("message", {})
                    token = message.get("content", "")
                    if token:
                        if first_token_at is None:
                            first_token_at = time.perf_counter()
                        content_parts.append(token)
                        if on_token:
                            on_token(token)

                    for call in message.get("tool_calls") or []:
                        function = call.get("function", {})
                        arguments = function.get("arguments") or {}
                        if isinstance(arguments, str):
                            arguments = json.loads(arguments)
                        function_calls.append(
                            FunctionCall(name=function.get("name", ""), arguments=arguments)
                        )

                    if chunk.get("done", False):
                        eval_count = chunk.get("eval_count", len(content_parts))
                        break

        except httpx.HTTPStatusError as e:
            logger.error(f"Ollama HTTP error: {e.response.status_code}")
            raise GenerationError(f"Ollama unavailable: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Ollama streaming error: {e}")
            raise GenerationError(f"Ollama error: {e}") from e

        total_time_ms = (time.perf_counter() - start) * 1000
        ttft_ms = (first_token_at - start) * 1000 if first_token_at else total_time_ms
        tokens = eval_count or len(content_parts)

        return CompletionResult(
            response="".join(content_parts),
            function_calls=function_calls,
            tokens_per_second=tokens / (total_time_ms / 1000) if total_time_ms > 0 else 0.0,
            time_to_first_token_ms=ttft_ms,
            total_time_ms=total_time_ms,
            total_tokens=tokens,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await super().close()
        await self.client.aclose()
